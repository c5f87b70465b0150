from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from starlette.datastructures import UploadFile

from src.core.intake import StepSubmissionCoordinator
from src.core.schemas import OutcomeKind, StepOutcome
from src.core.steps import TOTAL_STEPS, UploadedFile
from src.core.store import BookingStore
from src.core.workflow import initial_state, is_complete

from .deps import get_booking_store, get_coordinator
from .schemas import GuestBookingView


logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/guest", tags=["guest"])


async def read_form_fields(request: Request, max_upload_bytes: int) -> dict:
    """
    Read a multipart/urlencoded body into plain values and UploadedFile objects.

    Uploads larger than `max_upload_bytes` are not read; they keep only their
    reported size so step validation can reject them.
    """
    form = await request.form()
    fields: dict = {}
    for key, value in form.multi_items():
        if isinstance(value, UploadFile):
            filename = value.filename or ""
            content_type = value.content_type or ""
            if value.size is not None and value.size > max_upload_bytes:
                logger.warning("Upload over limit left unread: field=%s size=%s", key, value.size)
                fields[key] = UploadedFile(filename, content_type, b"", declared_size=value.size)
                continue
            fields[key] = UploadedFile(filename, content_type, await value.read())
        else:
            fields[key] = value
    return fields


@router.get("/{booking_token}", response_model=GuestBookingView)
async def get_guest_booking(
    booking_token: str,
    store: BookingStore = Depends(get_booking_store),
) -> GuestBookingView:
    booking = await store.get_by_token(booking_token)
    if booking is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Buchung nicht gefunden")

    state = initial_state(booking)
    return GuestBookingView(
        guest_first_name=booking.guest_first_name,
        guest_last_name=booking.guest_last_name,
        check_in_date=booking.check_in_date,
        check_out_date=booking.check_out_date,
        board=booking.board,
        room_identifier=booking.room_identifier,
        rooms=booking.rooms,
        price=booking.price,
        status=booking.status,
        display_step=state.display_step,
        total_steps=TOTAL_STEPS,
        complete=is_complete(state),
        guest_submitted_data=state.guest,
    )


@router.post("/{booking_token}/steps/{step_number}", response_model=StepOutcome)
async def submit_guest_step(
    booking_token: str,
    step_number: int,
    request: Request,
    response: Response,
    coordinator: StepSubmissionCoordinator = Depends(get_coordinator),
) -> StepOutcome:
    fields = await read_form_fields(request, coordinator.max_upload_bytes)
    outcome = await coordinator.submit(booking_token, step_number, fields)
    if outcome.error_kind == OutcomeKind.NOT_FOUND:
        response.status_code = status.HTTP_404_NOT_FOUND
    return outcome
