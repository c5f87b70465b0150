"""
Administrative booking operations: create, list, stats, delete.

The guest intake itself lives in src.core.intake; these helpers only create
the record behind a guest link and remove it again.
"""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field, ValidationInfo, field_validator
from pydantic_core import PydanticCustomError

from src.core.artifacts import ArtifactStore, delete_quietly
from src.core.schemas import Booking, BookingStatus, GuestSubmittedData, RoomDetail
from src.core.store import BookingStore

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100


class BookingCreate(BaseModel):
    guest_first_name: str = Field(min_length=1, max_length=100)
    guest_last_name: str = Field(min_length=1, max_length=100)
    price: Decimal = Field(gt=0, max_digits=10, decimal_places=2)
    check_in_date: date
    check_out_date: date
    board: str = Field(min_length=1, max_length=64)
    rooms: list[RoomDetail] = Field(min_length=1)
    room_identifier: Optional[str] = Field(default=None, max_length=100)
    internal_notes: Optional[str] = None

    @field_validator("check_out_date")
    @classmethod
    def _after_check_in(cls, value: date, info: ValidationInfo) -> date:
        check_in = info.data.get("check_in_date")
        if check_in is not None and value <= check_in:
            raise PydanticCustomError(
                "booking_checkout_before_checkin",
                "Abreisedatum muss nach dem Anreisedatum liegen.",
            )
        return value


def new_booking_token() -> str:
    return secrets.token_urlsafe(24)


def guest_link(booking: Booking, public_base_url: str) -> str:
    return f"{public_base_url.rstrip('/')}/buchung/{booking.booking_token}"


async def create_booking(store: BookingStore, request: BookingCreate) -> Booking:
    """Create a booking awaiting guest information, with a fresh guest-link token."""
    booking = Booking(
        booking_token=new_booking_token(),
        guest_first_name=request.guest_first_name.strip(),
        guest_last_name=request.guest_last_name.strip(),
        price=request.price,
        check_in_date=request.check_in_date,
        check_out_date=request.check_out_date,
        board=request.board,
        room_identifier=request.room_identifier or request.rooms[0].room_type,
        rooms=request.rooms,
        internal_notes=request.internal_notes,
        status=BookingStatus.PENDING_GUEST_INFORMATION,
        guest_submitted_data=GuestSubmittedData(),
    )
    created = await store.add(booking)
    logger.info("Booking created: id=%s guest=%s %s", created.id, created.guest_first_name, created.guest_last_name)
    return created


@dataclass
class DeleteReport:
    deleted: list[UUID] = field(default_factory=list)
    missing: list[UUID] = field(default_factory=list)
    artifact_failures: int = 0


async def delete_bookings(store: BookingStore, artifacts: ArtifactStore, booking_ids: list[UUID]) -> DeleteReport:
    """
    Delete bookings and, best-effort, every artifact their guest records own.

    The record goes first so no persisted locator ever points at a deleted object.
    """
    report = DeleteReport()
    for booking_id in dict.fromkeys(booking_ids):
        booking = await store.get_by_id(booking_id)
        if booking is None:
            report.missing.append(booking_id)
            continue

        locators = booking.guest_submitted_data.artifact_locators()
        if not await store.delete(booking_id):
            report.missing.append(booking_id)
            continue
        report.deleted.append(booking_id)
        report.artifact_failures += await delete_quietly(artifacts, locators)

    logger.info(
        "Bookings deleted: deleted=%s missing=%s artifact_failures=%s",
        len(report.deleted),
        len(report.missing),
        report.artifact_failures,
    )
    return report


async def list_bookings(
    store: BookingStore,
    status: BookingStatus | None = None,
    search: str | None = None,
    limit: int = 20,
    offset: int = 0,
) -> tuple[list[Booking], int]:
    limit = max(1, min(limit, MAX_PAGE_SIZE))
    offset = max(0, offset)
    return await store.list_bookings(status=status, search=search, limit=limit, offset=offset)


async def booking_stats(store: BookingStore) -> dict:
    counts = await store.count_by_status()
    return {
        "total": sum(counts.values()),
        "by_status": {status.value: counts.get(status, 0) for status in BookingStatus},
    }
