from __future__ import annotations

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status

from src.config import get_settings
from src.core.artifacts import ArtifactStore
from src.core.bookings import BookingCreate, booking_stats, create_booking, delete_bookings, guest_link, list_bookings
from src.core.schemas import Booking, BookingStatus
from src.core.store import BookingStore

from .deps import get_artifact_store, get_booking_store
from .schemas import (
    BookingDeleteRequest,
    BookingDeleteResponse,
    BookingDetailResponse,
    BookingResponse,
    BookingStatsResponse,
    PaginatedResponse,
)


logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/bookings", tags=["bookings"])


def _detail(booking: Booking) -> BookingDetailResponse:
    base = BookingResponse.from_booking(booking)
    return BookingDetailResponse(
        **base.model_dump(),
        booking_token=booking.booking_token,
        guest_link=guest_link(booking, get_settings().public_base_url),
        rooms=booking.rooms,
        internal_notes=booking.internal_notes,
        guest_submitted_data=booking.guest_submitted_data,
    )


@router.get("", response_model=PaginatedResponse[BookingResponse])
async def list_bookings_endpoint(
    status_filter: BookingStatus | None = Query(default=None, alias="status"),
    search: str | None = Query(default=None, max_length=200),
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    store: BookingStore = Depends(get_booking_store),
) -> PaginatedResponse[BookingResponse]:
    items, total = await list_bookings(store, status=status_filter, search=search, limit=limit, offset=offset)
    return PaginatedResponse(
        items=[BookingResponse.from_booking(b) for b in items],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.post("", response_model=BookingDetailResponse, status_code=status.HTTP_201_CREATED)
async def create_booking_endpoint(
    payload: BookingCreate,
    store: BookingStore = Depends(get_booking_store),
) -> BookingDetailResponse:
    booking = await create_booking(store, payload)
    return _detail(booking)


@router.get("/stats", response_model=BookingStatsResponse)
async def booking_stats_endpoint(store: BookingStore = Depends(get_booking_store)) -> BookingStatsResponse:
    return BookingStatsResponse(**await booking_stats(store))


@router.post("/delete", response_model=BookingDeleteResponse)
async def delete_bookings_endpoint(
    payload: BookingDeleteRequest,
    store: BookingStore = Depends(get_booking_store),
    artifacts: ArtifactStore = Depends(get_artifact_store),
) -> BookingDeleteResponse:
    report = await delete_bookings(store, artifacts, payload.ids)
    return BookingDeleteResponse(
        deleted=report.deleted,
        missing=report.missing,
        artifact_failures=report.artifact_failures,
        message=f"{len(report.deleted)} Buchung(en) erfolgreich gelöscht.",
    )


@router.get("/{booking_id}", response_model=BookingDetailResponse)
async def get_booking_endpoint(
    booking_id: UUID,
    store: BookingStore = Depends(get_booking_store),
) -> BookingDetailResponse:
    booking = await store.get_by_id(booking_id)
    if booking is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Booking not found")
    return _detail(booking)


@router.delete("/{booking_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_booking_endpoint(
    booking_id: UUID,
    store: BookingStore = Depends(get_booking_store),
    artifacts: ArtifactStore = Depends(get_artifact_store),
) -> None:
    report = await delete_bookings(store, artifacts, [booking_id])
    if not report.deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Booking not found")
