from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Generic, TypeVar
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from src.core.schemas import Booking, BookingStatus, GuestSubmittedData, RoomDetail


class BookingResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    guest_first_name: str
    guest_last_name: str
    price: Decimal
    check_in_date: date | None
    check_out_date: date | None
    board: str
    room_identifier: str
    status: BookingStatus
    last_completed_step: int
    submitted_at: datetime | None
    created_at: datetime | None
    updated_at: datetime | None

    @classmethod
    def from_booking(cls, booking: Booking) -> "BookingResponse":
        return cls(
            **booking.model_dump(
                include={
                    "id",
                    "guest_first_name",
                    "guest_last_name",
                    "price",
                    "check_in_date",
                    "check_out_date",
                    "board",
                    "room_identifier",
                    "status",
                    "created_at",
                    "updated_at",
                }
            ),
            last_completed_step=booking.guest_submitted_data.last_completed_step,
            submitted_at=booking.guest_submitted_data.submitted_at,
        )


class BookingDetailResponse(BookingResponse):
    booking_token: str
    guest_link: str
    rooms: list[RoomDetail] = Field(default_factory=list)
    internal_notes: str | None = None
    guest_submitted_data: GuestSubmittedData


class BookingStatsResponse(BaseModel):
    total: int
    by_status: dict[str, int]


class BookingDeleteRequest(BaseModel):
    ids: list[UUID] = Field(min_length=1)


class BookingDeleteResponse(BaseModel):
    deleted: list[UUID] = Field(default_factory=list)
    missing: list[UUID] = Field(default_factory=list)
    artifact_failures: int = 0
    message: str


class GuestBookingView(BaseModel):
    """What the guest form needs to render: booking summary plus workflow position."""

    guest_first_name: str
    guest_last_name: str
    check_in_date: date | None
    check_out_date: date | None
    board: str
    room_identifier: str
    rooms: list[RoomDetail] = Field(default_factory=list)
    price: Decimal
    status: BookingStatus
    display_step: int
    total_steps: int
    complete: bool
    guest_submitted_data: GuestSubmittedData


T = TypeVar("T")


class PaginatedResponse(BaseModel, Generic[T]):
    items: list[T] = Field(default_factory=list)
    total: int
    limit: int
    offset: int
