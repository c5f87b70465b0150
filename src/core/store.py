"""
Booking Store: plain key-value access to booking records.

The intake coordinator always reads, merges and writes explicitly; stores
never merge guest data themselves. `update()` applies one BookingPatch as a
single atomic write (guest record, status and names together).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from uuid import UUID

from src.core.schemas import Booking, BookingPatch, BookingStatus


class BookingNotFoundError(Exception):
    pass


class BookingStore(ABC):
    @abstractmethod
    async def get_by_token(self, booking_token: str) -> Booking | None:
        """Return the booking behind a guest link, or None."""

    @abstractmethod
    async def get_by_id(self, booking_id: UUID) -> Booking | None:
        """Return a booking by primary key, or None."""

    @abstractmethod
    async def add(self, booking: Booking) -> Booking:
        """Insert a new booking and return it with timestamps set."""

    @abstractmethod
    async def update(self, booking_id: UUID, patch: BookingPatch) -> Booking:
        """
        Apply a patch atomically.

        Raises:
            BookingNotFoundError: If the booking does not exist.
        """

    @abstractmethod
    async def delete(self, booking_id: UUID) -> bool:
        """Remove a booking. Returns False if it did not exist."""

    @abstractmethod
    async def list_bookings(
        self,
        status: BookingStatus | None = None,
        search: str | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[Booking], int]:
        """Return (page, total) ordered newest first."""

    @abstractmethod
    async def count_by_status(self) -> dict[BookingStatus, int]:
        """Return booking counts for every status (zero included)."""


def matches_search(booking: Booking, search: str | None) -> bool:
    if not search:
        return True
    needle = search.strip().lower()
    haystack = [
        booking.guest_first_name,
        booking.guest_last_name,
        booking.room_identifier,
        booking.guest_submitted_data.email or "",
    ]
    return any(needle in (value or "").lower() for value in haystack)


def apply_patch(booking: Booking, patch: BookingPatch, now: datetime) -> Booking:
    updated = booking.model_copy(deep=True)
    updated.guest_submitted_data = patch.guest_submitted_data.model_copy(deep=True)
    if patch.status is not None:
        updated.status = patch.status
    if patch.guest_first_name:
        updated.guest_first_name = patch.guest_first_name
    if patch.guest_last_name:
        updated.guest_last_name = patch.guest_last_name
    updated.updated_at = now
    return updated


class InMemoryBookingStore(BookingStore):
    """Dict-backed store. Every read and write copies, so callers never share state with it."""

    def __init__(self, bookings: list[Booking] | None = None):
        self._bookings: dict[UUID, Booking] = {}
        for booking in bookings or []:
            self._bookings[booking.id] = booking.model_copy(deep=True)

    async def get_by_token(self, booking_token: str) -> Booking | None:
        for booking in self._bookings.values():
            if booking.booking_token == booking_token:
                return booking.model_copy(deep=True)
        return None

    async def get_by_id(self, booking_id: UUID) -> Booking | None:
        booking = self._bookings.get(booking_id)
        return booking.model_copy(deep=True) if booking else None

    async def add(self, booking: Booking) -> Booking:
        now = datetime.now(timezone.utc)
        stored = booking.model_copy(deep=True)
        stored.created_at = stored.created_at or now
        stored.updated_at = now
        self._bookings[stored.id] = stored
        return stored.model_copy(deep=True)

    async def update(self, booking_id: UUID, patch: BookingPatch) -> Booking:
        current = self._bookings.get(booking_id)
        if current is None:
            raise BookingNotFoundError(str(booking_id))
        updated = apply_patch(current, patch, datetime.now(timezone.utc))
        self._bookings[booking_id] = updated
        return updated.model_copy(deep=True)

    async def delete(self, booking_id: UUID) -> bool:
        return self._bookings.pop(booking_id, None) is not None

    async def list_bookings(
        self,
        status: BookingStatus | None = None,
        search: str | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[Booking], int]:
        items = [
            b
            for b in self._bookings.values()
            if (status is None or b.status == status) and matches_search(b, search)
        ]
        items.sort(key=lambda b: b.created_at or datetime.min.replace(tzinfo=timezone.utc), reverse=True)
        page = items[offset: offset + limit]
        return [b.model_copy(deep=True) for b in page], len(items)

    async def count_by_status(self) -> dict[BookingStatus, int]:
        counts = {status: 0 for status in BookingStatus}
        for booking in self._bookings.values():
            counts[booking.status] += 1
        return counts
