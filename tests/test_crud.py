from __future__ import annotations

from datetime import date
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.crud import SqlBookingStore, row_to_booking
from src.core.schemas import BookingPatch, BookingStatus, GuestSubmittedData
from src.core.store import BookingNotFoundError
from src.models import Booking as BookingRow


def _row() -> BookingRow:
    return BookingRow(
        id=uuid4(),
        booking_token="tok-row",
        guest_first_name="Erika",
        guest_last_name="Mustermann",
        price=Decimal("400.00"),
        check_in_date=date(2026, 7, 1),
        check_out_date=date(2026, 7, 5),
        board="Frühstück",
        room_identifier="Doppelzimmer 12",
        rooms=[{"room_type": "Doppelzimmer", "adults": 2}],
        internal_notes=None,
        status="pending_guest_information",
        guest_submitted_data={"last_completed_step": 1, "email": "erika@beispiel.de"},
    )


def _session_returning(row: BookingRow | None) -> AsyncMock:
    db = AsyncMock(spec=AsyncSession)
    result = MagicMock()
    result.scalar_one_or_none.return_value = row
    db.execute.return_value = result
    return db


def test_row_to_booking():
    booking = row_to_booking(_row())

    assert booking.status == BookingStatus.PENDING_GUEST_INFORMATION
    assert booking.rooms[0].adults == 2
    assert booking.guest_submitted_data.last_completed_step == 1
    assert booking.guest_submitted_data.email == "erika@beispiel.de"


def test_row_to_booking_normalizes_stored_guest_record():
    row = _row()
    row.guest_submitted_data = {"last_completed_step": 9, "companions": None, "email": "erika@beispiel.de"}

    record = row_to_booking(row).guest_submitted_data

    assert record.last_completed_step == 4
    assert record.companions == []
    assert record.email == "erika@beispiel.de"

    row.guest_submitted_data = None
    assert row_to_booking(row).guest_submitted_data.last_completed_step == -1


@pytest.mark.asyncio
async def test_update_writes_record_status_and_names_in_one_commit():
    row = _row()
    db = _session_returning(row)
    store = SqlBookingStore(db)

    patch = BookingPatch(
        guest_submitted_data=GuestSubmittedData(last_completed_step=4, first_name="Erika"),
        status=BookingStatus.CONFIRMED,
        guest_first_name="Erika",
        guest_last_name="Musterfrau",
    )
    updated = await store.update(row.id, patch)

    db.commit.assert_awaited_once()
    assert row.status == "confirmed"
    assert row.guest_last_name == "Musterfrau"
    assert row.guest_submitted_data["last_completed_step"] == 4
    assert updated.status == BookingStatus.CONFIRMED


@pytest.mark.asyncio
async def test_update_unknown_booking_raises():
    store = SqlBookingStore(_session_returning(None))

    with pytest.raises(BookingNotFoundError):
        await store.update(uuid4(), BookingPatch(guest_submitted_data=GuestSubmittedData()))


@pytest.mark.asyncio
async def test_failed_commit_rolls_back():
    row = _row()
    db = _session_returning(row)
    db.commit.side_effect = RuntimeError("connection lost")
    store = SqlBookingStore(db)

    with pytest.raises(RuntimeError):
        await store.update(row.id, BookingPatch(guest_submitted_data=GuestSubmittedData()))

    db.rollback.assert_awaited_once()
