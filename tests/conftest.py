from __future__ import annotations

import itertools
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from src.core.artifacts import InMemoryArtifactStore
from src.core.intake import StepSubmissionCoordinator
from src.core.schemas import Booking, RoomDetail
from src.core.steps import UploadedFile
from src.core.store import InMemoryBookingStore

TOKEN = "tok-erika-2026"


@pytest.fixture
def make_booking():
    def _make(**overrides) -> Booking:
        data = {
            "booking_token": TOKEN,
            "guest_first_name": "Erika",
            "guest_last_name": "Mustermann",
            "price": Decimal("400.00"),
            "check_in_date": date(2026, 7, 1),
            "check_out_date": date(2026, 7, 5),
            "board": "Frühstück",
            "room_identifier": "Doppelzimmer 12",
            "rooms": [RoomDetail(room_type="Doppelzimmer", adults=2)],
            "created_at": datetime(2026, 5, 1, 9, 0, tzinfo=timezone.utc),
        }
        data.update(overrides)
        return Booking(**data)

    return _make


@pytest.fixture
def booking(make_booking) -> Booking:
    return make_booking()


@pytest.fixture
def store(booking) -> InMemoryBookingStore:
    return InMemoryBookingStore([booking])


@pytest.fixture
def artifacts() -> InMemoryArtifactStore:
    return InMemoryArtifactStore()


@pytest.fixture
def notifier() -> AsyncMock:
    mock = AsyncMock()
    mock.booking_confirmed.return_value = {"success": True}
    return mock


@pytest.fixture
def clock():
    # Each call is one second later, so repeated uploads get distinct paths.
    start = datetime(2026, 5, 1, 12, 0, tzinfo=timezone.utc)
    ticks = itertools.count()
    return lambda: start + timedelta(seconds=next(ticks))


@pytest.fixture
def coordinator(store, artifacts, notifier, clock) -> StepSubmissionCoordinator:
    return StepSubmissionCoordinator(store, artifacts, notifier=notifier, clock=clock)


@pytest.fixture
def upload():
    def _upload(name: str = "ausweis.jpg", content_type: str = "image/jpeg", data: bytes = b"\xff\xd8scan") -> UploadedFile:
        return UploadedFile(filename=name, content_type=content_type, data=data)

    return _upload


@pytest.fixture
def guest_details_form() -> dict:
    return {
        "anrede": "Frau",
        "gastVorname": "Erika",
        "gastNachname": "Musterfrau",
        "geburtsdatum": "1985-04-12",
        "email": "erika@beispiel.de",
        "telefon": "+49 170 1234567",
    }
