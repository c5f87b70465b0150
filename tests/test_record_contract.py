from datetime import datetime, timezone

from src.core.record_contract import normalize_guest_record, validate_guest_record
from src.core.schemas import BookingStatus, Companion, GuestSubmittedData

SUBMITTED = datetime(2026, 5, 1, tzinfo=timezone.utc)


def test_validate_happy_path_confirmed() -> None:
    record = GuestSubmittedData(
        last_completed_step=4,
        terms_accepted=True,
        privacy_accepted=True,
        submitted_at=SUBMITTED,
    )
    assert validate_guest_record(record, BookingStatus.CONFIRMED) == []


def test_validate_empty_record() -> None:
    assert validate_guest_record(GuestSubmittedData()) == []
    assert validate_guest_record(None) == []


def test_validate_rejects_step_out_of_range() -> None:
    errs = validate_guest_record({"last_completed_step": 7})
    assert "invalid_last_completed_step:7" in errs


def test_validate_rejects_submission_without_consent() -> None:
    record = GuestSubmittedData(last_completed_step=4, terms_accepted=True, submitted_at=SUBMITTED)
    assert "submitted_without_consent" in validate_guest_record(record)


def test_validate_rejects_confirmed_without_submission() -> None:
    errs = validate_guest_record(GuestSubmittedData(last_completed_step=4), BookingStatus.CONFIRMED)
    assert "confirmed_without_submission" in errs


def test_validate_rejects_duplicate_companions_and_shared_locators() -> None:
    record = GuestSubmittedData(
        id_front_url="memory:x",
        companions=[
            Companion(id="c1", id_front_url="memory:x"),
            Companion(id="c1"),
        ],
    )
    errs = validate_guest_record(record)
    assert "duplicate_companion_ids:c1" in errs
    assert "shared_artifact_locators:1" in errs


def test_normalize_clamps_step_and_fixes_companions() -> None:
    norm = normalize_guest_record({"last_completed_step": 9, "companions": "kaputt"})
    assert norm["last_completed_step"] == 4
    assert norm["companions"] == []

    assert normalize_guest_record(None)["last_completed_step"] == -1
