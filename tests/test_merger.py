from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from src.core.merger import merge_guest_record
from src.core.schemas import Companion, DocumentType, GuestSubmittedData, Salutation

NOW = datetime(2026, 5, 1, 12, 0, tzinfo=timezone.utc)


def _after_step_one() -> GuestSubmittedData:
    return GuestSubmittedData(
        last_completed_step=0,
        salutation=Salutation.FRAU,
        first_name="Erika",
        last_name="Mustermann",
        email="erika@beispiel.de",
        phone="+49 170 1234567",
    )


def test_merge_is_field_additive():
    previous = _after_step_one()
    result = merge_guest_record(
        previous,
        None,
        {"document_type": DocumentType.PASSPORT},
        {"id_front_url": "memory:front"},
        1,
    )

    record = result.record
    assert record.email == "erika@beispiel.de"
    assert record.first_name == "Erika"
    assert record.document_type == DocumentType.PASSPORT
    assert record.id_front_url == "memory:front"
    assert record.last_completed_step == 1


def test_merge_precedence_and_clearing():
    previous = GuestSubmittedData(payment_proof_url="memory:old", payment_amount=Decimal("1.00"))
    result = merge_guest_record(
        previous,
        {"payment_amount": Decimal("120.00"), "payment_method": "server"},
        {"payment_method": "Überweisung", "payment_date": date(2026, 5, 2)},
        {"payment_proof_url": None},
        3,
    )

    assert result.record.payment_amount == Decimal("120.00")
    assert result.record.payment_method == "Überweisung"
    assert result.record.payment_proof_url is None


def test_merge_does_not_mutate_previous():
    previous = _after_step_one()
    previous.companions = [Companion(id="c1", first_name="Max", id_front_url="memory:c1")]
    snapshot = previous.model_dump()

    result = merge_guest_record(previous, None, {"companions": []}, None, 2)

    assert result.record.companions == []
    assert previous.model_dump() == snapshot


def test_last_completed_step_never_decreases():
    previous = GuestSubmittedData(last_completed_step=3)
    result = merge_guest_record(previous, None, {"first_name": "Erika"}, None, 0)

    assert result.record.last_completed_step == 3
    assert result.record.first_name == "Erika"


def test_merge_without_advance_keeps_progress():
    previous = GuestSubmittedData(last_completed_step=0)
    result = merge_guest_record(previous, None, {"document_type": "Reisepass"}, None, 1, advance=False)

    assert result.record.last_completed_step == 0
    assert result.record.document_type == DocumentType.PASSPORT


def test_protected_fields_cannot_be_set_from_input():
    previous = GuestSubmittedData(last_completed_step=0)
    result = merge_guest_record(
        previous,
        {"submitted_at": NOW},
        {"last_completed_step": 4, "first_name": "Erika"},
        None,
        0,
    )

    assert result.record.last_completed_step == 0
    assert result.record.submitted_at is None


def test_unknown_field_is_rejected():
    with pytest.raises(ValueError, match="Unknown guest record field"):
        merge_guest_record(GuestSubmittedData(), None, {"gastVorname": "Erika"}, None, 0)


def test_final_step_with_consent_sets_submitted_at_once():
    previous = GuestSubmittedData(last_completed_step=3)
    consent = {"terms_accepted": True, "privacy_accepted": True}

    first = merge_guest_record(previous, None, consent, None, 4, is_final=True, now=NOW)
    assert first.confirm is True
    assert first.first_submission is True
    assert first.record.submitted_at == NOW
    assert first.record.last_completed_step == 4

    later = datetime(2026, 6, 1, tzinfo=timezone.utc)
    again = merge_guest_record(first.record, None, consent, None, 4, is_final=True, now=later)
    assert again.confirm is True
    assert again.first_submission is False
    assert again.record.submitted_at == NOW


def test_final_step_without_both_consents_does_not_confirm():
    previous = GuestSubmittedData(last_completed_step=3)
    result = merge_guest_record(
        previous,
        None,
        {"terms_accepted": True, "privacy_accepted": False},
        None,
        4,
        is_final=True,
        now=NOW,
    )

    assert result.confirm is False
    assert result.record.submitted_at is None
