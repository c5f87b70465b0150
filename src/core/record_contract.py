"""Contract for the accumulated guest record.

A small, explicit set of invariants that the intake coordinator, admin
views and tests can check to keep guest_submitted_data predictable.
"""

from __future__ import annotations

from typing import Any

from src.core.schemas import BookingStatus, GuestSubmittedData
from src.core.steps import TOTAL_STEPS


def validate_guest_record(
    record: GuestSubmittedData | dict[str, Any] | None,
    status: BookingStatus | None = None,
) -> list[str]:
    """Return contract violations for a guest record.

    Empty list means contract is valid.
    """
    errs: list[str] = []
    if record is None:
        return errs
    r = record if isinstance(record, GuestSubmittedData) else GuestSubmittedData.model_validate(record)

    if r.last_completed_step < -1 or r.last_completed_step >= TOTAL_STEPS:
        errs.append(f"invalid_last_completed_step:{r.last_completed_step}")

    if r.submitted_at is not None:
        if not (r.terms_accepted and r.privacy_accepted):
            errs.append("submitted_without_consent")
        if r.last_completed_step != TOTAL_STEPS - 1:
            errs.append(f"submitted_before_final_step:{r.last_completed_step}")

    if status == BookingStatus.CONFIRMED and r.submitted_at is None:
        errs.append("confirmed_without_submission")

    ids = [c.id for c in r.companions]
    duplicates = sorted({i for i in ids if ids.count(i) > 1})
    if duplicates:
        errs.append(f"duplicate_companion_ids:{','.join(duplicates)}")

    locators = r.artifact_locators()
    shared = sorted({loc for loc in locators if locators.count(loc) > 1})
    if shared:
        errs.append(f"shared_artifact_locators:{len(shared)}")

    return errs


def normalize_guest_record(record: dict[str, Any] | None) -> dict[str, Any]:
    """Normalize minimal contract invariants without changing what the guest entered."""
    r = dict(record or {})

    step = r.get("last_completed_step")
    if not isinstance(step, int):
        step = -1
    r["last_completed_step"] = min(max(step, -1), TOTAL_STEPS - 1)

    if not isinstance(r.get("companions"), list):
        r["companions"] = []

    return r
