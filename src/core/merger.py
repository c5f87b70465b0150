from __future__ import annotations

import copy
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Mapping

from src.core.schemas import GuestSubmittedData

# Owned by the merger itself; never taken from form or server-derived input.
PROTECTED_FIELDS = frozenset({"last_completed_step", "submitted_at"})


@dataclass
class MergeResult:
    record: GuestSubmittedData
    # Both consents are present on the final step; the booking should be confirmed.
    confirm: bool = False
    # submitted_at was set by this merge (first successful confirmation).
    first_submission: bool = False


def _overlay(target: dict, source: Mapping[str, Any] | None, label: str) -> None:
    for key, value in (source or {}).items():
        if key in PROTECTED_FIELDS:
            continue
        if key not in GuestSubmittedData.model_fields:
            raise ValueError(f"Unknown guest record field in {label}: {key}")
        target[key] = copy.deepcopy(value)


def merge_guest_record(
    previous: GuestSubmittedData,
    server_derived: Mapping[str, Any] | None,
    form_validated: Mapping[str, Any] | None,
    artifact_updates: Mapping[str, str | None] | None,
    step_index: int,
    *,
    is_final: bool = False,
    advance: bool = True,
    now: datetime | None = None,
) -> MergeResult:
    """
    Combine the stored guest record with one step's new values.

    Later sources win: previous < server_derived < form_validated < artifact_updates.
    Fields that the step does not mention are carried over untouched.

    Args:
        previous: Persisted record (not modified).
        server_derived: Values computed by the server, e.g. the payment amount.
        form_validated: The step's validated form values (python field names).
        artifact_updates: Locator per record field; None clears the field.
        step_index: 0-based index of the submitted step.
        is_final: Whether this is the confirmation step.
        advance: False keeps last_completed_step as it was (step had errors).
        now: Clock override for submitted_at.
    """
    merged = copy.deepcopy(previous.model_dump())
    _overlay(merged, server_derived, "server_derived")
    _overlay(merged, form_validated, "form_validated")
    _overlay(merged, artifact_updates, "artifact_updates")

    record = GuestSubmittedData.model_validate(merged)
    record.last_completed_step = (
        max(previous.last_completed_step, step_index) if advance else previous.last_completed_step
    )
    record.submitted_at = previous.submitted_at

    result = MergeResult(record=record)
    if is_final and advance and record.terms_accepted is True and record.privacy_accepted is True:
        result.confirm = True
        if record.submitted_at is None:
            record.submitted_at = now or datetime.now(timezone.utc)
            result.first_submission = True
    return result
