"""
Companion roster reconciliation for the "Mitreisende" step.

The client declares the full roster (id + names) on every submission. Known
companions keep their document locators, new ids start empty, names always
come from the latest submission, and companions missing from the roster are
dropped with their locators handed back for deletion.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field

from src.core.schemas import Companion
from src.core.steps import CompanionSlot


@dataclass
class CompanionReconciliation:
    companions: list[Companion] = field(default_factory=list)
    # Locators of companions no longer in the roster.
    removed_locators: list[str] = field(default_factory=list)
    # Locators replaced by a fresh upload for the same companion slot.
    superseded_locators: list[str] = field(default_factory=list)
    removed_ids: list[str] = field(default_factory=list)


def reconcile_companions(
    previous: Sequence[Companion],
    declared: Sequence[Mapping],
    uploads: Mapping[tuple[str, CompanionSlot], str] | None = None,
) -> CompanionReconciliation:
    """
    Reconcile the stored companion list against the client-declared roster.

    Args:
        previous: Companions currently persisted.
        declared: Roster entries with "id", "first_name", "last_name", in display order.
        uploads: New locators per (companion id, slot), already stored durably.

    Returns:
        CompanionReconciliation; the resulting list follows the declared order.
    """
    uploads = uploads or {}
    known = {c.id: c for c in previous}
    result = CompanionReconciliation()
    declared_ids: set[str] = set()

    for entry in declared:
        companion_id = str(entry["id"])
        if companion_id in declared_ids:
            continue
        declared_ids.add(companion_id)

        existing = known.get(companion_id)
        companion = existing.model_copy(deep=True) if existing else Companion(id=companion_id)
        companion.first_name = str(entry.get("first_name") or "")
        companion.last_name = str(entry.get("last_name") or "")

        for slot in CompanionSlot:
            new_locator = uploads.get((companion_id, slot))
            if not new_locator:
                continue
            old_locator = getattr(companion, slot.record_field)
            if old_locator and old_locator != new_locator:
                result.superseded_locators.append(old_locator)
            setattr(companion, slot.record_field, new_locator)

        result.companions.append(companion)

    for companion in previous:
        if companion.id in declared_ids:
            continue
        result.removed_ids.append(companion.id)
        result.removed_locators.extend(
            loc for loc in (companion.id_front_url, companion.id_back_url) if loc
        )

    return result
