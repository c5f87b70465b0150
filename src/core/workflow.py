"""
Client-side workflow state for the guest form stepper.

Pure functions only: the displayed step is derived from last_completed_step,
and outcomes are applied at most once per action token, so re-renders or
stale responses never repeat side effects.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum

from src.core.schemas import Booking, BookingStatus, GuestSubmittedData, StepOutcome
from src.core.steps import TOTAL_STEPS


class Effect(str, Enum):
    RECORD_UPDATED = "record_updated"
    STEP_ADVANCED = "step_advanced"
    WORKFLOW_COMPLETE = "workflow_complete"
    NOTIFY_SUCCESS = "notify_success"
    NOTIFY_ERROR = "notify_error"


@dataclass(frozen=True)
class WorkflowState:
    # 0-based index of the form being shown; TOTAL_STEPS means "complete".
    display_step: int
    last_completed_step: int
    guest: GuestSubmittedData
    booking_status: BookingStatus
    last_applied_token: str | None = None
    applied_tokens: frozenset[str] = frozenset()


@dataclass(frozen=True)
class TransitionResult:
    state: WorkflowState
    effects: tuple[Effect, ...] = ()


def derive_display_step(last_completed_step: int, total_steps: int = TOTAL_STEPS) -> int:
    return min(last_completed_step + 1, total_steps)


def initial_state(booking: Booking) -> WorkflowState:
    guest = booking.guest_submitted_data.model_copy(deep=True)
    return WorkflowState(
        display_step=derive_display_step(guest.last_completed_step),
        last_completed_step=guest.last_completed_step,
        guest=guest,
        booking_status=booking.status,
    )


def is_complete(state: WorkflowState) -> bool:
    """Show the confirmation view only for a really confirmed, submitted booking."""
    return (
        state.display_step >= TOTAL_STEPS
        and state.booking_status == BookingStatus.CONFIRMED
        and state.guest.submitted_at is not None
    )


def apply_outcome(state: WorkflowState, outcome: StepOutcome) -> TransitionResult:
    """Apply a submission outcome once; a token seen before yields no effects."""
    if outcome.action_token == state.last_applied_token or outcome.action_token in state.applied_tokens:
        return TransitionResult(state=state)

    effects: list[Effect] = []
    guest = state.guest
    last_completed = state.last_completed_step
    # A late response carrying an older record must not replace the newer local copy.
    if outcome.guest_record is not None and outcome.guest_record.last_completed_step >= last_completed:
        guest = outcome.guest_record.model_copy(deep=True)
        last_completed = max(last_completed, guest.last_completed_step)
        effects.append(Effect.RECORD_UPDATED)

    display = state.display_step
    if outcome.success and outcome.step_index == state.display_step:
        display = derive_display_step(outcome.step_index)
        effects.append(Effect.STEP_ADVANCED)
    # Never show a step beyond the first uncompleted one.
    display = min(display, derive_display_step(last_completed))

    new_state = replace(
        state,
        display_step=display,
        last_completed_step=last_completed,
        guest=guest,
        booking_status=outcome.booking_status or state.booking_status,
        last_applied_token=outcome.action_token,
        applied_tokens=state.applied_tokens | {outcome.action_token},
    )
    effects.append(Effect.NOTIFY_SUCCESS if outcome.success else Effect.NOTIFY_ERROR)
    if Effect.STEP_ADVANCED in effects and is_complete(new_state):
        effects.append(Effect.WORKFLOW_COMPLETE)
    return TransitionResult(state=new_state, effects=tuple(effects))


def go_back(state: WorkflowState, target: int) -> WorkflowState:
    """
    Show an earlier step. Persisted progress is untouched.

    Raises:
        ValueError: If target is negative or ahead of the current step.
    """
    if target < 0 or target > state.display_step:
        raise ValueError(f"Cannot move to step {target} from step {state.display_step}")
    return replace(state, display_step=target)
