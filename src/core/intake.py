"""
Step submission coordinator.

Takes one guest step submission and turns it into one consistent update of
the booking:

1. load        - find the booking behind the guest link
2. validate    - run the step's form schema and file checks
3. upload      - store new artifacts, keep old locators on failure
4. companions  - reconcile the declared roster with stored companions
5. consent     - final step: both checkboxes must be ticked
6. merge       - field-additive merge into the guest record
7. persist     - one atomic BookingPatch
8. cleanup     - delete superseded and orphaned artifacts (best-effort)
9. notify      - announce a confirmed booking (best-effort)

Nothing escapes as an exception: every path returns a StepOutcome.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Callable
from uuid import uuid4

from src.core.artifacts import ArtifactStore, ArtifactWriteError, delete_quietly, derive_artifact_path
from src.core.companions import CompanionReconciliation, reconcile_companions
from src.core.merger import MergeResult, merge_guest_record
from src.core.record_contract import validate_guest_record
from src.core.schemas import (
    Booking,
    BookingPatch,
    BookingStatus,
    GuestSubmittedData,
    OutcomeKind,
    PaymentAmountSelection,
    StepOutcome,
)
from src.core.steps import (
    MAX_UPLOAD_BYTES,
    CompanionSlot,
    StepDescriptor,
    StepValidation,
    UnknownStepError,
    UploadedFile,
    companion_file_key,
    get_step,
    missing_consents,
    validate_step,
)
from src.core.store import BookingStore
from src.integrations.base import BookingNotifier, LoggingNotifier

logger = logging.getLogger(__name__)

MSG_STEP_OK = "Schritt {number} erfolgreich übermittelt."
MSG_CONFIRMED = "Buchung erfolgreich abgeschlossen und bestätigt!"
MSG_NOT_FOUND = "Buchung nicht gefunden. Bitte wenden Sie sich an das Hotel."
MSG_CANCELLED = "Diese Buchung wurde storniert. Bitte kontaktieren Sie das Hotel für weitere Informationen."
MSG_UNKNOWN_STEP = "Unbekannter Formularschritt."
MSG_VALIDATION = "Bitte korrigieren Sie die markierten Felder."
MSG_CONSENT = "Bitte stimmen Sie den AGB und den Datenschutzbestimmungen zu."
MSG_ARTIFACT = "Einige Dateien konnten nicht hochgeladen werden. Bitte versuchen Sie es erneut."
MSG_UPLOAD_FAILED = "Datei konnte nicht hochgeladen werden. Bitte erneut versuchen."
MSG_UNEXPECTED = (
    "Unerwarteter Serverfehler in Schritt {number}. Bitte versuchen Sie es später erneut "
    "oder kontaktieren Sie den Support (Referenz: {token})."
)

DEFAULT_DOWNPAYMENT_RATIO = Decimal("0.30")
_CENTS = Decimal("0.01")


def compute_payment_amount(
    price: Decimal,
    selection: PaymentAmountSelection | str | None,
    downpayment_ratio: Decimal | float | str = DEFAULT_DOWNPAYMENT_RATIO,
) -> Decimal | None:
    """Amount the guest owes for the chosen payment option, rounded to cents."""
    if selection is None:
        return None
    selection = PaymentAmountSelection(selection)
    price = Decimal(price)
    if selection == PaymentAmountSelection.FULL_AMOUNT:
        return price.quantize(_CENTS, rounding=ROUND_HALF_UP)
    ratio = Decimal(str(downpayment_ratio))
    return (price * ratio).quantize(_CENTS, rounding=ROUND_HALF_UP)


@dataclass
class SubmissionContext:
    """Per-submission state; enriched stage by stage, never shared between requests."""

    booking_token: str
    step_number: int
    raw: dict[str, Any]
    action_token: str

    step: StepDescriptor | None = None
    booking: Booking | None = None
    validation: StepValidation | None = None

    form_values: dict[str, Any] = field(default_factory=dict)
    server_derived: dict[str, Any] = field(default_factory=dict)
    artifact_updates: dict[str, str | None] = field(default_factory=dict)
    companion_uploads: dict[tuple[str, CompanionSlot], str] = field(default_factory=dict)
    reconciliation: CompanionReconciliation | None = None

    # Locators written by this submission; removed again if nothing gets persisted.
    uploaded: list[str] = field(default_factory=list)
    # Locators to delete once the new record is persisted.
    obsolete: list[str] = field(default_factory=list)
    field_errors: dict[str, list[str]] = field(default_factory=dict)

    merge: MergeResult | None = None
    saved: Booking | None = None
    outcome: StepOutcome | None = None

    @property
    def previous(self) -> GuestSubmittedData:
        if self.booking is None:
            return GuestSubmittedData()
        return self.booking.guest_submitted_data

    def add_error(self, key: str, message: str) -> None:
        self.field_errors.setdefault(key, []).append(message)


class StepSubmissionCoordinator:
    """
    Handles guest step submissions against an injected record store and artifact store.

    Args:
        store: Booking record store (plain key-value layer).
        artifacts: Artifact store for identity scans and payment proofs.
        notifier: Optional staff notifier, called once per confirmation.
        max_upload_bytes: Per-file upload limit.
        downpayment_ratio: Share of the price due for a downpayment.
        clock: Returns "now"; overridable in tests.
    """

    def __init__(
        self,
        store: BookingStore,
        artifacts: ArtifactStore,
        notifier: BookingNotifier | None = None,
        max_upload_bytes: int = MAX_UPLOAD_BYTES,
        downpayment_ratio: Decimal | float | str = DEFAULT_DOWNPAYMENT_RATIO,
        clock: Callable[[], datetime] | None = None,
    ):
        self.store = store
        self.artifacts = artifacts
        self.notifier = notifier or LoggingNotifier()
        self.max_upload_bytes = max_upload_bytes
        self.downpayment_ratio = Decimal(str(downpayment_ratio))
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    async def submit(
        self,
        booking_token: str,
        step_number: int,
        raw_fields: dict[str, Any],
        previous_outcome: StepOutcome | None = None,
    ) -> StepOutcome:
        """
        Process one step submission.

        Args:
            booking_token: Token from the guest link.
            step_number: 1-based step number.
            raw_fields: Form fields; file fields hold UploadedFile objects.
            previous_outcome: Outcome the client last received, only used for log correlation.

        Returns:
            StepOutcome; success is True only if no field errors accumulated.
        """
        ctx = SubmissionContext(
            booking_token=booking_token,
            step_number=step_number,
            raw=dict(raw_fields or {}),
            action_token=uuid4().hex,
        )
        logger.info(
            "Step submission start: token=%s step=%s action=%s previous_action=%s files=%s",
            booking_token,
            step_number,
            ctx.action_token,
            previous_outcome.action_token if previous_outcome else None,
            [v.describe() for v in ctx.raw.values() if isinstance(v, UploadedFile)],
        )

        stages = [
            ("load", self._load),
            ("validate", self._validate),
            ("upload", self._upload),
            ("companions", self._reconcile_companions),
            ("consent", self._check_consent),
            ("merge", self._merge),
            ("persist", self._persist),
            ("cleanup", self._cleanup),
            ("notify", self._notify),
        ]

        for stage_name, stage_fn in stages:
            try:
                await stage_fn(ctx)
            except Exception:
                logger.exception(
                    "Step submission failed at %s: token=%s step=%s action=%s",
                    stage_name,
                    booking_token,
                    step_number,
                    ctx.action_token,
                )
                await self._discard_uploads(ctx)
                return self._outcome(
                    ctx,
                    success=False,
                    message=MSG_UNEXPECTED.format(number=step_number, token=ctx.action_token),
                    kind=OutcomeKind.UNEXPECTED,
                )
            if ctx.outcome is not None:
                await self._discard_uploads(ctx)
                break

        outcome = ctx.outcome or self._final_outcome(ctx)
        logger.info(
            "Step submission end: token=%s step=%s action=%s success=%s kind=%s",
            booking_token,
            step_number,
            ctx.action_token,
            outcome.success,
            outcome.error_kind.value if outcome.error_kind else None,
        )
        return outcome

    # --- Stages ---

    async def _load(self, ctx: SubmissionContext) -> None:
        ctx.booking = await self.store.get_by_token(ctx.booking_token)
        if ctx.booking is None:
            logger.warning("Booking not found for token=%s", ctx.booking_token)
            ctx.outcome = self._outcome(ctx, success=False, message=MSG_NOT_FOUND, kind=OutcomeKind.NOT_FOUND)
            return

        if ctx.booking.status == BookingStatus.CANCELLED:
            logger.warning("Submission for cancelled booking refused: token=%s", ctx.booking_token)
            ctx.outcome = self._outcome(ctx, success=False, message=MSG_CANCELLED, kind=OutcomeKind.NOT_FOUND)
            return

        try:
            ctx.step = get_step(ctx.step_number)
        except UnknownStepError:
            logger.warning("Unknown step %s for token=%s", ctx.step_number, ctx.booking_token)
            ctx.outcome = self._outcome(
                ctx, success=False, message=MSG_UNKNOWN_STEP, kind=OutcomeKind.VALIDATION_FAILED
            )

    async def _validate(self, ctx: SubmissionContext) -> None:
        ctx.validation = validate_step(ctx.step, ctx.raw, ctx.previous, self.max_upload_bytes)
        if not ctx.validation.ok:
            logger.warning(
                "Validation failed: token=%s step=%s fields=%s",
                ctx.booking_token,
                ctx.step_number,
                sorted(ctx.validation.errors),
            )
            ctx.field_errors = dict(ctx.validation.errors)
            ctx.outcome = self._outcome(
                ctx,
                success=False,
                message=MSG_VALIDATION,
                kind=OutcomeKind.VALIDATION_FAILED,
                guest_record=ctx.previous,
            )
            return
        ctx.form_values = dict(ctx.validation.data)

    async def _upload(self, ctx: SubmissionContext) -> None:
        files = ctx.validation.files

        for slot in ctx.step.file_slots:
            upload = files.get(slot.form_key)
            if upload is None:
                continue
            locator = await self._put(ctx, upload, slot.slot_key, slot.form_key)
            if locator is None:
                continue
            ctx.artifact_updates[slot.record_field] = locator
            old = getattr(ctx.previous, slot.record_field)
            if old and old != locator:
                ctx.obsolete.append(old)

        if not ctx.step.has_companions:
            return
        for entry in ctx.form_values.get("companions") or []:
            for slot in CompanionSlot:
                key = companion_file_key(entry["id"], slot)
                upload = files.get(key)
                if upload is None:
                    continue
                locator = await self._put(ctx, upload, f"companion_{entry['id']}_{slot.slot_key}", key)
                if locator is not None:
                    ctx.companion_uploads[(entry["id"], slot)] = locator

    async def _reconcile_companions(self, ctx: SubmissionContext) -> None:
        if not ctx.step.has_companions:
            return
        rec = reconcile_companions(
            ctx.previous.companions,
            ctx.form_values.get("companions") or [],
            ctx.companion_uploads,
        )
        ctx.reconciliation = rec
        ctx.form_values["companions"] = [c.model_dump() for c in rec.companions]
        ctx.obsolete.extend(rec.superseded_locators)
        ctx.obsolete.extend(rec.removed_locators)
        if rec.removed_ids:
            logger.info("Companions removed: token=%s ids=%s", ctx.booking_token, rec.removed_ids)

    async def _check_consent(self, ctx: SubmissionContext) -> None:
        if not ctx.step.consent_fields:
            return
        missing = missing_consents(ctx.step, ctx.form_values)
        if missing:
            logger.warning("Consent missing: token=%s fields=%s", ctx.booking_token, sorted(missing))
            ctx.field_errors = missing
            ctx.outcome = self._outcome(
                ctx,
                success=False,
                message=MSG_CONSENT,
                kind=OutcomeKind.CONSENT_MISSING,
                guest_record=ctx.previous,
            )

    async def _merge(self, ctx: SubmissionContext) -> None:
        selection = ctx.form_values.get("payment_amount_selection")
        if selection is not None:
            ctx.server_derived["payment_amount"] = compute_payment_amount(
                ctx.booking.price, selection, self.downpayment_ratio
            )

        ctx.merge = merge_guest_record(
            ctx.previous,
            ctx.server_derived,
            ctx.form_values,
            ctx.artifact_updates,
            ctx.step.index,
            is_final=ctx.step.is_final,
            advance=not ctx.field_errors,
            now=self.clock(),
        )

        violations = validate_guest_record(
            ctx.merge.record,
            BookingStatus.CONFIRMED if ctx.merge.confirm else ctx.booking.status,
        )
        if violations:
            logger.warning("Guest record contract violations: token=%s %s", ctx.booking_token, violations)

    async def _persist(self, ctx: SubmissionContext) -> None:
        record = ctx.merge.record
        patch = BookingPatch(guest_submitted_data=record)
        if ctx.merge.confirm:
            patch.status = BookingStatus.CONFIRMED
        if ctx.step.number == 1 and record.first_name and record.last_name:
            patch.guest_first_name = record.first_name
            patch.guest_last_name = record.last_name

        ctx.saved = await self.store.update(ctx.booking.id, patch)
        logger.info(
            "Booking updated: token=%s step=%s last_completed_step=%s status=%s",
            ctx.booking_token,
            ctx.step_number,
            record.last_completed_step,
            ctx.saved.status.value,
        )

    async def _cleanup(self, ctx: SubmissionContext) -> None:
        failures = await delete_quietly(self.artifacts, ctx.obsolete)
        if failures:
            logger.warning(
                "Obsolete artifacts left behind: token=%s count=%s", ctx.booking_token, failures
            )

    async def _notify(self, ctx: SubmissionContext) -> None:
        if not (ctx.merge.first_submission and ctx.saved is not None):
            return
        try:
            result = await self.notifier.booking_confirmed(ctx.saved)
        except Exception as e:
            logger.error("Confirmation notification failed: token=%s error=%s", ctx.booking_token, e)
            return
        if not result.get("success"):
            logger.warning(
                "Confirmation notification not delivered: token=%s error=%s",
                ctx.booking_token,
                result.get("error"),
            )

    # --- Helpers ---

    async def _put(self, ctx: SubmissionContext, upload: UploadedFile, slot_key: str, form_key: str) -> str | None:
        path = derive_artifact_path(ctx.booking_token, slot_key, upload.filename, now=self.clock())
        try:
            locator = await self.artifacts.put(upload.data, upload.content_type, path)
        except ArtifactWriteError as e:
            logger.warning(
                "Upload failed, previous artifact kept: token=%s field=%s file=%s error=%s",
                ctx.booking_token,
                form_key,
                upload.describe(),
                e,
            )
            ctx.add_error(form_key, MSG_UPLOAD_FAILED)
            return None
        ctx.uploaded.append(locator)
        return locator

    async def _discard_uploads(self, ctx: SubmissionContext) -> None:
        if ctx.saved is not None or not ctx.uploaded:
            return
        logger.info("Discarding unpersisted uploads: token=%s count=%s", ctx.booking_token, len(ctx.uploaded))
        await delete_quietly(self.artifacts, ctx.uploaded)
        ctx.uploaded = []

    def _final_outcome(self, ctx: SubmissionContext) -> StepOutcome:
        record = ctx.saved.guest_submitted_data if ctx.saved else ctx.merge.record
        if ctx.field_errors:
            return self._outcome(
                ctx,
                success=False,
                message=MSG_ARTIFACT,
                kind=OutcomeKind.ARTIFACT_FAILED,
                guest_record=record,
            )
        message = MSG_CONFIRMED if ctx.merge.confirm else MSG_STEP_OK.format(number=ctx.step_number)
        return self._outcome(ctx, success=True, message=message, guest_record=record)

    def _outcome(
        self,
        ctx: SubmissionContext,
        success: bool,
        message: str,
        kind: OutcomeKind | None = None,
        guest_record: GuestSubmittedData | None = None,
    ) -> StepOutcome:
        if guest_record is None and kind == OutcomeKind.UNEXPECTED and ctx.booking is not None:
            # The client keeps showing the last persisted state.
            guest_record = ctx.saved.guest_submitted_data if ctx.saved else ctx.previous
        status = ctx.saved.status if ctx.saved else (ctx.booking.status if ctx.booking else None)
        return StepOutcome(
            success=success,
            message=message,
            field_errors={k: list(v) for k, v in ctx.field_errors.items()},
            guest_record=guest_record.model_copy(deep=True) if guest_record is not None else None,
            step_index=ctx.step_number - 1,
            action_token=ctx.action_token,
            error_kind=kind,
            booking_status=status,
        )
