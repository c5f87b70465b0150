"""
Step registry: declarative description of every page of the guest intake form.

Each step names its form schema (a pydantic model whose aliases are the wire
field names), the file slots it owns and, for the final step, the consent
checkboxes that must be ticked. `validate_step()` turns raw form fields into
validated record values or per-field German error messages.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, ValidationError, field_validator
from pydantic_core import PydanticCustomError

from src.core.schemas import (
    PAYMENT_METHOD_BANK_TRANSFER,
    DocumentType,
    GuestSubmittedData,
    PaymentAmountSelection,
    Salutation,
)

MAX_UPLOAD_BYTES = 10 * 1024 * 1024
ACCEPTED_CONTENT_TYPES = {
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/webp",
    "application/pdf",
}

REQUIRED_MESSAGES = {
    "anrede": "Anrede ist erforderlich.",
    "gastVorname": "Vorname ist erforderlich.",
    "gastNachname": "Nachname ist erforderlich.",
    "email": "E-Mail ist erforderlich.",
    "telefon": "Telefonnummer ist erforderlich.",
    "hauptgastDokumenttyp": "Dokumenttyp ist erforderlich.",
    "vorname": "Vorname ist erforderlich.",
    "nachname": "Nachname ist erforderlich.",
    "id": "Mitreisenden-ID fehlt.",
    "paymentAmountSelection": "Bitte wählen Sie die Zahlungssumme.",
    "zahlungsart": "Zahlungsart ist erforderlich (aktuell nur Überweisung).",
    "zahlungsdatum": "Zahlungsdatum ist erforderlich.",
    "zahlungsbeleg": "Zahlungsbeleg ist erforderlich.",
}

INVALID_MESSAGES = {
    "anrede": "Ungültige Anrede.",
    "email": "Ungültige E-Mail-Adresse.",
    "geburtsdatum": "Ungültiges Geburtsdatum.",
    "hauptgastDokumenttyp": "Ungültiger Dokumenttyp.",
    "id": "Ungültige Mitreisenden-ID.",
    "paymentAmountSelection": "Ungültige Auswahl der Zahlungssumme.",
    "zahlungsart": "Zahlungsart ist erforderlich (aktuell nur Überweisung).",
    "zahlungsdatum": "Ungültiges Zahlungsdatum.",
}

DEFAULT_REQUIRED_MESSAGE = "Dieses Feld ist erforderlich."
DEFAULT_INVALID_MESSAGE = "Ungültige Eingabe."

_REQUIRED_ERROR_TYPES = {"missing", "string_too_short"}


class UnknownStepError(ValueError):
    pass


@dataclass(frozen=True)
class UploadedFile:
    """A fully read upload. Contents are never logged, only `describe()`."""

    filename: str
    content_type: str
    data: bytes
    # Size reported by the transport for uploads that were rejected unread.
    declared_size: int | None = None

    @property
    def size(self) -> int:
        if self.declared_size is not None:
            return self.declared_size
        return len(self.data)

    @property
    def is_empty(self) -> bool:
        return not self.filename or self.size == 0

    def describe(self) -> dict:
        return {"name": self.filename, "size": self.size, "type": self.content_type}


# --- Form schemas ---


class _StepForm(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True, extra="ignore")


class GuestDetailsForm(_StepForm):
    salutation: Salutation = Field(alias="anrede")
    first_name: str = Field(alias="gastVorname", min_length=1)
    last_name: str = Field(alias="gastNachname", min_length=1)
    date_of_birth: Optional[date] = Field(default=None, alias="geburtsdatum")
    email: EmailStr
    phone: str = Field(alias="telefon", min_length=1)

    @field_validator("date_of_birth")
    @classmethod
    def _not_in_future(cls, value: Optional[date]) -> Optional[date]:
        if value is not None and value > date.today():
            raise PydanticCustomError(
                "intake_date_in_future",
                "Das Geburtsdatum darf nicht in der Zukunft liegen.",
            )
        return value


class IdentityDocumentsForm(_StepForm):
    document_type: DocumentType = Field(alias="hauptgastDokumenttyp")


class CompanionEntry(_StepForm):
    id: str = Field(pattern=r"^[A-Za-z0-9_-]{1,64}$")
    first_name: str = Field(alias="vorname", min_length=1)
    last_name: str = Field(alias="nachname", min_length=1)


class CompanionsForm(_StepForm):
    companions: list[CompanionEntry] = Field(default_factory=list, alias="mitreisendeMeta")

    @field_validator("companions", mode="before")
    @classmethod
    def _parse_roster(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            if not value.strip():
                return []
            try:
                value = json.loads(value)
            except json.JSONDecodeError:
                raise PydanticCustomError("intake_roster_invalid", "Ungültige Mitreisenden-Daten.")
        if not isinstance(value, list):
            raise PydanticCustomError("intake_roster_invalid", "Ungültige Mitreisenden-Daten.")
        return value

    @field_validator("companions")
    @classmethod
    def _unique_ids(cls, value: list[CompanionEntry]) -> list[CompanionEntry]:
        ids = [c.id for c in value]
        if len(ids) != len(set(ids)):
            raise PydanticCustomError("intake_roster_duplicate", "Jeder Mitreisende darf nur einmal vorkommen.")
        return value


class PaymentForm(_StepForm):
    payment_amount_selection: PaymentAmountSelection = Field(alias="paymentAmountSelection")
    payment_method: Literal[PAYMENT_METHOD_BANK_TRANSFER] = Field(alias="zahlungsart")
    payment_date: date = Field(alias="zahlungsdatum")


def _checkbox(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value or "").strip().lower() in {"on", "true"}


class ConfirmationForm(_StepForm):
    terms_accepted: bool = Field(default=False, alias="agbAkzeptiert")
    privacy_accepted: bool = Field(default=False, alias="datenschutzAkzeptiert")

    @field_validator("terms_accepted", "privacy_accepted", mode="before")
    @classmethod
    def _affirmative(cls, value: Any) -> bool:
        return _checkbox(value)


# --- Descriptor table ---


@dataclass(frozen=True)
class FileSlot:
    form_key: str
    record_field: str
    slot_key: str
    required: bool = False


@dataclass(frozen=True)
class ConsentField:
    form_key: str
    record_field: str
    message: str


class CompanionSlot(str, Enum):
    FRONT = "ausweisVorderseite"
    BACK = "ausweisRueckseite"

    @property
    def record_field(self) -> str:
        return "id_front_url" if self is CompanionSlot.FRONT else "id_back_url"

    @property
    def slot_key(self) -> str:
        return "id_front" if self is CompanionSlot.FRONT else "id_back"


def companion_file_key(companion_id: str, slot: CompanionSlot) -> str:
    return f"mitreisende_{companion_id}_{slot.value}"


@dataclass(frozen=True)
class StepDescriptor:
    number: int
    key: str
    title: str
    form: type[BaseModel]
    file_slots: tuple[FileSlot, ...] = ()
    consent_fields: tuple[ConsentField, ...] = ()
    has_companions: bool = False

    @property
    def index(self) -> int:
        return self.number - 1

    @property
    def is_final(self) -> bool:
        return self.number == TOTAL_STEPS


STEPS: tuple[StepDescriptor, ...] = (
    StepDescriptor(1, "guest_details", "Stammdaten Hauptgast", GuestDetailsForm),
    StepDescriptor(
        2,
        "identity_documents",
        "Ausweisdokumente",
        IdentityDocumentsForm,
        file_slots=(
            FileSlot("hauptgastAusweisVorderseite", "id_front_url", "id_front"),
            FileSlot("hauptgastAusweisRueckseite", "id_back_url", "id_back"),
        ),
    ),
    StepDescriptor(3, "companions", "Mitreisende", CompanionsForm, has_companions=True),
    StepDescriptor(
        4,
        "payment",
        "Zahlungsinformationen",
        PaymentForm,
        file_slots=(FileSlot("zahlungsbeleg", "payment_proof_url", "payment_proof", required=True),),
    ),
    StepDescriptor(
        5,
        "confirmation",
        "Übersicht & Bestätigung",
        ConfirmationForm,
        consent_fields=(
            ConsentField("agbAkzeptiert", "terms_accepted", "Sie müssen den AGB zustimmen."),
            ConsentField(
                "datenschutzAkzeptiert",
                "privacy_accepted",
                "Sie müssen den Datenschutzbestimmungen zustimmen.",
            ),
        ),
    ),
)

TOTAL_STEPS = len(STEPS)


def get_step(number: int) -> StepDescriptor:
    if number < 1 or number > TOTAL_STEPS:
        raise UnknownStepError(f"Unknown step: {number}. Valid steps: 1..{TOTAL_STEPS}")
    return STEPS[number - 1]


# --- Validation ---


@dataclass
class StepValidation:
    data: dict = field(default_factory=dict)
    files: dict[str, UploadedFile] = field(default_factory=dict)
    errors: dict[str, list[str]] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.errors

    def add_error(self, key: str, message: str) -> None:
        self.errors.setdefault(key, []).append(message)


def validate_upload(upload: UploadedFile, max_bytes: int = MAX_UPLOAD_BYTES) -> list[str]:
    errors: list[str] = []
    if upload.size > max_bytes:
        errors.append(f"Maximale Dateigröße ist {max_bytes // (1024 * 1024)}MB.")
    if upload.content_type not in ACCEPTED_CONTENT_TYPES:
        errors.append(
            f"Nur JPEG, PNG, WEBP, PDF Dateien sind erlaubt. Erhalten: {upload.content_type or 'unbekannt'}"
        )
    return errors


def validate_step(
    step: StepDescriptor,
    raw: dict[str, Any],
    previous: GuestSubmittedData | None = None,
    max_upload_bytes: int = MAX_UPLOAD_BYTES,
) -> StepValidation:
    """
    Validate one step's raw form fields.

    Args:
        step: Step descriptor from the registry.
        raw: Form fields as submitted; file fields hold `UploadedFile` objects.
        previous: Persisted guest record, used to decide whether an empty
            required file slot may keep its existing artifact.
        max_upload_bytes: Per-file size limit.

    Returns:
        StepValidation with record-level values in `data` (python field names),
        accepted non-empty uploads in `files` and per-field errors.
    """
    result = StepValidation()
    # Blank inputs count as absent so required fields report "missing".
    form_fields = {
        k: v
        for k, v in raw.items()
        if not isinstance(v, UploadedFile) and not (isinstance(v, str) and not v.strip())
    }

    try:
        form = step.form.model_validate(form_fields)
        result.data = form.model_dump()
    except ValidationError as exc:
        form = None
        for err in exc.errors():
            key, message = _describe_error(err)
            result.add_error(key, message)

    for slot in step.file_slots:
        _check_file(result, raw.get(slot.form_key), slot.form_key, max_upload_bytes)
        if slot.required and slot.form_key not in result.files and slot.form_key not in result.errors:
            if previous is None or not getattr(previous, slot.record_field):
                result.add_error(slot.form_key, REQUIRED_MESSAGES.get(slot.form_key, DEFAULT_REQUIRED_MESSAGE))

    if step.has_companions and form is not None:
        for entry in form.companions:
            for slot in CompanionSlot:
                key = companion_file_key(entry.id, slot)
                _check_file(result, raw.get(key), key, max_upload_bytes)

    return result


def missing_consents(step: StepDescriptor, data: dict) -> dict[str, list[str]]:
    """Return field errors for every consent checkbox that is not literally ticked."""
    return {c.form_key: [c.message] for c in step.consent_fields if data.get(c.record_field) is not True}


def _check_file(result: StepValidation, value: Any, key: str, max_upload_bytes: int) -> None:
    if not isinstance(value, UploadedFile) or value.is_empty:
        return
    errors = validate_upload(value, max_upload_bytes)
    if errors:
        result.errors.setdefault(key, []).extend(errors)
    else:
        result.files[key] = value


def _describe_error(err: dict) -> tuple[str, str]:
    loc = [str(part) for part in err.get("loc", ())]
    key = ".".join(loc) if loc else "__all__"
    leaf = loc[-1] if loc else ""
    etype = str(err.get("type", ""))

    if etype.startswith("intake_"):
        return key, str(err.get("msg", DEFAULT_INVALID_MESSAGE))
    if etype in _REQUIRED_ERROR_TYPES:
        return key, REQUIRED_MESSAGES.get(leaf, DEFAULT_REQUIRED_MESSAGE)
    return key, INVALID_MESSAGES.get(leaf, DEFAULT_INVALID_MESSAGE)
