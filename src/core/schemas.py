from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field


class BookingStatus(str, Enum):
    PENDING_GUEST_INFORMATION = "pending_guest_information"
    # Declared for a manual-review step; no transition produces it yet.
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


class Salutation(str, Enum):
    HERR = "Herr"
    FRAU = "Frau"
    DIVERS = "Divers"


class DocumentType(str, Enum):
    PASSPORT = "Reisepass"
    ID_CARD = "Personalausweis"
    DRIVING_LICENCE = "Führerschein"


class PaymentAmountSelection(str, Enum):
    DOWNPAYMENT = "downpayment"
    FULL_AMOUNT = "full_amount"


PAYMENT_METHOD_BANK_TRANSFER = "Überweisung"


class OutcomeKind(str, Enum):
    VALIDATION_FAILED = "validation_failed"
    CONSENT_MISSING = "consent_missing"
    ARTIFACT_FAILED = "artifact_failed"
    NOT_FOUND = "not_found"
    UNEXPECTED = "unexpected"


class Companion(BaseModel):
    id: str
    first_name: str = ""
    last_name: str = ""
    id_front_url: Optional[str] = None
    id_back_url: Optional[str] = None


class GuestSubmittedData(BaseModel):
    """Accumulating intake record; every step only ever touches its own fields."""

    last_completed_step: int = -1

    salutation: Optional[Salutation] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    date_of_birth: Optional[date] = None
    email: Optional[str] = None
    phone: Optional[str] = None

    document_type: Optional[DocumentType] = None
    id_front_url: Optional[str] = None
    id_back_url: Optional[str] = None

    companions: list[Companion] = Field(default_factory=list)

    payment_amount_selection: Optional[PaymentAmountSelection] = None
    payment_method: Optional[str] = None
    payment_date: Optional[date] = None
    payment_amount: Optional[Decimal] = None
    payment_proof_url: Optional[str] = None

    terms_accepted: Optional[bool] = None
    privacy_accepted: Optional[bool] = None
    submitted_at: Optional[datetime] = None

    def artifact_locators(self) -> list[str]:
        """All locators owned by this record, main guest first, then companions."""
        locators = [self.id_front_url, self.id_back_url, self.payment_proof_url]
        for companion in self.companions:
            locators.extend([companion.id_front_url, companion.id_back_url])
        return [loc for loc in locators if loc]


class RoomDetail(BaseModel):
    room_type: str
    adults: int = Field(default=1, ge=0)
    children: int = Field(default=0, ge=0)
    infants: int = Field(default=0, ge=0)
    children_ages: str = ""


class Booking(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID = Field(default_factory=uuid4)
    booking_token: str
    guest_first_name: str
    guest_last_name: str
    price: Decimal
    check_in_date: Optional[date] = None
    check_out_date: Optional[date] = None
    board: str = ""
    room_identifier: str = ""
    rooms: list[RoomDetail] = Field(default_factory=list)
    internal_notes: Optional[str] = None
    status: BookingStatus = BookingStatus.PENDING_GUEST_INFORMATION
    guest_submitted_data: GuestSubmittedData = Field(default_factory=GuestSubmittedData)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class BookingPatch(BaseModel):
    """One atomic update of a booking row produced by a step submission."""

    guest_submitted_data: GuestSubmittedData
    status: Optional[BookingStatus] = None
    guest_first_name: Optional[str] = None
    guest_last_name: Optional[str] = None


class StepOutcome(BaseModel):
    success: bool
    message: str
    field_errors: dict[str, list[str]] = Field(default_factory=dict)
    guest_record: Optional[GuestSubmittedData] = None
    step_index: int
    action_token: str
    error_kind: Optional[OutcomeKind] = None
    booking_status: Optional[BookingStatus] = None
