from __future__ import annotations

from datetime import date
from decimal import Decimal

from sqlalchemy import Date, Index, Numeric, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from src.models.base import Base, TimestampMixin, UUIDMixin


class Booking(UUIDMixin, TimestampMixin, Base):
    __tablename__ = "bookings"
    __table_args__ = (
        Index("ix_bookings_status", "status"),
        Index("ix_bookings_created_at", "created_at"),
    )

    booking_token: Mapped[str] = mapped_column(String(64), unique=True, index=True, nullable=False)
    guest_first_name: Mapped[str] = mapped_column(String(255), nullable=False)
    guest_last_name: Mapped[str] = mapped_column(String(255), nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    check_in_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    check_out_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    board: Mapped[str] = mapped_column(String(64), default="", nullable=False)
    room_identifier: Mapped[str] = mapped_column(String(255), default="", nullable=False)
    rooms: Mapped[list] = mapped_column(JSONB, default=list, nullable=False)
    internal_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(32), default="pending_guest_information", nullable=False)
    guest_submitted_data: Mapped[dict] = mapped_column(JSONB, default=dict, nullable=False)
