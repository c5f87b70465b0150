"""create bookings

Revision ID: 3b1e5c7d9a20
Revises:
Create Date: 2026-10-16 00:00:00.000000

"""

from __future__ import annotations

from typing import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql


revision: str = "3b1e5c7d9a20"
down_revision: str | None = None
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "bookings",
        sa.Column("booking_token", sa.String(length=64), nullable=False),
        sa.Column("guest_first_name", sa.String(length=255), nullable=False),
        sa.Column("guest_last_name", sa.String(length=255), nullable=False),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.Column("check_in_date", sa.Date(), nullable=True),
        sa.Column("check_out_date", sa.Date(), nullable=True),
        sa.Column("board", sa.String(length=64), server_default=sa.text("''"), nullable=False),
        sa.Column("room_identifier", sa.String(length=255), server_default=sa.text("''"), nullable=False),
        sa.Column(
            "rooms",
            postgresql.JSONB(astext_type=sa.Text()),
            server_default=sa.text("'[]'::jsonb"),
            nullable=False,
        ),
        sa.Column("internal_notes", sa.Text(), nullable=True),
        sa.Column(
            "status",
            sa.String(length=32),
            server_default=sa.text("'pending_guest_information'"),
            nullable=False,
        ),
        sa.Column(
            "guest_submitted_data",
            postgresql.JSONB(astext_type=sa.Text()),
            server_default=sa.text("'{\"last_completed_step\": -1}'::jsonb"),
            nullable=False,
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=True),
            primary_key=True,
            nullable=False,
        ),
    )
    op.create_index(op.f("ix_bookings_booking_token"), "bookings", ["booking_token"], unique=True)
    op.create_index("ix_bookings_status", "bookings", ["status"])
    op.create_index("ix_bookings_created_at", "bookings", ["created_at"])


def downgrade() -> None:
    op.drop_index("ix_bookings_created_at", table_name="bookings")
    op.drop_index("ix_bookings_status", table_name="bookings")
    op.drop_index(op.f("ix_bookings_booking_token"), table_name="bookings")
    op.drop_table("bookings")
