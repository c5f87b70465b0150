from __future__ import annotations

from uuid import UUID

from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import flag_modified

from src.core.record_contract import normalize_guest_record
from src.core.schemas import Booking, BookingPatch, BookingStatus, GuestSubmittedData, RoomDetail
from src.core.store import BookingNotFoundError, BookingStore
from src.models import Booking as BookingRow


def row_to_booking(row: BookingRow) -> Booking:
    return Booking(
        id=row.id,
        booking_token=row.booking_token,
        guest_first_name=row.guest_first_name,
        guest_last_name=row.guest_last_name,
        price=row.price,
        check_in_date=row.check_in_date,
        check_out_date=row.check_out_date,
        board=row.board or "",
        room_identifier=row.room_identifier or "",
        rooms=[RoomDetail.model_validate(r) for r in (row.rooms or [])],
        internal_notes=row.internal_notes,
        status=BookingStatus(row.status),
        guest_submitted_data=GuestSubmittedData.model_validate(normalize_guest_record(row.guest_submitted_data)),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


class SqlBookingStore(BookingStore):
    """
    BookingStore on top of an AsyncSession.

    Every write is committed before it returns, so callers may rely on it
    being durable (the intake deletes superseded artifacts right after).
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _commit(self) -> None:
        try:
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

    async def _get_row(self, booking_id: UUID) -> BookingRow | None:
        result = await self.db.execute(select(BookingRow).where(BookingRow.id == booking_id))
        return result.scalar_one_or_none()

    async def get_by_token(self, booking_token: str) -> Booking | None:
        result = await self.db.execute(select(BookingRow).where(BookingRow.booking_token == booking_token))
        row = result.scalar_one_or_none()
        return row_to_booking(row) if row else None

    async def get_by_id(self, booking_id: UUID) -> Booking | None:
        row = await self._get_row(booking_id)
        return row_to_booking(row) if row else None

    async def add(self, booking: Booking) -> Booking:
        row = BookingRow(
            id=booking.id,
            booking_token=booking.booking_token,
            guest_first_name=booking.guest_first_name,
            guest_last_name=booking.guest_last_name,
            price=booking.price,
            check_in_date=booking.check_in_date,
            check_out_date=booking.check_out_date,
            board=booking.board,
            room_identifier=booking.room_identifier,
            rooms=[r.model_dump(mode="json") for r in booking.rooms],
            internal_notes=booking.internal_notes,
            status=booking.status.value,
            guest_submitted_data=booking.guest_submitted_data.model_dump(mode="json"),
        )
        self.db.add(row)
        await self._commit()
        await self.db.refresh(row)
        return row_to_booking(row)

    async def update(self, booking_id: UUID, patch: BookingPatch) -> Booking:
        """Apply the whole patch to one row so a single UPDATE statement is committed."""
        row = await self._get_row(booking_id)
        if row is None:
            raise BookingNotFoundError(str(booking_id))

        row.guest_submitted_data = patch.guest_submitted_data.model_dump(mode="json")
        flag_modified(row, "guest_submitted_data")
        if patch.status is not None:
            row.status = patch.status.value
        if patch.guest_first_name:
            row.guest_first_name = patch.guest_first_name
        if patch.guest_last_name:
            row.guest_last_name = patch.guest_last_name

        await self._commit()
        await self.db.refresh(row)
        return row_to_booking(row)

    async def delete(self, booking_id: UUID) -> bool:
        result = await self.db.execute(delete(BookingRow).where(BookingRow.id == booking_id))
        await self._commit()
        return bool(result.rowcount)

    async def list_bookings(
        self,
        status: BookingStatus | None = None,
        search: str | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[Booking], int]:
        conditions = []
        if status is not None:
            conditions.append(BookingRow.status == status.value)
        if search and search.strip():
            pattern = f"%{search.strip()}%"
            conditions.append(
                or_(
                    BookingRow.guest_first_name.ilike(pattern),
                    BookingRow.guest_last_name.ilike(pattern),
                    BookingRow.room_identifier.ilike(pattern),
                    BookingRow.guest_submitted_data["email"].astext.ilike(pattern),
                )
            )

        total_result = await self.db.execute(select(func.count(BookingRow.id)).where(*conditions))
        total = int(total_result.scalar_one() or 0)

        result = await self.db.execute(
            select(BookingRow)
            .where(*conditions)
            .order_by(BookingRow.created_at.desc())
            .limit(limit)
            .offset(offset)
        )
        return [row_to_booking(r) for r in result.scalars().all()], total

    async def count_by_status(self) -> dict[BookingStatus, int]:
        result = await self.db.execute(
            select(BookingRow.status, func.count(BookingRow.id)).group_by(BookingRow.status)
        )
        counts = {status: 0 for status in BookingStatus}
        for status_value, count in result.all():
            counts[BookingStatus(status_value)] = int(count or 0)
        return counts
