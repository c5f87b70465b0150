"""
Guest intake CLI: command-line interface for operators.

Usage:
    guestintake booking create --first-name ... --price ... - create a booking and print the guest link
    guestintake booking list [--status S] [--search Q]      - list bookings, newest first
    guestintake booking show <id-or-token>                  - show one booking with its guest record
    guestintake booking delete <id>... [--yes]              - delete bookings and their uploaded files
    guestintake booking stats                               - booking counts per status
    guestintake db init                                     - create tables without Alembic
"""

from __future__ import annotations

import asyncio
import json
import logging
from contextlib import asynccontextmanager
from decimal import Decimal
from uuid import UUID

import click
from pydantic import ValidationError

from src.config import get_settings
from src.core.artifacts import ArtifactStore, get_artifact_store
from src.core.bookings import BookingCreate, booking_stats, create_booking, delete_bookings, guest_link, list_bookings
from src.core.schemas import Booking, BookingStatus, RoomDetail

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _open_store():
    from src.core.crud import SqlBookingStore
    from src.db import async_session

    async with async_session() as db:
        yield SqlBookingStore(db)


def _open_artifacts() -> ArtifactStore:
    settings = get_settings()
    return get_artifact_store(
        settings.artifact_backend,
        {
            "root": settings.artifact_root,
            "base_url": settings.artifact_base_url,
            "api_token": settings.artifact_api_token,
        },
    )


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
def cli(verbose: bool):
    """Guest intake booking administration CLI."""
    level = logging.DEBUG if verbose else getattr(logging, get_settings().log_level.upper(), logging.INFO)
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")


@cli.group()
def booking():
    """Manage bookings."""


@booking.command("create")
@click.option("--first-name", required=True, help="Guest first name")
@click.option("--last-name", required=True, help="Guest last name")
@click.option("--price", required=True, type=str, help="Total price, e.g. 420.00")
@click.option("--check-in", "check_in", required=True, type=click.DateTime(formats=["%Y-%m-%d"]))
@click.option("--check-out", "check_out", required=True, type=click.DateTime(formats=["%Y-%m-%d"]))
@click.option("--board", required=True, help="Board, e.g. Frühstück")
@click.option("--room-type", required=True, help="Room type, e.g. Doppelzimmer")
@click.option("--adults", default=1, show_default=True, type=int)
@click.option("--children", default=0, show_default=True, type=int)
@click.option("--infants", default=0, show_default=True, type=int)
@click.option("--children-ages", default="", help="Free text, e.g. '4, 7'")
@click.option("--room-identifier", default=None, help="Room label shown to the guest")
@click.option("--notes", default=None, help="Internal notes")
def booking_create(
    first_name: str,
    last_name: str,
    price: str,
    check_in,
    check_out,
    board: str,
    room_type: str,
    adults: int,
    children: int,
    infants: int,
    children_ages: str,
    room_identifier: str | None,
    notes: str | None,
):
    """Create a booking and print the guest link."""
    try:
        request = BookingCreate(
            guest_first_name=first_name,
            guest_last_name=last_name,
            price=Decimal(price),
            check_in_date=check_in.date(),
            check_out_date=check_out.date(),
            board=board,
            rooms=[
                RoomDetail(
                    room_type=room_type,
                    adults=adults,
                    children=children,
                    infants=infants,
                    children_ages=children_ages,
                )
            ],
            room_identifier=room_identifier,
            internal_notes=notes,
        )
    except (ValidationError, ArithmeticError) as e:
        click.echo(f"Error: invalid booking data\n{e}", err=True)
        raise SystemExit(1)

    created = asyncio.run(_booking_create(request))
    click.echo(f"✓ Created booking {created.id}")
    click.echo(f"  Guest link: {guest_link(created, get_settings().public_base_url)}")


async def _booking_create(request: BookingCreate) -> Booking:
    async with _open_store() as store:
        return await create_booking(store, request)


@booking.command("list")
@click.option("--status", "status_value", type=click.Choice([s.value for s in BookingStatus]), default=None)
@click.option("--search", default=None, help="Substring of guest name, room or e-mail")
@click.option("--limit", default=20, show_default=True, type=int)
def booking_list(status_value: str | None, search: str | None, limit: int):
    """List bookings, newest first."""
    status = BookingStatus(status_value) if status_value else None
    items, total = asyncio.run(_booking_list(status, search, limit))

    if not items:
        click.echo("No bookings found.")
        return

    click.echo(f"{'ID':<38} {'Guest':<30} {'Check-in':<12} {'Status':<28} {'Step':<5}")
    click.echo("-" * 115)
    for b in items:
        guest = f"{b.guest_first_name} {b.guest_last_name}"
        check_in = b.check_in_date.isoformat() if b.check_in_date else "-"
        step = b.guest_submitted_data.last_completed_step + 1
        click.echo(f"{str(b.id):<38} {guest:<30} {check_in:<12} {b.status.value:<28} {step:<5}")
    click.echo(f"\n{len(items)} of {total} booking(s)")


async def _booking_list(status: BookingStatus | None, search: str | None, limit: int):
    async with _open_store() as store:
        return await list_bookings(store, status=status, search=search, limit=limit)


@booking.command("show")
@click.argument("booking_ref")
def booking_show(booking_ref: str):
    """Show one booking by id or guest-link token."""
    found = asyncio.run(_booking_show(booking_ref))
    if found is None:
        click.echo(f"Error: booking {booking_ref} not found", err=True)
        raise SystemExit(1)

    click.echo(f"Booking {found.id}")
    click.echo(f"  Guest:      {found.guest_first_name} {found.guest_last_name}")
    click.echo(f"  Status:     {found.status.value}")
    click.echo(f"  Stay:       {found.check_in_date} – {found.check_out_date}")
    click.echo(f"  Price:      {found.price}")
    click.echo(f"  Guest link: {guest_link(found, get_settings().public_base_url)}")
    click.echo("  Guest data:")
    click.echo(json.dumps(found.guest_submitted_data.model_dump(mode="json"), indent=2, ensure_ascii=False))


async def _booking_show(booking_ref: str) -> Booking | None:
    async with _open_store() as store:
        try:
            booking_id = UUID(booking_ref)
        except ValueError:
            return await store.get_by_token(booking_ref)
        return await store.get_by_id(booking_id)


@booking.command("delete")
@click.argument("booking_ids", nargs=-1, required=True)
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
def booking_delete(booking_ids: tuple[str, ...], yes: bool):
    """Delete bookings and, best-effort, their uploaded documents."""
    try:
        ids = [UUID(value) for value in booking_ids]
    except ValueError as e:
        click.echo(f"Error: invalid booking id ({e})", err=True)
        raise SystemExit(1)

    if not yes:
        click.confirm(f"Delete {len(ids)} booking(s)?", abort=True)

    report = asyncio.run(_booking_delete(ids))
    click.echo(f"✓ Deleted {len(report.deleted)} booking(s)")
    for missing in report.missing:
        click.echo(f"  not found: {missing}")
    if report.artifact_failures:
        click.echo(f"  {report.artifact_failures} file(s) could not be removed, see log")
    if report.missing and not report.deleted:
        raise SystemExit(1)


async def _booking_delete(ids: list[UUID]):
    async with _open_store() as store:
        return await delete_bookings(store, _open_artifacts(), ids)


@booking.command("stats")
def booking_stats_command():
    """Show booking counts per status."""
    stats = asyncio.run(_booking_stats())
    for status_value, count in stats["by_status"].items():
        click.echo(f"{status_value:<28} {count}")
    click.echo(f"{'total':<28} {stats['total']}")


async def _booking_stats() -> dict:
    async with _open_store() as store:
        return await booking_stats(store)


@cli.group()
def db():
    """Database helpers."""


@db.command("init")
def db_init():
    """Create missing tables from the ORM models."""
    from src.db import init_models

    asyncio.run(init_models())
    click.echo("✓ Tables created.")


if __name__ == "__main__":
    cli()
