from __future__ import annotations

from contextlib import asynccontextmanager
from uuid import uuid4

import pytest
from click.testing import CliRunner

from src import cli as cli_module
from src.cli import cli
from src.core.schemas import BookingStatus


@pytest.fixture
def cli_store(monkeypatch, store, artifacts):
    @asynccontextmanager
    async def _open_store():
        yield store

    monkeypatch.setattr(cli_module, "_open_store", _open_store)
    monkeypatch.setattr(cli_module, "_open_artifacts", lambda: artifacts)
    return store


CREATE_ARGS = [
    "booking",
    "create",
    "--first-name",
    "Hans",
    "--last-name",
    "Beispiel",
    "--price",
    "250.00",
    "--check-in",
    "2026-08-10",
    "--check-out",
    "2026-08-12",
    "--board",
    "Frühstück",
    "--room-type",
    "Einzelzimmer",
]


def test_cli_create_prints_guest_link(cli_store):
    runner = CliRunner()
    result = runner.invoke(cli, CREATE_ARGS)

    assert result.exit_code == 0, result.output
    assert "✓ Created booking" in result.output
    assert "/buchung/" in result.output


def test_cli_create_rejects_bad_dates(cli_store):
    args = list(CREATE_ARGS)
    args[args.index("2026-08-12")] = "2026-08-01"
    result = CliRunner().invoke(cli, args)

    assert result.exit_code == 1
    assert "invalid booking data" in result.output


def test_cli_list_and_show(cli_store, booking):
    runner = CliRunner()
    listed = runner.invoke(cli, ["booking", "list"])
    assert listed.exit_code == 0
    assert "Erika Mustermann" in listed.output
    assert "1 of 1 booking(s)" in listed.output

    by_token = runner.invoke(cli, ["booking", "show", booking.booking_token])
    assert by_token.exit_code == 0
    assert str(booking.id) in by_token.output
    assert '"last_completed_step": -1' in by_token.output

    by_id = runner.invoke(cli, ["booking", "show", str(booking.id)])
    assert by_id.exit_code == 0


def test_cli_list_empty_with_filter(cli_store):
    result = CliRunner().invoke(cli, ["booking", "list", "--status", BookingStatus.CONFIRMED.value])

    assert result.exit_code == 0
    assert "No bookings found." in result.output


def test_cli_show_unknown(cli_store):
    result = CliRunner().invoke(cli, ["booking", "show", "gibt-es-nicht"])

    assert result.exit_code == 1
    assert "not found" in result.output


def test_cli_delete(cli_store, booking):
    runner = CliRunner()
    result = runner.invoke(cli, ["booking", "delete", str(booking.id), "--yes"])

    assert result.exit_code == 0
    assert "✓ Deleted 1 booking(s)" in result.output

    again = runner.invoke(cli, ["booking", "delete", str(uuid4()), "--yes"])
    assert again.exit_code == 1
    assert "not found" in again.output


def test_cli_delete_asks_for_confirmation(cli_store, booking):
    result = CliRunner().invoke(cli, ["booking", "delete", str(booking.id)], input="n\n")

    assert result.exit_code != 0
    assert "Delete 1 booking(s)?" in result.output


def test_cli_stats(cli_store):
    result = CliRunner().invoke(cli, ["booking", "stats"])

    assert result.exit_code == 0
    assert "pending_guest_information" in result.output
    assert "total" in result.output


def test_cli_help_shows_usage():
    runner = CliRunner()
    result = runner.invoke(cli, ["--help"])
    assert result.exit_code == 0
    assert "Usage" in result.output
