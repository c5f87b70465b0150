"""
Booking notifiers: tell staff that a guest finished the intake.

Notifications are best-effort. Implementations return a result dict with at
least {"success": bool} and never raise for delivery problems.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from src.core.schemas import Booking

logger = logging.getLogger(__name__)


class BookingNotifier(ABC):
    """Base class for confirmation notifiers."""

    notifier_type: str = ""

    @abstractmethod
    async def booking_confirmed(self, booking: Booking) -> dict:
        """
        Announce a confirmed booking.

        Args:
            booking: The booking as persisted after confirmation.

        Returns:
            Result dict with at least {"success": bool}
        """


class LoggingNotifier(BookingNotifier):
    """Default notifier: writes one log line per confirmation."""

    notifier_type = "log"

    async def booking_confirmed(self, booking: Booking) -> dict:
        logger.info(
            "Booking confirmed: id=%s guest=%s %s room=%s",
            booking.id,
            booking.guest_first_name,
            booking.guest_last_name,
            booking.room_identifier or "-",
        )
        return {"success": True}
