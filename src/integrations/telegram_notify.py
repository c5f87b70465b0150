from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx

from src.config import Settings
from src.core.schemas import Booking
from src.integrations.base import BookingNotifier

logger = logging.getLogger(__name__)


@dataclass
class TelegramNotifier(BookingNotifier):
    """Lightweight Telegram sender for confirmed-booking alerts."""

    bot_token: str
    chat_id: str
    thread_id: int | None = None
    notifier_type = "telegram"

    @classmethod
    def from_settings(cls, settings: Settings) -> "TelegramNotifier | None":
        token = (settings.telegram_bot_token or "").strip()
        chat_id = (settings.telegram_chat_id or "").strip()
        if not token or not chat_id:
            return None
        return cls(bot_token=token, chat_id=chat_id)

    @staticmethod
    def format_message(booking: Booking) -> str:
        record = booking.guest_submitted_data
        lines = [
            "✅ Buchung bestätigt",
            f"Gast: {booking.guest_first_name} {booking.guest_last_name}".strip(),
        ]
        if booking.check_in_date and booking.check_out_date:
            lines.append(
                f"Zeitraum: {booking.check_in_date:%d.%m.%Y} – {booking.check_out_date:%d.%m.%Y}"
            )
        if booking.room_identifier:
            lines.append(f"Zimmer: {booking.room_identifier}")
        if record.companions:
            lines.append(f"Mitreisende: {len(record.companions)}")
        if record.payment_amount is not None:
            lines.append(f"Zahlung: {record.payment_amount} € ({record.payment_method or '-'})")
        if record.email:
            lines.append(f"E-Mail: {record.email}")
        return "\n".join(lines)

    async def booking_confirmed(self, booking: Booking) -> dict:
        url = f"https://api.telegram.org/bot{self.bot_token}/sendMessage"

        payload: dict = {
            "chat_id": self.chat_id,
            "text": self.format_message(booking),
            "disable_web_page_preview": True,
        }
        if self.thread_id is not None:
            payload["message_thread_id"] = self.thread_id

        try:
            async with httpx.AsyncClient(timeout=15.0) as client:
                resp = await client.post(url, json=payload)
                data = resp.json()

            if resp.status_code == 200 and data.get("ok"):
                result = data.get("result") or {}
                return {"success": True, "message_id": result.get("message_id")}

            error = data.get("description") or f"telegram_http_{resp.status_code}"
            logger.warning("Telegram notification failed: booking=%s error=%s", booking.id, error)
            return {"success": False, "error": error}
        except Exception as e:
            logger.warning("Telegram notification failed: booking=%s error=%s", booking.id, e)
            return {"success": False, "error": str(e)}
