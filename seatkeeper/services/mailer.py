from __future__ import annotations

import asyncio
import logging
from typing import Optional

import resend
from resend.exceptions import ResendError

from ..config import Settings

logger = logging.getLogger(__name__)


class ResendMailer:
    """Thin wrapper around the Resend client with an async-friendly send."""

    def __init__(self, settings: Settings) -> None:
        self._api_key: Optional[str] = settings.RESEND_API_KEY
        self._from = settings.MAIL_FROM
        if self._api_key:
            resend.api_key = self._api_key
        else:
            logger.info("Mail disabled; RESEND_API_KEY not set, messages will be logged only")

    @property
    def enabled(self) -> bool:
        return bool(self._api_key)

    def _send_blocking(self, params: dict) -> dict:
        return resend.Emails.send(params)

    async def send(self, *, to: str, subject: str, body: str) -> bool:
        """Send one plain-text message. Returns False when delivery failed."""
        if not self.enabled:
            logger.info("mail_skipped", extra={"to": to, "subject": subject})
            return True

        params = {
            "from": self._from,
            "to": [to],
            "subject": subject,
            "text": body,
        }

        loop = asyncio.get_running_loop()
        try:
            response = await loop.run_in_executor(None, self._send_blocking, params)
        except (ResendError, OSError) as exc:
            logger.warning("mail send failed: %s", exc)
            return False
        logger.info("mail_sent", extra={"to": to, "resend_id": (response or {}).get("id")})
        return True


def render_signup_email(fields: dict) -> tuple[str, str]:
    """Subject and body for a signup notification stream entry."""
    topic = fields.get("topic", "")
    name = fields.get("full_name", "")
    if fields.get("status") == "confirmed":
        subject = f"You're registered: {topic}"
        lead = "your seat is confirmed"
    else:
        subject = f"Waitlisted: {topic}"
        lead = "the session is full, so you have been added to the waitlist"
    body = (
        f"Hi {name},\n\n"
        f"Thanks for signing up, {lead}.\n\n"
        f"Session: {topic}\n"
        f"Instructor: {fields.get('instructor', '')}\n"
        f"When: {fields.get('start_at', '')}\n"
        f"Where: {fields.get('location', '')}\n"
    )
    return subject, body
