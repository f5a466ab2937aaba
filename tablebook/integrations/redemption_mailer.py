"""
Redemption email delivery.

After a booking commits, the customer receives the secret that their entry
QR code encodes. Delivery goes through Resend in production and the log in
development.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
import html
import logging
from typing import Any, Dict, Optional, Protocol

import resend

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BookingSummary:
    booking_id: str
    resource_name: str
    starts_at: datetime
    ends_at: datetime
    cost: int

    def describe(self) -> str:
        return (
            f"{self.resource_name}, {self.starts_at:%Y-%m-%d %H:%M} - "
            f"{self.ends_at:%Y-%m-%d %H:%M} (ref {self.booking_id})"
        )


class RedemptionMailer(Protocol):
    def send_redemption_email(self, recipient: str, summary: BookingSummary, secret: str) -> None: ...


def _render(summary: BookingSummary, secret: str) -> tuple[str, str]:
    text = (
        "Your booking is confirmed.\n\n"
        f"{summary.describe()}\n\n"
        f"Entry code: {secret}\n"
        "Show the QR code for this entry code at the door. It works once, "
        "from 30 minutes before your start time."
    )
    html_body = (
        "<p>Your booking is confirmed.</p>"
        f"<p>{html.escape(summary.describe())}</p>"
        f"<p>Entry code: <strong>{html.escape(secret)}</strong></p>"
    )
    return text, html_body


class ConsoleRedemptionMailer:
    """Development mailer that only logs."""

    def send_redemption_email(self, recipient: str, summary: BookingSummary, secret: str) -> None:
        logger.info(
            "Redemption email (console) to %s for booking %s", recipient, summary.booking_id
        )


class ResendRedemptionMailer:
    def __init__(self, *, api_key: str, from_address: str) -> None:
        resend.api_key = api_key
        self.from_address = from_address

    def send_redemption_email(self, recipient: str, summary: BookingSummary, secret: str) -> None:
        text, html_body = _render(summary, secret)
        email_data: Dict[str, Any] = {
            "from": self.from_address,
            "to": recipient,
            "subject": f"Booking confirmed: {summary.starts_at:%d %b %H:%M}",
            "html": html_body,
            "text": text,
        }
        response = resend.Emails.send(email_data)
        logger.info(
            "Redemption email sent to %s for booking %s (%s)",
            recipient,
            summary.booking_id,
            (response or {}).get("id"),
        )


def build_redemption_mailer(settings: Any) -> RedemptionMailer:
    api_key: Optional[str] = (
        settings.resend_api_key.get_secret_value() if settings.resend_api_key else None
    )
    if settings.email_provider == "resend" and api_key:
        return ResendRedemptionMailer(api_key=api_key, from_address=settings.email_from_address)
    return ConsoleRedemptionMailer()
