"""
Calendar mirror integration.

Confirmed bookings are mirrored to an external calendar that drives the
venue's door controller and staff view. The mirror is a best-effort
collaborator: callers invoke it only after their transaction committed and
log its failures.

Events are keyed by an idempotency key (the booking id). Creating an event
whose key already exists is a successful no-op; deleting an unknown key is
too.
"""

from __future__ import annotations

from datetime import datetime
import logging
from typing import Any, Protocol

import httpx

logger = logging.getLogger(__name__)

DOOR_CONTROL_RESOURCE = "door_control"


class CalendarMirrorError(RuntimeError):
    """Raised when the calendar endpoint rejects or cannot take a request."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class CalendarMirror(Protocol):
    def create_event(
        self,
        *,
        resource_id: str,
        start: datetime,
        end: datetime,
        title: str,
        body: str,
        idempotency_key: str,
    ) -> None: ...

    def delete_event(self, idempotency_key: str) -> None: ...


class NullCalendarMirror:
    """Used when no calendar endpoint is configured."""

    def create_event(
        self,
        *,
        resource_id: str,
        start: datetime,
        end: datetime,
        title: str,
        body: str,
        idempotency_key: str,
    ) -> None:
        logger.debug("Calendar mirror disabled; skipping create for %s", idempotency_key)

    def delete_event(self, idempotency_key: str) -> None:
        logger.debug("Calendar mirror disabled; skipping delete for %s", idempotency_key)


class WebhookCalendarMirror:
    """HTTP client for a calendar bridge exposing ``/events``."""

    def __init__(
        self,
        *,
        base_url: str,
        timeout: float = 5.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport

    def _request(self, method: str, path: str, *, json_body: dict[str, Any] | None = None) -> httpx.Response:
        url = f"{self._base_url}/{path.lstrip('/')}"
        try:
            with httpx.Client(timeout=self._timeout, transport=self._transport) as client:
                return client.request(method, url, json=json_body)
        except httpx.TransportError as exc:
            logger.error("Calendar bridge unreachable for %s %s: %s", method, path, exc)
            raise CalendarMirrorError(f"Calendar bridge unreachable: {exc}") from exc

    def create_event(
        self,
        *,
        resource_id: str,
        start: datetime,
        end: datetime,
        title: str,
        body: str,
        idempotency_key: str,
    ) -> None:
        response = self._request(
            "POST",
            "/events",
            json_body={
                "id": idempotency_key,
                "calendar": resource_id,
                "start": start.isoformat(),
                "end": end.isoformat(),
                "summary": title,
                "description": body,
            },
        )
        if response.status_code == 409:
            # Already mirrored by an earlier attempt
            logger.info("Calendar event %s already exists", idempotency_key)
            return
        if response.status_code >= 400:
            raise CalendarMirrorError(
                f"Calendar create failed: {response.text[:200]}", response.status_code
            )

    def delete_event(self, idempotency_key: str) -> None:
        response = self._request("DELETE", f"/events/{idempotency_key}")
        if response.status_code in (404, 410):
            logger.info("Calendar event %s already gone", idempotency_key)
            return
        if response.status_code >= 400:
            raise CalendarMirrorError(
                f"Calendar delete failed: {response.text[:200]}", response.status_code
            )


def build_calendar_mirror(settings: Any) -> CalendarMirror:
    if settings.calendar_webhook_url:
        return WebhookCalendarMirror(
            base_url=settings.calendar_webhook_url,
            timeout=settings.calendar_webhook_timeout,
        )
    return NullCalendarMirror()
