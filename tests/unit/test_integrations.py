"""Calendar mirror client and redemption mailer selection."""

from datetime import datetime
import json
from unittest.mock import patch

import httpx
from pydantic import SecretStr
import pytest

from tablebook.core.config import Settings
from tablebook.integrations.calendar_mirror import (
    CalendarMirrorError,
    NullCalendarMirror,
    WebhookCalendarMirror,
    build_calendar_mirror,
)
from tablebook.integrations.redemption_mailer import (
    BookingSummary,
    ConsoleRedemptionMailer,
    ResendRedemptionMailer,
    build_redemption_mailer,
)

START = datetime(2030, 1, 14, 10, 0)
END = datetime(2030, 1, 14, 11, 0)


def mirror_with(handler) -> WebhookCalendarMirror:
    return WebhookCalendarMirror(
        base_url="https://calendar.example.com/", transport=httpx.MockTransport(handler)
    )


def create(mirror: WebhookCalendarMirror) -> None:
    mirror.create_event(
        resource_id="room-1",
        start=START,
        end=END,
        title="Room 1: alice@example.com",
        body="Booking 01J, 2 slots",
        idempotency_key="01J",
    )


class TestWebhookCalendarMirror:
    def test_create_posts_event(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(201)

        create(mirror_with(handler))

        request = seen[0]
        assert request.method == "POST"
        assert str(request.url) == "https://calendar.example.com/events"
        body = json.loads(request.content)
        assert body["id"] == "01J"
        assert body["calendar"] == "room-1"
        assert body["start"] == "2030-01-14T10:00:00"

    def test_existing_event_is_success(self):
        create(mirror_with(lambda request: httpx.Response(409)))

    def test_server_error(self):
        with pytest.raises(CalendarMirrorError) as exc_info:
            create(mirror_with(lambda request: httpx.Response(500, text="boom")))
        assert exc_info.value.status_code == 500

    def test_unreachable(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(CalendarMirrorError):
            create(mirror_with(handler))

    @pytest.mark.parametrize("status_code", [200, 204, 404, 410])
    def test_delete_tolerates_missing_event(self, status_code):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(status_code)

        mirror_with(handler).delete_event("01J")
        assert seen[0].method == "DELETE"
        assert seen[0].url.path == "/events/01J"

    def test_delete_failure(self):
        with pytest.raises(CalendarMirrorError):
            mirror_with(lambda request: httpx.Response(503)).delete_event("01J")


def test_mirror_selection():
    assert isinstance(build_calendar_mirror(Settings(calendar_webhook_url="")), NullCalendarMirror)
    assert isinstance(
        build_calendar_mirror(Settings(calendar_webhook_url="https://calendar.example.com")),
        WebhookCalendarMirror,
    )


class TestRedemptionMailer:
    summary = BookingSummary(
        booking_id="01J", resource_name="Room 1", starts_at=START, ends_at=END, cost=100
    )

    def test_console_without_api_key(self):
        settings = Settings(email_provider="resend", resend_api_key=None)
        assert isinstance(build_redemption_mailer(settings), ConsoleRedemptionMailer)

    def test_resend_sends_secret(self):
        settings = Settings(email_provider="resend", resend_api_key=SecretStr("re_test"))
        mailer = build_redemption_mailer(settings)
        assert isinstance(mailer, ResendRedemptionMailer)

        with patch("tablebook.integrations.redemption_mailer.resend.Emails.send") as send:
            send.return_value = {"id": "email-1"}
            mailer.send_redemption_email("alice@example.com", self.summary, "qs123")

        payload = send.call_args.args[0]
        assert payload["to"] == "alice@example.com"
        assert "qs123" in payload["text"]
        assert "qs123" in payload["html"]
        assert "Room 1" in payload["text"]
