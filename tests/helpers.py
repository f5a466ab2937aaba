"""Constants and small builders shared by the test modules."""

from datetime import date, datetime, timedelta

from tablebook.core.context import RequestContext

# A Monday well in the future; tests pass ``now`` explicitly
DAY = date(2030, 1, 14)
NOW = datetime(2030, 1, 14, 8, 0)

WEBHOOK_SECRET = "fps-shared-secret"
DOOR_KEY = "door-key-123"
PAYEE_ID = "12345678"


def at(hour: int, minute: int = 0, day: date = DAY) -> datetime:
    return datetime(day.year, day.month, day.day, hour, minute)


def next_day(day: date = DAY) -> date:
    return day + timedelta(days=1)


def headers_for(ctx: RequestContext) -> dict:
    return {"X-User-Id": ctx.user_id, "X-User-Email": ctx.email, "X-User-Role": ctx.role.value}
