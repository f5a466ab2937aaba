"""
Venue-local time helpers.

Slots are a wall-clock grid in the venue timezone. Datetimes handled by the
scheduling code are naive and interpreted in ``settings.timezone``.
"""

from datetime import datetime
from typing import Optional

import pytz

from .config import settings


def get_venue_timezone() -> pytz.BaseTzInfo:
    return pytz.timezone(settings.timezone)


def local_now() -> datetime:
    """Current venue wall-clock time as a naive datetime."""
    return datetime.now(pytz.UTC).astimezone(get_venue_timezone()).replace(tzinfo=None)


def to_local_naive(value: datetime) -> datetime:
    """Convert an aware datetime to venue wall-clock; naive values pass through."""
    if value.tzinfo is None:
        return value
    return value.astimezone(get_venue_timezone()).replace(tzinfo=None)


def resolve_now(now: Optional[datetime]) -> datetime:
    return local_now() if now is None else to_local_naive(now)
