"""
Availability queries over the slot grid.

Read-only: callers poll ``get_day_availability`` to render the grid and
may pre-validate a selection with ``select_span`` before submitting it.
The booking transaction re-validates independently.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
import logging
from typing import Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.context import RequestContext
from ..core.timezone_utils import resolve_now, to_local_naive
from ..domain import slot_calendar
from ..domain.slot_calendar import BookingInterval, SlotSpan, SlotState
from ..models.booking import Booking
from ..repositories.factory import RepositoryFactory
from .base import BaseService

logger = logging.getLogger(__name__)


def to_interval(booking: Booking) -> BookingInterval:
    return BookingInterval(
        resource_id=booking.resource_id, start=booking.starts_at, end=booking.ends_at
    )


def to_intervals(bookings: Iterable[Booking]) -> List[BookingInterval]:
    return [to_interval(booking) for booking in bookings]


def min_span_for(ctx: RequestContext) -> int:
    return settings.privileged_min_span_slots if ctx.is_admin else settings.min_span_slots


@dataclass(frozen=True)
class DayAvailability:
    day: date
    capacity: int
    slots: List[SlotState]

    @property
    def available_starts(self) -> List[datetime]:
        return [slot.start for slot in self.slots if slot.available]


class AvailabilityService(BaseService):
    def __init__(self, db: Session, repositories: Optional[RepositoryFactory] = None):
        super().__init__(db, repositories)
        self.booking_repository = self.repositories.create_booking_repository(db)
        self.resource_repository = self.repositories.create_resource_repository(db)

    def capacity(self) -> int:
        return len(self.resource_repository.list_active())

    def intervals_for_day(self, day: date) -> List[BookingInterval]:
        return to_intervals(self.booking_repository.get_active_for_day(day))

    @BaseService.measure_operation("get_occupancy")
    def occupancy(self, day: date, resource_id: Optional[str] = None) -> Dict[time, int]:
        return slot_calendar.occupancy(day, self.intervals_for_day(day), resource_id)

    @BaseService.measure_operation("get_day_availability")
    def get_day_availability(
        self,
        day: date,
        *,
        now: Optional[datetime] = None,
        resource_id: Optional[str] = None,
    ) -> DayAvailability:
        capacity = 1 if resource_id else self.capacity()
        slots = slot_calendar.day_availability(
            day,
            self.intervals_for_day(day),
            capacity=capacity,
            now=resolve_now(now),
            resource_id=resource_id,
        )
        return DayAvailability(day=day, capacity=capacity, slots=slots)

    @BaseService.measure_operation("select_span")
    def select_span(
        self,
        ctx: RequestContext,
        first: datetime,
        last: datetime,
        *,
        now: Optional[datetime] = None,
    ) -> SlotSpan:
        """Validate a picked span against the current grid without booking it."""
        first, last = to_local_naive(first), to_local_naive(last)
        first_day = min(first, last).date() - timedelta(days=1)
        last_day = max(first, last).date()
        intervals = to_intervals(self.booking_repository.get_active_for_dates(first_day, last_day))
        return slot_calendar.select_span(
            first,
            last,
            intervals,
            capacity=self.capacity(),
            now=resolve_now(now),
            max_slots=settings.max_span_slots,
            min_slots=min_span_for(ctx),
        )
