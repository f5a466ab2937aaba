"""
Half-hour slot grid and occupancy computation.

Bookings store wall-clock start/end times on a date; an end that is not
after the start means the booking runs past midnight into the next day.
Occupancy for a day therefore has to consider bookings that started on
the previous day as well.

Everything here is pure: callers pass the bookings they loaded and the
"now" they want to evaluate against.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from ..core.exceptions import InvalidSpanException, SlotConflictException

SLOT_MINUTES = 30
SLOTS_PER_DAY = 48
SLOT = timedelta(minutes=SLOT_MINUTES)


@dataclass(frozen=True)
class BookingInterval:
    """A booked resource interval with wraparound already applied."""

    resource_id: str
    start: datetime
    end: datetime

    @classmethod
    def from_wall_clock(
        cls, resource_id: str, day: date, start_time: time, end_time: time
    ) -> "BookingInterval":
        start = datetime.combine(day, start_time)
        end = datetime.combine(day, end_time)
        if end <= start:
            end += timedelta(days=1)
        return cls(resource_id=resource_id, start=start, end=end)

    def overlaps(self, start: datetime, end: datetime) -> bool:
        return self.start < end and self.end > start


@dataclass(frozen=True)
class SlotState:
    start: datetime
    count: int
    capacity: int
    past: bool

    @property
    def available(self) -> bool:
        return not self.past and self.count < self.capacity


@dataclass(frozen=True)
class SlotSpan:
    """A contiguous, validated run of slots."""

    slots: Tuple[datetime, ...]

    @property
    def start(self) -> datetime:
        return self.slots[0]

    @property
    def end(self) -> datetime:
        return self.slots[-1] + SLOT

    @property
    def slot_count(self) -> int:
        return len(self.slots)

    @property
    def booking_date(self) -> date:
        return self.start.date()

    @property
    def start_time(self) -> time:
        return self.start.time()

    @property
    def end_time(self) -> time:
        # 00:00 for a span ending at midnight; wraparound is implied by end <= start
        return self.end.time()


def is_slot_aligned(value: datetime) -> bool:
    return value.minute % SLOT_MINUTES == 0 and value.second == 0 and value.microsecond == 0


def slot_starts(day: date) -> List[datetime]:
    """The 48 slot start times of ``day``."""
    midnight = datetime.combine(day, time.min)
    return [midnight + SLOT * i for i in range(SLOTS_PER_DAY)]


def span_slots(start: datetime, end: datetime) -> List[datetime]:
    """Slot starts covering ``[start, end)``."""
    slots = []
    current = start
    while current < end:
        slots.append(current)
        current += SLOT
    return slots


def count_covering(
    slot_start: datetime,
    intervals: Iterable[BookingInterval],
    resource_id: Optional[str] = None,
) -> int:
    slot_end = slot_start + SLOT
    return sum(
        1
        for interval in intervals
        if (resource_id is None or interval.resource_id == resource_id)
        and interval.overlaps(slot_start, slot_end)
    )


def occupancy(
    day: date,
    intervals: Sequence[BookingInterval],
    resource_id: Optional[str] = None,
) -> Dict[time, int]:
    """
    Count bookings covering each slot of ``day``.

    ``intervals`` should hold the active bookings of ``day`` and of the
    previous day so that overnight bookings spill into the early slots.
    With ``resource_id`` the count is for one resource, otherwise for the
    whole pool.
    """
    return {
        slot.time(): count_covering(slot, intervals, resource_id) for slot in slot_starts(day)
    }


def day_availability(
    day: date,
    intervals: Sequence[BookingInterval],
    *,
    capacity: int,
    now: datetime,
    resource_id: Optional[str] = None,
) -> List[SlotState]:
    """Per-slot state for rendering or validating a day's grid."""
    counts = occupancy(day, intervals, resource_id)
    return [
        SlotState(start=slot, count=counts[slot.time()], capacity=capacity, past=slot < now)
        for slot in slot_starts(day)
    ]


def build_span(
    first: datetime,
    last: datetime,
    *,
    now: datetime,
    max_slots: int,
    min_slots: int,
) -> SlotSpan:
    """
    Turn two picked slot endpoints into a span, checking its shape only.

    Both endpoints are slot starts and are included. Reversed endpoints are
    swapped. Nothing is clamped: a span that is misaligned, too long, too
    short or already started is rejected as a whole.
    """
    if not (is_slot_aligned(first) and is_slot_aligned(last)):
        raise InvalidSpanException(
            "Selected times must fall on half-hour boundaries",
            details={"first": first.isoformat(), "last": last.isoformat()},
        )
    if last < first:
        first, last = last, first

    slots = span_slots(first, last + SLOT)
    if len(slots) > max_slots:
        raise InvalidSpanException(
            f"A booking may cover at most {max_slots} slots",
            details={"slot_count": len(slots), "max_slots": max_slots},
        )
    if len(slots) < min_slots:
        raise InvalidSpanException(
            f"A booking must cover at least {min_slots} slots",
            details={"slot_count": len(slots), "min_slots": min_slots},
        )

    past = [slot for slot in slots if slot < now]
    if past:
        raise InvalidSpanException(
            "The selected time has already started",
            details={"first_past_slot": past[0].isoformat()},
        )

    return SlotSpan(slots=tuple(slots))


def select_span(
    first: datetime,
    last: datetime,
    intervals: Sequence[BookingInterval],
    *,
    capacity: int,
    now: datetime,
    max_slots: int,
    min_slots: int,
) -> SlotSpan:
    """
    Validate a span against current occupancy as well as its shape.

    A slot whose pool-wide count has reached ``capacity`` makes the whole
    span unavailable.
    """
    span = build_span(first, last, now=now, max_slots=max_slots, min_slots=min_slots)
    full = [slot for slot in span.slots if count_covering(slot, intervals) >= capacity]
    if full:
        raise SlotConflictException(
            "Some of the selected slots are fully booked",
            details={"unavailable_slots": [slot.isoformat() for slot in full]},
        )
    return span


__all__ = [
    "SLOT",
    "SLOTS_PER_DAY",
    "SLOT_MINUTES",
    "BookingInterval",
    "SlotSpan",
    "SlotState",
    "build_span",
    "count_covering",
    "day_availability",
    "is_slot_aligned",
    "occupancy",
    "select_span",
    "slot_starts",
    "span_slots",
]
