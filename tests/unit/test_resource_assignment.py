"""Priority-ordered resource assignment."""

import pytest

from tablebook.domain.resource_assignment import assign, is_free
from tablebook.domain.slot_calendar import SLOT, BookingInterval, span_slots

from ..helpers import at

RESOURCES = ["room-1", "room-2"]


def booked(resource_id, start, slots):
    return BookingInterval(resource_id=resource_id, start=start, end=start + SLOT * slots)


def test_first_resource_wins_when_everything_is_free():
    assert assign(span_slots(at(10), at(11)), RESOURCES, []) == "room-1"


def test_busy_resource_is_skipped():
    existing = [booked("room-1", at(10, 30), 1)]
    assert assign(span_slots(at(10), at(11)), RESOURCES, existing) == "room-2"


def test_unavailable_when_every_resource_is_busy_somewhere():
    # Each room is free for part of the span but neither for all of it
    existing = [booked("room-1", at(10), 1), booked("room-2", at(10, 30), 1)]
    assert assign(span_slots(at(10), at(11)), RESOURCES, existing) is None


def test_holds_count_like_persisted_bookings():
    holds = [booked("room-1", at(10), 2)]
    assert assign(span_slots(at(10), at(11)), RESOURCES, [], holds) == "room-2"
    holds.append(booked("room-2", at(10), 2))
    assert assign(span_slots(at(10), at(11)), RESOURCES, [], holds) is None


def test_adjacent_booking_does_not_block():
    existing = [booked("room-1", at(9), 2)]
    assert assign(span_slots(at(10), at(11)), RESOURCES, existing) == "room-1"


def test_empty_span_is_a_programming_error():
    with pytest.raises(ValueError):
        assign([], RESOURCES, [])


def test_is_free_ignores_other_resources():
    existing = [booked("room-2", at(10), 2)]
    assert is_free("room-1", [at(10)], existing)
    assert not is_free("room-2", [at(10, 30)], existing)
