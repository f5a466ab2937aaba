"""Day grid and span pre-validation against stored bookings."""

from datetime import time, timedelta

import pytest

from tablebook.core.enums import BookingStatus
from tablebook.core.exceptions import InvalidSpanException, SlotConflictException

from ..helpers import DAY, NOW, at


def slot(availability, hour, minute=0):
    return next(s for s in availability.slots if s.start == at(hour, minute))


def test_empty_day(availability_service):
    availability = availability_service.get_day_availability(DAY, now=NOW)

    assert availability.capacity == 2
    assert len(availability.slots) == 48
    assert slot(availability, 7, 30).past
    assert not slot(availability, 7, 30).available
    assert availability.available_starts[0] == at(8)


def test_pending_bookings_occupy_slots(availability_service, make_booking, user_ctx, other_ctx):
    make_booking(user_ctx, at(10), 2, resource_id="room-1")
    make_booking(other_ctx, at(10), 1, resource_id="room-2", status=BookingStatus.PENDING_PAYMENT)

    availability = availability_service.get_day_availability(DAY, now=NOW)

    assert slot(availability, 10).count == 2
    assert not slot(availability, 10).available
    assert slot(availability, 10, 30).count == 1
    assert slot(availability, 10, 30).available


def test_cancelled_bookings_free_slots(availability_service, make_booking, user_ctx):
    make_booking(user_ctx, at(10), 2, status=BookingStatus.CANCELLED)

    assert availability_service.occupancy(DAY)[time(10, 0)] == 0


def test_single_resource_view(availability_service, make_booking, user_ctx):
    make_booking(user_ctx, at(10), 2, resource_id="room-2")

    availability = availability_service.get_day_availability(DAY, now=NOW, resource_id="room-1")

    assert availability.capacity == 1
    assert slot(availability, 10).available
    assert availability_service.occupancy(DAY, "room-2")[time(10, 0)] == 1


def test_previous_night_spills_into_morning(availability_service, make_booking, user_ctx):
    make_booking(user_ctx, at(23, day=DAY - timedelta(days=1)), 4)

    counts = availability_service.occupancy(DAY)

    assert counts[time(0, 0)] == 1
    assert counts[time(1, 0)] == 0


class TestSelectSpan:
    def test_valid_span(self, availability_service, user_ctx):
        span = availability_service.select_span(user_ctx, at(10), at(10, 30), now=NOW)
        assert span.start == at(10)
        assert span.end == at(11)

    def test_full_slot(self, availability_service, make_booking, user_ctx, other_ctx):
        make_booking(other_ctx, at(10, 30), 1, resource_id="room-1")
        make_booking(other_ctx, at(10, 30), 1, resource_id="room-2")

        with pytest.raises(SlotConflictException):
            availability_service.select_span(user_ctx, at(10), at(11), now=NOW)

    def test_admin_may_pick_one_slot(self, availability_service, user_ctx, admin_ctx):
        assert availability_service.select_span(admin_ctx, at(10), at(10), now=NOW).slot_count == 1
        with pytest.raises(InvalidSpanException):
            availability_service.select_span(user_ctx, at(10), at(10), now=NOW)
