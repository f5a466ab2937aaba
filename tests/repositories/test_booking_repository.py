"""Compare-and-set transitions and interval queries."""

from datetime import timedelta

from tablebook.core.enums import BookingStatus
from tablebook.repositories.booking_repository import ACTIVE_STATUSES
from tablebook.repositories.factory import RepositoryFactory

from ..helpers import DAY, at


def test_transition_only_from_expected_status(db, make_booking, user_ctx):
    repo = RepositoryFactory.create_booking_repository(db)
    booking = make_booking(user_ctx, at(10))

    assert not repo.transition(
        booking.id, [BookingStatus.PENDING_PAYMENT.value], BookingStatus.CONFIRMED.value
    )
    assert repo.transition(booking.id, ACTIVE_STATUSES, BookingStatus.CANCELLED.value, refunded_amount=5)
    assert not repo.transition(booking.id, ACTIVE_STATUSES, BookingStatus.CANCELLED.value)

    stored = repo.get_by_id(booking.id)
    assert stored.status == BookingStatus.CANCELLED.value
    assert stored.refunded_amount == 5


def test_mark_redeemed_once(db, make_booking, user_ctx):
    repo = RepositoryFactory.create_booking_repository(db)
    booking = make_booking(user_ctx, at(10))

    assert repo.mark_redeemed(booking.id, at(10))
    assert not repo.mark_redeemed(booking.id, at(10, 1))
    assert repo.get_by_id(booking.id).redeemed_at == at(10)


def test_pending_booking_cannot_be_redeemed(db, make_booking, user_ctx):
    repo = RepositoryFactory.create_booking_repository(db)
    booking = make_booking(user_ctx, at(10), status=BookingStatus.PENDING_PAYMENT)
    assert not repo.mark_redeemed(booking.id, at(10))


def test_active_for_day_includes_previous_day(db, make_booking, user_ctx):
    repo = RepositoryFactory.create_booking_repository(db)
    overnight = make_booking(user_ctx, at(23, day=DAY - timedelta(days=1)), 4)
    today = make_booking(user_ctx, at(10))
    make_booking(user_ctx, at(12), status=BookingStatus.CANCELLED)

    assert [b.id for b in repo.get_active_for_day(DAY)] == [overnight.id, today.id]


def test_find_overlapping(db, make_booking, user_ctx):
    repo = RepositoryFactory.create_booking_repository(db)
    first = make_booking(user_ctx, at(10), 2, resource_id="room-1")
    make_booking(user_ctx, at(11), 2, resource_id="room-2")

    assert [b.id for b in repo.find_overlapping(at(10, 30), at(11), resource_id="room-1")] == [first.id]
    assert repo.find_overlapping(at(10, 30), at(11), exclude_ids=[first.id]) == []
    assert len(repo.find_overlapping(at(10, 30), at(11, 30))) == 2


def test_get_by_secret(db, make_booking, user_ctx):
    repo = RepositoryFactory.create_booking_repository(db)
    booking = make_booking(user_ctx, at(10), secret="qs00000000000000000000abcd")

    assert repo.get_by_secret("qs00000000000000000000abcd").id == booking.id
    assert repo.get_by_secret("qs-missing") is None
