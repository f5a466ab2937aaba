"""
Concurrency tests: one session per thread against the same SQLite file.

Seeding sessions are closed before the workers start so that no reader
holds the write lock while the threads race.
"""

from concurrent.futures import ThreadPoolExecutor
import threading
from unittest.mock import Mock

from sqlalchemy.orm import sessionmaker

from tablebook.core.context import RequestContext
from tablebook.core.enums import BookingStatus, LedgerReason, ReconciliationOutcome, Role
from tablebook.core.exceptions import DomainException, InsufficientBalanceException
from tablebook.models.booking import Booking
from tablebook.models.user import BalanceTransaction
from tablebook.services.balance_ledger_service import BalanceLedgerService
from tablebook.services.booking_service import BookingItem, BookingService
from tablebook.services.reconciliation_service import ReconciliationService
from tablebook.services.top_up_service import TopUpService

from ..helpers import NOW, WEBHOOK_SECRET, at


def _seed_funded_users(session_factory: sessionmaker, count: int, amount: int) -> list[RequestContext]:
    contexts = [
        RequestContext(f"racer-{i}", f"racer{i}@example.com", Role.USER) for i in range(count)
    ]
    session = session_factory()
    try:
        ledger = BalanceLedgerService(session)
        for ctx in contexts:
            ledger.open_account(ctx.user_id, ctx.email)
            ledger.run_atomic(
                "seed_balance",
                lambda ctx=ctx: ledger.credit(ctx.user_id, amount, reason=LedgerReason.ADMIN_ADJUSTMENT),
            )
    finally:
        session.close()
    return contexts


def _balance(session_factory: sessionmaker, user_id: str) -> int:
    session = session_factory()
    try:
        return BalanceLedgerService(session).get_balance(user_id)
    finally:
        session.close()


def test_last_resource_goes_to_one_racer(session_factory: sessionmaker) -> None:
    contexts = _seed_funded_users(session_factory, 5, 500)
    # The first booking takes room-1; the remaining racers fight over room-2
    first = contexts[0]
    session = session_factory()
    try:
        BookingService(session, calendar_mirror=Mock(), mailer=Mock()).create_booking(
            first, BookingItem(at(10), at(10, 30)), now=NOW
        )
    finally:
        session.close()

    racers = contexts[1:]
    barrier = threading.Barrier(len(racers))

    def _worker(ctx: RequestContext) -> bool:
        session = session_factory()
        try:
            service = BookingService(session, calendar_mirror=Mock(), mailer=Mock())
            barrier.wait(timeout=5)
            try:
                service.create_booking(ctx, BookingItem(at(10), at(10, 30)), now=NOW)
            except DomainException:
                return False
            return True
        finally:
            session.close()

    with ThreadPoolExecutor(max_workers=len(racers)) as executor:
        results = list(executor.map(_worker, racers))

    assert results.count(True) == 1

    session = session_factory()
    try:
        active = (
            session.query(Booking)
            .filter(Booking.starts_at == at(10), Booking.status == BookingStatus.CONFIRMED.value)
            .all()
        )
        assert sorted(b.resource_id for b in active) == ["room-1", "room-2"]
    finally:
        session.close()

    # Losers were never charged
    winner = racers[results.index(True)]
    for ctx in racers:
        expected = 400 if ctx is winner else 500
        assert _balance(session_factory, ctx.user_id) == expected


def test_concurrent_debits_never_overdraw(session_factory: sessionmaker) -> None:
    (ctx,) = _seed_funded_users(session_factory, 1, 100)
    attempts = 6
    barrier = threading.Barrier(attempts)
    insufficient = []

    def _worker(_: int) -> bool:
        session = session_factory()
        try:
            ledger = BalanceLedgerService(session)
            barrier.wait(timeout=5)
            try:
                ledger.run_atomic("debit", lambda: ledger.debit(ctx.user_id, 30))
            except InsufficientBalanceException:
                insufficient.append(True)
                return False
            except DomainException:
                return False
            return True
        finally:
            session.close()

    with ThreadPoolExecutor(max_workers=attempts) as executor:
        results = list(executor.map(_worker, range(attempts)))

    succeeded = results.count(True)
    assert succeeded <= 3
    assert insufficient
    assert _balance(session_factory, ctx.user_id) == 100 - 30 * succeeded

    session = session_factory()
    try:
        debits = (
            session.query(BalanceTransaction)
            .filter(
                BalanceTransaction.user_id == ctx.user_id,
                BalanceTransaction.reason == LedgerReason.BOOKING_DEBIT.value,
            )
            .all()
        )
        assert len(debits) == succeeded
        assert all(row.balance_after >= 0 for row in debits)
    finally:
        session.close()


def test_replayed_notification_credits_once(session_factory: sessionmaker) -> None:
    (ctx,) = _seed_funded_users(session_factory, 1, 0)
    session = session_factory()
    try:
        request_id = TopUpService(session).create_request(ctx, 20).id
    finally:
        session.close()

    deliveries = 4
    barrier = threading.Barrier(deliveries)

    def _worker(_: int):
        session = session_factory()
        try:
            service = ReconciliationService(session)
            barrier.wait(timeout=5)
            try:
                return service.reconcile("20.00", "CHAN TAI MAN", WEBHOOK_SECRET).outcome
            except DomainException:
                return None
        finally:
            session.close()

    with ThreadPoolExecutor(max_workers=deliveries) as executor:
        outcomes = list(executor.map(_worker, range(deliveries)))

    assert outcomes.count(ReconciliationOutcome.MATCHED) == 1
    assert _balance(session_factory, ctx.user_id) == 20

    session = session_factory()
    try:
        credits = (
            session.query(BalanceTransaction)
            .filter(
                BalanceTransaction.user_id == ctx.user_id,
                BalanceTransaction.reason == LedgerReason.TOP_UP_CREDIT.value,
            )
            .all()
        )
        assert [row.reference_id for row in credits] == [request_id]
    finally:
        session.close()
