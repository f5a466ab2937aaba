# tests/conftest.py
"""
Shared fixtures.

Each test gets its own SQLite file under ``tmp_path`` with the configured
resources seeded. A file (not ``:memory:``) so the concurrency tests can
open one session per thread against the same database.
"""

from datetime import datetime
import os
from typing import Callable, Iterator, Optional
from unittest.mock import Mock

os.environ.setdefault("TABLEBOOK_ENVIRONMENT", "test")

from fastapi.testclient import TestClient  # noqa: E402
from pydantic import SecretStr  # noqa: E402
import pytest  # noqa: E402
from sqlalchemy.engine import Engine  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402

from tablebook import models  # noqa: E402,F401
from tablebook.api.dependencies import get_db  # noqa: E402
from tablebook.core.config import settings  # noqa: E402
from tablebook.core.context import RequestContext  # noqa: E402
from tablebook.core.enums import BookingStatus, LedgerReason, PaymentMethod, Role  # noqa: E402
from tablebook.core.ulid_helper import generate_redemption_secret  # noqa: E402
from tablebook.database import Base, build_engine, build_session_factory  # noqa: E402
from tablebook.domain.slot_calendar import SLOT  # noqa: E402
from tablebook.main import app  # noqa: E402
from tablebook.models.booking import Booking  # noqa: E402
from tablebook.repositories.factory import RepositoryFactory  # noqa: E402
from tablebook.services.balance_ledger_service import BalanceLedgerService  # noqa: E402
from tablebook.services.booking_service import BookingService  # noqa: E402

from .helpers import DOOR_KEY, PAYEE_ID, WEBHOOK_SECRET  # noqa: E402


@pytest.fixture
def user_ctx() -> RequestContext:
    return RequestContext("user-1", "alice@example.com", Role.USER)


@pytest.fixture
def other_ctx() -> RequestContext:
    return RequestContext("user-2", "bob@example.com", Role.USER)


@pytest.fixture
def vip_ctx() -> RequestContext:
    return RequestContext("vip-1", "regular@example.com", Role.VIP)


@pytest.fixture
def vvip_ctx() -> RequestContext:
    return RequestContext("vvip-1", "vip@example.com", Role.VVIP)


@pytest.fixture
def admin_ctx() -> RequestContext:
    return RequestContext("admin-1", "admin@example.com", Role.ADMIN)


@pytest.fixture(autouse=True)
def configured_secrets(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings, "payment_webhook_secret", SecretStr(WEBHOOK_SECRET))
    monkeypatch.setattr(settings, "door_api_key", SecretStr(DOOR_KEY))
    monkeypatch.setattr(settings, "fps_payee_id", PAYEE_ID)
    monkeypatch.setattr(settings, "calendar_webhook_url", "")
    monkeypatch.setattr(settings, "email_provider", "console")


@pytest.fixture
def test_engine(tmp_path) -> Iterator[Engine]:
    engine = build_engine(f"sqlite:///{tmp_path / 'tablebook-test.db'}")
    Base.metadata.create_all(bind=engine)

    seed = build_session_factory(engine)()
    try:
        RepositoryFactory.create_resource_repository(seed).sync_configured(settings.resources)
        seed.commit()
    finally:
        seed.close()

    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(test_engine: Engine) -> sessionmaker:
    return build_session_factory(test_engine)


@pytest.fixture
def db(session_factory: sessionmaker) -> Iterator[Session]:
    session = session_factory()
    yield session
    session.rollback()
    session.close()


@pytest.fixture
def calendar_mirror() -> Mock:
    return Mock()


@pytest.fixture
def mailer() -> Mock:
    return Mock()


@pytest.fixture
def ledger(db: Session) -> BalanceLedgerService:
    return BalanceLedgerService(db)


@pytest.fixture
def booking_service(
    db: Session, calendar_mirror: Mock, mailer: Mock, ledger: BalanceLedgerService
) -> BookingService:
    return BookingService(db, calendar_mirror=calendar_mirror, mailer=mailer, ledger=ledger)


@pytest.fixture
def fund(ledger: BalanceLedgerService) -> Callable[[RequestContext, int], int]:
    """Open the account and credit ``amount`` units."""

    def _fund(ctx: RequestContext, amount: int) -> int:
        ledger.open_account(ctx.user_id, ctx.email)
        if amount == 0:
            return ledger.get_balance(ctx.user_id)
        return ledger.run_atomic(
            "seed_balance",
            lambda: ledger.credit(ctx.user_id, amount, reason=LedgerReason.ADMIN_ADJUSTMENT),
        )

    return _fund


@pytest.fixture
def make_booking(db: Session) -> Callable[..., Booking]:
    """Insert a booking row directly, bypassing the checkout flow."""

    def _make(
        ctx: RequestContext,
        start: datetime,
        slots: int = 2,
        *,
        resource_id: str = "room-1",
        status: BookingStatus = BookingStatus.CONFIRMED,
        cost: int = 0,
        balance_paid: int = 0,
        secret: Optional[str] = None,
    ) -> Booking:
        RepositoryFactory.create_user_repository(db).ensure_account(ctx.user_id, ctx.email)
        end = start + SLOT * slots
        booking = RepositoryFactory.create_booking_repository(db).create(
            resource_id=resource_id,
            user_id=ctx.user_id,
            user_email=ctx.email,
            booking_date=start.date(),
            start_time=start.time(),
            end_time=end.time(),
            starts_at=start,
            ends_at=end,
            slot_count=slots,
            cost=cost,
            balance_paid=balance_paid,
            external_paid=0,
            payment_method=PaymentMethod.BALANCE.value,
            is_solo=False,
            status=status.value,
            redemption_secret=secret or generate_redemption_secret(),
        )
        db.commit()
        return booking

    return _make


@pytest.fixture
def client(db: Session) -> Iterator[TestClient]:
    """Create a test client bound to the test database."""

    def override_get_db():
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            raise

    app.dependency_overrides[get_db] = override_get_db

    # No context manager: the lifespan would initialise the configured database
    test_client = TestClient(app)

    yield test_client

    app.dependency_overrides.clear()
    test_client.close()
