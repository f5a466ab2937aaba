"""Transaction replay and operation metrics in BaseService."""

import pytest
from sqlalchemy.exc import OperationalError

from tablebook.core.exceptions import ServiceException, TransientStoreConflictException
from tablebook.models.user import User
from tablebook.services.base import BaseService


def locked() -> OperationalError:
    return OperationalError("UPDATE users SET balance=?", {}, Exception("database is locked"))


@pytest.fixture(autouse=True)
def no_backoff(monkeypatch):
    monkeypatch.setattr("tablebook.database.time.sleep", lambda _seconds: None)


@pytest.fixture
def service(db) -> BaseService:
    return BaseService(db)


def test_transient_error_is_replayed(service):
    calls = []

    def flaky():
        calls.append(1)
        if len(calls) < 3:
            raise locked()
        return "done"

    assert service.run_atomic("flaky", flaky) == "done"
    assert len(calls) == 3


def test_persistent_contention_becomes_typed_error(service):
    calls = []

    def always_locked():
        calls.append(1)
        raise locked()

    with pytest.raises(TransientStoreConflictException) as exc_info:
        service.run_atomic("always_locked", always_locked, max_attempts=2)

    assert len(calls) == 2
    assert exc_info.value.details == {"operation": "always_locked", "attempts": 2}
    assert exc_info.value.to_http_exception().status_code == 503


def test_other_store_errors_are_not_replayed(service):
    calls = []

    def broken():
        calls.append(1)
        raise OperationalError("SELECT 1", {}, Exception("disk I/O error"))

    with pytest.raises(ServiceException):
        service.run_atomic("broken", broken)
    assert len(calls) == 1


def test_domain_errors_pass_through_and_roll_back(service, db, user_ctx):
    def work():
        db.add(User(id=user_ctx.user_id, email=user_ctx.email, balance=0))
        db.flush()
        raise ValueError("nope")

    with pytest.raises(ValueError):
        service.run_atomic("work", work)
    assert db.get(User, user_ctx.user_id) is None


class TestMeasureOperation:
    class Measured(BaseService):
        @BaseService.measure_operation("ping")
        def ping(self, fail=False):
            if fail:
                raise RuntimeError("boom")
            return "pong"

    def test_counts_success_and_failure(self, db):
        service = self.Measured(db)
        service.ping()
        with pytest.raises(RuntimeError):
            service.ping(fail=True)

        stats = service.get_metrics()["ping"]
        assert stats["count"] >= 2
        assert stats["failure_count"] >= 1
        assert self.Measured.ping._operation_name == "ping"
