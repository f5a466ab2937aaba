"""
Database engine, session factory, and metadata shared across the engine.
"""

from __future__ import annotations

import logging
import random
import time
from typing import Any, Callable, Generator, TypeVar

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import DeclarativeMeta, Session, declarative_base, sessionmaker

from tablebook.core.config import settings

logger = logging.getLogger(__name__)

_POSTGRES_POOL_KWARGS: dict[str, Any] = {
    "pool_size": 5,
    "max_overflow": 5,
    "pool_timeout": 5,
    "pool_recycle": 300,
    "pool_pre_ping": True,
}

# Deadlock and serialization failures; the transaction can simply be replayed
_RETRYABLE_PGCODES = frozenset({"40001", "40P01"})
_RETRYABLE_ERROR_SNIPPETS = (
    "database is locked",
    "could not serialize access",
    "deadlock detected",
)


def _install_sqlite_locking(engine: Engine) -> None:
    """
    Make every SQLite transaction take the write lock up front.

    pysqlite defers BEGIN until the first write, so two transactions could
    both read "free" and then both insert. BEGIN IMMEDIATE serialises writers
    before their conflict re-check runs.
    """

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection: Any, connection_record: Any) -> None:
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin_immediate(conn: Any) -> None:
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_engine(db_url: str) -> Engine:
    """Create an engine with dialect-specific tuning."""
    if db_url.startswith("sqlite"):
        engine = create_engine(
            db_url,
            connect_args={"check_same_thread": False, "timeout": 30},
            future=True,
        )
        _install_sqlite_locking(engine)
        return engine
    return create_engine(db_url, future=True, **_POSTGRES_POOL_KWARGS)


def build_session_factory(bind: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=bind, expire_on_commit=False)


engine: Engine = build_engine(settings.database_url)
SessionLocal = build_session_factory(engine)

Base: DeclarativeMeta = declarative_base()


def get_db() -> Generator[Session, None, None]:
    """Get database session with proper cleanup."""
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


T = TypeVar("T")


def is_transient_db_error(exc: BaseException) -> bool:
    """True for contention errors that a replayed transaction can get past."""
    if not isinstance(exc, DBAPIError):
        return False
    pgcode = getattr(exc.orig, "pgcode", None) or getattr(exc.orig, "sqlstate", None)
    if pgcode in _RETRYABLE_PGCODES:
        return True
    message = str(exc).lower()
    return any(snippet in message for snippet in _RETRYABLE_ERROR_SNIPPETS)


def retry_delay(attempt: int) -> float:
    base = 0.05 * (2 ** (attempt - 1))
    return base + random.uniform(0, 0.02 * attempt)


def with_db_retry(op_name: str, func: Callable[[], T], *, max_attempts: int = 3) -> T:
    """
    Execute a DB operation, replaying it on transient contention.

    ``func`` must be a complete unit of work; it is re-run from scratch.
    """

    attempt = 1
    while True:
        try:
            return func()
        except DBAPIError as exc:
            if attempt >= max_attempts or not is_transient_db_error(exc):
                raise

            delay = retry_delay(attempt)
            logger.warning(
                "Transient DB failure detected, retrying",
                extra={
                    "event": "db_retry",
                    "op": op_name,
                    "attempt": attempt,
                    "delay": delay,
                    "error": str(exc),
                },
            )
            time.sleep(delay)
            attempt += 1


__all__ = [
    "Base",
    "SessionLocal",
    "build_engine",
    "build_session_factory",
    "engine",
    "get_db",
    "is_transient_db_error",
    "retry_delay",
    "with_db_retry",
]
