# tablebook/services/base.py
"""
Base Service Pattern for the Tablebook engine.

Provides common functionality for all service classes including:
- Transaction management with bounded replay on store contention
- Logging
- Performance monitoring
"""

from contextlib import contextmanager
from functools import wraps
import logging
import time
from typing import Any, Callable, Dict, Iterator, Optional, TypeVar, cast

from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import (
    RepositoryException,
    ServiceException,
    TransientStoreConflictException,
)
from ..database import is_transient_db_error, with_db_retry
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory

logger = logging.getLogger(__name__)

T = TypeVar("T")
F = TypeVar("F", bound=Callable[..., Any])

SLOW_OPERATION_SECONDS = 1.0


class BaseService:
    """
    Base class for all service layer components.

    Services receive a request-scoped ``Session`` and own transaction
    boundaries; repositories only flush.
    """

    # Class-level metrics storage
    _class_metrics: Dict[str, Dict[str, Dict[str, float]]] = {}

    def __init__(self, db: Session, repositories: Optional[RepositoryFactory] = None):
        self.db = db
        self.repositories = repositories or RepositoryFactory()
        self.logger = logging.getLogger(self.__class__.__name__)

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """
        Commit on success, roll back on any error.

        Transient contention errors propagate unchanged so ``run_atomic``
        can replay the unit of work; other store errors become
        ``ServiceException``.
        """
        try:
            yield self.db
            self.db.commit()
            self.logger.debug("Transaction committed successfully")
        except SQLAlchemyError as e:
            self.db.rollback()
            if is_transient_db_error(e):
                self.logger.info("Transaction hit store contention: %s", e)
                raise
            self.logger.error("Transaction failed: %s", e)
            raise ServiceException(f"Database operation failed: {e}") from e
        except RepositoryException as e:
            self.logger.error("Repository error in transaction: %s", e)
            self.db.rollback()
            raise ServiceException(str(e)) from e
        except Exception:
            self.db.rollback()
            raise

    def run_atomic(
        self,
        op_name: str,
        func: Callable[[], T],
        *,
        max_attempts: Optional[int] = None,
    ) -> T:
        """
        Run ``func`` as one transaction, replaying it on transient contention.

        ``func`` must re-read everything it depends on, since a replay starts
        from a fresh snapshot.
        """
        attempts = max_attempts or settings.store_retry_attempts
        calls = 0

        def attempt() -> T:
            nonlocal calls
            calls += 1
            if calls > 1:
                prometheus_metrics.inc_store_retry(op_name)
            with self.transaction():
                return func()

        try:
            return with_db_retry(op_name, attempt, max_attempts=attempts)
        except DBAPIError as exc:
            if not is_transient_db_error(exc):
                raise ServiceException(f"Database operation failed: {exc}") from exc
            self.logger.warning(
                "Giving up after store contention",
                extra={"op": op_name, "attempts": calls},
            )
            raise TransientStoreConflictException(
                details={"operation": op_name, "attempts": calls}
            ) from exc

    @staticmethod
    def measure_operation(operation_name: str) -> Callable[[F], F]:
        """
        Decorator to measure operation performance.

        Usage:
            @BaseService.measure_operation("create_booking")
            def create_booking(self, ctx, item):
                ...
        """

        def decorator(func: F) -> F:
            @wraps(func)
            def wrapper(self: "BaseService", *args: Any, **kwargs: Any) -> Any:
                start_time = time.time()
                success = False
                error_type = None
                try:
                    result = func(self, *args, **kwargs)
                    success = True
                    return result
                except Exception as e:
                    error_type = type(e).__name__
                    raise
                finally:
                    elapsed = time.time() - start_time
                    self._record_metric(operation_name, elapsed, success)
                    if elapsed > SLOW_OPERATION_SECONDS:
                        self.logger.warning(
                            "Slow operation detected: %s took %.2fs", operation_name, elapsed
                        )
                    prometheus_metrics.record_service_operation(
                        service=self.__class__.__name__,
                        operation=operation_name,
                        duration=elapsed,
                        status="success" if success else "error",
                        error_type=error_type,
                    )

            wrapper._operation_name = operation_name  # type: ignore[attr-defined]
            return cast(F, wrapper)

        return decorator

    def log_operation(self, operation: str, **context: Any) -> None:
        """Log an operation with structured context."""
        self.logger.info(f"Operation: {operation}", extra={"operation": operation, **context})

    def _record_metric(self, operation: str, elapsed: float, success: bool) -> None:
        class_metrics = BaseService._class_metrics.setdefault(self.__class__.__name__, {})
        stats = class_metrics.setdefault(
            operation, {"count": 0, "total_time": 0.0, "success_count": 0, "failure_count": 0}
        )
        stats["count"] += 1
        stats["total_time"] += elapsed
        if success:
            stats["success_count"] += 1
        else:
            stats["failure_count"] += 1

    def get_metrics(self) -> Dict[str, Dict[str, float]]:
        """Per-operation counters for this service class."""
        metrics = {}
        for operation, stats in BaseService._class_metrics.get(self.__class__.__name__, {}).items():
            count = stats["count"] or 1
            metrics[operation] = {
                **stats,
                "avg_time": stats["total_time"] / count,
                "success_rate": stats["success_count"] / count,
            }
        return metrics
