# tablebook/repositories/base_repository.py
"""
Base Repository Pattern for the Tablebook engine.

Repositories own all query construction. They never commit: the service
layer decides transaction boundaries. Store errors are wrapped in
``RepositoryException`` except transient contention, which is re-raised
untouched so the service can replay the whole transaction.
"""

import logging
from typing import Any, Generic, NoReturn, Optional, Type, TypeVar

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..database import is_transient_db_error
from ..database.session_utils import supports_row_locks

# Type variable for generic model support
T = TypeVar("T")

logger = logging.getLogger(__name__)


class BaseRepository(Generic[T]):
    """
    Concrete base repository with the common data access patterns.

    Attributes:
        db: SQLAlchemy session
        model: SQLAlchemy model class
    """

    def __init__(self, db: Session, model: Type[T]):
        self.db = db
        self.model = model
        self.logger = logging.getLogger(f"{__name__}.{model.__name__}")

    @property
    def supports_row_locks(self) -> bool:
        return supports_row_locks(self.db)

    def _raise(self, action: str, exc: SQLAlchemyError) -> NoReturn:
        if is_transient_db_error(exc):
            raise exc
        self.logger.error("Error during %s on %s: %s", action, self.model.__name__, exc)
        raise RepositoryException(f"Failed to {action} {self.model.__name__}: {exc}") from exc

    def get_by_id(self, id: Any, *, for_update: bool = False) -> Optional[T]:
        """Retrieve an entity by primary key, optionally taking a row lock."""
        try:
            query = self.db.query(self.model).filter(self.model.id == id)
            if for_update and self.supports_row_locks:
                query = query.with_for_update()
            return query.first()
        except SQLAlchemyError as e:
            self._raise("retrieve", e)

    def create(self, **kwargs: Any) -> T:
        """
        Create a new entity.

        Note: Does NOT commit - transaction management is handled by service layer.
        """
        try:
            entity = self.model(**kwargs)
            self.db.add(entity)
            self.db.flush()  # Get ID without committing
            return entity
        except IntegrityError as exc:
            self.logger.error(
                "Integrity error creating %s: %s", self.model.__name__, exc, exc_info=True
            )
            raise RepositoryException(f"Integrity constraint violated: {exc}") from exc
        except SQLAlchemyError as e:
            self._raise("create", e)

    def exists(self, **kwargs: Any) -> bool:
        try:
            return self.db.query(self.model).filter_by(**kwargs).first() is not None
        except SQLAlchemyError as e:
            self._raise("check existence of", e)

    def count(self, **kwargs: Any) -> int:
        try:
            return self.db.query(self.model).filter_by(**kwargs).count()
        except SQLAlchemyError as e:
            self._raise("count", e)

    def find_one_by(self, **kwargs: Any) -> Optional[T]:
        try:
            return self.db.query(self.model).filter_by(**kwargs).first()
        except SQLAlchemyError as e:
            self._raise("find", e)

    def flush(self) -> None:
        self.db.flush()

    def reload(self, id: Any) -> Optional[T]:
        """Re-read a row after a bulk UPDATE so session copies are not stale."""
        try:
            return self.db.get(self.model, id, populate_existing=True)
        except SQLAlchemyError as e:
            self._raise("reload", e)

    def _changed(self, id: Any, rowcount: int) -> bool:
        if rowcount != 1:
            return False
        self.reload(id)
        return True
