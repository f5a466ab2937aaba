"""Repository for door access codes."""

from __future__ import annotations

from datetime import datetime
import logging
from typing import Any, List

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.enums import AccessCodeStatus
from ..models.access_code import AccessCode
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class AccessCodeRepository(BaseRepository[AccessCode]):
    def __init__(self, db: Session):
        super().__init__(db, AccessCode)

    def find_live_for_user(self, user_id: str, now: datetime) -> List[AccessCode]:
        """Active codes whose window has not ended yet."""
        try:
            return (
                self.db.query(AccessCode)
                .filter(
                    AccessCode.user_id == user_id,
                    AccessCode.status == AccessCodeStatus.ACTIVE.value,
                    AccessCode.valid_until > now,
                )
                .all()
            )
        except SQLAlchemyError as e:
            self._raise("list", e)

    def list_for_user(self, user_id: str) -> List[AccessCode]:
        try:
            return (
                self.db.query(AccessCode)
                .filter(AccessCode.user_id == user_id)
                .order_by(AccessCode.valid_from.desc())
                .all()
            )
        except SQLAlchemyError as e:
            self._raise("list", e)

    def transition(self, code_id: str, from_status: str, to_status: str, **values: Any) -> bool:
        try:
            result = self.db.execute(
                update(AccessCode)
                .where(AccessCode.id == code_id, AccessCode.status == from_status)
                .values(status=to_status, **values)
                .execution_options(synchronize_session=False)
            )
            return self._changed(code_id, result.rowcount)
        except SQLAlchemyError as e:
            self._raise("update status of", e)
