# tablebook/repositories/user_repository.py
"""
Account repository.

Balance changes are single conditional UPDATE statements so concurrent
bookings and top-ups for the same user cannot lose an update.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..models.user import BalanceTransaction, User
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class UserRepository(BaseRepository[User]):
    def __init__(self, db: Session):
        super().__init__(db, User)

    def ensure_account(self, user_id: str, email: str) -> User:
        """Return the account row, creating an empty one on first sight."""
        user = self.get_by_id(user_id)
        if user is not None:
            if email and user.email != email:
                user.email = email
                self.db.flush()
            return user
        return self.create(id=user_id, email=email, balance=0)

    def lock(self, user_id: str) -> Optional[User]:
        """Row-lock the account to serialise per-user policy checks."""
        return self.get_by_id(user_id, for_update=True)

    def apply_balance_delta(self, user_id: str, delta: int) -> Optional[int]:
        """
        Atomically add ``delta`` to the balance unless it would go negative.

        Returns the new balance, or None when no row qualified (missing
        account or insufficient funds).
        """
        try:
            result = self.db.execute(
                update(User)
                .where(User.id == user_id, User.balance + delta >= 0)
                .values(balance=User.balance + delta)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                return None
            user = self.reload(user_id)
            return user.balance
        except SQLAlchemyError as e:
            self._raise("adjust balance of", e)


class BalanceTransactionRepository(BaseRepository[BalanceTransaction]):
    def __init__(self, db: Session):
        super().__init__(db, BalanceTransaction)

    def list_for_user(self, user_id: str, *, limit: int = 100) -> List[BalanceTransaction]:
        try:
            return (
                self.db.query(BalanceTransaction)
                .filter(BalanceTransaction.user_id == user_id)
                .order_by(BalanceTransaction.created_at.desc(), BalanceTransaction.id.desc())
                .limit(limit)
                .all()
            )
        except SQLAlchemyError as e:
            self._raise("list", e)
