# tablebook/services/balance_ledger_service.py
"""
Balance Ledger.

The only writer of ``users.balance``. Every change is one conditional
UPDATE (never read-then-write in Python) plus an audit row. ``increment``
and ``debit`` join the caller's open transaction so booking and
reconciliation flows stay atomic; the public account operations run their
own.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from ..core.context import RequestContext
from ..core.enums import LedgerReason
from ..core.exceptions import (
    ForbiddenException,
    InsufficientBalanceException,
    NotFoundException,
    ValidationException,
)
from ..models.user import BalanceTransaction, User
from ..repositories.factory import RepositoryFactory
from .base import BaseService

logger = logging.getLogger(__name__)


class BalanceLedgerService(BaseService):
    def __init__(self, db: Session, repositories: Optional[RepositoryFactory] = None):
        super().__init__(db, repositories)
        self.user_repository = self.repositories.create_user_repository(db)
        self.transaction_repository = self.repositories.create_balance_transaction_repository(db)

    # Transaction-joining primitives

    def increment(
        self,
        user_id: str,
        delta: int,
        *,
        reason: LedgerReason,
        reference_id: Optional[str] = None,
        note: Optional[str] = None,
    ) -> int:
        """
        Apply ``delta`` atomically and record it; returns the new balance.

        Must run inside the caller's transaction. A change that would make
        the balance negative raises ``InsufficientBalanceException`` and
        writes nothing.
        """
        if delta == 0:
            user = self.user_repository.get_by_id(user_id)
            if user is None:
                raise NotFoundException(f"Account {user_id} not found")
            return user.balance

        new_balance = self.user_repository.apply_balance_delta(user_id, delta)
        if new_balance is None:
            if not self.user_repository.exists(id=user_id):
                raise NotFoundException(f"Account {user_id} not found")
            raise InsufficientBalanceException(
                details={"user_id": user_id, "required": -delta},
            )

        self.transaction_repository.create(
            user_id=user_id,
            delta=delta,
            balance_after=new_balance,
            reason=reason.value,
            reference_id=reference_id,
            note=note,
        )
        self.logger.info(
            "Balance changed",
            extra={
                "user_id": user_id,
                "delta": delta,
                "balance_after": new_balance,
                "reason": reason.value,
                "reference_id": reference_id,
            },
        )
        return new_balance

    def debit(
        self,
        user_id: str,
        amount: int,
        *,
        reason: LedgerReason = LedgerReason.BOOKING_DEBIT,
        reference_id: Optional[str] = None,
    ) -> int:
        if amount < 0:
            raise ValidationException("Debit amount must not be negative")
        return self.increment(user_id, -amount, reason=reason, reference_id=reference_id)

    def credit(
        self,
        user_id: str,
        amount: int,
        *,
        reason: LedgerReason,
        reference_id: Optional[str] = None,
        note: Optional[str] = None,
    ) -> int:
        if amount < 0:
            raise ValidationException("Credit amount must not be negative")
        return self.increment(
            user_id, amount, reason=reason, reference_id=reference_id, note=note
        )

    # Account operations

    @BaseService.measure_operation("open_account")
    def open_account(self, user_id: str, email: str) -> User:
        """Idempotently create the balance account for an external identity."""
        return self.run_atomic(
            "open_account", lambda: self.user_repository.ensure_account(user_id, email)
        )

    @BaseService.measure_operation("get_balance")
    def get_balance(self, user_id: str) -> int:
        user = self.user_repository.get_by_id(user_id)
        if user is None:
            raise NotFoundException(f"Account {user_id} not found")
        return user.balance

    @BaseService.measure_operation("adjust_balance")
    def adjust(self, ctx: RequestContext, user_id: str, delta: int, note: str) -> int:
        """Manual correction by an administrator."""
        if not ctx.is_admin:
            raise ForbiddenException("Only administrators can adjust balances")
        balance = self.run_atomic(
            "adjust_balance",
            lambda: self.increment(
                user_id,
                delta,
                reason=LedgerReason.ADMIN_ADJUSTMENT,
                reference_id=ctx.user_id,
                note=note,
            ),
        )
        self.log_operation("adjust_balance", user_id=user_id, delta=delta, actor=ctx.user_id)
        return balance

    def list_transactions(self, ctx: RequestContext, user_id: Optional[str] = None) -> List[BalanceTransaction]:
        target = user_id or ctx.user_id
        if target != ctx.user_id and not ctx.is_admin:
            raise ForbiddenException("Cannot view another user's ledger")
        return self.transaction_repository.list_for_user(target)
