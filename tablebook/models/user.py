# tablebook/models/user.py
"""
Account and balance-ledger models.

Identity lives with the upstream auth provider; ``users`` only keeps the
prepaid balance keyed by that provider's stable user id. The balance column
is written exclusively through ``BalanceLedgerService``.
"""

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(String(64), primary_key=True)
    email = Column(String(255), nullable=False, index=True)
    balance = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    transactions = relationship(
        "BalanceTransaction",
        back_populates="user",
        order_by="BalanceTransaction.created_at",
        lazy="select",
    )

    __table_args__ = (CheckConstraint("balance >= 0", name="check_balance_non_negative"),)

    def __repr__(self) -> str:
        return f"<User {self.id} balance={self.balance}>"


class BalanceTransaction(Base):
    """Append-only audit row for every balance change."""

    __tablename__ = "balance_transactions"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    user_id = Column(String(64), ForeignKey("users.id"), nullable=False)
    delta = Column(Integer, nullable=False)
    balance_after = Column(Integer, nullable=False)
    reason = Column(String(32), nullable=False)
    reference_id = Column(String(64), nullable=True)
    note = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    user = relationship("User", back_populates="transactions")

    __table_args__ = (
        Index("ix_balance_transactions_user_id", "user_id"),
        Index("ix_balance_transactions_reference_id", "reference_id"),
    )

    def __repr__(self) -> str:
        return f"<BalanceTransaction {self.user_id} {self.delta:+d} ({self.reason})>"
