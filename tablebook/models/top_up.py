"""
Top-up request and payment-notification models.

Amounts are integer cents so reconciliation can match on exact equality.
"""

from datetime import datetime
from typing import TYPE_CHECKING, Any, Optional

from sqlalchemy import JSON, DateTime, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship
import ulid

from ..core.enums import TopUpStatus
from ..database import Base

if TYPE_CHECKING:
    from .booking import Booking


class TopUpRequest(Base):
    """A user's intent to turn an external payment into balance."""

    __tablename__ = "top_up_requests"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    user_id: Mapped[str] = mapped_column(String(64), ForeignKey("users.id"), nullable=False, index=True)
    user_email: Mapped[str] = mapped_column(String(255), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, comment="Balance units to credit")
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=TopUpStatus.REQUESTING.value, index=True
    )
    booking_id: Mapped[Optional[str]] = mapped_column(
        String(26), ForeignKey("bookings.id"), nullable=True, unique=True
    )
    proof_url: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), onupdate=func.now())
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    booking: Mapped[Optional["Booking"]] = relationship("Booking", back_populates="top_up_request")

    def __repr__(self) -> str:
        return f"<TopUpRequest {self.id} {self.amount_cents}c {self.status}>"


class PaymentNotification(Base):
    """Every accepted payment notification and what reconciliation did with it."""

    __tablename__ = "payment_notifications"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    payer_label: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    outcome: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    matched_request_id: Mapped[Optional[str]] = mapped_column(String(26), nullable=True)
    candidate_ids: Mapped[Optional[list[Any]]] = mapped_column(JSON, nullable=True)
    received_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self) -> str:
        return f"<PaymentNotification {self.amount_cents}c {self.outcome}>"
