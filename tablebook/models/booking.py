# tablebook/models/booking.py
"""
Booking model.

A booking reserves one resource for a contiguous run of half-hour slots.
``booking_date``/``start_time``/``end_time`` are the wall-clock values the
caller picked; ``end_time`` may be earlier than ``start_time`` when the
booking runs past midnight. ``starts_at``/``ends_at`` hold the corrected
interval and are what overlap checks run against.

Bookings are never deleted; cancellation only flips ``status``.
"""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Time,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..core.enums import BookingStatus, PaymentMethod
from ..database import Base


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    resource_id = Column(String(32), ForeignKey("resources.id"), nullable=False)
    user_id = Column(String(64), ForeignKey("users.id"), nullable=False, index=True)
    user_email = Column(String(255), nullable=False)

    booking_date = Column(Date, nullable=False, index=True)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    starts_at = Column(DateTime, nullable=False)
    ends_at = Column(DateTime, nullable=False)
    slot_count = Column(Integer, nullable=False)

    # Settlement, in balance units
    cost = Column(Integer, nullable=False)
    balance_paid = Column(Integer, nullable=False, default=0)
    external_paid = Column(Integer, nullable=False, default=0)
    payment_method = Column(String(16), nullable=False, default=PaymentMethod.BALANCE.value)
    is_solo = Column(Boolean, nullable=False, default=False)

    status = Column(String(20), nullable=False, default=BookingStatus.CONFIRMED.value, index=True)
    redemption_secret = Column(String(64), nullable=False, unique=True)
    redeemed_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
    confirmed_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_by_id = Column(String(64), nullable=True)
    refunded_amount = Column(Integer, nullable=False, default=0)

    resource = relationship("Resource", lazy="joined")
    top_up_request = relationship("TopUpRequest", back_populates="booking", uselist=False)

    __table_args__ = (
        CheckConstraint(
            "status IN ('PENDING_PAYMENT', 'CONFIRMED', 'CANCELLED')",
            name="check_booking_status",
        ),
        CheckConstraint(
            "payment_method IN ('balance', 'external', 'mixed')",
            name="check_payment_method",
        ),
        CheckConstraint("ends_at > starts_at", name="check_interval_positive"),
        CheckConstraint("cost >= 0", name="check_cost_non_negative"),
        CheckConstraint(
            "balance_paid >= 0 AND external_paid >= 0", name="check_paid_non_negative"
        ),
        Index("ix_bookings_resource_interval", "resource_id", "starts_at", "ends_at"),
    )

    @property
    def is_active(self) -> bool:
        return self.status in (BookingStatus.CONFIRMED.value, BookingStatus.PENDING_PAYMENT.value)

    def __repr__(self) -> str:
        return (
            f"<Booking {self.id} {self.resource_id} {self.starts_at}->{self.ends_at} "
            f"{self.status}>"
        )
