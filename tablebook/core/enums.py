# tablebook/core/enums.py
"""
Core enums for the Tablebook engine.

Role strings arrive from the upstream identity provider in whatever case
the caller used ("admin", "Admin", "VVIP"). They are resolved into
``Role`` once at the boundary and compared as enum members afterwards.
"""

from enum import Enum
from typing import Optional


class Role(str, Enum):
    """Closed set of caller roles."""

    USER = "user"
    VIP = "vip"
    VVIP = "vvip"
    ADMIN = "admin"

    @classmethod
    def parse(cls, value: Optional[str]) -> "Role":
        """Resolve a raw role string; unknown or empty values become USER."""
        if value is None:
            return cls.USER
        normalized = value.strip().lower()
        for member in cls:
            if member.value == normalized:
                return member
        return cls.USER


class BookingStatus(str, Enum):
    """Booking lifecycle statuses."""

    PENDING_PAYMENT = "PENDING_PAYMENT"  # Holds slots until the external payment lands
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"


class PaymentMethod(str, Enum):
    """How a booking is settled."""

    BALANCE = "balance"
    EXTERNAL = "external"
    MIXED = "mixed"


class TopUpStatus(str, Enum):
    """Top-up request lifecycle."""

    REQUESTING = "requesting"
    PROCESSING = "processing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class AccessCodeStatus(str, Enum):
    ACTIVE = "active"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


class ReconciliationOutcome(str, Enum):
    """Result of matching one payment notification."""

    MATCHED = "success"
    NO_MATCH = "no_match"
    AMBIGUOUS = "ambiguous_match"


class LedgerReason(str, Enum):
    """Why a balance changed."""

    BOOKING_DEBIT = "booking_debit"
    BOOKING_REFUND = "booking_refund"
    TOP_UP_CREDIT = "top_up_credit"
    ADMIN_ADJUSTMENT = "admin_adjustment"
