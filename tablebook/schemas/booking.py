"""
Booking request/response schemas.

Slot endpoints are naive venue-local datetimes; both ends are slot starts
and inclusive, so a one-hour booking from 10:00 is ``10:00`` to ``10:30``.
"""

from datetime import date, datetime, time
from typing import List, Optional

from pydantic import Field, field_validator

from ..core.enums import PaymentMethod
from .base import StandardizedModel, StrictRequestModel
from .top_up import TopUpResponse


class BookingItemRequest(StrictRequestModel):
    first_slot: datetime
    last_slot: datetime
    resource_id: Optional[str] = Field(default=None, max_length=32)
    solo: bool = False


class BookingCreate(StrictRequestModel):
    items: List[BookingItemRequest] = Field(..., min_length=1)
    total_cost: Optional[int] = Field(default=None, ge=0)
    payment_method: PaymentMethod = PaymentMethod.BALANCE

    @field_validator("items")
    @classmethod
    def _no_duplicate_spans(cls, items: List[BookingItemRequest]) -> List[BookingItemRequest]:
        seen = set()
        for item in items:
            key = (item.first_slot, item.last_slot, item.resource_id)
            if key in seen:
                raise ValueError("duplicate booking item")
            seen.add(key)
        return items


class BookingCancel(StrictRequestModel):
    refund: bool = True


class BookingResponse(StandardizedModel):
    id: str
    resource_id: str
    user_id: str
    booking_date: date
    start_time: time
    end_time: time
    starts_at: datetime
    ends_at: datetime
    slot_count: int
    cost: int
    balance_paid: int
    external_paid: int
    payment_method: str
    is_solo: bool
    status: str
    redemption_secret: str
    redeemed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    refunded_amount: int = 0


class CheckoutResponse(StandardizedModel):
    bookings: List[BookingResponse]
    total_cost: int
    balance_after: Optional[int] = None
    top_up_request: Optional[TopUpResponse] = None
