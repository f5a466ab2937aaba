from datetime import datetime
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import Field, field_validator

from .base import StandardizedModel, StrictRequestModel


class TopUpCreate(StrictRequestModel):
    quantity: int = Field(..., gt=0, le=100_000)
    booking_id: Optional[str] = Field(default=None, max_length=26)


class TopUpProof(StrictRequestModel):
    proof_url: str = Field(..., min_length=1, max_length=1024)


class TopUpResponse(StandardizedModel):
    id: str
    user_id: str
    quantity: int
    amount_cents: int
    status: str
    booking_id: Optional[str] = None
    proof_url: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class PaymentQrResponse(StandardizedModel):
    payload: str
    amount: Decimal
    reference: str


class PaymentNotificationRequest(StandardizedModel):
    """Body posted by the payment-notification source."""

    amount: Decimal
    payer: Optional[str] = Field(default=None, max_length=255)
    secret: Optional[str] = None


class PaymentNotificationResponse(StandardizedModel):
    status: Literal["success", "no_match", "ambiguous_match"]
    message: str
    request_id: Optional[str] = None
    candidate_ids: List[str] = Field(default_factory=list)


class StoredPaymentNotificationResponse(StandardizedModel):
    """A notification as kept for the audit trail."""

    id: str
    amount_cents: int
    payer_label: Optional[str] = None
    outcome: str
    matched_request_id: Optional[str] = None
    candidate_ids: List[str] = Field(default_factory=list)
    received_at: Optional[datetime] = None

    @field_validator("candidate_ids", mode="before")
    @classmethod
    def _none_is_empty(cls, value):
        return value or []
