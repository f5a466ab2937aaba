from datetime import datetime
from typing import Literal, Optional

from pydantic import Field

from .base import StandardizedModel, StrictRequestModel


class AccessCodeCreate(StrictRequestModel):
    starts_at: datetime
    ends_at: Optional[datetime] = None


class AccessCodeResponse(StandardizedModel):
    id: str
    user_id: str
    valid_from: datetime
    valid_until: datetime
    status: str
    redeemed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None


class RedemptionRequest(StrictRequestModel):
    secret: str = Field(..., min_length=1, max_length=64)


class RedemptionResponse(StandardizedModel):
    status: Literal["success"] = "success"
    kind: Literal["booking", "access_code"]
    reference_id: str
    user_email: str
    resource_id: Optional[str] = None
