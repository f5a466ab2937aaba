# tablebook/routes/v1/redemptions.py
"""Door scanner endpoint - API v1."""

from typing import Optional

from fastapi import APIRouter, Depends, Header

from ...api.dependencies import get_redemption_service
from ...schemas.access import RedemptionRequest, RedemptionResponse
from ...services.redemption_service import RedemptionService

router = APIRouter(tags=["redemptions-v1"])


@router.post("/verify", response_model=RedemptionResponse)
def verify_secret(
    payload: RedemptionRequest,
    x_door_key: Optional[str] = Header(default=None),
    service: RedemptionService = Depends(get_redemption_service),
) -> RedemptionResponse:
    """Consume a scanned secret and open the door."""
    service.verify_door_key(x_door_key)
    result = service.redeem(payload.secret)
    return RedemptionResponse(
        kind=result.kind,
        reference_id=result.reference_id,
        user_email=result.user_email,
        resource_id=result.resource_id,
    )
