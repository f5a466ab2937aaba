# tablebook/routes/v1/availability.py
"""Slot grid for one day - API v1."""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query

from ...api.dependencies import get_availability_service, get_request_context
from ...schemas.availability import DayAvailabilityResponse, SlotStateResponse
from ...services.availability_service import AvailabilityService

router = APIRouter(tags=["availability-v1"])


@router.get(
    "/{day}",
    response_model=DayAvailabilityResponse,
    dependencies=[Depends(get_request_context)],
)
def get_day_availability(
    day: date,
    resource_id: Optional[str] = Query(None, max_length=32),
    service: AvailabilityService = Depends(get_availability_service),
) -> DayAvailabilityResponse:
    """Per-slot occupancy for ``day``; the grid is only as fresh as this read."""
    availability = service.get_day_availability(day, resource_id=resource_id)
    return DayAvailabilityResponse(
        day=availability.day,
        capacity=availability.capacity,
        slots=[SlotStateResponse.model_validate(slot) for slot in availability.slots],
    )
