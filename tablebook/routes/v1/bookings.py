# tablebook/routes/v1/bookings.py
"""
Booking routes - API v1

Versioned booking endpoints under /api/v1/bookings.
All business logic delegated to BookingService.

Endpoints:
    POST / - Check out one or more spans atomically
    GET / - List the caller's bookings
    GET /{booking_id} - Booking details
    POST /{booking_id}/cancel - Cancel a booking
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, status

from ...api.dependencies import get_booking_service, get_request_context
from ...core.context import RequestContext
from ...schemas.booking import BookingCancel, BookingCreate, BookingResponse, CheckoutResponse
from ...schemas.top_up import TopUpResponse
from ...services.booking_service import BookingItem, BookingService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["bookings-v1"])


@router.post("", response_model=CheckoutResponse, status_code=status.HTTP_201_CREATED)
def create_bookings(
    payload: BookingCreate,
    ctx: RequestContext = Depends(get_request_context),
    booking_service: BookingService = Depends(get_booking_service),
) -> CheckoutResponse:
    """Book every item or none of them."""
    result = booking_service.create_multiple_bookings(
        ctx,
        [
            BookingItem(
                first_slot=item.first_slot,
                last_slot=item.last_slot,
                resource_id=item.resource_id,
                solo=item.solo,
            )
            for item in payload.items
        ],
        total_cost=payload.total_cost,
        payment_method=payload.payment_method,
    )
    return CheckoutResponse(
        bookings=[BookingResponse.model_validate(b) for b in result.bookings],
        total_cost=result.total_cost,
        balance_after=result.balance_after,
        top_up_request=(
            TopUpResponse.model_validate(result.top_up_request)
            if result.top_up_request is not None
            else None
        ),
    )


@router.get("", response_model=List[BookingResponse])
def list_bookings(
    ctx: RequestContext = Depends(get_request_context),
    booking_service: BookingService = Depends(get_booking_service),
) -> List[BookingResponse]:
    return [BookingResponse.model_validate(b) for b in booking_service.list_bookings_for_user(ctx)]


@router.get("/{booking_id}", response_model=BookingResponse)
def get_booking(
    booking_id: str,
    ctx: RequestContext = Depends(get_request_context),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    return BookingResponse.model_validate(booking_service.get_booking(ctx, booking_id))


@router.post("/{booking_id}/cancel", response_model=BookingResponse)
def cancel_booking(
    booking_id: str,
    payload: Optional[BookingCancel] = None,
    ctx: RequestContext = Depends(get_request_context),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    """Cancel a booking; only administrators may skip the refund."""
    refund = payload.refund if payload is not None else True
    booking = booking_service.cancel_booking(ctx, booking_id, refund=refund)
    return BookingResponse.model_validate(booking)
