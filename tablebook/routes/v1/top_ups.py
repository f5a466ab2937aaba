# tablebook/routes/v1/top_ups.py
"""
Top-up request routes - API v1

Endpoints:
    POST / - Request a top-up
    GET / - List the caller's requests
    GET /{request_id}/payment-qr - FPS payload to pay the request
    POST /{request_id}/proof - Attach proof of payment
    POST /{request_id}/approve - Manual approval (admin)
    POST /{request_id}/cancel - Withdraw a request
"""

from typing import List

from fastapi import APIRouter, Depends, status

from ...api.dependencies import get_request_context, get_top_up_service, require_admin
from ...core.context import RequestContext
from ...schemas.top_up import PaymentQrResponse, TopUpCreate, TopUpProof, TopUpResponse
from ...services.top_up_service import TopUpService

router = APIRouter(tags=["top-ups-v1"])


@router.post("", response_model=TopUpResponse, status_code=status.HTTP_201_CREATED)
def create_top_up(
    payload: TopUpCreate,
    ctx: RequestContext = Depends(get_request_context),
    service: TopUpService = Depends(get_top_up_service),
) -> TopUpResponse:
    request = service.create_request(ctx, payload.quantity, booking_id=payload.booking_id)
    return TopUpResponse.model_validate(request)


@router.get("", response_model=List[TopUpResponse])
def list_top_ups(
    ctx: RequestContext = Depends(get_request_context),
    service: TopUpService = Depends(get_top_up_service),
) -> List[TopUpResponse]:
    return [TopUpResponse.model_validate(r) for r in service.list_requests(ctx)]


@router.get("/{request_id}/payment-qr", response_model=PaymentQrResponse)
def get_payment_qr(
    request_id: str,
    ctx: RequestContext = Depends(get_request_context),
    service: TopUpService = Depends(get_top_up_service),
) -> PaymentQrResponse:
    qr = service.payment_qr_payload(ctx, request_id)
    return PaymentQrResponse(payload=qr.payload, amount=qr.amount, reference=qr.reference)


@router.post("/{request_id}/proof", response_model=TopUpResponse)
def submit_proof(
    request_id: str,
    payload: TopUpProof,
    ctx: RequestContext = Depends(get_request_context),
    service: TopUpService = Depends(get_top_up_service),
) -> TopUpResponse:
    return TopUpResponse.model_validate(
        service.submit_payment_proof(ctx, request_id, payload.proof_url)
    )


@router.post("/{request_id}/approve", response_model=TopUpResponse)
def approve_top_up(
    request_id: str,
    ctx: RequestContext = Depends(require_admin),
    service: TopUpService = Depends(get_top_up_service),
) -> TopUpResponse:
    return TopUpResponse.model_validate(service.approve_request(ctx, request_id))


@router.post("/{request_id}/cancel", response_model=TopUpResponse)
def cancel_top_up(
    request_id: str,
    ctx: RequestContext = Depends(get_request_context),
    service: TopUpService = Depends(get_top_up_service),
) -> TopUpResponse:
    return TopUpResponse.model_validate(service.cancel_request(ctx, request_id))
