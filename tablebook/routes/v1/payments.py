# tablebook/routes/v1/payments.py
"""
Payment notification routes - API v1

Endpoints:
    POST /notifications - Webhook called by the mailbox watcher that parses
        incoming FPS receipts. It authenticates with a shared secret in the
        body, not a user identity.
    GET /notifications - Stored notifications by outcome (admin)
"""

import logging
from typing import List

from fastapi import APIRouter, Depends, Query

from ...api.dependencies import get_reconciliation_service, require_admin
from ...core.context import RequestContext
from ...core.enums import ReconciliationOutcome
from ...schemas.top_up import (
    PaymentNotificationRequest,
    PaymentNotificationResponse,
    StoredPaymentNotificationResponse,
)
from ...services.reconciliation_service import ReconciliationService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["payments-v1"])


@router.post("/notifications", response_model=PaymentNotificationResponse)
def receive_payment_notification(
    payload: PaymentNotificationRequest,
    service: ReconciliationService = Depends(get_reconciliation_service),
) -> PaymentNotificationResponse:
    result = service.reconcile(payload.amount, payload.payer, payload.secret)
    return PaymentNotificationResponse(
        status=result.outcome.value,
        message=result.message,
        request_id=result.request.id if result.request else None,
        candidate_ids=list(result.candidate_ids),
    )


@router.get("/notifications", response_model=List[StoredPaymentNotificationResponse])
def list_payment_notifications(
    outcome: ReconciliationOutcome = Query(default=ReconciliationOutcome.AMBIGUOUS),
    ctx: RequestContext = Depends(require_admin),
    service: ReconciliationService = Depends(get_reconciliation_service),
) -> List[StoredPaymentNotificationResponse]:
    return [
        StoredPaymentNotificationResponse.model_validate(n)
        for n in service.list_notifications(ctx, outcome)
    ]
