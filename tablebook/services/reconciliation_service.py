# tablebook/services/reconciliation_service.py
"""
Payment reconciliation.

An external source reports "HKD x was received from payer y". The amount
is matched exactly (integer cents) against open top-up requests:

* no candidate: nothing happens, the notification is kept for review;
* one candidate: it is completed, credited and its booking confirmed;
* several candidates: nothing is approved. Guessing could credit the
  wrong account, so an operator resolves it from the stored notification.

The payer label is stored for the audit trail only and never used to pick
between candidates.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
import hmac
import logging
from typing import List, Optional, Tuple, Union

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.context import RequestContext
from ..core.enums import ReconciliationOutcome
from ..core.exceptions import ForbiddenException, UnauthorizedException, ValidationException
from ..models.booking import Booking
from ..models.top_up import PaymentNotification, TopUpRequest
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .top_up_service import TopUpService

logger = logging.getLogger(__name__)

AUTO_APPROVAL_NOTE = "Automatically approved based on payment from: {payer}"

_MESSAGES = {
    ReconciliationOutcome.MATCHED: "Request {request_id} processed.",
    ReconciliationOutcome.NO_MATCH: "No pending request for this amount.",
    ReconciliationOutcome.AMBIGUOUS: "Multiple requests match this amount.",
}


@dataclass(frozen=True)
class ReconciliationResult:
    outcome: ReconciliationOutcome
    amount_cents: int
    request: Optional[TopUpRequest] = None
    booking: Optional[Booking] = None
    candidate_ids: Tuple[str, ...] = ()
    notification_id: Optional[str] = None

    @property
    def matched(self) -> bool:
        return self.outcome is ReconciliationOutcome.MATCHED

    @property
    def ambiguous(self) -> bool:
        return self.outcome is ReconciliationOutcome.AMBIGUOUS

    @property
    def message(self) -> str:
        return _MESSAGES[self.outcome].format(
            request_id=self.request.id if self.request else ""
        )


def parse_amount_cents(amount: Union[Decimal, int, float, str]) -> int:
    """
    Convert a currency amount to integer cents without rounding.

    Floats go through ``str`` so ``100.1`` stays 10010 rather than picking
    up binary noise; anything finer than a cent is rejected.
    """
    try:
        value = Decimal(str(amount))
    except (InvalidOperation, ValueError) as exc:
        raise ValidationException("Invalid amount") from exc
    if not value.is_finite() or value <= 0:
        raise ValidationException("Invalid amount", details={"amount": str(amount)})
    cents = value * 100
    if cents != cents.to_integral_value():
        raise ValidationException(
            "Amount has more than two decimal places", details={"amount": str(amount)}
        )
    return int(cents)


class ReconciliationService(BaseService):
    def __init__(
        self,
        db: Session,
        repositories: Optional[RepositoryFactory] = None,
        *,
        top_up_service: Optional[TopUpService] = None,
    ):
        super().__init__(db, repositories)
        self.request_repository = self.repositories.create_top_up_request_repository(db)
        self.notification_repository = self.repositories.create_payment_notification_repository(db)
        self.top_up_service = top_up_service or TopUpService(db, self.repositories)

    def verify_secret(self, shared_secret: Optional[str]) -> None:
        configured = settings.payment_webhook_secret.get_secret_value()
        if not configured or not shared_secret:
            raise UnauthorizedException("Unauthorized")
        if not hmac.compare_digest(configured.encode("utf-8"), shared_secret.encode("utf-8")):
            raise UnauthorizedException("Unauthorized")

    @BaseService.measure_operation("reconcile_payment")
    def reconcile(
        self,
        amount: Union[Decimal, int, float, str],
        payer_label: Optional[str],
        shared_secret: Optional[str],
        *,
        now: Optional[datetime] = None,
    ) -> ReconciliationResult:
        """
        Match one payment notification.

        The secret is checked before anything else; a bad secret leaves no
        trace in the store.
        """
        try:
            self.verify_secret(shared_secret)
        except UnauthorizedException:
            self.logger.error("Rejected payment notification with missing or wrong secret")
            raise

        amount_cents = parse_amount_cents(amount)
        payer = (payer_label or "").strip() or None
        self.logger.info(
            "Processing payment notification",
            extra={"amount_cents": amount_cents, "payer": payer or "N/A"},
        )

        result = self.run_atomic(
            "reconcile_payment", lambda: self._reconcile_tx(amount_cents, payer)
        )

        prometheus_metrics.inc_reconciliation(result.outcome.value)
        if result.ambiguous:
            self.logger.warning(
                "Ambiguous payment of %s cents matches %d requests; manual approval required",
                amount_cents,
                len(result.candidate_ids),
                extra={"candidate_ids": list(result.candidate_ids)},
            )
        elif result.matched:
            self.log_operation(
                "reconcile_payment",
                request_id=result.request.id if result.request else None,
                amount_cents=amount_cents,
            )
            if result.booking is not None:
                self.top_up_service.booking_service.on_bookings_confirmed([result.booking])
        else:
            self.logger.warning("No pending top-up request for %s cents", amount_cents)
        return result

    def _reconcile_tx(self, amount_cents: int, payer: Optional[str]) -> ReconciliationResult:
        statuses = sorted(settings.reconcile_statuses)
        candidates = self.request_repository.find_pending_by_amount(amount_cents, statuses)
        candidate_ids = tuple(candidate.id for candidate in candidates)

        request = None
        booking = None
        if len(candidates) == 1:
            completed = self.top_up_service.complete_request(
                candidates[0],
                from_statuses=statuses,
                note=AUTO_APPROVAL_NOTE.format(payer=payer or "Unknown"),
            )
            if completed is not None:
                request, booking = completed.request, completed.booking

        if request is not None:
            outcome = ReconciliationOutcome.MATCHED
        elif len(candidates) > 1:
            outcome = ReconciliationOutcome.AMBIGUOUS
        else:
            outcome = ReconciliationOutcome.NO_MATCH

        notification = self.notification_repository.create(
            amount_cents=amount_cents,
            payer_label=payer,
            outcome=outcome.value,
            matched_request_id=request.id if request else None,
            candidate_ids=list(candidate_ids) or None,
        )
        return ReconciliationResult(
            outcome=outcome,
            amount_cents=amount_cents,
            request=request,
            booking=booking,
            candidate_ids=candidate_ids if outcome is ReconciliationOutcome.AMBIGUOUS else (),
            notification_id=notification.id,
        )

    def list_notifications(
        self, ctx: RequestContext, outcome: ReconciliationOutcome
    ) -> List[PaymentNotification]:
        """Stored notifications with ``outcome``, newest first, for manual follow-up."""
        if not ctx.is_admin:
            raise ForbiddenException("Only administrators can review payment notifications")
        return self.notification_repository.list_by_outcome(outcome.value)
