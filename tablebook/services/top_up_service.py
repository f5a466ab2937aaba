# tablebook/services/top_up_service.py
"""
Top-up requests.

A request records that a user intends to pay ``amount_cents`` externally
in exchange for ``quantity`` balance units. It is completed exactly once,
either by an administrator or by payment reconciliation; both go through
``complete_request`` so the status flip, the balance credit and the linked
booking's confirmation commit together.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
import logging
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.context import RequestContext
from ..core.enums import BookingStatus, LedgerReason, TopUpStatus
from ..core.exceptions import (
    BusinessRuleException,
    ForbiddenException,
    NotFoundException,
    ValidationException,
)
from ..models.booking import Booking
from ..models.top_up import TopUpRequest
from ..repositories.factory import RepositoryFactory
from ..utils.qr_payload import encode_payment_payload
from .base import BaseService
from .booking_service import OPEN_TOP_UP_STATUSES, BookingService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompletedTopUp:
    request: TopUpRequest
    booking: Optional[Booking] = None


@dataclass(frozen=True)
class PaymentQr:
    payload: str
    amount: Decimal
    reference: str


def cents_to_amount(cents: int) -> Decimal:
    return (Decimal(cents) / 100).quantize(Decimal("0.01"))


class TopUpService(BaseService):
    def __init__(
        self,
        db: Session,
        repositories: Optional[RepositoryFactory] = None,
        *,
        booking_service: Optional[BookingService] = None,
    ):
        super().__init__(db, repositories)
        self.request_repository = self.repositories.create_top_up_request_repository(db)
        self.booking_repository = self.repositories.create_booking_repository(db)
        self.user_repository = self.repositories.create_user_repository(db)
        self.notification_repository = self.repositories.create_user_notification_repository(db)
        self.booking_service = booking_service or BookingService(db, self.repositories)
        self.ledger = self.booking_service.ledger

    def _get_owned(self, ctx: RequestContext, request_id: str) -> TopUpRequest:
        request = self.request_repository.get_by_id(request_id)
        if request is None or (request.user_id != ctx.user_id and not ctx.is_admin):
            raise NotFoundException(f"Top-up request {request_id} not found")
        return request

    @BaseService.measure_operation("create_top_up_request")
    def create_request(
        self,
        ctx: RequestContext,
        quantity: int,
        *,
        booking_id: Optional[str] = None,
    ) -> TopUpRequest:
        if quantity <= 0:
            raise ValidationException("Top-up quantity must be positive")

        def work() -> TopUpRequest:
            self.user_repository.ensure_account(ctx.user_id, ctx.email)
            if booking_id is not None:
                booking = self.booking_repository.get_by_id(booking_id)
                if booking is None or booking.user_id != ctx.user_id:
                    raise NotFoundException(f"Booking {booking_id} not found")
                if booking.status != BookingStatus.PENDING_PAYMENT.value:
                    raise BusinessRuleException("Only bookings awaiting payment can be linked")
                if self.request_repository.get_by_booking_id(booking_id) is not None:
                    raise BusinessRuleException("Booking already has a top-up request")
            return self.request_repository.create(
                user_id=ctx.user_id,
                user_email=ctx.email,
                quantity=quantity,
                amount_cents=quantity * settings.token_price_cents,
                status=TopUpStatus.REQUESTING.value,
                booking_id=booking_id,
            )

        request = self.run_atomic("create_top_up_request", work)
        self.log_operation(
            "create_top_up_request",
            request_id=request.id,
            user_id=ctx.user_id,
            amount_cents=request.amount_cents,
        )
        return request

    @BaseService.measure_operation("submit_payment_proof")
    def submit_payment_proof(self, ctx: RequestContext, request_id: str, proof_url: str) -> TopUpRequest:
        if not proof_url:
            raise ValidationException("A proof-of-payment reference is required")

        def work() -> TopUpRequest:
            request = self._get_owned(ctx, request_id)
            moved = self.request_repository.transition(
                request.id,
                [TopUpStatus.REQUESTING.value],
                TopUpStatus.PROCESSING.value,
                proof_url=proof_url,
            )
            if not moved:
                raise BusinessRuleException(
                    f"Top-up request is {request.status}, proof can no longer be attached"
                )
            return self.request_repository.reload(request.id)

        return self.run_atomic("submit_payment_proof", work)

    def complete_request(
        self,
        request: TopUpRequest,
        *,
        from_statuses: Iterable[str],
        note: Optional[str] = None,
    ) -> Optional[CompletedTopUp]:
        """
        Complete ``request`` inside the caller's transaction.

        Returns None when the request already left ``from_statuses``, so a
        replayed notification or a double click credits nothing.
        """
        moved = self.request_repository.transition(
            request.id,
            list(from_statuses),
            TopUpStatus.COMPLETED.value,
            completed_at=datetime.now(timezone.utc),
            notes=note,
        )
        if not moved:
            return None

        self.ledger.credit(
            request.user_id,
            request.quantity,
            reason=LedgerReason.TOP_UP_CREDIT,
            reference_id=request.id,
            note=note,
        )

        booking = None
        if request.booking_id:
            booking = self.booking_service.settle_pending_booking(request.booking_id, request.quantity)

        if booking is not None:
            title = "Booking confirmed"
            body = (
                f"Your booking {booking.id} is confirmed and {request.quantity} units "
                "were added to your balance to settle it."
            )
        else:
            title = "Top-up successful"
            body = f"{request.quantity} units were added to your balance. Thank you!"
        self.notification_repository.create(user_id=request.user_id, title=title, body=body)

        return CompletedTopUp(request=self.request_repository.reload(request.id), booking=booking)

    @BaseService.measure_operation("approve_top_up_request")
    def approve_request(self, ctx: RequestContext, request_id: str) -> TopUpRequest:
        """Manual approval after an administrator checked the payment."""
        if not ctx.is_admin:
            raise ForbiddenException("Only administrators can approve top-ups")

        def work() -> CompletedTopUp:
            request = self.request_repository.get_by_id(request_id, for_update=True)
            if request is None:
                raise NotFoundException(f"Top-up request {request_id} not found")
            completed = self.complete_request(
                request, from_statuses=OPEN_TOP_UP_STATUSES, note=f"Approved by {ctx.email}"
            )
            if completed is None:
                raise BusinessRuleException(f"Top-up request is already {request.status}")
            return completed

        completed = self.run_atomic("approve_top_up_request", work)
        self.log_operation("approve_top_up_request", request_id=request_id, actor=ctx.user_id)
        if completed.booking is not None:
            self.booking_service.on_bookings_confirmed([completed.booking])
        return completed.request

    @BaseService.measure_operation("cancel_top_up_request")
    def cancel_request(self, ctx: RequestContext, request_id: str) -> TopUpRequest:
        """Withdraw an open request; a booking waiting on it is cancelled too."""

        def work() -> TopUpRequest:
            request = self._get_owned(ctx, request_id)
            moved = self.request_repository.transition(
                request.id,
                OPEN_TOP_UP_STATUSES,
                TopUpStatus.CANCELLED.value,
                cancelled_at=datetime.now(timezone.utc),
            )
            if not moved:
                raise BusinessRuleException(f"Top-up request is already {request.status}")
            if request.booking_id:
                self.booking_service.release_pending_booking(request.booking_id, ctx.user_id)
            return self.request_repository.reload(request.id)

        request = self.run_atomic("cancel_top_up_request", work)
        self.log_operation("cancel_top_up_request", request_id=request_id, actor=ctx.user_id)
        return request

    def payment_qr_payload(self, ctx: RequestContext, request_id: str) -> PaymentQr:
        """FPS payload the user scans to pay this request."""
        request = self._get_owned(ctx, request_id)
        if request.status not in OPEN_TOP_UP_STATUSES:
            raise BusinessRuleException(f"Top-up request is {request.status}")
        if not settings.fps_payee_id:
            raise BusinessRuleException("Payments are not configured")
        amount = cents_to_amount(request.amount_cents)
        return PaymentQr(
            payload=encode_payment_payload(settings.fps_payee_id, amount, request.id),
            amount=amount,
            reference=request.id,
        )

    def get_request(self, ctx: RequestContext, request_id: str) -> TopUpRequest:
        return self._get_owned(ctx, request_id)

    def list_requests(self, ctx: RequestContext) -> List[TopUpRequest]:
        return self.request_repository.list_for_user(ctx.user_id)
