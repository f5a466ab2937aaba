# tablebook/services/booking_service.py
"""
Booking Ledger.

Owns the transactional create and cancel flows. A checkout is one atomic
unit: resource rows are locked, current bookings are re-read, every item is
assigned a resource (earlier items count as holds for later ones), the
balance is debited once for the total, and the rows are written. Calendar
mirroring and the redemption email run only after commit and never undo a
booking.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
import logging
from typing import List, Optional, Sequence

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.context import RequestContext
from ..core.enums import BookingStatus, LedgerReason, PaymentMethod, TopUpStatus
from ..core.exceptions import (
    CancellationNotAllowedException,
    ConflictException,
    ForbiddenException,
    NotFoundException,
    ResourceUnavailableException,
    SlotConflictException,
    ValidationException,
)
from ..core.timezone_utils import resolve_now, to_local_naive
from ..core.ulid_helper import generate_redemption_secret, generate_ulid
from ..domain import resource_assignment, slot_calendar
from ..domain.pricing import SlotPriceTable
from ..domain.slot_calendar import BookingInterval, SlotSpan
from ..integrations.calendar_mirror import CalendarMirror, build_calendar_mirror
from ..integrations.redemption_mailer import (
    BookingSummary,
    RedemptionMailer,
    build_redemption_mailer,
)
from ..models.booking import Booking
from ..models.top_up import TopUpRequest
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.booking_repository import ACTIVE_STATUSES
from ..repositories.factory import RepositoryFactory
from .availability_service import min_span_for, to_intervals
from .balance_ledger_service import BalanceLedgerService
from .base import BaseService

logger = logging.getLogger(__name__)

OPEN_TOP_UP_STATUSES = (TopUpStatus.REQUESTING.value, TopUpStatus.PROCESSING.value)


@dataclass(frozen=True)
class BookingItem:
    """One contiguous span the caller wants booked."""

    first_slot: datetime
    last_slot: datetime
    resource_id: Optional[str] = None
    solo: bool = False


@dataclass
class CheckoutResult:
    bookings: List[Booking]
    total_cost: int
    balance_after: Optional[int] = None
    top_up_request: Optional[TopUpRequest] = None


@dataclass(frozen=True)
class _PlannedBooking:
    item: BookingItem
    span: SlotSpan
    resource_id: str
    quoted_cost: int


def allocate(total: int, weights: Sequence[int]) -> List[int]:
    """
    Split ``total`` across items proportionally to ``weights``.

    Largest-remainder rounding, so the parts always sum to ``total``.
    """
    if not weights:
        return []
    weight_sum = sum(weights)
    if weight_sum <= 0:
        parts = [0] * len(weights)
        parts[0] = total
        return parts
    raw = [total * w / weight_sum for w in weights]
    parts = [int(value) for value in raw]
    remainder = total - sum(parts)
    order = sorted(range(len(raw)), key=lambda i: (raw[i] - parts[i]), reverse=True)
    for i in order[:remainder]:
        parts[i] += 1
    return parts


class BookingService(BaseService):
    """Create, cancel and settle bookings."""

    def __init__(
        self,
        db: Session,
        repositories: Optional[RepositoryFactory] = None,
        *,
        calendar_mirror: Optional[CalendarMirror] = None,
        mailer: Optional[RedemptionMailer] = None,
        ledger: Optional[BalanceLedgerService] = None,
    ):
        super().__init__(db, repositories)
        self.booking_repository = self.repositories.create_booking_repository(db)
        self.resource_repository = self.repositories.create_resource_repository(db)
        self.user_repository = self.repositories.create_user_repository(db)
        self.top_up_repository = self.repositories.create_top_up_request_repository(db)
        self.ledger = ledger or BalanceLedgerService(db, self.repositories)
        self.calendar_mirror = calendar_mirror or build_calendar_mirror(settings)
        self.mailer = mailer or build_redemption_mailer(settings)
        self.price_table = SlotPriceTable.from_settings(settings)

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    @BaseService.measure_operation("create_booking")
    def create_booking(
        self,
        ctx: RequestContext,
        item: BookingItem,
        *,
        cost: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> Booking:
        """Book a single span paid from balance."""
        result = self.create_multiple_bookings(ctx, [item], total_cost=cost, now=now)
        return result.bookings[0]

    @BaseService.measure_operation("create_multiple_bookings")
    def create_multiple_bookings(
        self,
        ctx: RequestContext,
        items: Sequence[BookingItem],
        *,
        total_cost: Optional[int] = None,
        payment_method: PaymentMethod = PaymentMethod.BALANCE,
        now: Optional[datetime] = None,
    ) -> CheckoutResult:
        """
        Book every item or none of them.

        ``total_cost`` is an administrator override of the price table. It is
        debited once and split across the bookings in proportion to their
        quoted prices.
        External and mixed payments leave the booking pending behind a
        top-up request for the unpaid part.
        """
        if not items:
            raise ValidationException("At least one booking item is required")
        if total_cost is not None and total_cost < 0:
            raise ValidationException("Total cost must not be negative")
        if total_cost is not None and not ctx.is_admin:
            raise ForbiddenException("Only administrators can set the booking price")
        if payment_method is not PaymentMethod.BALANCE and len(items) != 1:
            raise ValidationException("External and mixed payments cover a single booking")

        current = resolve_now(now)

        result = self.run_atomic(
            "create_bookings",
            lambda: self._create_bookings_tx(ctx, items, total_cost, payment_method, current),
        )

        confirmed = [b for b in result.bookings if b.status == BookingStatus.CONFIRMED.value]
        prometheus_metrics.inc_booking_event("created", len(result.bookings))
        self.log_operation(
            "create_bookings",
            user_id=ctx.user_id,
            booking_ids=[b.id for b in result.bookings],
            total_cost=result.total_cost,
            payment_method=payment_method.value,
        )
        self._handle_post_booking_tasks(confirmed)
        return result

    def _create_bookings_tx(
        self,
        ctx: RequestContext,
        items: Sequence[BookingItem],
        total_cost: Optional[int],
        payment_method: PaymentMethod,
        now: datetime,
    ) -> CheckoutResult:
        # Lock the resource set so concurrent checkouts serialise before re-reading bookings
        resources = self.resource_repository.list_active(for_update=True)
        resource_ids = [resource.id for resource in resources]
        resources_by_id = {resource.id: resource for resource in resources}
        if not resource_ids:
            raise ResourceUnavailableException("No bookable resources are configured")

        self.user_repository.ensure_account(ctx.user_id, ctx.email)
        plans = self._plan(ctx, items, resource_ids, now)

        quoted = [plan.quoted_cost for plan in plans]
        total = sum(quoted) if total_cost is None else total_cost
        costs = quoted if total_cost is None else allocate(total, quoted)

        booking_ids = [generate_ulid() for _ in plans]
        exempt = ctx.has_any_role(settings.balance_exempt_roles)
        balance_after: Optional[int] = None
        balance_paid = [0] * len(plans)
        status = BookingStatus.CONFIRMED

        if payment_method is PaymentMethod.BALANCE:
            if not exempt and total > 0:
                balance_after = self.ledger.debit(
                    ctx.user_id,
                    total,
                    reason=LedgerReason.BOOKING_DEBIT,
                    reference_id=booking_ids[0],
                )
                balance_paid = list(costs)
        else:
            available = 0
            if payment_method is PaymentMethod.MIXED:
                account = self.user_repository.lock(ctx.user_id)
                available = min(account.balance if account else 0, total)
            if available > 0:
                balance_after = self.ledger.debit(
                    ctx.user_id,
                    available,
                    reason=LedgerReason.BOOKING_DEBIT,
                    reference_id=booking_ids[0],
                )
                balance_paid = [available]
            if available < total:
                status = BookingStatus.PENDING_PAYMENT

        bookings: List[Booking] = []
        for booking_id, plan, cost, paid in zip(booking_ids, plans, costs, balance_paid):
            bookings.append(
                self.booking_repository.create(
                    id=booking_id,
                    resource=resources_by_id[plan.resource_id],
                    user_id=ctx.user_id,
                    user_email=ctx.email,
                    booking_date=plan.span.booking_date,
                    start_time=plan.span.start_time,
                    end_time=plan.span.end_time,
                    starts_at=plan.span.start,
                    ends_at=plan.span.end,
                    slot_count=plan.span.slot_count,
                    cost=cost,
                    balance_paid=paid,
                    external_paid=0,
                    payment_method=payment_method.value,
                    is_solo=plan.item.solo,
                    status=status.value,
                    redemption_secret=generate_redemption_secret(),
                    confirmed_at=(
                        datetime.now(timezone.utc) if status is BookingStatus.CONFIRMED else None
                    ),
                )
            )

        top_up_request = None
        if status is BookingStatus.PENDING_PAYMENT:
            shortfall = total - balance_paid[0]
            top_up_request = self.top_up_repository.create(
                user_id=ctx.user_id,
                user_email=ctx.email,
                quantity=shortfall,
                amount_cents=shortfall * settings.token_price_cents,
                status=TopUpStatus.REQUESTING.value,
                booking_id=bookings[0].id,
            )

        return CheckoutResult(
            bookings=bookings,
            total_cost=total,
            balance_after=balance_after,
            top_up_request=top_up_request,
        )

    def _plan(
        self,
        ctx: RequestContext,
        items: Sequence[BookingItem],
        resource_ids: List[str],
        now: datetime,
    ) -> List[_PlannedBooking]:
        """Validate every item and pick its resource against a fresh read."""
        min_slots = min_span_for(ctx)
        spans = [
            slot_calendar.build_span(
                to_local_naive(item.first_slot),
                to_local_naive(item.last_slot),
                now=now,
                max_slots=settings.max_span_slots,
                min_slots=min_slots,
            )
            for item in items
        ]
        first_day = min(span.booking_date for span in spans) - timedelta(days=1)
        last_day = max(span.slots[-1].date() for span in spans)
        existing = to_intervals(self.booking_repository.get_active_for_dates(first_day, last_day))

        holds: List[BookingInterval] = []
        plans: List[_PlannedBooking] = []
        for item, span in zip(items, spans):
            if item.resource_id is not None:
                if item.resource_id not in resource_ids:
                    raise ValidationException(
                        f"Unknown resource {item.resource_id}",
                        details={"resource_id": item.resource_id},
                    )
                if not resource_assignment.is_free(item.resource_id, span.slots, existing + holds):
                    raise SlotConflictException(
                        details={
                            "resource_id": item.resource_id,
                            "start": span.start.isoformat(),
                            "end": span.end.isoformat(),
                        }
                    )
                resource_id = item.resource_id
            else:
                assigned = resource_assignment.assign(span.slots, resource_ids, existing, holds)
                if assigned is None:
                    raise ResourceUnavailableException(
                        details={"start": span.start.isoformat(), "end": span.end.isoformat()}
                    )
                resource_id = assigned

            holds.append(BookingInterval(resource_id=resource_id, start=span.start, end=span.end))
            plans.append(
                _PlannedBooking(
                    item=item,
                    span=span,
                    resource_id=resource_id,
                    quoted_cost=self.price_table.quote(
                        span.slots,
                        solo=item.solo,
                        privileged=ctx.has_any_role(settings.privileged_discount_roles),
                    ),
                )
            )
        return plans

    # ------------------------------------------------------------------
    # Cancel
    # ------------------------------------------------------------------

    def can_cancel(self, ctx: RequestContext, booking: Booking, now: Optional[datetime] = None) -> bool:
        try:
            self._check_cancellable(ctx, booking, resolve_now(now))
        except (CancellationNotAllowedException, ForbiddenException):
            return False
        return True

    def _check_cancellable(self, ctx: RequestContext, booking: Booking, now: datetime) -> None:
        if booking.user_id != ctx.user_id and not ctx.is_admin:
            raise ForbiddenException("You can only cancel your own bookings")
        if booking.status == BookingStatus.CANCELLED.value:
            raise CancellationNotAllowedException("Booking is already cancelled")
        if now >= booking.starts_at:
            raise CancellationNotAllowedException("Booking has already started")
        if ctx.is_admin:
            return
        deadline = booking.starts_at - timedelta(hours=settings.cancellation_notice_hours)
        if now >= deadline:
            raise CancellationNotAllowedException(
                f"Bookings can only be cancelled more than "
                f"{settings.cancellation_notice_hours} hours before they start",
                details={"deadline": deadline.isoformat()},
            )

    @BaseService.measure_operation("cancel_booking")
    def cancel_booking(
        self,
        ctx: RequestContext,
        booking_id: str,
        *,
        refund: bool = True,
        now: Optional[datetime] = None,
    ) -> Booking:
        """
        Cancel a booking, refunding the balance-paid part when ``refund``.

        Only administrators may waive the refund.
        """
        current = resolve_now(now)
        if not ctx.is_admin:
            refund = True

        booking, was_confirmed = self.run_atomic(
            "cancel_booking", lambda: self._cancel_tx(ctx, booking_id, refund, current)
        )

        prometheus_metrics.inc_booking_event("cancelled")
        self.log_operation(
            "cancel_booking",
            booking_id=booking.id,
            actor=ctx.user_id,
            refunded=booking.refunded_amount,
        )
        if was_confirmed:
            try:
                self.calendar_mirror.delete_event(booking.id)
            except Exception as e:
                prometheus_metrics.inc_side_effect_failure("calendar_delete")
                self.logger.error(
                    "Failed to remove calendar event for booking %s: %s", booking.id, e, exc_info=True
                )
        return booking

    def _cancel_tx(
        self, ctx: RequestContext, booking_id: str, refund: bool, now: datetime
    ) -> tuple[Booking, bool]:
        booking = self.booking_repository.get_by_id(booking_id, for_update=True)
        if booking is None:
            raise NotFoundException(f"Booking {booking_id} not found")
        self._check_cancellable(ctx, booking, now)

        was_confirmed = booking.status == BookingStatus.CONFIRMED.value
        refund_amount = booking.balance_paid if refund else 0
        changed = self.booking_repository.transition(
            booking.id,
            ACTIVE_STATUSES,
            BookingStatus.CANCELLED.value,
            cancelled_at=datetime.now(timezone.utc),
            cancelled_by_id=ctx.user_id,
            refunded_amount=refund_amount,
        )
        if not changed:
            raise ConflictException("Booking was changed by another request, please reload")

        if refund_amount > 0:
            self.ledger.credit(
                booking.user_id,
                refund_amount,
                reason=LedgerReason.BOOKING_REFUND,
                reference_id=booking.id,
            )

        request = self.top_up_repository.get_by_booking_id(booking.id)
        if request is not None:
            self.top_up_repository.transition(
                request.id,
                OPEN_TOP_UP_STATUSES,
                TopUpStatus.CANCELLED.value,
                cancelled_at=datetime.now(timezone.utc),
            )
        return self.booking_repository.reload(booking.id), was_confirmed

    # ------------------------------------------------------------------
    # Settlement of pending bookings (joins the caller's transaction)
    # ------------------------------------------------------------------

    def settle_pending_booking(self, booking_id: str, quantity: int) -> Optional[Booking]:
        """
        Confirm a pending booking whose external part was just credited.

        The credited ``quantity`` is debited straight back into the booking
        so the ledger shows both legs. Returns None when the booking is no
        longer pending.
        """
        booking = self.booking_repository.get_by_id(booking_id, for_update=True)
        if booking is None or booking.status != BookingStatus.PENDING_PAYMENT.value:
            return None
        if quantity > 0:
            self.ledger.debit(
                booking.user_id,
                quantity,
                reason=LedgerReason.BOOKING_DEBIT,
                reference_id=booking.id,
            )
        self.booking_repository.transition(
            booking.id,
            [BookingStatus.PENDING_PAYMENT.value],
            BookingStatus.CONFIRMED.value,
            external_paid=quantity,
            confirmed_at=datetime.now(timezone.utc),
        )
        return self.booking_repository.reload(booking.id)

    def release_pending_booking(self, booking_id: str, actor_id: str) -> Optional[Booking]:
        """
        Cancel a booking still waiting for its external payment.

        Used when the linked top-up request is withdrawn; the balance-paid
        part of a mixed payment goes back to the user. No cancellation
        window applies because the booking was never confirmed.
        """
        booking = self.booking_repository.get_by_id(booking_id, for_update=True)
        if booking is None or booking.status != BookingStatus.PENDING_PAYMENT.value:
            return None
        self.booking_repository.transition(
            booking.id,
            [BookingStatus.PENDING_PAYMENT.value],
            BookingStatus.CANCELLED.value,
            cancelled_at=datetime.now(timezone.utc),
            cancelled_by_id=actor_id,
            refunded_amount=booking.balance_paid,
        )
        if booking.balance_paid > 0:
            self.ledger.credit(
                booking.user_id,
                booking.balance_paid,
                reason=LedgerReason.BOOKING_REFUND,
                reference_id=booking.id,
            )
        return self.booking_repository.reload(booking.id)

    def on_bookings_confirmed(self, bookings: Sequence[Booking]) -> None:
        """Post-commit hook for bookings confirmed outside ``create_*``."""
        prometheus_metrics.inc_booking_event("confirmed", len(bookings))
        self._handle_post_booking_tasks(bookings)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_booking(self, ctx: RequestContext, booking_id: str) -> Booking:
        booking = self.booking_repository.get_by_id(booking_id)
        if booking is None or (booking.user_id != ctx.user_id and not ctx.is_admin):
            raise NotFoundException(f"Booking {booking_id} not found")
        return booking

    @BaseService.measure_operation("list_bookings_for_user")
    def list_bookings_for_user(self, ctx: RequestContext) -> List[Booking]:
        return self.booking_repository.list_for_user(ctx.user_id)

    # ------------------------------------------------------------------
    # Side effects
    # ------------------------------------------------------------------

    def _handle_post_booking_tasks(self, bookings: Sequence[Booking]) -> None:
        """Mirror to the calendar and send the entry code; failures are only logged."""
        for booking in bookings:
            resource_name = booking.resource.name if booking.resource else booking.resource_id
            try:
                self.calendar_mirror.create_event(
                    resource_id=booking.resource_id,
                    start=booking.starts_at,
                    end=booking.ends_at,
                    title=f"{resource_name}: {booking.user_email}",
                    body=f"Booking {booking.id}, {booking.slot_count} slots",
                    idempotency_key=booking.id,
                )
            except Exception as e:
                prometheus_metrics.inc_side_effect_failure("calendar_create")
                self.logger.error(
                    "Failed to mirror booking %s to calendar: %s", booking.id, e, exc_info=True
                )

            try:
                self.mailer.send_redemption_email(
                    booking.user_email,
                    BookingSummary(
                        booking_id=booking.id,
                        resource_name=resource_name,
                        starts_at=booking.starts_at,
                        ends_at=booking.ends_at,
                        cost=booking.cost,
                    ),
                    booking.redemption_secret,
                )
            except Exception as e:
                prometheus_metrics.inc_side_effect_failure("email")
                self.logger.error(
                    "Failed to send redemption email for booking %s: %s",
                    booking.id,
                    e,
                    exc_info=True,
                )
