"""
Door-side redemption of entry secrets.

The scanner posts whatever secret it read. Booking secrets open the door
from shortly before the booking until shortly after it ends; access codes
open it inside their window. Either way the secret is consumed in the same
transaction that validates it, so a copied QR code works once.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
import hmac
import logging
from typing import Literal, Optional

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.enums import AccessCodeStatus, BookingStatus
from ..core.exceptions import (
    NotFoundException,
    RedemptionRejectedException,
    UnauthorizedException,
    ValidationException,
)
from ..core.timezone_utils import resolve_now
from ..core.ulid_helper import generate_ulid
from ..integrations.calendar_mirror import (
    DOOR_CONTROL_RESOURCE,
    CalendarMirror,
    build_calendar_mirror,
)
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from .base import BaseService

logger = logging.getLogger(__name__)

INVALID_SECRET_MESSAGE = "Invalid or already used QR code"


@dataclass(frozen=True)
class RedemptionResult:
    kind: Literal["booking", "access_code"]
    reference_id: str
    user_email: str
    resource_id: Optional[str] = None


class RedemptionService(BaseService):
    def __init__(
        self,
        db: Session,
        repositories: Optional[RepositoryFactory] = None,
        *,
        calendar_mirror: Optional[CalendarMirror] = None,
    ):
        super().__init__(db, repositories)
        self.booking_repository = self.repositories.create_booking_repository(db)
        self.code_repository = self.repositories.create_access_code_repository(db)
        self.calendar_mirror = calendar_mirror or build_calendar_mirror(settings)

    def verify_door_key(self, key: Optional[str]) -> None:
        configured = settings.door_api_key.get_secret_value()
        if not configured or not key or not hmac.compare_digest(configured, key):
            raise UnauthorizedException("Unauthorized")

    @BaseService.measure_operation("redeem_secret")
    def redeem(self, secret: str, *, now: Optional[datetime] = None) -> RedemptionResult:
        if not secret:
            raise ValidationException("Missing QR secret")
        current = resolve_now(now)

        result = self.run_atomic("redeem_secret", lambda: self._redeem_tx(secret, current))

        self.log_operation("redeem_secret", kind=result.kind, reference_id=result.reference_id)
        self._open_door(result, current)
        return result

    def _redeem_tx(self, secret: str, now: datetime) -> RedemptionResult:
        booking = self.booking_repository.get_by_secret(secret)
        if booking is not None:
            if booking.redeemed_at is not None:
                raise NotFoundException(INVALID_SECRET_MESSAGE)
            if booking.status != BookingStatus.CONFIRMED.value:
                raise RedemptionRejectedException("Booking is not confirmed")
            grace = timedelta(minutes=settings.redemption_grace_minutes)
            if not (booking.starts_at - grace <= now <= booking.ends_at + grace):
                raise RedemptionRejectedException(
                    "Current time is outside the allowed booking window",
                    details={
                        "opens_at": (booking.starts_at - grace).isoformat(),
                        "closes_at": (booking.ends_at + grace).isoformat(),
                    },
                )
            if not self.booking_repository.mark_redeemed(booking.id, now):
                raise NotFoundException(INVALID_SECRET_MESSAGE)
            return RedemptionResult(
                kind="booking",
                reference_id=booking.id,
                user_email=booking.user_email,
                resource_id=booking.resource_id,
            )

        code = self.code_repository.get_by_id(secret, for_update=True)
        if code is None:
            raise NotFoundException(INVALID_SECRET_MESSAGE)
        if code.status != AccessCodeStatus.ACTIVE.value:
            raise RedemptionRejectedException("Access code is not active")
        if not (code.valid_from <= now < code.valid_until):
            raise RedemptionRejectedException("Current time is outside the access window")
        if not self.code_repository.transition(
            code.id,
            AccessCodeStatus.ACTIVE.value,
            AccessCodeStatus.EXPIRED.value,
            redeemed_at=now,
        ):
            raise NotFoundException(INVALID_SECRET_MESSAGE)
        return RedemptionResult(kind="access_code", reference_id=code.id, user_email=code.user_email)

    def _open_door(self, result: RedemptionResult, now: datetime) -> None:
        """Drop a short OPEN_DOOR event on the door controller's calendar."""
        try:
            self.calendar_mirror.create_event(
                resource_id=DOOR_CONTROL_RESOURCE,
                start=now,
                end=now + timedelta(minutes=1),
                title="OPEN_DOOR",
                body=f"Triggered by {result.kind} {result.reference_id} for {result.user_email}",
                idempotency_key=f"trigger-{generate_ulid()}",
            )
        except Exception as e:
            prometheus_metrics.inc_side_effect_failure("door")
            self.logger.error(
                "Failed to create door trigger event; door will not open: %s", e, exc_info=True
            )
