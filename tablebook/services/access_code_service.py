"""
Temporary access codes.

Issuers get a single-use door code valid for a short window. Each code is
mirrored to the door controller calendar once committed. Roles listed
in ``single_active_code_roles`` may hold only one live code at a time; the
check runs under a lock on the owner's account row so two concurrent
requests cannot both pass it.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.context import RequestContext
from ..core.enums import AccessCodeStatus
from ..core.exceptions import (
    AccessCodeLimitException,
    BusinessRuleException,
    ForbiddenException,
    NotFoundException,
    ValidationException,
)
from ..core.timezone_utils import resolve_now, to_local_naive
from ..core.ulid_helper import generate_redemption_secret
from ..integrations.calendar_mirror import (
    DOOR_CONTROL_RESOURCE,
    CalendarMirror,
    build_calendar_mirror,
)
from ..models.access_code import AccessCode
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from .base import BaseService

logger = logging.getLogger(__name__)


def resolve_window(starts_at: datetime, ends_at: Optional[datetime]) -> tuple[datetime, datetime]:
    start = to_local_naive(starts_at)
    if ends_at is None:
        return start, start + timedelta(minutes=settings.access_code_default_minutes)
    end = to_local_naive(ends_at)
    if end < start:
        # A time earlier than the start means the next day
        end += timedelta(days=1)
    if end == start:
        raise ValidationException("Access window must not be empty")
    return start, end


class AccessCodeService(BaseService):
    def __init__(
        self,
        db: Session,
        repositories: Optional[RepositoryFactory] = None,
        *,
        calendar_mirror: Optional[CalendarMirror] = None,
    ):
        super().__init__(db, repositories)
        self.code_repository = self.repositories.create_access_code_repository(db)
        self.user_repository = self.repositories.create_user_repository(db)
        self.calendar_mirror = calendar_mirror or build_calendar_mirror(settings)

    @BaseService.measure_operation("issue_access_code")
    def issue_code(
        self,
        ctx: RequestContext,
        starts_at: datetime,
        ends_at: Optional[datetime] = None,
        *,
        now: Optional[datetime] = None,
    ) -> AccessCode:
        if not ctx.has_any_role(settings.access_code_issuer_roles):
            raise ForbiddenException("Your account cannot issue access codes")

        current = resolve_now(now)
        valid_from, valid_until = resolve_window(starts_at, ends_at)
        if valid_until <= current:
            raise ValidationException("Access window has already ended")

        def work() -> AccessCode:
            self.user_repository.ensure_account(ctx.user_id, ctx.email)
            self.user_repository.lock(ctx.user_id)
            if ctx.has_any_role(settings.single_active_code_roles):
                live = self.code_repository.find_live_for_user(ctx.user_id, current)
                if live:
                    raise AccessCodeLimitException(
                        details={"active_code_until": live[0].valid_until.isoformat()}
                    )
            return self.code_repository.create(
                id=generate_redemption_secret(),
                user_id=ctx.user_id,
                user_email=ctx.email,
                valid_from=valid_from,
                valid_until=valid_until,
                status=AccessCodeStatus.ACTIVE.value,
            )

        code = self.run_atomic("issue_access_code", work)
        self.log_operation(
            "issue_access_code",
            user_id=ctx.user_id,
            valid_from=valid_from.isoformat(),
            valid_until=valid_until.isoformat(),
        )
        self._mirror_code(code)
        return code

    @BaseService.measure_operation("cancel_access_code")
    def cancel_code(self, ctx: RequestContext, code_id: str) -> AccessCode:
        """The owner or an administrator may cancel an active code."""

        def work() -> AccessCode:
            code = self.code_repository.get_by_id(code_id, for_update=True)
            if code is None:
                raise NotFoundException("Access code not found")
            if code.user_id != ctx.user_id and not ctx.is_admin:
                raise ForbiddenException("You can only cancel your own access codes")
            moved = self.code_repository.transition(
                code.id,
                AccessCodeStatus.ACTIVE.value,
                AccessCodeStatus.CANCELLED.value,
                cancelled_at=datetime.now(timezone.utc),
            )
            if not moved:
                raise BusinessRuleException(f"Access code is already {code.status}")
            return self.code_repository.reload(code.id)

        code = self.run_atomic("cancel_access_code", work)
        self.log_operation("cancel_access_code", owner=code.user_id, actor=ctx.user_id)
        try:
            self.calendar_mirror.delete_event(code.id)
        except Exception as e:
            prometheus_metrics.inc_side_effect_failure("calendar_delete")
            self.logger.error(
                "Failed to remove calendar event for access code %s: %s", code.id, e, exc_info=True
            )
        return code

    def list_codes(self, ctx: RequestContext) -> List[AccessCode]:
        return self.code_repository.list_for_user(ctx.user_id)

    def _mirror_code(self, code: AccessCode) -> None:
        try:
            self.calendar_mirror.create_event(
                resource_id=DOOR_CONTROL_RESOURCE,
                start=code.valid_from,
                end=code.valid_until,
                title=f"Access code: {code.user_email}",
                body=f"Door access from {code.valid_from:%H:%M} to {code.valid_until:%H:%M}",
                idempotency_key=code.id,
            )
        except Exception as e:
            prometheus_metrics.inc_side_effect_failure("calendar_create")
            self.logger.error(
                "Failed to mirror access code %s to calendar: %s", code.id, e, exc_info=True
            )
