"""Temporary access codes: issuer roles, windows and the single-live-code rule."""

import pytest

from tablebook.core.config import settings
from tablebook.core.enums import AccessCodeStatus
from tablebook.core.exceptions import (
    AccessCodeLimitException,
    BusinessRuleException,
    ForbiddenException,
    NotFoundException,
    ValidationException,
)
from tablebook.integrations.calendar_mirror import DOOR_CONTROL_RESOURCE
from tablebook.services.access_code_service import resolve_window

from ..helpers import NOW, at, next_day


class TestResolveWindow:
    def test_default_length(self):
        assert resolve_window(at(10), None) == (at(10), at(10, 30))

    def test_end_before_start_rolls_to_next_day(self):
        assert resolve_window(at(23), at(1)) == (at(23), at(1, day=next_day()))

    def test_empty_window(self):
        with pytest.raises(ValidationException):
            resolve_window(at(10), at(10))


class TestIssueCode:
    def test_vvip_gets_a_code(self, access_code_service, vvip_ctx):
        code = access_code_service.issue_code(vvip_ctx, at(10), now=NOW)

        assert code.id.startswith("qs")
        assert code.user_id == vvip_ctx.user_id
        assert code.valid_from == at(10)
        assert code.valid_until == at(10, 30)
        assert code.status == AccessCodeStatus.ACTIVE.value

    def test_code_is_mirrored_to_the_door_calendar(
        self, access_code_service, vvip_ctx, door_calendar
    ):
        code = access_code_service.issue_code(vvip_ctx, at(10), now=NOW)

        door_calendar.create_event.assert_called_once()
        kwargs = door_calendar.create_event.call_args.kwargs
        assert kwargs["resource_id"] == DOOR_CONTROL_RESOURCE
        assert kwargs["idempotency_key"] == code.id
        assert kwargs["start"] == at(10)
        assert kwargs["end"] == at(10, 30)
        assert code.id not in kwargs["body"]

    def test_mirror_failure_still_issues(self, access_code_service, vvip_ctx, door_calendar):
        door_calendar.create_event.side_effect = RuntimeError("calendar down")

        code = access_code_service.issue_code(vvip_ctx, at(10), now=NOW)

        assert access_code_service.code_repository.reload(code.id).status == "active"

    def test_regular_users_cannot_issue(self, access_code_service, user_ctx, door_calendar):
        with pytest.raises(ForbiddenException):
            access_code_service.issue_code(user_ctx, at(10), now=NOW)

        door_calendar.create_event.assert_not_called()

    def test_window_already_over(self, access_code_service, vvip_ctx):
        with pytest.raises(ValidationException):
            access_code_service.issue_code(vvip_ctx, at(6), at(7), now=NOW)

    def test_vvip_holds_one_live_code(self, access_code_service, vvip_ctx):
        access_code_service.issue_code(vvip_ctx, at(10), now=NOW)

        with pytest.raises(AccessCodeLimitException) as exc_info:
            access_code_service.issue_code(vvip_ctx, at(12), now=NOW)
        assert exc_info.value.code == "ACCESS_CODE_LIMIT"

    def test_ended_code_no_longer_counts(self, access_code_service, vvip_ctx):
        access_code_service.issue_code(vvip_ctx, at(8), now=NOW)

        code = access_code_service.issue_code(vvip_ctx, at(12), now=at(9))

        assert code.valid_from == at(12)

    def test_cancelled_code_no_longer_counts(self, access_code_service, vvip_ctx):
        first = access_code_service.issue_code(vvip_ctx, at(10), now=NOW)
        access_code_service.cancel_code(vvip_ctx, first.id)

        second = access_code_service.issue_code(vvip_ctx, at(12), now=NOW)

        assert second.id != first.id

    def test_admin_is_not_limited(self, access_code_service, admin_ctx):
        access_code_service.issue_code(admin_ctx, at(10), now=NOW)
        access_code_service.issue_code(admin_ctx, at(12), now=NOW)

        assert len(access_code_service.list_codes(admin_ctx)) == 2

    def test_limited_roles_are_configurable(self, access_code_service, admin_ctx, monkeypatch):
        monkeypatch.setattr(settings, "single_active_code_roles", {"vvip", "admin"})
        access_code_service.issue_code(admin_ctx, at(10), now=NOW)

        with pytest.raises(AccessCodeLimitException):
            access_code_service.issue_code(admin_ctx, at(12), now=NOW)


class TestCancelCode:
    def test_owner_cancels(self, access_code_service, vvip_ctx, door_calendar):
        code = access_code_service.issue_code(vvip_ctx, at(10), now=NOW)

        cancelled = access_code_service.cancel_code(vvip_ctx, code.id)

        assert cancelled.status == AccessCodeStatus.CANCELLED.value
        assert cancelled.cancelled_at is not None
        door_calendar.delete_event.assert_called_once_with(code.id)

    def test_mirror_failure_still_cancels(self, access_code_service, vvip_ctx, door_calendar):
        code = access_code_service.issue_code(vvip_ctx, at(10), now=NOW)
        door_calendar.delete_event.side_effect = RuntimeError("calendar down")

        cancelled = access_code_service.cancel_code(vvip_ctx, code.id)

        assert cancelled.status == AccessCodeStatus.CANCELLED.value

    def test_admin_cancels_someone_elses_code(self, access_code_service, vvip_ctx, admin_ctx):
        code = access_code_service.issue_code(vvip_ctx, at(10), now=NOW)
        assert access_code_service.cancel_code(admin_ctx, code.id).status == "cancelled"

    def test_other_user_is_refused(self, access_code_service, vvip_ctx, user_ctx):
        code = access_code_service.issue_code(vvip_ctx, at(10), now=NOW)
        with pytest.raises(ForbiddenException):
            access_code_service.cancel_code(user_ctx, code.id)

    def test_twice(self, access_code_service, vvip_ctx, door_calendar):
        code = access_code_service.issue_code(vvip_ctx, at(10), now=NOW)
        access_code_service.cancel_code(vvip_ctx, code.id)

        with pytest.raises(BusinessRuleException):
            access_code_service.cancel_code(vvip_ctx, code.id)
        door_calendar.delete_event.assert_called_once_with(code.id)

    def test_unknown_code(self, access_code_service, vvip_ctx):
        with pytest.raises(NotFoundException):
            access_code_service.cancel_code(vvip_ctx, "qs000000000000000000000000")
