"""Settings, roles, request context, exceptions and timezone helpers."""

from datetime import datetime

from fastapi import HTTPException
from pydantic import ValidationError
import pytest
import pytz

from tablebook.core.config import Settings
from tablebook.core.context import RequestContext
from tablebook.core.enums import Role
from tablebook.core.exceptions import (
    AccessCodeLimitException,
    InsufficientBalanceException,
    InvalidSpanException,
    NotFoundException,
    ResourceUnavailableException,
    ServiceException,
    SlotConflictException,
    TransientStoreConflictException,
)
from tablebook.core.timezone_utils import resolve_now, to_local_naive
from tablebook.core.ulid_helper import generate_redemption_secret, generate_ulid, is_valid_ulid
from tablebook.domain.pricing import SlotPriceTable
from tablebook.errors import problem_type


class TestSettings:
    def test_privileged_discount_defaults(self):
        config = Settings()
        assert config.privileged_discount_roles == {"vip", "vvip", "admin"}
        assert SlotPriceTable.from_settings(config).privileged_discount_percent == 15

    def test_role_sets_are_lowercased(self):
        config = Settings(privileged_discount_roles={" VIP", "Admin"})
        assert config.privileged_discount_roles == {"vip", "admin"}

    @pytest.mark.parametrize("percent", [-1, 101])
    def test_discount_percent_is_bounded(self, percent):
        with pytest.raises(ValidationError):
            Settings(privileged_discount_percent=percent)

    def test_only_resource_ids_is_derived(self):
        derived = [name for name, value in vars(Settings).items() if isinstance(value, property)]
        assert derived == ["resource_ids"]
        assert Settings().resource_ids == ["room-1", "room-2"]


class TestRole:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("admin", Role.ADMIN),
            ("Admin", Role.ADMIN),
            (" VVIP ", Role.VVIP),
            ("Vip", Role.VIP),
            ("user", Role.USER),
            ("superuser", Role.USER),
            ("", Role.USER),
            (None, Role.USER),
        ],
    )
    def test_parse(self, raw, expected):
        assert Role.parse(raw) is expected


class TestRequestContext:
    def test_from_raw_resolves_role_once(self):
        ctx = RequestContext.from_raw("u1", "u1@example.com", "ADMIN")
        assert ctx.is_admin
        assert ctx.role is Role.ADMIN

    def test_vip_and_vvip_are_not_admin(self):
        for role in (Role.VIP, Role.VVIP):
            assert not RequestContext("u1", "u1@example.com", role).is_admin

    def test_has_any_role_is_case_insensitive(self):
        ctx = RequestContext("u1", "u1@example.com", Role.VVIP)
        assert ctx.has_any_role({"VVIP", "admin"})
        assert not ctx.has_any_role({"admin"})


class TestExceptions:
    @pytest.mark.parametrize(
        "exc, status_code, code",
        [
            (InsufficientBalanceException(), 422, "INSUFFICIENT_BALANCE"),
            (SlotConflictException(), 409, "SLOT_CONFLICT"),
            (ResourceUnavailableException(), 409, "RESOURCE_UNAVAILABLE"),
            (InvalidSpanException("bad"), 400, "INVALID_SPAN"),
            (TransientStoreConflictException(), 503, "TRANSIENT_STORE_CONFLICT"),
            (AccessCodeLimitException(), 409, "ACCESS_CODE_LIMIT"),
            (NotFoundException("missing"), 404, "NotFoundException"),
        ],
    )
    def test_http_mapping(self, exc, status_code, code):
        http_exc = exc.to_http_exception()
        assert isinstance(http_exc, HTTPException)
        assert http_exc.status_code == status_code
        assert http_exc.detail["code"] == code

    def test_service_exception_is_500(self):
        assert ServiceException("boom").to_http_exception().status_code == 500

    def test_details_travel_with_the_error(self):
        exc = SlotConflictException(details={"resource_id": "room-1"})
        assert exc.to_dict() == {
            "message": "Slot no longer available",
            "code": "SLOT_CONFLICT",
            "details": {"resource_id": "room-1"},
        }


class TestTime:
    def test_aware_datetimes_become_venue_wall_clock(self):
        utc = datetime(2030, 1, 14, 2, 0, tzinfo=pytz.UTC)
        assert to_local_naive(utc) == datetime(2030, 1, 14, 10, 0)

    def test_naive_datetimes_pass_through(self):
        value = datetime(2030, 1, 14, 10, 0)
        assert to_local_naive(value) is value
        assert resolve_now(value) is value

    def test_resolve_now_defaults_to_naive_local_time(self):
        assert resolve_now(None).tzinfo is None


class TestIdentifiers:
    def test_ulid(self):
        assert is_valid_ulid(generate_ulid())
        assert not is_valid_ulid("not-a-ulid")

    def test_redemption_secret_shape(self):
        secret = generate_redemption_secret()
        assert secret.startswith("qs")
        assert len(secret) == 26
        int(secret[2:], 16)
        assert secret != generate_redemption_secret()


@pytest.mark.parametrize(
    "code, expected",
    [
        ("INSUFFICIENT_BALANCE", "urn:tablebook:problem:insufficient-balance"),
        ("NotFoundException", "urn:tablebook:problem:not-found"),
        ("REQUEST_VALIDATION_ERROR", "urn:tablebook:problem:request-validation-error"),
    ],
)
def test_problem_type(code, expected):
    assert problem_type(code) == expected
