"""Service fixtures sharing the test session and mocked collaborators."""

from unittest.mock import Mock

import pytest

from tablebook.services.access_code_service import AccessCodeService
from tablebook.services.availability_service import AvailabilityService
from tablebook.services.notification_service import NotificationService
from tablebook.services.reconciliation_service import ReconciliationService
from tablebook.services.redemption_service import RedemptionService
from tablebook.services.top_up_service import TopUpService


@pytest.fixture
def top_up_service(db, booking_service) -> TopUpService:
    return TopUpService(db, booking_service=booking_service)


@pytest.fixture
def reconciliation_service(db, top_up_service) -> ReconciliationService:
    return ReconciliationService(db, top_up_service=top_up_service)


@pytest.fixture
def door_calendar() -> Mock:
    return Mock()


@pytest.fixture
def access_code_service(db, door_calendar) -> AccessCodeService:
    return AccessCodeService(db, calendar_mirror=door_calendar)


@pytest.fixture
def redemption_service(db, calendar_mirror) -> RedemptionService:
    return RedemptionService(db, calendar_mirror=calendar_mirror)


@pytest.fixture
def notification_service(db) -> NotificationService:
    return NotificationService(db)


@pytest.fixture
def availability_service(db) -> AvailabilityService:
    return AvailabilityService(db)
