"""
Service layer dependencies for dependency injection.

Services are request-scoped: each one wraps the request's session.
Composite services share their collaborators so one request never holds
two sessions.
"""

import logging

from fastapi import Depends
from sqlalchemy.orm import Session

from ...services.access_code_service import AccessCodeService
from ...services.availability_service import AvailabilityService
from ...services.balance_ledger_service import BalanceLedgerService
from ...services.booking_service import BookingService
from ...services.notification_service import NotificationService
from ...services.reconciliation_service import ReconciliationService
from ...services.redemption_service import RedemptionService
from ...services.top_up_service import TopUpService
from ...database import get_db

logger = logging.getLogger(__name__)


def get_availability_service(db: Session = Depends(get_db)) -> AvailabilityService:
    return AvailabilityService(db)


def get_balance_ledger_service(db: Session = Depends(get_db)) -> BalanceLedgerService:
    return BalanceLedgerService(db)


def get_booking_service(
    db: Session = Depends(get_db),
    ledger: BalanceLedgerService = Depends(get_balance_ledger_service),
) -> BookingService:
    """Get BookingService instance with proper dependencies."""
    return BookingService(db, ledger=ledger)


def get_top_up_service(
    db: Session = Depends(get_db),
    booking_service: BookingService = Depends(get_booking_service),
) -> TopUpService:
    return TopUpService(db, booking_service=booking_service)


def get_reconciliation_service(
    db: Session = Depends(get_db),
    top_up_service: TopUpService = Depends(get_top_up_service),
) -> ReconciliationService:
    return ReconciliationService(db, top_up_service=top_up_service)


def get_access_code_service(db: Session = Depends(get_db)) -> AccessCodeService:
    return AccessCodeService(db)


def get_notification_service(db: Session = Depends(get_db)) -> NotificationService:
    return NotificationService(db)


def get_redemption_service(db: Session = Depends(get_db)) -> RedemptionService:
    return RedemptionService(db)
