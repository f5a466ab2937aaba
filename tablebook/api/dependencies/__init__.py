"""
FastAPI dependencies, re-exported for route modules.
"""

from ...database import get_db
from .auth import get_request_context, require_admin
from .services import (
    get_access_code_service,
    get_availability_service,
    get_balance_ledger_service,
    get_booking_service,
    get_notification_service,
    get_reconciliation_service,
    get_redemption_service,
    get_top_up_service,
)

__all__ = [
    "get_access_code_service",
    "get_availability_service",
    "get_balance_ledger_service",
    "get_booking_service",
    "get_db",
    "get_notification_service",
    "get_reconciliation_service",
    "get_redemption_service",
    "get_request_context",
    "get_top_up_service",
    "require_admin",
]
