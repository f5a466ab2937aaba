"""Import every model so ``Base.metadata`` knows all tables."""

from .access_code import AccessCode
from .booking import Booking
from .notification import UserNotification
from .resource import Resource
from .top_up import PaymentNotification, TopUpRequest
from .user import BalanceTransaction, User

__all__ = [
    "AccessCode",
    "BalanceTransaction",
    "Booking",
    "PaymentNotification",
    "Resource",
    "TopUpRequest",
    "User",
    "UserNotification",
]
