# tablebook/repositories/factory.py
"""
Repository Factory.

Centralizes repository creation so services and tests build them the same
way.
"""

from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

if TYPE_CHECKING:
    from .access_code_repository import AccessCodeRepository
    from .booking_repository import BookingRepository
    from .notification_repository import UserNotificationRepository
    from .resource_repository import ResourceRepository
    from .top_up_repository import PaymentNotificationRepository, TopUpRequestRepository
    from .user_repository import BalanceTransactionRepository, UserRepository


class RepositoryFactory:
    """Factory class for creating repository instances."""

    @staticmethod
    def create_user_repository(db: Session) -> "UserRepository":
        from .user_repository import UserRepository

        return UserRepository(db)

    @staticmethod
    def create_balance_transaction_repository(db: Session) -> "BalanceTransactionRepository":
        from .user_repository import BalanceTransactionRepository

        return BalanceTransactionRepository(db)

    @staticmethod
    def create_resource_repository(db: Session) -> "ResourceRepository":
        from .resource_repository import ResourceRepository

        return ResourceRepository(db)

    @staticmethod
    def create_booking_repository(db: Session) -> "BookingRepository":
        from .booking_repository import BookingRepository

        return BookingRepository(db)

    @staticmethod
    def create_top_up_request_repository(db: Session) -> "TopUpRequestRepository":
        from .top_up_repository import TopUpRequestRepository

        return TopUpRequestRepository(db)

    @staticmethod
    def create_payment_notification_repository(db: Session) -> "PaymentNotificationRepository":
        from .top_up_repository import PaymentNotificationRepository

        return PaymentNotificationRepository(db)

    @staticmethod
    def create_access_code_repository(db: Session) -> "AccessCodeRepository":
        from .access_code_repository import AccessCodeRepository

        return AccessCodeRepository(db)

    @staticmethod
    def create_user_notification_repository(db: Session) -> "UserNotificationRepository":
        from .notification_repository import UserNotificationRepository

        return UserNotificationRepository(db)
