"""User notification persistence."""

from __future__ import annotations

from typing import List

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..models.notification import UserNotification
from .base_repository import BaseRepository


class UserNotificationRepository(BaseRepository[UserNotification]):
    def __init__(self, db: Session):
        super().__init__(db, UserNotification)

    def list_unread(self, user_id: str) -> List[UserNotification]:
        try:
            return (
                self.db.query(UserNotification)
                .filter(UserNotification.user_id == user_id, UserNotification.is_read.is_(False))
                .order_by(UserNotification.created_at.desc())
                .all()
            )
        except SQLAlchemyError as e:
            self._raise("list", e)

    def mark_read(self, notifications: List[UserNotification]) -> None:
        try:
            for notification in notifications:
                notification.is_read = True
            self.db.flush()
        except SQLAlchemyError as e:
            self._raise("mark read", e)
