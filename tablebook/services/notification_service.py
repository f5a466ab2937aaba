"""In-app notifications left for a user by asynchronous settlements."""

from typing import List, Optional

from sqlalchemy.orm import Session

from ..core.context import RequestContext
from ..models.notification import UserNotification
from ..repositories.factory import RepositoryFactory
from .base import BaseService


class NotificationService(BaseService):
    def __init__(self, db: Session, repositories: Optional[RepositoryFactory] = None):
        super().__init__(db, repositories)
        self.notification_repository = self.repositories.create_user_notification_repository(db)

    @BaseService.measure_operation("read_notifications")
    def read_notifications(self, ctx: RequestContext) -> List[UserNotification]:
        """Return the caller's unread notifications, newest first, and mark them read."""

        def work() -> List[UserNotification]:
            unread = self.notification_repository.list_unread(ctx.user_id)
            self.notification_repository.mark_read(unread)
            return unread

        notifications = self.run_atomic("read_notifications", work)
        if notifications:
            self.log_operation("read_notifications", user_id=ctx.user_id, count=len(notifications))
        return notifications
