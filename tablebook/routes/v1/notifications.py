# tablebook/routes/v1/notifications.py
"""In-app notification routes - API v1."""

from typing import List

from fastapi import APIRouter, Depends

from ...api.dependencies import get_notification_service, get_request_context
from ...core.context import RequestContext
from ...schemas.notification import NotificationResponse
from ...services.notification_service import NotificationService

router = APIRouter(tags=["notifications-v1"])


@router.post("/read", response_model=List[NotificationResponse])
def read_notifications(
    ctx: RequestContext = Depends(get_request_context),
    service: NotificationService = Depends(get_notification_service),
) -> List[NotificationResponse]:
    """Unread notifications, newest first. Each one is returned once."""
    return [NotificationResponse.model_validate(n) for n in service.read_notifications(ctx)]
