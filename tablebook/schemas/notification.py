from datetime import datetime
from typing import Optional

from .base import StandardizedModel


class NotificationResponse(StandardizedModel):
    id: str
    title: str
    body: str
    is_read: bool
    created_at: Optional[datetime] = None
