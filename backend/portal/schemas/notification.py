from datetime import datetime

from pydantic import BaseModel

from portal.models.notification import NotificationPriority, NotificationType


class NotificationOut(BaseModel):
    id: str
    user_id: str
    title: str
    message: str
    notification_type: NotificationType
    priority: NotificationPriority
    action_url: str | None = None
    is_read: bool
    created_at: datetime

    model_config = {"from_attributes": True}
