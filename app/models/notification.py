from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict

from app.models.communication import Priority

TITLE_MAX_LENGTH = 200
MESSAGE_MAX_LENGTH = 500


class NotificationType(str, Enum):
    communication = "communication"
    announcement = "announcement"
    system = "system"


def truncate(text: str, limit: int) -> str:
    if text is None or len(text) <= limit:
        return text
    return text[: limit - 3] + "..."


class NotificationResponse(BaseModel):
    id: int
    user_id: int
    type: NotificationType
    title: str
    message: str
    data: Optional[Dict[str, Any]] = None
    is_read: bool = False
    read_at: Optional[datetime] = None
    is_displayed: bool = False
    displayed_at: Optional[datetime] = None
    priority: Priority = Priority.normal
    expires_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


class NotificationsResponse(BaseModel):
    notifications: List[NotificationResponse]
    total: int
    page: int
    limit: int


class NotificationCount(BaseModel):
    unread: int


class NotificationStats(BaseModel):
    total: int
    unread: int
    by_type: Dict[str, int]
