import logging
from typing import Iterable, List

from sqlalchemy.orm import Session

from app.db import crud
from app.db.models import Communication, UserNotification
from app.models.communication import MessageType
from app.models.notification import NotificationResponse, NotificationType
from app.redis.cache import REDIS_CHANNEL_PREFIX_NOTIFICATIONS, publish
from app.redis.client import get_redis

logger = logging.getLogger(__name__)


class NotificationService:
    @staticmethod
    def channel(user_id: int) -> str:
        return f"{REDIS_CHANNEL_PREFIX_NOTIFICATIONS}:{user_id}"

    @classmethod
    def push(cls, notifications: Iterable[UserNotification]) -> int:
        """Publishes each notification on its user's channel; returns how many went out."""
        if not get_redis():
            return 0
        pushed = 0
        for notification in notifications:
            payload = {"event": "notification", **NotificationResponse.model_validate(notification).model_dump(mode="json")}
            if publish(cls.channel(notification.user_id), payload):
                pushed += 1
        return pushed

    @classmethod
    def notify_communication(
        cls, db: Session, dbcommunication: Communication, user_ids: Iterable[int]
    ) -> List[UserNotification]:
        """
        Creates one notification per recipient of a sent communication.

        The session is committed by the caller; pushing happens after the commit via ``push``.
        """
        notification_type = (
            NotificationType.announcement
            if dbcommunication.message_type == MessageType.announcement
            else NotificationType.communication
        )
        return crud.create_notifications(
            db,
            user_ids,
            title=dbcommunication.subject,
            message=dbcommunication.content,
            notification_type=notification_type,
            priority=dbcommunication.priority,
            data={
                "communication_id": dbcommunication.id,
                "sender_id": dbcommunication.sender_id,
                "message_type": dbcommunication.message_type.value,
            },
        )
