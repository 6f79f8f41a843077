from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from app.db.crud.common import paginate
from app.db.models import UserNotification, utcnow
from app.models.communication import Priority
from app.models.notification import (
    MESSAGE_MAX_LENGTH,
    TITLE_MAX_LENGTH,
    NotificationType,
    truncate,
)


def _visible(query, now: datetime):
    return query.filter(or_(UserNotification.expires_at.is_(None), UserNotification.expires_at > now))


def get_notification(db: Session, notification_id: int, user_id: int) -> Optional[UserNotification]:
    return (
        db.query(UserNotification)
        .filter(UserNotification.id == notification_id, UserNotification.user_id == user_id)
        .first()
    )


def get_user_notifications(
    db: Session, user_id: int, page: int = 1, limit: int = 10, unread_only: bool = False
) -> Tuple[List[UserNotification], int]:
    query = _visible(db.query(UserNotification).filter(UserNotification.user_id == user_id), utcnow())
    if unread_only:
        query = query.filter(UserNotification.is_read.is_(False))
    return paginate(query.order_by(UserNotification.created_at.desc(), UserNotification.id.desc()), page, limit)


def get_undisplayed_notifications(db: Session, user_id: int, limit: int = 20) -> List[UserNotification]:
    query = _visible(
        db.query(UserNotification).filter(
            UserNotification.user_id == user_id,
            UserNotification.is_read.is_(False),
            UserNotification.is_displayed.is_(False),
        ),
        utcnow(),
    )
    return query.order_by(UserNotification.created_at.desc(), UserNotification.id.desc()).limit(limit).all()


def count_unread_notifications(db: Session, user_id: int) -> int:
    return _visible(
        db.query(UserNotification).filter(
            UserNotification.user_id == user_id, UserNotification.is_read.is_(False)
        ),
        utcnow(),
    ).count()


def create_notifications(
    db: Session,
    user_ids: Iterable[int],
    title: str,
    message: str,
    notification_type: NotificationType = NotificationType.system,
    priority: Priority = Priority.normal,
    data: Optional[Dict[str, Any]] = None,
    expires_at: Optional[datetime] = None,
) -> List[UserNotification]:
    """Adds one notification per user to the session; the caller commits."""
    title = truncate(title, TITLE_MAX_LENGTH)
    message = truncate(message, MESSAGE_MAX_LENGTH)
    notifications = [
        UserNotification(
            user_id=user_id,
            type=notification_type,
            title=title,
            message=message,
            data=data,
            priority=priority,
            expires_at=expires_at,
        )
        for user_id in user_ids
    ]
    db.add_all(notifications)
    db.flush()
    return notifications


def mark_notification_read(db: Session, dbnotification: UserNotification) -> UserNotification:
    if not dbnotification.is_read:
        dbnotification.is_read = True
        dbnotification.read_at = utcnow()
        db.commit()
        db.refresh(dbnotification)
    return dbnotification


def mark_notification_displayed(db: Session, dbnotification: UserNotification) -> UserNotification:
    if not dbnotification.is_displayed:
        dbnotification.is_displayed = True
        dbnotification.displayed_at = utcnow()
        db.commit()
        db.refresh(dbnotification)
    return dbnotification


def mark_all_notifications_read(db: Session, user_id: int) -> int:
    updated = (
        db.query(UserNotification)
        .filter(UserNotification.user_id == user_id, UserNotification.is_read.is_(False))
        .update({UserNotification.is_read: True, UserNotification.read_at: utcnow()}, synchronize_session=False)
    )
    db.commit()
    return updated


def remove_notification(db: Session, dbnotification: UserNotification) -> None:
    db.delete(dbnotification)
    db.commit()


def delete_expired_notifications(db: Session, now: Optional[datetime] = None) -> int:
    now = now or utcnow()
    deleted = (
        db.query(UserNotification)
        .filter(UserNotification.expires_at.is_not(None), UserNotification.expires_at <= now)
        .delete(synchronize_session=False)
    )
    db.commit()
    return deleted


def get_notification_stats(db: Session, user_id: int) -> dict:
    base = _visible(db.query(UserNotification).filter(UserNotification.user_id == user_id), utcnow())
    by_type = {notification_type.value: 0 for notification_type in NotificationType}
    rows = (
        base.with_entities(UserNotification.type, func.count(UserNotification.id))
        .group_by(UserNotification.type)
        .all()
    )
    for notification_type, count in rows:
        by_type[notification_type.value] = count
    return {
        "total": sum(by_type.values()),
        "unread": base.filter(UserNotification.is_read.is_(False)).count(),
        "by_type": by_type,
    }
