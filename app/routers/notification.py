from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query

from app.db import Session, crud, get_db
from app.models.notification import (
    NotificationCount,
    NotificationResponse,
    NotificationsResponse,
    NotificationStats,
    NotificationType,
)
from app.models.user import CurrentUser
from app.utils import responses

router = APIRouter(tags=["Notification"], prefix="/api/notifications", responses={401: responses._401})


def _get_notification_or_404(db: Session, notification_id: int, user: CurrentUser):
    dbnotification = crud.get_notification(db, notification_id, user.id) if user.id is not None else None
    if not dbnotification:
        raise HTTPException(status_code=404, detail="Notification not found")
    return dbnotification


@router.get("", response_model=NotificationsResponse)
def get_notifications(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    unread_only: bool = False,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(CurrentUser.get_current),
):
    if user.id is None:
        return {"notifications": [], "total": 0, "page": page, "limit": limit}

    notifications, total = crud.get_user_notifications(
        db, user.id, page=page, limit=limit, unread_only=unread_only
    )
    return {"notifications": notifications, "total": total, "page": page, "limit": limit}


@router.get("/unread", response_model=List[NotificationResponse])
def get_unread_notifications(
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(CurrentUser.get_current),
):
    """Unread notifications that have not been shown yet, for the login popup."""
    if user.id is None:
        return []
    return crud.get_undisplayed_notifications(db, user.id, limit=limit)


@router.get("/count", response_model=NotificationCount)
def get_unread_count(db: Session = Depends(get_db), user: CurrentUser = Depends(CurrentUser.get_current)):
    if user.id is None:
        return {"unread": 0}
    return {"unread": crud.count_unread_notifications(db, user.id)}


@router.get("/stats", response_model=NotificationStats)
def get_notification_stats(db: Session = Depends(get_db), user: CurrentUser = Depends(CurrentUser.get_current)):
    if user.id is None:
        return {"total": 0, "unread": 0, "by_type": {t.value: 0 for t in NotificationType}}
    return crud.get_notification_stats(db, user.id)


@router.put("/read-all")
def mark_all_read(db: Session = Depends(get_db), user: CurrentUser = Depends(CurrentUser.get_current)):
    updated = crud.mark_all_notifications_read(db, user.id) if user.id is not None else 0
    return {"updated": updated}


@router.put("/{notification_id}/read", response_model=NotificationResponse, responses={404: responses._404})
def mark_notification_read(
    notification_id: int,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(CurrentUser.get_current),
):
    dbnotification = _get_notification_or_404(db, notification_id, user)
    return crud.mark_notification_read(db, dbnotification)


@router.put("/{notification_id}/displayed", response_model=NotificationResponse, responses={404: responses._404})
def mark_notification_displayed(
    notification_id: int,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(CurrentUser.get_current),
):
    dbnotification = _get_notification_or_404(db, notification_id, user)
    return crud.mark_notification_displayed(db, dbnotification)


@router.delete("/{notification_id}", responses={404: responses._404})
def remove_notification(
    notification_id: int,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(CurrentUser.get_current),
):
    dbnotification = _get_notification_or_404(db, notification_id, user)
    crud.remove_notification(db, dbnotification)
    return {"detail": "Notification successfully deleted"}
