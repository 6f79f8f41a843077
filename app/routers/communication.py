from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from app.db import Session, crud, get_db
from app.db.exceptions import InvalidRecipientsError
from app.db.models import Communication
from app.dependencies import get_dbcommunication
from app.models.audit import AuditAction
from app.models.communication import (
    CommunicationCreate,
    CommunicationResponse,
    CommunicationsResponse,
    CommunicationStats,
    InboxItem,
    InboxResponse,
    MessageType,
)
from app.models.user import ADMIN_ROLES, CurrentUser, UserRole
from app.services.communication_service import CommunicationService
from app.utils import audit, responses

router = APIRouter(tags=["Communication"], prefix="/api/communications", responses={401: responses._401})

BROADCAST_ROLES = ADMIN_ROLES + (UserRole.secretary,)
BROADCAST_TYPES = (MessageType.announcement, MessageType.newsletter)


@router.get("", response_model=CommunicationsResponse, responses={403: responses._403})
def get_communications(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(CurrentUser.check_admin),
):
    communications, total = crud.get_communications(db, page=page, limit=limit)
    return {
        "communications": CommunicationService.with_read_counts(db, communications),
        "total": total,
        "page": page,
        "limit": limit,
    }


@router.post(
    "",
    response_model=CommunicationResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: responses._400, 403: responses._403},
)
def send_communication(
    payload: CommunicationCreate,
    request: Request,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(CurrentUser.get_current),
):
    """
    Create a communication. When its status is ``sent`` it is delivered right away:
    recipient rows, one notification per recipient and a push on each recipient's channel.
    """
    if payload.message_type in BROADCAST_TYPES:
        user.ensure_roles(BROADCAST_ROLES, f"send {payload.message_type.value}s")

    try:
        dbcommunication = CommunicationService.send(db, payload, user.id)
    except InvalidRecipientsError as exc:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(exc))

    audit.record(db, AuditAction.create, "communication", dbcommunication.id, user_id=user.id,
                 request=request, details={"recipient_type": payload.recipient_type.value,
                                           "status": payload.status.value})
    return dbcommunication


@router.get("/inbox", response_model=InboxResponse)
def get_inbox(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(CurrentUser.get_current),
):
    if user.id is None:
        return {"communications": [], "total": 0, "unread_count": 0, "page": page, "limit": limit}

    rows, total, unread = crud.get_inbox(db, user.id, page=page, limit=limit)
    items = [
        InboxItem.model_validate(dbcommunication).model_copy(
            update={"read_status": recipient.read_status, "read_time": recipient.read_time}
        )
        for dbcommunication, recipient in rows
    ]
    return {"communications": items, "total": total, "unread_count": unread, "page": page, "limit": limit}


@router.get("/sent", response_model=CommunicationsResponse)
def get_sent(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(CurrentUser.get_current),
):
    if user.id is None:
        return {"communications": [], "total": 0, "page": page, "limit": limit}

    communications, total = crud.get_sent_communications(db, user.id, page=page, limit=limit)
    return {
        "communications": CommunicationService.with_read_counts(db, communications),
        "total": total,
        "page": page,
        "limit": limit,
    }


@router.get("/stats", response_model=CommunicationStats, responses={403: responses._403})
def get_communication_stats(db: Session = Depends(get_db), user: CurrentUser = Depends(CurrentUser.check_admin)):
    return crud.get_communication_stats(db)


@router.get(
    "/{communication_id}",
    response_model=CommunicationResponse,
    responses={403: responses._403, 404: responses._404},
)
def get_communication(
    dbcommunication: Communication = Depends(get_dbcommunication),
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(CurrentUser.get_current),
):
    recipient = crud.get_recipient(db, dbcommunication.id, user.id) if user.id is not None else None
    is_sender = user.id is not None and dbcommunication.sender_id == user.id
    if not (is_sender or user.is_admin or recipient):
        raise HTTPException(status_code=403, detail="You are not allowed to view this communication")

    if recipient:
        crud.mark_recipient_read(db, recipient)
    return dbcommunication


@router.put("/{communication_id}/read", responses={404: responses._404})
def mark_communication_read(
    communication_id: int,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(CurrentUser.get_current),
):
    recipient = crud.get_recipient(db, communication_id, user.id) if user.id is not None else None
    if not recipient:
        raise HTTPException(status_code=404, detail="Communication not found in your inbox")

    recipient = crud.mark_recipient_read(db, recipient)
    return {"read_status": recipient.read_status, "read_time": recipient.read_time}


@router.delete("/{communication_id}", responses={403: responses._403, 404: responses._404})
def remove_communication(
    request: Request,
    dbcommunication: Communication = Depends(get_dbcommunication),
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(CurrentUser.get_current),
):
    is_sender = user.id is not None and dbcommunication.sender_id == user.id
    if not (is_sender or user.is_admin):
        raise HTTPException(status_code=403, detail="You are not allowed to delete this communication")

    communication_id = dbcommunication.id
    crud.remove_communication(db, dbcommunication)
    audit.record(db, AuditAction.delete, "communication", communication_id, user_id=user.id, request=request)
    return {"detail": "Communication successfully deleted"}
