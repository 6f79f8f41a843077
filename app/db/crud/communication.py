from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import case, func
from sqlalchemy.orm import Session, joinedload

from app.db.crud.common import naive_utc, paginate
from app.db.models import Communication, CommunicationRecipient, utcnow
from app.models.communication import (
    CommunicationCreate,
    CommunicationStatus,
    MessageType,
    Priority,
)


def get_communication(db: Session, communication_id: int) -> Optional[Communication]:
    return (
        db.query(Communication)
        .options(joinedload(Communication.sender))
        .filter(Communication.id == communication_id)
        .first()
    )


def get_communications(db: Session, page: int = 1, limit: int = 10) -> Tuple[List[Communication], int]:
    query = db.query(Communication).options(joinedload(Communication.sender))
    return paginate(query.order_by(Communication.created_at.desc(), Communication.id.desc()), page, limit)


def get_sent_communications(
    db: Session, sender_id: int, page: int = 1, limit: int = 10
) -> Tuple[List[Communication], int]:
    query = (
        db.query(Communication)
        .options(joinedload(Communication.sender))
        .filter(Communication.sender_id == sender_id)
    )
    return paginate(query.order_by(Communication.created_at.desc(), Communication.id.desc()), page, limit)


def get_inbox(
    db: Session, user_id: int, page: int = 1, limit: int = 10
) -> Tuple[List[Tuple[Communication, CommunicationRecipient]], int, int]:
    """
    Received communications for a user.

    Returns:
        Tuple: (communication, recipient row) pairs for the page, the total and the unread count.
    """
    query = (
        db.query(Communication, CommunicationRecipient)
        .join(CommunicationRecipient, CommunicationRecipient.communication_id == Communication.id)
        .options(joinedload(Communication.sender))
        .filter(CommunicationRecipient.user_id == user_id)
        .order_by(Communication.sent_date.desc(), Communication.id.desc())
    )
    rows, total = paginate(query, page, limit)
    unread = (
        db.query(CommunicationRecipient)
        .filter(CommunicationRecipient.user_id == user_id, CommunicationRecipient.read_status.is_(False))
        .count()
    )
    return rows, total, unread


def get_recipient_counts(db: Session, communication_ids: List[int]) -> Dict[int, Tuple[int, int]]:
    """``{communication_id: (recipient_count, read_count)}``."""
    if not communication_ids:
        return {}
    rows = (
        db.query(
            CommunicationRecipient.communication_id,
            func.count(CommunicationRecipient.id),
            func.sum(case((CommunicationRecipient.read_status.is_(True), 1), else_=0)),
        )
        .filter(CommunicationRecipient.communication_id.in_(communication_ids))
        .group_by(CommunicationRecipient.communication_id)
        .all()
    )
    return {communication_id: (total, int(read or 0)) for communication_id, total, read in rows}


def create_communication(db: Session, communication: CommunicationCreate, sender_id: Optional[int]) -> Communication:
    """Creates the communication row only; recipients are attached by the fan-out."""
    dbcommunication = Communication(
        subject=communication.subject,
        content=communication.content,
        sender_id=sender_id,
        recipient_type=communication.recipient_type,
        message_type=communication.message_type,
        priority=communication.priority,
        status=communication.status,
        scheduled_for=naive_utc(communication.scheduled_for),
        attachment_url=communication.attachment_url,
        sent_date=utcnow() if communication.status == CommunicationStatus.sent else None,
    )
    db.add(dbcommunication)
    db.flush()
    return dbcommunication


def add_recipients(db: Session, dbcommunication: Communication, user_ids: Iterable[int]) -> int:
    count = 0
    for user_id in user_ids:
        db.add(CommunicationRecipient(communication_id=dbcommunication.id, user_id=user_id))
        count += 1
    db.flush()
    return count


def get_recipient(db: Session, communication_id: int, user_id: int) -> Optional[CommunicationRecipient]:
    return (
        db.query(CommunicationRecipient)
        .filter(
            CommunicationRecipient.communication_id == communication_id,
            CommunicationRecipient.user_id == user_id,
        )
        .first()
    )


def mark_recipient_read(db: Session, recipient: CommunicationRecipient) -> CommunicationRecipient:
    if not recipient.read_status:
        recipient.read_status = True
        recipient.read_time = utcnow()
        db.commit()
        db.refresh(recipient)
    return recipient


def remove_communication(db: Session, dbcommunication: Communication) -> None:
    db.delete(dbcommunication)
    db.commit()


def get_communication_stats(db: Session) -> dict:
    by_status = dict(
        db.query(Communication.status, func.count(Communication.id)).group_by(Communication.status).all()
    )
    by_type = {message_type.value: 0 for message_type in MessageType}
    for message_type, count in (
        db.query(Communication.message_type, func.count(Communication.id))
        .group_by(Communication.message_type)
        .all()
    ):
        by_type[message_type.value] = count
    by_priority = {priority.value: 0 for priority in Priority}
    for priority, count in (
        db.query(Communication.priority, func.count(Communication.id)).group_by(Communication.priority).all()
    ):
        by_priority[priority.value] = count
    return {
        "total": sum(by_status.values()),
        "sent": by_status.get(CommunicationStatus.sent, 0),
        "drafts": by_status.get(CommunicationStatus.draft, 0),
        "scheduled": by_status.get(CommunicationStatus.scheduled, 0),
        "by_type": by_type,
        "by_priority": by_priority,
    }
