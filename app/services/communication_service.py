import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from app.db import crud
from app.db.exceptions import InvalidRecipientsError
from app.db.models import Communication
from app.models.communication import (
    CommunicationCreate,
    CommunicationListItem,
    CommunicationStatus,
    RecipientType,
)
from app.services.notification_service import NotificationService

logger = logging.getLogger(__name__)


class CommunicationService:
    @staticmethod
    def resolve_recipients(db: Session, communication: CommunicationCreate, sender_id: Optional[int]) -> List[int]:
        """
        Turns a recipient type into concrete user ids.

        Raises:
            InvalidRecipientsError: ``specific`` without ids, or with ids that do not exist.
        """
        if communication.recipient_type == RecipientType.all:
            return crud.get_active_user_ids(db, exclude_user_id=sender_id)
        if communication.recipient_type == RecipientType.admin:
            return crud.get_admin_user_ids(db)

        requested = list(dict.fromkeys(communication.recipient_ids or []))
        if not requested:
            raise InvalidRecipientsError("Recipient IDs are required for specific recipients")
        existing = set(crud.get_existing_user_ids(db, requested))
        missing = [user_id for user_id in requested if user_id not in existing]
        if missing:
            raise InvalidRecipientsError(f"Recipients not found: {', '.join(map(str, missing))}")
        return requested

    @classmethod
    def send(cls, db: Session, communication: CommunicationCreate, sender_id: Optional[int]) -> Communication:
        """
        Creates a communication and, when it goes out immediately, fans it out to
        recipient rows and notifications in the same transaction.
        """
        recipient_ids = cls.resolve_recipients(db, communication, sender_id)
        dbcommunication = crud.create_communication(db, communication, sender_id)
        notifications = []
        if communication.status == CommunicationStatus.sent:
            crud.add_recipients(db, dbcommunication, recipient_ids)
            notifications = NotificationService.notify_communication(db, dbcommunication, recipient_ids)
        db.commit()
        db.refresh(dbcommunication)

        if notifications:
            pushed = NotificationService.push(notifications)
            logger.info(
                f'Communication "{dbcommunication.id}" sent to {len(recipient_ids)} recipients '
                f"({pushed} pushed)"
            )
        return dbcommunication

    @staticmethod
    def with_read_counts(db: Session, communications: List[Communication]) -> List[CommunicationListItem]:
        counts = crud.get_recipient_counts(db, [c.id for c in communications])
        items = []
        for dbcommunication in communications:
            total, read = counts.get(dbcommunication.id, (0, 0))
            items.append(
                CommunicationListItem.model_validate(dbcommunication).model_copy(
                    update={
                        "recipient_count": total,
                        "read_count": read,
                        "read_percentage": round(read / total * 100) if total else 0,
                    }
                )
            )
        return items
