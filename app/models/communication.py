from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class RecipientType(str, Enum):
    all = "all"
    admin = "admin"
    specific = "specific"


class CommunicationStatus(str, Enum):
    draft = "draft"
    sent = "sent"
    scheduled = "scheduled"


class Priority(str, Enum):
    low = "low"
    normal = "normal"
    high = "high"
    urgent = "urgent"


class MessageType(str, Enum):
    announcement = "announcement"
    newsletter = "newsletter"
    direct = "direct"


class CommunicationCreate(BaseModel):
    subject: str = Field(..., min_length=1, max_length=200)
    content: str = Field(..., min_length=1)
    recipient_type: RecipientType
    recipient_ids: Optional[List[int]] = None
    message_type: MessageType = MessageType.direct
    priority: Priority = Priority.normal
    status: CommunicationStatus = CommunicationStatus.sent
    scheduled_for: Optional[datetime] = None
    attachment_url: Optional[str] = Field(None, max_length=512)


class CommunicationResponse(BaseModel):
    id: int
    subject: str
    content: str
    sender_id: Optional[int] = None
    sender_name: Optional[str] = None
    recipient_type: RecipientType
    message_type: MessageType
    priority: Priority
    status: CommunicationStatus
    sent_date: Optional[datetime] = None
    scheduled_for: Optional[datetime] = None
    attachment_url: Optional[str] = None
    created_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


class CommunicationListItem(CommunicationResponse):
    recipient_count: int = 0
    read_count: int = 0
    read_percentage: int = 0


class CommunicationsResponse(BaseModel):
    communications: List[CommunicationListItem]
    total: int
    page: int
    limit: int


class InboxItem(CommunicationResponse):
    read_status: bool = False
    read_time: Optional[datetime] = None


class InboxResponse(BaseModel):
    communications: List[InboxItem]
    total: int
    unread_count: int
    page: int
    limit: int


class CommunicationStats(BaseModel):
    total: int
    sent: int
    drafts: int
    scheduled: int
    by_type: Dict[str, int]
    by_priority: Dict[str, int]
