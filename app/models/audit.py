from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict


class AuditAction(str, Enum):
    create = "create"
    read = "read"
    update = "update"
    delete = "delete"
    login = "login"
    logout = "logout"
    payment = "payment"
    approval = "approval"
    other = "other"


class AuditEntryResponse(BaseModel):
    id: int
    user_id: Optional[int] = None
    action: AuditAction
    resource_type: str
    resource_id: Optional[str] = None
    details: Optional[Dict[str, Any]] = None
    ip_address: Optional[str] = None
    created_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


class AuditEntriesResponse(BaseModel):
    entries: List[AuditEntryResponse]
    total: int
    page: int
    limit: int
