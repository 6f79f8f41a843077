from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from app.db.crud.common import paginate
from app.db.models import AuditTrail
from app.models.audit import AuditAction


def create_audit_entry(
    db: Session,
    action: AuditAction,
    resource_type: str,
    resource_id: Optional[Any] = None,
    user_id: Optional[int] = None,
    details: Optional[Dict[str, Any]] = None,
    ip_address: Optional[str] = None,
) -> AuditTrail:
    entry = AuditTrail(
        user_id=user_id,
        action=action,
        resource_type=resource_type,
        resource_id=str(resource_id) if resource_id is not None else None,
        details=details,
        ip_address=ip_address,
    )
    db.add(entry)
    db.commit()
    return entry


def get_audit_entries(
    db: Session,
    page: int = 1,
    limit: int = 10,
    action: Optional[AuditAction] = None,
    resource_type: Optional[str] = None,
    user_id: Optional[int] = None,
) -> Tuple[List[AuditTrail], int]:
    query = db.query(AuditTrail)
    if action:
        query = query.filter(AuditTrail.action == action)
    if resource_type:
        query = query.filter(AuditTrail.resource_type == resource_type)
    if user_id:
        query = query.filter(AuditTrail.user_id == user_id)
    return paginate(query.order_by(AuditTrail.created_at.desc(), AuditTrail.id.desc()), page, limit)
