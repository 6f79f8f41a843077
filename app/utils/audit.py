"""
Audit trail helper used by routers.

Recording never breaks the request it describes: database errors are logged
and the session is rolled back.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import Request
from sqlalchemy.exc import SQLAlchemyError

from app.db import Session, crud
from app.models.audit import AuditAction

logger = logging.getLogger(__name__)


def get_client_ip(request: Optional[Request]) -> str:
    """Extract the client's IP address from the request headers or client."""
    if request is None:
        return "Unknown"
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    if request.client:
        return request.client.host
    return "Unknown"


def record(
    db: Session,
    action: AuditAction,
    resource_type: str,
    resource_id: Optional[Any] = None,
    user_id: Optional[int] = None,
    details: Optional[Dict[str, Any]] = None,
    request: Optional[Request] = None,
) -> None:
    ip_address = get_client_ip(request)
    try:
        crud.create_audit_entry(
            db,
            action=action,
            resource_type=resource_type,
            resource_id=str(resource_id) if resource_id is not None else None,
            user_id=user_id,
            details=details,
            ip_address=ip_address,
        )
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to record audit entry {action.value} {resource_type}:{resource_id}: {e}")
        return

    logger.info(
        f'Audit: user "{user_id}" {action.value} {resource_type}'
        + (f' "{resource_id}"' if resource_id is not None else "")
        + f" from {ip_address}"
    )
