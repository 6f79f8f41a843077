from typing import Optional

from fastapi import APIRouter, Depends, Query

from app.db import Session, crud, get_db
from app.models.audit import AuditAction, AuditEntriesResponse
from app.models.user import CurrentUser
from app.utils import responses

router = APIRouter(tags=["Audit"], prefix="/api/audit", responses={401: responses._401})


@router.get("", response_model=AuditEntriesResponse, responses={403: responses._403})
def get_audit_entries(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    action: Optional[AuditAction] = None,
    resource_type: Optional[str] = None,
    user_id: Optional[int] = None,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(CurrentUser.check_admin),
):
    entries, total = crud.get_audit_entries(
        db, page=page, limit=limit, action=action, resource_type=resource_type, user_id=user_id
    )
    return {"entries": entries, "total": total, "page": page, "limit": limit}
