from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from app.db import Session, crud, get_db
from app.db.models import User
from app.dependencies import get_dbuser
from app.models.audit import AuditAction
from app.models.user import (
    BulkRoleModify,
    BulkStatusModify,
    BulkUpdateResponse,
    CurrentUser,
    UserResponse,
    UserRole,
    UserRoleModify,
    UsersResponse,
    UserStatus,
    UserStatusModify,
)
from app.redis.invalidation import invalidate_user_related_data
from app.runtime import logger
from app.utils import audit, responses

router = APIRouter(tags=["User"], prefix="/api/users", responses={401: responses._401, 403: responses._403})


def _ensure_superadmin_change(user: CurrentUser, dbuser: User, role: UserRole) -> None:
    """Granting or revoking superadmin is reserved to superadmins."""
    if UserRole.superadmin in (role, dbuser.role) and user.role != UserRole.superadmin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only a superadmin can grant or revoke the superadmin role",
        )


@router.get("", response_model=UsersResponse)
def get_users(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    role: Optional[UserRole] = None,
    status: Optional[UserStatus] = None,
    search: Optional[str] = None,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(CurrentUser.check_admin),
):
    users, total = crud.get_users(db, page=page, limit=limit, role=role, status=status, search=search)
    return {"users": users, "total": total, "page": page, "limit": limit}


@router.get("/pending", response_model=UsersResponse)
def get_pending_users(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(CurrentUser.check_admin),
):
    users, total = crud.get_users(db, page=page, limit=limit, status=UserStatus.pending)
    return {"users": users, "total": total, "page": page, "limit": limit}


@router.post("/bulk/status", response_model=BulkUpdateResponse)
def bulk_update_status(
    payload: BulkStatusModify,
    request: Request,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(CurrentUser.check_admin),
):
    updated = crud.bulk_update_user_status(db, payload.user_ids, payload.status)
    for user_id in payload.user_ids:
        invalidate_user_related_data(user_id)
    audit.record(db, AuditAction.update, "user", user_id=user.id, request=request,
                 details={"user_ids": payload.user_ids, "status": payload.status.value})
    logger.info(f'{updated} users set to "{payload.status.value}" by "{user.email}"')
    return {"updated": updated}


@router.post("/bulk/role", response_model=BulkUpdateResponse)
def bulk_update_role(
    payload: BulkRoleModify,
    request: Request,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(CurrentUser.check_admin),
):
    if payload.role == UserRole.superadmin and user.role != UserRole.superadmin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only a superadmin can grant or revoke the superadmin role",
        )
    updated = crud.bulk_update_user_role(db, payload.user_ids, payload.role)
    for user_id in payload.user_ids:
        invalidate_user_related_data(user_id)
    audit.record(db, AuditAction.update, "user", user_id=user.id, request=request,
                 details={"user_ids": payload.user_ids, "role": payload.role.value})
    logger.info(f'{updated} users given role "{payload.role.value}" by "{user.email}"')
    return {"updated": updated}


@router.get("/{user_id}", response_model=UserResponse, responses={404: responses._404})
def get_user(dbuser: User = Depends(get_dbuser), user: CurrentUser = Depends(CurrentUser.check_admin)):
    return dbuser


@router.put("/{user_id}/role", response_model=UserResponse, responses={404: responses._404})
def modify_user_role(
    payload: UserRoleModify,
    request: Request,
    dbuser: User = Depends(get_dbuser),
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(CurrentUser.check_admin),
):
    _ensure_superadmin_change(user, dbuser, payload.role)
    previous = dbuser.role
    dbuser = crud.update_user_role(db, dbuser, payload.role)
    invalidate_user_related_data(dbuser.id)
    audit.record(db, AuditAction.update, "user", dbuser.id, user_id=user.id, request=request,
                 details={"role": {"from": previous.value, "to": payload.role.value}})
    logger.info(f'User "{dbuser.email}" role changed to "{payload.role.value}"')
    return dbuser


@router.put("/{user_id}/status", response_model=UserResponse, responses={404: responses._404})
def modify_user_status(
    payload: UserStatusModify,
    request: Request,
    dbuser: User = Depends(get_dbuser),
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(CurrentUser.check_admin),
):
    dbuser = crud.update_user_status(db, dbuser, payload.status)
    invalidate_user_related_data(dbuser.id)
    audit.record(db, AuditAction.update, "user", dbuser.id, user_id=user.id, request=request,
                 details={"status": payload.status.value})
    logger.info(f'User "{dbuser.email}" status changed to "{payload.status.value}"')
    return dbuser


@router.put("/{user_id}/approve", response_model=UserResponse, responses={404: responses._404})
def approve_user(
    request: Request,
    dbuser: User = Depends(get_dbuser),
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(CurrentUser.check_admin),
):
    dbuser = crud.approve_user(db, dbuser)
    invalidate_user_related_data(dbuser.id)
    audit.record(db, AuditAction.approval, "user", dbuser.id, user_id=user.id, request=request,
                 details={"status": UserStatus.active.value})
    logger.info(f'User "{dbuser.email}" approved by "{user.email}"')
    return dbuser


@router.put("/{user_id}/reject", response_model=UserResponse, responses={404: responses._404})
def reject_user(
    request: Request,
    dbuser: User = Depends(get_dbuser),
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(CurrentUser.check_admin),
):
    dbuser = crud.reject_user(db, dbuser)
    invalidate_user_related_data(dbuser.id)
    audit.record(db, AuditAction.approval, "user", dbuser.id, user_id=user.id, request=request,
                 details={"status": UserStatus.rejected.value})
    logger.info(f'User "{dbuser.email}" rejected by "{user.email}"')
    return dbuser


@router.delete("/{user_id}", responses={400: responses._400, 404: responses._404})
def remove_user(
    request: Request,
    dbuser: User = Depends(get_dbuser),
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(CurrentUser.check_superadmin),
):
    if dbuser.id == user.id:
        raise HTTPException(status_code=400, detail="You cannot delete your own account")

    user_id, email = dbuser.id, dbuser.email
    crud.remove_user(db, dbuser)
    invalidate_user_related_data(user_id)
    audit.record(db, AuditAction.delete, "user", user_id, user_id=user.id, request=request,
                 details={"email": email})
    logger.info(f'User "{email}" deleted by "{user.email}"')
    return {"detail": "User successfully deleted"}
