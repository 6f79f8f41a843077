from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.exc import IntegrityError

from app.db import Session, crud, get_db
from app.db.models import DueType
from app.dependencies import get_dbdue_type
from app.models.audit import AuditAction
from app.models.due import DueTypeCreate, DueTypeModify, DueTypeResponse
from app.models.user import CurrentUser
from app.redis.invalidation import invalidate_due_types
from app.runtime import logger
from app.services.due_service import DueService
from app.utils import audit, responses

router = APIRouter(tags=["Due Type"], prefix="/api/due-types", responses={401: responses._401})


@router.get("", response_model=List[DueTypeResponse])
def get_due_types(
    active: Optional[bool] = None,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(CurrentUser.get_current),
):
    return DueService.list_due_types(db, active=active)


@router.get("/{due_type_id}", response_model=DueTypeResponse, responses={404: responses._404})
def get_due_type(
    due_type_id: int,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(CurrentUser.get_current),
):
    due_type = DueService.get_due_type(db, due_type_id)
    if due_type is None:
        raise HTTPException(status_code=404, detail="Due type not found")
    return due_type


@router.post(
    "",
    response_model=DueTypeResponse,
    status_code=status.HTTP_201_CREATED,
    responses={403: responses._403, 409: responses._409},
)
def add_due_type(
    payload: DueTypeCreate,
    request: Request,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(CurrentUser.check_finance),
):
    try:
        dbdue_type = crud.create_due_type(db, payload, user.id)
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="Due type already exists")

    invalidate_due_types()
    audit.record(db, AuditAction.create, "due_type", dbdue_type.id, user_id=user.id, request=request,
                 details={"name": dbdue_type.name})
    logger.info(f'Due type "{dbdue_type.name}" created by "{user.email}"')
    return dbdue_type


@router.put(
    "/{due_type_id}",
    response_model=DueTypeResponse,
    responses={400: responses._400, 403: responses._403, 404: responses._404, 409: responses._409},
)
def modify_due_type(
    modify: DueTypeModify,
    request: Request,
    dbdue_type: DueType = Depends(get_dbdue_type),
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(CurrentUser.check_finance),
):
    try:
        dbdue_type = crud.update_due_type(db, dbdue_type, modify)
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="Due type already exists")
    except ValueError as exc:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(exc))

    invalidate_due_types()
    audit.record(db, AuditAction.update, "due_type", dbdue_type.id, user_id=user.id, request=request,
                 details={"fields": sorted(modify.model_fields_set)})
    return dbdue_type


@router.delete(
    "/{due_type_id}",
    responses={400: responses._400, 403: responses._403, 404: responses._404},
)
def remove_due_type(
    request: Request,
    dbdue_type: DueType = Depends(get_dbdue_type),
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(CurrentUser.check_finance),
):
    if crud.due_type_in_use(db, dbdue_type):
        raise HTTPException(status_code=400, detail="Due type is in use by existing dues and cannot be deleted")

    due_type_id, name = dbdue_type.id, dbdue_type.name
    crud.remove_due_type(db, dbdue_type)
    invalidate_due_types()
    audit.record(db, AuditAction.delete, "due_type", due_type_id, user_id=user.id, request=request,
                 details={"name": name})
    logger.info(f'Due type "{name}" deleted by "{user.email}"')
    return {"detail": "Due type successfully deleted"}
