from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.exc import IntegrityError

from app.db import Session, crud, get_db
from app.db.models import Pharmacy
from app.dependencies import ensure_pharmacy_access, get_dbpharmacy
from app.models.audit import AuditAction
from app.models.pharmacy import (
    PharmaciesResponse,
    PharmacyCreate,
    PharmacyDuesStatus,
    PharmacyModify,
    PharmacyResponse,
    PharmacyStats,
    RegistrationStatus,
)
from app.models.user import CurrentUser
from app.redis.invalidation import invalidate_payments, invalidate_pharmacies
from app.runtime import logger
from app.services.pharmacy_service import PharmacyService
from app.utils import audit, responses

router = APIRouter(tags=["Pharmacy"], prefix="/api/pharmacies", responses={401: responses._401})


@router.get("", response_model=PharmaciesResponse, responses={403: responses._403})
def get_pharmacies(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: Optional[str] = None,
    status: Optional[RegistrationStatus] = None,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(CurrentUser.check_officer),
):
    return PharmacyService.list_pharmacies(db, page=page, limit=limit, search=search, status=status)


@router.post(
    "",
    response_model=PharmacyResponse,
    status_code=status.HTTP_201_CREATED,
    responses={403: responses._403, 409: responses._409},
)
def add_pharmacy(
    payload: PharmacyCreate,
    request: Request,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(CurrentUser.get_current),
):
    """Register a pharmacy. Members register for themselves; officers may pick the owner and status."""
    if user.is_officer:
        owner_id = payload.user_id if payload.user_id is not None else user.id
        if payload.user_id is not None and not crud.get_user_by_id(db, payload.user_id):
            raise HTTPException(status_code=404, detail="User not found")
    else:
        owner_id = user.ensure_account()
        payload = payload.model_copy(update={"user_id": None, "registration_status": None})

    try:
        dbpharmacy = crud.create_pharmacy(db, payload, owner_id)
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="Registration number already exists")

    invalidate_pharmacies()
    audit.record(db, AuditAction.create, "pharmacy", dbpharmacy.id, user_id=user.id, request=request,
                 details={"name": dbpharmacy.name})
    logger.info(f'New pharmacy "{dbpharmacy.name}" registered by "{user.email}"')
    return dbpharmacy


@router.get("/me", response_model=List[PharmacyResponse])
def get_my_pharmacies(db: Session = Depends(get_db), user: CurrentUser = Depends(CurrentUser.get_current)):
    if user.id is None:
        return []
    return crud.get_user_pharmacies(db, user.id)


@router.get("/stats", response_model=PharmacyStats, responses={403: responses._403})
def get_pharmacy_stats(db: Session = Depends(get_db), user: CurrentUser = Depends(CurrentUser.check_officer)):
    return PharmacyService.stats(db)


@router.get("/dues-status", response_model=List[PharmacyDuesStatus], responses={403: responses._403})
def get_pharmacies_dues_status(
    db: Session = Depends(get_db), user: CurrentUser = Depends(CurrentUser.check_officer)
):
    return PharmacyService.dues_status(db)


@router.get(
    "/{pharmacy_id}",
    response_model=PharmacyResponse,
    responses={403: responses._403, 404: responses._404},
)
def get_pharmacy(
    dbpharmacy: Pharmacy = Depends(get_dbpharmacy), user: CurrentUser = Depends(CurrentUser.get_current)
):
    ensure_pharmacy_access(dbpharmacy, user)
    return dbpharmacy


@router.put(
    "/{pharmacy_id}",
    response_model=PharmacyResponse,
    responses={403: responses._403, 404: responses._404, 409: responses._409},
)
def modify_pharmacy(
    modify: PharmacyModify,
    request: Request,
    dbpharmacy: Pharmacy = Depends(get_dbpharmacy),
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(CurrentUser.get_current),
):
    ensure_pharmacy_access(dbpharmacy, user)
    if "registration_status" in modify.model_fields_set and not user.is_officer:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only officers can change the registration status",
        )

    try:
        dbpharmacy = crud.update_pharmacy(db, dbpharmacy, modify)
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="Registration number already exists")

    invalidate_pharmacies()
    audit.record(db, AuditAction.update, "pharmacy", dbpharmacy.id, user_id=user.id, request=request,
                 details={"fields": sorted(modify.model_fields_set)})
    return dbpharmacy


@router.delete("/{pharmacy_id}", responses={403: responses._403, 404: responses._404})
def remove_pharmacy(
    request: Request,
    dbpharmacy: Pharmacy = Depends(get_dbpharmacy),
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(CurrentUser.check_admin),
):
    pharmacy_id, name = dbpharmacy.id, dbpharmacy.name
    crud.remove_pharmacy(db, dbpharmacy)
    invalidate_pharmacies()
    # its dues and payments went with it
    invalidate_payments()
    audit.record(db, AuditAction.delete, "pharmacy", pharmacy_id, user_id=user.id, request=request,
                 details={"name": name})
    logger.info(f'Pharmacy "{name}" deleted by "{user.email}"')
    return {"detail": "Pharmacy successfully deleted"}
