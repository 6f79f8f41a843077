from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from app.db import Session, crud, get_db
from app.db.exceptions import DuplicateDueError
from app.db.models import Due, Pharmacy, utcnow
from app.dependencies import ensure_pharmacy_access, get_dbdue, get_dbpharmacy
from app.models.audit import AuditAction
from app.models.due import (
    AssignmentType,
    ClearanceCertificate,
    DueAnalytics,
    DueAssign,
    DueAssignResult,
    DueCreate,
    DueModify,
    DuePaymentStatus,
    DueResponse,
    DuesResponse,
    PenaltyCreate,
    PharmacyDueAnalytics,
)
from app.models.payment import PaymentResponse
from app.models.user import CurrentUser
from app.redis.invalidation import invalidate_dues
from app.runtime import logger
from app.services.due_service import DueService
from app.utils import audit, responses

router = APIRouter(tags=["Due"], prefix="/api", responses={401: responses._401})


def _ensure_due_access(dbdue: Due, user: CurrentUser) -> None:
    ensure_pharmacy_access(dbdue.pharmacy, user)


@router.get("/dues", response_model=DuesResponse, responses={403: responses._403})
def get_dues(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status: Optional[DuePaymentStatus] = None,
    year: Optional[int] = None,
    pharmacy_id: Optional[int] = None,
    due_type_id: Optional[int] = None,
    search: Optional[str] = None,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(CurrentUser.check_officer),
):
    dues, total = crud.get_dues(
        db,
        page=page,
        limit=limit,
        status=status,
        year=year,
        pharmacy_id=pharmacy_id,
        due_type_id=due_type_id,
        search=search,
    )
    return {"dues": dues, "total": total, "page": page, "limit": limit}


@router.post("/dues/assign", response_model=DueAssignResult, responses={403: responses._403})
def assign_dues(
    payload: DueAssign,
    request: Request,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(CurrentUser.check_finance),
):
    """
    Assign a due to several pharmacies at once.

    ``bulk`` targets every active pharmacy, ``individual`` the given ``pharmacy_ids``.
    Pharmacies that already have this due for the year are reported in ``error_details``.
    """
    if not crud.get_due_type(db, payload.due_type_id):
        raise HTTPException(status_code=404, detail="Due type not found")

    if payload.assignment_type == AssignmentType.bulk:
        pharmacy_ids = crud.get_active_pharmacy_ids(db)
    else:
        pharmacy_ids = list(dict.fromkeys(payload.pharmacy_ids or []))
        if not pharmacy_ids:
            raise HTTPException(status_code=400, detail="Pharmacy IDs are required for individual assignment")

    created, errors = crud.assign_dues(db, payload, pharmacy_ids, user.id)
    if created:
        invalidate_dues()
    audit.record(db, AuditAction.create, "due", user_id=user.id, request=request,
                 details={"assignment_type": payload.assignment_type.value,
                          "created": len(created), "errors": len(errors)})
    logger.info(f'Due "{payload.title}" assigned to {len(created)} pharmacies ({len(errors)} skipped)')
    return {
        "created": len(created),
        "errors": len(errors),
        "dues": created,
        "error_details": errors,
    }


@router.get("/dues/analytics", response_model=DueAnalytics, responses={403: responses._403})
def get_dues_analytics(
    year: Optional[int] = None,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(CurrentUser.check_finance),
):
    return DueService.analytics(db, year or utcnow().year)


@router.get(
    "/dues/analytics/pharmacy/{pharmacy_id}",
    response_model=PharmacyDueAnalytics,
    responses={403: responses._403, 404: responses._404},
)
def get_pharmacy_dues_analytics(
    dbpharmacy: Pharmacy = Depends(get_dbpharmacy),
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(CurrentUser.get_current),
):
    ensure_pharmacy_access(dbpharmacy, user)
    return crud.get_pharmacy_dues_analytics(db, dbpharmacy.id)


@router.get("/dues/overdue", response_model=DuesResponse, responses={403: responses._403})
def get_overdue_dues(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(CurrentUser.check_finance),
):
    dues, total = crud.get_overdue_dues(db, page=page, limit=limit)
    return {"dues": dues, "total": total, "page": page, "limit": limit}


@router.get("/dues/{due_id}", response_model=DueResponse, responses={403: responses._403, 404: responses._404})
def get_due(dbdue: Due = Depends(get_dbdue), user: CurrentUser = Depends(CurrentUser.get_current)):
    _ensure_due_access(dbdue, user)
    return dbdue


@router.put(
    "/dues/{due_id}",
    response_model=DueResponse,
    responses={400: responses._400, 403: responses._403, 404: responses._404},
)
def modify_due(
    modify: DueModify,
    request: Request,
    dbdue: Due = Depends(get_dbdue),
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(CurrentUser.check_finance),
):
    try:
        dbdue = crud.update_due(db, dbdue, modify)
    except DuplicateDueError as exc:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(exc))

    invalidate_dues()
    audit.record(db, AuditAction.update, "due", dbdue.id, user_id=user.id, request=request,
                 details={"fields": sorted(modify.model_fields_set)})
    return dbdue


@router.delete("/dues/{due_id}", responses={400: responses._400, 403: responses._403, 404: responses._404})
def remove_due(
    request: Request,
    dbdue: Due = Depends(get_dbdue),
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(CurrentUser.check_finance),
):
    if crud.due_has_approved_payments(db, dbdue):
        raise HTTPException(status_code=400, detail="Cannot delete a due with approved payments")

    due_id, pharmacy_id = dbdue.id, dbdue.pharmacy_id
    crud.remove_due(db, dbdue)
    invalidate_dues()
    audit.record(db, AuditAction.delete, "due", due_id, user_id=user.id, request=request,
                 details={"pharmacy_id": pharmacy_id})
    return {"detail": "Due successfully deleted"}


@router.patch("/dues/{due_id}/pay", response_model=DueResponse, responses={403: responses._403, 404: responses._404})
def mark_due_paid(
    request: Request,
    dbdue: Due = Depends(get_dbdue),
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(CurrentUser.check_finance),
):
    """Record the full balance as paid."""
    dbdue = crud.mark_due_paid(db, dbdue)
    invalidate_dues()
    audit.record(db, AuditAction.payment, "due", dbdue.id, user_id=user.id, request=request,
                 details={"amount_paid": dbdue.amount_paid})
    logger.info(f'Due "{dbdue.id}" marked as paid by "{user.email}"')
    return dbdue


@router.post(
    "/dues/{due_id}/penalty",
    response_model=DueResponse,
    responses={403: responses._403, 404: responses._404},
)
def add_due_penalty(
    payload: PenaltyCreate,
    request: Request,
    dbdue: Due = Depends(get_dbdue),
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(CurrentUser.check_finance),
):
    dbdue = crud.add_due_penalty(db, dbdue, payload, user.id)
    invalidate_dues()
    audit.record(db, AuditAction.update, "due", dbdue.id, user_id=user.id, request=request,
                 details={"penalty": payload.amount, "reason": payload.reason})
    return dbdue


@router.get(
    "/dues/{due_id}/certificate",
    response_model=ClearanceCertificate,
    responses={400: responses._400, 403: responses._403, 404: responses._404},
)
def get_clearance_certificate(dbdue: Due = Depends(get_dbdue), user: CurrentUser = Depends(CurrentUser.get_current)):
    _ensure_due_access(dbdue, user)
    if dbdue.payment_status != DuePaymentStatus.paid:
        raise HTTPException(status_code=400, detail="Certificate is only available for fully paid dues")

    dbpharmacy = dbdue.pharmacy
    return ClearanceCertificate(
        certificate_number=f"CERT-{dbdue.year}-{dbdue.id:06d}",
        issued_at=utcnow(),
        pharmacy={
            "id": dbpharmacy.id,
            "name": dbpharmacy.name,
            "registration_number": dbpharmacy.registration_number,
            "address": dbpharmacy.address,
        },
        due_type=dbdue.due_type_name,
        title=dbdue.title,
        year=dbdue.year,
        amount_paid=dbdue.amount_paid,
    )


@router.get(
    "/pharmacies/{pharmacy_id}/dues",
    response_model=List[DueResponse],
    responses={403: responses._403, 404: responses._404},
)
def get_pharmacy_dues(
    year: Optional[int] = None,
    dbpharmacy: Pharmacy = Depends(get_dbpharmacy),
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(CurrentUser.get_current),
):
    ensure_pharmacy_access(dbpharmacy, user)
    return crud.get_pharmacy_dues(db, dbpharmacy.id, year=year)


@router.post(
    "/pharmacies/{pharmacy_id}/dues",
    response_model=DueResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: responses._400, 403: responses._403, 404: responses._404},
)
def add_pharmacy_due(
    payload: DueCreate,
    request: Request,
    dbpharmacy: Pharmacy = Depends(get_dbpharmacy),
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(CurrentUser.check_finance),
):
    if not crud.get_due_type(db, payload.due_type_id):
        raise HTTPException(status_code=404, detail="Due type not found")

    try:
        dbdue = crud.create_due(db, dbpharmacy.id, payload, user.id)
    except DuplicateDueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    invalidate_dues()
    audit.record(db, AuditAction.create, "due", dbdue.id, user_id=user.id, request=request,
                 details={"pharmacy_id": dbpharmacy.id, "amount": dbdue.amount})
    logger.info(f'Due "{dbdue.title}" assigned to pharmacy "{dbpharmacy.name}"')
    return dbdue


@router.get(
    "/pharmacies/{pharmacy_id}/dues/history",
    response_model=List[PaymentResponse],
    responses={403: responses._403, 404: responses._404},
)
def get_pharmacy_payment_history(
    dbpharmacy: Pharmacy = Depends(get_dbpharmacy),
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(CurrentUser.get_current),
):
    ensure_pharmacy_access(dbpharmacy, user)
    return crud.get_pharmacy_payment_history(db, dbpharmacy.id)
