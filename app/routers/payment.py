from typing import List

from fastapi import APIRouter, Depends, HTTPException, Request, status

from app.db import Session, crud, get_db
from app.db.models import Due, Payment, Pharmacy
from app.dependencies import ensure_pharmacy_access, get_dbdue, get_dbpayment, get_dbpharmacy
from app.models.audit import AuditAction
from app.models.payment import ApprovalStatus, PaymentCreate, PaymentReject, PaymentResponse, PaymentsResponse
from app.models.user import ADMIN_ROLES, CurrentUser
from app.redis.invalidation import invalidate_payments
from app.runtime import logger
from app.services.payment_service import PaymentService
from app.utils import audit, responses

router = APIRouter(tags=["Payment"], prefix="/api", responses={401: responses._401})


def _ensure_pending(dbpayment: Payment) -> None:
    if dbpayment.approval_status != ApprovalStatus.pending:
        raise HTTPException(
            status_code=400,
            detail=f"Payment has already been {dbpayment.approval_status.value}",
        )


@router.post(
    "/pharmacies/{pharmacy_id}/dues/{due_id}/payments",
    response_model=PaymentResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: responses._400, 403: responses._403, 404: responses._404},
)
def submit_payment(
    payload: PaymentCreate,
    request: Request,
    dbpharmacy: Pharmacy = Depends(get_dbpharmacy),
    dbdue: Due = Depends(get_dbdue),
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(CurrentUser.get_current),
):
    """Submit a payment with its receipt; it counts towards the due once approved."""
    if user.role not in ADMIN_ROLES and (user.id is None or dbpharmacy.user_id != user.id):
        raise HTTPException(status_code=403, detail="You are not allowed to pay for this pharmacy")
    if dbdue.pharmacy_id != dbpharmacy.id:
        raise HTTPException(status_code=400, detail="Due does not belong to this pharmacy")
    if payload.amount <= 0:
        raise HTTPException(status_code=400, detail="Payment amount must be greater than zero")
    if payload.amount > dbdue.balance:
        raise HTTPException(
            status_code=400,
            detail=f"Payment amount exceeds the outstanding balance of {dbdue.balance:.2f}",
        )
    if not payload.receipt_url:
        raise HTTPException(status_code=400, detail="Payment receipt is required")

    dbpayment = crud.create_payment(db, dbdue, payload, user.id)
    invalidate_payments()
    audit.record(db, AuditAction.payment, "payment", dbpayment.id, user_id=user.id, request=request,
                 details={"due_id": dbdue.id, "amount": payload.amount})
    logger.info(f'Payment of {payload.amount} submitted for due "{dbdue.id}" by "{user.email}"')
    return dbpayment


@router.get(
    "/dues/{due_id}/payments",
    response_model=List[PaymentResponse],
    responses={403: responses._403, 404: responses._404},
)
def get_due_payments(
    dbdue: Due = Depends(get_dbdue),
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(CurrentUser.get_current),
):
    ensure_pharmacy_access(dbdue.pharmacy, user)
    return crud.get_due_payments(db, dbdue.id)


@router.get("/payments/pending", response_model=PaymentsResponse, responses={403: responses._403})
def get_pending_payments(db: Session = Depends(get_db), user: CurrentUser = Depends(CurrentUser.check_finance)):
    return PaymentService.pending_payments(db)


@router.put(
    "/payments/{payment_id}/approve",
    response_model=PaymentResponse,
    responses={400: responses._400, 403: responses._403, 404: responses._404},
)
def approve_payment(
    request: Request,
    dbpayment: Payment = Depends(get_dbpayment),
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(CurrentUser.check_finance),
):
    _ensure_pending(dbpayment)
    dbpayment = crud.approve_payment(db, dbpayment, user.id)
    invalidate_payments()
    audit.record(db, AuditAction.approval, "payment", dbpayment.id, user_id=user.id, request=request,
                 details={"due_id": dbpayment.due_id, "amount": dbpayment.amount})
    logger.info(f'Payment "{dbpayment.id}" approved by "{user.email}"')
    return dbpayment


@router.put(
    "/payments/{payment_id}/reject",
    response_model=PaymentResponse,
    responses={400: responses._400, 403: responses._403, 404: responses._404},
)
def reject_payment(
    payload: PaymentReject,
    request: Request,
    dbpayment: Payment = Depends(get_dbpayment),
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(CurrentUser.check_finance),
):
    reason = (payload.rejection_reason or "").strip()
    if not reason:
        raise HTTPException(status_code=400, detail="Rejection reason is required")
    _ensure_pending(dbpayment)

    dbpayment = crud.reject_payment(db, dbpayment, reason, user.id)
    invalidate_payments()
    audit.record(db, AuditAction.approval, "payment", dbpayment.id, user_id=user.id, request=request,
                 details={"due_id": dbpayment.due_id, "rejected": True, "reason": reason})
    logger.info(f'Payment "{dbpayment.id}" rejected by "{user.email}"')
    return dbpayment


@router.delete("/payments/{payment_id}", responses={403: responses._403, 404: responses._404})
def remove_payment(
    request: Request,
    dbpayment: Payment = Depends(get_dbpayment),
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(CurrentUser.check_admin),
):
    payment_id, due_id, amount = dbpayment.id, dbpayment.due_id, dbpayment.amount
    crud.remove_payment(db, dbpayment)
    invalidate_payments()
    audit.record(db, AuditAction.delete, "payment", payment_id, user_id=user.id, request=request,
                 details={"due_id": due_id, "amount": amount})
    return {"detail": "Payment successfully deleted"}
