from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from app.db.crud.common import paginate
from app.db.crud.due import apply_payment_to_due
from app.db.models import Due, Payment, Pharmacy, utcnow
from app.models.payment import ApprovalStatus, PaymentCreate


def get_payment(db: Session, payment_id: int) -> Optional[Payment]:
    return db.query(Payment).filter(Payment.id == payment_id).first()


def get_due_payments(db: Session, due_id: int) -> List[Payment]:
    return (
        db.query(Payment)
        .filter(Payment.due_id == due_id)
        .order_by(Payment.submitted_at.desc(), Payment.id.desc())
        .all()
    )


def get_pending_payments(db: Session) -> List[Payment]:
    return (
        db.query(Payment)
        .filter(Payment.approval_status == ApprovalStatus.pending)
        .order_by(Payment.submitted_at.asc(), Payment.id.asc())
        .all()
    )


def get_pharmacy_payment_history(db: Session, pharmacy_id: int) -> List[Payment]:
    return (
        db.query(Payment)
        .filter(Payment.pharmacy_id == pharmacy_id, Payment.approval_status == ApprovalStatus.approved)
        .order_by(Payment.approved_at.desc(), Payment.id.desc())
        .all()
    )


def create_payment(db: Session, dbdue: Due, payment: PaymentCreate, submitted_by: Optional[int]) -> Payment:
    dbpayment = Payment(
        due_id=dbdue.id,
        pharmacy_id=dbdue.pharmacy_id,
        amount=payment.amount,
        payment_method=payment.payment_method,
        payment_reference=payment.payment_reference,
        receipt_url=payment.receipt_url,
        approval_status=ApprovalStatus.pending,
        submitted_by=submitted_by,
        submitted_at=utcnow(),
    )
    db.add(dbpayment)
    db.commit()
    db.refresh(dbpayment)
    return dbpayment


def approve_payment(db: Session, dbpayment: Payment, approved_by: Optional[int]) -> Payment:
    """Approves a pending payment and credits its amount to the due in the same commit."""
    dbpayment.approval_status = ApprovalStatus.approved
    dbpayment.approved_by = approved_by
    dbpayment.approved_at = utcnow()
    if dbpayment.due:
        apply_payment_to_due(db, dbpayment.due, dbpayment.amount)
    db.commit()
    db.refresh(dbpayment)
    return dbpayment


def reject_payment(db: Session, dbpayment: Payment, reason: str, rejected_by: Optional[int]) -> Payment:
    dbpayment.approval_status = ApprovalStatus.rejected
    dbpayment.approved_by = rejected_by
    dbpayment.approved_at = utcnow()
    dbpayment.rejection_reason = reason
    db.commit()
    db.refresh(dbpayment)
    return dbpayment


def remove_payment(db: Session, dbpayment: Payment) -> None:
    if dbpayment.approval_status == ApprovalStatus.approved and dbpayment.due:
        apply_payment_to_due(db, dbpayment.due, -dbpayment.amount)
    db.delete(dbpayment)
    db.commit()


def count_pending_payments(db: Session) -> int:
    return db.query(Payment).filter(Payment.approval_status == ApprovalStatus.pending).count()


def get_user_payments(db: Session, user_id: int, page: int = 1, limit: int = 10) -> Tuple[List[Payment], int]:
    query = (
        db.query(Payment)
        .join(Pharmacy, Pharmacy.id == Payment.pharmacy_id)
        .filter(Pharmacy.user_id == user_id)
        .order_by(Payment.submitted_at.desc(), Payment.id.desc())
    )
    return paginate(query, page, limit)
