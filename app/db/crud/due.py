"""
Functions for managing due types, dues, penalties and dues analytics.
"""

from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from app.db.crud.common import apply_changes, naive_utc, paginate
from app.db.exceptions import DuplicateDueError
from app.db.models import Due, DuePenalty, DueType, Payment, Pharmacy, utcnow
from app.models.due import (
    AssignmentType,
    DueAssign,
    DueCreate,
    DueModify,
    DuePaymentStatus,
    DueTypeCreate,
    DueTypeModify,
    PenaltyCreate,
)
from app.models.payment import ApprovalStatus


# ---------------------------------------------------------------------------
# Due types
# ---------------------------------------------------------------------------


def get_due_type(db: Session, due_type_id: int) -> Optional[DueType]:
    return db.query(DueType).filter(DueType.id == due_type_id).first()


def get_due_type_by_name(db: Session, name: str) -> Optional[DueType]:
    return db.query(DueType).filter(func.lower(DueType.name) == name.strip().lower()).first()


def get_due_types(db: Session, active: Optional[bool] = None) -> List[DueType]:
    query = db.query(DueType)
    if active is not None:
        query = query.filter(DueType.is_active == active)
    return query.order_by(DueType.name.asc()).all()


def create_due_type(db: Session, due_type: DueTypeCreate, created_by: Optional[int]) -> DueType:
    if get_due_type_by_name(db, due_type.name):
        raise IntegrityError(None, {"name": due_type.name}, Exception("Due type already exists"))
    data = due_type.model_dump()
    if not data["is_recurring"]:
        data["recurring_period"] = None
    dbdue_type = DueType(**data, created_by=created_by)
    db.add(dbdue_type)
    db.commit()
    db.refresh(dbdue_type)
    return dbdue_type


def update_due_type(db: Session, dbdue_type: DueType, modify: DueTypeModify) -> DueType:
    data = modify.model_dump(exclude_unset=True)
    new_name = data.get("name")
    if new_name and new_name.lower() != dbdue_type.name.lower() and get_due_type_by_name(db, new_name):
        raise IntegrityError(None, {"name": new_name}, Exception("Due type already exists"))
    apply_changes(dbdue_type, data)
    if dbdue_type.is_recurring and not dbdue_type.recurring_period:
        raise ValueError("Recurring period is required for recurring due types")
    if not dbdue_type.is_recurring:
        dbdue_type.recurring_period = None
    db.commit()
    db.refresh(dbdue_type)
    return dbdue_type


def due_type_in_use(db: Session, dbdue_type: DueType) -> bool:
    return db.query(Due.id).filter(Due.due_type_id == dbdue_type.id).first() is not None


def remove_due_type(db: Session, dbdue_type: DueType) -> None:
    db.delete(dbdue_type)
    db.commit()


# ---------------------------------------------------------------------------
# Dues
# ---------------------------------------------------------------------------


def _due_query(db: Session):
    return db.query(Due).options(joinedload(Due.pharmacy), joinedload(Due.due_type))


def get_due(db: Session, due_id: int) -> Optional[Due]:
    return _due_query(db).filter(Due.id == due_id).first()


def get_dues(
    db: Session,
    page: int = 1,
    limit: int = 10,
    status: Optional[DuePaymentStatus] = None,
    year: Optional[int] = None,
    pharmacy_id: Optional[int] = None,
    due_type_id: Optional[int] = None,
    search: Optional[str] = None,
) -> Tuple[List[Due], int]:
    query = _due_query(db)
    if status:
        query = query.filter(Due.payment_status == status)
    if year:
        query = query.filter(Due.year == year)
    if pharmacy_id:
        query = query.filter(Due.pharmacy_id == pharmacy_id)
    if due_type_id:
        query = query.filter(Due.due_type_id == due_type_id)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.join(Pharmacy, Pharmacy.id == Due.pharmacy_id).filter(
            or_(Due.title.ilike(pattern), Pharmacy.name.ilike(pattern))
        )
    return paginate(query.order_by(Due.due_date.desc(), Due.id.desc()), page, limit)


def get_pharmacy_dues(db: Session, pharmacy_id: int, year: Optional[int] = None) -> List[Due]:
    query = _due_query(db).filter(Due.pharmacy_id == pharmacy_id)
    if year:
        query = query.filter(Due.year == year)
    return query.order_by(Due.due_date.desc(), Due.id.desc()).all()


def _find_duplicate(db: Session, pharmacy_id: int, due_type_id: int, year: int) -> Optional[Due]:
    return (
        db.query(Due)
        .filter(Due.pharmacy_id == pharmacy_id, Due.due_type_id == due_type_id, Due.year == year)
        .first()
    )


def _build_due(
    pharmacy_id: int,
    data: DueCreate | DueAssign,
    assignment_type: AssignmentType,
    assigned_by: Optional[int],
) -> Due:
    due_date = naive_utc(data.due_date)
    dbdue = Due(
        pharmacy_id=pharmacy_id,
        due_type_id=data.due_type_id,
        title=data.title,
        description=data.description,
        amount=data.amount,
        amount_paid=0,
        due_date=due_date,
        assignment_type=assignment_type,
        assigned_by=assigned_by,
        assigned_at=utcnow(),
        year=due_date.year,
        is_recurring=data.is_recurring,
        next_due_date=naive_utc(data.next_due_date),
    )
    dbdue.recalculate()
    return dbdue


def create_due(db: Session, pharmacy_id: int, due: DueCreate, assigned_by: Optional[int]) -> Due:
    """
    Creates a due for a single pharmacy.

    Raises:
        DuplicateDueError: a due of this type already exists for the pharmacy in that year.
    """
    year = naive_utc(due.due_date).year
    if _find_duplicate(db, pharmacy_id, due.due_type_id, year):
        raise DuplicateDueError(pharmacy_id, year)
    dbdue = _build_due(pharmacy_id, due, AssignmentType.individual, assigned_by)
    db.add(dbdue)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise DuplicateDueError(pharmacy_id, year)
    db.refresh(dbdue)
    return dbdue


def assign_dues(
    db: Session, assignment: DueAssign, pharmacy_ids: List[int], assigned_by: Optional[int]
) -> Tuple[List[Due], List[dict]]:
    """
    Creates one due per pharmacy. Existing duplicates are reported rather than failing the batch.

    Returns:
        Tuple[List[Due], List[dict]]: created dues and ``{"pharmacy_id", "error"}`` entries.
    """
    year = naive_utc(assignment.due_date).year
    created, errors = [], []
    known_ids = {
        row[0] for row in db.query(Pharmacy.id).filter(Pharmacy.id.in_(pharmacy_ids)).all()
    } if pharmacy_ids else set()
    for pharmacy_id in pharmacy_ids:
        if pharmacy_id not in known_ids:
            errors.append({"pharmacy_id": pharmacy_id, "error": "Pharmacy not found"})
            continue
        if _find_duplicate(db, pharmacy_id, assignment.due_type_id, year):
            errors.append(
                {
                    "pharmacy_id": pharmacy_id,
                    "error": f"Due already exists for this pharmacy and due type in {year}",
                }
            )
            continue
        dbdue = _build_due(pharmacy_id, assignment, assignment.assignment_type, assigned_by)
        db.add(dbdue)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            errors.append({"pharmacy_id": pharmacy_id, "error": "Failed to create due"})
            continue
        db.refresh(dbdue)
        created.append(dbdue)
    return created, errors


def update_due(db: Session, dbdue: Due, modify: DueModify) -> Due:
    data = modify.model_dump(exclude_unset=True)
    if "due_date" in data and data["due_date"] is not None:
        data["due_date"] = naive_utc(data["due_date"])
        new_year = data["due_date"].year
        if new_year != dbdue.year:
            duplicate = _find_duplicate(db, dbdue.pharmacy_id, dbdue.due_type_id, new_year)
            if duplicate and duplicate.id != dbdue.id:
                raise DuplicateDueError(dbdue.pharmacy_id, new_year)
            dbdue.year = new_year
    if "next_due_date" in data:
        data["next_due_date"] = naive_utc(data["next_due_date"])
    apply_changes(dbdue, data)
    dbdue.recalculate()
    db.commit()
    db.refresh(dbdue)
    return dbdue


def due_has_approved_payments(db: Session, dbdue: Due) -> bool:
    return (
        db.query(Payment.id)
        .filter(Payment.due_id == dbdue.id, Payment.approval_status == ApprovalStatus.approved)
        .first()
        is not None
    )


def remove_due(db: Session, dbdue: Due) -> None:
    db.delete(dbdue)
    db.commit()


def mark_due_paid(db: Session, dbdue: Due) -> Due:
    dbdue.recalculate()
    dbdue.amount_paid = dbdue.total_amount
    dbdue.recalculate()
    db.commit()
    db.refresh(dbdue)
    return dbdue


def apply_payment_to_due(db: Session, dbdue: Due, amount: float) -> Due:
    """Adds (or with a negative amount, removes) a payment from the due; caller commits."""
    dbdue.amount_paid = max((dbdue.amount_paid or 0) + amount, 0)
    dbdue.recalculate()
    return dbdue


def add_due_penalty(db: Session, dbdue: Due, penalty: PenaltyCreate, added_by: Optional[int]) -> Due:
    dbdue.penalties.append(
        DuePenalty(amount=penalty.amount, reason=penalty.reason, added_by=added_by, added_at=utcnow())
    )
    dbdue.recalculate()
    db.commit()
    db.refresh(dbdue)
    return dbdue


def get_overdue_dues(
    db: Session, page: int = 1, limit: int = 10, now: Optional[datetime] = None
) -> Tuple[List[Due], int]:
    now = now or utcnow()
    query = _due_query(db).filter(Due.due_date < now, Due.payment_status != DuePaymentStatus.paid)
    return paginate(query.order_by(Due.due_date.asc(), Due.id.asc()), page, limit)


def mark_overdue_dues(db: Session, now: Optional[datetime] = None) -> int:
    """Flags unpaid dues whose due date has passed; returns the number updated."""
    now = now or utcnow()
    updated = (
        db.query(Due)
        .filter(
            Due.due_date < now,
            Due.amount_paid <= 0,
            Due.payment_status == DuePaymentStatus.pending,
        )
        .update({Due.payment_status: DuePaymentStatus.overdue}, synchronize_session=False)
    )
    db.commit()
    return updated


def get_dues_analytics(db: Session, year: int) -> dict:
    summary_row = (
        db.query(
            func.count(Due.id),
            func.coalesce(func.sum(Due.total_amount), 0),
            func.coalesce(func.sum(Due.amount_paid), 0),
            func.coalesce(func.sum(Due.balance), 0),
        )
        .filter(Due.year == year)
        .one()
    )
    status_rows = (
        db.query(Due.payment_status, func.count(Due.id))
        .filter(Due.year == year)
        .group_by(Due.payment_status)
        .all()
    )
    status_counts = {status: count for status, count in status_rows}
    type_rows = (
        db.query(
            Due.due_type_id,
            DueType.name,
            func.count(Due.id),
            func.coalesce(func.sum(Due.total_amount), 0),
            func.coalesce(func.sum(Due.amount_paid), 0),
        )
        .outerjoin(DueType, DueType.id == Due.due_type_id)
        .filter(Due.year == year)
        .group_by(Due.due_type_id, DueType.name)
        .all()
    )
    return {
        "year": year,
        "summary": {
            "total_dues": summary_row[0],
            "total_amount": float(summary_row[1]),
            "total_paid": float(summary_row[2]),
            "outstanding": float(summary_row[3]),
            "paid_count": status_counts.get(DuePaymentStatus.paid, 0),
            "overdue_count": status_counts.get(DuePaymentStatus.overdue, 0),
        },
        "dues_by_type": [
            {
                "due_type_id": due_type_id,
                "due_type_name": name,
                "count": count,
                "total_amount": float(total_amount),
                "amount_paid": float(amount_paid),
            }
            for due_type_id, name, count, total_amount, amount_paid in type_rows
        ],
    }


def get_pharmacy_dues_analytics(db: Session, pharmacy_id: int) -> dict:
    row = (
        db.query(
            func.count(Due.id),
            func.coalesce(func.sum(Due.total_amount), 0),
            func.coalesce(func.sum(Due.amount_paid), 0),
            func.coalesce(func.sum(Due.balance), 0),
        )
        .filter(Due.pharmacy_id == pharmacy_id)
        .one()
    )
    return {
        "pharmacy_id": pharmacy_id,
        "total_dues": row[0],
        "total_amount": float(row[1]),
        "total_paid": float(row[2]),
        "outstanding": float(row[3]),
    }


def get_user_dues_summary(db: Session, user_id: int, year: Optional[int] = None) -> dict:
    """Dues totals across every pharmacy owned by ``user_id``."""
    query = (
        db.query(
            func.count(Due.id),
            func.coalesce(func.sum(Due.amount), 0),
            func.coalesce(func.sum(Due.total_amount), 0),
            func.coalesce(func.sum(Due.amount_paid), 0),
            func.coalesce(func.sum(Due.balance), 0),
        )
        .join(Pharmacy, Pharmacy.id == Due.pharmacy_id)
        .filter(Pharmacy.user_id == user_id)
    )
    if year is not None:
        query = query.filter(Due.year == year)
    row = query.one()
    return {
        "total_dues": row[0],
        "base_amount": float(row[1]),
        "total_due": float(row[2]),
        "total_paid": float(row[3]),
        "remaining_balance": float(row[4]),
    }
