from typing import List, Optional, Tuple

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.db.crud.common import apply_changes, paginate
from app.db.models import Due, Pharmacy
from app.models.pharmacy import PharmacyCreate, PharmacyModify, RegistrationStatus


def get_pharmacy(db: Session, pharmacy_id: int) -> Optional[Pharmacy]:
    return db.query(Pharmacy).filter(Pharmacy.id == pharmacy_id).first()


def get_pharmacy_by_registration_number(db: Session, registration_number: str) -> Optional[Pharmacy]:
    return (
        db.query(Pharmacy)
        .filter(func.lower(Pharmacy.registration_number) == registration_number.strip().lower())
        .first()
    )


def get_pharmacies(
    db: Session,
    page: int = 1,
    limit: int = 10,
    search: Optional[str] = None,
    status: Optional[RegistrationStatus] = None,
) -> Tuple[List[Pharmacy], int]:
    query = db.query(Pharmacy)
    if status:
        query = query.filter(Pharmacy.registration_status == status)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(
            or_(
                Pharmacy.name.ilike(pattern),
                Pharmacy.registration_number.ilike(pattern),
                Pharmacy.ward_area.ilike(pattern),
            )
        )
    return paginate(query.order_by(Pharmacy.name.asc(), Pharmacy.id.asc()), page, limit)


def get_user_pharmacies(db: Session, user_id: int) -> List[Pharmacy]:
    return db.query(Pharmacy).filter(Pharmacy.user_id == user_id).order_by(Pharmacy.id.asc()).all()


def get_active_pharmacy_ids(db: Session) -> List[int]:
    rows = db.query(Pharmacy.id).filter(Pharmacy.registration_status == RegistrationStatus.active).all()
    return [row[0] for row in rows]


def create_pharmacy(db: Session, pharmacy: PharmacyCreate, owner_id: Optional[int]) -> Pharmacy:
    if get_pharmacy_by_registration_number(db, pharmacy.registration_number):
        raise IntegrityError(
            None,
            {"registration_number": pharmacy.registration_number},
            Exception("Registration number already exists"),
        )
    data = pharmacy.model_dump(exclude={"user_id", "registration_status"})
    dbpharmacy = Pharmacy(
        **data,
        user_id=owner_id,
        registration_status=pharmacy.registration_status or RegistrationStatus.pending,
    )
    db.add(dbpharmacy)
    db.commit()
    db.refresh(dbpharmacy)
    return dbpharmacy


def update_pharmacy(db: Session, dbpharmacy: Pharmacy, modify: PharmacyModify) -> Pharmacy:
    data = modify.model_dump(exclude_unset=True)
    new_number = data.get("registration_number")
    if new_number and new_number.lower() != dbpharmacy.registration_number.lower():
        if get_pharmacy_by_registration_number(db, new_number):
            raise IntegrityError(
                None, {"registration_number": new_number}, Exception("Registration number already exists")
            )
    apply_changes(dbpharmacy, data)
    db.commit()
    db.refresh(dbpharmacy)
    return dbpharmacy


def remove_pharmacy(db: Session, dbpharmacy: Pharmacy) -> None:
    db.delete(dbpharmacy)
    db.commit()


def get_pharmacy_stats(db: Session) -> dict:
    rows = (
        db.query(Pharmacy.registration_status, func.count(Pharmacy.id))
        .group_by(Pharmacy.registration_status)
        .all()
    )
    by_status = {status.value: 0 for status in RegistrationStatus}
    for status, count in rows:
        by_status[status.value] = count
    return {"total": sum(by_status.values()), "by_status": by_status}


def get_pharmacies_dues_status(db: Session) -> List[dict]:
    """Per pharmacy totals of dues, payments and outstanding balances."""
    rows = (
        db.query(
            Pharmacy.id,
            Pharmacy.name,
            Pharmacy.registration_number,
            func.coalesce(func.sum(Due.total_amount), 0),
            func.coalesce(func.sum(Due.amount_paid), 0),
            func.coalesce(func.sum(Due.balance), 0),
            func.count(Due.id),
        )
        .outerjoin(Due, Due.pharmacy_id == Pharmacy.id)
        .group_by(Pharmacy.id, Pharmacy.name, Pharmacy.registration_number)
        .order_by(Pharmacy.name.asc())
        .all()
    )
    return [
        {
            "pharmacy_id": pharmacy_id,
            "name": name,
            "registration_number": registration_number,
            "total_due": float(total_due),
            "total_paid": float(total_paid),
            "outstanding": float(outstanding),
            "dues_count": dues_count,
        }
        for pharmacy_id, name, registration_number, total_due, total_paid, outstanding, dues_count in rows
    ]
