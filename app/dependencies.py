from typing import Optional

from fastapi import Depends, HTTPException

from app.db import Session, crud, get_db
from app.db.models import Pharmacy, User
from app.models.user import CurrentUser, UserInDB, UserRole
from config import SUDOERS


def validate_user(db: Session, email: str, password: str) -> Optional[CurrentUser]:
    """Validate login credentials with environment variables or database."""
    email = (email or "").strip().lower()
    if SUDOERS.get(email) == password:
        return CurrentUser(email=email, first_name="Sudo", role=UserRole.superadmin)

    dbuser = crud.get_user_by_email(db, email)
    if dbuser and UserInDB.model_validate(dbuser).verify_password(password):
        return CurrentUser.model_validate(dbuser)

    return None


def get_dbuser(user_id: int, db: Session = Depends(get_db)) -> User:
    """Fetch a user by id, raising a 404 error if not found."""
    dbuser = crud.get_user_by_id(db, user_id)
    if not dbuser:
        raise HTTPException(status_code=404, detail="User not found")
    return dbuser


def get_dbpharmacy(pharmacy_id: int, db: Session = Depends(get_db)) -> Pharmacy:
    dbpharmacy = crud.get_pharmacy(db, pharmacy_id)
    if not dbpharmacy:
        raise HTTPException(status_code=404, detail="Pharmacy not found")
    return dbpharmacy


def get_dbdue_type(due_type_id: int, db: Session = Depends(get_db)):
    dbdue_type = crud.get_due_type(db, due_type_id)
    if not dbdue_type:
        raise HTTPException(status_code=404, detail="Due type not found")
    return dbdue_type


def get_dbdue(due_id: int, db: Session = Depends(get_db)):
    dbdue = crud.get_due(db, due_id)
    if not dbdue:
        raise HTTPException(status_code=404, detail="Due not found")
    return dbdue


def get_dbpayment(payment_id: int, db: Session = Depends(get_db)):
    dbpayment = crud.get_payment(db, payment_id)
    if not dbpayment:
        raise HTTPException(status_code=404, detail="Payment not found")
    return dbpayment


def get_dbevent(event_id: int, db: Session = Depends(get_db)):
    dbevent = crud.get_event(db, event_id)
    if not dbevent:
        raise HTTPException(status_code=404, detail="Event not found")
    return dbevent


def get_dbelection(election_id: int, db: Session = Depends(get_db)):
    dbelection = crud.get_election(db, election_id)
    if not dbelection:
        raise HTTPException(status_code=404, detail="Election not found")
    return dbelection


def get_dbcommunication(communication_id: int, db: Session = Depends(get_db)):
    dbcommunication = crud.get_communication(db, communication_id)
    if not dbcommunication:
        raise HTTPException(status_code=404, detail="Communication not found")
    return dbcommunication


def get_dbdocument(document_id: int, db: Session = Depends(get_db)):
    dbdocument = crud.get_document(db, document_id)
    if not dbdocument:
        raise HTTPException(status_code=404, detail="Document not found")
    return dbdocument


def ensure_pharmacy_access(dbpharmacy: Pharmacy, user: CurrentUser) -> None:
    """Owners and officers may see a pharmacy and everything hanging off it."""
    if user.is_officer:
        return
    if user.id is None or dbpharmacy.user_id != user.id:
        raise HTTPException(status_code=403, detail="You are not allowed to access this pharmacy")
