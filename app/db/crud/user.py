"""
Functions for managing member accounts, approvals and password resets.
"""

from datetime import timedelta
from typing import Iterable, List, Optional, Tuple

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.db.crud.common import apply_changes, paginate
from app.db.models import User, utcnow
from app.models.user import (
    ADMIN_ROLES,
    UserCreate,
    UserModify,
    UserRegister,
    UserRole,
    UserStatus,
    pwd_context,
)
from app.utils.jwt import generate_reset_token, hash_reset_token
from config import PASSWORD_RESET_TOKEN_EXPIRE_MINUTES


def get_user_by_id(db: Session, user_id: int) -> Optional[User]:
    return db.query(User).filter(User.id == user_id).first()


def get_user_by_email(db: Session, email: str) -> Optional[User]:
    """Retrieves a user by email (case-insensitive)."""
    if not email:
        return None
    return db.query(User).filter(func.lower(User.email) == email.strip().lower()).first()


def get_users(
    db: Session,
    page: int = 1,
    limit: int = 10,
    role: Optional[UserRole] = None,
    status: Optional[UserStatus] = None,
    search: Optional[str] = None,
) -> Tuple[List[User], int]:
    """
    Retrieves users with optional filters.

    Args:
        db (Session): Database session.
        page (int): Page number, starting at 1.
        limit (int): Page size.
        role (UserRole, optional): Filter by role.
        status (UserStatus, optional): Filter by status.
        search (str, optional): Matches first name, last name or email.

    Returns:
        Tuple[List[User], int]: Users of the page and the total count.
    """
    query = db.query(User)
    if role:
        query = query.filter(User.role == role)
    if status:
        query = query.filter(User.status == status)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(
            or_(User.first_name.ilike(pattern), User.last_name.ilike(pattern), User.email.ilike(pattern))
        )
    return paginate(query.order_by(User.created_at.desc(), User.id.desc()), page, limit)


def _ensure_email_available(db: Session, email: str) -> None:
    if get_user_by_email(db, email):
        raise IntegrityError(None, {"email": email}, Exception("Email already registered"))


def register_user(db: Session, user: UserRegister) -> User:
    """Self-registration: members start pending until an officer approves them."""
    _ensure_email_available(db, user.email)
    dbuser = User(
        first_name=user.first_name,
        last_name=user.last_name,
        email=user.email,
        phone=user.phone,
        pcn_license=user.pcn_license,
        hashed_password=user.hashed_password,
        role=UserRole.member,
        status=UserStatus.pending,
        is_approved=False,
    )
    db.add(dbuser)
    db.commit()
    db.refresh(dbuser)
    return dbuser


def create_user(db: Session, user: UserCreate, approved: bool = True) -> User:
    """Creates an account directly (CLI or tests); approved accounts are active at once."""
    _ensure_email_available(db, user.email)
    dbuser = User(
        first_name=user.first_name,
        last_name=user.last_name,
        email=user.email,
        phone=user.phone,
        pcn_license=user.pcn_license,
        hashed_password=user.hashed_password,
        role=user.role,
        status=UserStatus.active if approved else UserStatus.pending,
        is_approved=approved,
    )
    db.add(dbuser)
    db.commit()
    db.refresh(dbuser)
    return dbuser


def update_user_profile(db: Session, dbuser: User, modify: UserModify) -> User:
    apply_changes(dbuser, modify.model_dump(exclude_unset=True))
    db.commit()
    db.refresh(dbuser)
    return dbuser


def update_user_role(db: Session, dbuser: User, role: UserRole) -> User:
    dbuser.role = role
    db.commit()
    db.refresh(dbuser)
    return dbuser


def update_user_status(db: Session, dbuser: User, status: UserStatus) -> User:
    dbuser.status = status
    if status == UserStatus.active:
        dbuser.is_approved = True
    elif status == UserStatus.rejected:
        dbuser.is_approved = False
    db.commit()
    db.refresh(dbuser)
    return dbuser


def approve_user(db: Session, dbuser: User) -> User:
    return update_user_status(db, dbuser, UserStatus.active)


def reject_user(db: Session, dbuser: User) -> User:
    return update_user_status(db, dbuser, UserStatus.rejected)


def bulk_update_user_status(db: Session, user_ids: Iterable[int], status: UserStatus) -> int:
    values = {User.status: status}
    if status == UserStatus.active:
        values[User.is_approved] = True
    updated = (
        db.query(User)
        .filter(User.id.in_(list(user_ids)))
        .update(values, synchronize_session=False)
    )
    db.commit()
    return updated


def bulk_update_user_role(db: Session, user_ids: Iterable[int], role: UserRole) -> int:
    updated = (
        db.query(User)
        .filter(User.id.in_(list(user_ids)), User.role != UserRole.superadmin)
        .update({User.role: role}, synchronize_session=False)
    )
    db.commit()
    return updated


def remove_user(db: Session, dbuser: User) -> None:
    db.delete(dbuser)
    db.commit()


def set_user_password(db: Session, dbuser: User, password: str) -> User:
    dbuser.hashed_password = pwd_context.hash(password)
    dbuser.password_changed_at = utcnow()
    dbuser.password_reset_token = None
    dbuser.password_reset_expires = None
    db.commit()
    db.refresh(dbuser)
    return dbuser


def create_password_reset_token(db: Session, dbuser: User) -> str:
    """Stores the hash of a fresh reset token on the user and returns the plain token."""
    token, token_hash = generate_reset_token()
    dbuser.password_reset_token = token_hash
    dbuser.password_reset_expires = utcnow() + timedelta(minutes=PASSWORD_RESET_TOKEN_EXPIRE_MINUTES)
    db.commit()
    return token


def get_user_by_reset_token(db: Session, token: str) -> Optional[User]:
    return (
        db.query(User)
        .filter(
            User.password_reset_token == hash_reset_token(token),
            User.password_reset_expires > utcnow(),
        )
        .first()
    )


def get_active_users(db: Session, role: Optional[UserRole] = None) -> List[User]:
    query = db.query(User).filter(User.status == UserStatus.active)
    if role:
        query = query.filter(User.role == role)
    return query.order_by(User.last_name.asc(), User.first_name.asc()).all()


def get_active_user_ids(db: Session, exclude_user_id: Optional[int] = None) -> List[int]:
    query = db.query(User.id).filter(User.status == UserStatus.active)
    if exclude_user_id is not None:
        query = query.filter(User.id != exclude_user_id)
    return [row[0] for row in query.all()]


def get_admin_user_ids(db: Session) -> List[int]:
    return [row[0] for row in db.query(User.id).filter(User.role.in_(ADMIN_ROLES)).all()]


def get_existing_user_ids(db: Session, user_ids: Iterable[int]) -> List[int]:
    ids = list(user_ids)
    if not ids:
        return []
    return [row[0] for row in db.query(User.id).filter(User.id.in_(ids)).all()]


def count_users_by_status(db: Session) -> dict:
    rows = db.query(User.status, func.count(User.id)).group_by(User.status).all()
    return {status.value: count for status, count in rows}
