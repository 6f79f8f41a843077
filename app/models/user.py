import re
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from passlib.context import CryptContext
from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.db import Session, crud, get_db
from app.utils.jwt import get_token_payload
from config import SUDOERS

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/token")

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def _to_utc_aware(dt: Optional[datetime]) -> Optional[datetime]:
    """Treat naive values as UTC (the DB stores naive UTC timestamps)."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


class UserRole(str, Enum):
    member = "member"
    admin = "admin"
    secretary = "secretary"
    treasurer = "treasurer"
    superadmin = "superadmin"


class UserStatus(str, Enum):
    active = "active"
    inactive = "inactive"
    suspended = "suspended"
    pending = "pending"
    rejected = "rejected"


ADMIN_ROLES = (UserRole.admin, UserRole.superadmin)
FINANCE_ROLES = (UserRole.admin, UserRole.superadmin, UserRole.treasurer)
OFFICER_ROLES = (UserRole.admin, UserRole.superadmin, UserRole.secretary, UserRole.treasurer)

# statuses that may not sign in at all
BLOCKED_STATUSES = (UserStatus.pending, UserStatus.rejected, UserStatus.suspended)


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


def _normalize_email(value: str) -> str:
    value = (value or "").strip().lower()
    if not EMAIL_PATTERN.match(value):
        raise ValueError("Please provide a valid email")
    return value


class UserBase(BaseModel):
    first_name: str = Field(..., min_length=1, max_length=64)
    last_name: str = Field(..., min_length=1, max_length=64)
    email: str
    phone: Optional[str] = Field(None, max_length=32)
    pcn_license: Optional[str] = Field(None, max_length=64)

    @field_validator("email", mode="before")
    @classmethod
    def validate_email(cls, v):
        return _normalize_email(v)


class UserCreate(UserBase):
    password: str = Field(..., min_length=6, description="Account password (minimum 6 characters)")
    role: UserRole = UserRole.member

    @property
    def hashed_password(self):
        return pwd_context.hash(self.password)


class UserRegister(UserBase):
    password: str = Field(..., min_length=6, description="Account password (minimum 6 characters)")

    @property
    def hashed_password(self):
        return pwd_context.hash(self.password)


class UserModify(BaseModel):
    first_name: Optional[str] = Field(None, min_length=1, max_length=64)
    last_name: Optional[str] = Field(None, min_length=1, max_length=64)
    phone: Optional[str] = Field(None, max_length=32)
    pcn_license: Optional[str] = Field(None, max_length=64)


class UserResponse(BaseModel):
    id: int
    first_name: str
    last_name: str
    email: str
    phone: Optional[str] = None
    pcn_license: Optional[str] = None
    role: UserRole
    status: UserStatus
    is_approved: bool = False
    email_verified: bool = False
    created_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


class UsersResponse(BaseModel):
    users: List[UserResponse]
    total: int
    page: int
    limit: int


class UserRoleModify(BaseModel):
    role: UserRole


class UserStatusModify(BaseModel):
    status: UserStatus


class BulkStatusModify(BaseModel):
    user_ids: List[int] = Field(..., min_length=1)
    status: UserStatus


class BulkRoleModify(BaseModel):
    user_ids: List[int] = Field(..., min_length=1)
    role: UserRole


class BulkUpdateResponse(BaseModel):
    updated: int


class PasswordChange(BaseModel):
    current_password: str
    new_password: str = Field(..., min_length=6)


class ForgotPassword(BaseModel):
    email: str

    @field_validator("email", mode="before")
    @classmethod
    def validate_email(cls, v):
        return _normalize_email(v)


class PasswordReset(BaseModel):
    token: str = Field(..., min_length=8)
    password: str = Field(..., min_length=6)


class UserInDB(BaseModel):
    email: str
    hashed_password: str
    model_config = ConfigDict(from_attributes=True)

    def verify_password(self, plain_password):
        return pwd_context.verify(plain_password, self.hashed_password)


class CurrentUser(BaseModel):
    """The authenticated caller. ``id`` is None for environment sudoers."""

    id: Optional[int] = None
    email: str
    first_name: str = ""
    last_name: str = ""
    role: UserRole = UserRole.member
    status: UserStatus = UserStatus.active
    model_config = ConfigDict(from_attributes=True)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip() or self.email

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES

    @property
    def is_officer(self) -> bool:
        return self.role in OFFICER_ROLES

    @property
    def is_finance(self) -> bool:
        return self.role in FINANCE_ROLES

    def ensure_roles(self, roles, action: str = "perform this action") -> None:
        if self.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"User role {self.role.value} is not authorized to {action}",
            )

    def ensure_account(self) -> int:
        """Return the caller's user id, refusing accounts that only exist in the environment."""
        if self.id is None:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="This action requires a registered member account",
            )
        return self.id

    @classmethod
    def get_user(cls, token: str, db: Session):
        payload = get_token_payload(token)
        if not payload:
            return

        if payload["email"] in SUDOERS:
            return cls(email=payload["email"], first_name="Sudo", role=UserRole.superadmin)

        dbuser = crud.get_user_by_email(db, payload["email"])
        if not dbuser:
            return

        if dbuser.password_changed_at:
            if not payload.get("created_at"):
                return
            # iat only has second precision
            changed_at = _to_utc_aware(dbuser.password_changed_at).replace(microsecond=0)
            created_at = _to_utc_aware(payload["created_at"])
            if changed_at and created_at and changed_at > created_at:
                return

        return cls.model_validate(dbuser)

    @classmethod
    def get_current(cls,
                    db: Session = Depends(get_db),
                    token: str = Depends(oauth2_scheme)):
        user = cls.get_user(token, db)
        if not user:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Could not validate credentials",
                headers={"WWW-Authenticate": "Bearer"},
            )
        if user.status in BLOCKED_STATUSES:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Your account is {user.status.value}",
            )
        return user

    @classmethod
    def check_officer(cls,
                      db: Session = Depends(get_db),
                      token: str = Depends(oauth2_scheme)):
        user = cls.get_current(db=db, token=token)
        user.ensure_roles(OFFICER_ROLES, "access this route")
        return user

    @classmethod
    def check_finance(cls,
                      db: Session = Depends(get_db),
                      token: str = Depends(oauth2_scheme)):
        user = cls.get_current(db=db, token=token)
        user.ensure_roles(FINANCE_ROLES, "access this route")
        return user

    @classmethod
    def check_admin(cls,
                    db: Session = Depends(get_db),
                    token: str = Depends(oauth2_scheme)):
        user = cls.get_current(db=db, token=token)
        user.ensure_roles(ADMIN_ROLES, "access this route")
        return user

    @classmethod
    def check_superadmin(cls,
                         db: Session = Depends(get_db),
                         token: str = Depends(oauth2_scheme)):
        user = cls.get_current(db=db, token=token)
        user.ensure_roles((UserRole.superadmin,), "access this route")
        return user
