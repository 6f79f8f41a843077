from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.exc import IntegrityError

from app.db import Session, crud, get_db
from app.dependencies import validate_user
from app.models.audit import AuditAction
from app.models.user import (
    BLOCKED_STATUSES,
    CurrentUser,
    ForgotPassword,
    PasswordChange,
    PasswordReset,
    Token,
    UserInDB,
    UserModify,
    UserRegister,
    UserResponse,
)
from app.redis.invalidation import invalidate_user_related_data
from app.runtime import logger
from app.utils import audit, responses
from app.utils.jwt import create_access_token

router = APIRouter(tags=["Auth"], prefix="/api/auth", responses={401: responses._401})


@router.post(
    "/register",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    responses={409: responses._409},
)
def register(payload: UserRegister, request: Request, db: Session = Depends(get_db)):
    """Self-registration. The account stays pending until an admin approves it."""
    try:
        dbuser = crud.register_user(db, payload)
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="Email already registered")

    audit.record(db, AuditAction.create, "user", dbuser.id, user_id=dbuser.id, request=request)
    logger.info(f'New member "{dbuser.email}" registered and awaits approval')
    return dbuser


@router.post("/token", response_model=Token, responses={403: responses._403})
def login(
    request: Request,
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: Session = Depends(get_db),
):
    """Authenticate with email and password and issue an access token."""
    user = validate_user(db, form_data.username, form_data.password)
    if not user:
        logger.warning(f'Failed login attempt for "{form_data.username}" from {audit.get_client_ip(request)}')
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if user.status in BLOCKED_STATUSES:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Your account is {user.status.value}",
        )

    audit.record(db, AuditAction.login, "user", user.id, user_id=user.id, request=request)
    return Token(access_token=create_access_token(user.email, user.role.value))


@router.get("/me", response_model=UserResponse, responses={403: responses._403})
def get_me(db: Session = Depends(get_db), user: CurrentUser = Depends(CurrentUser.get_current)):
    return crud.get_user_by_id(db, user.ensure_account())


@router.put("/me", response_model=UserResponse, responses={403: responses._403})
def modify_me(
    modify: UserModify,
    request: Request,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(CurrentUser.get_current),
):
    dbuser = crud.get_user_by_id(db, user.ensure_account())
    dbuser = crud.update_user_profile(db, dbuser, modify)
    invalidate_user_related_data(dbuser.id)
    audit.record(
        db,
        AuditAction.update,
        "user",
        dbuser.id,
        user_id=dbuser.id,
        details={"fields": sorted(modify.model_dump(exclude_unset=True))},
        request=request,
    )
    return dbuser


@router.post("/change-password", responses={400: responses._400, 403: responses._403})
def change_password(
    payload: PasswordChange,
    request: Request,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(CurrentUser.get_current),
):
    """Change the caller's password. Tokens issued before the change stop working."""
    dbuser = crud.get_user_by_id(db, user.ensure_account())
    if not UserInDB.model_validate(dbuser).verify_password(payload.current_password):
        raise HTTPException(status_code=400, detail="Current password is incorrect")

    crud.set_user_password(db, dbuser, payload.new_password)
    audit.record(db, AuditAction.update, "user", dbuser.id, user_id=dbuser.id,
                 details={"field": "password"}, request=request)
    return {"detail": "Password changed successfully"}


@router.post("/forgot-password")
def forgot_password(payload: ForgotPassword, db: Session = Depends(get_db)):
    """Answers the same way whether or not the email belongs to an account."""
    dbuser = crud.get_user_by_email(db, payload.email)
    if dbuser:
        token = crud.create_password_reset_token(db, dbuser)
        # no mail transport; the token is handed over out of band
        logger.info(f'Password reset token for "{dbuser.email}": {token}')
    return {"detail": "If the email is registered, a reset link has been sent"}


@router.post("/reset-password", responses={400: responses._400})
def reset_password(payload: PasswordReset, request: Request, db: Session = Depends(get_db)):
    dbuser = crud.get_user_by_reset_token(db, payload.token)
    if not dbuser:
        raise HTTPException(status_code=400, detail="Invalid or expired reset token")

    crud.set_user_password(db, dbuser, payload.password)
    audit.record(db, AuditAction.update, "user", dbuser.id, user_id=dbuser.id,
                 details={"field": "password", "via": "reset"}, request=request)
    return {"detail": "Password has been reset"}
