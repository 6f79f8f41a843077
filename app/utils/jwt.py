import hashlib
import secrets
from datetime import datetime, timedelta, UTC
from functools import lru_cache
from typing import Union

import jwt

from config import JWT_ACCESS_TOKEN_EXPIRE_MINUTES, JWT_SECRET_KEY


@lru_cache(maxsize=None)
def get_secret_key():
    """Signing key for access tokens, taken from the environment or the database."""
    if JWT_SECRET_KEY:
        return JWT_SECRET_KEY
    from app.db import GetDB, get_jwt_secret_key

    with GetDB() as db:
        return get_jwt_secret_key(db)


def create_access_token(email: str, role: str = "member") -> str:
    now = datetime.now(UTC)
    data = {"sub": email, "role": role, "iat": now}
    if JWT_ACCESS_TOKEN_EXPIRE_MINUTES > 0:
        data["exp"] = now + timedelta(minutes=JWT_ACCESS_TOKEN_EXPIRE_MINUTES)
    return jwt.encode(data, get_secret_key(), algorithm="HS256")


def get_token_payload(token: str) -> Union[dict, None]:
    try:
        payload = jwt.decode(token, get_secret_key(), algorithms=["HS256"])
    except jwt.exceptions.PyJWTError:
        return
    email = payload.get("sub")
    if not email:
        return
    try:
        created_at = datetime.fromtimestamp(payload["iat"], UTC)
    except (KeyError, TypeError, ValueError):
        created_at = None
    return {"email": email, "role": payload.get("role"), "created_at": created_at}


def generate_reset_token() -> tuple[str, str]:
    """Return a (plain token, sha256 hex digest) pair; only the digest is stored."""
    token = secrets.token_hex(20)
    return token, hash_reset_token(token)


def hash_reset_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()
