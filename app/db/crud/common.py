"""Common helpers shared by the CRUD modules."""

import logging
import os
from datetime import datetime, timezone
from typing import Optional, Tuple

from sqlalchemy.orm import Query, Session

from app.db.models import JWT

_logger = logging.getLogger(__name__)

DEFAULT_PAGE_LIMIT = 10
MAX_PAGE_LIMIT = 100


def naive_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """Convert an aware datetime to naive UTC; naive values are assumed to be UTC already."""
    if dt is None or dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def paginate(query: Query, page: int = 1, limit: int = DEFAULT_PAGE_LIMIT) -> Tuple[list, int]:
    """
    Apply page/limit to a query.

    Returns:
        Tuple[list, int]: the rows of the requested page and the total row count.
    """
    page = max(page or 1, 1)
    limit = min(max(limit or DEFAULT_PAGE_LIMIT, 1), MAX_PAGE_LIMIT)
    total = query.order_by(None).count()
    return query.offset((page - 1) * limit).limit(limit).all(), total


def _get_or_create_jwt_record(db: Session) -> JWT:
    jwt_record = db.query(JWT).first()
    if jwt_record is None:
        jwt_record = JWT(secret_key=os.urandom(32).hex())
        db.add(jwt_record)
        db.commit()
        db.refresh(jwt_record)
        _logger.info("Generated a new JWT signing key")
    return jwt_record


def get_jwt_secret_key(db: Session) -> str:
    """Retrieves the secret key used to sign access tokens."""
    return _get_or_create_jwt_record(db).secret_key


def apply_changes(instance, data: dict) -> None:
    """Copy ``data`` onto a model instance. A null sent for a NOT NULL column leaves the stored value alone."""
    columns = instance.__table__.columns
    for field, value in data.items():
        column = columns.get(field)
        if value is None and column is not None and not column.nullable:
            continue
        setattr(instance, field, value)
