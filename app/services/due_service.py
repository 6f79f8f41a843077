from typing import Dict, Optional

from sqlalchemy.orm import Session

from app.db import crud
from app.db.models import utcnow
from app.models.due import DueAnalytics, DueTypeResponse
from app.redis.cache import (
    DUE_TYPE_CACHE_TTL,
    DUE_TYPES_CACHE_TTL,
    DUES_ANALYTICS_CACHE_TTL,
    REDIS_KEY_DUE_TYPES_ALL,
    REDIS_KEY_DUES_ANALYTICS,
    REDIS_KEY_PREFIX_DUE_TYPE,
    cached,
    create_key,
    refresh_cached,
)


class DueService:
    """Cached due-type and dues-analytics reads."""

    @staticmethod
    def due_types_key(active: Optional[bool] = None) -> str:
        return create_key(REDIS_KEY_DUE_TYPES_ALL, params={"active": active})

    @staticmethod
    def due_type_key(due_type_id: int) -> str:
        return create_key(REDIS_KEY_PREFIX_DUE_TYPE, due_type_id)

    @staticmethod
    def analytics_key(year: int) -> str:
        return create_key(REDIS_KEY_DUES_ANALYTICS, params={"year": year})

    @staticmethod
    def load_due_types(db: Session, active: Optional[bool] = None) -> list:
        return [DueTypeResponse.model_validate(t) for t in crud.get_due_types(db, active=active)]

    @staticmethod
    def load_due_type(db: Session, due_type_id: int) -> Optional[DueTypeResponse]:
        dbdue_type = crud.get_due_type(db, due_type_id)
        return DueTypeResponse.model_validate(dbdue_type) if dbdue_type else None

    @staticmethod
    def load_analytics(db: Session, year: int) -> DueAnalytics:
        return DueAnalytics(**crud.get_dues_analytics(db, year))

    @classmethod
    def list_due_types(cls, db: Session, active: Optional[bool] = None) -> list:
        return cached(cls.due_types_key(active), lambda: cls.load_due_types(db, active), DUE_TYPES_CACHE_TTL)

    @classmethod
    def get_due_type(cls, db: Session, due_type_id: int) -> Optional[dict]:
        return cached(cls.due_type_key(due_type_id), lambda: cls.load_due_type(db, due_type_id), DUE_TYPE_CACHE_TTL)

    @classmethod
    def analytics(cls, db: Session, year: int) -> dict:
        return cached(cls.analytics_key(year), lambda: cls.load_analytics(db, year), DUES_ANALYTICS_CACHE_TTL)

    @classmethod
    def warm(cls, db: Session) -> Dict[str, bool]:
        due_types = cls.load_due_types(db)
        outcomes = {cls.due_types_key(): refresh_cached(cls.due_types_key(), lambda: due_types, DUE_TYPES_CACHE_TTL)}
        for due_type in due_types:
            key = cls.due_type_key(due_type.id)
            outcomes[key] = refresh_cached(key, lambda: due_type, DUE_TYPE_CACHE_TTL)

        year = utcnow().year
        outcomes[cls.analytics_key(year)] = refresh_cached(
            cls.analytics_key(year), lambda: cls.load_analytics(db, year), DUES_ANALYTICS_CACHE_TTL
        )
        return outcomes
