from typing import Dict, Optional

from sqlalchemy.orm import Session

from app.db import crud
from app.models.pharmacy import PharmacyDuesStatus, PharmacyResponse, PharmacyStats, RegistrationStatus
from app.redis.cache import (
    PHARMACIES_CACHE_TTL,
    PHARMACY_DUES_STATUS_CACHE_TTL,
    PHARMACY_STATS_CACHE_TTL,
    REDIS_KEY_PHARMACY_DUES_STATUS,
    REDIS_KEY_PHARMACY_STATS,
    REDIS_KEY_PREFIX_PHARMACIES,
    cached,
    create_key,
    refresh_cached,
)

WARM_PAGE = 1
WARM_LIMIT = 20


class PharmacyService:
    """Cached pharmacy reads shared by the API and the cache warmer."""

    @staticmethod
    def pharmacies_key(page: int, limit: int, search: Optional[str] = None, status: Optional[RegistrationStatus] = None) -> str:
        return create_key(
            REDIS_KEY_PREFIX_PHARMACIES,
            params={"page": page, "limit": limit, "search": search or None, "status": status},
        )

    @staticmethod
    def load_pharmacies(
        db: Session, page: int, limit: int, search: Optional[str] = None, status: Optional[RegistrationStatus] = None
    ) -> dict:
        pharmacies, total = crud.get_pharmacies(db, page=page, limit=limit, search=search, status=status)
        return {
            "pharmacies": [PharmacyResponse.model_validate(p) for p in pharmacies],
            "total": total,
            "page": page,
            "limit": limit,
        }

    @staticmethod
    def load_stats(db: Session) -> PharmacyStats:
        return PharmacyStats(**crud.get_pharmacy_stats(db))

    @staticmethod
    def load_dues_status(db: Session) -> list:
        return [PharmacyDuesStatus(**row) for row in crud.get_pharmacies_dues_status(db)]

    @classmethod
    def list_pharmacies(
        cls,
        db: Session,
        page: int = 1,
        limit: int = 10,
        search: Optional[str] = None,
        status: Optional[RegistrationStatus] = None,
    ) -> dict:
        return cached(
            cls.pharmacies_key(page, limit, search, status),
            lambda: cls.load_pharmacies(db, page, limit, search, status),
            PHARMACIES_CACHE_TTL,
        )

    @classmethod
    def stats(cls, db: Session) -> dict:
        return cached(REDIS_KEY_PHARMACY_STATS, lambda: cls.load_stats(db), PHARMACY_STATS_CACHE_TTL)

    @classmethod
    def dues_status(cls, db: Session) -> list:
        return cached(
            REDIS_KEY_PHARMACY_DUES_STATUS, lambda: cls.load_dues_status(db), PHARMACY_DUES_STATUS_CACHE_TTL
        )

    @classmethod
    def warm(cls, db: Session) -> Dict[str, bool]:
        key = cls.pharmacies_key(WARM_PAGE, WARM_LIMIT)
        return {
            key: refresh_cached(key, lambda: cls.load_pharmacies(db, WARM_PAGE, WARM_LIMIT), PHARMACIES_CACHE_TTL),
            REDIS_KEY_PHARMACY_STATS: refresh_cached(
                REDIS_KEY_PHARMACY_STATS, lambda: cls.load_stats(db), PHARMACY_STATS_CACHE_TTL
            ),
            REDIS_KEY_PHARMACY_DUES_STATUS: refresh_cached(
                REDIS_KEY_PHARMACY_DUES_STATUS, lambda: cls.load_dues_status(db), PHARMACY_DUES_STATUS_CACHE_TTL
            ),
        }
