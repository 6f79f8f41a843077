"""Cache invalidation helpers called after writes."""

import logging
from typing import Any, Iterable

from app.redis.cache import (
    REDIS_KEY_DUE_TYPES_ALL,
    REDIS_KEY_DUES_ANALYTICS,
    REDIS_KEY_PAYMENTS_PENDING,
    REDIS_KEY_PHARMACY_DUES_STATUS,
    REDIS_KEY_PHARMACY_STATS,
    REDIS_KEY_PREFIX_DUE_TYPE,
    REDIS_KEY_PREFIX_DUES,
    REDIS_KEY_PREFIX_EVENTS,
    REDIS_KEY_PREFIX_PAYMENTS,
    REDIS_KEY_PREFIX_PERMISSIONS,
    REDIS_KEY_PREFIX_PHARMACIES,
    REDIS_KEY_PREFIX_USERS,
    delete_cached,
    delete_pattern,
)

logger = logging.getLogger(__name__)


def invalidate_resource(prefix: str, resource_id: Any) -> int:
    """Drop a single resource entry and any parameterised variants of it."""
    key = f"{prefix}:{resource_id}"
    deleted = 1 if delete_cached(key) else 0
    return deleted + delete_pattern(f"{key}:*")


def invalidate_collection(prefix: str) -> int:
    return delete_pattern(f"{prefix}*")


def invalidate_relations(prefixes: Iterable[str]) -> int:
    return sum(invalidate_collection(prefix) for prefix in prefixes)


def invalidate_user_related_data(user_id: int) -> int:
    deleted = delete_pattern(f"{REDIS_KEY_PREFIX_USERS}:{user_id}*")
    deleted += delete_pattern(f"{REDIS_KEY_PREFIX_EVENTS}:*:{user_id}*")
    deleted += invalidate_relations(
        [
            REDIS_KEY_PREFIX_PERMISSIONS,
            REDIS_KEY_PREFIX_PAYMENTS,
            REDIS_KEY_PREFIX_DUES,
            REDIS_KEY_PREFIX_PHARMACIES,
        ]
    )
    logger.debug(f"Invalidated {deleted} cache entries related to user {user_id}")
    return deleted


def invalidate_due_types() -> int:
    return invalidate_relations([REDIS_KEY_DUE_TYPES_ALL, REDIS_KEY_PREFIX_DUE_TYPE])


def invalidate_pharmacies() -> int:
    return invalidate_relations(
        [REDIS_KEY_PREFIX_PHARMACIES, REDIS_KEY_PHARMACY_STATS, REDIS_KEY_PHARMACY_DUES_STATUS]
    )


def invalidate_dues() -> int:
    """Dues feed the analytics and per-pharmacy balance summaries too."""
    return invalidate_relations(
        [REDIS_KEY_PREFIX_DUES, REDIS_KEY_DUES_ANALYTICS, REDIS_KEY_PHARMACY_DUES_STATUS]
    )


def invalidate_payments() -> int:
    return invalidate_relations([REDIS_KEY_PREFIX_PAYMENTS, REDIS_KEY_PAYMENTS_PENDING]) + invalidate_dues()
