"""
JSON response cache on top of Redis.

Keys look like ``prefix[:id][:{"param": "value"}]``; every helper is a no-op when
Redis is unavailable, and Redis errors are logged instead of raised.
"""

import json
import logging
from datetime import date, datetime
from enum import Enum
from typing import Any, Callable, Dict, Optional

from pydantic import BaseModel

from app.redis.client import get_redis
from config import CACHE_DEFAULT_TTL

logger = logging.getLogger(__name__)

# ============================================================================
# Key Prefixes
# ============================================================================

REDIS_KEY_PREFIX_USERS = "users"
REDIS_KEY_PREFIX_PERMISSIONS = "permissions"
REDIS_KEY_PREFIX_PHARMACIES = "pharmacies"
REDIS_KEY_PREFIX_DUES = "dues"
REDIS_KEY_PREFIX_PAYMENTS = "payments"
REDIS_KEY_PREFIX_EVENTS = "events"

REDIS_KEY_DUE_TYPES_ALL = "due-types-all"
REDIS_KEY_PREFIX_DUE_TYPE = "due-types"
REDIS_KEY_PHARMACY_STATS = "pharmacy-stats"
REDIS_KEY_PHARMACY_DUES_STATUS = "pharmacy-dues-status"
REDIS_KEY_PAYMENTS_PENDING = "payments-pending"
REDIS_KEY_DUES_ANALYTICS = "dues-analytics"

REDIS_CHANNEL_PREFIX_NOTIFICATIONS = "notifications"

# TTLs
DUE_TYPES_CACHE_TTL = 1800  # 30 minutes
DUE_TYPE_CACHE_TTL = 3600  # 1 hour
PHARMACIES_CACHE_TTL = 600  # 10 minutes
PHARMACY_STATS_CACHE_TTL = 3600  # 1 hour
PHARMACY_DUES_STATUS_CACHE_TTL = 1800  # 30 minutes
PAYMENTS_PENDING_CACHE_TTL = 60  # 1 minute
DUES_ANALYTICS_CACHE_TTL = 600  # 10 minutes


# ============================================================================
# Helper Functions
# ============================================================================


def _serialize_value(value):
    """Recursively serialize value for JSON storage."""
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    elif isinstance(value, Enum):
        return value.value
    elif isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    elif isinstance(value, (list, tuple, set)):
        return [_serialize_value(item) for item in value]
    elif isinstance(value, dict):
        return {str(k): _serialize_value(v) for k, v in value.items()}
    return value


def create_key(prefix: str, id: Optional[Any] = None, params: Optional[Dict[str, Any]] = None) -> str:
    """
    Build a deterministic cache key.

    ``None`` params are dropped and the rest are sorted, so the same query always maps
    to the same key regardless of argument order.
    """
    key = prefix
    if id is not None:
        key = f"{key}:{id}"
    if params:
        filtered = {k: _serialize_value(v) for k, v in sorted(params.items()) if v is not None}
        if filtered:
            key = f"{key}:{json.dumps(filtered, sort_keys=True, separators=(',', ':'))}"
    return key


# ============================================================================
# Cache Primitives
# ============================================================================


def get_cached(key: str) -> Optional[Any]:
    """Return the decoded value stored under ``key``, or None on a miss."""
    redis_client = get_redis()
    if not redis_client:
        return None

    try:
        raw = redis_client.get(key)
    except Exception as e:
        logger.warning(f"Redis get error for key {key}: {e}")
        return None

    if raw is None:
        logger.debug(f"Cache miss: {key}")
        return None

    logger.debug(f"Cache hit: {key}")
    try:
        return json.loads(raw)
    except (TypeError, ValueError) as e:
        logger.warning(f"Discarding undecodable cache entry {key}: {e}")
        return None


def set_cached(key: str, value: Any, ttl: int = CACHE_DEFAULT_TTL) -> bool:
    redis_client = get_redis()
    if not redis_client:
        return False

    try:
        redis_client.setex(key, ttl, json.dumps(_serialize_value(value)))
        return True
    except Exception as e:
        logger.warning(f"Redis set error for key {key}: {e}")
        return False


def delete_cached(key: str) -> bool:
    redis_client = get_redis()
    if not redis_client:
        return False

    try:
        redis_client.delete(key)
        return True
    except Exception as e:
        logger.warning(f"Redis delete error for key {key}: {e}")
        return False


def delete_pattern(pattern: str) -> int:
    """Delete every key matching a glob pattern; returns how many were removed."""
    redis_client = get_redis()
    if not redis_client:
        return 0

    deleted = 0
    try:
        batch = []
        for key in redis_client.scan_iter(match=pattern, count=1000):
            batch.append(key)
            if len(batch) >= 500:
                deleted += redis_client.delete(*batch)
                batch = []
        if batch:
            deleted += redis_client.delete(*batch)
    except Exception as e:
        logger.warning(f"Redis delete pattern error for {pattern}: {e}")
    if deleted:
        logger.debug(f"Deleted {deleted} cache keys matching {pattern}")
    return deleted


def cached(key: str, loader: Callable[[], Any], ttl: int = CACHE_DEFAULT_TTL) -> Any:
    """Return the cached value for ``key`` or compute it with ``loader`` and store it."""
    value = get_cached(key)
    if value is not None:
        return value
    value = _serialize_value(loader())
    set_cached(key, value, ttl)
    return value


def refresh_cached(key: str, loader: Callable[[], Any], ttl: int = CACHE_DEFAULT_TTL) -> bool:
    """Recompute ``key`` unconditionally; returns whether the new value was stored."""
    if not get_redis():
        return False
    return set_cached(key, loader(), ttl)


def publish(channel: str, payload: Dict[str, Any]) -> bool:
    redis_client = get_redis()
    if not redis_client:
        return False

    try:
        redis_client.publish(channel, json.dumps(_serialize_value(payload)))
        return True
    except Exception as e:
        logger.warning(f"Redis publish error on {channel}: {e}")
        return False


def get_cache_stats() -> Dict[str, Any]:
    redis_client = get_redis()
    if not redis_client:
        return {"available": False}

    try:
        stats = redis_client.info("stats")
        memory = redis_client.info("memory")
        return {
            "available": True,
            "keys": redis_client.dbsize(),
            "used_memory": memory.get("used_memory_human"),
            "hits": stats.get("keyspace_hits", 0),
            "misses": stats.get("keyspace_misses", 0),
        }
    except Exception as e:
        logger.warning(f"Failed to read Redis stats: {e}")
        return {"available": False}
