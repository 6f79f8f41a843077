"""
Redis connection management. Everything degrades to the database when Redis is off or down.
"""

import logging
from typing import Optional

import redis

import config

logger = logging.getLogger(__name__)

_redis_client: Optional[redis.Redis] = None


def init_redis() -> Optional[redis.Redis]:
    """Create the shared client if Redis is enabled and answering pings."""
    global _redis_client

    if not config.REDIS_ENABLED:
        logger.info("Redis is disabled, caching is off")
        _redis_client = None
        return None

    client = redis.Redis(
        host=config.REDIS_HOST,
        port=config.REDIS_PORT,
        db=config.REDIS_DB,
        password=config.REDIS_PASSWORD or None,
        decode_responses=True,
        socket_timeout=config.REDIS_SOCKET_TIMEOUT,
        socket_connect_timeout=config.REDIS_SOCKET_TIMEOUT,
    )
    try:
        client.ping()
    except redis.RedisError as e:
        logger.warning(f"Redis at {config.REDIS_HOST}:{config.REDIS_PORT} is not reachable: {e}")
        _redis_client = None
        return None

    logger.info(f"Connected to Redis at {config.REDIS_HOST}:{config.REDIS_PORT}/{config.REDIS_DB}")
    _redis_client = client
    return client


def get_redis() -> Optional[redis.Redis]:
    return _redis_client


def set_redis(client: Optional[redis.Redis]) -> None:
    """Swap the shared client (used when shutting down and by tests)."""
    global _redis_client
    _redis_client = client


def close_redis() -> None:
    global _redis_client
    if _redis_client is not None:
        try:
            _redis_client.close()
        except redis.RedisError as e:
            logger.debug(f"Error while closing Redis connection: {e}")
    _redis_client = None


def is_redis_available() -> bool:
    """Check if Redis is configured and answering."""
    redis_client = get_redis()
    if not redis_client:
        return False
    try:
        redis_client.ping()
        return True
    except Exception:
        return False
