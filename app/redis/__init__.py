"""
Redis module for response caching, invalidation and notification push.
"""

from app.redis.client import close_redis, get_redis, init_redis, is_redis_available
from app.redis.warming import start_cache_warming, warm_cache

__all__ = ["init_redis", "get_redis", "close_redis", "is_redis_available", "warm_cache", "start_cache_warming"]
