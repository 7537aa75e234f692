"""
Caching Module
Redis-backed cache and counters.
"""

from .redis_cache import (
    RedisCache,
    RedisCacheError,
    get_redis_cache,
    set_redis_cache,
    close_redis_cache,
)

__all__ = [
    "RedisCache",
    "RedisCacheError",
    "get_redis_cache",
    "set_redis_cache",
    "close_redis_cache",
]
