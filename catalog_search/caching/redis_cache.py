"""
Redis Cache Client
Redis client with connection pooling, shared by the CTR cache, trend
counters, sync job log and reindex checkpoints.
"""

import json
import logging
import threading
from typing import Optional, Any, Dict

import redis
from redis.connection import ConnectionPool

from ..config.settings import get_settings

logger = logging.getLogger(__name__)


class RedisCacheError(Exception):
    """Exception raised for Redis cache errors."""

    pass


class RedisCache:
    """
    Redis cache client with connection pooling.

    Values are stored as JSON. Read/write helpers log and swallow Redis
    errors (returning None/False) so a cache outage never fails a request.
    """

    def __init__(self, redis_url: Optional[str] = None, client: Optional[redis.Redis] = None):
        """
        Initialize Redis cache client.

        Args:
            redis_url: Redis connection URL (defaults to settings)
            client: Pre-built client (tests pass a fakeredis instance)
        """
        self.redis_url = redis_url or get_settings().redis_url
        self.pool: Optional[ConnectionPool] = None
        self.client: Optional[redis.Redis] = client

        if client is None:
            self.pool = ConnectionPool.from_url(
                self.redis_url,
                decode_responses=True,
                max_connections=20,
                socket_timeout=5,
                socket_connect_timeout=5,
            )
            logger.info(f"Redis cache initialized: {self.redis_url.split('@')[-1]}")

    def _get_client(self) -> redis.Redis:
        """
        Get Redis client (lazy initialization).

        Raises:
            RedisCacheError: If connection fails
        """
        if self.client is None:
            try:
                self.client = redis.Redis(connection_pool=self.pool)
                self.client.ping()
                logger.info("Redis connection established")
            except redis.ConnectionError as e:
                self.client = None
                raise RedisCacheError(f"Failed to connect to Redis: {e}")

        return self.client

    @property
    def raw(self) -> redis.Redis:
        """Underlying client for sorted-set, list and lock commands."""
        return self._get_client()

    def get(self, key: str) -> Optional[Any]:
        """
        Get value from cache.

        Returns:
            Cached value or None if not found
        """
        try:
            data = self._get_client().get(key)
            if data is None:
                return None
            return json.loads(data)

        except (redis.RedisError, RedisCacheError) as e:
            logger.error(f"Redis GET error for key '{key}': {e}")
            return None
        except ValueError as e:
            logger.error(f"Error deserializing cached data for key '{key}': {e}")
            return None

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        """
        Set value in cache.

        Args:
            key: Cache key
            value: JSON-serializable value
            ttl: Time-to-live in seconds (None = no expiration)
        """
        try:
            client = self._get_client()
            data = json.dumps(value)

            if ttl is not None:
                client.setex(key, ttl, data)
            else:
                client.set(key, data)

            return True

        except (redis.RedisError, RedisCacheError) as e:
            logger.error(f"Redis SET error for key '{key}': {e}")
            return False
        except (TypeError, ValueError) as e:
            logger.error(f"Error serializing data for key '{key}': {e}")
            return False

    def delete(self, key: str) -> bool:
        """Delete key from cache. True if a key was removed."""
        try:
            return self._get_client().delete(key) > 0

        except (redis.RedisError, RedisCacheError) as e:
            logger.error(f"Redis DELETE error for key '{key}': {e}")
            return False

    def ping(self) -> bool:
        """Test Redis connection."""
        try:
            return bool(self._get_client().ping())

        except (redis.RedisError, RedisCacheError) as e:
            logger.error(f"Redis PING error: {e}")
            return False

    def get_info(self) -> Dict[str, Any]:
        """Get Redis server info."""
        try:
            return self._get_client().info()

        except (redis.RedisError, RedisCacheError) as e:
            logger.error(f"Redis INFO error: {e}")
            return {}

    def close(self) -> None:
        if self.pool is not None:
            self.pool.disconnect()
        self.client = None


# Global instance accessor
_cache_instance: Optional[RedisCache] = None
_cache_lock = threading.Lock()


def get_redis_cache() -> RedisCache:
    """Get global Redis cache instance."""
    global _cache_instance
    if _cache_instance is None:
        with _cache_lock:
            if _cache_instance is None:
                _cache_instance = RedisCache()
    return _cache_instance


def set_redis_cache(cache: Optional[RedisCache]) -> None:
    """Replace the global instance (tests install a fakeredis-backed cache)."""
    global _cache_instance
    _cache_instance = cache


def close_redis_cache() -> None:
    global _cache_instance
    if _cache_instance is not None:
        _cache_instance.close()
    _cache_instance = None
