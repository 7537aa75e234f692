"""
Trend Tracker
Decaying frequency counters for queries and product views, kept in Redis
sorted sets.
"""

import logging
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

import redis

from ..caching import RedisCache, RedisCacheError, get_redis_cache
from ..config.settings import get_settings

logger = logging.getLogger(__name__)


def normalize_query(query: Optional[str]) -> str:
    return (query or "").strip().lower()


class TrendTracker:
    """
    Query and product-view trend counters.

    Long-horizon sets are decayed and pruned by the maintenance task; the
    hourly query buckets expire on their own. Every operation logs and
    swallows Redis errors.
    """

    QUERIES_KEY = "trending:queries"
    PRODUCTS_KEY = "trending:products"
    HOURLY_PREFIX = "trending:queries:hourly"
    FAILED_QUERIES_KEY = "search:failed_queries"

    def __init__(self, cache: Optional[RedisCache] = None):
        self.cache = cache or get_redis_cache()
        self.settings = get_settings()

    def hourly_key(self, when: Optional[datetime] = None) -> str:
        when = when or datetime.now(timezone.utc)
        return f"{self.HOURLY_PREFIX}:{when.strftime('%Y%m%d%H')}"

    def track_query(self, query: str, now: Optional[datetime] = None) -> bool:
        """Count one occurrence of a query (long-horizon and current hour)."""
        normalized = normalize_query(query)
        if not normalized:
            return False

        hour_key = self.hourly_key(now)
        try:
            pipe = self.cache.raw.pipeline()
            pipe.zincrby(self.QUERIES_KEY, 1, normalized)
            pipe.zincrby(hour_key, 1, normalized)
            pipe.expire(hour_key, self.settings.trending_hourly_ttl_hours * 3600)
            pipe.execute()
            return True
        except (redis.RedisError, RedisCacheError) as e:
            logger.error(f"Failed to track trending query: {e}")
            return False

    def track_product_view(self, product_id: str) -> bool:
        try:
            self.cache.raw.zincrby(self.PRODUCTS_KEY, 1, str(product_id))
            return True
        except (redis.RedisError, RedisCacheError) as e:
            logger.error(f"Failed to track product view: {e}")
            return False

    def track_failed_query(self, query: str) -> bool:
        """Count a query that returned zero results (synonym / assortment gaps)."""
        normalized = normalize_query(query)
        if not normalized:
            return False
        try:
            self.cache.raw.zincrby(self.FAILED_QUERIES_KEY, 1, normalized)
            return True
        except (redis.RedisError, RedisCacheError) as e:
            logger.error(f"Failed to track failed query: {e}")
            return False

    def _top(self, key: str, limit: int) -> List[Dict[str, object]]:
        if limit <= 0:
            return []
        try:
            rows = self.cache.raw.zrevrange(key, 0, limit - 1, withscores=True)
        except (redis.RedisError, RedisCacheError) as e:
            logger.error(f"Failed to read trending set {key}: {e}")
            return []
        return [{"value": member, "score": float(score)} for member, score in rows]

    def top_queries(self, limit: int = 10) -> List[Dict[str, object]]:
        return [{"query": r["value"], "score": r["score"]} for r in self._top(self.QUERIES_KEY, limit)]

    def top_products(self, limit: int = 20) -> List[str]:
        return [str(r["value"]) for r in self._top(self.PRODUCTS_KEY, limit)]

    def failed_queries(self, limit: int = 50) -> List[Dict[str, object]]:
        return [
            {"query": r["value"], "count": int(r["score"])}
            for r in self._top(self.FAILED_QUERIES_KEY, limit)
        ]

    def trending_now(self, hours: int = 3, limit: int = 10, now: Optional[datetime] = None) -> List[Dict[str, object]]:
        """
        Short-horizon trending queries: sum of the last `hours` hourly buckets.

        Args:
            hours: Number of hourly buckets to combine (current hour included)
            limit: Max queries to return
            now: Reference time (defaults to current UTC time)
        """
        now = now or datetime.now(timezone.utc)
        keys = [self.hourly_key(now - timedelta(hours=h)) for h in range(max(hours, 1))]

        try:
            pipe = self.cache.raw.pipeline()
            for key in keys:
                pipe.zrange(key, 0, -1, withscores=True)
            buckets = pipe.execute()
        except (redis.RedisError, RedisCacheError) as e:
            logger.error(f"Failed to read hourly trending buckets: {e}")
            return []

        totals: Counter = Counter()
        for bucket in buckets:
            for member, score in bucket:
                totals[member] += float(score)

        ranked = sorted(totals.items(), key=lambda item: (-item[1], item[0]))
        return [{"query": query, "score": score} for query, score in ranked[:limit]]

    def decay(self, factor: Optional[float] = None) -> bool:
        """Multiply every long-horizon score by `factor` (0 < factor <= 1)."""
        factor = self.settings.trending_decay_factor if factor is None else factor
        try:
            client = self.cache.raw
            for key in (self.QUERIES_KEY, self.PRODUCTS_KEY):
                if client.exists(key):
                    client.zunionstore(key, {key: factor})
            return True
        except (redis.RedisError, RedisCacheError) as e:
            logger.error(f"Failed to decay trending data: {e}")
            return False

    def cleanup(self, min_score: Optional[float] = None, max_entries: Optional[int] = None) -> Dict[str, int]:
        """
        Drop entries scoring below `min_score` and cap each set at `max_entries`.

        Returns:
            Dict of key -> number of entries removed
        """
        min_score = self.settings.trending_min_score if min_score is None else min_score
        max_entries = self.settings.trending_max_entries if max_entries is None else max_entries

        removed: Dict[str, int] = {}
        try:
            client = self.cache.raw
            for key in (self.QUERIES_KEY, self.PRODUCTS_KEY):
                count = client.zremrangebyscore(key, "-inf", f"({min_score}")
                size = client.zcard(key)
                if size > max_entries:
                    # Lowest scores sit at the lowest ranks
                    count += client.zremrangebyrank(key, 0, size - max_entries - 1)
                removed[key] = count
        except (redis.RedisError, RedisCacheError) as e:
            logger.error(f"Failed to cleanup trending data: {e}")
        return removed


# Global instance accessor
_tracker: Optional[TrendTracker] = None


def get_trend_tracker() -> TrendTracker:
    global _tracker
    if _tracker is None:
        _tracker = TrendTracker()
    return _tracker


def reset_trend_tracker() -> None:
    global _tracker
    _tracker = None
