"""
Search Metrics
In-memory rolling collector for search latency, success rate and query mix.
"""

import logging
import threading
from collections import Counter, deque
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class SearchMetric:
    """Single search execution."""

    query: str
    duration_ms: float
    result_count: int
    filters: List[str] = field(default_factory=list)
    timestamp: datetime = field(default_factory=_utcnow)
    success: bool = True
    fallback: Optional[str] = None
    error: Optional[str] = None


class SearchMetricsCollector:
    """
    Rolling window of recent searches.

    Per-process; the window is bounded by max_history.
    """

    def __init__(self, max_history: int = 10000, slow_threshold_ms: float = 2000):
        self.metrics: deque = deque(maxlen=max_history)
        self.slow_threshold_ms = slow_threshold_ms
        self._lock = threading.Lock()

    def record(self, metric: SearchMetric) -> None:
        with self._lock:
            self.metrics.append(metric)

        if metric.duration_ms >= self.slow_threshold_ms:
            logger.warning(f"SLOW SEARCH: '{metric.query}' took {metric.duration_ms:.2f}ms")

    def _recent(self, since_minutes: int) -> List[SearchMetric]:
        since = datetime.now(timezone.utc) - timedelta(minutes=since_minutes)
        with self._lock:
            return [m for m in self.metrics if m.timestamp >= since]

    def get_summary(self, since_minutes: int = 60) -> Dict[str, Any]:
        """
        Summary of searches in the last `since_minutes` minutes.

        Returns:
            Dict with totals, average duration, success rate, popular and
            slow queries, average result count and filter usage
        """
        recent = self._recent(since_minutes)
        if not recent:
            return {
                "total_searches": 0,
                "average_duration_ms": 0,
                "success_rate": 100.0,
                "popular_queries": [],
                "slow_queries": [],
                "average_result_count": 0,
                "filters_usage": {},
                "fallback_usage": {},
            }

        query_counts = Counter(m.query.lower() for m in recent if m.query.strip())
        slow = sorted(
            (m for m in recent if m.duration_ms >= self.slow_threshold_ms),
            key=lambda m: m.duration_ms,
            reverse=True,
        )[:10]
        filters_usage = Counter(f for m in recent for f in m.filters)
        fallback_usage = Counter(m.fallback for m in recent if m.fallback)
        successes = sum(1 for m in recent if m.success)

        return {
            "total_searches": len(recent),
            "average_duration_ms": round(sum(m.duration_ms for m in recent) / len(recent), 2),
            "success_rate": round(successes / len(recent) * 100, 2),
            "popular_queries": [
                {"query": q, "count": c} for q, c in query_counts.most_common(20)
            ],
            "slow_queries": [
                {"query": m.query, "duration_ms": m.duration_ms, "timestamp": m.timestamp.isoformat()}
                for m in slow
            ],
            "average_result_count": round(sum(m.result_count for m in recent) / len(recent)),
            "filters_usage": dict(filters_usage),
            "fallback_usage": dict(fallback_usage),
        }

    def get_zero_result_queries(self, since_minutes: int = 1440) -> List[Dict[str, Any]]:
        """Queries that returned nothing, most frequent first."""
        counts = Counter(
            m.query.lower()
            for m in self._recent(since_minutes)
            if m.success and m.result_count == 0 and m.query.strip()
        )
        return [{"query": q, "count": c} for q, c in counts.most_common(50)]

    def clear(self) -> None:
        with self._lock:
            self.metrics.clear()


# Global instance
_collector: Optional[SearchMetricsCollector] = None


def get_search_metrics() -> SearchMetricsCollector:
    global _collector
    if _collector is None:
        _collector = SearchMetricsCollector()
    return _collector
