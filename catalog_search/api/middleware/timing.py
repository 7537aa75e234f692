"""
Request Timing Middleware
Per endpoint-group latency windows (search, clicks, admin, other).
"""

import logging
import time
from collections import defaultdict, deque
from threading import Lock
from typing import Callable, Deque, Dict, List, Optional
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)

# Same bar the search metrics use for slow queries
SLOW_REQUEST_MS = 2000

ROUTE_GROUPS = (
    ("/api/v1/search/clicks", "clicks"),
    ("/api/v1/search", "search"),
    ("/api/v1/admin", "admin"),
)


def route_group(path: str) -> str:
    for prefix, group in ROUTE_GROUPS:
        if path.startswith(prefix):
            return group
    return "other"


def _percentile(sorted_values: List[float], percentile: int) -> float:
    index = min(int(percentile / 100.0 * len(sorted_values)), len(sorted_values) - 1)
    return sorted_values[index]


class LatencyTracker:
    """Rolling latency windows, one per endpoint group."""

    def __init__(self, window_size: int = 1000):
        self.window_size = window_size
        self._windows: Dict[str, Deque[float]] = defaultdict(lambda: deque(maxlen=self.window_size))
        self._lock = Lock()

    def record(self, group: str, latency_ms: float) -> None:
        with self._lock:
            self._windows[group].append(latency_ms)

    def groups(self) -> List[str]:
        with self._lock:
            return sorted(self._windows)

    def get_stats(self, group: Optional[str] = None) -> Dict[str, float]:
        """
        Latency percentiles for one group, or across all groups.

        Returns:
            Dict with count, p50, p95, p99 and mean (milliseconds)
        """
        with self._lock:
            if group is None:
                values = sorted(v for window in self._windows.values() for v in window)
            else:
                values = sorted(self._windows.get(group, ()))

        if not values:
            return {"count": 0, "p50": 0.0, "p95": 0.0, "p99": 0.0, "mean": 0.0}
        return {
            "count": len(values),
            "p50": _percentile(values, 50),
            "p95": _percentile(values, 95),
            "p99": _percentile(values, 99),
            "mean": sum(values) / len(values),
        }


_latency_tracker = LatencyTracker()


def get_latency_tracker() -> LatencyTracker:
    return _latency_tracker


class RequestTimingMiddleware(BaseHTTPMiddleware):
    """Records request latency under its endpoint group and sets X-Response-Time."""

    def __init__(self, app, tracker: Optional[LatencyTracker] = None):
        super().__init__(app)
        self.tracker = tracker or get_latency_tracker()

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.time()
        response = await call_next(request)
        duration_ms = (time.time() - start_time) * 1000

        group = route_group(request.url.path)
        self.tracker.record(group, duration_ms)
        response.headers["X-Response-Time"] = f"{duration_ms:.2f}ms"

        if duration_ms >= SLOW_REQUEST_MS:
            logger.warning(
                f"Slow {group} request: {request.method} {request.url.path} took {duration_ms:.2f}ms",
                extra={"group": group, "path": request.url.path, "duration_ms": duration_ms},
            )
        return response
