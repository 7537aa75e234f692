"""
Middleware
Request logging and latency tracking.
"""

from .logging import RequestLoggingMiddleware
from .timing import RequestTimingMiddleware, get_latency_tracker

__all__ = [
    "RequestLoggingMiddleware",
    "RequestTimingMiddleware",
    "get_latency_tracker",
]
