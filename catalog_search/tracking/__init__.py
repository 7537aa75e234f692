"""
Tracking Module
Trend counters, click/conversion ledger and search metrics.
"""

from .trending import TrendTracker, get_trend_tracker, normalize_query
from .clicks import ClickEvent, ClickLedger
from .metrics import SearchMetric, SearchMetricsCollector, get_search_metrics

__all__ = [
    "TrendTracker",
    "get_trend_tracker",
    "normalize_query",
    "ClickEvent",
    "ClickLedger",
    "SearchMetric",
    "SearchMetricsCollector",
    "get_search_metrics",
]
