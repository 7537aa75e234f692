"""
Maintenance Tasks
Periodic trend-counter decay and pruning (scheduled by Celery Beat).
"""

import logging
from typing import Any, Dict, Optional

from .celery_app import app

logger = logging.getLogger(__name__)


@app.task(bind=True, name="tasks.decay_trending")
def decay_trending(self, factor: Optional[float] = None) -> Dict[str, Any]:
    """
    Multiply long-horizon trend scores by the decay factor.

    Keeps "trending" recent rather than all-time.
    """
    from ..tracking.trending import TrendTracker

    tracker = TrendTracker()
    factor = tracker.settings.trending_decay_factor if factor is None else factor
    ok = tracker.decay(factor)

    logger.info(f"Trending decay (factor={factor}): {'ok' if ok else 'failed'}")
    return {"status": "success" if ok else "error", "factor": factor}


@app.task(bind=True, name="tasks.cleanup_trending")
def cleanup_trending(self, min_score: Optional[float] = None, max_entries: Optional[int] = None) -> Dict[str, Any]:
    """Drop near-zero trend entries and cap set cardinality."""
    from ..tracking.trending import TrendTracker

    removed = TrendTracker().cleanup(min_score=min_score, max_entries=max_entries)

    logger.info(f"Trending cleanup removed: {removed}")
    return {"status": "success", "removed": removed}
