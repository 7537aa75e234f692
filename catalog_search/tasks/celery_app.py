"""
Celery Application Configuration
"""

import logging

from celery import Celery
from celery.schedules import crontab
from celery.signals import worker_shutdown

from ..config.settings import get_settings

logger = logging.getLogger(__name__)

settings = get_settings()

# Create Celery app
app = Celery(
    "catalog_search",
    broker=settings.broker_url,
    backend=settings.result_backend,
    include=[
        "catalog_search.tasks.sync",
        "catalog_search.tasks.maintenance",
    ],
)

# Celery configuration
app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=60 * 60,  # 1 hour (full reindex)
    task_soft_time_limit=55 * 60,
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    worker_concurrency=settings.sync_worker_concurrency,
    worker_prefetch_multiplier=1,
    worker_max_tasks_per_child=1000,
    task_routes={
        "tasks.process_sync_job": {"queue": settings.sync_queue_name},
    },
)

# Configure periodic tasks with Celery Beat
app.conf.beat_schedule = {
    # Decay then prune trend counters (hourly)
    "decay-trending-hourly": {
        "task": "tasks.decay_trending",
        "schedule": crontab(minute=0),
    },
    "cleanup-trending-hourly": {
        "task": "tasks.cleanup_trending",
        "schedule": crontab(minute=5),
    },
}


@worker_shutdown.connect
def close_clients(**kwargs):
    """Release process-wide clients when the worker stops."""
    from ..caching import close_redis_cache
    from ..db.session import dispose_engine
    from ..search.index import close_es_client

    close_es_client()
    close_redis_cache()
    dispose_engine()
    logger.info("Worker clients closed")


if __name__ == "__main__":
    app.start()
