"""
Sync Queue
Dispatches sync jobs to the Celery worker pool and keeps a bounded log of
finished jobs in Redis.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import redis

from ..caching import RedisCache, RedisCacheError, get_redis_cache
from ..config.settings import get_settings
from .jobs import DeleteJob, IndexJob, ReindexJob, SyncJob, describe

logger = logging.getLogger(__name__)


class SyncQueue:
    """Enqueue side of the product sync queue."""

    def __init__(self, queue_name: Optional[str] = None):
        self.queue_name = queue_name or get_settings().sync_queue_name

    def enqueue(self, job: SyncJob) -> str:
        """
        Dispatch a job to the worker pool.

        Returns:
            Celery task ID
        """
        from .sync import process_sync_job

        result = process_sync_job.apply_async(args=[job.to_payload()], queue=self.queue_name)
        logger.info(f"Enqueued sync job {describe(job)} (task {result.id})")
        return result.id

    def enqueue_index(self, product_id: str) -> str:
        return self.enqueue(IndexJob(product_id=str(product_id)))

    def enqueue_delete(self, product_id: str) -> str:
        return self.enqueue(DeleteJob(product_id=str(product_id)))

    def enqueue_reindex(self, batch_size: Optional[int] = None) -> str:
        return self.enqueue(ReindexJob.now(batch_size=batch_size))


_queue: Optional[SyncQueue] = None


def get_sync_queue() -> SyncQueue:
    global _queue
    if _queue is None:
        _queue = SyncQueue()
    return _queue


class SyncJobLog:
    """
    Terminal job states, newest first.

    Completed and failed jobs are kept in separate capped Redis lists so
    failures survive longer for inspection.
    """

    COMPLETED_KEY = "sync:jobs:completed"
    FAILED_KEY = "sync:jobs:failed"

    def __init__(self, cache: Optional[RedisCache] = None):
        self.cache = cache or get_redis_cache()
        settings = get_settings()
        self.completed_retention = settings.sync_completed_retention
        self.failed_retention = settings.sync_failed_retention

    def _push(self, key: str, entry: Dict[str, Any], retention: int) -> bool:
        entry["finished_at"] = datetime.now(timezone.utc).isoformat()
        try:
            pipe = self.cache.raw.pipeline()
            pipe.lpush(key, json.dumps(entry, default=str))
            pipe.ltrim(key, 0, retention - 1)
            pipe.execute()
            return True
        except (redis.RedisError, RedisCacheError) as e:
            logger.error(f"Failed to record sync job outcome: {e}")
            return False

    def record_completed(self, payload: Dict[str, Any], attempts: int, result: Optional[Dict[str, Any]] = None) -> bool:
        return self._push(
            self.COMPLETED_KEY,
            {"job": payload, "attempts": attempts, "result": result or {}},
            self.completed_retention,
        )

    def record_failed(self, payload: Any, error: str, attempts: int) -> bool:
        return self._push(
            self.FAILED_KEY,
            {"job": payload, "attempts": attempts, "error": error},
            self.failed_retention,
        )

    def _read(self, key: str, limit: int) -> List[Dict[str, Any]]:
        try:
            rows = self.cache.raw.lrange(key, 0, max(limit, 1) - 1)
        except (redis.RedisError, RedisCacheError) as e:
            logger.error(f"Failed to read sync job log: {e}")
            return []
        entries = []
        for row in rows:
            try:
                entries.append(json.loads(row))
            except ValueError:
                logger.warning(f"Skipping unreadable sync job log entry: {row!r}")
        return entries

    def recent_completed(self, limit: int = 20) -> List[Dict[str, Any]]:
        return self._read(self.COMPLETED_KEY, limit)

    def recent_failed(self, limit: int = 20) -> List[Dict[str, Any]]:
        return self._read(self.FAILED_KEY, limit)
