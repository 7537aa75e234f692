"""
Product Sync Tasks
Worker side of the sync queue: applies index, delete and reindex jobs to
the product index.
"""

import logging
import re
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, Iterator, Optional

import redis
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

from ..caching import RedisCache, RedisCacheError, get_redis_cache
from ..catalog.repository import CatalogRepository
from ..config.settings import SearchSettings, get_settings
from ..errors import JobPayloadError, SearchTimeoutError, TransientInfraError
from ..search.documents import transform_product
from ..search.index import ProductIndex
from .celery_app import app
from .jobs import DeleteJob, IndexJob, ReindexJob, SyncJob, describe, parse_job
from .queue import SyncJobLog

logger = logging.getLogger(__name__)

CHECKPOINT_PREFIX = "sync:reindex:checkpoint:"
LOCK_PREFIX = "sync:lock:product:"
CHECKPOINT_TTL = 24 * 3600

# Failures worth another attempt; anything else fails the job on the spot
RETRYABLE_ERRORS = (
    TransientInfraError,
    SearchTimeoutError,
    OperationalError,
    InterfaceError,
    PoolTimeoutError,
)


def index_suffix(requested_at: str) -> str:
    """
    Versioned index suffix for a reindex run.

    "2026-10-18T12:30:00+00:00" -> "20261018123000"
    """
    try:
        return datetime.fromisoformat(requested_at).strftime("%Y%m%d%H%M%S")
    except ValueError:
        return re.sub(r"[^a-z0-9]+", "-", requested_at.lower()).strip("-")


def backoff_countdown(retries: int, base: int = 1) -> int:
    """Seconds before the next attempt: base * 2^retries (1, 2, 4, 8, ...)."""
    return base * (2 ** retries)


class SyncWorker:
    """
    Applies sync jobs.

    Jobs are idempotent: index re-reads the current catalog state, delete
    treats an absent document as success and reindex resumes from its
    last checkpoint.
    """

    def __init__(
        self,
        repository: Optional[CatalogRepository] = None,
        index: Optional[ProductIndex] = None,
        cache: Optional[RedisCache] = None,
        settings: Optional[SearchSettings] = None,
    ):
        self.settings = settings or get_settings()
        if repository is None:
            from ..db.session import get_session_factory

            repository = CatalogRepository(get_session_factory())
        self.repository = repository
        self.index = index or ProductIndex()
        self.cache = cache or get_redis_cache()

    def handle(self, job: SyncJob) -> Dict[str, Any]:
        if isinstance(job, IndexJob):
            return self.index_product(job.product_id)
        if isinstance(job, DeleteJob):
            return self.delete_product(job.product_id)
        if isinstance(job, ReindexJob):
            return self.reindex(job.requested_at, job.batch_size)
        raise JobPayloadError(f"Unsupported sync job: {job!r}")

    @contextmanager
    def _product_lock(self, product_id: str) -> Iterator[None]:
        """Serialize jobs touching the same product across workers."""
        try:
            lock = self.cache.raw.lock(
                f"{LOCK_PREFIX}{product_id}",
                timeout=self.settings.sync_lock_timeout,
                blocking_timeout=self.settings.sync_lock_timeout,
            )
            acquired = lock.acquire()
        except (redis.RedisError, RedisCacheError) as e:
            raise TransientInfraError(f"Product lock unavailable: {e}", component="redis") from e

        if not acquired:
            raise TransientInfraError(f"Timed out waiting for lock on product {product_id}", component="redis")
        try:
            yield
        finally:
            try:
                lock.release()
            except redis.exceptions.LockError as e:
                logger.warning(f"Lock for product {product_id} expired before release: {e}")

    def index_product(self, product_id: str) -> Dict[str, Any]:
        with self._product_lock(product_id):
            record = self.repository.get_record(product_id)
            if record is None:
                logger.warning(f"Product {product_id} not found in catalog, skipping index job")
                return {"status": "skipped", "product_id": product_id, "reason": "not_found"}

            document = transform_product(record)
            self.index.upsert(document)

        logger.info(f"Indexed product {product_id}")
        return {"status": "indexed", "product_id": product_id}

    def delete_product(self, product_id: str) -> Dict[str, Any]:
        with self._product_lock(product_id):
            deleted = self.index.delete(product_id)

        if not deleted:
            logger.warning(f"Product {product_id} already absent from index")
        else:
            logger.info(f"Deleted product {product_id} from index")
        return {"status": "deleted" if deleted else "absent", "product_id": product_id}

    def _checkpoint_key(self, requested_at: str) -> str:
        return f"{CHECKPOINT_PREFIX}{requested_at}"

    def reindex(self, requested_at: str, batch_size: Optional[int] = None) -> Dict[str, Any]:
        """
        Rebuild the index from the catalog.

        Active products are written in batches into a fresh versioned index;
        the alias is repointed only after the last batch and a refresh, so
        readers never see a partial index. The skip offset is checkpointed
        after every batch and a retried run resumes from it.

        Args:
            requested_at: ISO timestamp identifying the run
            batch_size: Products per bulk request (defaults to settings)

        Returns:
            Dictionary with reindex results
        """
        batch_size = batch_size or self.settings.reindex_batch_size
        checkpoint_key = self._checkpoint_key(requested_at)

        index_name = self.index.create_versioned_index(index_suffix(requested_at))

        skip = int(self.cache.get(checkpoint_key) or 0)
        if skip:
            logger.info(f"Resuming reindex {requested_at} from offset {skip}")

        total_active = self.repository.count_active_products()
        logger.info(f"Starting reindex into {index_name}: {total_active} active products")

        indexed = 0
        failed = 0
        batches = 0

        while True:
            records = self.repository.list_page(skip, batch_size, active_only=True)
            if not records:
                break

            documents = [transform_product(record) for record in records]
            result = self.index.bulk_index(documents, index_name=index_name)

            indexed += result.indexed
            failed += result.failed
            batches += 1
            if result.failed_items:
                logger.warning(
                    f"Batch at offset {skip}: {result.failed} documents failed "
                    f"(first: {result.failed_items[:3]})"
                )

            skip += len(records)
            self.cache.set(checkpoint_key, skip, ttl=CHECKPOINT_TTL)
            logger.info(f"Reindex progress: {skip}/{total_active}")

            if len(records) < batch_size:
                break

        self.index.refresh(index_name)
        dropped = self.index.swap_alias(index_name)
        self.cache.delete(checkpoint_key)

        logger.info(f"Reindex complete: {indexed} indexed, {failed} failed, {batches} batches")
        return {
            "status": "reindexed",
            "index": index_name,
            "indexed": indexed,
            "failed": failed,
            "batches": batches,
            "processed": skip,
            "total_active": total_active,
            "dropped_indices": dropped,
        }


@app.task(
    bind=True,
    name="tasks.process_sync_job",
    max_retries=get_settings().sync_max_attempts - 1,
    rate_limit=get_settings().sync_rate_limit,
)
def process_sync_job(self, payload: Dict[str, Any]) -> Dict[str, Any]:
    """
    Apply one sync job.

    Malformed payloads and non-transient errors (an index mapping rejection,
    a constraint violation) fail immediately. Infrastructure failures are
    retried with exponential backoff until the attempts run out, then
    recorded as failed.

    Args:
        payload: Job payload produced by SyncJob.to_payload()

    Returns:
        Dictionary with job results
    """
    settings = get_settings()
    job_log = SyncJobLog()
    attempt = self.request.retries + 1

    try:
        job = parse_job(payload)
    except JobPayloadError as e:
        logger.error(f"Rejected sync job payload {payload!r}: {e}")
        job_log.record_failed(payload, str(e), attempts=attempt)
        return {"status": "failed", "error": str(e), "retryable": False}

    logger.info(f"Processing sync job {describe(job)} (attempt {attempt}/{settings.sync_max_attempts})")

    try:
        result = SyncWorker(settings=settings).handle(job)

    except JobPayloadError as e:
        logger.error(f"Sync job {describe(job)} rejected: {e}")
        job_log.record_failed(job.to_payload(), str(e), attempts=attempt)
        return {"status": "failed", "error": str(e), "retryable": False}

    except RETRYABLE_ERRORS as e:
        if attempt >= settings.sync_max_attempts:
            logger.error(
                f"Sync job {describe(job)} failed after {attempt} attempts: {e}", exc_info=True
            )
            job_log.record_failed(job.to_payload(), str(e), attempts=attempt)
            return {"status": "failed", "error": str(e), "attempts": attempt}

        countdown = backoff_countdown(self.request.retries, settings.sync_backoff_base_seconds)
        logger.warning(f"Sync job {describe(job)} failed (attempt {attempt}): {e}; retrying in {countdown}s")
        raise self.retry(exc=e, countdown=countdown)

    except Exception as e:
        logger.error(f"Sync job {describe(job)} failed with a non-retryable error: {e}", exc_info=True)
        job_log.record_failed(job.to_payload(), str(e), attempts=attempt)
        return {"status": "failed", "error": str(e), "attempts": attempt, "retryable": False}

    job_log.record_completed(job.to_payload(), attempts=attempt, result=result)
    return result
