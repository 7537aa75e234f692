#!/usr/bin/env python3
"""
Product Reindex Script
Rebuilds the product search index from the catalog.

Usage:
    python -m catalog_search.scripts.reindex_products
    python -m catalog_search.scripts.reindex_products --batch-size 200
    python -m catalog_search.scripts.reindex_products --enqueue
"""

import argparse
import logging
import sys
from typing import List, Optional

from catalog_search.errors import CatalogSearchError
from catalog_search.tasks.jobs import ReindexJob
from catalog_search.tasks.queue import get_sync_queue
from catalog_search.tasks.sync import SyncWorker

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def main(argv: Optional[List[str]] = None) -> int:
    """Run a reindex inline, or hand it to the sync workers with --enqueue."""
    parser = argparse.ArgumentParser(description="Rebuild the product search index")
    parser.add_argument(
        "--batch-size",
        type=int,
        default=None,
        help="Products per bulk request (default: REINDEX_BATCH_SIZE)",
    )
    parser.add_argument(
        "--enqueue",
        action="store_true",
        help="Queue a reindex job for the workers instead of running it here",
    )
    args = parser.parse_args(argv)

    if args.batch_size is not None and args.batch_size < 1:
        parser.error("--batch-size must be a positive integer")

    if args.enqueue:
        task_id = get_sync_queue().enqueue_reindex(batch_size=args.batch_size)
        logger.info(f"Reindex queued: task_id={task_id}")
        return 0

    job = ReindexJob.now(batch_size=args.batch_size)
    logger.info(f"Starting inline reindex {job.requested_at}")

    try:
        stats = SyncWorker().reindex(job.requested_at, job.batch_size)
    except CatalogSearchError as e:
        logger.error(f"Reindex failed: {e}")
        return 1

    logger.info("=" * 60)
    logger.info("REINDEX COMPLETE")
    logger.info("=" * 60)
    logger.info(f"Index: {stats['index']}")
    logger.info(f"Active products: {stats['total_active']}")
    logger.info(f"Indexed: {stats['indexed']}")
    logger.info(f"Failed: {stats['failed']}")
    logger.info(f"Batches: {stats['batches']}")
    logger.info(f"Dropped indices: {', '.join(stats['dropped_indices']) or 'none'}")

    return 1 if stats["failed"] else 0


if __name__ == "__main__":
    sys.exit(main())
