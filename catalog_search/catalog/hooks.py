"""
Catalog change hooks.

Called by the catalog admin after a product write commits. Dispatch is
fire-and-forget: the catalog write has already succeeded, so an enqueue
failure is reported to the error sink and never raised to the caller.
"""

import logging
from typing import Callable, Optional

logger = logging.getLogger(__name__)

ErrorSink = Callable[[str, Exception], None]


def _log_sink(product_id: str, exc: Exception) -> None:
    logger.error(f"Failed to enqueue sync job for product {product_id}: {exc}")


def notify_product_changed(product_id: str, on_error: Optional[ErrorSink] = None) -> Optional[str]:
    """
    Enqueue an index job for a created or updated product.

    Returns:
        Task ID, or None if the enqueue failed
    """
    from ..tasks.queue import get_sync_queue

    try:
        return get_sync_queue().enqueue_index(product_id)
    except Exception as e:
        (on_error or _log_sink)(product_id, e)
        return None


def notify_product_deleted(product_id: str, on_error: Optional[ErrorSink] = None) -> Optional[str]:
    """Enqueue a delete job for a removed product."""
    from ..tasks.queue import get_sync_queue

    try:
        return get_sync_queue().enqueue_delete(product_id)
    except Exception as e:
        (on_error or _log_sink)(product_id, e)
        return None
