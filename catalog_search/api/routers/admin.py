"""
Admin Endpoints
POST /admin/reindex - Queue a full rebuild of the product index
POST /admin/products/{product_id}/sync - Queue an index job for one product
DELETE /admin/products/{product_id}/sync - Queue a delete job for one product
GET /admin/sync-jobs - Recent completed and failed sync jobs
"""

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field

from ...catalog import notify_product_changed, notify_product_deleted
from ...tasks.queue import SyncJobLog, get_sync_queue
from ..dependencies import verify_admin_key

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/admin", tags=["admin"], dependencies=[Depends(verify_admin_key)])


# Request/Response Models
class ReindexRequest(BaseModel):
    batch_size: Optional[int] = Field(None, ge=1, le=5000, description="Products per bulk request")


class QueuedResponse(BaseModel):
    task_id: str = Field(..., description="Celery task ID")
    status: str = Field(default="queued", description="Task status")
    message: str = Field(..., description="Success message")


class SyncJobsResponse(BaseModel):
    completed: List[Dict[str, Any]]
    failed: List[Dict[str, Any]]


# Endpoints
@router.post("/reindex", response_model=QueuedResponse, status_code=status.HTTP_202_ACCEPTED)
def reindex(request: Optional[ReindexRequest] = None) -> QueuedResponse:
    """
    Queue a full reindex.

    Active products are written into a fresh versioned index and the alias
    is swapped once the rebuild completes. Returns immediately.
    """
    batch_size = request.batch_size if request else None
    try:
        task_id = get_sync_queue().enqueue_reindex(batch_size=batch_size)
    except Exception as e:
        logger.error(f"Failed to queue reindex: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"Failed to queue reindex: {e}",
        )

    logger.info(f"Reindex queued: task_id={task_id}")
    return QueuedResponse(task_id=task_id, message="Full reindex queued")


def _queued_or_503(task_id: Optional[str], action: str, product_id: str) -> QueuedResponse:
    if task_id is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"Failed to queue {action} job for product {product_id}",
        )
    return QueuedResponse(task_id=task_id, message=f"{action.capitalize()} job queued for product {product_id}")


@router.post("/products/{product_id}/sync", response_model=QueuedResponse, status_code=status.HTTP_202_ACCEPTED)
def sync_product(product_id: str) -> QueuedResponse:
    """Re-project one product from the catalog into the index."""
    return _queued_or_503(notify_product_changed(product_id), "index", product_id)


@router.delete("/products/{product_id}/sync", response_model=QueuedResponse, status_code=status.HTTP_202_ACCEPTED)
def unsync_product(product_id: str) -> QueuedResponse:
    """Remove one product from the index."""
    return _queued_or_503(notify_product_deleted(product_id), "delete", product_id)


@router.get("/sync-jobs", response_model=SyncJobsResponse, status_code=status.HTTP_200_OK)
def sync_jobs(limit: int = Query(20, ge=1, le=200)) -> SyncJobsResponse:
    """Most recent terminal sync jobs, newest first."""
    job_log = SyncJobLog()
    return SyncJobsResponse(
        completed=job_log.recent_completed(limit),
        failed=job_log.recent_failed(limit),
    )
