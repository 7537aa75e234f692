"""
Health Check Endpoints
Endpoints for health checks and status monitoring.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict
from fastapi import APIRouter, Depends, Response, status
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from ...caching import get_redis_cache
from ...config.settings import SearchSettings, get_settings
from ...errors import CatalogSearchError
from ...search import ProductIndex
from ..dependencies import get_db_session_factory, get_product_index
from ..middleware.timing import get_latency_tracker

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


def _latency_summary(stats: Dict[str, float]) -> Dict[str, float]:
    return {
        "request_count": stats["count"],
        "latency_p50_ms": round(stats["p50"], 2),
        "latency_p95_ms": round(stats["p95"], 2),
        "latency_p99_ms": round(stats["p99"], 2),
    }


@router.get("/health", status_code=status.HTTP_200_OK)
def health_check() -> Dict[str, str]:
    """Basic liveness check."""
    return {"status": "healthy", "timestamp": datetime.now(timezone.utc).isoformat()}


@router.get("/status", status_code=status.HTTP_200_OK)
def status_check(
    response: Response,
    settings: SearchSettings = Depends(get_settings),
    index: ProductIndex = Depends(get_product_index),
    session_factory: sessionmaker = Depends(get_db_session_factory),
) -> Dict[str, Any]:
    """
    Detailed status check.

    Checks status of:
    - Elasticsearch (cluster reachable, alias document count)
    - Redis
    - Database

    Responds 503 when Elasticsearch is down, since search cannot work
    without it; Redis and database failures only degrade the status.
    """
    status_info: Dict[str, Any] = {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": settings.version,
        "components": {},
    }

    # Check Elasticsearch
    if index.ping():
        component: Dict[str, Any] = {"status": "healthy", "index": index.alias}
        try:
            component["document_count"] = index.count()
            component["indices"] = index.alias_targets()
        except CatalogSearchError as e:
            logger.error(f"Index status check failed: {e}")
            component.update(status="degraded", error=str(e))
            status_info["status"] = "degraded"
        status_info["components"]["elasticsearch"] = component
    else:
        status_info["components"]["elasticsearch"] = {"status": "unhealthy", "index": index.alias}
        status_info["status"] = "unhealthy"

    # Check Redis
    cache = get_redis_cache()
    redis_healthy = cache.ping()
    status_info["components"]["redis"] = {"status": "healthy" if redis_healthy else "unhealthy"}
    if redis_healthy:
        info = cache.get_info()
        status_info["components"]["redis"]["used_memory"] = info.get("used_memory_human")
    if not redis_healthy and status_info["status"] == "healthy":
        status_info["status"] = "degraded"

    # Check database
    try:
        with session_factory() as session:
            session.execute(text("SELECT 1"))
        status_info["components"]["database"] = {
            "status": "healthy",
            "url": settings.database_url.split("@")[-1],  # Hide credentials
        }
    except SQLAlchemyError as e:
        logger.error(f"Database health check failed: {e}")
        status_info["components"]["database"] = {"status": "unhealthy", "error": str(e)}
        if status_info["status"] == "healthy":
            status_info["status"] = "degraded"

    tracker = get_latency_tracker()
    status_info["performance"] = {"all": _latency_summary(tracker.get_stats())}
    for group in tracker.groups():
        status_info["performance"][group] = _latency_summary(tracker.get_stats(group))

    response.headers["Cache-Control"] = "no-cache, no-store, must-revalidate"
    if status_info["status"] == "unhealthy":
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    return status_info
