"""
Click Tracking Endpoints
POST /api/v1/search/clicks - Record a search result click
PUT /api/v1/search/clicks/conversion - Attribute a purchase to a clicked result
GET /api/v1/search/clicks/analytics - Click-through analytics
"""

import logging
from typing import Any, Dict, Optional
from fastapi import APIRouter, Depends, Query, status

from ...tracking import ClickEvent, ClickLedger
from ..dependencies import get_click_ledger
from ..models.clicks import ClickRequest, ClickResponse, ConversionRequest, ConversionResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/search/clicks", tags=["clicks"])


@router.post("", response_model=ClickResponse, status_code=status.HTTP_200_OK)
def track_click(
    request: ClickRequest,
    ledger: ClickLedger = Depends(get_click_ledger),
) -> ClickResponse:
    """
    Record a click on a search result.

    The event row and the metrics upsert are best-effort; the response
    reports which of them succeeded.
    """
    event = ClickEvent(
        query=request.query,
        product_id=request.product_id,
        position=request.position,
        result_count=request.result_count,
        filters=request.filters,
        category=request.category,
        price=request.price,
        score=request.score,
        user_id=request.user_id,
        device_id=request.device_id,
        session_id=request.session_id,
    )
    outcome = ledger.record_click(event)
    return ClickResponse(**outcome)


@router.put("/conversion", response_model=ConversionResponse, status_code=status.HTTP_200_OK)
def track_conversion(
    request: ConversionRequest,
    ledger: ClickLedger = Depends(get_click_ledger),
) -> ConversionResponse:
    """
    Count a conversion for a previously clicked (query, product) pair.

    Responds 404 when the pair was never clicked.
    """
    metrics = ledger.record_conversion(request.query, request.product_id, revenue=request.revenue)
    logger.info(f"Conversion tracked: query='{metrics['query']}' product={request.product_id}")
    return ConversionResponse(
        clicks=metrics["clicks"],
        conversions=metrics["conversions"],
        revenue=metrics["revenue"],
    )


@router.get("/analytics", status_code=status.HTTP_200_OK)
def click_analytics(
    query: Optional[str] = Query(None, description="Per-query metrics"),
    product_id: Optional[str] = Query(None, description="Per-product metrics"),
    limit: int = Query(20, ge=1, le=100),
    ledger: ClickLedger = Depends(get_click_ledger),
) -> Dict[str, Any]:
    """
    Click-through analytics.

    Without parameters: top queries by clicks. With `query`: products
    clicked for that query. With `product_id`: queries leading to that
    product.
    """
    if query:
        return {"success": True, "type": "query_metrics", "data": ledger.query_metrics(query, limit=limit)}
    if product_id:
        return {"success": True, "type": "product_metrics", "data": ledger.product_metrics(product_id, limit=limit)}
    return {"success": True, "type": "top_queries", "data": ledger.top_queries(limit=limit)}
