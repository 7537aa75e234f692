"""
Dependency Injection
FastAPI dependencies for the search services, the click ledger and admin auth.
"""

import logging
import uuid
from typing import List, Optional
from fastapi import Depends, Header, HTTPException, Query, Request, status
from sqlalchemy.orm import sessionmaker

from ..config.settings import SearchSettings, get_settings
from ..db.session import get_session_factory
from ..search import FacetService, ProductIndex, SearchService, SuggestionService
from ..tracking import ClickLedger, SearchMetricsCollector, TrendTracker, get_search_metrics, get_trend_tracker

logger = logging.getLogger(__name__)

MAX_RECENT_CATEGORIES = 5


def get_db_session_factory() -> sessionmaker:
    """Session factory for the click ledger and catalog reads."""
    return get_session_factory()


def get_product_index() -> ProductIndex:
    return ProductIndex()


def get_trends() -> TrendTracker:
    return get_trend_tracker()


def get_metrics() -> SearchMetricsCollector:
    return get_search_metrics()


def get_click_ledger(
    session_factory: sessionmaker = Depends(get_db_session_factory),
    trends: TrendTracker = Depends(get_trends),
) -> ClickLedger:
    return ClickLedger(session_factory, trends=trends)


def get_search_service(
    index: ProductIndex = Depends(get_product_index),
    ledger: ClickLedger = Depends(get_click_ledger),
    trends: TrendTracker = Depends(get_trends),
    metrics: SearchMetricsCollector = Depends(get_metrics),
    settings: SearchSettings = Depends(get_settings),
) -> SearchService:
    """
    Get search service instance.

    Use as FastAPI dependency:
        @router.get("/search")
        def search(service: SearchService = Depends(get_search_service)):
            ...
    """
    return SearchService(index=index, ledger=ledger, trends=trends, metrics=metrics, settings=settings)


def get_suggestion_service(
    index: ProductIndex = Depends(get_product_index),
    trends: TrendTracker = Depends(get_trends),
    settings: SearchSettings = Depends(get_settings),
) -> SuggestionService:
    return SuggestionService(index=index, trends=trends, timeout=settings.query_timeout_seconds)


def get_facet_service(
    index: ProductIndex = Depends(get_product_index),
    settings: SearchSettings = Depends(get_settings),
) -> FacetService:
    return FacetService(index=index, timeout=settings.query_timeout_seconds)


def get_recent_categories(
    recent_category: Optional[List[str]] = Query(None, description="Recently viewed categories, most recent first"),
    x_recent_categories: Optional[str] = Header(None),
) -> List[str]:
    """
    Personalization signal from the caller.

    Repeated `recent_category` query params win over the comma separated
    `X-Recent-Categories` header.
    """
    categories = recent_category or []
    if not categories and x_recent_categories:
        categories = x_recent_categories.split(",")
    return [c.strip() for c in categories if c and c.strip()][:MAX_RECENT_CATEGORIES]


def verify_admin_key(
    settings: SearchSettings = Depends(get_settings), x_api_key: Optional[str] = Header(None)
) -> bool:
    """
    Verify the admin API key when one is configured.

    Use as FastAPI dependency:
        @router.post("/reindex")
        def reindex(authorized: bool = Depends(verify_admin_key)):
            ...
    """
    if not settings.admin_api_key:
        return True

    if not x_api_key:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="API key is required",
            headers={"WWW-Authenticate": "ApiKey"},
        )

    if x_api_key != settings.admin_api_key:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid API key")

    return True


def get_request_id(request: Request) -> str:
    """Request id assigned by the logging middleware (generated if absent)."""
    return getattr(request.state, "request_id", None) or uuid.uuid4().hex
