"""
Search Endpoints
GET /api/v1/search - Ranked product search with facets and zero-result fallback
GET /api/v1/search/filters - Facet counts only
GET /api/v1/search/suggestions - Autocomplete
GET /api/v1/search/trending - Trending queries and products
GET /api/v1/search/metrics - In-process search metrics
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from fastapi import APIRouter, Depends, Query, Response, status

from ...search import FacetService, SearchService, SuggestionService, validate_search_params
from ...tracking import SearchMetricsCollector, TrendTracker
from ..dependencies import (
    get_facet_service,
    get_metrics,
    get_recent_categories,
    get_request_id,
    get_search_service,
    get_suggestion_service,
    get_trends,
)
from ..models.search import (
    FiltersResponse,
    SearchResponse,
    SuggestionsResponse,
    TrendingResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/search", tags=["search"])


def _raw_params(**values: Optional[str]) -> Dict[str, Any]:
    return {name: value for name, value in values.items() if value is not None}


@router.get("", response_model=SearchResponse, status_code=status.HTTP_200_OK)
def search(
    response: Response,
    q: Optional[str] = Query(None, description="Search query"),
    category: Optional[str] = Query(None),
    subcategory: Optional[str] = Query(None),
    brand: Optional[str] = Query(None),
    min_price: Optional[str] = Query(None),
    max_price: Optional[str] = Query(None),
    in_stock: Optional[str] = Query(None),
    rating: Optional[str] = Query(None, description="Minimum average rating"),
    tags: Optional[str] = Query(None, description="Comma separated tags"),
    sort: Optional[str] = Query(None),
    page: Optional[str] = Query(None),
    limit: Optional[str] = Query(None),
    recent_categories: List[str] = Depends(get_recent_categories),
    search_service: SearchService = Depends(get_search_service),
    request_id: str = Depends(get_request_id),
) -> SearchResponse:
    """
    Search for products.

    Parameters arrive as strings and are validated together, so a bad
    request lists every violated constraint at once (400).

    Returns:
        Ranked products, facets, spelling suggestion and fallback metadata
    """
    params = validate_search_params(_raw_params(
        q=q, category=category, subcategory=subcategory, brand=brand,
        min_price=min_price, max_price=max_price, in_stock=in_stock,
        rating=rating, tags=tags, sort=sort, page=page, limit=limit,
    ))

    logger.info(
        f"Search request: q='{params.query}', filters={params.filters.applied()}, sort={params.sort}",
        extra={"request_id": request_id},
    )

    result = search_service.search(params, recent_categories=recent_categories)

    response.headers["X-Search-Duration"] = str(result.duration_ms)
    response.headers["X-Result-Count"] = str(result.total)
    response.headers["Cache-Control"] = "public, max-age=60"

    return SearchResponse(
        query=result.query,
        spell_suggestion=result.spell_suggestion,
        total=result.total,
        page=result.page,
        limit=result.limit,
        total_pages=result.total_pages,
        products=[hit.to_dict() for hit in result.products],
        fallback=result.fallback.to_dict() if result.fallback else None,
        facets=result.facets.to_dict(),
        meta={
            "duration_ms": result.duration_ms,
            "sort": result.sort,
            "filters": result.filters,
            "personalized": result.personalized,
            "preferred_categories": result.preferred_categories,
            "ctr_boosted": result.ctr_boosted,
        },
    )


@router.get("/filters", response_model=FiltersResponse, status_code=status.HTTP_200_OK)
def available_filters(
    q: Optional[str] = Query(None),
    category: Optional[str] = Query(None),
    subcategory: Optional[str] = Query(None),
    brand: Optional[str] = Query(None),
    min_price: Optional[str] = Query(None),
    max_price: Optional[str] = Query(None),
    in_stock: Optional[str] = Query(None),
    rating: Optional[str] = Query(None),
    tags: Optional[str] = Query(None),
    facet_service: FacetService = Depends(get_facet_service),
) -> FiltersResponse:
    """Facet counts for a query and its applied filters (filter sidebar refresh)."""
    params = validate_search_params(_raw_params(
        q=q, category=category, subcategory=subcategory, brand=brand,
        min_price=min_price, max_price=max_price, in_stock=in_stock,
        rating=rating, tags=tags,
    ))
    facets = facet_service.available_filters(params.query, params.filters)
    return FiltersResponse(query=params.query, facets=facets.to_dict())


@router.get("/suggestions", response_model=SuggestionsResponse, status_code=status.HTTP_200_OK)
def suggestions(
    q: str = Query("", max_length=200),
    limit: int = Query(5, ge=1, le=20),
    trending: bool = Query(True, description="Blend in trending queries"),
    suggestion_service: SuggestionService = Depends(get_suggestion_service),
) -> SuggestionsResponse:
    """Autocomplete for a prefix; an empty prefix returns trending queries."""
    results = suggestion_service.suggest(q, limit=limit, include_trending=trending)
    return SuggestionsResponse(query=q, suggestions=results)


@router.get("/trending", response_model=TrendingResponse, status_code=status.HTTP_200_OK)
def trending(
    limit: int = Query(10, ge=1, le=50),
    suggestion_service: SuggestionService = Depends(get_suggestion_service),
    search_service: SearchService = Depends(get_search_service),
) -> TrendingResponse:
    data = suggestion_service.trending(limit=limit, product_lookup=search_service.get_products_by_ids)
    return TrendingResponse(**data)


@router.get("/metrics", status_code=status.HTTP_200_OK)
def search_metrics(
    minutes: int = Query(60, ge=1, le=7 * 24 * 60, description="Summary window"),
    metrics: SearchMetricsCollector = Depends(get_metrics),
    trends: TrendTracker = Depends(get_trends),
) -> Dict[str, Any]:
    """
    Search metrics for this API process.

    Returns:
        Summary, slow queries, zero-result queries and the persistent
        failed-query counters
    """
    summary = metrics.get_summary(since_minutes=minutes)
    return {
        "success": True,
        "metrics": {
            "overview": summary,
            "slow_queries": summary["slow_queries"][:10],
            "no_result_queries": metrics.get_zero_result_queries()[:10],
            "failed_queries": trends.failed_queries(limit=10),
        },
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
