"""
Zero-Result Fallback
Cascade of relaxation strategies run when a non-empty query finds nothing.

    RELAX_FILTERS -> CATEGORY_BROWSE -> POPULAR_FALLBACK

Transitions are one-way; the first strategy with at least one hit wins.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from .index import ProductIndex
from .query_builder import SearchParams, build_sort, build_text_query, promotional_functions
from .results import ProductHit, parse_hits, total_hits

logger = logging.getLogger(__name__)

MAX_BROWSE_CATEGORIES = 3


class FallbackStrategy(str, Enum):
    RELAXED_QUERY = "relaxed_query"
    CATEGORY_BROWSE = "category_browse"
    POPULAR_PRODUCTS = "popular_products"


@dataclass
class FallbackResult:
    strategy: FallbackStrategy
    message: str
    products: List[ProductHit] = field(default_factory=list)
    total: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {"strategy": self.strategy.value, "message": self.message, "applied": True}


def build_relaxed_request(params: SearchParams) -> Dict[str, Any]:
    """Same text query, no hard filters, promotional boosts only."""
    text = build_text_query(params.query)
    bool_query: Dict[str, Any] = {"must": text["must"]}
    if text["should"]:
        bool_query["should"] = text["should"]
    return {
        "query": {
            "function_score": {
                "query": {"bool": bool_query},
                "functions": promotional_functions(),
                "score_mode": "sum",
                "boost_mode": "multiply",
            }
        },
        "size": params.limit,
        "sort": build_sort(params.sort),
    }


def build_category_browse_request(categories: List[str], limit: int) -> Dict[str, Any]:
    """Top rated, most reviewed products from the user's recent categories."""
    return {
        "query": {"bool": {"must": [{"terms": {"category": categories[:MAX_BROWSE_CATEGORIES]}}]}},
        "sort": [{"rating": "desc"}, {"review_count": "desc"}],
        "size": limit,
    }


def build_popular_request(limit: int) -> Dict[str, Any]:
    """Every product is eligible; featured and flash-sale ones rank first, then by rating."""
    return {
        "query": {
            "bool": {
                "must": [{"match_all": {}}],
                "should": [
                    {"term": {"is_featured": {"value": True, "boost": 2}}},
                    {"term": {"is_flash_sale": {"value": True, "boost": 1.5}}},
                ]
            }
        },
        "sort": [{"_score": "desc"}, {"rating": "desc"}],
        "size": limit,
    }


class FallbackController:
    """
    Runs the fallback cascade.

    Deterministic for a fixed index and personalization state. Engine errors
    propagate to the caller like errors of the primary query.
    """

    def __init__(self, index: ProductIndex, timeout: Optional[float] = None):
        self.index = index
        self.timeout = timeout

    def _run(self, request: Dict[str, Any]) -> Dict[str, Any]:
        return self.index.search(request, timeout=self.timeout)

    def relax_filters(self, params: SearchParams) -> Optional[FallbackResult]:
        # Without hard filters the relaxed query is the query that just failed
        if params.filters.is_empty():
            return None

        response = self._run(build_relaxed_request(params))
        if total_hits(response) == 0:
            return None
        return FallbackResult(
            strategy=FallbackStrategy.RELAXED_QUERY,
            message="No exact matches found. Showing similar products:",
            products=parse_hits(response),
            total=total_hits(response),
        )

    def category_browse(self, params: SearchParams, recent_categories: List[str]) -> Optional[FallbackResult]:
        if not recent_categories:
            return None

        response = self._run(build_category_browse_request(recent_categories, params.limit))
        if total_hits(response) == 0:
            return None
        return FallbackResult(
            strategy=FallbackStrategy.CATEGORY_BROWSE,
            message=f'No results for "{params.query}". You might like these from {recent_categories[0]}:',
            products=parse_hits(response),
            total=total_hits(response),
        )

    def popular_products(self, params: SearchParams) -> FallbackResult:
        response = self._run(build_popular_request(params.limit))
        return FallbackResult(
            strategy=FallbackStrategy.POPULAR_PRODUCTS,
            message=f'No results for "{params.query}". Check out our popular products:',
            products=parse_hits(response),
            total=total_hits(response),
        )

    def run(self, params: SearchParams, recent_categories: Optional[List[str]] = None) -> Optional[FallbackResult]:
        """
        Run the cascade for a zero-hit query.

        Returns:
            The first non-empty strategy result (popular products is
            terminal), or None for an empty query
        """
        if not params.query:
            return None

        result = self.relax_filters(params)
        if result is None:
            result = self.category_browse(params, recent_categories or [])
        if result is None:
            result = self.popular_products(params)

        logger.info(f"Zero results for '{params.query}', fallback strategy: {result.strategy.value}")
        return result
