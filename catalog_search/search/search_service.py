"""
Search Service
Runs a ranked product search end to end: CTR lookup, request building,
execution, facets, spelling suggestion, zero-result fallback and tracking.
"""

import logging
import math
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..config.settings import SearchSettings, get_settings
from ..tracking.clicks import ClickLedger
from ..tracking.metrics import SearchMetric, SearchMetricsCollector, get_search_metrics
from ..tracking.trending import TrendTracker
from .ctr import build_ctr_functions
from .facets import SearchFacets, build_facet_aggregations, parse_facets
from .fallback import FallbackController, FallbackResult
from .index import ProductIndex
from .query_builder import SearchParams, build_search_request
from .results import ProductHit, parse_hits, spell_suggestion, total_hits

logger = logging.getLogger(__name__)

MAX_PERSONALIZATION_CATEGORIES = 5


@dataclass
class SearchResult:
    query: str
    products: List[ProductHit]
    total: int
    page: int
    limit: int
    total_pages: int
    facets: SearchFacets = field(default_factory=SearchFacets)
    spell_suggestion: Optional[str] = None
    fallback: Optional[FallbackResult] = None
    duration_ms: float = 0.0
    sort: str = "relevance"
    filters: List[str] = field(default_factory=list)
    personalized: bool = False
    preferred_categories: List[str] = field(default_factory=list)
    ctr_boosted: int = 0


def clean_categories(categories: Optional[List[str]], limit: int = MAX_PERSONALIZATION_CATEGORIES) -> List[str]:
    """Trimmed, deduplicated personalization categories, most recent first."""
    cleaned: List[str] = []
    for category in categories or []:
        value = (category or "").strip()
        if value and value not in cleaned:
            cleaned.append(value)
    return cleaned[:limit]


class SearchService:
    """
    Ranked product search.

    Personalization and CTR boosting are optional signals: when the caller
    has no recent categories, or the ledger/cache is unavailable, the query
    proceeds with baseline relevance.
    """

    def __init__(
        self,
        index: Optional[ProductIndex] = None,
        ledger: Optional[ClickLedger] = None,
        trends: Optional[TrendTracker] = None,
        metrics: Optional[SearchMetricsCollector] = None,
        settings: Optional[SearchSettings] = None,
    ):
        self.settings = settings or get_settings()
        self.index = index or ProductIndex()
        self.ledger = ledger
        self.trends = trends
        self.metrics = metrics or get_search_metrics()
        self.fallback = FallbackController(self.index, timeout=self.settings.query_timeout_seconds)

    def _ctr_functions(self, query: str) -> List[Dict[str, Any]]:
        if not query or not self.settings.enable_ctr_boost or self.ledger is None:
            return []
        try:
            entries = self.ledger.get_query_ctr(query, limit=self.settings.ctr_top_n)
        except Exception as e:
            logger.warning(f"CTR data unavailable, ranking without it: {e}")
            return []
        return build_ctr_functions(entries, cap=self.settings.ctr_boost_cap)

    def _track(self, params: SearchParams, total: int, duration_ms: float,
               fallback: Optional[FallbackResult], success: bool = True,
               error: Optional[str] = None) -> None:
        self.metrics.record(SearchMetric(
            query=params.query or "[empty]",
            duration_ms=duration_ms,
            result_count=total,
            filters=params.filters.applied(),
            success=success,
            fallback=fallback.strategy.value if fallback else None,
            error=error,
        ))
        if not success or self.trends is None or not params.query:
            return
        self.trends.track_query(params.query)
        if total == 0:
            self.trends.track_failed_query(params.query)

    def search(self, params: SearchParams, recent_categories: Optional[List[str]] = None) -> SearchResult:
        """
        Execute a search.

        Args:
            params: Validated search parameters
            recent_categories: Categories the user viewed recently, most
                recent first (optional personalization signal)

        Returns:
            SearchResult with ranked products, facets and fallback metadata

        Raises:
            SearchTimeoutError: If the query exceeds the request timeout
            TransientInfraError: If the index engine is unreachable
        """
        start_time = time.time()

        categories = clean_categories(recent_categories) if self.settings.enable_personalization else []
        ctr_functions = self._ctr_functions(params.query)

        request = build_search_request(
            params,
            recent_categories=categories,
            ctr_functions=ctr_functions,
            aggregations=build_facet_aggregations(params.filters),
            personalization_weight=self.settings.personalization_weight,
        )

        fallback: Optional[FallbackResult] = None
        try:
            response = self.index.search(request, timeout=self.settings.query_timeout_seconds)
            total = total_hits(response)
            products = parse_hits(response)

            if total == 0 and params.query:
                fallback = self.fallback.run(params, categories)
                if fallback is not None:
                    products = fallback.products
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            logger.error(f"Search failed for '{params.query}': {e}")
            self._track(params, 0, duration_ms, None, success=False, error=str(e))
            raise

        duration_ms = (time.time() - start_time) * 1000
        self._track(params, total, duration_ms, fallback)

        logger.info(
            f"Search '{params.query}' -> {total} hits in {duration_ms:.2f}ms "
            f"(ctr_boosts={len(ctr_functions)}, personalized={bool(categories)}"
            f"{', fallback=' + fallback.strategy.value if fallback else ''})"
        )

        return SearchResult(
            query=params.query,
            products=products,
            total=total,
            page=params.page,
            limit=params.limit,
            total_pages=math.ceil((total or len(products)) / params.limit),
            facets=parse_facets(response.get("aggregations")),
            spell_suggestion=spell_suggestion(response, params.query) if params.query else None,
            fallback=fallback,
            duration_ms=round(duration_ms, 2),
            sort=params.sort,
            filters=params.filters.applied(),
            personalized=bool(categories),
            preferred_categories=categories[:3],
            ctr_boosted=len(ctr_functions),
        )

    def get_products_by_ids(self, product_ids: List[str]) -> List[Dict[str, Any]]:
        """
        Product summaries for the given ids, in the given order.

        Ids missing from the index are skipped.
        """
        summary_fields = ("id", "name", "slug", "price", "image", "rating", "brand", "discount")
        documents = self.index.get_many(product_ids)
        return [{k: doc.get(k) for k in summary_fields} for doc in documents]
