"""
Facet Aggregation
"Smart filter" counts: every facet reflects all active filters except its own.
"""

import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

from ..errors import CatalogSearchError
from .index import ProductIndex
from .query_builder import SearchFilters, build_text_query

logger = logging.getLogger(__name__)

PRICE_RANGES = [
    {"key": "Under 500", "to": 500},
    {"key": "500-1000", "from": 500, "to": 1000},
    {"key": "1000-2000", "from": 1000, "to": 2000},
    {"key": "2000-5000", "from": 2000, "to": 5000},
    {"key": "Over 5000", "from": 5000},
]

RATING_RANGES = [
    {"key": "4 & above", "from": 4},
    {"key": "3 & above", "from": 3},
    {"key": "2 & above", "from": 2},
    {"key": "1 & above", "from": 1},
]

# facet name -> (filter dimension it ignores, bucket aggregation)
FACET_DIMENSIONS: Dict[str, Any] = {
    "categories": ("category", {"terms": {"field": "category", "size": 50, "order": {"_count": "desc"}}}),
    "brands": ("brand", {"terms": {"field": "brand.keyword", "size": 50, "order": {"_count": "desc"}}}),
    "price_ranges": ("price", {"range": {"field": "price", "ranges": PRICE_RANGES}}),
    "ratings": ("rating", {"range": {"field": "rating", "ranges": RATING_RANGES}}),
}


@dataclass
class FacetValue:
    value: str
    count: int
    range_from: Optional[float] = None
    range_to: Optional[float] = None


@dataclass
class PriceStats:
    avg: float = 0
    min: float = 0
    max: float = 0


@dataclass
class SearchFacets:
    categories: List[FacetValue] = field(default_factory=list)
    brands: List[FacetValue] = field(default_factory=list)
    price_ranges: List[FacetValue] = field(default_factory=list)
    ratings: List[FacetValue] = field(default_factory=list)
    price_stats: PriceStats = field(default_factory=PriceStats)
    total_in_stock: int = 0
    total_on_sale: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _filter_of(clauses: List[Dict[str, Any]]) -> Dict[str, Any]:
    if not clauses:
        return {"match_all": {}}
    return {"bool": {"filter": clauses}}


def build_facet_aggregations(filters: Optional[SearchFilters] = None) -> Dict[str, Any]:
    """
    Build facet aggregations for the active filters.

    Each dimension is wrapped in a filter aggregation holding every *other*
    active filter, so selecting a brand narrows category counts but not the
    brand counts themselves. Price stats, in-stock and on-sale counts apply
    all filters.

    Args:
        filters: Active hard filters (None = no filters)

    Returns:
        Aggregations dict for the search request
    """
    clauses = (filters or SearchFilters()).clauses()
    aggs: Dict[str, Any] = {}

    for name, (dimension, bucket_agg) in FACET_DIMENSIONS.items():
        others = [clause for dim, clause in clauses.items() if dim != dimension]
        aggs[name] = {"filter": _filter_of(others), "aggs": {"values": bucket_agg}}

    aggs["filtered_stats"] = {
        "filter": _filter_of(list(clauses.values())),
        "aggs": {
            "avg_price": {"avg": {"field": "price"}},
            "min_price": {"min": {"field": "price"}},
            "max_price": {"max": {"field": "price"}},
            "in_stock": {"filter": {"term": {"in_stock": True}}},
            "on_sale": {"filter": {"range": {"discount": {"gt": 0}}}},
        },
    }
    return aggs


def _buckets(aggs: Dict[str, Any], name: str) -> List[Dict[str, Any]]:
    return ((aggs.get(name) or {}).get("values") or {}).get("buckets") or []


def _stat(stats: Dict[str, Any], name: str) -> float:
    value = (stats.get(name) or {}).get("value")
    return round(value) if value is not None else 0


def parse_facets(aggs: Optional[Dict[str, Any]]) -> SearchFacets:
    """Parse an aggregations response into SearchFacets."""
    if not aggs:
        return SearchFacets()

    stats = aggs.get("filtered_stats") or {}

    return SearchFacets(
        categories=[FacetValue(value=b["key"], count=b["doc_count"]) for b in _buckets(aggs, "categories")],
        brands=[FacetValue(value=b["key"], count=b["doc_count"]) for b in _buckets(aggs, "brands")],
        price_ranges=[
            FacetValue(value=b["key"], count=b["doc_count"], range_from=b.get("from"), range_to=b.get("to"))
            for b in _buckets(aggs, "price_ranges")
        ],
        ratings=[
            FacetValue(value=b["key"], count=b["doc_count"], range_from=b.get("from"))
            for b in _buckets(aggs, "ratings")
        ],
        price_stats=PriceStats(
            avg=_stat(stats, "avg_price"),
            min=_stat(stats, "min_price"),
            max=_stat(stats, "max_price"),
        ),
        total_in_stock=(stats.get("in_stock") or {}).get("doc_count", 0),
        total_on_sale=(stats.get("on_sale") or {}).get("doc_count", 0),
    )


class FacetService:
    """Facet counts without hits (filter sidebar refresh)."""

    def __init__(self, index: Optional[ProductIndex] = None, timeout: Optional[float] = None):
        self.index = index or ProductIndex()
        self.timeout = timeout

    def available_filters(self, query: str, filters: Optional[SearchFilters] = None) -> SearchFacets:
        """
        Facet counts for a query and its applied filters.

        Returns empty facets if the index engine fails.
        """
        text = build_text_query(query)
        request = {
            "size": 0,
            "query": {"bool": {"must": text["must"]}},
            "aggs": build_facet_aggregations(filters),
        }
        try:
            response = self.index.search(request, timeout=self.timeout)
        except CatalogSearchError as e:
            logger.error(f"Failed to get available filters: {e}")
            return SearchFacets()

        return parse_facets(response.get("aggregations"))
