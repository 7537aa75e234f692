"""
Search Module
Document projection, index management, query building, ranking and search.
"""

from .documents import transform_product, normalize_brand_key
from .index import ProductIndex, BulkResult, get_es_client, close_es_client
from .query_builder import SearchFilters, SearchParams, sanitize_query, validate_search_params
from .facets import SearchFacets, FacetService, build_facet_aggregations, parse_facets
from .fallback import FallbackController, FallbackResult, FallbackStrategy
from .search_service import SearchService, SearchResult
from .suggestions import SuggestionService

__all__ = [
    "transform_product",
    "normalize_brand_key",
    "ProductIndex",
    "BulkResult",
    "get_es_client",
    "close_es_client",
    "SearchFilters",
    "SearchParams",
    "sanitize_query",
    "validate_search_params",
    "SearchFacets",
    "FacetService",
    "build_facet_aggregations",
    "parse_facets",
    "FallbackController",
    "FallbackResult",
    "FallbackStrategy",
    "SearchService",
    "SearchResult",
    "SuggestionService",
]
