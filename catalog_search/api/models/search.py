"""
Search Models
Pydantic models for the search, suggestion and trending endpoints.
"""

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field


class FacetValueModel(BaseModel):
    value: str
    count: int
    range_from: Optional[float] = None
    range_to: Optional[float] = None


class PriceStatsModel(BaseModel):
    avg: float = 0
    min: float = 0
    max: float = 0


class FacetsModel(BaseModel):
    """Facet counts; each dimension ignores its own active filter."""

    categories: List[FacetValueModel] = Field(default_factory=list)
    brands: List[FacetValueModel] = Field(default_factory=list)
    price_ranges: List[FacetValueModel] = Field(default_factory=list)
    ratings: List[FacetValueModel] = Field(default_factory=list)
    price_stats: PriceStatsModel = Field(default_factory=PriceStatsModel)
    total_in_stock: int = 0
    total_on_sale: int = 0


class FallbackInfo(BaseModel):
    strategy: str = Field(..., description="relaxed_query, category_browse or popular_products")
    message: str
    applied: bool = True


class SearchMeta(BaseModel):
    duration_ms: float
    sort: str
    filters: List[str] = Field(default_factory=list, description="Applied filter dimensions")
    personalized: bool = False
    preferred_categories: List[str] = Field(default_factory=list)
    ctr_boosted: int = Field(default=0, description="Products boosted from click history")


class SearchResponse(BaseModel):
    """
    Search response model.

    `products` holds the primary hits, or the fallback products when the
    query matched nothing (see `fallback`).
    """

    success: bool = True
    query: str
    spell_suggestion: Optional[str] = None
    total: int
    page: int
    limit: int
    total_pages: int
    products: List[Dict[str, Any]]
    fallback: Optional[FallbackInfo] = None
    facets: FacetsModel
    meta: SearchMeta

    class Config:
        json_schema_extra = {
            "example": {
                "success": True,
                "query": "face cream",
                "spell_suggestion": None,
                "total": 42,
                "page": 1,
                "limit": 20,
                "total_pages": 3,
                "products": [{"id": "p-1", "name": "Hydra Moisturizer", "price": 1000, "discount": 20}],
                "facets": {"categories": [{"value": "Skincare", "count": 42}]},
                "meta": {"duration_ms": 35.2, "sort": "relevance", "filters": []},
            }
        }


class FiltersResponse(BaseModel):
    success: bool = True
    query: str
    facets: FacetsModel


class SuggestionsResponse(BaseModel):
    success: bool = True
    query: str
    suggestions: List[Dict[str, Any]]


class TrendingResponse(BaseModel):
    success: bool = True
    trending_queries: List[Dict[str, Any]]
    trending_now: List[Dict[str, Any]]
    trending_products: List[Dict[str, Any]]
