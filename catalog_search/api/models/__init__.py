"""
API Models
Pydantic request/response models.
"""

from .search import (
    FacetsModel,
    FallbackInfo,
    FiltersResponse,
    SearchMeta,
    SearchResponse,
    SuggestionsResponse,
    TrendingResponse,
)
from .clicks import ClickRequest, ClickResponse, ConversionRequest, ConversionResponse

__all__ = [
    "FacetsModel",
    "FallbackInfo",
    "FiltersResponse",
    "SearchMeta",
    "SearchResponse",
    "SuggestionsResponse",
    "TrendingResponse",
    "ClickRequest",
    "ClickResponse",
    "ConversionRequest",
    "ConversionResponse",
]
