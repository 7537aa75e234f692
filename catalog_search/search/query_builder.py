"""
Query Builder & Ranking
Sanitize and validate search input, then build the scored Elasticsearch request.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from ..config.settings import get_settings
from ..errors import QueryValidationError
from .ctr import build_discount_functions
from .documents import normalize_brand_key

logger = logging.getLogger(__name__)

# Characters with structural meaning in query syntaxes, plus quotes
_STRIP_CHARS_RE = re.compile(r"[<>{}\[\]\\/\"']")
_WHITESPACE_RE = re.compile(r"\s+")

MAX_PRICE = 1_000_000
MAX_RATING = 5

SEARCH_FIELDS = ["name^5", "brand^3", "category^2", "description^1.5", "tags^2"]

SORT_OPTIONS: Dict[str, List[Dict[str, Any]]] = {
    "relevance": [{"_score": "desc"}, {"created_at": "desc"}],
    "price_asc": [{"price": "asc"}, {"_score": "desc"}],
    "price_desc": [{"price": "desc"}, {"_score": "desc"}],
    "newest": [{"created_at": "desc"}, {"_score": "desc"}],
    "rating": [{"rating": "desc"}, {"_score": "desc"}],
    "name_asc": [{"name.keyword": "asc"}],
    "name_desc": [{"name.keyword": "desc"}],
}

HIGHLIGHT = {
    "fields": {"name": {}, "description": {}},
    "pre_tags": ["<mark>"],
    "post_tags": ["</mark>"],
}


def sanitize_query(raw: Optional[str], max_length: int = 200) -> str:
    """
    Clean a free-text query.

    Trims, strips structural characters and quotes, collapses internal
    whitespace and truncates to max_length.
    """
    if not raw:
        return ""
    cleaned = _STRIP_CHARS_RE.sub("", str(raw))
    cleaned = _WHITESPACE_RE.sub(" ", cleaned).strip()
    return cleaned[:max_length].rstrip()


@dataclass
class SearchFilters:
    """
    Hard (non-scoring) filters applied to a search.

    Example:
        SearchFilters(category="Skincare", min_price=100, in_stock=True)
    """

    category: Optional[str] = None
    subcategory: Optional[str] = None
    brand: Optional[str] = None
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    in_stock: bool = False
    min_rating: Optional[float] = None
    tags: List[str] = field(default_factory=list)

    def clauses(self) -> Dict[str, Dict[str, Any]]:
        """
        Filter clauses keyed by facet dimension.

        Returns:
            Dict of dimension -> Elasticsearch filter clause
        """
        clauses: Dict[str, Dict[str, Any]] = {}

        if self.category:
            clauses["category"] = {"term": {"category": self.category}}
        if self.subcategory:
            clauses["subcategory"] = {"term": {"subcategory": self.subcategory}}
        if self.brand:
            clauses["brand"] = {"term": {"brand_key": normalize_brand_key(self.brand)}}
        if self.min_price is not None or self.max_price is not None:
            bounds: Dict[str, float] = {}
            if self.min_price is not None:
                bounds["gte"] = self.min_price
            if self.max_price is not None:
                bounds["lte"] = self.max_price
            clauses["price"] = {"range": {"price": bounds}}
        if self.in_stock:
            clauses["in_stock"] = {"term": {"in_stock": True}}
        if self.min_rating is not None:
            clauses["rating"] = {"range": {"rating": {"gte": self.min_rating}}}
        if self.tags:
            clauses["tags"] = {"terms": {"tags.keyword": [t.lower() for t in self.tags]}}

        return clauses

    def applied(self) -> List[str]:
        """Names of the active filter dimensions."""
        return list(self.clauses().keys())

    def is_empty(self) -> bool:
        return not self.clauses()


@dataclass
class SearchParams:
    query: str = ""
    filters: SearchFilters = field(default_factory=SearchFilters)
    sort: str = "relevance"
    page: int = 1
    limit: int = 20

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


def _parse_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    try:
        text = str(value).strip()
        return int(text)
    except ValueError:
        return None


def _parse_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    try:
        result = float(str(value).strip())
    except ValueError:
        return None
    if result != result:  # NaN
        return None
    return result


def _parse_bool(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("true", "1", "yes")


def _parse_tags(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        value = value.split(",")
    return [str(tag).strip() for tag in value if str(tag).strip()]


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _clean_str(value: Any) -> Optional[str]:
    return None if _is_blank(value) else str(value).strip()


def validate_search_params(raw: Mapping[str, Any]) -> SearchParams:
    """
    Validate raw search parameters.

    Missing optional parameters take their defaults; present but invalid
    values are rejected. An integer limit outside the page size range is
    clamped into it instead. Every violation is collected before raising.

    Args:
        raw: Mapping of parameter name -> raw value (strings from a query
            string, or already-typed values)

    Returns:
        Validated SearchParams

    Raises:
        QueryValidationError: If any parameter violates its constraint
    """
    settings = get_settings()
    errors: List[str] = []

    page = 1
    if not _is_blank(raw.get("page")):
        parsed = _parse_int(raw.get("page"))
        if parsed is None or not 1 <= parsed <= settings.max_page:
            errors.append(f"Invalid page number (must be between 1-{settings.max_page})")
        else:
            page = parsed

    limit = settings.default_page_size
    if not _is_blank(raw.get("limit")):
        parsed = _parse_int(raw.get("limit"))
        if parsed is None:
            errors.append(f"Invalid limit (must be an integer between 1-{settings.max_page_size})")
        else:
            limit = min(max(parsed, 1), settings.max_page_size)

    prices: Dict[str, Optional[float]] = {"min_price": None, "max_price": None}
    for name in prices:
        if _is_blank(raw.get(name)):
            continue
        parsed_price = _parse_float(raw.get(name))
        if parsed_price is None or not 0 <= parsed_price <= MAX_PRICE:
            errors.append(f"Invalid {name} (must be a number between 0-{MAX_PRICE})")
        else:
            prices[name] = parsed_price

    if (
        prices["min_price"] is not None
        and prices["max_price"] is not None
        and prices["min_price"] > prices["max_price"]
    ):
        errors.append("Invalid price range (min_price must not exceed max_price)")

    min_rating = None
    if not _is_blank(raw.get("rating")):
        parsed_rating = _parse_float(raw.get("rating"))
        if parsed_rating is None or not 0 <= parsed_rating <= MAX_RATING:
            errors.append(f"Invalid rating (must be between 0-{MAX_RATING})")
        else:
            min_rating = parsed_rating

    sort = "relevance"
    if not _is_blank(raw.get("sort")):
        sort = str(raw.get("sort")).strip()
        if sort not in SORT_OPTIONS:
            errors.append(f"Invalid sort (must be one of: {', '.join(SORT_OPTIONS)})")

    if errors:
        raise QueryValidationError(errors)

    # Over-long queries are truncated, not rejected
    query = sanitize_query(raw.get("q") or raw.get("query"), settings.max_query_length)

    filters = SearchFilters(
        category=_clean_str(raw.get("category")),
        subcategory=_clean_str(raw.get("subcategory")),
        brand=_clean_str(raw.get("brand")),
        min_price=prices["min_price"],
        max_price=prices["max_price"],
        in_stock=_parse_bool(raw.get("in_stock")),
        min_rating=min_rating,
        tags=_parse_tags(raw.get("tags")),
    )

    return SearchParams(query=query, filters=filters, sort=sort, page=page, limit=limit)


# ========== Request building ==========


def build_text_query(query: str) -> Dict[str, List[Dict[str, Any]]]:
    """
    Relevance clauses for a sanitized query.

    Returns:
        Dict with "must" and "should" clause lists
    """
    if not query:
        return {"must": [{"match_all": {}}], "should": []}

    return {
        "must": [{
            "multi_match": {
                "query": query,
                "fields": SEARCH_FIELDS,
                "type": "best_fields",
                "fuzziness": "AUTO",
                "prefix_length": 2,
            }
        }],
        "should": [{"match_phrase": {"name": {"query": query, "boost": 3}}}],
    }


def promotional_functions() -> List[Dict[str, Any]]:
    """Merchandising boosts shared by the primary query and the relaxed fallback."""
    return [
        {"filter": {"term": {"is_featured": True}}, "weight": 2.0},
        {"filter": {"term": {"is_flash_sale": True}}, "weight": 1.8},
    ]


def build_ranking_functions(
    recent_categories: Optional[List[str]] = None,
    ctr_functions: Optional[List[Dict[str, Any]]] = None,
    personalization_weight: float = 1.4,
) -> List[Dict[str, Any]]:
    """
    function_score functions for the primary query.

    Promotional weights, rating and review-count factors, discount tiers,
    personalization and CTR feedback. Combined with score_mode=sum and
    multiplied into text relevance.
    """
    functions = promotional_functions()
    functions.append({"filter": {"term": {"is_new_arrival": True}}, "weight": 1.3})
    functions.append({
        "field_value_factor": {"field": "rating", "factor": 0.1, "modifier": "sqrt", "missing": 1}
    })
    functions.append({
        "field_value_factor": {"field": "review_count", "factor": 0.01, "modifier": "log1p", "missing": 1}
    })
    functions.extend(build_discount_functions())

    if recent_categories:
        functions.append({
            "filter": {"terms": {"category": list(recent_categories)}},
            "weight": personalization_weight,
        })

    if ctr_functions:
        functions.extend(ctr_functions)

    return functions


def build_sort(sort: str) -> List[Dict[str, Any]]:
    return [dict(clause) for clause in SORT_OPTIONS.get(sort, SORT_OPTIONS["relevance"])]


def build_spell_suggester(query: str) -> Dict[str, Any]:
    return {
        "spell_correction": {
            "text": query,
            "phrase": {
                "field": "name",
                "size": 1,
                "gram_size": 2,
                "direct_generator": [
                    {"field": "name", "suggest_mode": "always", "min_word_length": 3}
                ],
                "highlight": {"pre_tag": "<em>", "post_tag": "</em>"},
            },
        }
    }


def build_filter_clause(filters: SearchFilters) -> Optional[Dict[str, Any]]:
    clauses = list(filters.clauses().values())
    if not clauses:
        return None
    return {"bool": {"filter": clauses}}


def build_search_request(
    params: SearchParams,
    recent_categories: Optional[List[str]] = None,
    ctr_functions: Optional[List[Dict[str, Any]]] = None,
    aggregations: Optional[Dict[str, Any]] = None,
    personalization_weight: float = 1.4,
) -> Dict[str, Any]:
    """
    Build the full search request body.

    Hard filters go into post_filter so they never affect scoring and so
    facet aggregations can apply every filter except their own.

    Args:
        params: Validated search parameters
        recent_categories: Categories the user viewed recently (personalization)
        ctr_functions: CTR boost functions for this query
        aggregations: Facet aggregations to request alongside the hits
        personalization_weight: Weight for products in recent categories

    Returns:
        Request body for Elasticsearch search
    """
    text = build_text_query(params.query)
    should = list(text["should"])
    if recent_categories and params.query:
        should.append({"terms": {"category": list(recent_categories), "boost": 1.5}})

    bool_query: Dict[str, Any] = {"must": text["must"]}
    if should:
        bool_query["should"] = should
        bool_query["minimum_should_match"] = 0

    request: Dict[str, Any] = {
        "query": {
            "function_score": {
                "query": {"bool": bool_query},
                "functions": build_ranking_functions(
                    recent_categories, ctr_functions, personalization_weight
                ),
                "score_mode": "sum",
                "boost_mode": "multiply",
            }
        },
        "from": params.offset,
        "size": params.limit,
        "sort": build_sort(params.sort),
        "track_total_hits": True,
        "highlight": HIGHLIGHT,
    }

    post_filter = build_filter_clause(params.filters)
    if post_filter is not None:
        request["post_filter"] = post_filter
    if aggregations:
        request["aggs"] = aggregations
    if params.query:
        request["suggest"] = build_spell_suggester(params.query)

    return request
