"""
Suggestions & Trending
Autocomplete from the completion suggester, blended with trending queries.
"""

import logging
from typing import Any, Dict, List, Optional

from ..errors import CatalogSearchError
from ..tracking.trending import TrendTracker
from .index import ProductIndex
from .query_builder import sanitize_query

logger = logging.getLogger(__name__)

MAX_TRENDING_IN_SUGGESTIONS = 2

SUGGEST_SOURCE = ["id", "name", "slug", "price", "image", "is_featured", "is_flash_sale", "is_new_arrival"]


def product_badges(source: Dict[str, Any]) -> List[str]:
    badges = []
    if source.get("is_featured"):
        badges.append("Featured")
    if source.get("is_flash_sale"):
        badges.append("Flash Sale")
    if source.get("is_new_arrival"):
        badges.append("New")
    return badges


class SuggestionService:
    """Prefix completion and trending surfaces."""

    def __init__(self, index: Optional[ProductIndex] = None, trends: Optional[TrendTracker] = None,
                 timeout: Optional[float] = None):
        self.index = index or ProductIndex()
        self.trends = trends
        self.timeout = timeout

    def product_suggestions(self, prefix: str, limit: int) -> List[Dict[str, Any]]:
        """Completion suggester hits with promotional badges. Engine errors -> []."""
        request = {
            "size": 0,
            "_source": SUGGEST_SOURCE,
            "suggest": {
                "product_suggest": {
                    "prefix": prefix,
                    "completion": {"field": "suggest", "size": limit, "skip_duplicates": True},
                }
            },
        }
        try:
            response = self.index.search(request, timeout=self.timeout)
        except CatalogSearchError as e:
            logger.error(f"Product suggestions failed for '{prefix}': {e}")
            return []

        entries = (response.get("suggest") or {}).get("product_suggest") or []
        options = entries[0].get("options", []) if entries else []

        suggestions = []
        for option in options:
            source = option.get("_source") or {}
            suggestions.append({
                "type": "product",
                "text": option.get("text"),
                "product_id": source.get("id", ""),
                "product_name": source.get("name", ""),
                "slug": source.get("slug", ""),
                "price": source.get("price", 0),
                "image": source.get("image") or None,
                "score": option.get("_score"),
                "badges": product_badges(source),
            })
        return suggestions

    def _trending_queries(self, limit: int) -> List[Dict[str, Any]]:
        if self.trends is None:
            return []
        return [
            {"type": "trending", "text": t["query"], "count": int(t["score"])}
            for t in self.trends.top_queries(limit)
        ]

    def suggest(self, prefix: str, limit: int = 5, include_trending: bool = True) -> List[Dict[str, Any]]:
        """
        Autocomplete suggestions for a prefix.

        Product completions come first, followed by up to two trending
        queries starting with the prefix. An empty prefix returns trending
        queries only.
        """
        prefix = sanitize_query(prefix)
        if not prefix:
            return self._trending_queries(limit) if include_trending else []

        suggestions = self.product_suggestions(prefix, limit)

        if include_trending:
            lowered = prefix.lower()
            matching = [
                t for t in self._trending_queries(20)
                if t["text"].startswith(lowered) and t["text"] != lowered
            ]
            suggestions.extend(matching[:MAX_TRENDING_IN_SUGGESTIONS])

        return suggestions

    def trending(self, limit: int = 10, product_lookup=None) -> Dict[str, Any]:
        """
        Trending queries and products.

        Args:
            limit: Max entries per list
            product_lookup: Callable resolving product ids to summaries
        """
        queries = self.trends.top_queries(limit) if self.trends else []
        product_ids = self.trends.top_products(limit) if self.trends else []

        products: List[Dict[str, Any]] = []
        if product_ids and product_lookup is not None:
            try:
                products = product_lookup(product_ids)
            except CatalogSearchError as e:
                # Trending ids may reference products no longer indexed
                logger.warning(f"Could not resolve trending products: {e}")

        return {
            "trending_queries": queries,
            "trending_now": self.trends.trending_now(limit=limit) if self.trends else [],
            "trending_products": products,
        }
