"""
Error Taxonomy
Exceptions shared by the sync workers, the search layer and the API.
"""

from typing import List, Optional


class CatalogSearchError(Exception):
    """Base exception for catalog search errors."""

    pass


class TransientInfraError(CatalogSearchError):
    """Index engine, cache or database unreachable or timed out."""

    def __init__(self, message: str, component: str = "unknown"):
        self.component = component
        super().__init__(message)


class JobPayloadError(CatalogSearchError):
    """Sync job payload is malformed. Never retried."""

    pass


class QueryValidationError(CatalogSearchError):
    """
    Search parameters violate one or more constraints.

    All violations are collected so the caller can fix them in one round trip.
    """

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__("Invalid request parameters: " + "; ".join(self.errors))


class SearchTimeoutError(CatalogSearchError):
    """Query exceeded its request-scoped timeout."""

    def __init__(self, timeout_seconds: Optional[float] = None):
        self.timeout_seconds = timeout_seconds
        super().__init__(f"Search timed out after {timeout_seconds}s")


class ConversionWithoutClickError(CatalogSearchError):
    """Conversion reported for a (query, product) pair that was never clicked."""

    def __init__(self, query: str, product_id: str):
        self.query = query
        self.product_id = product_id
        super().__init__(f"No click recorded for query '{query}' and product {product_id}")
