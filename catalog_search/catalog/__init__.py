"""
Catalog Module
Read-only access to the authoritative product catalog.
"""

from .records import CatalogRecord, CategoryNode, BrandRef, ImageRef
from .repository import CatalogRepository, to_record
from .hooks import notify_product_changed, notify_product_deleted

__all__ = [
    "CatalogRecord",
    "CategoryNode",
    "BrandRef",
    "ImageRef",
    "CatalogRepository",
    "to_record",
    "notify_product_changed",
    "notify_product_deleted",
]
