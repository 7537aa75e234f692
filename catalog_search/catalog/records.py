"""
Catalog Records
Read-only projections of catalog rows handed to the document transformer.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, List, Optional


@dataclass
class CategoryNode:
    name: str
    slug: str = ""
    parent: Optional["CategoryNode"] = None


@dataclass
class BrandRef:
    name: str
    slug: str = ""


@dataclass
class ImageRef:
    url: str
    alt: Optional[str] = None
    is_default: bool = False


@dataclass
class CatalogRecord:
    """
    A product as the catalog sees it, with relations resolved.

    Numeric fields are kept loosely typed (Decimal, str or None) because the
    transformer is responsible for coercing malformed values.
    """

    id: str
    name: str
    slug: str = ""
    description: Optional[str] = None
    price: Any = None
    compare_at_price: Any = None
    quantity: Any = None
    sku: Optional[str] = None
    is_active: bool = True
    is_featured: bool = False
    is_new: bool = False
    is_flash_sale: bool = False
    meta_keywords: Optional[str] = None
    category: Optional[CategoryNode] = None
    brand: Optional[BrandRef] = None
    images: List[ImageRef] = field(default_factory=list)
    review_ratings: List[float] = field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
