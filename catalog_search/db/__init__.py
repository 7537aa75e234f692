"""
Database ORM Models
SQLAlchemy ORM models for catalog and click ledger tables.
"""

from .models import (
    Base,
    Category,
    Brand,
    Product,
    ProductImage,
    Review,
    SearchClickEvent,
    SearchClickMetrics,
)

__all__ = [
    "Base",
    "Category",
    "Brand",
    "Product",
    "ProductImage",
    "Review",
    "SearchClickEvent",
    "SearchClickMetrics",
]
