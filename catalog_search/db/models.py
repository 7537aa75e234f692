"""
SQLAlchemy ORM Models
Catalog tables (read-only to this service) and the search click ledger.
"""

from __future__ import annotations

import uuid

from sqlalchemy import (
    Column, String, Integer, Float, Boolean, DateTime,
    ForeignKey, Numeric, Text, Index, JSON
)
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()


def _new_id() -> str:
    return str(uuid.uuid4())


# ========== Catalog (owned by the catalog service) ==========


class Category(Base):
    """
    Category node.

    Categories form a tree of at most three levels: top -> sub -> item.
    """
    __tablename__ = 'categories'

    id = Column(String(36), primary_key=True, default=_new_id)
    name = Column(String(255), nullable=False)
    slug = Column(String(255), nullable=False, unique=True)
    parent_id = Column(String(36), ForeignKey('categories.id', ondelete='SET NULL'), nullable=True)

    parent = relationship("Category", remote_side=[id], lazy="joined", join_depth=2)

    def __repr__(self):
        return f"<Category(id={self.id}, name={self.name})>"


class Brand(Base):
    __tablename__ = 'brands'

    id = Column(String(36), primary_key=True, default=_new_id)
    name = Column(String(255), nullable=False)
    slug = Column(String(255), nullable=False, unique=True)

    def __repr__(self):
        return f"<Brand(id={self.id}, name={self.name})>"


class Product(Base):
    """
    Product model.

    Authoritative catalog row. The search service only reads it.
    """
    __tablename__ = 'products'

    id = Column(String(36), primary_key=True, default=_new_id)
    name = Column(Text, nullable=False)
    slug = Column(String(255), nullable=False, unique=True)
    description = Column(Text, nullable=True)
    sku = Column(String(100), nullable=True, index=True)

    # Pricing
    price = Column(Numeric(12, 2), nullable=True)
    compare_at_price = Column(Numeric(12, 2), nullable=True,
                              comment='Original price before discount')

    # Stock
    quantity = Column(Integer, nullable=True)

    # Flags
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    is_featured = Column(Boolean, nullable=False, default=False)
    is_new = Column(Boolean, nullable=False, default=False)
    is_flash_sale = Column(Boolean, nullable=False, default=False)

    # SEO
    meta_keywords = Column(Text, nullable=True, comment='Comma separated keywords, indexed as tags')

    category_id = Column(String(36), ForeignKey('categories.id', ondelete='SET NULL'), nullable=True)
    brand_id = Column(String(36), ForeignKey('brands.id', ondelete='SET NULL'), nullable=True)

    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())

    category = relationship("Category")
    brand = relationship("Brand")
    images = relationship("ProductImage", order_by="ProductImage.sort_order",
                          cascade="all, delete-orphan")
    reviews = relationship("Review", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Product(id={self.id}, name={self.name[:30]})>"


class ProductImage(Base):
    __tablename__ = 'product_images'

    id = Column(String(36), primary_key=True, default=_new_id)
    product_id = Column(String(36), ForeignKey('products.id', ondelete='CASCADE'),
                        nullable=False, index=True)
    url = Column(Text, nullable=False)
    alt = Column(String(255), nullable=True)
    sort_order = Column(Integer, nullable=False, default=0)
    is_default = Column(Boolean, nullable=False, default=False)


class Review(Base):
    __tablename__ = 'reviews'

    id = Column(String(36), primary_key=True, default=_new_id)
    product_id = Column(String(36), ForeignKey('products.id', ondelete='CASCADE'),
                        nullable=False, index=True)
    rating = Column(Integer, nullable=False)
    created_at = Column(DateTime, nullable=False, server_default=func.now())


# ========== Search click ledger (owned by this service) ==========


class SearchClickEvent(Base):
    """
    Search click event.

    Immutable fact: one row per click on a search result.
    """
    __tablename__ = 'search_click_events'

    id = Column(String(36), primary_key=True, default=_new_id)
    query = Column(Text, nullable=False, index=True,
                   comment='Normalized (lowercase, trimmed) query')
    product_id = Column(String(36), nullable=False, index=True)
    position = Column(Integer, nullable=False)
    result_count = Column(Integer, nullable=False)
    filters = Column(JSON, nullable=True, comment='Names of filters applied to the result set')
    category = Column(String(255), nullable=True)
    price = Column(Float, nullable=True)
    score = Column(Float, nullable=True)
    user_id = Column(String(64), nullable=True, index=True)
    device_id = Column(String(128), nullable=True)
    session_id = Column(String(128), nullable=True, index=True)
    clicked_at = Column(DateTime, nullable=False, index=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now())

    def __repr__(self):
        return f"<SearchClickEvent(query={self.query!r}, product_id={self.product_id}, position={self.position})>"


class SearchClickMetrics(Base):
    """
    Aggregated click metrics per (query, product) pair.

    Upserted on every click, incremented on every conversion. Read by
    the ranking layer as the CTR feedback signal.
    """
    __tablename__ = 'search_click_metrics'

    id = Column(String(36), primary_key=True, default=_new_id)
    query = Column(Text, nullable=False)
    product_id = Column(String(36), nullable=False, index=True)
    avg_position = Column(Float, nullable=False)
    clicks = Column(Integer, nullable=False, default=0, index=True)
    conversions = Column(Integer, nullable=False, default=0)
    revenue = Column(Float, nullable=False, default=0.0)
    result_count = Column(Integer, nullable=True)
    last_clicked = Column(DateTime, nullable=False)
    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index('idx_search_click_metrics_query_product', 'query', 'product_id', unique=True),
    )

    def __repr__(self):
        return (
            f"<SearchClickMetrics(query={self.query!r}, product_id={self.product_id}, "
            f"clicks={self.clicks}, conversions={self.conversions})>"
        )
