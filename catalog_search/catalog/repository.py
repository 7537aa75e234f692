"""
Catalog Repository
Reads catalog rows and resolves them into CatalogRecord objects.
"""

import logging
from typing import Callable, List, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from ..db.models import Category, Product
from .records import BrandRef, CatalogRecord, CategoryNode, ImageRef

logger = logging.getLogger(__name__)

# Category depth is bounded at three levels (top -> sub -> item)
_MAX_CATEGORY_DEPTH = 3


def _category_node(category: Optional[Category], depth: int = 1) -> Optional[CategoryNode]:
    if category is None:
        return None
    parent = None
    if depth < _MAX_CATEGORY_DEPTH and category.parent is not None:
        parent = _category_node(category.parent, depth + 1)
    return CategoryNode(name=category.name, slug=category.slug, parent=parent)


def to_record(product: Product) -> CatalogRecord:
    """Convert an ORM product (relations loaded) into a CatalogRecord."""
    return CatalogRecord(
        id=str(product.id),
        name=product.name,
        slug=product.slug,
        description=product.description,
        price=product.price,
        compare_at_price=product.compare_at_price,
        quantity=product.quantity,
        sku=product.sku,
        is_active=bool(product.is_active),
        is_featured=bool(product.is_featured),
        is_new=bool(product.is_new),
        is_flash_sale=bool(product.is_flash_sale),
        meta_keywords=product.meta_keywords,
        category=_category_node(product.category),
        brand=BrandRef(name=product.brand.name, slug=product.brand.slug) if product.brand else None,
        images=[
            ImageRef(url=img.url, alt=img.alt, is_default=bool(img.is_default))
            for img in product.images
        ],
        review_ratings=[r.rating for r in product.reviews],
        created_at=product.created_at,
        updated_at=product.updated_at,
    )


class CatalogRepository:
    """
    Read-side access to the catalog.

    The catalog is owned by another service; this repository never writes.
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    @staticmethod
    def _with_relations(stmt):
        return stmt.options(
            selectinload(Product.category),
            selectinload(Product.brand),
            selectinload(Product.images),
            selectinload(Product.reviews),
        )

    def get_record(self, product_id: str) -> Optional[CatalogRecord]:
        """Current catalog state of one product, or None if it no longer exists."""
        with self.session_factory() as session:
            stmt = self._with_relations(select(Product).where(Product.id == product_id))
            product = session.execute(stmt).scalar_one_or_none()
            if product is None:
                return None
            return to_record(product)

    def list_page(self, skip: int, take: int, active_only: bool = True) -> List[CatalogRecord]:
        """
        One page of catalog records ordered by id.

        Args:
            skip: Offset
            take: Page size
            active_only: Only include active products
        """
        with self.session_factory() as session:
            stmt = select(Product)
            if active_only:
                stmt = stmt.where(Product.is_active.is_(True))
            stmt = self._with_relations(stmt.order_by(Product.id).offset(skip).limit(take))
            records = [to_record(p) for p in session.execute(stmt).scalars().all()]

        logger.debug(f"Loaded {len(records)} catalog records at offset {skip}")
        return records

    def count_products(self) -> int:
        with self.session_factory() as session:
            return session.execute(select(func.count(Product.id))).scalar_one()

    def count_active_products(self) -> int:
        with self.session_factory() as session:
            return session.execute(
                select(func.count(Product.id)).where(Product.is_active.is_(True))
            ).scalar_one()

