"""
Search Document Transformer
Projects a catalog record into the document shape stored in the product index.
"""

import logging
import re
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Dict, List, Optional, Tuple

from ..catalog.records import CatalogRecord, CategoryNode

logger = logging.getLogger(__name__)

_BRAND_KEY_RE = re.compile(r"[^a-z0-9]+")


def _to_float(value: Any) -> float:
    """Coerce a price-like value, treating missing or malformed input as 0."""
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        result = float(Decimal(str(value).strip()))
    except (InvalidOperation, ValueError):
        return 0.0
    if result != result or result in (float("inf"), float("-inf")):
        return 0.0
    return result


def _to_int(value: Any) -> int:
    if value is None or isinstance(value, bool):
        return 0
    try:
        return int(float(str(value).strip()))
    except ValueError:
        return 0


def normalize_brand_key(name: Optional[str]) -> str:
    """
    Normalized brand filter key.

    "L'Oréal Paris" -> "l-or-al-paris"; empty input -> "".
    """
    if not name:
        return ""
    return _BRAND_KEY_RE.sub("-", name.lower()).strip("-")


def parse_tags(meta_keywords: Optional[str]) -> List[str]:
    """Comma separated keywords -> trimmed, lowercased, deduplicated tags."""
    if not meta_keywords:
        return []
    tags: List[str] = []
    for raw in meta_keywords.split(","):
        tag = raw.strip().lower()
        if tag and tag not in tags:
            tags.append(tag)
    return tags


def resolve_categories(category: Optional[CategoryNode]) -> Tuple[str, str, List[str]]:
    """
    Resolve (top category, subcategory, hierarchy) from a category node.

    - grandparent present: top = grandparent, sub = parent
    - only a parent: top = parent, sub = own name
    - no parent: top = own name, sub = ""

    Returns:
        Tuple of (category, subcategory, hierarchy top-first)
    """
    if category is None:
        return "", "", []

    parent = category.parent
    grandparent = parent.parent if parent is not None else None

    if grandparent is not None:
        return grandparent.name, parent.name, [grandparent.name, parent.name, category.name]
    if parent is not None:
        return parent.name, category.name, [parent.name, category.name]
    return category.name, "", [category.name]


def round_half_up(value: float) -> int:
    """Nearest integer with .5 rounded up (`round` would pick the even neighbour)."""
    return int(Decimal(value).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def compute_discount(price: float, compare_at_price: Optional[float]) -> int:
    """Whole-percent discount; 0 unless compare-at price exceeds price."""
    if compare_at_price and compare_at_price > price:
        return round_half_up((compare_at_price - price) / compare_at_price * 100)
    return 0


def build_suggestions(record: CatalogRecord, review_count: int) -> Dict[str, Any]:
    """
    Completion suggester input for a product.

    Inputs: full name, name words longer than 2 characters, brand name and
    category name, in that order, deduplicated.
    """
    inputs: List[str] = []

    def add(value: Optional[str]) -> None:
        if value and value not in inputs:
            inputs.append(value)

    add(record.name)
    for word in (record.name or "").split():
        if len(word) > 2:
            add(word)
    if record.brand is not None:
        add(record.brand.name)
    if record.category is not None:
        add(record.category.name)

    weight = 1
    if record.is_featured:
        weight += 5
    if record.is_new:
        weight += 2
    if review_count > 10:
        weight += 3
    elif review_count > 5:
        weight += 1

    return {"input": inputs, "weight": weight}


def _primary_image(record: CatalogRecord) -> str:
    for image in record.images:
        if image.is_default:
            return image.url
    return record.images[0].url if record.images else ""


def _timestamp(value: Optional[datetime]) -> str:
    return (value or datetime.now(timezone.utc)).isoformat()


def transform_product(record: CatalogRecord) -> Dict[str, Any]:
    """
    Transform a catalog record into a search document.

    Pure and deterministic for a given record (timestamps default to now
    only when the record has none). Never raises on missing optional fields.

    Args:
        record: Catalog record with relations resolved

    Returns:
        Search document dict keyed by index field name
    """
    price = _to_float(record.price)
    compare_at = _to_float(record.compare_at_price) if record.compare_at_price is not None else None
    if compare_at == 0.0:
        compare_at = None

    stock = max(_to_int(record.quantity), 0)
    ratings = [_to_float(r) for r in record.review_ratings]
    review_count = len(ratings)
    rating = round_half_up(sum(ratings) / review_count * 10) / 10 if review_count else 0.0

    category, subcategory, hierarchy = resolve_categories(record.category)
    brand = record.brand.name if record.brand is not None else ""

    return {
        "id": record.id,
        "name": record.name,
        "slug": record.slug or "",
        "description": record.description or "",
        "brand": brand,
        "brand_key": normalize_brand_key(brand),
        "category": category,
        "subcategory": subcategory,
        "category_hierarchy": hierarchy,
        "price": price,
        "compare_at_price": compare_at,
        "discount": compute_discount(price, compare_at),
        "stock": stock,
        "in_stock": stock > 0 and bool(record.is_active),
        "rating": rating,
        "review_count": review_count,
        "image": _primary_image(record),
        "images": [img.url for img in record.images],
        "sku": record.sku or "",
        "tags": parse_tags(record.meta_keywords),
        "is_featured": bool(record.is_featured),
        "is_flash_sale": bool(record.is_flash_sale),
        "is_new_arrival": bool(record.is_new),
        "created_at": _timestamp(record.created_at),
        "updated_at": _timestamp(record.updated_at),
        "suggest": build_suggestions(record, review_count),
    }
