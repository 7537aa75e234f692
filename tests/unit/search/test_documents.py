"""
Tests for the search document transformer.
"""

from datetime import datetime
from decimal import Decimal

from catalog_search.catalog.records import BrandRef, CatalogRecord, CategoryNode, ImageRef
from catalog_search.search.documents import (
    compute_discount,
    normalize_brand_key,
    parse_tags,
    resolve_categories,
    transform_product,
)


def _record(**overrides) -> CatalogRecord:
    values = dict(
        id="p-1",
        name="Hydra Glow Moisturizer",
        slug="hydra-glow-moisturizer",
        description="Daily moisturizer",
        price=Decimal("1000"),
        compare_at_price=Decimal("1250"),
        quantity=5,
        sku="HG-001",
        is_active=True,
        category=CategoryNode(name="Moisturizers", parent=CategoryNode(name="Skincare")),
        brand=BrandRef(name="Glow Lab"),
        images=[ImageRef(url="https://cdn/1.jpg"), ImageRef(url="https://cdn/2.jpg", is_default=True)],
        review_ratings=[5, 4, 4],
        created_at=datetime(2026, 1, 2, 3, 4, 5),
        updated_at=datetime(2026, 1, 3, 3, 4, 5),
    )
    values.update(overrides)
    return CatalogRecord(**values)


def test_discount_from_compare_at_price():
    """1000 against 1250 is a 20% discount."""
    doc = transform_product(_record())

    assert doc["price"] == 1000.0
    assert doc["compare_at_price"] == 1250.0
    assert doc["discount"] == 20


def test_no_discount_when_compare_at_not_higher():
    assert compute_discount(100.0, None) == 0
    assert compute_discount(100.0, 100.0) == 0
    assert compute_discount(100.0, 80.0) == 0
    assert compute_discount(99.0, 100.0) == 1


def test_half_percent_discount_rounds_up():
    assert compute_discount(175.0, 200.0) == 13


def test_zero_compare_at_price_is_dropped():
    doc = transform_product(_record(compare_at_price=Decimal("0")))

    assert doc["compare_at_price"] is None
    assert doc["discount"] == 0


def test_in_stock_requires_quantity_and_active():
    assert transform_product(_record(quantity=3))["in_stock"] is True
    assert transform_product(_record(quantity=0))["in_stock"] is False
    assert transform_product(_record(quantity=3, is_active=False))["in_stock"] is False


def test_malformed_numbers_default_to_zero():
    """Missing or malformed numeric fields never raise."""
    doc = transform_product(_record(price="abc", compare_at_price=None, quantity="lots"))

    assert doc["price"] == 0.0
    assert doc["stock"] == 0
    assert doc["in_stock"] is False
    assert doc["discount"] == 0


def test_negative_quantity_clamped():
    assert transform_product(_record(quantity=-4))["stock"] == 0


def test_rating_average_rounded_to_one_decimal():
    doc = transform_product(_record(review_ratings=[5, 4, 4]))

    assert doc["rating"] == 4.3
    assert doc["review_count"] == 3


def test_rating_half_tenth_rounds_up():
    doc = transform_product(_record(review_ratings=[5, 4, 4, 4]))

    assert doc["rating"] == 4.3


def test_no_reviews_rating_zero():
    doc = transform_product(_record(review_ratings=[]))

    assert doc["rating"] == 0.0
    assert doc["review_count"] == 0


def test_category_resolution_levels():
    top_only = CategoryNode(name="Skincare")
    two_level = CategoryNode(name="Moisturizers", parent=CategoryNode(name="Skincare"))
    three_level = CategoryNode(
        name="Night Creams",
        parent=CategoryNode(name="Moisturizers", parent=CategoryNode(name="Skincare")),
    )

    assert resolve_categories(None) == ("", "", [])
    assert resolve_categories(top_only) == ("Skincare", "", ["Skincare"])
    assert resolve_categories(two_level) == ("Skincare", "Moisturizers", ["Skincare", "Moisturizers"])
    assert resolve_categories(three_level) == (
        "Skincare",
        "Moisturizers",
        ["Skincare", "Moisturizers", "Night Creams"],
    )


def test_brand_key_normalized():
    assert normalize_brand_key("L'Oréal Paris") == "l-or-al-paris"
    assert normalize_brand_key("  The Ordinary ") == "the-ordinary"
    assert normalize_brand_key(None) == ""

    doc = transform_product(_record(brand=BrandRef(name="Glow Lab")))
    assert doc["brand"] == "Glow Lab"
    assert doc["brand_key"] == "glow-lab"


def test_missing_brand_and_category():
    doc = transform_product(_record(brand=None, category=None))

    assert doc["brand"] == ""
    assert doc["brand_key"] == ""
    assert doc["category"] == ""
    assert doc["category_hierarchy"] == []


def test_tags_from_meta_keywords():
    assert parse_tags("Face Cream, moisturizer ,face cream,,") == ["face cream", "moisturizer"]
    assert parse_tags(None) == []

    doc = transform_product(_record(meta_keywords="Hydrating, Vegan"))
    assert doc["tags"] == ["hydrating", "vegan"]


def test_primary_image_prefers_default():
    doc = transform_product(_record())

    assert doc["image"] == "https://cdn/2.jpg"
    assert doc["images"] == ["https://cdn/1.jpg", "https://cdn/2.jpg"]

    assert transform_product(_record(images=[]))["image"] == ""


def test_promotional_flags_and_suggest_weight():
    doc = transform_product(_record(is_featured=True, is_new=True, is_flash_sale=True))

    assert doc["is_featured"] is True
    assert doc["is_new_arrival"] is True
    assert doc["is_flash_sale"] is True
    # 1 base + 5 featured + 2 new; 3 reviews add nothing
    assert doc["suggest"]["weight"] == 8
    assert doc["suggest"]["input"][:2] == ["Hydra Glow Moisturizer", "Hydra"]
    assert "Glow Lab" in doc["suggest"]["input"]
    assert "Moisturizers" in doc["suggest"]["input"]


def test_transform_is_deterministic():
    record = _record()

    assert transform_product(record) == transform_product(record)
    assert transform_product(record)["created_at"] == "2026-01-02T03:04:05"
