"""
Tests for the zero-result fallback cascade.
"""

from catalog_search.search.fallback import FallbackController, FallbackStrategy
from catalog_search.search.query_builder import SearchFilters, SearchParams


def _doc(product_id, name, category="Skincare", **extra):
    doc = {
        "id": product_id,
        "name": name,
        "brand": "Glow Lab",
        "category": category,
        "description": "",
        "tags": [],
        "rating": 4.0,
        "review_count": 3,
        "is_featured": False,
        "is_flash_sale": False,
    }
    doc.update(extra)
    return doc


def _seed(product_index, *docs):
    for doc in docs:
        product_index.upsert(doc)


def test_empty_query_has_no_fallback(product_index):
    controller = FallbackController(product_index)

    assert controller.run(SearchParams(query="")) is None


def test_relaxed_query_drops_filters(product_index):
    _seed(product_index, _doc("p-1", "Vitamin Serum", category="Skincare"))
    controller = FallbackController(product_index)
    params = SearchParams(query="serum", filters=SearchFilters(category="Makeup"))

    result = controller.run(params)

    assert result.strategy is FallbackStrategy.RELAXED_QUERY
    assert result.message == "No exact matches found. Showing similar products:"
    assert [p.id for p in result.products] == ["p-1"]


def test_relax_skipped_without_filters(product_index, fake_es):
    controller = FallbackController(product_index)

    assert controller.relax_filters(SearchParams(query="serum")) is None
    assert fake_es.searches == []


def test_category_browse_uses_recent_categories(product_index):
    _seed(
        product_index,
        _doc("p-1", "Matte Lipstick", category="Makeup", rating=4.8),
        _doc("p-2", "Day Cream", category="Skincare"),
    )
    controller = FallbackController(product_index)

    result = controller.run(SearchParams(query="zzzz"), recent_categories=["Makeup"])

    assert result.strategy is FallbackStrategy.CATEGORY_BROWSE
    assert result.message == 'No results for "zzzz". You might like these from Makeup:'
    assert [p.id for p in result.products] == ["p-1"]


def test_popular_products_is_terminal(product_index):
    _seed(
        product_index,
        _doc("p-1", "Day Cream", is_featured=True),
        _doc("p-2", "Night Cream"),
    )
    controller = FallbackController(product_index)
    params = SearchParams(query="zzzznotfound", filters=SearchFilters(category="Skincare"))

    result = controller.run(params, recent_categories=[])

    assert result.strategy is FallbackStrategy.POPULAR_PRODUCTS
    assert result.message == 'No results for "zzzznotfound". Check out our popular products:'
    assert [p.id for p in result.products] == ["p-1", "p-2"]
    assert result.to_dict() == {
        "strategy": "popular_products",
        "message": result.message,
        "applied": True,
    }


def test_popular_products_without_flagged_products(product_index):
    _seed(
        product_index,
        _doc("p-1", "Day Cream", rating=3.5),
        _doc("p-2", "Night Cream", rating=4.5),
    )
    controller = FallbackController(product_index)
    params = SearchParams(query="zzzznotfound", filters=SearchFilters(category="Skincare"))

    result = controller.run(params)

    assert result.strategy is FallbackStrategy.POPULAR_PRODUCTS
    assert [p.id for p in result.products] == ["p-2", "p-1"]


def test_flagged_products_rank_first(product_index):
    _seed(
        product_index,
        _doc("p-1", "Day Cream", rating=5.0),
        _doc("p-2", "Eye Cream", is_flash_sale=True, rating=3.0),
        _doc("p-3", "Night Cream", is_featured=True, rating=2.0),
    )
    controller = FallbackController(product_index)

    result = controller.run(SearchParams(query="zzzznotfound"))

    assert [p.id for p in result.products] == ["p-3", "p-2", "p-1"]


def test_cascade_is_deterministic(product_index):
    _seed(product_index, _doc("p-1", "Day Cream", is_featured=True))
    controller = FallbackController(product_index)
    params = SearchParams(query="zzzz", filters=SearchFilters(brand="nobody"))

    first = controller.run(params, ["Makeup"])
    second = controller.run(params, ["Makeup"])

    assert first.strategy == second.strategy
    assert [p.id for p in first.products] == [p.id for p in second.products]
