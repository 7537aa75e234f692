"""
Tests for autocomplete suggestions and trending surfaces.
"""

from elastic_transport import ConnectionError as TransportConnectionError

from catalog_search.search.suggestions import SuggestionService, product_badges


def _suggestable(product_id, name, **flags):
    doc = {"id": product_id, "name": name, "slug": name.lower().replace(" ", "-"), "price": 450.0,
           "image": None, "suggest": {"input": [name], "weight": 1}}
    doc.update(flags)
    return doc


def test_badges():
    assert product_badges({"is_featured": True, "is_new_arrival": True}) == ["Featured", "New"]
    assert product_badges({}) == []


def test_product_suggestions_carry_badges(product_index):
    product_index.upsert(_suggestable("p-1", "Lip Balm", is_flash_sale=True))
    product_index.upsert(_suggestable("p-2", "Lipstick Red"))
    product_index.upsert(_suggestable("p-3", "Face Wash"))
    service = SuggestionService(product_index)

    suggestions = service.suggest("lip", limit=5, include_trending=False)

    assert {s["product_id"] for s in suggestions} == {"p-1", "p-2"}
    balm = next(s for s in suggestions if s["product_id"] == "p-1")
    assert balm["type"] == "product"
    assert balm["badges"] == ["Flash Sale"]


def test_trending_queries_appended_for_prefix(product_index, trends):
    for query in ["lip balm", "lip balm", "lipstick", "lip oil", "serum"]:
        trends.track_query(query)
    service = SuggestionService(product_index, trends=trends)

    suggestions = service.suggest("lip", limit=5)

    trending = [s for s in suggestions if s["type"] == "trending"]
    assert len(trending) == 2
    assert trending[0] == {"type": "trending", "text": "lip balm", "count": 2}


def test_empty_prefix_returns_trending_only(product_index, trends, fake_es):
    trends.track_query("serum")
    service = SuggestionService(product_index, trends=trends)

    assert service.suggest("  ", limit=5) == [{"type": "trending", "text": "serum", "count": 1}]
    assert service.suggest("", include_trending=False) == []
    assert fake_es.searches == []


def test_engine_failure_yields_no_product_suggestions(product_index, fake_es):
    fake_es.search_error = TransportConnectionError("refused")

    assert SuggestionService(product_index).suggest("lip", include_trending=False) == []


def test_trending_resolves_products(product_index, trends):
    trends.track_product_view("p-9")
    trends.track_query("toner")
    service = SuggestionService(product_index, trends=trends)

    result = service.trending(limit=5, product_lookup=lambda ids: [{"id": i} for i in ids])

    assert result["trending_queries"] == [{"query": "toner", "score": 1.0}]
    assert result["trending_now"] == [{"query": "toner", "score": 1.0}]
    assert result["trending_products"] == [{"id": "p-9"}]
