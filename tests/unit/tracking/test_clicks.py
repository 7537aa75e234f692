"""
Tests for the click / conversion ledger.
"""

from dataclasses import FrozenInstanceError

import pytest

from catalog_search.errors import ConversionWithoutClickError
from catalog_search.search.ctr import build_ctr_functions
from catalog_search.tracking.clicks import ClickEvent, ClickLedger, ctr_cache_key


@pytest.fixture
def ledger(session_factory, cache, trends):
    return ClickLedger(session_factory, cache=cache, trends=trends)


def _click(product_id, position=1, query="Face Cream"):
    return ClickEvent(query=query, product_id=product_id, position=position, result_count=30)


def test_event_query_is_normalized():
    assert _click("p-1", query="  Face CREAM ").query == "face cream"


def test_event_is_immutable():
    event = _click("p-1")

    with pytest.raises(FrozenInstanceError):
        event.position = 9


def test_click_updates_metrics(ledger):
    outcome = ledger.record_click(_click("p-1", position=2))
    ledger.record_click(_click("p-1", position=4))

    assert outcome == {"event_recorded": True, "metrics_updated": True}
    metrics = ledger.query_metrics("face cream")
    assert metrics["total_clicks"] == 2
    assert metrics["products"][0]["avg_position"] == 3.0


def test_click_bumps_product_trend(ledger, trends):
    ledger.record_click(_click("p-1"))

    assert trends.top_products() == ["p-1"]


def test_conversion_without_click_rejected(ledger):
    with pytest.raises(ConversionWithoutClickError):
        ledger.record_conversion("face cream", "p-unknown", revenue=100)


def test_heavily_clicked_converted_product_gets_stronger_boost(ledger):
    for _ in range(10):
        ledger.record_click(_click("p-a", position=2))
    ledger.record_click(_click("p-b", position=1))
    summary = ledger.record_conversion("face cream", "p-a", revenue=1200)

    assert summary["clicks"] == 10
    assert summary["conversions"] == 1
    assert summary["revenue"] == 1200.0

    entries = ledger.get_query_ctr("face cream")
    assert [e["product_id"] for e in entries] == ["p-a", "p-b"]

    weights = {f["filter"]["term"]["id"]: f["weight"] for f in build_ctr_functions(entries, cap=3.0)}
    assert weights["p-a"] > weights["p-b"]
    assert weights["p-a"] <= 3.0


def test_ctr_cached_and_invalidated(ledger, cache):
    ledger.record_click(_click("p-1"))

    first = ledger.get_query_ctr("face cream")
    assert cache.get(ctr_cache_key("face cream")) == first

    ledger.record_click(_click("p-1"))
    assert cache.get(ctr_cache_key("face cream")) is None
    assert ledger.get_query_ctr("face cream")[0]["clicks"] == 2


def test_unknown_query_has_no_ctr(ledger):
    assert ledger.get_query_ctr("nothing here") == []
    assert ledger.get_query_ctr("   ") == []


def test_analytics_views(ledger):
    for _ in range(3):
        ledger.record_click(_click("p-1"))
    ledger.record_click(_click("p-1", query="toner"))
    ledger.record_conversion("face cream", "p-1", revenue=50)

    top = ledger.top_queries()
    assert top[0]["query"] == "face cream"
    assert top[0]["total_clicks"] == 3
    assert top[0]["conversion_rate"] == 33.33

    product = ledger.product_metrics("p-1")
    assert product["total_clicks"] == 4
    assert product["total_conversions"] == 1
    assert {q["query"] for q in product["queries"]} == {"face cream", "toner"}


def test_totals_cover_rows_beyond_the_listed_page(ledger):
    for product_id, clicks in [("p-1", 3), ("p-2", 2), ("p-3", 1)]:
        for _ in range(clicks):
            ledger.record_click(_click(product_id, position=2))
    ledger.record_conversion("face cream", "p-3", revenue=40)
    ledger.record_click(_click("p-1", position=4, query="toner"))

    metrics = ledger.query_metrics("face cream", limit=1)
    assert [p["product_id"] for p in metrics["products"]] == ["p-1"]
    assert metrics["total_clicks"] == 6
    assert metrics["total_conversions"] == 1
    assert metrics["total_revenue"] == 40.0
    assert metrics["conversion_rate"] == 16.67

    product = ledger.product_metrics("p-1", limit=1)
    assert len(product["queries"]) == 1
    assert product["total_clicks"] == 4
    assert product["avg_position"] == 2.5
