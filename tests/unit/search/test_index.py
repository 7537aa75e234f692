"""
Tests for product index operations against the fake engine.
"""

import pytest
from elastic_transport import ApiResponseMeta, HttpHeaders, NodeConfig
from elasticsearch import ApiError, BadRequestError, ConnectionTimeout

from catalog_search.errors import SearchTimeoutError, TransientInfraError
from catalog_search.search.index import INDEX_MAPPINGS, INDEX_SETTINGS, ProductIndex, engine_errors


def _meta(status):
    return ApiResponseMeta(
        status=status, http_version="1.1", headers=HttpHeaders(), duration=0.0,
        node=NodeConfig("http", "localhost", 9200),
    )


def test_ensure_index_creates_versioned_index_behind_alias(fake_es):
    index = ProductIndex(client=fake_es, alias="products")

    assert index.ensure_index() is True
    assert index.ensure_index() is False
    assert index.alias_targets() == ["products-v1"]
    assert fake_es.created[0]["mappings"] == INDEX_MAPPINGS


def test_synonym_analyzer_on_tags():
    analyzer = INDEX_SETTINGS["analysis"]["analyzer"]["beauty_search"]
    synonyms = INDEX_SETTINGS["analysis"]["filter"][analyzer["filter"][-1]]["synonyms"]

    assert any("moisturizer" in line and "face cream" in line for line in synonyms)
    assert INDEX_MAPPINGS["properties"]["tags"]["analyzer"] == "beauty_search"
    assert INDEX_MAPPINGS["properties"]["tags"]["fields"]["keyword"]["type"] == "keyword"


def test_upsert_replaces_document(product_index, fake_es):
    product_index.upsert({"id": "p-1", "name": "Old"})
    product_index.upsert({"id": "p-1", "name": "New"})

    assert product_index.count() == 1
    assert fake_es.get_document("products", "p-1")["name"] == "New"


def test_delete_absent_document_returns_false(product_index):
    product_index.upsert({"id": "p-1", "name": "Serum"})

    assert product_index.delete("p-1") is True
    assert product_index.delete("p-1") is False


def test_bulk_reports_item_failures(product_index, fake_es):
    fake_es.fail_ids = {"p-2"}

    result = product_index.bulk_index([{"id": "p-1"}, {"id": "p-2"}, {"id": "p-3"}])

    assert result.indexed == 2
    assert result.failed == 1
    assert result.failed_items[0]["id"] == "p-2"


def test_swap_alias_drops_old_index(product_index, fake_es):
    new_index = product_index.create_versioned_index("20260101000000")
    product_index.bulk_index([{"id": "p-1"}], index_name=new_index)

    dropped = product_index.swap_alias(new_index)

    assert dropped == ["products-v1"]
    assert product_index.alias_targets() == [new_index]
    assert "products-v1" not in fake_es.docs
    assert product_index.count() == 1


def test_search_uses_request_timeout_without_retries(product_index, fake_es):
    product_index.search({"query": {"match_all": {}}}, timeout=2.5)

    assert fake_es.options_calls[-1] == {"request_timeout": 2.5, "max_retries": 0}


def test_search_timeout_raises(product_index, fake_es):
    fake_es.search_error = ConnectionTimeout("timed out")

    with pytest.raises(SearchTimeoutError) as exc_info:
        product_index.search({"query": {"match_all": {}}}, timeout=1.0)

    assert exc_info.value.timeout_seconds == 1.0


def test_server_errors_are_transient():
    with pytest.raises(TransientInfraError) as exc_info:
        with engine_errors("search"):
            raise ApiError("unavailable", _meta(503), {})

    assert exc_info.value.component == "elasticsearch"


def test_client_errors_propagate():
    with pytest.raises(BadRequestError):
        with engine_errors("search"):
            raise BadRequestError("bad query", _meta(400), {})


def test_get_many_skips_missing(product_index):
    product_index.upsert({"id": "p-1", "name": "Serum"})

    docs = product_index.get_many(["p-1", "p-missing"])

    assert [d["id"] for d in docs] == ["p-1"]
    assert product_index.get_many([]) == []


def test_ping_reflects_availability(product_index, fake_es):
    assert product_index.ping() is True
    fake_es.available = False
    assert product_index.ping() is False
