"""
Tests for catalog reads and change hooks.
"""

from decimal import Decimal

import pytest

from catalog_search.catalog import hooks
from catalog_search.catalog.repository import CatalogRepository


@pytest.fixture
def repository(session_factory):
    return CatalogRepository(session_factory)


def test_get_record_resolves_relations(repository, make_product):
    product_id = make_product(
        "Hydra Moisturizer",
        price=1000,
        compare_at_price=1250,
        category="Moisturizers",
        parent_category="Skincare",
        meta_keywords="hydrating, vegan",
        ratings=[4, 5],
    )

    record = repository.get_record(product_id)

    assert record.name == "Hydra Moisturizer"
    assert record.price == Decimal("1000")
    assert record.category.name == "Moisturizers"
    assert record.category.parent.name == "Skincare"
    assert record.brand.name == "Glow Lab"
    assert record.images[0].is_default is True
    assert sorted(record.review_ratings) == [4, 5]


def test_missing_product_returns_none(repository):
    assert repository.get_record("does-not-exist") is None


def test_list_page_only_active(repository, make_product):
    for i in range(3):
        make_product(f"Serum {i}")
    make_product("Retired Serum", is_active=False)

    first = repository.list_page(0, 2)
    rest = repository.list_page(2, 2)

    assert len(first) == 2
    assert len(rest) == 1
    assert all(r.is_active for r in first + rest)
    assert repository.count_active_products() == 3
    assert repository.count_products() == 4
    assert len(repository.list_page(0, 10, active_only=False)) == 4


class RecordingQueue:
    def __init__(self, error=None):
        self.error = error
        self.calls = []

    def enqueue_index(self, product_id):
        return self._enqueue("index", product_id)

    def enqueue_delete(self, product_id):
        return self._enqueue("delete", product_id)

    def _enqueue(self, kind, product_id):
        if self.error:
            raise self.error
        self.calls.append((kind, product_id))
        return f"task-{kind}-{product_id}"


def test_hooks_enqueue_jobs(monkeypatch):
    queue = RecordingQueue()
    monkeypatch.setattr("catalog_search.tasks.queue.get_sync_queue", lambda: queue)

    assert hooks.notify_product_changed("p-1") == "task-index-p-1"
    assert hooks.notify_product_deleted("p-1") == "task-delete-p-1"
    assert queue.calls == [("index", "p-1"), ("delete", "p-1")]


def test_hook_failure_reported_not_raised(monkeypatch):
    monkeypatch.setattr(
        "catalog_search.tasks.queue.get_sync_queue",
        lambda: RecordingQueue(error=ConnectionError("broker down")),
    )
    reported = []

    result = hooks.notify_product_changed("p-1", on_error=lambda pid, exc: reported.append((pid, str(exc))))

    assert result is None
    assert reported == [("p-1", "broker down")]
    assert hooks.notify_product_deleted("p-2") is None
