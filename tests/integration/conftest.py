"""
Integration test fixtures
"""

import pytest
from fastapi.testclient import TestClient

from catalog_search.api.dependencies import get_db_session_factory, get_metrics
from catalog_search.api.main import create_app
from catalog_search.tasks.celery_app import app as celery_app
from catalog_search.tracking.metrics import SearchMetricsCollector


@pytest.fixture
def eager_tasks(monkeypatch, session_factory):
    """Run sync jobs in-process against the test catalog."""
    monkeypatch.setitem(celery_app.conf, "task_always_eager", True)
    monkeypatch.setattr("catalog_search.db.session.get_session_factory", lambda: session_factory)


@pytest.fixture
def metrics():
    return SearchMetricsCollector()


@pytest.fixture
def test_api_client(session_factory, product_index, cache, metrics, eager_tasks):
    """API client wired to the fake engine, fakeredis and the SQLite catalog."""
    app = create_app()
    app.dependency_overrides[get_db_session_factory] = lambda: session_factory
    app.dependency_overrides[get_metrics] = lambda: metrics
    return TestClient(app)
