"""
Pytest configuration and shared fixtures

Backends are replaced with in-process fakes: an in-memory SQLite catalog,
fakeredis, and a scripted Elasticsearch stand-in that evaluates the small
query DSL subset the search layer emits.
"""

import copy
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional

import fakeredis
import pytest
from elastic_transport import ApiResponseMeta, HttpHeaders, NodeConfig
from elasticsearch import NotFoundError
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from catalog_search.caching import RedisCache, set_redis_cache
from catalog_search.config.settings import reset_settings
from catalog_search.db.models import Base, Brand, Category, Product, ProductImage, Review
from catalog_search.search.index import ProductIndex, set_es_client
from catalog_search.tracking.trending import TrendTracker, reset_trend_tracker


def _not_found(message: str) -> NotFoundError:
    meta = ApiResponseMeta(
        status=404,
        http_version="1.1",
        headers=HttpHeaders(),
        duration=0.0,
        node=NodeConfig("http", "localhost", 9200),
    )
    return NotFoundError(message, meta, {"error": message, "found": False})


# ========== Fake Elasticsearch ==========


def _field(doc: Dict[str, Any], name: str) -> Any:
    if name.endswith(".keyword"):
        name = name[: -len(".keyword")]
    return doc.get(name)


def _as_list(value: Any) -> List[Any]:
    if value is None:
        return []
    return value if isinstance(value, list) else [value]


def matches(clause: Optional[Dict[str, Any]], doc: Dict[str, Any]) -> bool:
    """Evaluate the query DSL subset used by the search layer against one document."""
    if not clause:
        return True
    (kind, body), = clause.items()

    if kind == "match_all":
        return True
    if kind == "function_score":
        return matches(body.get("query"), doc)
    if kind == "bool":
        required = _as_list(body.get("must")) + _as_list(body.get("filter"))
        if not all(matches(c, doc) for c in required):
            return False
        if any(matches(c, doc) for c in _as_list(body.get("must_not"))):
            return False
        should = _as_list(body.get("should"))
        if should and not required:
            return any(matches(c, doc) for c in should)
        return True
    if kind == "multi_match":
        text = " ".join(
            str(doc.get(f) or "") for f in ("name", "brand", "category", "description")
        ) + " " + " ".join(doc.get("tags") or [])
        text = text.lower()
        return any(token in text for token in body["query"].lower().split())
    if kind == "match_phrase":
        (name, value), = body.items()
        phrase = value["query"] if isinstance(value, dict) else value
        return phrase.lower() in str(doc.get(name) or "").lower()
    if kind == "term":
        (name, value), = body.items()
        if isinstance(value, dict):
            value = value["value"]
        actual = _field(doc, name)
        return value in actual if isinstance(actual, list) else actual == value
    if kind == "terms":
        (name, values), = body.items()
        actual = _field(doc, name)
        if isinstance(actual, list):
            return any(v in values for v in actual)
        return actual in values
    if kind == "range":
        (name, bounds), = body.items()
        actual = _field(doc, name)
        if actual is None:
            return False
        checks = {
            "gte": lambda b: actual >= b,
            "gt": lambda b: actual > b,
            "lte": lambda b: actual <= b,
            "lt": lambda b: actual < b,
        }
        return all(checks[op](bound) for op, bound in bounds.items())
    raise AssertionError(f"Unsupported clause in fake engine: {kind}")


def _boost(clause: Dict[str, Any]) -> float:
    (_, body), = clause.items()
    if "boost" in body:
        return float(body["boost"])
    for value in body.values():
        if isinstance(value, dict) and "boost" in value:
            return float(value["boost"])
    return 1.0


def score(clause: Optional[Dict[str, Any]], doc: Dict[str, Any]) -> float:
    """Relevance stand-in: 1 plus the boosts of the matching `should` clauses."""
    if not clause:
        return 1.0
    (kind, body), = clause.items()
    if kind == "function_score":
        return score(body.get("query"), doc)
    if kind == "bool":
        return 1.0 + sum(_boost(c) for c in _as_list(body.get("should")) if matches(c, doc))
    return 1.0


class FakeIndices:
    def __init__(self, es: "FakeElasticsearch"):
        self.es = es

    def exists(self, index: str) -> bool:
        return index in self.es.docs

    def exists_alias(self, name: str) -> bool:
        return bool(self.es.aliases.get(name))

    def create(self, index: str, settings=None, mappings=None, aliases=None):
        self.es.docs[index] = {}
        self.es.created.append({"index": index, "settings": settings, "mappings": mappings})
        for alias in aliases or {}:
            self.es.aliases.setdefault(alias, set()).add(index)
        return {"acknowledged": True, "index": index}

    def refresh(self, index: str):
        self.es.refreshed.append(index)
        return {}

    def get_alias(self, name: str):
        targets = self.es.aliases.get(name)
        if not targets:
            raise _not_found(f"alias [{name}] missing")
        return {index: {"aliases": {name: {}}} for index in sorted(targets)}

    def update_aliases(self, actions: List[Dict[str, Any]]):
        for action in actions:
            (op, target), = action.items()
            targets = self.es.aliases.setdefault(target["alias"], set())
            if op == "add":
                targets.add(target["index"])
            else:
                targets.discard(target["index"])
        return {"acknowledged": True}

    def delete(self, index: str, ignore_unavailable: bool = False):
        if index not in self.es.docs:
            if ignore_unavailable:
                return {"acknowledged": True}
            raise _not_found(f"no such index [{index}]")
        del self.es.docs[index]
        for targets in self.es.aliases.values():
            targets.discard(index)
        self.es.deleted_indices.append(index)
        return {"acknowledged": True}


class FakeElasticsearch:
    """
    In-memory Elasticsearch stand-in.

    Documents live per concrete index; aliases resolve to their targets.
    `search_handler` replaces query evaluation when a test needs a scripted
    response, and `search_error` makes every search raise.
    """

    def __init__(self):
        self.docs: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self.aliases: Dict[str, set] = {}
        self.indices = FakeIndices(self)
        self.created: List[Dict[str, Any]] = []
        self.refreshed: List[str] = []
        self.deleted_indices: List[str] = []
        self.searches: List[Dict[str, Any]] = []
        self.options_calls: List[Dict[str, Any]] = []
        self.bulk_calls = 0
        self.fail_ids: set = set()
        self.search_handler: Optional[Callable[[Dict[str, Any]], Dict[str, Any]]] = None
        self.search_error: Optional[Exception] = None
        self.available = True
        self.closed = False

    def _targets(self, name: str) -> List[str]:
        if self.aliases.get(name):
            return sorted(self.aliases[name])
        if name in self.docs:
            return [name]
        return []

    def _write_target(self, name: str) -> str:
        targets = self._targets(name)
        if targets:
            return targets[0]
        # Auto-create on first write, like the real engine
        self.docs[name] = {}
        return name

    def _all_docs(self, name: str) -> List[Dict[str, Any]]:
        return [doc for index in self._targets(name) for doc in self.docs[index].values()]

    def options(self, **kwargs):
        self.options_calls.append(kwargs)
        return self

    def ping(self) -> bool:
        return self.available

    def close(self):
        self.closed = True

    def index(self, index: str, id: str, document: Dict[str, Any]):
        self.docs[self._write_target(index)][id] = copy.deepcopy(document)
        return {"result": "created", "_id": id}

    def delete(self, index: str, id: str):
        for target in self._targets(index):
            if id in self.docs[target]:
                del self.docs[target][id]
                return {"result": "deleted", "_id": id}
        raise _not_found(f"document [{id}] missing")

    def get_document(self, index: str, id: str) -> Optional[Dict[str, Any]]:
        for target in self._targets(index):
            if id in self.docs[target]:
                return self.docs[target][id]
        return None

    def bulk(self, operations: List[Dict[str, Any]]):
        self.bulk_calls += 1
        items = []
        for action, doc in zip(operations[::2], operations[1::2]):
            meta = action["index"]
            if meta["_id"] in self.fail_ids:
                items.append({"index": {"_id": meta["_id"], "status": 400,
                                        "error": {"type": "mapper_parsing_exception"}}})
                continue
            self.docs[self._write_target(meta["_index"])][meta["_id"]] = copy.deepcopy(doc)
            items.append({"index": {"_id": meta["_id"], "status": 201}})
        return {"errors": any("error" in i["index"] for i in items), "items": items}

    def count(self, index: str):
        return {"count": len(self._all_docs(index))}

    def mget(self, index: str, ids: List[str]):
        docs = []
        for product_id in ids:
            doc = self.get_document(index, product_id)
            docs.append({"_id": product_id, "found": doc is not None, **({"_source": doc} if doc else {})})
        return {"docs": docs}

    def search(self, index: str, **request):
        self.searches.append(request)
        if self.search_error is not None:
            raise self.search_error
        if self.search_handler is not None:
            return self.search_handler(request)

        hits = [d for d in self._all_docs(index) if matches(request.get("query"), d)]
        hits = [d for d in hits if matches(request.get("post_filter"), d)]

        for sort_field in reversed(request.get("sort") or []):
            (name, order), = sort_field.items()
            if name == "_score":
                hits.sort(key=lambda d: score(request.get("query"), d), reverse=order == "desc")
                continue
            present = [d for d in hits if _field(d, name) is not None]
            missing = [d for d in hits if _field(d, name) is None]
            present.sort(key=lambda d: _field(d, name), reverse=order == "desc")
            hits = present + missing

        start = request.get("from", 0)
        size = request.get("size", 10)
        response: Dict[str, Any] = {
            "hits": {
                "total": {"value": len(hits), "relation": "eq"},
                "hits": [
                    {"_id": d["id"], "_score": score(request.get("query"), d), "_source": copy.deepcopy(d)}
                    for d in hits[start:start + size]
                ],
            },
            "aggregations": {},
        }

        suggest = request.get("suggest") or {}
        if "product_suggest" in suggest:
            completion = suggest["product_suggest"]
            prefix = completion["prefix"].lower()
            options = []
            for d in self._all_docs(index):
                text = next(
                    (i for i in (d.get("suggest") or {}).get("input", []) if i.lower().startswith(prefix)),
                    None,
                )
                if text:
                    options.append({"text": text, "_score": 1.0, "_source": copy.deepcopy(d)})
            response["suggest"] = {
                "product_suggest": [{"text": prefix, "options": options[: completion["completion"]["size"]]}]
            }
        return response


# ========== Fixtures ==========


@pytest.fixture(autouse=True)
def clean_settings(monkeypatch):
    """Fresh settings and trackers per test; no admin key unless a test sets one."""
    monkeypatch.delenv("ADMIN_API_KEY", raising=False)
    reset_settings()
    reset_trend_tracker()
    yield
    reset_settings()
    reset_trend_tracker()
    set_es_client(None)
    set_redis_cache(None)


@pytest.fixture
def redis_client():
    return fakeredis.FakeRedis(server=fakeredis.FakeServer(), decode_responses=True)


@pytest.fixture
def cache(redis_client):
    """fakeredis-backed RedisCache installed as the process-wide cache."""
    cache = RedisCache(client=redis_client)
    set_redis_cache(cache)
    return cache


@pytest.fixture
def fake_es():
    """Fake Elasticsearch installed as the process-wide client."""
    es = FakeElasticsearch()
    set_es_client(es)
    return es


@pytest.fixture
def product_index(fake_es):
    index = ProductIndex(client=fake_es, alias="products")
    index.ensure_index()
    return index


@pytest.fixture
def trends(cache):
    return TrendTracker(cache=cache)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def make_product(session_factory):
    """
    Insert a catalog product and return its id.

    Example:
        product_id = make_product("Hydra Moisturizer", price=1000, compare_at_price=1250)
    """
    counter = {"n": 0}

    def _make(
        name: str,
        price: float = 100,
        compare_at_price: Optional[float] = None,
        quantity: int = 10,
        is_active: bool = True,
        is_featured: bool = False,
        is_new: bool = False,
        is_flash_sale: bool = False,
        category: Optional[str] = "Skincare",
        parent_category: Optional[str] = None,
        brand: Optional[str] = "Glow Lab",
        meta_keywords: Optional[str] = None,
        ratings: Optional[List[int]] = None,
        product_id: Optional[str] = None,
    ) -> str:
        counter["n"] += 1
        n = counter["n"]
        with session_factory() as session:
            category_row = None
            if category:
                parent_row = None
                if parent_category:
                    parent_row = Category(name=parent_category, slug=f"{parent_category.lower()}-{n}-parent")
                    session.add(parent_row)
                category_row = Category(name=category, slug=f"{category.lower()}-{n}", parent=parent_row)
                session.add(category_row)
            brand_row = Brand(name=brand, slug=f"brand-{n}") if brand else None
            if brand_row is not None:
                session.add(brand_row)

            product = Product(
                name=name,
                slug=f"{name.lower().replace(' ', '-')}-{n}",
                description=f"{name} description",
                price=Decimal(str(price)),
                compare_at_price=Decimal(str(compare_at_price)) if compare_at_price is not None else None,
                quantity=quantity,
                is_active=is_active,
                is_featured=is_featured,
                is_new=is_new,
                is_flash_sale=is_flash_sale,
                meta_keywords=meta_keywords,
                category=category_row,
                brand=brand_row,
            )
            if product_id:
                product.id = product_id
            product.images = [ProductImage(url=f"https://cdn.example.com/{n}.jpg", sort_order=0, is_default=True)]
            product.reviews = [Review(rating=r) for r in ratings or []]
            session.add(product)
            session.commit()
            return product.id

    return _make
