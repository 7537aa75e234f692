"""
Product Index
Elasticsearch client handle, index settings/mappings and index operations.
"""

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional

from elasticsearch import (
    ApiError,
    ConnectionError as ESConnectionError,
    ConnectionTimeout,
    Elasticsearch,
    NotFoundError,
    TransportError,
)

from ..config.settings import get_settings
from ..errors import SearchTimeoutError, TransientInfraError

logger = logging.getLogger(__name__)


# ========== Analysis ==========

BEAUTY_SYNONYMS = [
    # Skincare
    "moisturizer, lotion, face cream, skin cream, hydrating cream, day cream, night cream",
    "serum, essence, ampoule, booster",
    "cleanser, face wash, facial wash, cleansing foam, cleansing gel, makeup remover",
    "toner, astringent, skin toner, face toner, balancing toner",
    "sunscreen, sunblock, spf, sun protection, uv protection, sun cream",
    "exfoliator, scrub, face scrub, body scrub, peeling gel, exfoliant",
    "face mask, sheet mask, clay mask, peel off mask, sleeping mask, overnight mask",
    "eye cream, under eye cream, eye gel, anti-aging eye",
    "lip balm, lip care, lip treatment, lip butter, lip mask",
    "tinted moisturizer, bb cream, blemish balm, beauty balm, cc cream, color correcting cream",
    # Makeup
    "foundation, base makeup, liquid foundation, powder foundation, cushion foundation",
    "concealer, color corrector, under eye concealer, blemish concealer",
    "blush, cheek color, rouge, cheek tint",
    "highlighter, illuminator, glow, shimmer, luminizer",
    "bronzer, contour, sculpting powder",
    "eyeshadow, eye color, eye palette, eye pigment",
    "eyeliner, eye pencil, kajal, kohl",
    "mascara, lash mascara, lash",
    "lipstick, lip color, lip gloss, lip tint, lip stain, lip crayon",
    "setting powder, finishing powder, loose powder, pressed powder, compact powder",
    "setting spray, finishing spray, makeup fixer, fix spray",
    "primer, face primer, pore minimizer, makeup base",
    "brow pencil, eyebrow, brow gel, brow pomade, brow powder",
    # Haircare
    "shampoo, hair wash, hair cleanser",
    "conditioner, hair conditioner, deep conditioner, leave-in conditioner",
    "hair oil, hair serum, hair treatment, hair elixir",
    "hair mask, hair pack, deep treatment, hair spa",
    "hair spray, hair styling, hair gel, hair mousse, hair wax",
    "hair color, hair dye, hair tint",
    # Fragrance
    "perfume, fragrance, eau de parfum, edp, eau de toilette, edt, cologne, body mist, attar",
    # Body care
    "body lotion, body cream, body butter, body milk",
    "body wash, shower gel, bath gel",
    "hand cream, hand lotion",
    "foot cream, foot care",
    "deodorant, antiperspirant, body spray",
    # Nails
    "nail polish, nail lacquer, nail color, nail paint, nail enamel",
    "nail art, nail sticker, nail decoration",
    "nail remover, nail polish remover, acetone",
    # Tools
    "makeup brush, brush set, cosmetic brush",
    "beauty blender, makeup sponge, puff",
    "eyelash curler, lash curler",
    "tweezers, eyebrow tweezers",
    # Skin concerns
    "acne, pimple, breakout, blemish, spot",
    "dark spot, hyperpigmentation, melasma, pigmentation, dark circle",
    "wrinkle, anti-aging, anti-wrinkle, fine line, aging",
    "dry skin, dehydrated skin, flaky skin",
    "oily skin, greasy skin, excess oil, sebum",
    "sensitive skin, irritated skin, redness",
    # Transliterated product terms
    "mekhap, makeup",
    "sada, white, whitening, fairness, brightening",
    "tel, oil",
    "sabaan, soap",
    "kajol, kajal, kohl",
]

INDEX_SETTINGS: Dict[str, Any] = {
    "number_of_shards": 1,
    "number_of_replicas": 0,
    "analysis": {
        "analyzer": {
            "autocomplete": {
                "type": "custom",
                "tokenizer": "standard",
                "filter": ["lowercase", "autocomplete_filter"],
            },
            "autocomplete_search": {
                "type": "custom",
                "tokenizer": "standard",
                "filter": ["lowercase"],
            },
            "beauty_search": {
                "type": "custom",
                "tokenizer": "standard",
                "filter": ["lowercase", "beauty_synonym_filter"],
            },
        },
        "filter": {
            "autocomplete_filter": {"type": "edge_ngram", "min_gram": 2, "max_gram": 20},
            "beauty_synonym_filter": {"type": "synonym", "synonyms": BEAUTY_SYNONYMS},
        },
    },
}

INDEX_MAPPINGS: Dict[str, Any] = {
    "properties": {
        "id": {"type": "keyword"},
        "name": {
            "type": "text",
            "analyzer": "beauty_search",
            "fields": {
                "keyword": {"type": "keyword"},
                "autocomplete": {
                    "type": "text",
                    "analyzer": "autocomplete",
                    "search_analyzer": "autocomplete_search",
                },
            },
        },
        "slug": {"type": "keyword"},
        "description": {"type": "text", "analyzer": "beauty_search"},
        "brand": {"type": "text", "analyzer": "standard", "fields": {"keyword": {"type": "keyword"}}},
        "brand_key": {"type": "keyword"},
        "category": {"type": "keyword"},
        "subcategory": {"type": "keyword"},
        "category_hierarchy": {"type": "keyword"},
        "price": {"type": "float"},
        "compare_at_price": {"type": "float"},
        "discount": {"type": "integer"},
        "stock": {"type": "integer"},
        "in_stock": {"type": "boolean"},
        "rating": {"type": "float"},
        "review_count": {"type": "integer"},
        "image": {"type": "keyword", "index": False},
        "images": {"type": "keyword", "index": False},
        "sku": {"type": "keyword"},
        # Synonym-analyzed so "face cream" matches products tagged "moisturizer"
        "tags": {"type": "text", "analyzer": "beauty_search", "fields": {"keyword": {"type": "keyword"}}},
        "is_featured": {"type": "boolean"},
        "is_flash_sale": {"type": "boolean"},
        "is_new_arrival": {"type": "boolean"},
        "created_at": {"type": "date"},
        "updated_at": {"type": "date"},
        "suggest": {
            "type": "completion",
            "analyzer": "simple",
            "preserve_separators": True,
            "preserve_position_increments": True,
            "max_input_length": 50,
        },
    }
}


# ========== Client ==========

_client: Optional[Elasticsearch] = None
_client_lock = threading.Lock()


def get_es_client() -> Elasticsearch:
    """Get the process-wide Elasticsearch client (created on first use)."""
    global _client
    if _client is None:
        with _client_lock:
            if _client is None:
                settings = get_settings()
                kwargs: Dict[str, Any] = {
                    "verify_certs": settings.elasticsearch_verify_certs,
                    "max_retries": settings.es_max_retries,
                    "retry_on_timeout": True,
                    "request_timeout": settings.es_request_timeout,
                }
                if settings.elasticsearch_password:
                    kwargs["basic_auth"] = (
                        settings.elasticsearch_username,
                        settings.elasticsearch_password,
                    )
                _client = Elasticsearch(settings.elasticsearch_url, **kwargs)
                logger.info(f"Elasticsearch client created: {settings.elasticsearch_url}")
    return _client


def set_es_client(client: Optional[Elasticsearch]) -> None:
    """Replace the process-wide client (tests install a fake)."""
    global _client
    _client = client


def close_es_client() -> None:
    global _client
    if _client is not None:
        _client.close()
        logger.info("Elasticsearch client closed")
    _client = None


def _body(response: Any) -> Any:
    """Plain body of a client response (fake clients return dicts directly)."""
    return getattr(response, "body", response)


def _is_transient(error: ApiError) -> bool:
    return error.meta.status >= 500 or error.meta.status == 429


@contextmanager
def engine_errors(operation: str) -> Iterator[None]:
    """Wrap connection-level engine failures as TransientInfraError."""
    try:
        yield
    except (ESConnectionError, ConnectionTimeout, TransportError) as e:
        raise TransientInfraError(f"Elasticsearch {operation} failed: {e}", component="elasticsearch") from e
    except ApiError as e:
        if isinstance(e, NotFoundError) or not _is_transient(e):
            raise
        raise TransientInfraError(f"Elasticsearch {operation} failed: {e}", component="elasticsearch") from e


# ========== Index operations ==========


@dataclass
class BulkResult:
    indexed: int = 0
    failed_items: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def failed(self) -> int:
        return len(self.failed_items)


class ProductIndex:
    """
    Operations on the product index.

    Reads and single-document writes go through the alias; a full reindex
    writes into a fresh versioned index and repoints the alias at the end.
    """

    def __init__(self, client: Optional[Elasticsearch] = None, alias: Optional[str] = None):
        self.client = client or get_es_client()
        self.alias = alias or get_settings().product_index_alias

    def versioned_name(self, suffix: str) -> str:
        return f"{self.alias}-{suffix}"

    def ensure_index(self) -> bool:
        """
        Create the initial versioned index behind the alias if nothing exists.

        Returns:
            True if an index was created
        """
        with engine_errors("ensure_index"):
            if self.client.indices.exists_alias(name=self.alias) or self.client.indices.exists(index=self.alias):
                return False
            self.create_versioned_index("v1", attach_alias=True)
            return True

    def create_versioned_index(self, suffix: str, attach_alias: bool = False) -> str:
        """
        Create `<alias>-<suffix>` with the product settings and mappings.

        An existing index of the same name is reused (reindex resume).
        """
        name = self.versioned_name(suffix)
        with engine_errors("create_index"):
            if self.client.indices.exists(index=name):
                logger.info(f"Reusing existing index {name}")
                return name
            kwargs: Dict[str, Any] = {"settings": INDEX_SETTINGS, "mappings": INDEX_MAPPINGS}
            if attach_alias:
                kwargs["aliases"] = {self.alias: {}}
            self.client.indices.create(index=name, **kwargs)
        logger.info(f"Created index {name}")
        return name

    def upsert(self, document: Dict[str, Any]) -> None:
        """Write one document (atomic create-or-replace by id)."""
        with engine_errors("index"):
            self.client.index(index=self.alias, id=document["id"], document=document)

    def delete(self, product_id: str) -> bool:
        """
        Delete one document.

        Returns:
            True if deleted, False if it was already absent
        """
        try:
            with engine_errors("delete"):
                self.client.delete(index=self.alias, id=product_id)
            return True
        except NotFoundError:
            return False

    def bulk_index(self, documents: List[Dict[str, Any]], index_name: Optional[str] = None) -> BulkResult:
        """
        Index a batch of documents with one bulk request.

        Item-level failures are returned, not raised.
        """
        if not documents:
            return BulkResult()

        target = index_name or self.alias
        operations: List[Dict[str, Any]] = []
        for doc in documents:
            operations.append({"index": {"_index": target, "_id": doc["id"]}})
            operations.append(doc)

        with engine_errors("bulk"):
            response = _body(self.client.bulk(operations=operations))

        result = BulkResult()
        for item in response.get("items", []):
            action = item.get("index", {})
            if action.get("error"):
                result.failed_items.append({
                    "id": action.get("_id"),
                    "status": action.get("status"),
                    "error": action.get("error"),
                })
            else:
                result.indexed += 1
        return result

    def refresh(self, index_name: Optional[str] = None) -> None:
        with engine_errors("refresh"):
            self.client.indices.refresh(index=index_name or self.alias)

    def alias_targets(self) -> List[str]:
        """Indices the alias currently points to."""
        try:
            with engine_errors("get_alias"):
                response = _body(self.client.indices.get_alias(name=self.alias))
        except NotFoundError:
            return []
        return list(response.keys())

    def swap_alias(self, new_index: str) -> List[str]:
        """
        Atomically repoint the alias at `new_index` and drop the old indices.

        Returns:
            Names of the indices that were dropped
        """
        old_indices = [name for name in self.alias_targets() if name != new_index]

        with engine_errors("swap_alias"):
            # A concrete index squatting on the alias name blocks the alias
            if not old_indices and self.client.indices.exists(index=self.alias) \
                    and not self.client.indices.exists_alias(name=self.alias):
                self.client.indices.delete(index=self.alias)

            actions: List[Dict[str, Any]] = [
                {"remove": {"index": name, "alias": self.alias}} for name in old_indices
            ]
            actions.append({"add": {"index": new_index, "alias": self.alias}})
            self.client.indices.update_aliases(actions=actions)

            for name in old_indices:
                self.client.indices.delete(index=name, ignore_unavailable=True)

        logger.info(f"Alias {self.alias} -> {new_index} (dropped: {old_indices or 'none'})")
        return old_indices

    def count(self, index_name: Optional[str] = None) -> int:
        with engine_errors("count"):
            return int(_body(self.client.count(index=index_name or self.alias))["count"])

    def ping(self) -> bool:
        try:
            return bool(self.client.ping())
        except (ESConnectionError, ConnectionTimeout, TransportError, ApiError) as e:
            logger.error(f"Elasticsearch ping failed: {e}")
            return False

    def search(self, request: Dict[str, Any], timeout: Optional[float] = None) -> Dict[str, Any]:
        """
        Run a search request against the alias.

        With a timeout the request is bounded and never retried; exceeding it
        raises SearchTimeoutError.
        """
        client = self.client
        if timeout is not None:
            client = client.options(request_timeout=timeout, max_retries=0)
        try:
            with engine_errors("search"):
                response = _body(client.search(index=self.alias, **request))
        except TransientInfraError as e:
            if isinstance(e.__cause__, ConnectionTimeout):
                raise SearchTimeoutError(timeout) from e
            raise
        return response

    def get_many(self, product_ids: List[str]) -> List[Dict[str, Any]]:
        """Source documents for the given ids, in order, skipping missing ones."""
        if not product_ids:
            return []
        with engine_errors("mget"):
            response = _body(self.client.mget(index=self.alias, ids=product_ids))
        return [doc["_source"] for doc in response.get("docs", []) if doc.get("found")]
