"""
Click / Conversion Ledger
Append-only click events plus per-(query, product) aggregates that feed
the CTR ranking signal.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..caching import RedisCache, get_redis_cache
from ..config.settings import get_settings
from ..db.models import SearchClickEvent, SearchClickMetrics
from ..errors import ConversionWithoutClickError, TransientInfraError
from .trending import TrendTracker, normalize_query

logger = logging.getLogger(__name__)

CTR_CACHE_PREFIX = "search:ctr:"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


@dataclass(frozen=True)
class ClickEvent:
    """
    A click on a search result.

    Immutable fact; the query is normalized on construction.
    """

    query: str
    product_id: str
    position: int
    result_count: int
    filters: List[str] = field(default_factory=list)
    category: Optional[str] = None
    price: Optional[float] = None
    score: Optional[float] = None
    user_id: Optional[str] = None
    device_id: Optional[str] = None
    session_id: Optional[str] = None
    clicked_at: datetime = field(default_factory=_utcnow)

    def __post_init__(self):
        object.__setattr__(self, "query", normalize_query(self.query))


def ctr_cache_key(query: str) -> str:
    return f"{CTR_CACHE_PREFIX}{normalize_query(query)}"


def _upsert_statement(dialect_name: str):
    """Dialect-specific INSERT supporting ON CONFLICT DO UPDATE."""
    if dialect_name == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    elif dialect_name == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    else:
        raise NotImplementedError(f"Click metrics upsert not supported on {dialect_name}")
    return insert(SearchClickMetrics)


class ClickLedger:
    """
    Persists clicks and conversions and serves per-query CTR data.

    Writes attached to a user request are best-effort: each one is
    attempted independently and failures are logged, not raised.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        cache: Optional[RedisCache] = None,
        trends: Optional[TrendTracker] = None,
    ):
        self.session_factory = session_factory
        self.cache = cache or get_redis_cache()
        self.trends = trends
        self.settings = get_settings()

    # ========== Writes ==========

    def _append_event(self, event: ClickEvent) -> bool:
        try:
            with self.session_factory() as session:
                session.add(SearchClickEvent(
                    id=str(uuid.uuid4()),
                    query=event.query,
                    product_id=event.product_id,
                    position=event.position,
                    result_count=event.result_count,
                    filters=list(event.filters) or None,
                    category=event.category,
                    price=event.price,
                    score=event.score,
                    user_id=event.user_id,
                    device_id=event.device_id,
                    session_id=event.session_id,
                    clicked_at=event.clicked_at,
                ))
                session.commit()
            return True
        except SQLAlchemyError as e:
            logger.error(f"Failed to persist click event: {e}")
            return False

    def _upsert_metrics(self, event: ClickEvent) -> bool:
        try:
            with self.session_factory() as session:
                metrics = SearchClickMetrics.__table__.c
                stmt = (
                    _upsert_statement(session.get_bind().dialect.name)
                    .values(
                        id=str(uuid.uuid4()),
                        query=event.query,
                        product_id=event.product_id,
                        avg_position=float(event.position),
                        clicks=1,
                        conversions=0,
                        revenue=0.0,
                        result_count=event.result_count,
                        last_clicked=event.clicked_at,
                    )
                )
                stmt = stmt.on_conflict_do_update(
                    index_elements=["query", "product_id"],
                    set_={
                        "clicks": metrics.clicks + 1,
                        # Running mean over all clicks, including this one
                        "avg_position": (metrics.avg_position * metrics.clicks + event.position)
                        / (metrics.clicks + 1),
                        "last_clicked": event.clicked_at,
                        "result_count": event.result_count,
                        "updated_at": _utcnow(),
                    },
                )
                session.execute(stmt)
                session.commit()
            return True
        except (SQLAlchemyError, NotImplementedError) as e:
            logger.error(f"Failed to update click metrics: {e}")
            return False

    def record_click(self, event: ClickEvent) -> Dict[str, bool]:
        """
        Record a click: event row, metrics upsert, CTR cache invalidation
        and product trend bump.

        Returns:
            Dict with the outcome of each write
        """
        outcome = {
            "event_recorded": self._append_event(event),
            "metrics_updated": self._upsert_metrics(event),
        }
        self.cache.delete(ctr_cache_key(event.query))
        if self.trends is not None:
            self.trends.track_product_view(event.product_id)

        logger.debug(f"Click recorded: query='{event.query}' product={event.product_id} pos={event.position}")
        return outcome

    def record_conversion(self, query: str, product_id: str, revenue: float = 0.0) -> Dict[str, Any]:
        """
        Count a conversion for a previously clicked (query, product) pair.

        Raises:
            ConversionWithoutClickError: If the pair was never clicked
            TransientInfraError: If the ledger is unavailable
        """
        normalized = normalize_query(query)
        try:
            with self.session_factory() as session:
                result = session.execute(
                    update(SearchClickMetrics)
                    .where(
                        SearchClickMetrics.query == normalized,
                        SearchClickMetrics.product_id == product_id,
                    )
                    .values(
                        conversions=SearchClickMetrics.conversions + 1,
                        revenue=SearchClickMetrics.revenue + float(revenue or 0),
                        updated_at=_utcnow(),
                    )
                )
                if result.rowcount == 0:
                    session.rollback()
                    raise ConversionWithoutClickError(normalized, product_id)
                session.commit()

                row = session.execute(
                    select(SearchClickMetrics).where(
                        SearchClickMetrics.query == normalized,
                        SearchClickMetrics.product_id == product_id,
                    )
                ).scalar_one()
                summary = self._metrics_dict(row)
        except SQLAlchemyError as e:
            raise TransientInfraError(f"Click ledger unavailable: {e}", component="database") from e

        self.cache.delete(ctr_cache_key(normalized))
        return summary

    # ========== Reads ==========

    @staticmethod
    def _metrics_dict(row: SearchClickMetrics) -> Dict[str, Any]:
        return {
            "query": row.query,
            "product_id": row.product_id,
            "clicks": row.clicks,
            "conversions": row.conversions,
            "revenue": float(row.revenue or 0),
            "avg_position": float(row.avg_position),
            "result_count": row.result_count,
            "last_clicked": row.last_clicked.isoformat() if row.last_clicked else None,
        }

    def get_query_ctr(self, query: str, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """
        Top clicked products for a query, for CTR boosting.

        Cache first (short TTL); on a miss the ledger is read ordered by
        clicks then conversions and the result cached. A ledger failure
        yields an empty list.
        """
        normalized = normalize_query(query)
        if not normalized:
            return []

        limit = limit or self.settings.ctr_top_n
        key = ctr_cache_key(normalized)

        cached = self.cache.get(key)
        if isinstance(cached, list):
            return cached[:limit]

        try:
            with self.session_factory() as session:
                rows = session.execute(
                    select(
                        SearchClickMetrics.product_id,
                        SearchClickMetrics.clicks,
                        SearchClickMetrics.conversions,
                        SearchClickMetrics.avg_position,
                    )
                    .where(SearchClickMetrics.query == normalized)
                    .order_by(SearchClickMetrics.clicks.desc(), SearchClickMetrics.conversions.desc())
                    .limit(limit)
                ).all()
        except SQLAlchemyError as e:
            logger.error(f"CTR lookup failed for '{normalized}': {e}")
            return []

        entries = [
            {
                "product_id": r.product_id,
                "clicks": r.clicks,
                "conversions": r.conversions,
                "avg_position": float(r.avg_position),
            }
            for r in rows
        ]
        if entries:
            self.cache.set(key, entries, ttl=self.settings.ctr_cache_ttl)
        return entries

    def top_queries(self, limit: int = 20) -> List[Dict[str, Any]]:
        """Queries ranked by total clicks."""
        total_clicks = func.sum(SearchClickMetrics.clicks)
        with self.session_factory() as session:
            rows = session.execute(
                select(
                    SearchClickMetrics.query,
                    func.count(SearchClickMetrics.product_id).label("products"),
                    total_clicks.label("clicks"),
                    func.sum(SearchClickMetrics.conversions).label("conversions"),
                    func.sum(SearchClickMetrics.revenue).label("revenue"),
                )
                .group_by(SearchClickMetrics.query)
                .order_by(total_clicks.desc())
                .limit(limit)
            ).all()

        return [
            {
                "query": r.query,
                "unique_products_clicked": r.products,
                "total_clicks": int(r.clicks or 0),
                "total_conversions": int(r.conversions or 0),
                "total_revenue": float(r.revenue or 0),
                "conversion_rate": _rate(r.conversions, r.clicks),
            }
            for r in rows
        ]

    @staticmethod
    def _totals(session: Session, condition) -> Dict[str, Any]:
        """Aggregates over every row matching `condition`, not just the listed page."""
        row = session.execute(
            select(
                func.sum(SearchClickMetrics.clicks).label("clicks"),
                func.sum(SearchClickMetrics.conversions).label("conversions"),
                func.sum(SearchClickMetrics.revenue).label("revenue"),
                func.sum(SearchClickMetrics.avg_position * SearchClickMetrics.clicks).label("weighted_position"),
            ).where(condition)
        ).one()
        clicks = int(row.clicks or 0)
        return {
            "clicks": clicks,
            "conversions": int(row.conversions or 0),
            "revenue": float(row.revenue or 0),
            "avg_position": float(row.weighted_position or 0) / clicks if clicks else 0.0,
        }

    def query_metrics(self, query: str, limit: int = 20) -> Dict[str, Any]:
        """Per-product metrics for one query (top `limit`), with totals over all products."""
        normalized = normalize_query(query)
        condition = SearchClickMetrics.query == normalized
        with self.session_factory() as session:
            rows = session.execute(
                select(SearchClickMetrics)
                .where(condition)
                .order_by(SearchClickMetrics.clicks.desc())
                .limit(limit)
            ).scalars().all()
            products = [self._metrics_dict(r) for r in rows]
            totals = self._totals(session, condition)

        return {
            "query": normalized,
            "total_clicks": totals["clicks"],
            "total_conversions": totals["conversions"],
            "total_revenue": totals["revenue"],
            "conversion_rate": _rate(totals["conversions"], totals["clicks"]),
            "products": products,
        }

    def product_metrics(self, product_id: str, limit: int = 20) -> Dict[str, Any]:
        """Metrics for one product across the queries that led to it."""
        with self.session_factory() as session:
            rows = session.execute(
                select(SearchClickMetrics)
                .where(SearchClickMetrics.product_id == product_id)
                .order_by(SearchClickMetrics.clicks.desc())
                .limit(limit)
            ).scalars().all()
            queries = [self._metrics_dict(r) for r in rows]
            totals = self._totals(session, SearchClickMetrics.product_id == product_id)

        return {
            "product_id": product_id,
            "total_clicks": totals["clicks"],
            "total_conversions": totals["conversions"],
            "total_revenue": totals["revenue"],
            "avg_position": round(totals["avg_position"], 2),
            "conversion_rate": _rate(totals["conversions"], totals["clicks"]),
            "queries": queries,
        }


def _rate(numerator: Optional[float], denominator: Optional[float]) -> float:
    """Percentage rounded to 2 decimals (0 when the denominator is 0)."""
    if not denominator:
        return 0.0
    return round((numerator or 0) / denominator * 100, 2)
