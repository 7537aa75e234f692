"""
Tests for the Redis-backed trend tracker.
"""

from datetime import datetime, timedelta, timezone

import redis

from catalog_search.tracking.trending import TrendTracker


def test_queries_normalized_and_ranked(trends):
    for query in ["Serum", " serum ", "toner", ""]:
        trends.track_query(query)

    assert trends.top_queries(5) == [
        {"query": "serum", "score": 2.0},
        {"query": "toner", "score": 1.0},
    ]
    assert trends.top_queries(0) == []


def test_hourly_bucket_expires(trends, redis_client):
    now = datetime(2026, 3, 1, 14, 30, tzinfo=timezone.utc)
    trends.track_query("serum", now=now)

    key = trends.hourly_key(now)
    assert key == "trending:queries:hourly:2026030114"
    assert 0 < redis_client.ttl(key) <= 24 * 3600


def test_trending_now_sums_recent_buckets(trends):
    now = datetime(2026, 3, 1, 14, 0, tzinfo=timezone.utc)
    trends.track_query("serum", now=now)
    trends.track_query("serum", now=now - timedelta(hours=1))
    trends.track_query("toner", now=now - timedelta(hours=2))
    trends.track_query("mascara", now=now - timedelta(hours=5))

    assert trends.trending_now(hours=3, now=now) == [
        {"query": "serum", "score": 2.0},
        {"query": "toner", "score": 1.0},
    ]


def test_failed_queries(trends):
    trends.track_failed_query("ZZZ")
    trends.track_failed_query("zzz")

    assert trends.failed_queries() == [{"query": "zzz", "count": 2}]


def test_decay_multiplies_scores(trends):
    for _ in range(10):
        trends.track_query("serum")
    trends.track_product_view("p-1")

    assert trends.decay(0.5) is True

    assert trends.top_queries(1) == [{"query": "serum", "score": 5.0}]
    assert trends.cache.raw.zscore(TrendTracker.PRODUCTS_KEY, "p-1") == 0.5


def test_cleanup_prunes_low_scores_and_caps_size(trends):
    for i in range(5):
        for _ in range(i + 1):
            trends.track_query(f"q{i}")

    removed = trends.cleanup(min_score=2, max_entries=2)

    assert removed[TrendTracker.QUERIES_KEY] == 3
    assert [q["query"] for q in trends.top_queries(10)] == ["q4", "q3"]


class BrokenRedis:
    def __getattr__(self, name):
        def fail(*args, **kwargs):
            raise redis.ConnectionError("redis down")
        return fail


class BrokenCache:
    raw = BrokenRedis()


def test_redis_errors_are_swallowed():
    tracker = TrendTracker(cache=BrokenCache())

    assert tracker.track_query("serum") is False
    assert tracker.track_product_view("p-1") is False
    assert tracker.top_queries() == []
    assert tracker.trending_now() == []
    assert tracker.decay() is False
    assert tracker.cleanup() == {}
