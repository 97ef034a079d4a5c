"""Unit tests for the fail-open per-store view cache."""

import pytest
from libs.common import cache
from libs.common.config import get_settings
from tests.stubs import FakeRedis


class BrokenRedis:
    async def get(self, key):
        raise ConnectionError("redis down")

    async def set(self, key, value, ex=None):
        raise ConnectionError("redis down")

    async def scan_iter(self, match):
        raise ConnectionError("redis down")
        yield  # pragma: no cover


@pytest.fixture
def cache_enabled(monkeypatch):
    monkeypatch.setattr(get_settings(), "CACHE_ENABLED", True)


def _use(monkeypatch, redis):
    async def fake_get_redis():
        return redis

    monkeypatch.setattr(cache, "get_redis", fake_get_redis)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_disabled_cache_always_misses():
    assert await cache.set_cached_json("k", {"a": 1}) is False
    assert await cache.get_cached_json("k") is None
    assert await cache.invalidate_store_views("store") is False


@pytest.mark.unit
@pytest.mark.asyncio
async def test_invalidation_drops_only_that_store(monkeypatch, cache_enabled):
    redis = FakeRedis()
    _use(monkeypatch, redis)

    await cache.set_cached_json(cache.order_list_key("a", None, 0, 20), {"total": 1})
    await cache.set_cached_json(cache.order_list_key("a", "paid", 0, 20), {"total": 0})
    await cache.set_cached_json(cache.dashboard_metrics_key("a"), {"total_orders": 1})
    await cache.set_cached_json(cache.order_list_key("b", None, 0, 20), {"total": 5})

    assert await cache.get_cached_json(cache.order_list_key("a", None, 0, 20)) == {"total": 1}
    assert await cache.invalidate_store_views("a") is True

    assert list(redis.data) == [cache.order_list_key("b", None, 0, 20)]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_redis_failure_fails_open(monkeypatch, cache_enabled):
    _use(monkeypatch, BrokenRedis())

    assert await cache.get_cached_json("k") is None
    assert await cache.set_cached_json("k", {"a": 1}) is False
    assert await cache.invalidate_store_views("a") is False
