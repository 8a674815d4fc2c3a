"""Tests for caching functionality."""

import pytest
import redis.asyncio as redis

from warebook.utils import cache
from warebook.utils.cache import cache_key, cached, get_redis, invalidate_cache


class BrokenRedis:
    async def get(self, key):
        raise redis.ConnectionError("redis is down")

    async def scan_iter(self, match="*"):
        raise redis.ConnectionError("redis is down")
        yield  # pragma: no cover


@pytest.mark.cache
@pytest.mark.asyncio
class TestCacheUtility:

    async def test_get_redis_returns_shared_client(self, fake_redis):
        assert await get_redis() is fake_redis
        assert await (await get_redis()).ping() is True

    async def test_cache_key_generation(self):
        key1 = cache_key(warehouse_id="wh-1", limit=50)
        key2 = cache_key(limit=50, warehouse_id="wh-1")
        key3 = cache_key(warehouse_id="wh-2", limit=50)

        assert key1 == key2
        assert key1 != key3
        assert cache_key() == "default"

    async def test_cached_decorator(self, fake_redis):
        call_count = 0

        @cached(ttl=10, prefix="test")
        async def expensive_function(warehouse_id: str, _session=None):
            nonlocal call_count
            call_count += 1
            return {"warehouse": warehouse_id}

        assert await expensive_function(warehouse_id="wh-1", _session=object()) == {"warehouse": "wh-1"}
        assert call_count == 1

        # Injected arguments do not split the key
        assert await expensive_function(warehouse_id="wh-1", _session=object()) == {"warehouse": "wh-1"}
        assert call_count == 1

        await expensive_function(warehouse_id="wh-2")
        assert call_count == 2
        assert len([k for k in fake_redis.store if k.startswith("test:expensive_function:")]) == 2

    async def test_key_builder(self, fake_redis):
        @cached(ttl=10, prefix="pricing", key_builder=lambda **kw: f"pricing:{kw['warehouse_id']}")
        async def load(warehouse_id: str):
            return [1, 2, 3]

        await load(warehouse_id="wh-9")
        assert "pricing:wh-9" in fake_redis.store

    async def test_redis_failure_falls_back(self, monkeypatch):
        monkeypatch.setattr(cache, "_redis_client", BrokenRedis())

        @cached(ttl=10, prefix="test")
        async def compute(value: int):
            return value * 2

        assert await compute(value=4) == 8
        # Invalidation swallows the outage too
        await invalidate_cache("test:*")

    async def test_cache_invalidation(self, fake_redis):
        await fake_redis.set("pricing:wh-1", "a")
        await fake_redis.set("pricing:wh-1:extra", "b")
        await fake_redis.set("pricing:wh-2", "c")

        await invalidate_cache("pricing:wh-1*")

        assert list(fake_redis.store) == ["pricing:wh-2"]
