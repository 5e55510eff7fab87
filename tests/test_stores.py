"""
Tests for the key-value store backends.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import fakeredis
import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from shortform_trends.errors import StoreUnavailableError
from shortform_trends.stores import MemoryStore, RedisStore


class TestMemoryStore:
    async def test_set_get_delete(self, memory_store):
        await memory_store.set("k", "v", ttl=10)

        assert await memory_store.get("k") == "v"
        assert await memory_store.delete("k") is True
        assert await memory_store.get("k") is None
        assert await memory_store.delete("k") is False

    async def test_ttl_expiry(self, memory_store, clock):
        await memory_store.set("k", "v", ttl=10)

        clock.advance(9.9)
        assert await memory_store.get("k") == "v"

        clock.advance(0.2)
        assert await memory_store.get("k") is None

    async def test_no_ttl_never_expires(self, memory_store, clock):
        await memory_store.set("k", "v")
        clock.advance(10 ** 6)
        assert await memory_store.get("k") == "v"

    async def test_incr_window_keeps_first_expiry(self, memory_store, clock):
        assert await memory_store.incr_window("w", 60) == (1, 60_000)

        clock.advance(15)
        count, ttl_ms = await memory_store.incr_window("w", 60)

        assert count == 2
        assert ttl_ms == 45_000

    async def test_incr_window_resets_after_window(self, memory_store, clock):
        await memory_store.incr_window("w", 60)
        await memory_store.incr_window("w", 60)

        clock.advance(61)

        assert await memory_store.incr_window("w", 60) == (1, 60_000)

    async def test_concurrent_increments_are_not_lost(self, memory_store):
        results = await asyncio.gather(*(memory_store.incr_window("w", 60) for _ in range(50)))

        assert sorted(count for count, _ in results) == list(range(1, 51))

    async def test_take_token_drains_and_refills(self, memory_store):
        now = 1_000_000
        for expected_left in (1.0, 0.0):
            allowed, tokens = await memory_store.take_token("b", capacity=2, refill_rate=1.0, now_ms=now)
            assert allowed is True
            assert tokens == expected_left

        allowed, _ = await memory_store.take_token("b", capacity=2, refill_rate=1.0, now_ms=now)
        assert allowed is False

        allowed, tokens = await memory_store.take_token("b", capacity=2, refill_rate=1.0, now_ms=now + 1500)
        assert allowed is True
        assert tokens == pytest.approx(0.5)


@pytest.fixture
async def redis_store():
    store = RedisStore(fakeredis.FakeAsyncRedis(decode_responses=True))
    yield store
    await store.close()


class TestRedisStore:
    async def test_set_get_delete(self, redis_store):
        await redis_store.set("k", "v", ttl=10)

        assert await redis_store.get("k") == "v"
        assert await redis_store.delete("k") is True
        assert await redis_store.get("k") is None

    async def test_incr_window_sets_ttl_once(self, redis_store):
        count, ttl_ms = await redis_store.incr_window("w", 60)
        assert count == 1
        assert 0 < ttl_ms <= 60_000

        count, ttl_ms = await redis_store.incr_window("w", 60)
        assert count == 2
        assert 0 < ttl_ms <= 60_000

    async def test_ping(self, redis_store):
        assert await redis_store.ping() is True

    async def test_backend_failures_are_wrapped(self):
        client = MagicMock()
        client.get = AsyncMock(side_effect=RedisConnectionError("refused"))
        client.ping = AsyncMock(side_effect=OSError("unreachable"))
        store = RedisStore(client)

        with pytest.raises(StoreUnavailableError):
            await store.get("k")
        with pytest.raises(StoreUnavailableError):
            await store.ping()
