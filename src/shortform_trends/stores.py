"""
Key-value backends shared by the response cache and the rate limiter
"""

import json
import time
from abc import ABC, abstractmethod
from typing import Callable, Optional

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from shortform_trends.errors import StoreUnavailableError


class KeyValueStore(ABC):
    """
    Minimal TTL key-value store.

    Counter operations are atomic on every backend; callers never do
    get-then-set on shared counters.
    """

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        pass

    @abstractmethod
    async def set(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        pass

    @abstractmethod
    async def delete(self, key: str) -> bool:
        pass

    @abstractmethod
    async def incr_window(self, key: str, window: int) -> tuple[int, int]:
        """
        Increment a fixed-window counter.

        Creates the key with TTL=window on first use. Returns the new count
        and the remaining TTL in milliseconds.
        """
        pass

    @abstractmethod
    async def take_token(
        self,
        key: str,
        capacity: int,
        refill_rate: float,
        now_ms: int,
        ttl: int = 3600,
    ) -> tuple[bool, float]:
        """Consume one token from a bucket; returns (allowed, tokens_left)"""
        pass

    @abstractmethod
    async def ping(self) -> bool:
        pass

    async def close(self) -> None:
        pass


def _refill(state: Optional[dict], capacity: int, refill_rate: float, now_ms: int) -> float:
    if not state:
        return float(capacity)
    elapsed = max(now_ms - state["last_refill"], 0) / 1000
    return min(float(capacity), state["tokens"] + elapsed * refill_rate)


class MemoryStore(KeyValueStore):
    """
    In-process store for single-worker deployments and tests.

    Operations never await between read and write, so they are atomic
    with respect to other coroutines on the same event loop.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._data: dict[str, tuple[str, Optional[float]]] = {}

    def _live(self, key: str) -> Optional[tuple[str, Optional[float]]]:
        entry = self._data.get(key)
        if entry is None:
            return None
        _, expires_at = entry
        if expires_at is not None and expires_at <= self._clock():
            del self._data[key]
            return None
        return entry

    async def get(self, key: str) -> Optional[str]:
        entry = self._live(key)
        return entry[0] if entry else None

    async def set(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        expires_at = self._clock() + ttl if ttl else None
        self._data[key] = (value, expires_at)

    async def delete(self, key: str) -> bool:
        return self._data.pop(key, None) is not None

    async def incr_window(self, key: str, window: int) -> tuple[int, int]:
        entry = self._live(key)
        now = self._clock()

        if entry is None:
            count, expires_at = 1, now + window
        else:
            count, expires_at = int(entry[0]) + 1, entry[1]

        self._data[key] = (str(count), expires_at)
        ttl_ms = int((expires_at - now) * 1000) if expires_at is not None else window * 1000
        return count, ttl_ms

    async def take_token(
        self,
        key: str,
        capacity: int,
        refill_rate: float,
        now_ms: int,
        ttl: int = 3600,
    ) -> tuple[bool, float]:
        entry = self._live(key)
        tokens = _refill(json.loads(entry[0]) if entry else None, capacity, refill_rate, now_ms)

        allowed = tokens >= 1
        if allowed:
            tokens -= 1
        self._data[key] = (
            json.dumps({"tokens": tokens, "last_refill": now_ms}),
            self._clock() + ttl,
        )
        return allowed, tokens

    async def ping(self) -> bool:
        return True


# Refill and consume in one server-side step
_TOKEN_BUCKET_SCRIPT = """
local state = redis.call('GET', KEYS[1])
local capacity = tonumber(ARGV[1])
local rate = tonumber(ARGV[2])
local now = tonumber(ARGV[3])
local tokens = capacity
if state then
  local decoded = cjson.decode(state)
  local elapsed = math.max(now - decoded['last_refill'], 0) / 1000
  tokens = math.min(capacity, decoded['tokens'] + elapsed * rate)
end
local allowed = 0
if tokens >= 1 then
  tokens = tokens - 1
  allowed = 1
end
redis.call('SET', KEYS[1], cjson.encode({tokens = tokens, last_refill = now}), 'EX', tonumber(ARGV[4]))
return {allowed, tostring(tokens)}
"""


class RedisStore(KeyValueStore):
    """Redis-backed store; every backend failure surfaces as StoreUnavailableError"""

    def __init__(self, client: aioredis.Redis):
        self.redis = client

    @classmethod
    def from_url(cls, url: str) -> "RedisStore":
        return cls(aioredis.from_url(url, decode_responses=True))

    async def get(self, key: str) -> Optional[str]:
        try:
            return await self.redis.get(key)
        except (RedisError, OSError) as e:
            raise StoreUnavailableError(f"Redis GET failed: {e}") from e

    async def set(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        try:
            await self.redis.set(key, value, ex=ttl)
        except (RedisError, OSError) as e:
            raise StoreUnavailableError(f"Redis SET failed: {e}") from e

    async def delete(self, key: str) -> bool:
        try:
            return bool(await self.redis.delete(key))
        except (RedisError, OSError) as e:
            raise StoreUnavailableError(f"Redis DEL failed: {e}") from e

    async def incr_window(self, key: str, window: int) -> tuple[int, int]:
        try:
            async with self.redis.pipeline(transaction=True) as pipe:
                pipe.set(key, 0, ex=window, nx=True)
                pipe.incr(key)
                pipe.pttl(key)
                _, count, ttl_ms = await pipe.execute()
        except (RedisError, OSError) as e:
            raise StoreUnavailableError(f"Redis INCR failed: {e}") from e

        if ttl_ms is None or ttl_ms < 0:
            ttl_ms = window * 1000
        return int(count), int(ttl_ms)

    async def take_token(
        self,
        key: str,
        capacity: int,
        refill_rate: float,
        now_ms: int,
        ttl: int = 3600,
    ) -> tuple[bool, float]:
        try:
            allowed, tokens = await self.redis.eval(
                _TOKEN_BUCKET_SCRIPT, 1, key, capacity, refill_rate, now_ms, ttl
            )
        except (RedisError, OSError) as e:
            raise StoreUnavailableError(f"Redis token bucket failed: {e}") from e
        return bool(int(allowed)), float(tokens)

    async def ping(self) -> bool:
        try:
            return bool(await self.redis.ping())
        except (RedisError, OSError) as e:
            raise StoreUnavailableError(f"Redis PING failed: {e}") from e

    async def close(self) -> None:
        await self.redis.aclose()
