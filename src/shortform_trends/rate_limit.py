"""
Rate limiting for collection and enrichment entry points
"""

import logging
import math
import time
from typing import Callable, Optional

from shortform_trends.errors import StoreUnavailableError
from shortform_trends.models import RateLimitResult
from shortform_trends.stores import KeyValueStore


logger = logging.getLogger(__name__)


class RateLimiter:
    """
    Fixed-window limiter keyed by caller identity.

    The backing store increments atomically. If the store is unavailable
    every request is allowed and a warning is logged.
    """

    def __init__(
        self,
        store: KeyValueStore,
        window: int = 60,
        max_requests: int = 10,
        prefix: str = "rate_limit",
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.window = window
        self.max_requests = max_requests
        self.prefix = prefix
        self._clock = clock

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    async def check(
        self,
        identifier: str,
        window: Optional[int] = None,
        max_requests: Optional[int] = None,
        prefix: Optional[str] = None,
    ) -> RateLimitResult:
        """
        Count a request against the identifier's current window.

        Args:
            identifier: Caller identity (IP, user id, ...)
            window: Window length in seconds
            max_requests: Requests allowed per window
            prefix: Key namespace

        Returns:
            RateLimitResult; reset comes from the store's remaining TTL
        """
        window = window or self.window
        limit = max_requests or self.max_requests
        key = f"{prefix or self.prefix}:{identifier}"
        now_ms = self._now_ms()

        try:
            count, ttl_ms = await self.store.incr_window(key, window)
        except StoreUnavailableError as e:
            logger.warning("Rate limit store unavailable, allowing request: %s", e)
            return RateLimitResult(
                success=True,
                limit=limit,
                remaining=limit,
                reset=now_ms + window * 1000,
                window=window,
            )

        reset = now_ms + ttl_ms

        if count > limit:
            return RateLimitResult(success=False, limit=limit, remaining=0, reset=reset, window=window)

        return RateLimitResult(
            success=True,
            limit=limit,
            remaining=max(0, limit - count),
            reset=reset,
            window=window,
        )

    async def check_by_ip(self, ip: str, **kwargs) -> RateLimitResult:
        return await self.check(f"ip:{ip}", prefix="rate_limit_ip", **kwargs)

    async def check_by_user(self, user_id: str, **kwargs) -> RateLimitResult:
        return await self.check(f"user:{user_id}", prefix="rate_limit_user", **kwargs)

    async def check_token_bucket(
        self,
        identifier: str,
        capacity: int = 10,
        refill_rate: float = 1.0,
        prefix: str = "token_bucket",
    ) -> RateLimitResult:
        """Token-bucket variant: bursts up to capacity, refills continuously"""
        key = f"{prefix}:{identifier}"
        now_ms = self._now_ms()
        window = math.ceil(capacity / refill_rate)

        try:
            allowed, tokens = await self.store.take_token(key, capacity, refill_rate, now_ms)
        except StoreUnavailableError as e:
            logger.warning("Token bucket store unavailable, allowing request: %s", e)
            return RateLimitResult(
                success=True,
                limit=capacity,
                remaining=capacity,
                reset=now_ms + 60_000,
                window=60,
            )

        if not allowed:
            wait_seconds = math.ceil((1 - tokens) / refill_rate)
            return RateLimitResult(
                success=False,
                limit=capacity,
                remaining=0,
                reset=now_ms + wait_seconds * 1000,
                window=window,
            )

        return RateLimitResult(
            success=True,
            limit=capacity,
            remaining=int(tokens),
            reset=now_ms + int((capacity - tokens) / refill_rate * 1000),
            window=window,
        )
