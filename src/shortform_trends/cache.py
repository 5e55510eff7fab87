"""
Content-addressed cache for AI responses
"""

import hashlib
import json
import logging
from typing import Any, Optional
from pydantic import BaseModel

from shortform_trends.errors import StoreUnavailableError
from shortform_trends.stores import KeyValueStore


logger = logging.getLogger(__name__)

CACHE_KEY_PREFIX = "ai:response"

# 24 hours
DEFAULT_TTL = 60 * 60 * 24

DEFAULT_TEMPERATURE = 0.7


def fingerprint(
    messages: list[dict],
    provider: Optional[str] = None,
    model: Optional[str] = None,
    temperature: Optional[float] = None,
) -> str:
    """SHA-256 over the semantic inputs of a generation request"""
    payload = {
        "messages": messages,
        "provider": provider or "default",
        "model": model or "default",
        "temperature": DEFAULT_TEMPERATURE if temperature is None else temperature,
    }
    digest = hashlib.sha256(
        json.dumps(payload, sort_keys=True, ensure_ascii=False).encode("utf-8")
    ).hexdigest()
    return f"{CACHE_KEY_PREFIX}:{digest}"


class ResponseCache:
    """
    JSON cache over a KeyValueStore.

    Fails open: when the store is unreachable reads are misses and writes
    are no-ops, with a warning logged.
    """

    def __init__(self, store: KeyValueStore, default_ttl: int = DEFAULT_TTL):
        self.store = store
        self.default_ttl = default_ttl

    async def get(self, key: str) -> Optional[Any]:
        try:
            raw = await self.store.get(key)
        except StoreUnavailableError as e:
            logger.warning("Cache read failed, treating as miss: %s", e)
            return None

        if raw is None:
            return None

        try:
            return json.loads(raw)
        except ValueError:
            logger.warning("Discarding undecodable cache entry %s", key)
            return None

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        if isinstance(value, BaseModel):
            value = value.model_dump(mode="json")

        try:
            await self.store.set(key, json.dumps(value, ensure_ascii=False), ttl or self.default_ttl)
        except StoreUnavailableError as e:
            logger.warning("Cache write skipped: %s", e)
            return False
        except TypeError as e:
            logger.warning("Value for %s is not JSON serializable: %s", key, e)
            return False
        return True

    async def delete(self, key: str) -> bool:
        try:
            return await self.store.delete(key)
        except StoreUnavailableError as e:
            logger.warning("Cache delete skipped: %s", e)
            return False

    async def ping(self) -> bool:
        try:
            return await self.store.ping()
        except StoreUnavailableError as e:
            logger.warning("Cache store unreachable: %s", e)
            return False

    async def stats(self) -> dict:
        """Connectivity summary for diagnostics"""
        try:
            await self.store.ping()
        except StoreUnavailableError as e:
            return {"available": False, "backend": type(self.store).__name__, "error": str(e)}
        return {"available": True, "backend": type(self.store).__name__, "default_ttl": self.default_ttl}
