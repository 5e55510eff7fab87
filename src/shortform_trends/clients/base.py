"""
Base client class for all platform search adapters
"""

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Optional
import aiohttp
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_incrementing,
)

from shortform_trends.errors import (
    MissingCredentialError,
    PermanentError,
    TransientError,
    TrendPipelineError,
)
from shortform_trends.models import NormalizedTrendVideo, Platform, SearchFilters


logger = logging.getLogger(__name__)


class QuotaTracker:
    """Quota units charged during one search call"""

    def __init__(self):
        self.used = 0

    def charge(self, units: int):
        self.used += units


class BasePlatformClient(ABC):
    """Base class for all platform search clients"""

    platform: Platform
    source: str = ""
    base_url: str = ""
    api_key_env: str = ""

    def __init__(
        self,
        api_key: Optional[str] = None,
        timeout: float = 30,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.api_key = api_key
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self._session = session
        self._owns_session = session is None

    async def get_session(self) -> aiohttp.ClientSession:
        """Get or create an aiohttp session"""
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self.timeout)
            self._session = aiohttp.ClientSession(
                timeout=timeout,
                headers=self._get_headers(),
            )
            self._owns_session = True
        return self._session

    async def close(self):
        """Close the session if this client created it"""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()

    def _get_headers(self) -> dict:
        """Get default headers for requests"""
        return {
            "User-Agent": "ShortformTrends/1.0 (Trend Research Tool)",
            "Accept": "application/json",
        }

    def _require_api_key(self) -> str:
        """Fail fast when no key is configured"""
        if not self.api_key:
            raise MissingCredentialError(
                self.api_key_env,
                platform=self.platform,
                source=self.source,
            )
        return self.api_key

    def _classify_http_error(self, status: int, body: Any) -> TrendPipelineError:
        """Turn an HTTP error response into a classified error"""
        message = self._error_message(body) or "Unknown error"
        text = f"{self.source} error ({status}): {message}"

        if status == 429 or status >= 500:
            return TransientError(text, platform=self.platform, source=self.source, status_code=status)
        return PermanentError(text, platform=self.platform, source=self.source, status_code=status)

    def _error_message(self, body: Any) -> Optional[str]:
        if isinstance(body, dict):
            error = body.get("error")
            if isinstance(error, dict):
                return error.get("message")
            if error:
                return str(error)
        if isinstance(body, str) and body:
            return body[:200]
        return None

    async def _request(self, url: str, params: Optional[dict] = None) -> dict:
        """Single GET; every failure leaves here already classified"""
        session = await self.get_session()

        try:
            async with session.get(url, params=params) as response:
                raw = await response.text()
                try:
                    body = json.loads(raw) if raw else {}
                except ValueError:
                    body = raw

                if response.status >= 400:
                    raise self._classify_http_error(response.status, body)

                if not isinstance(body, dict):
                    raise PermanentError(
                        f"{self.source} returned a non-JSON payload",
                        platform=self.platform,
                        source=self.source,
                        status_code=response.status,
                    )
                return body

        except asyncio.TimeoutError as e:
            raise TransientError(
                f"{self.source} request timed out after {self.timeout}s",
                platform=self.platform,
                source=self.source,
            ) from e
        except aiohttp.ClientError as e:
            raise TransientError(
                f"Network error: {e}",
                platform=self.platform,
                source=self.source,
            ) from e

    def _log_retry(self, retry_state: RetryCallState):
        error = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            "[%s] Retry attempt %d/%d: %s",
            self.source,
            retry_state.attempt_number,
            self.max_retries,
            error,
        )

    async def _fetch(self, url: str, params: Optional[dict] = None) -> dict:
        """Fetch JSON with retry on transient failures (backoff = attempt x delay)"""
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_retries),
            wait=wait_incrementing(start=self.retry_delay, increment=self.retry_delay),
            retry=retry_if_exception_type(TransientError),
            before_sleep=self._log_retry,
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                return await self._request(url, params)

    @abstractmethod
    async def search(
        self,
        keyword: str,
        filters: Optional[SearchFilters] = None,
        quota: Optional[QuotaTracker] = None,
    ) -> list:
        """Search the platform and return raw items; metered calls charge quota"""
        pass

    @abstractmethod
    def normalize(self, item) -> NormalizedTrendVideo:
        """Map one raw item onto the canonical record"""
        pass

    async def __aenter__(self):
        await self.get_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
