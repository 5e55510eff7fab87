"""
Fans a keyword out across platform clients and aggregates the results
"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from shortform_trends.clients.base import BasePlatformClient, QuotaTracker
from shortform_trends.curator import TrendCurator
from shortform_trends.errors import MissingCredentialError, TrendPipelineError
from shortform_trends.models import (
    COLLECTABLE_PLATFORMS,
    CollectionError,
    CollectionOptions,
    DateFilter,
    NormalizedTrendVideo,
    Platform,
    SearchFilters,
    TrendCollectionResult,
)


logger = logging.getLogger(__name__)

MAX_KEYWORD_LENGTH = 100


class AdapterOutcome:
    """What one adapter task produced: videos or an error, never both"""

    __slots__ = ("platform", "videos", "error", "quota_used")

    def __init__(
        self,
        platform: Platform,
        videos: Optional[list[NormalizedTrendVideo]] = None,
        error: Optional[CollectionError] = None,
        quota_used: int = 0,
    ):
        self.platform = platform
        self.videos = videos or []
        self.error = error
        self.quota_used = quota_used


class TrendCollector:
    """
    Collects short-form trend videos for a keyword from every enabled platform.

    Each platform runs as its own task with its own deadline; one adapter
    failing is recorded in the result and never aborts the others.
    """

    def __init__(
        self,
        clients: dict[Platform, BasePlatformClient],
        curator: Optional[TrendCurator] = None,
        max_concurrency: int = 3,
        adapter_timeout: float = 60.0,
    ):
        """
        Args:
            clients: One client per collectable platform
            curator: Deduplicator (default options when None)
            max_concurrency: Worker pool bound for adapter tasks
            adapter_timeout: Deadline in seconds for each adapter task
        """
        self.clients = clients
        self.curator = curator or TrendCurator()
        self.max_concurrency = max(1, max_concurrency)
        self.adapter_timeout = adapter_timeout

    def _filters_for(self, platform: Platform, options: CollectionOptions) -> SearchFilters:
        filters = SearchFilters(
            max_results=options.max_results,
            country=options.country,
            language=options.resolve_language(),
        )
        # Date filtering is only supported by YouTube
        if platform == Platform.YOUTUBE and options.date_filter:
            filters.published_after = options.date_filter.published_after
            filters.published_before = options.date_filter.published_before
        return filters

    def _normalize_all(self, client: BasePlatformClient, raw_items: list) -> list[NormalizedTrendVideo]:
        """Normalize raw items, skipping any that cannot be mapped"""
        videos = []
        for item in raw_items:
            try:
                videos.append(client.normalize(item))
            except ValueError as e:
                logger.warning("[%s] Skipping item that failed normalization: %s", client.source, e)
        return videos

    async def _collect_from(
        self,
        platform: Platform,
        keyword: str,
        options: CollectionOptions,
    ) -> AdapterOutcome:
        """Run one adapter, converting any failure into an error entry"""
        client = self.clients.get(platform)
        if client is None:
            return AdapterOutcome(
                platform,
                error=CollectionError(
                    platform=platform,
                    source="collector",
                    error=f"No client configured for {platform.value}",
                    kind="permanent",
                ),
            )

        logger.info("Collecting %s data for: %s", platform.value, keyword)

        quota = QuotaTracker()
        try:
            raw_items = await asyncio.wait_for(
                client.search(keyword, self._filters_for(platform, options), quota=quota),
                timeout=self.adapter_timeout,
            )
            videos = self._normalize_all(client, raw_items)

        except asyncio.TimeoutError:
            logger.warning("%s collection timed out after %ss", platform.value, self.adapter_timeout)
            return AdapterOutcome(
                platform,
                error=CollectionError(
                    platform=platform,
                    source=client.source,
                    error=f"Timed out after {self.adapter_timeout}s",
                    kind="transient",
                ),
            )
        except TrendPipelineError as e:
            logger.warning("%s collection error (%s): %s", platform.value, e.kind.value, e)
            message = str(e)
            if isinstance(e, MissingCredentialError) and e.hint:
                message = f"{message}. {e.hint}"
            return AdapterOutcome(
                platform,
                error=CollectionError(
                    platform=platform,
                    source=e.source or client.source,
                    error=message,
                    kind=e.kind.value,
                ),
            )
        except Exception as e:
            logger.exception("%s collection failed unexpectedly", platform.value)
            return AdapterOutcome(
                platform,
                error=CollectionError(
                    platform=platform,
                    source=client.source,
                    error=str(e) or e.__class__.__name__,
                ),
            )

        logger.info("Collected %d %s videos", len(videos), platform.value)
        return AdapterOutcome(platform, videos=videos, quota_used=quota.used)

    async def collect(
        self,
        keyword: str,
        options: Optional[CollectionOptions] = None,
    ) -> TrendCollectionResult:
        """
        Collect, normalize and deduplicate videos for a keyword.

        Args:
            keyword: Search keyword (1-100 characters)
            options: Platform selection and search filters

        Returns:
            A possibly partial result; adapter failures are listed in errors
        """
        keyword = keyword.strip()
        if not keyword or len(keyword) > MAX_KEYWORD_LENGTH:
            raise ValueError(f"keyword must be 1-{MAX_KEYWORD_LENGTH} characters")

        options = options or CollectionOptions()
        selected = options.resolve_platforms()
        platforms = [p for p in COLLECTABLE_PLATFORMS if p in selected]

        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def run(platform: Platform) -> AdapterOutcome:
            async with semaphore:
                return await self._collect_from(platform, keyword, options)

        # gather keeps adapter-iteration order, which dedup relies on
        outcomes = await asyncio.gather(*(run(p) for p in platforms))

        all_videos: list[NormalizedTrendVideo] = []
        errors: list[CollectionError] = []
        quota_used: dict[str, int] = {}

        for outcome in outcomes:
            if outcome.error:
                errors.append(outcome.error)
            all_videos.extend(outcome.videos)
            if outcome.platform == Platform.YOUTUBE:
                quota_used["youtube"] = outcome.quota_used

        logger.info("Deduplicating %d videos...", len(all_videos))
        videos = self.curator.deduplicate(all_videos)
        logger.info("After deduplication: %d videos", len(videos))

        return TrendCollectionResult(
            keyword=keyword,
            total_videos=len(videos),
            videos=videos,
            breakdown=self.curator.platform_breakdown(videos),
            errors=errors,
            collected_at=datetime.now(timezone.utc),
            quota_used=quota_used,
        )

    async def collect_trending(self, keyword: str, max_results: int = 10) -> TrendCollectionResult:
        """All platforms, published within the last 7 days"""
        options = CollectionOptions(
            max_results=max_results,
            date_filter=DateFilter(
                published_after=datetime.now(timezone.utc) - timedelta(days=7),
            ),
        )
        return await self.collect(keyword, options)
