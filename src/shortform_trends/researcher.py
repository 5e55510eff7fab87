"""
Service object that wires collection, caching, rate limiting and AI enrichment
"""

import logging
from typing import Optional

from shortform_trends.ai.agents import (
    ContentGenerator,
    ContentRequest,
    ContentVariations,
    CreatorMatcher,
    CreatorRanking,
    CreatorRequest,
    ProviderChoice,
    TrendAnalyzer,
    TrendRequest,
)
from shortform_trends.ai.enricher import AIEnricher, GenerationResult
from shortform_trends.ai.prompts import PromptLibrary
from shortform_trends.ai.providers import (
    AnthropicProvider,
    BaseProvider,
    OpenAIProvider,
    parse_provider_config,
)
from shortform_trends.cache import ResponseCache
from shortform_trends.clients import InstagramClient, TikTokClient, YouTubeClient
from shortform_trends.clients.base import BasePlatformClient
from shortform_trends.collector import TrendCollector
from shortform_trends.config import Settings
from shortform_trends.errors import RateLimitExceededError
from shortform_trends.models import (
    AnalysisResult,
    CollectionOptions,
    ContentIdea,
    Platform,
    TrendCollectionResult,
)
from shortform_trends.rate_limit import RateLimiter
from shortform_trends.storage import Storage
from shortform_trends.stores import KeyValueStore, MemoryStore, RedisStore


logger = logging.getLogger(__name__)

COLLECT_SCOPE = "rate_limit:collect"
AI_SCOPE = "rate_limit:ai"


class TrendResearcher:
    """
    Entry point for callers that want trends and AI insights.

    Owns every shared resource (HTTP sessions, provider clients, the
    key-value store). Use it as an async context manager, or call close().
    """

    def __init__(
        self,
        collector: TrendCollector,
        enricher: AIEnricher,
        provider: ProviderChoice,
        limiter: Optional[RateLimiter] = None,
        store: Optional[KeyValueStore] = None,
        storage: Optional[Storage] = None,
        prompts: Optional[PromptLibrary] = None,
        max_retries: int = 3,
    ):
        """
        Args:
            collector: Platform fan-out
            enricher: Structured generation service
            provider: Default provider/model for the agents
            limiter: Gate for collect/analyze calls (no limit when None)
            store: Key-value store to close on teardown
            storage: Persistence for videos, analyses and usage
            prompts: System prompt templates
            max_retries: Attempts per AI call
        """
        self.collector = collector
        self.enricher = enricher
        self.limiter = limiter
        self.store = store
        self.storage = storage

        prompts = prompts or PromptLibrary()
        self.analyzer = TrendAnalyzer(enricher, provider, prompts=prompts, max_retries=max_retries)
        self.generator = ContentGenerator(enricher, provider, prompts=prompts, max_retries=max_retries)
        self.matcher = CreatorMatcher(enricher, provider, prompts=prompts, max_retries=max_retries)

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None, storage: Optional[Storage] = None) -> "TrendResearcher":
        """Build the whole object graph from settings"""
        settings = settings or Settings.from_env()

        client_kwargs = dict(
            timeout=settings.http_timeout,
            max_retries=settings.max_retries,
            retry_delay=settings.retry_delay,
        )
        clients: dict[Platform, BasePlatformClient] = {
            Platform.YOUTUBE: YouTubeClient(api_key=settings.youtube_api_key, **client_kwargs),
            Platform.TIKTOK: TikTokClient(api_key=settings.serpapi_api_key, **client_kwargs),
            Platform.INSTAGRAM: InstagramClient(api_key=settings.serpapi_api_key, **client_kwargs),
        }
        collector = TrendCollector(
            clients,
            max_concurrency=settings.max_concurrency,
            adapter_timeout=settings.adapter_timeout,
        )

        if settings.redis_url:
            store: KeyValueStore = RedisStore.from_url(settings.redis_url)
        else:
            store = MemoryStore()

        providers: dict[str, BaseProvider] = {
            "openai": OpenAIProvider(api_key=settings.openai_api_key, timeout=settings.adapter_timeout),
            "anthropic": AnthropicProvider(api_key=settings.anthropic_api_key, timeout=settings.adapter_timeout),
        }
        enricher = AIEnricher(
            providers,
            cache=ResponseCache(store, default_ttl=settings.cache_ttl),
            retry_delay=settings.retry_delay,
            usage_sink=storage.save_usage if storage else None,
        )

        limiter = RateLimiter(
            store,
            window=settings.rate_limit_window,
            max_requests=settings.rate_limit_max,
        )

        return cls(
            collector=collector,
            enricher=enricher,
            provider=parse_provider_config(settings.resolve_ai_provider()),
            limiter=limiter,
            store=store,
            storage=storage,
            max_retries=settings.max_retries,
        )

    async def _check_rate_limit(self, identifier: Optional[str], prefix: str):
        if self.limiter is None or identifier is None:
            return
        result = await self.limiter.check(identifier, prefix=prefix)
        if not result.success:
            logger.warning("Rate limit exceeded for %s (%s)", identifier, prefix)
            raise RateLimitExceededError(identifier, result)

    async def collect_trends(
        self,
        keyword: str,
        options: Optional[CollectionOptions] = None,
        identifier: Optional[str] = None,
    ) -> TrendCollectionResult:
        """
        Collect trend videos for a keyword.

        Raises:
            RateLimitExceededError: identifier has used up its window
            ValueError: keyword is empty or too long
        """
        await self._check_rate_limit(identifier, COLLECT_SCOPE)
        result = await self.collector.collect(keyword, options)

        if self.storage and result.videos:
            await self.storage.save_videos(result.videos, keyword=result.keyword)
        return result

    async def collect_trending(
        self,
        keyword: str,
        max_results: int = 10,
        identifier: Optional[str] = None,
    ) -> TrendCollectionResult:
        await self._check_rate_limit(identifier, COLLECT_SCOPE)
        result = await self.collector.collect_trending(keyword, max_results=max_results)

        if self.storage and result.videos:
            await self.storage.save_videos(result.videos, keyword=result.keyword)
        return result

    async def analyze(
        self,
        request: TrendRequest,
        identifier: Optional[str] = None,
        provider: Optional[ProviderChoice] = None,
        use_cache: bool = True,
    ) -> GenerationResult[AnalysisResult]:
        """Analyze one trend; the result carries either an analysis or an error"""
        await self._check_rate_limit(identifier, AI_SCOPE)
        result = await self.analyzer.analyze_trend(request, provider=provider, use_cache=use_cache)

        if self.storage and result.ok:
            await self.storage.save_analysis(result.object)
        return result

    async def generate_ideas(
        self,
        request: ContentRequest,
        count: int = 1,
        identifier: Optional[str] = None,
        provider: Optional[ProviderChoice] = None,
    ) -> list[GenerationResult[ContentIdea]]:
        await self._check_rate_limit(identifier, AI_SCOPE)
        if count <= 1:
            return [await self.generator.generate_content_idea(request, provider=provider)]

        variations: ContentVariations = await self.generator.generate_variations(
            request, count=count, provider=provider
        )
        return variations.variations

    async def match_creators(
        self,
        requests: list[CreatorRequest],
        identifier: Optional[str] = None,
        provider: Optional[ProviderChoice] = None,
    ) -> CreatorRanking:
        """Score each creator's brand fit; one rate-limit slot covers the batch"""
        await self._check_rate_limit(identifier, AI_SCOPE)
        return await self.matcher.rank_creators(requests, provider=provider)

    async def close(self):
        """Close HTTP sessions, provider clients and the store"""
        for client in self.collector.clients.values():
            await client.close()
        for provider in self.enricher.providers.values():
            await provider.close()
        if self.store is not None:
            await self.store.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
