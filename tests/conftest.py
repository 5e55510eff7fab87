"""
Shared fixtures and fakes.

Nothing here touches the network: platform clients and AI providers are
replaced by in-process fakes injected through constructors.
"""

import asyncio
import json
from typing import Optional

import pytest

from shortform_trends.ai.providers import BaseProvider, ProviderResponse
from shortform_trends.clients.base import BasePlatformClient, QuotaTracker
from shortform_trends.models import NormalizedTrendVideo, Platform, SearchFilters, TokenUsage
from shortform_trends.stores import MemoryStore


# =============================================================================
# FAKES
# =============================================================================


class FakeClock:
    """Manually advanced clock in seconds"""

    def __init__(self, start: float = 1_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class FakePlatformClient(BasePlatformClient):
    """Returns canned NormalizedTrendVideo items or raises a canned error"""

    source = "fake-adapter"

    def __init__(
        self,
        platform: Platform,
        items: Optional[list] = None,
        error: Optional[BaseException] = None,
        delay: float = 0,
        quota: int = 0,
    ):
        super().__init__(api_key="test-key")
        self.platform = platform
        self.items = items or []
        self.error = error
        self.delay = delay
        self.quota = quota
        self.calls: list[tuple[str, Optional[SearchFilters]]] = []
        self.closed = False

    async def search(
        self,
        keyword: str,
        filters: Optional[SearchFilters] = None,
        quota: Optional[QuotaTracker] = None,
    ) -> list:
        self.calls.append((keyword, filters))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        if quota is not None:
            quota.charge(self.quota)
        return list(self.items)

    def normalize(self, item) -> NormalizedTrendVideo:
        return item

    async def close(self):
        self.closed = True


DEFAULT_USAGE = TokenUsage(prompt_tokens=120, completion_tokens=80, total_tokens=200)


class FakeProvider(BaseProvider):
    """
    Replays a script of outcomes, one per call.

    Strings are returned as the response text; exceptions are raised. The
    last outcome repeats once the script runs out.
    """

    def __init__(self, outcomes: list, name: str = "openai", delay: float = 0):
        super().__init__(api_key="test-key")
        self.name = name
        self.api_key_env = f"{name.upper()}_API_KEY"
        self.outcomes = list(outcomes)
        self.delay = delay
        self.calls: list[dict] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.closed = False

    async def _complete(self, messages, model, temperature, max_tokens) -> ProviderResponse:
        self.calls.append(
            {"messages": messages, "model": model, "temperature": temperature, "max_tokens": max_tokens}
        )
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
        finally:
            self.in_flight -= 1

        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, BaseException):
            raise outcome
        return ProviderResponse(text=outcome, usage=DEFAULT_USAGE, finish_reason="stop")

    async def close(self):
        self.closed = True


def make_video(
    url: str,
    title: str = "Spicy ramen challenge",
    platform: Platform = Platform.YOUTUBE,
    **kwargs,
) -> NormalizedTrendVideo:
    from shortform_trends.normalize import video_id_for

    return NormalizedTrendVideo(
        id=video_id_for(url),
        title=title,
        platform=platform,
        video_url=url,
        source=kwargs.pop("source", "fake-adapter"),
        **kwargs,
    )


# =============================================================================
# SAMPLE PAYLOADS
# =============================================================================


ANALYSIS_PAYLOAD = {
    "trend_name": "ramen",
    "platform": "youtube",
    "country": "KR",
    "viral_score": 82,
    "samyang_relevance": 90,
    "format_type": "Challenge",
    "hook_pattern": "Close-up of the first bite",
    "visual_pattern": "Red sauce, steam, reaction shot",
    "music_pattern": "Fast trending audio",
    "brand_fit_reason": "Spicy noodle challenge is core to the product",
    "recommended_products": ["buldak"],
    "target_audience": "Gen Z snack fans",
    "estimated_reach": "1M+",
    "key_success_factors": ["Easy to copy", "Strong reactions"],
    "risks": ["Spice health concerns"],
}


def idea_payload(title: str = "Buldak fire challenge") -> dict:
    return {
        "title": title,
        "brand_category": "buldak",
        "tone": "fun",
        "target_country": "KR",
        "format_type": "Challenge",
        "platform": "tiktok",
        "hook_text": "Can you finish this in 30 seconds?",
        "hook_visual": "Timer overlay on a steaming bowl",
        "scene_structure": [
            {"duration": "0-5s", "description": "Hook", "action": "Show the bowl"},
            {"duration": "5-20s", "description": "Challenge", "action": "Eat fast"},
            {"duration": "20-30s", "description": "Reaction", "action": "Drink milk"},
        ],
        "editing_format": "Jump cuts every 2 seconds",
        "music_style": "Upbeat trending audio",
        "props_needed": ["Timer", "Milk"],
        "hashtags": ["#buldak", "#challenge"],
        "expected_performance": {
            "estimated_views": "500K",
            "estimated_engagement": "8%",
            "virality_potential": "high",
        },
        "production_tips": ["Film in daylight"],
        "common_mistakes": ["Too long intro"],
    }


# =============================================================================
# FIXTURES
# =============================================================================


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def memory_store(clock):
    return MemoryStore(clock=clock)


@pytest.fixture
def analysis_json():
    return json.dumps(ANALYSIS_PAYLOAD)


@pytest.fixture
def idea_json():
    return json.dumps(idea_payload())
