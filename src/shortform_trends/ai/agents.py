"""
Trend analysis, content ideation and creator matching agents built on AIEnricher
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Literal, Optional, Union

from pydantic import BaseModel

from shortform_trends.ai.enricher import AIEnricher, GenerationConfig, GenerationResult
from shortform_trends.ai.prompts import PromptLibrary
from shortform_trends.ai.providers import AnthropicConfig, OpenAIConfig
from shortform_trends.models import AnalysisResult, ContentIdea, Country, CreatorMatch


logger = logging.getLogger(__name__)

ProviderChoice = Union[OpenAIConfig, AnthropicConfig]

PlatformName = Literal["tiktok", "instagram", "youtube"]
BrandCategory = Literal["buldak", "samyang_ramen", "jelly"]
Tone = Literal["fun", "kawaii", "provocative", "cool"]


class TrendRequest(BaseModel):
    keyword: str
    platform: PlatformName = "youtube"
    country: Country = Country.KR
    context: Optional[str] = None


class ContentRequest(BaseModel):
    brand_category: BrandCategory
    tone: Tone
    target_country: Country = Country.KR
    trend_keyword: Optional[str] = None
    trend_description: Optional[str] = None
    preferred_platform: Optional[PlatformName] = None
    additional_requirements: Optional[str] = None


class CreatorRequest(BaseModel):
    username: str
    platform: PlatformName
    follower_count: Optional[int] = None
    avg_views: Optional[int] = None
    engagement_rate: Optional[float] = None
    content_category: Optional[str] = None
    tone: Optional[str] = None
    campaign_purpose: Optional[str] = None
    target_product: Optional[BrandCategory] = None
    target_country: Optional[Country] = None
    additional_context: Optional[str] = None


@dataclass
class TrendComparison:
    analyses: list[GenerationResult[AnalysisResult]]
    best: Optional[AnalysisResult] = None
    ranking: list[AnalysisResult] = field(default_factory=list)


@dataclass
class CreatorRanking:
    matches: list[GenerationResult[CreatorMatch]]
    top_pick: Optional[CreatorMatch] = None
    ranking: list[CreatorMatch] = field(default_factory=list)


@dataclass
class ContentVariations:
    variations: list[GenerationResult[ContentIdea]]

    @property
    def success_count(self) -> int:
        return sum(1 for v in self.variations if v.ok)


class _Agent:
    prompt_name: str
    temperature: float

    def __init__(
        self,
        enricher: AIEnricher,
        provider: ProviderChoice,
        prompts: Optional[PromptLibrary] = None,
        max_retries: int = 3,
    ):
        self.enricher = enricher
        self.provider = provider
        self.prompts = prompts or PromptLibrary()
        self.max_retries = max_retries

    def _config(
        self,
        provider: Optional[ProviderChoice] = None,
        temperature: Optional[float] = None,
        use_cache: bool = True,
    ) -> GenerationConfig:
        return GenerationConfig(
            provider=provider or self.provider,
            temperature=self.temperature if temperature is None else temperature,
            max_retries=self.max_retries,
            use_cache=use_cache,
        )

    def _messages(self, user_prompt: str) -> list[dict]:
        return [
            {"role": "system", "content": self.prompts.load(self.prompt_name)},
            {"role": "user", "content": user_prompt},
        ]


class TrendAnalyzer(_Agent):
    """Scores trends for viral potential and brand relevance"""

    prompt_name = "trend_analyzer"
    # Low temperature keeps scores consistent between runs
    temperature = 0.3

    @staticmethod
    def build_prompt(request: TrendRequest) -> str:
        lines = [
            "Analyze the following trend:",
            "",
            f"**Keyword**: {request.keyword}",
            f"**Platform**: {request.platform}",
            f"**Country**: {request.country.value}",
        ]
        if request.context:
            lines += ["", f"**Additional context**: {request.context}"]
        lines += [
            "",
            "Assess its viral potential and brand fit and answer in JSON.",
        ]
        return "\n".join(lines)

    async def analyze_trend(
        self,
        request: TrendRequest,
        provider: Optional[ProviderChoice] = None,
        temperature: Optional[float] = None,
        use_cache: bool = True,
    ) -> GenerationResult[AnalysisResult]:
        result = await self.enricher.generate(
            self._messages(self.build_prompt(request)),
            AnalysisResult,
            self._config(provider, temperature, use_cache),
        )
        if result.error:
            logger.warning("Trend analysis for '%s' failed: %s", request.keyword, result.error)
        return result

    async def analyze_trends(
        self,
        requests: list[TrendRequest],
        provider: Optional[ProviderChoice] = None,
        use_cache: bool = True,
    ) -> list[GenerationResult[AnalysisResult]]:
        return list(await asyncio.gather(
            *(self.analyze_trend(r, provider=provider, use_cache=use_cache) for r in requests)
        ))

    async def compare_trends(
        self,
        requests: list[TrendRequest],
        provider: Optional[ProviderChoice] = None,
        use_cache: bool = True,
    ) -> TrendComparison:
        """Analyze every trend and rank the successful ones by composite score"""
        analyses = await self.analyze_trends(requests, provider=provider, use_cache=use_cache)

        ranking = sorted(
            (a.object for a in analyses if a.ok),
            key=lambda a: a.composite_score,
            reverse=True,
        )

        return TrendComparison(
            analyses=analyses,
            best=ranking[0] if ranking else None,
            ranking=ranking,
        )


class ContentGenerator(_Agent):
    """Turns a trend and brand brief into a short-form content idea"""

    prompt_name = "content_generator"
    temperature = 0.7

    VARIATION_TEMPERATURES = (0.6, 0.7, 0.8)
    MAX_VARIATIONS = 5
    VARIATION_CONCURRENCY = 2

    @staticmethod
    def build_prompt(request: ContentRequest) -> str:
        lines = [
            "Create a short-form content idea for these conditions:",
            "",
            "**Brand**:",
            f"- Product: {request.brand_category}",
            f"- Tone: {request.tone}",
            f"- Target country: {request.target_country.value}",
        ]
        if request.preferred_platform:
            lines.append(f"- Preferred platform: {request.preferred_platform}")

        trend = []
        if request.trend_keyword:
            trend.append(f"- Trend keyword: {request.trend_keyword}")
        if request.trend_description:
            trend.append(f"- Trend description: {request.trend_description}")
        if trend:
            lines += ["", "**Trend**:"] + trend

        if request.additional_requirements:
            lines += ["", "**Additional requirements**:", request.additional_requirements]

        lines += [
            "",
            "Answer in JSON. The video runs 15-30 seconds and must hook the viewer within 5 seconds.",
        ]
        return "\n".join(lines)

    async def generate_content_idea(
        self,
        request: ContentRequest,
        provider: Optional[ProviderChoice] = None,
        temperature: Optional[float] = None,
        use_cache: bool = True,
    ) -> GenerationResult[ContentIdea]:
        result = await self.enricher.generate(
            self._messages(self.build_prompt(request)),
            ContentIdea,
            self._config(provider, temperature, use_cache),
        )
        if result.error:
            logger.warning("Content idea generation failed: %s", result.error)
        return result

    async def generate_variations(
        self,
        request: ContentRequest,
        count: int = 3,
        provider: Optional[ProviderChoice] = None,
    ) -> ContentVariations:
        """
        Generate up to five drafts at varied temperatures.

        Caching is off so every draft is a fresh call. Each draft keeps its
        own retry state.
        """
        count = max(0, min(count, self.MAX_VARIATIONS))
        semaphore = asyncio.Semaphore(self.VARIATION_CONCURRENCY)

        async def one(index: int) -> GenerationResult[ContentIdea]:
            temperature = self.VARIATION_TEMPERATURES[index % len(self.VARIATION_TEMPERATURES)]
            async with semaphore:
                return await self.generate_content_idea(
                    request, provider=provider, temperature=temperature, use_cache=False
                )

        variations = await asyncio.gather(*(one(i) for i in range(count)))
        return ContentVariations(variations=list(variations))

    async def generate_personalized_content(
        self,
        request: ContentRequest,
        creator_username: Optional[str] = None,
        creator_style: Optional[str] = None,
        creator_audience: Optional[str] = None,
        provider: Optional[ProviderChoice] = None,
    ) -> GenerationResult[ContentIdea]:
        creator = []
        if creator_username:
            creator.append(f"- Username: {creator_username}")
        if creator_style:
            creator.append(f"- Content style: {creator_style}")
        if creator_audience:
            creator.append(f"- Audience: {creator_audience}")

        parts = [request.additional_requirements or ""]
        if creator:
            parts += ["**Creator**:"] + creator + ["Fit the idea to this creator's style and audience."]

        enhanced = request.model_copy(
            update={"additional_requirements": "\n".join(p for p in parts if p).strip() or None}
        )
        return await self.generate_content_idea(enhanced, provider=provider)


class CreatorMatcher(_Agent):
    """Scores how well a creator fits the brand and proposes a collaboration"""

    prompt_name = "creator_matcher"
    temperature = 0.3

    @staticmethod
    def build_prompt(request: CreatorRequest) -> str:
        lines = [
            "Analyze how well this creator matches the brand:",
            "",
            "**Creator**:",
            f"- Username: {request.username}",
            f"- Platform: {request.platform}",
        ]
        if request.follower_count:
            lines.append(f"- Followers: {request.follower_count:,}")
        if request.avg_views:
            lines.append(f"- Average views: {request.avg_views:,}")
        if request.engagement_rate:
            lines.append(f"- Engagement rate: {request.engagement_rate}%")
        if request.content_category:
            lines.append(f"- Content category: {request.content_category}")
        if request.tone:
            lines.append(f"- Tone: {request.tone}")

        lines += [
            "",
            "**Campaign**:",
            f"- Purpose: {request.campaign_purpose or 'General brand collaboration'}",
        ]
        if request.target_product:
            lines.append(f"- Target product: {request.target_product}")
        if request.target_country:
            lines.append(f"- Target country: {request.target_country.value}")

        if request.additional_context:
            lines += ["", f"**Additional context**: {request.additional_context}"]

        lines += ["", "Score the creator's brand fit and answer in JSON."]
        return "\n".join(lines)

    async def match_creator(
        self,
        request: CreatorRequest,
        provider: Optional[ProviderChoice] = None,
        temperature: Optional[float] = None,
        use_cache: bool = True,
    ) -> GenerationResult[CreatorMatch]:
        result = await self.enricher.generate(
            self._messages(self.build_prompt(request)),
            CreatorMatch,
            self._config(provider, temperature, use_cache),
        )
        if result.error:
            logger.warning("Creator match for '%s' failed: %s", request.username, result.error)
        return result

    async def match_creators(
        self,
        requests: list[CreatorRequest],
        provider: Optional[ProviderChoice] = None,
        use_cache: bool = True,
    ) -> list[GenerationResult[CreatorMatch]]:
        return list(await asyncio.gather(
            *(self.match_creator(r, provider=provider, use_cache=use_cache) for r in requests)
        ))

    async def rank_creators(
        self,
        requests: list[CreatorRequest],
        provider: Optional[ProviderChoice] = None,
        use_cache: bool = True,
    ) -> CreatorRanking:
        """Match every creator and order the successful ones by total fit score"""
        matches = await self.match_creators(requests, provider=provider, use_cache=use_cache)

        ranking = sorted(
            (m.object for m in matches if m.ok),
            key=lambda m: m.total_fit_score,
            reverse=True,
        )

        return CreatorRanking(
            matches=matches,
            top_pick=ranking[0] if ranking else None,
            ranking=ranking,
        )
