"""
Data models for the short-form trend collection pipeline
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Literal, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Platform(str, Enum):
    """Platforms a trend video can originate from"""
    YOUTUBE = "YouTube"
    TIKTOK = "TikTok"
    INSTAGRAM = "Instagram"
    FACEBOOK = "Facebook"
    OTHER = "Other"


# Platforms that have a dedicated collection adapter
COLLECTABLE_PLATFORMS = (Platform.YOUTUBE, Platform.TIKTOK, Platform.INSTAGRAM)


class Country(str, Enum):
    """Target markets"""
    KR = "KR"
    US = "US"
    JP = "JP"


COUNTRY_LANGUAGES = {
    Country.KR: "ko",
    Country.US: "en",
    Country.JP: "ja",
}


class NormalizedTrendVideo(BaseModel):
    """A short-form video in the canonical cross-platform shape"""
    id: str
    title: str
    platform: Platform
    thumbnail_url: str = ""
    video_url: str = Field(min_length=1)
    published_at: Optional[datetime] = None
    duration_seconds: Optional[int] = None

    # Creator
    creator_name: Optional[str] = None
    creator_id: Optional[str] = None

    # Statistics (not every platform reports them)
    view_count: Optional[int] = None
    like_count: Optional[int] = None
    comment_count: Optional[int] = None

    # Metadata
    description: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    clip_url: Optional[str] = None

    collected_at: datetime = Field(default_factory=utc_now)
    source: str

    @field_validator("video_url")
    @classmethod
    def _strip_url(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("video_url must not be blank")
        return value

    @property
    def canonical_url(self) -> str:
        """Identity of the video within a batch"""
        return self.video_url.strip().lower()


class CollectionError(BaseModel):
    """A single adapter failure recorded in a collection result"""
    platform: Platform
    source: str
    error: str
    kind: Optional[str] = None


class TrendCollectionResult(BaseModel):
    """Outcome of one collector invocation"""
    model_config = ConfigDict(frozen=True)

    keyword: str
    total_videos: int
    videos: list[NormalizedTrendVideo] = Field(default_factory=list)
    breakdown: dict[Platform, int] = Field(default_factory=dict)
    errors: list[CollectionError] = Field(default_factory=list)
    collected_at: datetime = Field(default_factory=utc_now)
    quota_used: dict[str, int] = Field(default_factory=dict)


class DateFilter(BaseModel):
    """Publication window (honoured by YouTube only)"""
    published_after: Optional[datetime] = None
    published_before: Optional[datetime] = None


class CollectionOptions(BaseModel):
    """Options accepted by TrendCollector.collect"""
    max_results: int = Field(default=10, ge=1, le=50)
    platforms: Optional[list[Platform]] = None
    include_youtube: bool = True
    include_tiktok: bool = True
    include_instagram: bool = True
    country: Optional[Country] = None
    language: Optional[str] = None
    date_filter: Optional[DateFilter] = None

    @field_validator("platforms")
    @classmethod
    def _only_collectable(cls, value: Optional[list[Platform]]) -> Optional[list[Platform]]:
        if value:
            unsupported = [p.value for p in value if p not in COLLECTABLE_PLATFORMS]
            if unsupported:
                raise ValueError(f"No collector for platform(s): {', '.join(unsupported)}")
        return value

    def resolve_platforms(self) -> frozenset[Platform]:
        """Collapse the explicit list and include-flags into one platform set"""
        if self.platforms:
            return frozenset(self.platforms)

        flags = {
            Platform.YOUTUBE: self.include_youtube,
            Platform.TIKTOK: self.include_tiktok,
            Platform.INSTAGRAM: self.include_instagram,
        }
        return frozenset(p for p, enabled in flags.items() if enabled)

    def resolve_language(self) -> Optional[str]:
        """Explicit language wins over the one implied by country"""
        if self.language:
            return self.language
        return COUNTRY_LANGUAGES.get(self.country) if self.country else None


class DeduplicationOptions(BaseModel):
    """Knobs for TrendCurator.deduplicate"""
    by_url: bool = True
    by_title: bool = False
    title_similarity_threshold: float = Field(default=0.9, ge=0.0, le=1.0)


class SearchFilters(BaseModel):
    """Per-adapter search parameters derived from CollectionOptions"""
    max_results: int = 10
    country: Optional[Country] = None
    language: Optional[str] = None
    published_after: Optional[datetime] = None
    published_before: Optional[datetime] = None
    order: Optional[str] = None


# Raw adapter payloads

class YouTubeVideo(BaseModel):
    """A video as returned by the YouTube Data API videos endpoint"""
    id: str
    title: str
    description: Optional[str] = None
    thumbnail_url: str = ""
    channel_title: Optional[str] = None
    channel_id: Optional[str] = None
    published_at: Optional[datetime] = None
    duration: str = ""  # ISO 8601, e.g. PT45S
    view_count: int = 0
    like_count: int = 0
    comment_count: int = 0
    tags: list[str] = Field(default_factory=list)
    url: str


class SerpVideo(BaseModel):
    """A video result from the SerpAPI google_videos engine"""
    id: str
    title: str
    platform: Platform
    thumbnail_url: str = ""
    video_url: str
    creator_name: Optional[str] = None
    clip_url: Optional[str] = None
    duration: Optional[str] = None  # "M:SS" or "H:MM:SS"
    position: Optional[int] = None


# AI enrichment

class AnalysisResult(BaseModel):
    """Structured AI analysis of a trend"""
    trend_name: str
    platform: str
    country: Country
    viral_score: float = Field(ge=0, le=100)
    samyang_relevance: float = Field(ge=0, le=100)
    format_type: str
    hook_pattern: str
    visual_pattern: str
    music_pattern: str
    brand_fit_reason: Optional[str] = None
    recommended_products: list[str] = Field(default_factory=list)
    target_audience: str
    estimated_reach: Optional[str] = None
    key_success_factors: list[str] = Field(default_factory=list)
    risks: list[str] = Field(default_factory=list)

    @property
    def composite_score(self) -> float:
        """Ranking score used when comparing trends"""
        return round(self.viral_score * 0.4 + self.samyang_relevance * 0.6, 2)


class Scene(BaseModel):
    duration: str
    description: str
    camera_angle: Optional[str] = None
    action: str


class ExpectedPerformance(BaseModel):
    estimated_views: str
    estimated_engagement: str
    virality_potential: str = Field(pattern="^(high|medium|low)$")


class ContentIdea(BaseModel):
    """A short-form content idea generated from a trend"""
    title: str
    brand_category: str
    tone: str
    target_country: Country
    format_type: str
    platform: str
    hook_text: str
    hook_visual: str
    scene_structure: list[Scene] = Field(min_length=3, max_length=5)
    editing_format: str
    music_style: str
    props_needed: list[str] = Field(default_factory=list)
    hashtags: list[str] = Field(default_factory=list)
    expected_performance: ExpectedPerformance
    production_tips: list[str] = Field(default_factory=list)
    common_mistakes: list[str] = Field(default_factory=list)


class QuantitativeScores(BaseModel):
    """Reach metrics, worth 40 of the 100 fit points"""
    follower_score: float = Field(ge=0, le=15)
    view_score: float = Field(ge=0, le=15)
    engagement_score: float = Field(ge=0, le=10)


class QualitativeScores(BaseModel):
    """Brand fit, worth 60 of the 100 fit points"""
    category_fit: float = Field(ge=0, le=20)
    tone_fit: float = Field(ge=0, le=20)
    audience_fit: float = Field(ge=0, le=20)


class CollaborationStrategy(BaseModel):
    recommended_type: Literal[
        "long_term_ambassador", "campaign_series", "one_off_collaboration", "product_review"
    ]
    content_suggestions: list[str] = Field(default_factory=list)
    estimated_performance: str
    budget_recommendation: str


class RiskAssessment(BaseModel):
    level: Literal["high", "medium", "low"]
    factors: list[str] = Field(default_factory=list)
    mitigation: list[str] = Field(default_factory=list)


class CreatorMatch(BaseModel):
    """Structured AI assessment of how well a creator fits the brand"""
    creator_username: str
    platform: Literal["tiktok", "instagram", "youtube"]
    total_fit_score: float = Field(ge=0, le=100)
    quantitative_scores: QuantitativeScores
    qualitative_scores: QualitativeScores
    strengths: list[str] = Field(default_factory=list)
    weaknesses: list[str] = Field(default_factory=list)
    audience_analysis: str
    content_style_analysis: str
    collaboration_strategy: CollaborationStrategy
    risk_assessment: RiskAssessment
    recommended_products: list[Literal["buldak", "samyang_ramen", "jelly"]] = Field(default_factory=list)


class TokenUsage(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class UsageRecord(BaseModel):
    """One enrichment call, logged whatever its outcome"""
    provider: str
    model: str
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    duration_ms: int = 0
    success: bool
    cached: bool = False
    attempts: int = 0
    error: Optional[str] = None
    estimated_cost_usd: Optional[float] = None
    created_at: datetime = Field(default_factory=utc_now)


class RateLimitResult(BaseModel):
    """Outcome of a rate-limit check"""
    success: bool
    limit: int
    remaining: int
    reset: int  # unix millis
    window: int
