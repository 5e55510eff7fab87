"""
SerpAPI client: TikTok and Instagram Reels through Google Videos search
"""

import logging
from typing import Any, Callable, Optional

from pydantic import ValidationError

from shortform_trends.clients.base import BasePlatformClient, QuotaTracker
from shortform_trends.errors import QuotaExceededError, TrendPipelineError
from shortform_trends.models import NormalizedTrendVideo, Platform, SearchFilters, SerpVideo
from shortform_trends.normalize import (
    SERPAPI_SOURCE,
    normalize_serp_video,
    platform_from_label,
    platform_from_url,
    video_id_for,
)


logger = logging.getLogger(__name__)

# Phrases SerpAPI uses when the account is out of searches
QUOTA_MARKERS = ("credit", "run out of searches", "out of searches", "plan limit")


class SerpAPIClient(BasePlatformClient):
    """Client for short videos across platforms via SerpAPI google_videos"""

    platform = Platform.OTHER
    source = SERPAPI_SOURCE
    base_url = "https://serpapi.com/search"
    api_key_env = "SERPAPI_API_KEY"

    # How many raw results to request per wanted result
    overfetch_factor = 1

    def _classify_http_error(self, status: int, body: Any) -> TrendPipelineError:
        message = self._error_message(body) or ""
        if status in (401, 403, 429) and any(m in message.lower() for m in QUOTA_MARKERS):
            return QuotaExceededError(
                message or "SerpAPI quota or credits exceeded",
                platform=self.platform,
                source=self.source,
                status_code=status,
            )
        return super()._classify_http_error(status, body)

    def _parse_short_video(self, video: dict) -> SerpVideo:
        link = video.get("link", "")
        return SerpVideo(
            id=video_id_for(link),
            title=video.get("title") or "",
            platform=platform_from_label(video.get("source")),
            thumbnail_url=video.get("thumbnail") or "",
            video_url=link,
            creator_name=video.get("profile_name"),
            clip_url=video.get("clip"),
            duration=video.get("duration"),
            position=video.get("position"),
        )

    def _parse_video_result(self, video: dict) -> SerpVideo:
        """Generic video result; platform is re-tagged from the URL"""
        link = video.get("link", "")
        channel = video.get("channel") or {}
        return SerpVideo(
            id=video_id_for(link),
            title=video.get("title") or "",
            platform=platform_from_url(link, fallback=video.get("source")),
            thumbnail_url=video.get("thumbnail") or "",
            video_url=link,
            creator_name=channel.get("name") if isinstance(channel, dict) else None,
            duration=video.get("duration"),
            position=video.get("position"),
        )

    def _parse_items(self, videos: list[dict], parse: Callable[[dict], SerpVideo]) -> list[SerpVideo]:
        """Parse raw results, skipping any that fail validation"""
        parsed = []
        for video in videos:
            try:
                parsed.append(parse(video))
            except ValidationError as e:
                logger.warning(
                    "[%s] Skipping malformed result %s: %s",
                    self.source,
                    video.get("link"),
                    e.errors()[0]["msg"],
                )
        return parsed

    async def search_short_videos(
        self,
        keyword: str,
        filters: Optional[SearchFilters] = None,
        device: str = "mobile",
    ) -> list[SerpVideo]:
        """
        Search short videos on every platform.

        Uses the short_videos block when present; otherwise falls back to the
        generic video_results block.
        """
        filters = filters or SearchFilters()
        api_key = self._require_api_key()

        params = {
            "engine": "google_videos",
            "api_key": api_key,
            "q": keyword,
            "device": device,
            "num": str(filters.max_results),
        }
        if filters.language:
            params["hl"] = filters.language
        if filters.country:
            params["gl"] = filters.country.value.lower()

        data = await self._fetch(self.base_url, params)

        short_videos = [v for v in data.get("short_videos") or [] if v.get("link")]
        if short_videos:
            return self._parse_items(short_videos, self._parse_short_video)[:filters.max_results]

        video_results = [v for v in data.get("video_results") or [] if v.get("link")]
        if video_results:
            logger.info(
                "[%s] No short_videos for '%s', using %d video_results as fallback",
                self.source,
                keyword,
                len(video_results),
            )
            return self._parse_items(video_results[:filters.max_results], self._parse_video_result)

        return []

    async def search_platform(
        self,
        keyword: str,
        platform: Platform,
        filters: Optional[SearchFilters] = None,
    ) -> list[SerpVideo]:
        """Over-fetch, then keep only one platform's videos"""
        filters = filters or SearchFilters()
        wanted = filters.max_results

        videos = await self.search_short_videos(
            keyword,
            filters.model_copy(update={"max_results": wanted * self.overfetch_factor}),
        )
        return [v for v in videos if v.platform == platform][:wanted]

    async def search(
        self,
        keyword: str,
        filters: Optional[SearchFilters] = None,
        quota: Optional[QuotaTracker] = None,
    ) -> list[SerpVideo]:
        return await self.search_short_videos(keyword, filters)

    async def search_social(self, keyword: str, max_results: int = 10) -> list[SerpVideo]:
        """TikTok and Instagram together"""
        videos = await self.search_short_videos(keyword, SearchFilters(max_results=max_results * 2))
        social = [v for v in videos if v.platform in (Platform.TIKTOK, Platform.INSTAGRAM)]
        return social[:max_results]

    def normalize(self, item: SerpVideo) -> NormalizedTrendVideo:
        return normalize_serp_video(item)


class TikTokClient(SerpAPIClient):
    """TikTok videos via SerpAPI"""

    platform = Platform.TIKTOK
    overfetch_factor = 3

    async def search(
        self,
        keyword: str,
        filters: Optional[SearchFilters] = None,
        quota: Optional[QuotaTracker] = None,
    ) -> list[SerpVideo]:
        return await self.search_platform(keyword, Platform.TIKTOK, filters)


class InstagramClient(SerpAPIClient):
    """Instagram Reels via SerpAPI"""

    platform = Platform.INSTAGRAM
    overfetch_factor = 3

    async def search(
        self,
        keyword: str,
        filters: Optional[SearchFilters] = None,
        quota: Optional[QuotaTracker] = None,
    ) -> list[SerpVideo]:
        return await self.search_platform(keyword, Platform.INSTAGRAM, filters)
