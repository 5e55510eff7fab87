"""
YouTube Data API v3 client for Shorts search
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from shortform_trends.clients.base import BasePlatformClient, QuotaTracker
from shortform_trends.errors import NotFoundError, QuotaExceededError, TrendPipelineError
from shortform_trends.models import NormalizedTrendVideo, Platform, SearchFilters, YouTubeVideo
from shortform_trends.normalize import (
    YOUTUBE_SOURCE,
    is_short_form,
    normalize_youtube_video,
    parse_iso_duration,
)


logger = logging.getLogger(__name__)

# Quota units charged by the Data API
SEARCH_QUOTA_COST = 100
VIDEOS_QUOTA_COST = 1

# Videos endpoint accepts at most 50 ids
MAX_IDS_PER_REQUEST = 50


def _isoformat(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


class YouTubeClient(BasePlatformClient):
    """Client for YouTube Shorts via the Data API"""

    platform = Platform.YOUTUBE
    source = YOUTUBE_SOURCE
    base_url = "https://www.googleapis.com/youtube/v3"
    api_key_env = "YOUTUBE_API_KEY"

    def _classify_http_error(self, status: int, body: Any) -> TrendPipelineError:
        if status == 403 and self._is_quota_error(body):
            return QuotaExceededError(
                self._error_message(body) or "YouTube API quota exceeded",
                platform=self.platform,
                source=self.source,
                status_code=status,
            )
        return super()._classify_http_error(status, body)

    def _is_quota_error(self, body: Any) -> bool:
        if not isinstance(body, dict):
            return False
        errors = (body.get("error") or {}).get("errors") or []
        return any(e.get("reason") in ("quotaExceeded", "dailyLimitExceeded") for e in errors)

    def _parse_video(self, item: dict) -> YouTubeVideo:
        snippet = item.get("snippet", {})
        thumbnails = snippet.get("thumbnails", {})
        statistics = item.get("statistics", {})

        thumbnail_url = ""
        for size in ("high", "medium", "default"):
            if thumbnails.get(size, {}).get("url"):
                thumbnail_url = thumbnails[size]["url"]
                break

        return YouTubeVideo(
            id=item["id"],
            title=snippet.get("title", ""),
            description=snippet.get("description"),
            thumbnail_url=thumbnail_url,
            channel_title=snippet.get("channelTitle"),
            channel_id=snippet.get("channelId"),
            published_at=snippet.get("publishedAt"),
            duration=item.get("contentDetails", {}).get("duration", ""),
            view_count=int(statistics.get("viewCount", 0) or 0),
            like_count=int(statistics.get("likeCount", 0) or 0),
            comment_count=int(statistics.get("commentCount", 0) or 0),
            tags=snippet.get("tags") or [],
            url=f"https://youtube.com/watch?v={item['id']}",
        )

    async def search_videos(
        self,
        keyword: str,
        filters: Optional[SearchFilters] = None,
        video_duration: Optional[str] = "short",
        quota: Optional[QuotaTracker] = None,
    ) -> list[YouTubeVideo]:
        """Search, then hydrate the hits with details and statistics"""
        filters = filters or SearchFilters()
        api_key = self._require_api_key()

        params = {
            "part": "snippet",
            "q": keyword,
            "type": "video",
            "maxResults": str(min(filters.max_results, MAX_IDS_PER_REQUEST)),
            "key": api_key,
        }

        if filters.order:
            params["order"] = filters.order
        if filters.published_after:
            params["publishedAfter"] = _isoformat(filters.published_after)
        if filters.published_before:
            params["publishedBefore"] = _isoformat(filters.published_before)
        if video_duration:
            params["videoDuration"] = video_duration
        if filters.country:
            params["regionCode"] = filters.country.value
        if filters.language:
            params["relevanceLanguage"] = filters.language

        data = await self._fetch(f"{self.base_url}/search", params)
        if quota is not None:
            quota.charge(SEARCH_QUOTA_COST)

        video_ids = [
            item["id"]["videoId"]
            for item in data.get("items", [])
            if item.get("id", {}).get("videoId")
        ]

        if not video_ids:
            return []

        return await self.get_video_details(video_ids, quota)

    async def get_video_details(
        self,
        video_ids: list[str],
        quota: Optional[QuotaTracker] = None,
    ) -> list[YouTubeVideo]:
        """Fetch snippet, contentDetails and statistics for up to 50 ids"""
        if not video_ids:
            return []

        api_key = self._require_api_key()
        params = {
            "part": "snippet,contentDetails,statistics",
            "id": ",".join(video_ids[:MAX_IDS_PER_REQUEST]),
            "key": api_key,
        }

        data = await self._fetch(f"{self.base_url}/videos", params)
        if quota is not None:
            quota.charge(VIDEOS_QUOTA_COST)

        return [self._parse_video(item) for item in data.get("items", [])]

    async def get_video_by_id(self, video_id: str) -> YouTubeVideo:
        videos = await self.get_video_details([video_id])
        if not videos:
            raise NotFoundError(
                f"YouTube video not found: {video_id}",
                platform=self.platform,
                source=self.source,
            )
        return videos[0]

    async def search(
        self,
        keyword: str,
        filters: Optional[SearchFilters] = None,
        quota: Optional[QuotaTracker] = None,
    ) -> list[YouTubeVideo]:
        """
        Search for Shorts (<= 60 seconds).

        The API has no Shorts filter, so "short" (< 4 minutes) is requested and
        the results are filtered by parsed duration. Without a date filter twice
        the requested count is fetched so enough Shorts survive filtering.
        """
        filters = filters or SearchFilters()

        fetch_filters = filters
        if not filters.published_after:
            fetch_filters = filters.model_copy(update={"max_results": filters.max_results * 2})

        videos = await self.search_videos(keyword, fetch_filters, quota=quota)
        shorts = [v for v in videos if is_short_form(parse_iso_duration(v.duration))]

        logger.debug(
            "[%s] %d of %d results are short-form",
            self.source,
            len(shorts),
            len(videos),
        )
        return shorts[:filters.max_results]

    async def search_trending(self, keyword: str, max_results: int = 10, **kwargs) -> list[YouTubeVideo]:
        """Most viewed Shorts from the last 7 days"""
        filters = SearchFilters(
            max_results=max_results,
            order="viewCount",
            published_after=datetime.now(timezone.utc) - timedelta(days=7),
            **kwargs,
        )
        return await self.search(keyword, filters)

    def normalize(self, item: YouTubeVideo) -> NormalizedTrendVideo:
        return normalize_youtube_video(item)
