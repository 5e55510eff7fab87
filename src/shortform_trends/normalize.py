"""
Mapping of per-platform payloads onto NormalizedTrendVideo
"""

import hashlib
import re
from datetime import datetime, timezone
from typing import Optional, Union

from shortform_trends.models import (
    NormalizedTrendVideo,
    Platform,
    SerpVideo,
    YouTubeVideo,
)


SHORT_FORM_MAX_SECONDS = 60

YOUTUBE_SOURCE = "youtube-api"
SERPAPI_SOURCE = "serpapi"

_ISO_DURATION = re.compile(r"^P(?:(\d+)D)?T?(?:(\d+)H)?(?:(\d+)M)?(?:(\d+)S)?$")

# Domain fragments used to re-tag generic video results
_DOMAIN_PLATFORMS = [
    ("tiktok.com", Platform.TIKTOK),
    ("instagram.com", Platform.INSTAGRAM),
    ("youtube.com", Platform.YOUTUBE),
    ("youtu.be", Platform.YOUTUBE),
    ("facebook.com", Platform.FACEBOOK),
    ("fb.watch", Platform.FACEBOOK),
]


def canonicalize_url(url: str) -> str:
    return url.strip().lower()


def video_id_for(url: str) -> str:
    """Deterministic id derived from the canonical URL"""
    return hashlib.sha256(canonicalize_url(url).encode("utf-8")).hexdigest()[:16]


def parse_iso_duration(duration: Optional[str]) -> int:
    """Convert an ISO 8601 duration (PT1M30S) to seconds; 0 when unparseable"""
    if not duration:
        return 0

    match = _ISO_DURATION.match(duration.strip().upper())
    if not match:
        return 0

    days, hours, minutes, seconds = (int(part or 0) for part in match.groups())
    return days * 86400 + hours * 3600 + minutes * 60 + seconds


def parse_clock_duration(duration: Optional[str]) -> Optional[int]:
    """Convert "M:SS" / "H:MM:SS" to seconds"""
    if not duration:
        return None

    parts = duration.strip().split(":")
    if not all(p.isdigit() for p in parts) or len(parts) > 3:
        return None

    total = 0
    for part in parts:
        total = total * 60 + int(part)
    return total


def format_duration(duration: Union[int, str]) -> str:
    """Render seconds or an ISO 8601 duration as M:SS or H:MM:SS"""
    total = parse_iso_duration(duration) if isinstance(duration, str) else int(duration)
    hours, remainder = divmod(total, 3600)
    minutes, seconds = divmod(remainder, 60)

    if hours > 0:
        return f"{hours}:{minutes:02d}:{seconds:02d}"
    return f"{minutes}:{seconds:02d}"


def is_short_form(duration_seconds: Optional[int]) -> bool:
    return duration_seconds is not None and duration_seconds <= SHORT_FORM_MAX_SECONDS


def platform_from_url(url: str, fallback: Optional[str] = None) -> Platform:
    """Infer the hosting platform from a result URL"""
    lowered = url.lower()
    for fragment, platform in _DOMAIN_PLATFORMS:
        if fragment in lowered:
            return platform

    if fallback:
        return platform_from_label(fallback)
    return Platform.OTHER


def platform_from_label(label: Optional[str]) -> Platform:
    """Map a source label ("TikTok", "instagram", ...) onto the closed enum"""
    if not label:
        return Platform.OTHER
    for platform in Platform:
        if platform.value.lower() == label.strip().lower():
            return platform
    return Platform.OTHER


def normalize_youtube_video(
    video: YouTubeVideo,
    collected_at: Optional[datetime] = None,
) -> NormalizedTrendVideo:
    return NormalizedTrendVideo(
        id=video_id_for(video.url),
        title=video.title,
        platform=Platform.YOUTUBE,
        thumbnail_url=video.thumbnail_url,
        video_url=video.url,
        published_at=video.published_at,
        duration_seconds=parse_iso_duration(video.duration),
        creator_name=video.channel_title,
        creator_id=video.channel_id,
        view_count=video.view_count,
        like_count=video.like_count,
        comment_count=video.comment_count,
        description=video.description,
        tags=video.tags,
        collected_at=collected_at or datetime.now(timezone.utc),
        source=YOUTUBE_SOURCE,
    )


def normalize_serp_video(
    video: SerpVideo,
    collected_at: Optional[datetime] = None,
) -> NormalizedTrendVideo:
    return NormalizedTrendVideo(
        id=video_id_for(video.video_url),
        title=video.title,
        platform=video.platform,
        thumbnail_url=video.thumbnail_url,
        video_url=video.video_url,
        duration_seconds=parse_clock_duration(video.duration),
        creator_name=video.creator_name,
        clip_url=video.clip_url,
        collected_at=collected_at or datetime.now(timezone.utc),
        source=SERPAPI_SOURCE,
    )
