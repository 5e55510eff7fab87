"""
Deduplication and light curation of normalized trend videos
"""

from typing import Optional

from shortform_trends.models import DeduplicationOptions, NormalizedTrendVideo, Platform


def calculate_title_similarity(title1: str, title2: str) -> float:
    """Jaccard similarity over lowercased, whitespace-separated tokens"""
    words1 = set(title1.lower().split())
    words2 = set(title2.lower().split())

    union = words1 | words2
    if not union:
        return 0.0
    return len(words1 & words2) / len(union)


class TrendCurator:
    """
    Removes duplicate and near-duplicate videos from a collection batch.
    Order is preserved: the first record encountered always wins.
    """

    def __init__(self, options: Optional[DeduplicationOptions] = None):
        self.options = options or DeduplicationOptions()

    def deduplicate(
        self,
        videos: list[NormalizedTrendVideo],
        options: Optional[DeduplicationOptions] = None,
    ) -> list[NormalizedTrendVideo]:
        """
        Drop duplicates in a single pass.

        Args:
            videos: Videos in adapter-iteration order
            options: Overrides the curator's default options

        Returns:
            The kept videos, in their original encounter order
        """
        options = options or self.options

        if not options.by_url and not options.by_title:
            return list(videos)

        seen_urls: set[str] = set()
        kept: list[NormalizedTrendVideo] = []

        for video in videos:
            if options.by_url:
                url = video.canonical_url
                if url in seen_urls:
                    continue
                # Claimed even when the title check drops this record
                seen_urls.add(url)

            if options.by_title and self._is_similar_to_kept(video, kept, options.title_similarity_threshold):
                continue

            kept.append(video)

        return kept

    def _is_similar_to_kept(
        self,
        video: NormalizedTrendVideo,
        kept: list[NormalizedTrendVideo],
        threshold: float,
    ) -> bool:
        for existing in kept:
            if calculate_title_similarity(video.title, existing.title) >= threshold:
                return True
        return False

    def platform_breakdown(self, videos: list[NormalizedTrendVideo]) -> dict[Platform, int]:
        """Count videos per platform"""
        breakdown: dict[Platform, int] = {}
        for video in videos:
            breakdown[video.platform] = breakdown.get(video.platform, 0) + 1
        return breakdown

    def group_by_platform(self, videos: list[NormalizedTrendVideo]) -> dict[Platform, list[NormalizedTrendVideo]]:
        grouped: dict[Platform, list[NormalizedTrendVideo]] = {}
        for video in videos:
            grouped.setdefault(video.platform, []).append(video)
        return grouped

    def top_tags(self, videos: list[NormalizedTrendVideo], top_n: int = 20) -> list[tuple[str, int]]:
        """Most common tags across the batch"""
        counts: dict[str, int] = {}
        for video in videos:
            for tag in video.tags:
                key = tag.lower()
                counts[key] = counts.get(key, 0) + 1

        return sorted(counts.items(), key=lambda x: x[1], reverse=True)[:top_n]
