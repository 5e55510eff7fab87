"""
Tests for TrendCurator deduplication.
"""

from shortform_trends.curator import TrendCurator, calculate_title_similarity
from shortform_trends.models import DeduplicationOptions, Platform

from conftest import make_video


class TestTitleSimilarity:
    def test_identical_titles(self):
        assert calculate_title_similarity("Spicy Ramen Challenge", "spicy ramen challenge") == 1.0

    def test_partial_overlap(self):
        # {a, b, c} vs {a, b, d}: 2 shared of 4 total
        assert calculate_title_similarity("a b c", "a b d") == 0.5

    def test_empty_titles(self):
        assert calculate_title_similarity("", "   ") == 0.0


class TestDeduplicate:
    def test_url_dedup_keeps_first_seen(self):
        first = make_video("https://youtube.com/watch?v=1", title="first")
        dup = make_video("  HTTPS://YOUTUBE.COM/WATCH?V=1 ", title="second")
        other = make_video("https://youtube.com/watch?v=2", title="third")

        kept = TrendCurator().deduplicate([first, dup, other])

        assert [v.title for v in kept] == ["first", "third"]

    def test_preserves_encounter_order(self):
        videos = [make_video(f"https://tiktok.com/v/{i}", title=f"t{i}") for i in (3, 1, 2)]
        kept = TrendCurator().deduplicate(videos + videos)
        assert [v.title for v in kept] == ["t3", "t1", "t2"]

    def test_title_dedup_drops_near_duplicates(self):
        options = DeduplicationOptions(by_url=True, by_title=True, title_similarity_threshold=0.9)
        a = make_video("https://tiktok.com/v/1", title="buldak fire noodle challenge")
        b = make_video("https://instagram.com/reel/2", title="Buldak Fire Noodle Challenge", platform=Platform.INSTAGRAM)

        kept = TrendCurator().deduplicate([a, b], options)

        assert kept == [a]

    def test_title_dedup_keeps_distinct_titles(self):
        options = DeduplicationOptions(by_title=True, title_similarity_threshold=0.9)
        a = make_video("https://tiktok.com/v/1", title="a b c d e f g h i j")
        # 9 shared of 11 total, below 0.9
        b = make_video("https://tiktok.com/v/2", title="a b c d e f g h i k")

        kept = TrendCurator().deduplicate([a, b], options)

        assert kept == [a, b]

    def test_url_of_title_duplicate_stays_claimed(self):
        options = DeduplicationOptions(by_url=True, by_title=True)
        a = make_video("https://tiktok.com/v/1", title="buldak fire noodle challenge")
        b = make_video("https://tiktok.com/v/2", title="buldak fire noodle challenge")
        c = make_video("https://tiktok.com/v/2", title="something else entirely")

        kept = TrendCurator().deduplicate([a, b, c], options)

        assert kept == [a]

    def test_title_dedup_alone_ignores_urls(self):
        options = DeduplicationOptions(by_url=False, by_title=True)
        a = make_video("https://tiktok.com/v/1", title="one")
        b = make_video("https://tiktok.com/v/1", title="completely different")

        assert TrendCurator().deduplicate([a, b], options) == [a, b]

    def test_both_disabled_returns_copy(self):
        videos = [make_video("https://tiktok.com/v/1")] * 2
        kept = TrendCurator().deduplicate(videos, DeduplicationOptions(by_url=False, by_title=False))
        assert kept == videos
        assert kept is not videos


class TestBreakdown:
    def test_platform_breakdown_and_grouping(self):
        curator = TrendCurator()
        videos = [
            make_video("https://youtube.com/1"),
            make_video("https://tiktok.com/1", platform=Platform.TIKTOK),
            make_video("https://youtube.com/2"),
        ]

        assert curator.platform_breakdown(videos) == {Platform.YOUTUBE: 2, Platform.TIKTOK: 1}
        assert len(curator.group_by_platform(videos)[Platform.YOUTUBE]) == 2

    def test_top_tags(self):
        videos = [
            make_video("https://youtube.com/1", tags=["Ramen", "spicy"]),
            make_video("https://youtube.com/2", tags=["ramen"]),
        ]
        assert TrendCurator().top_tags(videos, top_n=1) == [("ramen", 2)]
