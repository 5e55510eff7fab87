"""
Tests for TrendCollector fan-out and aggregation.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, patch

import pytest
from pydantic import ValidationError

from shortform_trends.clients import TikTokClient, YouTubeClient
from shortform_trends.collector import TrendCollector
from shortform_trends.curator import TrendCurator
from shortform_trends.errors import MissingCredentialError, QuotaExceededError
from shortform_trends.models import CollectionOptions, Country, DateFilter, DeduplicationOptions, Platform

from conftest import FakePlatformClient, make_video


def ramen_batch() -> list:
    """Seven raw items with two distinct URL-duplicate pairs"""
    return [
        make_video("https://youtube.com/watch?v=r1", title="ramen 1"),
        make_video("https://youtube.com/watch?v=r2", title="ramen 2"),
        make_video("https://YOUTUBE.com/watch?v=r1 ", title="ramen 1 again"),
        make_video("https://youtube.com/watch?v=r3", title="ramen 3"),
        make_video("https://youtube.com/watch?v=r4", title="ramen 4"),
        make_video("https://youtube.com/watch?v=r3", title="ramen 3 again"),
        make_video("https://youtube.com/watch?v=r5", title="ramen 5"),
    ]


class TestCollect:
    async def test_end_to_end_dedup(self):
        youtube = FakePlatformClient(Platform.YOUTUBE, items=ramen_batch())
        collector = TrendCollector({Platform.YOUTUBE: youtube})

        result = await collector.collect("ramen", CollectionOptions(platforms=[Platform.YOUTUBE]))

        assert result.keyword == "ramen"
        assert result.total_videos == 5
        assert result.breakdown == {Platform.YOUTUBE: 5}
        assert [v.title for v in result.videos] == ["ramen 1", "ramen 2", "ramen 3", "ramen 4", "ramen 5"]
        assert result.errors == []

    async def test_failing_adapter_is_reported_not_raised(self):
        youtube = FakePlatformClient(Platform.YOUTUBE, error=MissingCredentialError("YOUTUBE_API_KEY"))
        collector = TrendCollector({Platform.YOUTUBE: youtube})

        result = await collector.collect(
            "ramen",
            CollectionOptions(include_youtube=True, include_tiktok=False, include_instagram=False),
        )

        assert result.total_videos == 0
        assert result.videos == []
        assert len(result.errors) == 1
        assert result.errors[0].platform == Platform.YOUTUBE
        assert result.errors[0].kind == "missing_credential"
        assert result.errors[0].error.endswith("Set YOUTUBE_API_KEY in the environment or .env file")

    async def test_partial_failure_keeps_other_platforms(self):
        clients = {
            Platform.YOUTUBE: FakePlatformClient(Platform.YOUTUBE, error=QuotaExceededError("quota")),
            Platform.TIKTOK: FakePlatformClient(
                Platform.TIKTOK, items=[make_video("https://tiktok.com/v/1", platform=Platform.TIKTOK)]
            ),
            Platform.INSTAGRAM: FakePlatformClient(
                Platform.INSTAGRAM, items=[make_video("https://instagram.com/reel/1", platform=Platform.INSTAGRAM)]
            ),
        }

        result = await TrendCollector(clients).collect("ramen")

        assert result.total_videos == 2
        assert result.breakdown == {Platform.TIKTOK: 1, Platform.INSTAGRAM: 1}
        assert [e.kind for e in result.errors] == ["quota_exceeded"]

    async def test_unexpected_exception_becomes_error_entry(self):
        youtube = FakePlatformClient(Platform.YOUTUBE, error=RuntimeError("boom"))

        result = await TrendCollector({Platform.YOUTUBE: youtube}).collect(
            "ramen", CollectionOptions(platforms=[Platform.YOUTUBE])
        )

        assert result.errors[0].error == "boom"

    async def test_all_platforms_failing(self):
        clients = {
            p: FakePlatformClient(p, error=QuotaExceededError("quota"))
            for p in (Platform.YOUTUBE, Platform.TIKTOK, Platform.INSTAGRAM)
        }

        result = await TrendCollector(clients).collect("ramen")

        assert result.total_videos == 0
        assert {e.platform for e in result.errors} == {Platform.YOUTUBE, Platform.TIKTOK, Platform.INSTAGRAM}

    async def test_missing_client_is_reported(self):
        result = await TrendCollector({}).collect("ramen", CollectionOptions(platforms=[Platform.TIKTOK]))

        assert result.errors[0].platform == Platform.TIKTOK
        assert result.errors[0].source == "collector"

    async def test_slow_adapter_times_out(self):
        clients = {
            Platform.YOUTUBE: FakePlatformClient(Platform.YOUTUBE, items=[make_video("https://youtube.com/1")], delay=5),
            Platform.TIKTOK: FakePlatformClient(
                Platform.TIKTOK, items=[make_video("https://tiktok.com/1", platform=Platform.TIKTOK)]
            ),
        }
        collector = TrendCollector(clients, adapter_timeout=0.05)

        result = await collector.collect("ramen", CollectionOptions(platforms=[Platform.YOUTUBE, Platform.TIKTOK]))

        assert result.total_videos == 1
        assert result.errors[0].platform == Platform.YOUTUBE
        assert result.errors[0].kind == "transient"

    async def test_adapters_run_concurrently(self):
        clients = {
            p: FakePlatformClient(p, delay=0.2)
            for p in (Platform.YOUTUBE, Platform.TIKTOK, Platform.INSTAGRAM)
        }
        collector = TrendCollector(clients, max_concurrency=3)

        loop = asyncio.get_running_loop()
        started = loop.time()
        await collector.collect("ramen")
        elapsed = loop.time() - started

        # Sequential execution would take at least 0.6s
        assert elapsed < 0.5

    async def test_dedup_across_platforms_follows_platform_order(self):
        shared = "https://example.com/v/1"
        clients = {
            Platform.YOUTUBE: FakePlatformClient(Platform.YOUTUBE, items=[make_video(shared, title="from youtube")]),
            Platform.TIKTOK: FakePlatformClient(
                Platform.TIKTOK, items=[make_video(shared, title="from tiktok", platform=Platform.TIKTOK)], delay=0.01
            ),
        }

        result = await TrendCollector(clients).collect(
            "ramen", CollectionOptions(platforms=[Platform.TIKTOK, Platform.YOUTUBE])
        )

        assert [v.title for v in result.videos] == ["from youtube"]

    async def test_quota_is_reported_for_youtube(self):
        youtube = FakePlatformClient(Platform.YOUTUBE, items=[make_video("https://youtube.com/1")], quota=101)

        result = await TrendCollector({Platform.YOUTUBE: youtube}).collect(
            "ramen", CollectionOptions(platforms=[Platform.YOUTUBE])
        )

        assert result.quota_used == {"youtube": 101}

    async def test_filters_carry_country_language_and_dates(self):
        after = datetime(2025, 1, 1, tzinfo=timezone.utc)
        youtube = FakePlatformClient(Platform.YOUTUBE)
        tiktok = FakePlatformClient(Platform.TIKTOK)
        options = CollectionOptions(
            max_results=7,
            country=Country.JP,
            date_filter=DateFilter(published_after=after),
        )

        await TrendCollector({Platform.YOUTUBE: youtube, Platform.TIKTOK: tiktok}).collect("ramen", options)

        _, yt_filters = youtube.calls[0]
        _, tt_filters = tiktok.calls[0]
        assert yt_filters.max_results == 7
        assert yt_filters.language == "ja"
        assert yt_filters.published_after == after
        assert tt_filters.country == Country.JP
        assert tt_filters.published_after is None

    async def test_explicit_platforms_override_flags(self):
        youtube = FakePlatformClient(Platform.YOUTUBE)
        tiktok = FakePlatformClient(Platform.TIKTOK)
        options = CollectionOptions(platforms=[Platform.TIKTOK], include_tiktok=False)

        await TrendCollector({Platform.YOUTUBE: youtube, Platform.TIKTOK: tiktok}).collect("ramen", options)

        assert youtube.calls == []
        assert len(tiktok.calls) == 1

    @pytest.mark.parametrize("keyword", ["", "   ", "x" * 101])
    async def test_invalid_keyword(self, keyword):
        with pytest.raises(ValueError):
            await TrendCollector({}).collect(keyword)

    def test_non_collectable_platform_rejected(self):
        with pytest.raises(ValueError):
            CollectionOptions(platforms=[Platform.FACEBOOK])

    def test_result_is_immutable(self):
        result = asyncio.run(TrendCollector({}).collect("ramen", CollectionOptions(platforms=[Platform.YOUTUBE])))
        with pytest.raises(ValidationError):
            result.total_videos = 10


class TestCollectTrending:
    async def test_uses_last_seven_days_on_all_platforms(self):
        clients = {p: FakePlatformClient(p) for p in (Platform.YOUTUBE, Platform.TIKTOK, Platform.INSTAGRAM)}

        await TrendCollector(clients).collect_trending("ramen", max_results=4)

        _, filters = clients[Platform.YOUTUBE].calls[0]
        week_ago = datetime.now(timezone.utc) - timedelta(days=7)
        assert abs((filters.published_after - week_ago).total_seconds()) < 60
        assert filters.max_results == 4
        assert all(len(c.calls) == 1 for c in clients.values())


class BrokenItemClient(FakePlatformClient):
    """Raises from normalize for items titled "broken" """

    def normalize(self, item):
        if item.title == "broken":
            raise ValueError("cannot map item")
        return item


class TestCollectorWiring:
    async def test_curator_options_are_applied(self):
        youtube = FakePlatformClient(
            Platform.YOUTUBE,
            items=[
                make_video("https://youtube.com/watch?v=1", title="buldak fire challenge"),
                make_video("https://youtube.com/watch?v=2", title="Buldak Fire Challenge"),
            ],
        )
        collector = TrendCollector(
            {Platform.YOUTUBE: youtube},
            curator=TrendCurator(DeduplicationOptions(by_title=True)),
        )

        result = await collector.collect("ramen", CollectionOptions(platforms=[Platform.YOUTUBE]))

        assert result.total_videos == 1
        assert result.videos[0].video_url == "https://youtube.com/watch?v=1"

    async def test_default_curator_dedups_by_url_only(self):
        youtube = FakePlatformClient(
            Platform.YOUTUBE,
            items=[
                make_video("https://youtube.com/watch?v=1", title="same title"),
                make_video("https://youtube.com/watch?v=2", title="same title"),
            ],
        )

        result = await TrendCollector({Platform.YOUTUBE: youtube}).collect(
            "ramen", CollectionOptions(platforms=[Platform.YOUTUBE])
        )

        assert result.total_videos == 2

    async def test_unmappable_item_is_skipped(self):
        youtube = BrokenItemClient(
            Platform.YOUTUBE,
            items=[make_video("https://youtube.com/1", title="broken"), make_video("https://youtube.com/2", title="ok")],
        )

        result = await TrendCollector({Platform.YOUTUBE: youtube}).collect(
            "ramen", CollectionOptions(platforms=[Platform.YOUTUBE])
        )

        assert [v.title for v in result.videos] == ["ok"]
        assert result.errors == []

    async def test_malformed_serpapi_result_keeps_good_ones(self):
        payload = {
            "short_videos": [
                {"title": "good", "link": "https://www.tiktok.com/@a/video/1", "source": "TikTok"},
                {"title": None, "thumbnail": None, "link": "https://www.tiktok.com/@a/video/2", "source": "TikTok"},
                {"title": "bad position", "link": "https://www.tiktok.com/@a/video/3", "source": "TikTok",
                 "position": "first"},
            ]
        }
        tiktok = TikTokClient(api_key="k")

        with patch.object(tiktok, "_request", AsyncMock(return_value=payload)):
            result = await TrendCollector({Platform.TIKTOK: tiktok}).collect(
                "ramen", CollectionOptions(platforms=[Platform.TIKTOK])
            )

        assert [v.title for v in result.videos] == ["good", ""]
        assert result.errors == []

    async def test_concurrent_collects_report_their_own_quota(self):
        async def request(url, params=None):
            await asyncio.sleep(0.01)
            if url.endswith("/search"):
                return {"items": [{"id": {"videoId": "a"}}]}
            return {
                "items": [{
                    "id": "a",
                    "snippet": {"title": "Buldak challenge", "publishedAt": "2025-01-02T03:04:05Z"},
                    "contentDetails": {"duration": "PT30S"},
                    "statistics": {"viewCount": "10"},
                }]
            }

        youtube = YouTubeClient(api_key="k")
        collector = TrendCollector({Platform.YOUTUBE: youtube})
        options = CollectionOptions(platforms=[Platform.YOUTUBE])

        with patch.object(youtube, "_request", side_effect=request):
            first, second = await asyncio.gather(
                collector.collect("ramen", options),
                collector.collect("buldak", options),
            )

        assert first.quota_used == {"youtube": 101}
        assert second.quota_used == {"youtube": 101}
        assert first.total_videos == second.total_videos == 1
