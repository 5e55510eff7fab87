"""
Tests for the SQLite storage layer.
"""

from datetime import datetime, timezone

import pytest

from shortform_trends.models import AnalysisResult, Platform, UsageRecord
from shortform_trends.storage import Storage

from conftest import ANALYSIS_PAYLOAD, make_video


@pytest.fixture
async def storage(tmp_path):
    async with Storage(str(tmp_path / "nested" / "trends.db")) as db:
        yield db


class TestVideos:
    async def test_save_and_get(self, storage):
        published = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)
        video = make_video(
            "https://youtube.com/shorts/abc",
            published_at=published,
            view_count=1500,
            tags=["ramen", "spicy"],
            duration_seconds=42,
        )

        assert await storage.save_videos([video], keyword="ramen") == 1

        loaded = await storage.get_video(video.id)
        assert loaded.title == video.title
        assert loaded.published_at == published
        assert loaded.tags == ["ramen", "spicy"]
        assert loaded.duration_seconds == 42
        assert loaded.platform == Platform.YOUTUBE

    async def test_missing_video(self, storage):
        assert await storage.get_video("nope") is None

    async def test_upsert_by_id(self, storage):
        video = make_video("https://youtube.com/shorts/abc", view_count=1)
        await storage.save_videos([video], keyword="ramen")
        await storage.save_videos([video.model_copy(update={"view_count": 99})], keyword="ramen")

        videos = await storage.get_videos()
        assert len(videos) == 1
        assert videos[0].view_count == 99

    async def test_filters(self, storage):
        await storage.save_videos([make_video("https://youtube.com/1")], keyword="ramen")
        await storage.save_videos(
            [make_video("https://tiktok.com/1", platform=Platform.TIKTOK)], keyword="ramen"
        )
        await storage.save_videos([make_video("https://youtube.com/2")], keyword="jelly")

        assert len(await storage.get_videos(keyword="ramen")) == 2
        assert len(await storage.get_videos(keyword="ramen", platform=Platform.TIKTOK)) == 1
        assert len(await storage.get_videos(limit=1)) == 1

    async def test_cleanup_old_videos(self, storage):
        old = make_video("https://youtube.com/old", collected_at=datetime(2020, 1, 1, tzinfo=timezone.utc))
        fresh = make_video("https://youtube.com/new")
        await storage.save_videos([old, fresh], keyword="ramen")

        assert await storage.cleanup_old_videos(days=30) == 1
        assert [v.video_url for v in await storage.get_videos()] == ["https://youtube.com/new"]


class TestAnalysesAndUsage:
    async def test_save_analysis(self, storage):
        analysis = AnalysisResult.model_validate(ANALYSIS_PAYLOAD)

        analysis_id = await storage.save_analysis(analysis)

        assert analysis_id
        assert await storage.get_analyses(trend_name="ramen") == [analysis]
        assert await storage.get_analyses(trend_name="other") == []

    async def test_usage_summary(self, storage):
        await storage.save_usage(UsageRecord(
            provider="openai", model="gpt-4-mini", prompt_tokens=120, completion_tokens=80,
            total_tokens=200, success=True, attempts=1, estimated_cost_usd=0.000066,
        ))
        await storage.save_usage(UsageRecord(provider="openai", model="gpt-4-mini", success=True, cached=True))
        await storage.save_usage(UsageRecord(
            provider="anthropic", model="claude-sonnet", success=False, attempts=3, error="timeout",
        ))

        summary = await storage.get_usage_summary()

        assert summary["total_calls"] == 3
        assert summary["total_tokens"] == 200
        assert summary["total_cost_usd"] == pytest.approx(0.000066)
        openai_row = next(m for m in summary["by_model"] if m["provider"] == "openai")
        assert openai_row["calls"] == 2
        assert openai_row["cache_hits"] == 1
        assert openai_row["successes"] == 2

    async def test_stats(self, storage):
        await storage.save_videos([make_video("https://youtube.com/1"), make_video("https://youtube.com/2")], keyword="ramen")
        await storage.save_analysis(AnalysisResult.model_validate(ANALYSIS_PAYLOAD))

        stats = await storage.get_stats()

        assert stats["total_videos"] == 2
        assert stats["total_analyses"] == 1
        assert stats["total_api_calls"] == 0
        assert stats["videos_by_platform"] == {"YouTube": 2}
        assert stats["top_keywords"] == {"ramen": 2}
