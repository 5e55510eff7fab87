"""
SQLite storage layer for collected videos, analyses and API usage
"""

import json
import aiosqlite
from datetime import datetime
from pathlib import Path
from typing import Optional
import uuid

from shortform_trends.models import (
    AnalysisResult,
    NormalizedTrendVideo,
    Platform,
    UsageRecord,
)


DEFAULT_DB_PATH = Path.home() / ".shortform-trends" / "data.db"


class Storage:
    """
    Async SQLite storage for videos, trend analyses and usage records.
    """

    def __init__(self, db_path: Optional[str] = None):
        """
        Initialize storage.

        Args:
            db_path: Path to SQLite database (defaults to ~/.shortform-trends/data.db)
        """
        self.db_path = Path(db_path) if db_path else DEFAULT_DB_PATH
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._connection: Optional[aiosqlite.Connection] = None

    async def connect(self):
        """Connect to the database and initialize tables"""
        self._connection = await aiosqlite.connect(str(self.db_path))
        self._connection.row_factory = aiosqlite.Row
        await self._init_tables()

    async def close(self):
        if self._connection:
            await self._connection.close()
            self._connection = None

    async def _init_tables(self):
        await self._connection.executescript("""
            CREATE TABLE IF NOT EXISTS videos (
                id TEXT PRIMARY KEY,
                keyword TEXT,
                title TEXT NOT NULL,
                platform TEXT NOT NULL,
                thumbnail_url TEXT,
                video_url TEXT NOT NULL,
                published_at TEXT,
                duration_seconds INTEGER,
                creator_name TEXT,
                creator_id TEXT,
                view_count INTEGER,
                like_count INTEGER,
                comment_count INTEGER,
                description TEXT,
                tags TEXT,
                clip_url TEXT,
                source TEXT NOT NULL,
                collected_at TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS trend_analyses (
                id TEXT PRIMARY KEY,
                trend_name TEXT NOT NULL,
                platform TEXT NOT NULL,
                country TEXT NOT NULL,
                viral_score REAL NOT NULL,
                samyang_relevance REAL NOT NULL,
                payload TEXT NOT NULL,
                created_at TEXT DEFAULT CURRENT_TIMESTAMP
            );

            CREATE TABLE IF NOT EXISTS api_usage (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                provider TEXT NOT NULL,
                model TEXT NOT NULL,
                prompt_tokens INTEGER DEFAULT 0,
                completion_tokens INTEGER DEFAULT 0,
                total_tokens INTEGER DEFAULT 0,
                duration_ms INTEGER DEFAULT 0,
                success INTEGER NOT NULL,
                cached INTEGER DEFAULT 0,
                attempts INTEGER DEFAULT 0,
                error TEXT,
                estimated_cost_usd REAL,
                created_at TEXT NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_videos_keyword ON videos(keyword);
            CREATE INDEX IF NOT EXISTS idx_videos_platform ON videos(platform);
            CREATE INDEX IF NOT EXISTS idx_videos_collected ON videos(collected_at DESC);
            CREATE INDEX IF NOT EXISTS idx_analyses_created ON trend_analyses(created_at DESC);
            CREATE INDEX IF NOT EXISTS idx_usage_created ON api_usage(created_at DESC);
        """)
        await self._connection.commit()

    def _row_to_video(self, row: aiosqlite.Row) -> NormalizedTrendVideo:
        return NormalizedTrendVideo(
            id=row["id"],
            title=row["title"],
            platform=Platform(row["platform"]),
            thumbnail_url=row["thumbnail_url"],
            video_url=row["video_url"],
            published_at=datetime.fromisoformat(row["published_at"]) if row["published_at"] else None,
            duration_seconds=row["duration_seconds"],
            creator_name=row["creator_name"],
            creator_id=row["creator_id"],
            view_count=row["view_count"],
            like_count=row["like_count"],
            comment_count=row["comment_count"],
            description=row["description"],
            tags=json.loads(row["tags"]) if row["tags"] else [],
            clip_url=row["clip_url"],
            source=row["source"],
            collected_at=datetime.fromisoformat(row["collected_at"]),
        )

    async def save_videos(self, videos: list[NormalizedTrendVideo], keyword: Optional[str] = None) -> int:
        """Upsert videos by id; returns the number written"""
        rows = [
            (
                v.id, keyword, v.title, v.platform.value, v.thumbnail_url, v.video_url,
                v.published_at.isoformat() if v.published_at else None,
                v.duration_seconds, v.creator_name, v.creator_id,
                v.view_count, v.like_count, v.comment_count, v.description,
                json.dumps(v.tags), v.clip_url, v.source, v.collected_at.isoformat(),
            )
            for v in videos
        ]
        await self._connection.executemany("""
            INSERT OR REPLACE INTO videos
            (id, keyword, title, platform, thumbnail_url, video_url, published_at,
             duration_seconds, creator_name, creator_id, view_count, like_count,
             comment_count, description, tags, clip_url, source, collected_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """, rows)
        await self._connection.commit()
        return len(rows)

    async def get_video(self, video_id: str) -> Optional[NormalizedTrendVideo]:
        async with self._connection.execute(
            "SELECT * FROM videos WHERE id = ?", (video_id,)
        ) as cursor:
            row = await cursor.fetchone()
            return self._row_to_video(row) if row else None

    async def get_videos(
        self,
        limit: int = 25,
        offset: int = 0,
        keyword: Optional[str] = None,
        platform: Optional[Platform] = None,
    ) -> list[NormalizedTrendVideo]:
        """Get videos with optional filters, newest first"""
        query = "SELECT * FROM videos WHERE 1 = 1"
        params = []

        if keyword:
            query += " AND keyword = ?"
            params.append(keyword)

        if platform:
            query += " AND platform = ?"
            params.append(platform.value)

        query += " ORDER BY collected_at DESC, view_count DESC LIMIT ? OFFSET ?"
        params.extend([limit, offset])

        async with self._connection.execute(query, params) as cursor:
            rows = await cursor.fetchall()
            return [self._row_to_video(row) for row in rows]

    async def save_analysis(self, analysis: AnalysisResult) -> str:
        analysis_id = str(uuid.uuid4())
        await self._connection.execute("""
            INSERT INTO trend_analyses
            (id, trend_name, platform, country, viral_score, samyang_relevance, payload)
            VALUES (?, ?, ?, ?, ?, ?, ?)
        """, (
            analysis_id, analysis.trend_name, analysis.platform, analysis.country.value,
            analysis.viral_score, analysis.samyang_relevance,
            analysis.model_dump_json(),
        ))
        await self._connection.commit()
        return analysis_id

    async def get_analyses(self, limit: int = 25, trend_name: Optional[str] = None) -> list[AnalysisResult]:
        query = "SELECT payload FROM trend_analyses"
        params = []

        if trend_name:
            query += " WHERE trend_name = ?"
            params.append(trend_name)

        query += " ORDER BY created_at DESC LIMIT ?"
        params.append(limit)

        async with self._connection.execute(query, params) as cursor:
            rows = await cursor.fetchall()
            return [AnalysisResult.model_validate_json(row["payload"]) for row in rows]

    async def save_usage(self, record: UsageRecord):
        """Persist one usage record; matches the enricher's usage sink signature"""
        await self._connection.execute("""
            INSERT INTO api_usage
            (provider, model, prompt_tokens, completion_tokens, total_tokens,
             duration_ms, success, cached, attempts, error, estimated_cost_usd, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """, (
            record.provider, record.model, record.prompt_tokens,
            record.completion_tokens, record.total_tokens, record.duration_ms,
            1 if record.success else 0, 1 if record.cached else 0,
            record.attempts, record.error, record.estimated_cost_usd,
            record.created_at.isoformat(),
        ))
        await self._connection.commit()

    async def get_usage_summary(self, days: Optional[int] = None) -> dict:
        """Aggregate usage per provider/model, optionally over the last N days"""
        where = ""
        params = []
        if days:
            where = "WHERE datetime(created_at) >= datetime('now', ?)"
            params.append(f"-{days} days")

        async with self._connection.execute(f"""
            SELECT provider, model,
                   COUNT(*) AS calls,
                   SUM(success) AS successes,
                   SUM(cached) AS cache_hits,
                   SUM(total_tokens) AS tokens,
                   SUM(COALESCE(estimated_cost_usd, 0)) AS cost
            FROM api_usage {where}
            GROUP BY provider, model
            ORDER BY calls DESC
        """, params) as cursor:
            rows = await cursor.fetchall()

        by_model = [
            {
                "provider": row["provider"],
                "model": row["model"],
                "calls": row["calls"],
                "successes": row["successes"] or 0,
                "cache_hits": row["cache_hits"] or 0,
                "tokens": row["tokens"] or 0,
                "cost_usd": round(row["cost"] or 0, 6),
            }
            for row in rows
        ]

        return {
            "total_calls": sum(m["calls"] for m in by_model),
            "total_tokens": sum(m["tokens"] for m in by_model),
            "total_cost_usd": round(sum(m["cost_usd"] for m in by_model), 6),
            "by_model": by_model,
        }

    async def get_stats(self) -> dict:
        stats = {}

        async with self._connection.execute("SELECT COUNT(*) FROM videos") as cursor:
            row = await cursor.fetchone()
            stats["total_videos"] = row[0]

        async with self._connection.execute("SELECT COUNT(*) FROM trend_analyses") as cursor:
            row = await cursor.fetchone()
            stats["total_analyses"] = row[0]

        async with self._connection.execute("SELECT COUNT(*) FROM api_usage") as cursor:
            row = await cursor.fetchone()
            stats["total_api_calls"] = row[0]

        async with self._connection.execute("""
            SELECT platform, COUNT(*) as count FROM videos GROUP BY platform
        """) as cursor:
            rows = await cursor.fetchall()
            stats["videos_by_platform"] = {row["platform"]: row["count"] for row in rows}

        async with self._connection.execute("""
            SELECT keyword, COUNT(*) as count FROM videos
            WHERE keyword IS NOT NULL GROUP BY keyword ORDER BY count DESC LIMIT 10
        """) as cursor:
            rows = await cursor.fetchall()
            stats["top_keywords"] = {row["keyword"]: row["count"] for row in rows}

        return stats

    async def cleanup_old_videos(self, days: int = 30) -> int:
        """Remove videos collected more than ``days`` ago"""
        result = await self._connection.execute("""
            DELETE FROM videos
            WHERE datetime(collected_at) < datetime('now', ?)
        """, (f"-{days} days",))
        await self._connection.commit()
        return result.rowcount

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
