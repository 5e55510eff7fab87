"""
Runtime configuration loaded from environment variables
"""

import os
from pathlib import Path
from typing import Optional
from pydantic import BaseModel, Field


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, str(default)))
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        return default


class Settings(BaseModel):
    """
    Settings for the collection and enrichment services.

    Environment Variables:
    - YOUTUBE_API_KEY: YouTube Data API v3 key
    - SERPAPI_API_KEY: SerpAPI key (TikTok / Instagram via Google Videos)
    - OPENAI_API_KEY / ANTHROPIC_API_KEY: AI provider keys
    - DEFAULT_AI_PROVIDER: "openai" or "anthropic"
    - REDIS_URL: cache / rate-limit store (in-memory when unset)
    - TRENDS_DB_PATH: SQLite database path (default ~/.shortform-trends/data.db)
    - TRENDS_HTTP_TIMEOUT: per-request timeout in seconds (default 30)
    - TRENDS_ADAPTER_TIMEOUT: deadline for one adapter task (default 60)
    - TRENDS_MAX_RETRIES: attempts for retryable failures (default 3)
    - TRENDS_RETRY_DELAY: backoff unit in seconds (default 1.0)
    - TRENDS_CACHE_TTL: AI response cache TTL in seconds (default 86400)
    - TRENDS_RATE_LIMIT_MAX / TRENDS_RATE_LIMIT_WINDOW: default limiter (10 per 60s)
    - TRENDS_MAX_CONCURRENCY: collector worker pool size (default 3)
    """

    youtube_api_key: Optional[str] = None
    serpapi_api_key: Optional[str] = None
    openai_api_key: Optional[str] = None
    anthropic_api_key: Optional[str] = None
    default_ai_provider: Optional[str] = None

    redis_url: Optional[str] = None
    db_path: Path = Field(default_factory=lambda: Path.home() / ".shortform-trends" / "data.db")

    http_timeout: float = 30.0
    adapter_timeout: float = 60.0
    max_retries: int = 3
    retry_delay: float = 1.0
    cache_ttl: int = 60 * 60 * 24
    rate_limit_max: int = 10
    rate_limit_window: int = 60
    max_concurrency: int = 3

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from the process environment, falling back to defaults"""
        db_path = os.getenv("TRENDS_DB_PATH")

        values = dict(
            youtube_api_key=os.getenv("YOUTUBE_API_KEY") or None,
            serpapi_api_key=os.getenv("SERPAPI_API_KEY") or None,
            openai_api_key=os.getenv("OPENAI_API_KEY") or None,
            anthropic_api_key=os.getenv("ANTHROPIC_API_KEY") or None,
            default_ai_provider=os.getenv("DEFAULT_AI_PROVIDER") or None,
            redis_url=os.getenv("REDIS_URL") or None,
            http_timeout=_env_float("TRENDS_HTTP_TIMEOUT", 30.0),
            adapter_timeout=_env_float("TRENDS_ADAPTER_TIMEOUT", 60.0),
            max_retries=_env_int("TRENDS_MAX_RETRIES", 3),
            retry_delay=_env_float("TRENDS_RETRY_DELAY", 1.0),
            cache_ttl=_env_int("TRENDS_CACHE_TTL", 60 * 60 * 24),
            rate_limit_max=_env_int("TRENDS_RATE_LIMIT_MAX", 10),
            rate_limit_window=_env_int("TRENDS_RATE_LIMIT_WINDOW", 60),
            max_concurrency=_env_int("TRENDS_MAX_CONCURRENCY", 3),
        )
        if db_path:
            values["db_path"] = Path(db_path)

        return cls(**values)

    def resolve_ai_provider(self) -> str:
        """Pick the provider: explicit default if its key exists, else whichever key is set"""
        if self.default_ai_provider == "anthropic" and self.anthropic_api_key:
            return "anthropic"
        if self.default_ai_provider == "openai" and self.openai_api_key:
            return "openai"
        if self.anthropic_api_key:
            return "anthropic"
        return "openai"

    def available_ai_providers(self) -> list[str]:
        providers = []
        if self.openai_api_key:
            providers.append("openai")
        if self.anthropic_api_key:
            providers.append("anthropic")
        return providers
