"""
Central configuration for all Sharpline services.
Uses pydantic-settings for env-based config with validation.
"""
from __future__ import annotations

from enum import Enum
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    DEV = "dev"
    STAGING = "staging"
    PRODUCTION = "production"


class Settings(BaseSettings):
    """Root settings shared across all services."""

    model_config = SettingsConfigDict(
        env_prefix="SL_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── General ──────────────────────────────────────────────
    environment: Environment = Environment.DEV
    debug: bool = False
    log_level: str = "INFO"
    instance_id: str = Field(default="", description="Pod/container ID bound into every log line")

    # ── Sports ───────────────────────────────────────────────
    sports: list[str] = Field(
        default=["nba"],
        description="Batch keys the worker refreshes each cycle.",
    )
    default_sport: str = "nba"

    # ── Sources ──────────────────────────────────────────────
    espn_site_api_url: str = "https://site.api.espn.com/apis/site/v2/sports"
    espn_rss_url: str = "https://www.espn.com/espn/rss"
    reddit_url: str = "https://www.reddit.com"
    reddit_user_agent: str = "sharpline/0.1 (sports intel aggregator)"
    source_timeout_s: float = Field(default=10.0, gt=0, description="Hard per-call timeout around each source fetch")
    source_request_timeout_s: float = 8.0
    source_max_concurrency: int = Field(
        default=0,
        ge=0,
        description="Max in-flight source fetches per cycle; 0 means unbounded.",
    )
    source_breaker_threshold: int = 5
    source_breaker_recovery_s: float = 60.0

    # ── Pipeline ─────────────────────────────────────────────
    snapshot_ttl_s: float = Field(default=300.0, description="How long a completed batch snapshot is served as fresh")
    cycle_interval_s: float = 300.0
    cycle_jitter_factor: float = 0.1

    # ── API ──────────────────────────────────────────────────
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_workers: int = 1
    cors_origins: list[str] = ["*"]
    api_background_refresh: bool = Field(
        default=False,
        description="Run the refresh loop inside the API process; leave off when a worker shares the Gemini key",
    )

    # ── Observability ────────────────────────────────────────
    metrics_enabled: bool = True
    metrics_port: int = 9090

    @field_validator("sports", mode="after")
    @classmethod
    def normalize_sports(cls, v: list[str]) -> list[str]:
        return [s.strip().lower() for s in v if s.strip()]

    @property
    def source_concurrency_limit(self) -> int | None:
        return self.source_max_concurrency or None


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Singleton access to validated settings."""
    return Settings()
