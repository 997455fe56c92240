"""
Reasoning client configuration.
Uses the SL_REASONING_ prefix; quota defaults match the Gemini free tier.
"""
from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ReasoningSettings(BaseSettings):
    """Reasoning-specific settings; use get_settings() for everything else."""

    model_config = SettingsConfigDict(
        env_prefix="SL_REASONING_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Provider
    api_key: str = Field(default="", description="Gemini API key; the client is disabled without one")
    model: str = Field(default="gemini-2.0-flash", description="Model name used in the generateContent path")
    base_url: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta/models",
        description="Base URL; requests go to {base_url}/{model}:generateContent",
    )

    # Window quota
    window_s: float = Field(default=60.0, gt=0, description="Fixed rate-limit window length")
    max_requests_per_window: int = Field(default=14, ge=1, description="Network calls allowed per window")

    # Quota cooldown
    cooldown_margin_s: float = Field(default=5.0, ge=0, description="Added to the provider retry delay after a 429")
    default_retry_delay_s: float = Field(default=60.0, ge=0, description="Cooldown when a 429 carries no delay")
    error_retry_delay_s: float = Field(default=5.0, ge=0, description="Pause before retrying a timeout or 5xx")
    max_retries: int = Field(default=2, ge=0, description="Retries after the first attempt")

    # Cache
    cache_ttl_s: float = Field(default=600.0, gt=0, description="Response cache entry lifetime")
    cache_max_size: int = Field(default=100, ge=1, description="Max cached responses before oldest eviction")
    cache_key_chars: int = Field(default=200, ge=1, description="Prompt prefix length used for the cache fingerprint")

    # Transport
    request_timeout_s: float = Field(default=30.0, gt=0, description="Hard deadline per network call")
    max_concurrent: int = Field(default=2, ge=1, description="Max in-flight network calls")

    # Generation defaults
    temperature: float = Field(default=0.3, ge=0, le=2)
    max_output_tokens: int = Field(default=1024, ge=1)
    top_p: float = Field(default=0.8, gt=0, le=1)

    @property
    def is_configured(self) -> bool:
        return len(self.api_key.strip()) > 10


@lru_cache(maxsize=1)
def get_reasoning_settings() -> ReasoningSettings:
    """Singleton access to reasoning settings."""
    return ReasoningSettings()
