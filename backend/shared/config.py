"""
Central configuration for all Matchday services.
Uses pydantic-settings for env-based config with validation.
"""
from __future__ import annotations

import os
from enum import Enum
from functools import lru_cache
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    DEV = "dev"
    STAGING = "staging"
    PRODUCTION = "production"


class RateLimitPolicy(str, Enum):
    """How the fetcher treats HTTP 429 from upstream."""
    RETRY = "retry"
    FAIL_FAST = "fail_fast"


class Settings(BaseSettings):
    """Root settings shared across all services."""

    model_config = SettingsConfigDict(
        env_prefix="MD_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── General ──────────────────────────────────────────────
    environment: Environment = Environment.DEV
    log_level: str = "INFO"
    log_json: bool | None = Field(default=None, description="Force JSON (true) or console (false) rendering")
    instance_id: str = Field(default="", description="Pod/container ID bound to every log line")

    # ── API ──────────────────────────────────────────────────
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_workers: int = 1
    cors_origins: list[str] = ["*"]

    # ── Upstream football API ────────────────────────────────
    api_football_base_url: str = "https://v3.football.api-sports.io"
    api_football_key: str = ""
    api_football_timezone: str = "America/Sao_Paulo"
    api_football_timeout_s: float = 10.0
    api_status_timeout_s: float = 5.0
    api_football_season: Optional[int] = Field(default=None, description="Season year; defaults to the current year")

    # ── Fetch retry policy ───────────────────────────────────
    fetch_max_retries: int = 3
    fetch_base_delay_s: float = 1.0
    fetch_backoff_multiplier: float = 1.5
    fetch_max_delay_s: float = 5.0
    rate_limit_policy: RateLimitPolicy = RateLimitPolicy.RETRY

    # ── Caches ───────────────────────────────────────────────
    fixtures_cache_ttl_s: float = 60.0
    live_cache_ttl_s: float = 30.0
    reference_cache_ttl_s: float = 3600.0
    cache_max_entries: int = Field(default=512, ge=1, description="Per-cache entry limit; expired entries go first, then the oldest")
    slug_index_max_entries: int = Field(default=5000, ge=1, description="Slugs remembered for reverse lookup (least recently used dropped)")

    # ── Image loader ─────────────────────────────────────────
    image_max_concurrent_loads: int = 5
    image_max_retries: int = 3
    image_retry_delay_s: float = 1.0
    image_timeout_s: float = 10.0

    # ── Observability ────────────────────────────────────────
    metrics_enabled: bool = True
    metrics_port: int = 9090

    @field_validator("api_football_timezone")
    @classmethod
    def known_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"unknown timezone: {value!r}") from exc
        return value

    @model_validator(mode="after")
    def use_api_key_fallback(self) -> "Settings":
        """Use API_FOOTBALL_KEY from env (the provider's own name) when MD_API_FOOTBALL_KEY is not set."""
        if not self.api_football_key:
            self.api_football_key = os.environ.get("API_FOOTBALL_KEY", "")
        return self


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Singleton access to validated settings."""
    return Settings()
