"""
Broadcast enrichment configuration.
Uses the MD_BROADCAST_ prefix; shared settings still come from get_settings().
"""
from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BroadcastSettings(BaseSettings):
    """Scrape source, cache windows and refresh cadence for broadcast info."""

    model_config = SettingsConfigDict(
        env_prefix="MD_BROADCAST_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    enabled: bool = Field(default=True, description="Run the refresh scheduler at API startup")

    # Source
    page_url: str = Field(default="https://guiadejogos.com/", description="Guide page listing today's broadcasts")
    proxy_url: str = Field(default="https://api.allorigins.win/raw", description="CORS proxy; page URL is passed as ?url=")
    parser: Optional[str] = Field(
        default=None,
        description="Import path 'package.module:function' turning page HTML into ScrapedCandidate records",
    )

    # Fetching
    fetch_timeout_s: float = Field(default=5.0, description="HTTP timeout per scrape attempt")
    fetch_max_retries: int = Field(default=2, description="Extra attempts after the first one")
    fetch_retry_delay_s: float = Field(default=1.0, description="Fixed delay between scrape attempts")

    # Cache windows (seconds)
    candidates_ttl_s: float = Field(default=1800.0, description="Scraped candidate list validity")
    correlation_ttl_s: float = Field(default=300.0, description="Correlated candidate list validity")

    # Scheduler
    refresh_interval_s: float = Field(default=3600.0, description="Background re-scrape interval")


@lru_cache(maxsize=1)
def get_broadcast_settings() -> BroadcastSettings:
    return BroadcastSettings()
