"""
Pydantic v2 domain models shared across all Matchday services.
These are the canonical wire/internal representations.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from shared.models.enums import FixtureStatus, ImageLoadStatus, MatchStrategy


# ── Base ────────────────────────────────────────────────────────────────
class DomainModel(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class FrozenModel(BaseModel):
    """Immutable snapshot; superseded by later fetches, never edited in place."""
    model_config = ConfigDict(from_attributes=True, populate_by_name=True, frozen=True)


# ── Fixtures ────────────────────────────────────────────────────────────
class FixtureRecord(FrozenModel):
    id: int
    kickoff: datetime
    status: FixtureStatus = FixtureStatus.UNKNOWN
    status_text: str = ""
    elapsed: Optional[int] = None
    home_team_id: Optional[int] = None
    home_team_name: str = ""
    home_team_logo: Optional[str] = None
    away_team_id: Optional[int] = None
    away_team_name: str = ""
    away_team_logo: Optional[str] = None
    venue_name: str = ""
    venue_city: str = ""
    league_id: Optional[int] = None
    league_name: str = ""
    league_country: str = ""
    league_logo: Optional[str] = None
    season: Optional[int] = None
    round: str = ""
    home_goals: Optional[int] = None
    away_goals: Optional[int] = None


class MatchDetails(DomainModel):
    """A fixture plus every sub-resource that could be fetched alongside it."""
    fixture: FixtureRecord
    raw: dict[str, Any] = Field(default_factory=dict)
    lineups: list[dict[str, Any]] = Field(default_factory=list)
    statistics: list[dict[str, Any]] = Field(default_factory=list)
    events: list[dict[str, Any]] = Field(default_factory=list)
    predictions: Optional[dict[str, Any]] = None
    odds: Optional[dict[str, Any]] = None
    missing: list[str] = Field(default_factory=list)


# ── Leagues / teams ─────────────────────────────────────────────────────
class LeagueSummary(FrozenModel):
    id: int
    name: str
    type: str = ""
    logo: Optional[str] = None
    country: str = ""
    country_flag: Optional[str] = None
    season: Optional[int] = None


class LeagueStats(DomainModel):
    league_id: int
    season: int
    total_matches: int = 0
    total_goals: int = 0
    average_goals_per_match: float = 0.0


class StandingRow(FrozenModel):
    rank: int
    team_id: int
    team_name: str
    team_logo: Optional[str] = None
    points: int = 0
    goals_diff: int = 0
    played: int = 0
    win: int = 0
    draw: int = 0
    lose: int = 0
    goals_for: int = 0
    goals_against: int = 0
    form: str = ""
    group: str = ""
    description: Optional[str] = None


class TeamProfile(FrozenModel):
    id: int
    name: str
    code: Optional[str] = None
    country: str = ""
    founded: Optional[int] = None
    logo: Optional[str] = None
    venue_name: str = ""
    venue_city: str = ""
    venue_capacity: Optional[int] = None


class ApiStatus(DomainModel):
    is_available: bool
    message: str
    details: Optional[str] = None


# ── Broadcast correlation ───────────────────────────────────────────────
class ScrapedCandidate(FrozenModel):
    """Match-like record from the scraped guide page. Untrusted text."""
    raw_home_name: str = ""
    raw_away_name: str = ""
    raw_venue_name: str = ""
    broadcast_text: str = ""
    raw_status_text: str = ""
    timestamp: Optional[datetime] = None


class CorrelationResult(FrozenModel):
    candidate: ScrapedCandidate
    matched_fixture_id: Optional[int] = None
    match_strategy: MatchStrategy = MatchStrategy.NONE
    match_slug: Optional[str] = None

    @property
    def matched(self) -> bool:
        return self.matched_fixture_id is not None


# ── Images ──────────────────────────────────────────────────────────────
class ImageHandle(FrozenModel):
    url: str
    content_type: str
    data: bytes = b""

    @property
    def size(self) -> int:
        return len(self.data)


class ImageLoadState(FrozenModel):
    url: str
    status: ImageLoadStatus
    handle: Optional[ImageHandle] = None
    error: Optional[str] = None
    attempts: int = 0
