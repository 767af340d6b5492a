"""
League and team REST endpoints.

GET /v1/leagues                      — Leagues for a season, priority leagues first.
GET /v1/leagues/{id}/standings       — Standings table.
GET /v1/leagues/{id}/teams           — Teams in a league.
GET /v1/leagues/{id}/fixtures        — Upcoming fixtures (next two weeks).
GET /v1/leagues/{id}/stats           — Aggregate goal stats over finished fixtures.
GET /v1/teams/{id}                   — Team profile.
GET /v1/teams/{id}/fixtures          — Last or next fixtures (?scope=last|next).
GET /v1/teams/{id}/leagues           — Leagues a team plays in.
"""
from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends, Query, Response

from shared.models.enums import TeamFixtureScope

from api.dependencies import get_fixture_service
from fixtures.service import FixtureService

router = APIRouter(prefix="/v1/leagues", tags=["leagues"])
teams_router = APIRouter(prefix="/v1/teams", tags=["teams"])

REFERENCE_CACHE_CONTROL = "public, max-age=300"


@router.get("")
async def list_leagues(
    response: Response,
    season: Optional[int] = Query(default=None, ge=1900, le=2100),
    fixtures: FixtureService = Depends(get_fixture_service),
) -> dict[str, Any]:
    year = season or fixtures.current_season()
    leagues = await fixtures.get_leagues(year)
    response.headers["Cache-Control"] = REFERENCE_CACHE_CONTROL
    return {
        "season": year,
        "count": len(leagues),
        "leagues": [lg.model_dump(mode="json") for lg in leagues],
    }


@router.get("/{league_id}/standings")
async def league_standings(
    league_id: int,
    season: Optional[int] = Query(default=None, ge=1900, le=2100),
    fixtures: FixtureService = Depends(get_fixture_service),
) -> dict[str, Any]:
    rows = await fixtures.get_standings(league_id, season)
    return {
        "league_id": league_id,
        "standings": [row.model_dump(mode="json") for row in rows],
    }


@router.get("/{league_id}/teams")
async def league_teams(
    league_id: int,
    season: Optional[int] = Query(default=None, ge=1900, le=2100),
    fixtures: FixtureService = Depends(get_fixture_service),
) -> dict[str, Any]:
    teams = await fixtures.get_league_teams(league_id, season)
    return {
        "league_id": league_id,
        "teams": [t.model_dump(mode="json") for t in teams],
    }


@router.get("/{league_id}/fixtures")
async def league_upcoming(
    league_id: int,
    season: Optional[int] = Query(default=None, ge=1900, le=2100),
    fixtures: FixtureService = Depends(get_fixture_service),
) -> dict[str, Any]:
    upcoming = await fixtures.get_league_upcoming(league_id, season)
    return {
        "league_id": league_id,
        "count": len(upcoming),
        "matches": [f.model_dump(mode="json") for f in upcoming],
    }


@router.get("/{league_id}/stats")
async def league_stats(
    league_id: int,
    season: Optional[int] = Query(default=None, ge=1900, le=2100),
    fixtures: FixtureService = Depends(get_fixture_service),
) -> dict[str, Any]:
    stats = await fixtures.get_league_stats(league_id, season)
    return stats.model_dump(mode="json")


# ── Teams ───────────────────────────────────────────────────────────────


@teams_router.get("/{team_id}")
async def team_profile(
    team_id: int,
    response: Response,
    fixtures: FixtureService = Depends(get_fixture_service),
) -> dict[str, Any]:
    team = await fixtures.get_team(team_id)
    response.headers["Cache-Control"] = REFERENCE_CACHE_CONTROL
    return team.model_dump(mode="json")


@teams_router.get("/{team_id}/fixtures")
async def team_fixtures(
    team_id: int,
    scope: TeamFixtureScope = Query(default=TeamFixtureScope.NEXT),
    season: Optional[int] = Query(default=None, ge=1900, le=2100),
    fixtures: FixtureService = Depends(get_fixture_service),
) -> dict[str, Any]:
    matches = await fixtures.get_team_fixtures(team_id, scope, season)
    return {
        "team_id": team_id,
        "scope": scope.value,
        "matches": [f.model_dump(mode="json") for f in matches],
    }


@teams_router.get("/{team_id}/leagues")
async def team_leagues(
    team_id: int,
    season: Optional[int] = Query(default=None, ge=1900, le=2100),
    fixtures: FixtureService = Depends(get_fixture_service),
) -> dict[str, Any]:
    leagues = await fixtures.get_team_leagues(team_id, season)
    return {
        "team_id": team_id,
        "leagues": [lg.model_dump(mode="json") for lg in leagues],
    }
