"""Shared fakes for the unit tests: clock, sleep recorder, fixture/envelope builders, fake API client."""
from __future__ import annotations

import asyncio
from datetime import date, datetime, timezone
from typing import Any, Optional

import pytest

from shared.errors import TransientUpstreamError
from shared.models.domain import ApiStatus, FixtureRecord, LeagueSummary, TeamProfile


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class SleepRecorder:
    """Stands in for asyncio.sleep; records requested delays and returns at once."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sleeps() -> SleepRecorder:
    return SleepRecorder()


def make_fixture(
    fixture_id: int,
    home: str,
    away: str,
    *,
    venue: str = "",
    league: str = "Brasileirão Série A",
    kickoff: datetime | None = None,
    **extra: Any,
) -> FixtureRecord:
    return FixtureRecord(
        id=fixture_id,
        kickoff=kickoff or datetime(2024, 5, 12, 19, 0, tzinfo=timezone.utc),
        home_team_name=home,
        away_team_name=away,
        venue_name=venue,
        league_name=league,
        **extra,
    )


def api_fixture_item(
    fixture_id: int,
    home: str,
    away: str,
    *,
    status: str = "NS",
    venue: str = "",
    date: str = "2024-05-12T16:00:00-03:00",
    league_id: int = 71,
    league: str = "Serie A",
    goals: tuple[int | None, int | None] = (None, None),
) -> dict[str, Any]:
    """One element of the API-Football /fixtures ``response`` list."""
    return {
        "fixture": {
            "id": fixture_id,
            "date": date,
            "status": {"short": status, "long": status, "elapsed": None},
            "venue": {"name": venue, "city": ""},
        },
        "league": {
            "id": league_id,
            "name": league,
            "country": "Brazil",
            "logo": None,
            "season": 2024,
            "round": "Regular Season - 5",
        },
        "teams": {
            "home": {"id": fixture_id * 10 + 1, "name": home, "logo": None},
            "away": {"id": fixture_id * 10 + 2, "name": away, "logo": None},
        },
        "goals": {"home": goals[0], "away": goals[1]},
    }


def envelope(items: list[Any], errors: Any = None) -> dict[str, Any]:
    return {
        "get": "fixtures",
        "parameters": {},
        "errors": errors if errors is not None else [],
        "results": len(items),
        "response": items,
    }


class FakeApiFootball:
    """In-memory stand-in for ApiFootballClient with call counters and injectable failures."""

    def __init__(self) -> None:
        self.calls: dict[str, int] = {}
        self.fail: set[str] = set()
        self.by_date: dict[date, list[FixtureRecord]] = {}
        self.live: list[FixtureRecord] = []
        self.raw_fixtures: dict[int, dict[str, Any]] = {}
        self.league_list: list[LeagueSummary] = []
        self.teams: dict[int, TeamProfile] = {}
        self.league_fixture_list: list[FixtureRecord] = []
        self.gate: Optional[asyncio.Event] = None

    async def _enter(self, name: str) -> None:
        self.calls[name] = self.calls.get(name, 0) + 1
        if self.gate is not None:
            await self.gate.wait()
        if name in self.fail:
            raise TransientUpstreamError(f"{name} down", endpoint=name)

    async def fixtures_by_date(self, day: date, status: Optional[str] = None) -> list[FixtureRecord]:
        await self._enter("fixtures_by_date")
        return self.by_date.get(day, [])

    async def finished_fixtures_by_date(self, day: date) -> list[FixtureRecord]:
        await self._enter("finished")
        return [f for f in self.by_date.get(day, []) if f.status.is_terminal]

    async def live_fixtures(self) -> list[FixtureRecord]:
        await self._enter("live")
        return self.live

    async def fixture_by_id(self, fixture_id: int) -> list[dict[str, Any]]:
        await self._enter("fixture")
        raw = self.raw_fixtures.get(fixture_id)
        return [raw] if raw else []

    async def fixture_lineups(self, fixture_id: int) -> list[dict[str, Any]]:
        await self._enter("lineups")
        return [{"team": {"id": 1}, "startXI": []}]

    async def fixture_statistics(self, fixture_id: int) -> list[dict[str, Any]]:
        await self._enter("statistics")
        return [{"team": {"id": 1}, "statistics": []}]

    async def fixture_events(self, fixture_id: int) -> list[dict[str, Any]]:
        await self._enter("events")
        return [{"type": "Goal"}]

    async def predictions(self, fixture_id: int) -> list[dict[str, Any]]:
        await self._enter("predictions")
        return [{"predictions": {"winner": None}}]

    async def odds(self, fixture_id: int) -> list[dict[str, Any]]:
        await self._enter("odds")
        return []

    async def league_fixtures(self, league_id, season, *, start=None, end=None, status=None) -> list[FixtureRecord]:
        await self._enter("league_fixtures")
        return self.league_fixture_list

    async def team_fixtures(self, team_id, season, scope, *, count=5) -> list[FixtureRecord]:
        await self._enter(f"team_fixtures:{scope.value}")
        return []

    async def leagues(self, season: int, *, team_id: Optional[int] = None) -> list[LeagueSummary]:
        await self._enter("leagues")
        return self.league_list

    async def standings(self, league_id: int, season: int) -> list:
        await self._enter("standings")
        return []

    async def league_teams(self, league_id: int, season: int) -> list[TeamProfile]:
        await self._enter("league_teams")
        return list(self.teams.values())

    async def team(self, team_id: int) -> Optional[TeamProfile]:
        await self._enter("team")
        return self.teams.get(team_id)

    async def check_status(self, season: int) -> ApiStatus:
        await self._enter("status")
        return ApiStatus(is_available=True, message="ok", details=str(season))


TODAY = date(2024, 5, 12)
