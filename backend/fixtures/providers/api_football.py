"""
API-Football (v3.football.api-sports.io) connector.

Every call goes through a ResilientFetcher and returns the ``response`` list
of the ``{response: [...], errors: ...}`` envelope. A non-empty ``errors``
object is a client-side failure (bad key, plan limits) and is not retried.
"""
from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any, Callable, Optional, TypeVar

import httpx

from shared.errors import (
    FetchError,
    MalformedResponseError,
    RateLimitedError,
    UpstreamApiError,
)
from shared.models.domain import (
    ApiStatus,
    FixtureRecord,
    LeagueSummary,
    StandingRow,
    TeamProfile,
)
from shared.models.enums import FixtureStatus, TeamFixtureScope
from shared.utils.http_client import ResilientFetcher
from shared.utils.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

API_FOOTBALL_BASE = "https://v3.football.api-sports.io"
API_KEY_HEADER = "x-apisports-key"
FINISHED_STATUS_FILTER = "FT-AET-PEN"
# Envelope error keys that mean quota exhaustion rather than a bad request.
RATE_LIMIT_ERROR_KEYS = frozenset({"requests", "rateLimit"})


def api_headers(api_key: str) -> dict[str, str]:
    headers = {"Accept": "application/json"}
    if api_key:
        headers[API_KEY_HEADER] = api_key
    return headers


def _int_or_none(value: Any) -> Optional[int]:
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        return None


def _parse_kickoff(fixture: dict[str, Any]) -> datetime:
    raw = fixture.get("date")
    if isinstance(raw, str) and raw:
        try:
            return datetime.fromisoformat(raw.replace("Z", "+00:00"))
        except ValueError:
            pass
    ts = _int_or_none(fixture.get("timestamp"))
    if ts is not None:
        return datetime.fromtimestamp(ts, tz=timezone.utc)
    raise MalformedResponseError(f"fixture {fixture.get('id')} has no usable date")


def parse_fixture(item: dict[str, Any]) -> FixtureRecord:
    """Flatten one ``/fixtures`` response item."""
    try:
        fixture = item["fixture"]
        teams = item.get("teams") or {}
        league = item.get("league") or {}
        goals = item.get("goals") or {}
        venue = fixture.get("venue") or {}
        status = fixture.get("status") or {}
        home = teams.get("home") or {}
        away = teams.get("away") or {}
        return FixtureRecord(
            id=int(fixture["id"]),
            kickoff=_parse_kickoff(fixture),
            status=FixtureStatus.from_short_code(status.get("short")),
            status_text=status.get("long") or "",
            elapsed=_int_or_none(status.get("elapsed")),
            home_team_id=_int_or_none(home.get("id")),
            home_team_name=home.get("name") or "",
            home_team_logo=home.get("logo"),
            away_team_id=_int_or_none(away.get("id")),
            away_team_name=away.get("name") or "",
            away_team_logo=away.get("logo"),
            venue_name=venue.get("name") or "",
            venue_city=venue.get("city") or "",
            league_id=_int_or_none(league.get("id")),
            league_name=league.get("name") or "",
            league_country=league.get("country") or "",
            league_logo=league.get("logo"),
            season=_int_or_none(league.get("season")),
            round=league.get("round") or "",
            home_goals=_int_or_none(goals.get("home")),
            away_goals=_int_or_none(goals.get("away")),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise MalformedResponseError(f"unparseable fixture item: {exc}") from exc


def parse_league(item: dict[str, Any], season: Optional[int] = None) -> LeagueSummary:
    league = item.get("league") or {}
    country = item.get("country") or {}
    seasons = item.get("seasons") or []
    years = [s.get("year") for s in seasons if isinstance(s, dict)]
    return LeagueSummary(
        id=int(league["id"]),
        name=league.get("name") or "",
        type=league.get("type") or "",
        logo=league.get("logo"),
        country=country.get("name") or "",
        country_flag=country.get("flag"),
        season=season if season in years else (years[0] if years else None),
    )


def parse_standing_row(row: dict[str, Any]) -> StandingRow:
    team = row.get("team") or {}
    played = row.get("all") or {}
    goals = played.get("goals") or {}
    return StandingRow(
        rank=int(row.get("rank") or 0),
        team_id=int(team["id"]),
        team_name=team.get("name") or "",
        team_logo=team.get("logo"),
        points=int(row.get("points") or 0),
        goals_diff=int(row.get("goalsDiff") or 0),
        played=int(played.get("played") or 0),
        win=int(played.get("win") or 0),
        draw=int(played.get("draw") or 0),
        lose=int(played.get("lose") or 0),
        goals_for=int(goals.get("for") or 0),
        goals_against=int(goals.get("against") or 0),
        form=row.get("form") or "",
        group=row.get("group") or "",
        description=row.get("description"),
    )


def parse_team(item: dict[str, Any]) -> TeamProfile:
    team = item.get("team") or {}
    venue = item.get("venue") or {}
    return TeamProfile(
        id=int(team["id"]),
        name=team.get("name") or "",
        code=team.get("code"),
        country=team.get("country") or "",
        founded=_int_or_none(team.get("founded")),
        logo=team.get("logo"),
        venue_name=venue.get("name") or "",
        venue_city=venue.get("city") or "",
        venue_capacity=_int_or_none(venue.get("capacity")),
    )


def _parse_all(items: list[Any], parser: Callable[[dict[str, Any]], T], endpoint: str) -> list[T]:
    try:
        return [parser(item) for item in items]
    except (KeyError, TypeError, ValueError) as exc:
        raise MalformedResponseError(f"{endpoint}: unparseable item: {exc}", endpoint=endpoint) from exc


class ApiFootballClient:
    """Typed access to the API-Football endpoints this project uses."""

    def __init__(
        self,
        fetcher: ResilientFetcher,
        timezone_name: str = "America/Sao_Paulo",
        status_fetcher: Optional[ResilientFetcher] = None,
    ) -> None:
        self._fetcher = fetcher
        self._timezone = timezone_name
        self._status_fetcher = status_fetcher or fetcher

    @property
    def timezone_name(self) -> str:
        return self._timezone

    async def _get(
        self,
        path: str,
        params: dict[str, Any],
        fetcher: Optional[ResilientFetcher] = None,
    ) -> list[Any]:
        response = await (fetcher or self._fetcher).get(path, params=params)
        return self.unwrap(response, path)

    @staticmethod
    def unwrap(response: httpx.Response, endpoint: str) -> list[Any]:
        """Return the envelope's ``response`` list or raise a classified error."""
        try:
            payload = response.json()
        except ValueError as exc:
            raise MalformedResponseError(f"{endpoint}: body is not JSON", endpoint=endpoint) from exc
        if not isinstance(payload, dict):
            raise MalformedResponseError(f"{endpoint}: envelope is not an object", endpoint=endpoint)

        errors = payload.get("errors")
        if errors:
            detail = ", ".join(str(v) for v in (errors.values() if isinstance(errors, dict) else errors))
            logger.warning("api_football_envelope_errors", endpoint=endpoint, errors=detail)
            if isinstance(errors, dict) and RATE_LIMIT_ERROR_KEYS & errors.keys():
                raise RateLimitedError(f"{endpoint}: {detail}", endpoint=endpoint)
            raise UpstreamApiError(
                f"{endpoint}: {detail}",
                errors=errors if isinstance(errors, dict) else {"errors": errors},
                endpoint=endpoint,
            )

        items = payload.get("response")
        if not isinstance(items, list):
            raise MalformedResponseError(f"{endpoint}: missing response list", endpoint=endpoint)
        return items

    # ── Fixtures ─────────────────────────────────────────────────────────

    async def fixtures_by_date(self, day: date, status: Optional[str] = None) -> list[FixtureRecord]:
        params: dict[str, Any] = {"date": day.isoformat(), "timezone": self._timezone}
        if status:
            params["status"] = status
        return [parse_fixture(item) for item in await self._get("/fixtures", params)]

    async def finished_fixtures_by_date(self, day: date) -> list[FixtureRecord]:
        return await self.fixtures_by_date(day, status=FINISHED_STATUS_FILTER)

    async def live_fixtures(self) -> list[FixtureRecord]:
        items = await self._get("/fixtures", {"live": "all", "timezone": self._timezone})
        return [parse_fixture(item) for item in items]

    async def fixture_by_id(self, fixture_id: int) -> list[dict[str, Any]]:
        return await self._get("/fixtures", {"id": fixture_id, "timezone": self._timezone})

    async def fixture_lineups(self, fixture_id: int) -> list[dict[str, Any]]:
        return await self._get("/fixtures/lineups", {"fixture": fixture_id})

    async def fixture_statistics(self, fixture_id: int) -> list[dict[str, Any]]:
        return await self._get("/fixtures/statistics", {"fixture": fixture_id})

    async def fixture_events(self, fixture_id: int) -> list[dict[str, Any]]:
        return await self._get("/fixtures/events", {"fixture": fixture_id})

    async def predictions(self, fixture_id: int) -> list[dict[str, Any]]:
        return await self._get("/predictions", {"fixture": fixture_id})

    async def odds(self, fixture_id: int) -> list[dict[str, Any]]:
        return await self._get("/odds", {"fixture": fixture_id})

    async def league_fixtures(
        self,
        league_id: int,
        season: int,
        *,
        start: Optional[date] = None,
        end: Optional[date] = None,
        status: Optional[str] = None,
    ) -> list[FixtureRecord]:
        params: dict[str, Any] = {"league": league_id, "season": season, "timezone": self._timezone}
        if start and end:
            params["from"] = start.isoformat()
            params["to"] = end.isoformat()
        if status:
            params["status"] = status
        return [parse_fixture(item) for item in await self._get("/fixtures", params)]

    async def team_fixtures(
        self,
        team_id: int,
        season: int,
        scope: TeamFixtureScope,
        *,
        count: int = 5,
    ) -> list[FixtureRecord]:
        params: dict[str, Any] = {"team": team_id, "season": season, "timezone": self._timezone}
        if scope == TeamFixtureScope.LAST:
            params.update(status="FT", last=count)
        else:
            params.update(status="NS", next=count)
        return [parse_fixture(item) for item in await self._get("/fixtures", params)]

    # ── Leagues / teams ──────────────────────────────────────────────────

    async def leagues(self, season: int, *, team_id: Optional[int] = None) -> list[LeagueSummary]:
        params: dict[str, Any] = {"season": season}
        if team_id is not None:
            params["team"] = team_id
        items = await self._get("/leagues", params)
        return _parse_all(
            [item for item in items if isinstance(item, dict) and item.get("league")],
            lambda item: parse_league(item, season),
            "/leagues",
        )

    async def standings(self, league_id: int, season: int) -> list[StandingRow]:
        items = await self._get("/standings", {"league": league_id, "season": season})
        if not items:
            return []
        tables = (items[0].get("league") or {}).get("standings") or []
        if not tables:
            return []
        return _parse_all(tables[0], parse_standing_row, "/standings")

    async def league_teams(self, league_id: int, season: int) -> list[TeamProfile]:
        items = await self._get("/teams", {"league": league_id, "season": season})
        return _parse_all(items, parse_team, "/teams")

    async def team(self, team_id: int) -> Optional[TeamProfile]:
        items = await self._get("/teams", {"id": team_id})
        return _parse_all(items[:1], parse_team, "/teams")[0] if items else None

    # ── Status ───────────────────────────────────────────────────────────

    async def check_status(self, season: int) -> ApiStatus:
        """Probe ``/leagues``; never raises."""
        try:
            items = await self._get("/leagues", {"season": season}, fetcher=self._status_fetcher)
        except UpstreamApiError as exc:
            details = ", ".join(str(v) for v in exc.errors.values())
            return ApiStatus(is_available=False, message="API-Football retornou erro", details=details)
        except FetchError as exc:
            logger.warning("api_status_check_failed", error=str(exc), kind=exc.kind.value)
            return ApiStatus(is_available=False, message=exc.user_message, details=str(exc))
        return ApiStatus(
            is_available=True,
            message="API-Football está funcionando corretamente",
            details=f"Encontradas {len(items)} ligas",
        )
