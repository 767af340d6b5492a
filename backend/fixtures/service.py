"""
Fixture service: the read surface the UI and the broadcast correlator use.

Wraps ApiFootballClient with short-TTL caches (one refresh per key no matter
how many concurrent callers miss) and assembles match details from six
independent sub-fetches with all-settled semantics.
"""
from __future__ import annotations

import time
from datetime import date, datetime, timedelta
from typing import Any, Awaitable, Callable, Optional
from zoneinfo import ZoneInfo

from shared.config import Settings, get_settings
from shared.errors import FixtureNotFoundError, NotFoundError, TeamNotFoundError
from shared.models.domain import (
    ApiStatus,
    FixtureRecord,
    LeagueStats,
    LeagueSummary,
    MatchDetails,
    StandingRow,
    TeamProfile,
)
from shared.models.enums import TeamFixtureScope
from shared.utils.cache import Clock, SingleSlotCache, TTLCache
from shared.utils.http_client import gather_settled
from shared.utils.logging import get_logger

from fixtures.providers.api_football import ApiFootballClient, parse_fixture
from fixtures.slugs import MatchSlugIndex

logger = get_logger(__name__)

# Shown first, in this order; everything else sorted by country then name.
PRIORITY_LEAGUE_IDS: tuple[int, ...] = (
    71,   # Brasileirão Série A
    2,    # UEFA Champions League
    39,   # Premier League
    140,  # La Liga
    135,  # Serie A
    78,   # Bundesliga
    61,   # Ligue 1
    72,   # Brasileirão Série B
    13,   # Copa Libertadores
    11,   # Copa Sudamericana
)
UPCOMING_WINDOW_DAYS = 14
DETAIL_PARTS = ("lineups", "statistics", "events", "predictions", "odds")


def order_leagues(leagues: list[LeagueSummary]) -> list[LeagueSummary]:
    priority = {league_id: i for i, league_id in enumerate(PRIORITY_LEAGUE_IDS)}
    main = sorted((lg for lg in leagues if lg.id in priority), key=lambda lg: priority[lg.id])
    others = sorted(
        (lg for lg in leagues if lg.id not in priority),
        key=lambda lg: (lg.country.casefold(), lg.name.casefold()),
    )
    return main + others


class FixtureService:
    """Cached fixture, league and team lookups over API-Football."""

    def __init__(
        self,
        client: ApiFootballClient,
        settings: Optional[Settings] = None,
        *,
        slugs: Optional[MatchSlugIndex] = None,
        clock: Clock = time.monotonic,
        now: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._client = client
        self._settings = settings or get_settings()
        self._slugs = slugs or MatchSlugIndex(self._settings.slug_index_max_entries)
        self._tz = ZoneInfo(self._settings.api_football_timezone)
        self._now = now or (lambda: datetime.now(self._tz))

        s = self._settings
        self._by_date: TTLCache[tuple[str, str], list[FixtureRecord]] = TTLCache(
            s.fixtures_cache_ttl_s, name="fixtures_by_date", clock=clock, max_entries=s.cache_max_entries
        )
        self._live: SingleSlotCache[list[FixtureRecord]] = SingleSlotCache(
            s.live_cache_ttl_s, name="fixtures_live", clock=clock
        )
        self._details: TTLCache[int, MatchDetails] = TTLCache(
            s.fixtures_cache_ttl_s, name="match_details", clock=clock, max_entries=s.cache_max_entries
        )
        self._reference: TTLCache[tuple, Any] = TTLCache(
            s.reference_cache_ttl_s, name="reference", clock=clock, max_entries=s.cache_max_entries
        )

    @property
    def slugs(self) -> MatchSlugIndex:
        return self._slugs

    def today(self) -> date:
        return self._now().astimezone(self._tz).date()

    def current_season(self) -> int:
        return self._settings.api_football_season or self.today().year

    # ── Fixture lists ────────────────────────────────────────────────────

    async def get_matches_by_date(self, day: date) -> list[FixtureRecord]:
        async def load() -> list[FixtureRecord]:
            fixtures = await self._client.fixtures_by_date(day)
            self._slugs.register_all(fixtures)
            return fixtures

        return await self._by_date.get_or_refresh(("all", day.isoformat()), load)

    async def get_today_matches(self) -> list[FixtureRecord]:
        return await self.get_matches_by_date(self.today())

    async def get_tomorrow_matches(self) -> list[FixtureRecord]:
        return await self.get_matches_by_date(self.today() + timedelta(days=1))

    async def get_finished_matches(self, day: Optional[date] = None) -> list[FixtureRecord]:
        target = day or self.today()
        return await self._by_date.get_or_refresh(
            ("finished", target.isoformat()),
            lambda: self._client.finished_fixtures_by_date(target),
        )

    async def get_live_matches(self) -> list[FixtureRecord]:
        async def load() -> list[FixtureRecord]:
            fixtures = await self._client.live_fixtures()
            self._slugs.register_all(fixtures)
            return fixtures

        return await self._live.get_or_refresh(load)

    async def get_correlation_window(self) -> list[FixtureRecord]:
        """Today's fixtures followed by tomorrow's; order sets correlation precedence."""
        return [*await self.get_today_matches(), *await self.get_tomorrow_matches()]

    # ── Match details ────────────────────────────────────────────────────

    async def get_match_details(self, fixture_id: int) -> MatchDetails:
        details = await self._details.get_or_refresh(fixture_id, lambda: self._load_details(fixture_id))
        if details.missing:
            # Served once; the next request retries the failed parts.
            self._details.delete(fixture_id)
        return details

    async def _load_details(self, fixture_id: int) -> MatchDetails:
        c = self._client
        results = await gather_settled(
            fixture=c.fixture_by_id(fixture_id),
            lineups=c.fixture_lineups(fixture_id),
            statistics=c.fixture_statistics(fixture_id),
            events=c.fixture_events(fixture_id),
            predictions=c.predictions(fixture_id),
            odds=c.odds(fixture_id),
        )

        primary = results["fixture"]
        if primary.error is not None:
            raise primary.error
        if not primary.value:
            raise FixtureNotFoundError(fixture_id)
        raw = primary.value[0]
        fixture = parse_fixture(raw)
        self._slugs.slug_for(fixture)

        missing = [part for part in DETAIL_PARTS if not results[part].ok]
        for part in missing:
            logger.warning(
                "match_detail_part_failed",
                fixture_id=fixture_id,
                part=part,
                error=str(results[part].error),
            )

        def as_list(part: str) -> list:
            r = results[part]
            return list(r.value) if r.ok and r.value else []

        def first(part: str) -> Optional[dict]:
            items = as_list(part)
            return items[0] if items else None

        return MatchDetails(
            fixture=fixture,
            raw=raw,
            lineups=as_list("lineups"),
            statistics=as_list("statistics"),
            events=as_list("events"),
            predictions=first("predictions"),
            odds=first("odds"),
            missing=missing,
        )

    async def get_match_by_slug(self, slug: str) -> MatchDetails:
        fixture_id = self._slugs.resolve(slug)
        if fixture_id is None:
            raise NotFoundError(f"unknown match slug {slug!r}", user_message="Partida não encontrada.")
        return await self.get_match_details(fixture_id)

    # ── Leagues ──────────────────────────────────────────────────────────

    async def _reference_lookup(self, key: tuple, loader: Callable[[], Awaitable[Any]]) -> Any:
        return await self._reference.get_or_refresh(key, loader)

    async def get_leagues(self, season: Optional[int] = None) -> list[LeagueSummary]:
        year = season or self.current_season()

        async def load() -> list[LeagueSummary]:
            leagues = await self._client.leagues(year)
            return order_leagues([lg for lg in leagues if lg.season == year])

        return await self._reference_lookup(("leagues", year), load)

    async def get_standings(self, league_id: int, season: Optional[int] = None) -> list[StandingRow]:
        year = season or self.current_season()
        return await self._reference_lookup(
            ("standings", league_id, year), lambda: self._client.standings(league_id, year)
        )

    async def get_league_teams(self, league_id: int, season: Optional[int] = None) -> list[TeamProfile]:
        year = season or self.current_season()
        return await self._reference_lookup(
            ("league_teams", league_id, year), lambda: self._client.league_teams(league_id, year)
        )

    async def get_league_upcoming(self, league_id: int, season: Optional[int] = None) -> list[FixtureRecord]:
        year = season or self.current_season()
        start = self.today()
        end = start + timedelta(days=UPCOMING_WINDOW_DAYS)
        return await self._by_date.get_or_refresh(
            ("league_upcoming", f"{league_id}:{year}:{start.isoformat()}"),
            lambda: self._client.league_fixtures(league_id, year, start=start, end=end),
        )

    async def get_league_stats(self, league_id: int, season: Optional[int] = None) -> LeagueStats:
        year = season or self.current_season()

        async def load() -> LeagueStats:
            finished = await self._client.league_fixtures(league_id, year, status="FT")
            goals = sum((f.home_goals or 0) + (f.away_goals or 0) for f in finished)
            return LeagueStats(
                league_id=league_id,
                season=year,
                total_matches=len(finished),
                total_goals=goals,
                average_goals_per_match=round(goals / len(finished), 2) if finished else 0.0,
            )

        return await self._reference_lookup(("league_stats", league_id, year), load)

    # ── Teams ────────────────────────────────────────────────────────────

    async def get_team(self, team_id: int) -> TeamProfile:
        team = await self._reference_lookup(("team", team_id), lambda: self._client.team(team_id))
        if team is None:
            raise TeamNotFoundError(team_id)
        return team

    async def get_team_fixtures(
        self,
        team_id: int,
        scope: TeamFixtureScope,
        season: Optional[int] = None,
    ) -> list[FixtureRecord]:
        year = season or self.current_season()
        return await self._by_date.get_or_refresh(
            ("team", f"{team_id}:{scope.value}:{year}"),
            lambda: self._client.team_fixtures(team_id, year, scope),
        )

    async def get_team_leagues(self, team_id: int, season: Optional[int] = None) -> list[LeagueSummary]:
        year = season or self.current_season()
        return await self._reference_lookup(
            ("team_leagues", team_id, year), lambda: self._client.leagues(year, team_id=team_id)
        )

    # ── Status ───────────────────────────────────────────────────────────

    async def check_api_status(self) -> ApiStatus:
        return await self._client.check_status(self.current_season())
