"""
Unit tests for broadcast enrichment: guide page source, service caches and refresh scheduler.

Run: pytest backend/tests/test_broadcast.py -v
"""
from __future__ import annotations

import asyncio
from datetime import date, datetime, timezone

import httpx
import pytest

from broadcast.config import BroadcastSettings
from broadcast.scheduler import BroadcastRefreshScheduler
from broadcast.service import BroadcastService
from broadcast.sources import ProxiedPageSource, StaticCandidateSource
from broadcast.sources.base import CandidateSource
from broadcast.sources.guide import load_parser
from fixtures.service import FixtureService
from shared.config import Settings
from shared.errors import MalformedResponseError, TransientUpstreamError
from shared.models.domain import ScrapedCandidate
from shared.models.enums import MatchStrategy
from shared.utils.http_client import ResilientFetcher, RetryPolicy

from conftest import TODAY, FakeApiFootball, FakeClock, SleepRecorder, make_fixture


def scraped(home: str, away: str, broadcast: str, venue: str = "") -> ScrapedCandidate:
    return ScrapedCandidate(raw_home_name=home, raw_away_name=away, broadcast_text=broadcast, raw_venue_name=venue)


def parse_lines(html: str) -> list[ScrapedCandidate]:
    """Test parser: one 'home|away|channel' per line."""
    rows = [line.split("|") for line in html.splitlines() if line.count("|") == 2]
    return [scraped(h, a, c) for h, a, c in rows]


class FlakySource(CandidateSource):
    def __init__(self, candidates: list[ScrapedCandidate]) -> None:
        self.candidates = candidates
        self.failing = False
        self.calls = 0

    @property
    def source_name(self) -> str:
        return "flaky"

    async def fetch_candidates(self) -> list[ScrapedCandidate]:
        self.calls += 1
        if self.failing:
            raise TransientUpstreamError("guide down")
        return list(self.candidates)


@pytest.fixture
def broadcast_settings() -> BroadcastSettings:
    return BroadcastSettings(candidates_ttl_s=1800, correlation_ttl_s=300, refresh_interval_s=3600)


@pytest.fixture
def fixtures(clock: FakeClock) -> tuple[FixtureService, FakeApiFootball]:
    api = FakeApiFootball()
    service = FixtureService(
        api,
        Settings(api_football_season=2024),
        clock=clock,
        now=lambda: datetime(2024, 5, 12, 15, 0, tzinfo=timezone.utc),
    )
    return service, api


# ── ProxiedPageSource ───────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_page_source_fetches_through_proxy(broadcast_settings: BroadcastSettings, sleeps: SleepRecorder) -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, text="Flamengo|Vasco|Globo\nnoise\n", request=request)

    fetcher = ResilientFetcher("guide", transport=httpx.MockTransport(handler), sleep=sleeps)
    source = ProxiedPageSource(broadcast_settings, parser=parse_lines, fetcher=fetcher)
    await source.start()
    try:
        candidates = await source.fetch_candidates()
    finally:
        await source.close()

    assert candidates == [scraped("Flamengo", "Vasco", "Globo")]
    assert seen[0].url.host == "api.allorigins.win"
    assert seen[0].url.params["url"] == "https://guiadejogos.com/"


@pytest.mark.asyncio
async def test_page_source_retries_with_fixed_delay(broadcast_settings: BroadcastSettings, sleeps: SleepRecorder) -> None:
    statuses = iter([502, 502, 200])

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(next(statuses), text="A|B|SporTV", request=request)

    fetcher = ResilientFetcher(
        "guide",
        policy=RetryPolicy.fixed(broadcast_settings.fetch_max_retries, broadcast_settings.fetch_retry_delay_s),
        transport=httpx.MockTransport(handler),
        sleep=sleeps,
    )
    source = ProxiedPageSource(broadcast_settings, parser=parse_lines, fetcher=fetcher)
    await source.start()
    candidates = await source.fetch_candidates()
    await source.close()

    assert len(candidates) == 1
    assert sleeps.delays == [1.0, 1.0]


@pytest.mark.asyncio
async def test_page_source_empty_body_is_malformed(broadcast_settings: BroadcastSettings) -> None:
    fetcher = ResilientFetcher(
        "guide", transport=httpx.MockTransport(lambda r: httpx.Response(200, text="  ", request=r))
    )
    source = ProxiedPageSource(broadcast_settings, parser=parse_lines, fetcher=fetcher)
    await source.start()
    with pytest.raises(MalformedResponseError):
        await source.fetch_candidates()
    await source.close()


@pytest.mark.asyncio
async def test_page_source_parser_failure_is_malformed(broadcast_settings: BroadcastSettings) -> None:
    def choking_parser(html: str) -> list[ScrapedCandidate]:
        raise ValueError("unexpected markup")

    fetcher = ResilientFetcher(
        "guide", transport=httpx.MockTransport(lambda r: httpx.Response(200, text="<table/>", request=r))
    )
    source = ProxiedPageSource(broadcast_settings, parser=choking_parser, fetcher=fetcher)
    await source.start()
    with pytest.raises(MalformedResponseError) as excinfo:
        await source.fetch_candidates()
    await source.close()

    assert isinstance(excinfo.value.__cause__, ValueError)
    assert excinfo.value.endpoint == "https://guiadejogos.com/"


@pytest.mark.asyncio
async def test_page_source_without_parser_returns_nothing(broadcast_settings: BroadcastSettings) -> None:
    calls: list[httpx.Request] = []
    fetcher = ResilientFetcher(
        "guide", transport=httpx.MockTransport(lambda r: calls.append(r) or httpx.Response(200, request=r))
    )
    source = ProxiedPageSource(broadcast_settings, parser=None, fetcher=fetcher)
    assert await source.fetch_candidates() == []
    assert calls == []


def test_load_parser_resolves_import_path() -> None:
    assert load_parser(None) is None
    assert load_parser("json:loads") is not None
    with pytest.raises(ValueError):
        load_parser("json")


# ── BroadcastService ────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_find_broadcast_info_either_orientation(fixtures, broadcast_settings, clock) -> None:
    service = BroadcastService(
        StaticCandidateSource([scraped("CR Flamengo", "Vasco da Gama", " Globo, Premiere ")]),
        fixtures[0],
        broadcast_settings,
        clock=clock,
    )
    assert await service.find_broadcast_info("Flamengo", "Vasco") == "Globo, Premiere"
    assert await service.find_broadcast_info("Vasco", "Flamengo") == "Globo, Premiere"
    assert await service.find_broadcast_info("Palmeiras", "Santos") is None
    assert await service.find_broadcast_info("", "Santos") is None


class BrokenSource(FlakySource):
    async def fetch_candidates(self) -> list[ScrapedCandidate]:
        self.calls += 1
        if self.failing:
            raise ValueError("unexpected markup")
        return list(self.candidates)


@pytest.mark.asyncio
async def test_lookup_never_raises_on_unclassified_source_error(fixtures, broadcast_settings, clock) -> None:
    source = BrokenSource([])
    source.failing = True
    service = BroadcastService(source, fixtures[0], broadcast_settings, clock=clock)
    assert await service.find_broadcast_info("Flamengo", "Vasco") is None


@pytest.mark.asyncio
async def test_lookup_uses_stale_candidates_on_unclassified_error(fixtures, broadcast_settings, clock) -> None:
    source = BrokenSource([scraped("Flamengo", "Vasco", "Globo")])
    service = BroadcastService(source, fixtures[0], broadcast_settings, clock=clock)
    assert await service.find_broadcast_info("Flamengo", "Vasco") == "Globo"

    clock.advance(1801)
    source.failing = True
    assert await service.find_broadcast_info("Flamengo", "Vasco") == "Globo"


@pytest.mark.asyncio
async def test_candidates_cached_for_the_ttl(fixtures, broadcast_settings, clock) -> None:
    source = StaticCandidateSource([scraped("A", "B", "X")])
    service = BroadcastService(source, fixtures[0], broadcast_settings, clock=clock)

    await service.get_candidates()
    await service.get_candidates()
    assert source.fetch_count == 1

    clock.advance(1801)
    await service.get_candidates()
    assert source.fetch_count == 2


@pytest.mark.asyncio
async def test_lookup_falls_back_to_stale_candidates(fixtures, broadcast_settings, clock) -> None:
    source = FlakySource([scraped("Palmeiras", "Santos", "Premiere")])
    service = BroadcastService(source, fixtures[0], broadcast_settings, clock=clock)
    assert await service.find_broadcast_info("Palmeiras", "Santos") == "Premiere"

    clock.advance(1801)
    source.failing = True
    assert await service.find_broadcast_info("Palmeiras", "Santos") == "Premiere"
    assert source.calls == 2


@pytest.mark.asyncio
async def test_lookup_with_no_candidates_and_failing_source(fixtures, broadcast_settings, clock) -> None:
    source = FlakySource([])
    source.failing = True
    service = BroadcastService(source, fixtures[0], broadcast_settings, clock=clock)
    assert await service.find_broadcast_info("Palmeiras", "Santos") is None


@pytest.mark.asyncio
async def test_correlated_candidates_against_today_and_tomorrow(fixtures, broadcast_settings, clock) -> None:
    fixture_service, api = fixtures
    api.by_date[TODAY] = [make_fixture(1, "Palmeiras", "Santos", venue="Allianz Parque")]
    api.by_date[date(2024, 5, 13)] = [make_fixture(2, "Flamengo", "Vasco")]
    source = StaticCandidateSource(
        [
            scraped("SE Palmeiras", "Santos FC", "Globo", venue="Allianz Parque"),
            scraped("Flamengo", "Vasco da Gama", "Premiere"),
            scraped("Chelsea", "Arsenal", "ESPN"),
        ]
    )
    service = BroadcastService(source, fixture_service, broadcast_settings, clock=clock)

    results = await service.correlated_candidates()

    assert [(r.matched_fixture_id, r.match_strategy) for r in results] == [
        (1, MatchStrategy.STADIUM),
        (2, MatchStrategy.EXACT_NAMES),
        (None, MatchStrategy.NONE),
    ]
    assert results[0].match_slug == "brasileirao-serie-a/palmeiras-vs-santos-12-05-2024"

    await service.correlated_candidates()
    assert api.calls["fixtures_by_date"] == 2


@pytest.mark.asyncio
async def test_refresh_rescrapes_and_drops_correlated_view(fixtures, broadcast_settings, clock) -> None:
    source = StaticCandidateSource([scraped("A", "B", "X")])
    service = BroadcastService(source, fixtures[0], broadcast_settings, clock=clock)
    await service.correlated_candidates()

    source.replace([scraped("A", "B", "X"), scraped("C", "D", "Y")])
    assert await service.refresh() == 2
    assert len(await service.correlated_candidates()) == 2
    assert source.fetch_count == 2


# ── BroadcastRefreshScheduler ───────────────────────────────────────────

@pytest.mark.asyncio
async def test_scheduler_runs_immediately_then_each_interval(fixtures, broadcast_settings, clock) -> None:
    source = StaticCandidateSource([scraped("A", "B", "X")])
    service = BroadcastService(source, fixtures[0], broadcast_settings, clock=clock)
    ticks: list[float] = []
    third_tick = asyncio.Event()

    async def fake_sleep(delay: float) -> None:
        ticks.append(delay)
        if len(ticks) >= 3:
            third_tick.set()
            await asyncio.Event().wait()

    scheduler = BroadcastRefreshScheduler(service, 3600, sleep=fake_sleep)
    scheduler.start()
    assert scheduler.running
    await asyncio.wait_for(third_tick.wait(), timeout=1)
    await scheduler.stop()

    assert not scheduler.running
    assert scheduler.runs == 3
    assert source.fetch_count == 3
    assert ticks == [3600, 3600, 3600]


@pytest.mark.asyncio
async def test_scheduler_survives_failed_refresh(fixtures, broadcast_settings, clock) -> None:
    source = FlakySource([])
    source.failing = True
    service = BroadcastService(source, fixtures[0], broadcast_settings, clock=clock)
    scheduler = BroadcastRefreshScheduler(service, 3600)

    assert await scheduler.run_once() is False
    source.failing = False
    assert await scheduler.run_once() is True
    assert (scheduler.runs, scheduler.failures) == (1, 1)


@pytest.mark.asyncio
async def test_scheduler_stop_without_start_is_noop(fixtures, broadcast_settings) -> None:
    service = BroadcastService(StaticCandidateSource(), fixtures[0], broadcast_settings)
    scheduler = BroadcastRefreshScheduler(service, 3600)
    await scheduler.stop()
    assert not scheduler.running
