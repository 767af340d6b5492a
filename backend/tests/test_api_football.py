"""
Unit tests for the API-Football connector: envelope handling and parsing.

Run: pytest backend/tests/test_api_football.py -v
"""
from __future__ import annotations

from datetime import date

import httpx
import pytest

from fixtures.providers.api_football import (
    API_KEY_HEADER,
    ApiFootballClient,
    api_headers,
    parse_fixture,
    parse_league,
    parse_standing_row,
)
from shared.errors import MalformedResponseError, RateLimitedError, UpstreamApiError
from shared.models.enums import FixtureStatus, TeamFixtureScope
from shared.utils.http_client import ResilientFetcher, RetryPolicy

from conftest import SleepRecorder, api_fixture_item, envelope


def response(payload: object, status: int = 200) -> httpx.Response:
    return httpx.Response(status, json=payload, request=httpx.Request("GET", "https://api.test/x"))


class RecordingUpstream:
    def __init__(self, payload: object) -> None:
        self.payload = payload
        self.requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(200, json=self.payload, request=request)


async def make_client(upstream: RecordingUpstream, sleeps: SleepRecorder) -> ApiFootballClient:
    fetcher = ResilientFetcher(
        "api_football",
        "https://api.test",
        headers=api_headers("secret"),
        policy=RetryPolicy(),
        transport=httpx.MockTransport(upstream.handler),
        sleep=sleeps,
    )
    await fetcher.start()
    return ApiFootballClient(fetcher, "America/Sao_Paulo")


# ── Envelope ────────────────────────────────────────────────────────────

def test_unwrap_returns_response_list() -> None:
    assert ApiFootballClient.unwrap(response(envelope([1, 2])), "/x") == [1, 2]


def test_unwrap_rejects_non_json() -> None:
    bad = httpx.Response(200, text="<html>", request=httpx.Request("GET", "https://api.test/x"))
    with pytest.raises(MalformedResponseError):
        ApiFootballClient.unwrap(bad, "/x")


def test_unwrap_rejects_missing_list() -> None:
    with pytest.raises(MalformedResponseError):
        ApiFootballClient.unwrap(response({"errors": [], "response": None}), "/x")


def test_unwrap_envelope_errors_are_client_errors() -> None:
    with pytest.raises(UpstreamApiError) as excinfo:
        ApiFootballClient.unwrap(response(envelope([], {"token": "Error/Missing application key"})), "/x")
    assert excinfo.value.errors == {"token": "Error/Missing application key"}


def test_unwrap_quota_errors_are_rate_limited() -> None:
    with pytest.raises(RateLimitedError):
        ApiFootballClient.unwrap(
            response(envelope([], {"requests": "You have reached the request limit for the day"})), "/x"
        )


def test_api_headers_only_send_key_when_configured() -> None:
    assert api_headers("k")[API_KEY_HEADER] == "k"
    assert API_KEY_HEADER not in api_headers("")


# ── Parsing ─────────────────────────────────────────────────────────────

def test_parse_fixture_flattens_item() -> None:
    record = parse_fixture(
        api_fixture_item(7, "Grêmio", "Internacional", status="2H", venue="Arena do Grêmio", goals=(1, 0))
    )
    assert record.id == 7
    assert record.status == FixtureStatus.LIVE
    assert record.home_team_name == "Grêmio"
    assert record.venue_name == "Arena do Grêmio"
    assert record.home_goals == 1 and record.away_goals == 0
    assert record.kickoff.utcoffset().total_seconds() == -3 * 3600


def test_parse_fixture_without_fixture_block_is_malformed() -> None:
    with pytest.raises(MalformedResponseError):
        parse_fixture({"teams": {}})


@pytest.mark.parametrize(
    "code,status",
    [("NS", FixtureStatus.SCHEDULED), ("HT", FixtureStatus.HALFTIME), ("PEN", FixtureStatus.FINISHED),
     ("PST", FixtureStatus.POSTPONED), ("???", FixtureStatus.UNKNOWN), (None, FixtureStatus.UNKNOWN)],
)
def test_status_short_codes(code, status) -> None:
    assert FixtureStatus.from_short_code(code) == status


def test_parse_league_picks_requested_season() -> None:
    item = {
        "league": {"id": 71, "name": "Serie A", "type": "League", "logo": "l.png"},
        "country": {"name": "Brazil", "flag": "br.svg"},
        "seasons": [{"year": 2023}, {"year": 2024}],
    }
    league = parse_league(item, 2024)
    assert league.id == 71 and league.country == "Brazil" and league.season == 2024


def test_parse_standing_row() -> None:
    row = parse_standing_row(
        {
            "rank": 1,
            "team": {"id": 127, "name": "Flamengo"},
            "points": 30,
            "goalsDiff": 15,
            "all": {"played": 12, "win": 9, "draw": 3, "lose": 0, "goals": {"for": 25, "against": 10}},
            "form": "WWDWW",
        }
    )
    assert row.team_name == "Flamengo" and row.points == 30 and row.goals_for == 25


# ── Client ──────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_fixtures_by_date_sends_key_date_and_timezone(sleeps: SleepRecorder) -> None:
    upstream = RecordingUpstream(envelope([api_fixture_item(1, "Palmeiras", "Santos")]))
    client = await make_client(upstream, sleeps)

    fixtures = await client.fixtures_by_date(date(2024, 5, 12))

    assert [f.id for f in fixtures] == [1]
    sent = upstream.requests[0]
    assert sent.url.path == "/fixtures"
    assert sent.url.params["date"] == "2024-05-12"
    assert sent.url.params["timezone"] == "America/Sao_Paulo"
    assert sent.headers[API_KEY_HEADER] == "secret"


@pytest.mark.asyncio
async def test_finished_fixtures_use_status_filter(sleeps: SleepRecorder) -> None:
    upstream = RecordingUpstream(envelope([]))
    client = await make_client(upstream, sleeps)

    await client.finished_fixtures_by_date(date(2024, 5, 12))
    assert upstream.requests[0].url.params["status"] == "FT-AET-PEN"


@pytest.mark.asyncio
async def test_team_fixtures_scope_params(sleeps: SleepRecorder) -> None:
    upstream = RecordingUpstream(envelope([]))
    client = await make_client(upstream, sleeps)

    await client.team_fixtures(127, 2024, TeamFixtureScope.LAST)
    await client.team_fixtures(127, 2024, TeamFixtureScope.NEXT)

    last, nxt = (r.url.params for r in upstream.requests)
    assert last["last"] == "5" and last["status"] == "FT"
    assert nxt["next"] == "5" and nxt["status"] == "NS"


@pytest.mark.asyncio
async def test_check_status_available(sleeps: SleepRecorder) -> None:
    upstream = RecordingUpstream(envelope([{"league": {"id": 1}}, {"league": {"id": 2}}]))
    client = await make_client(upstream, sleeps)

    status = await client.check_status(2024)
    assert status.is_available
    assert "2" in status.details


@pytest.mark.asyncio
async def test_check_status_reports_envelope_errors(sleeps: SleepRecorder) -> None:
    upstream = RecordingUpstream(envelope([], {"token": "invalid key"}))
    client = await make_client(upstream, sleeps)

    status = await client.check_status(2024)
    assert not status.is_available
    assert status.details == "invalid key"


@pytest.mark.asyncio
async def test_check_status_never_raises_on_network_failure(sleeps: SleepRecorder) -> None:
    def down(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    fetcher = ResilientFetcher(
        "status", "https://api.test", policy=RetryPolicy.fixed(0, 0.0), transport=httpx.MockTransport(down)
    )
    await fetcher.start()
    status = await ApiFootballClient(fetcher).check_status(2024)

    assert not status.is_available
    assert sleeps.delays == []
