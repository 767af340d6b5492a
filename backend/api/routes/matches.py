"""
Match REST endpoints.

GET /v1/matches                — Fixtures for a day (?date=YYYY-MM-DD, default today).
GET /v1/matches/live           — Fixtures in play right now.
GET /v1/matches/tomorrow       — Tomorrow's fixtures.
GET /v1/matches/finished       — Finished fixtures for a day (FT, AET, PEN).
GET /v1/matches/slug/{slug}    — Match details by canonical slug.
GET /v1/matches/{id}           — Match details (lineups, stats, events, predictions, odds).
"""
from __future__ import annotations

from datetime import date
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query, Response

from shared.models.domain import FixtureRecord, MatchDetails
from shared.utils.logging import get_logger

from api.dependencies import get_fixture_service
from fixtures.service import FixtureService

logger = get_logger(__name__)
router = APIRouter(prefix="/v1/matches", tags=["matches"])


def _fixture_list(day: Optional[date], fixtures: list[FixtureRecord], service: FixtureService) -> dict[str, Any]:
    return {
        "date": day.isoformat() if day else None,
        "count": len(fixtures),
        "matches": [
            {**f.model_dump(mode="json"), "slug": service.slugs.slug_for(f)}
            for f in fixtures
        ],
    }


def _details(details: MatchDetails, service: FixtureService) -> dict[str, Any]:
    body = details.model_dump(mode="json", exclude={"raw"})
    body["slug"] = service.slugs.slug_for(details.fixture)
    return body


@router.get("")
async def list_matches(
    response: Response,
    day: Optional[date] = Query(default=None, alias="date"),
    fixtures: FixtureService = Depends(get_fixture_service),
) -> dict[str, Any]:
    target = day or fixtures.today()
    matches = await fixtures.get_matches_by_date(target)
    response.headers["Cache-Control"] = "public, max-age=30"
    return _fixture_list(target, matches, fixtures)


@router.get("/live")
async def live_matches(
    response: Response,
    fixtures: FixtureService = Depends(get_fixture_service),
) -> dict[str, Any]:
    matches = await fixtures.get_live_matches()
    response.headers["Cache-Control"] = "public, max-age=10"
    return _fixture_list(None, matches, fixtures)


@router.get("/tomorrow")
async def tomorrow_matches(
    response: Response,
    fixtures: FixtureService = Depends(get_fixture_service),
) -> dict[str, Any]:
    matches = await fixtures.get_tomorrow_matches()
    response.headers["Cache-Control"] = "public, max-age=60"
    return _fixture_list(None, matches, fixtures)


@router.get("/finished")
async def finished_matches(
    day: Optional[date] = Query(default=None, alias="date"),
    fixtures: FixtureService = Depends(get_fixture_service),
) -> dict[str, Any]:
    target = day or fixtures.today()
    matches = await fixtures.get_finished_matches(target)
    return _fixture_list(target, matches, fixtures)


@router.get("/slug/{slug:path}")
async def match_by_slug(
    slug: str,
    fixtures: FixtureService = Depends(get_fixture_service),
) -> dict[str, Any]:
    details = await fixtures.get_match_by_slug(slug)
    return _details(details, fixtures)


@router.get("/{fixture_id}")
async def match_details(
    fixture_id: int,
    response: Response,
    fixtures: FixtureService = Depends(get_fixture_service),
) -> dict[str, Any]:
    """
    Match center view: the fixture plus every sub-resource that loaded.

    ``missing`` lists the parts (lineups, statistics, ...) whose fetch failed;
    the rest of the payload is still served.
    """
    details = await fixtures.get_match_details(fixture_id)
    if details.missing:
        logger.info("match_details_partial", fixture_id=fixture_id, missing=details.missing)
        response.headers["Cache-Control"] = "no-store"
    return _details(details, fixtures)
