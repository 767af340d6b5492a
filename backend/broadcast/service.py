"""
Broadcast enrichment service.

Two single-slot caches:
- scraped candidates (long window; the guide page changes slowly)
- candidates correlated against today's and tomorrow's fixtures (short window)

A failed re-scrape keeps serving the previous candidate list.
"""
from __future__ import annotations

import time
from typing import Optional

from shared.errors import FetchError
from shared.models.domain import CorrelationResult, ScrapedCandidate
from shared.utils.cache import Clock, SingleSlotCache
from shared.utils.logging import get_logger

from broadcast.config import BroadcastSettings, get_broadcast_settings
from broadcast.correlator import MatchCorrelator
from broadcast.normalizer import clean_team_name, normalize
from broadcast.sources.base import CandidateSource
from fixtures.service import FixtureService

logger = get_logger(__name__)


def _team_key(name: str) -> str:
    return normalize(clean_team_name(name))


class BroadcastService:
    """Broadcast channel lookup for fixtures, backed by a scraped guide page."""

    def __init__(
        self,
        source: CandidateSource,
        fixtures: FixtureService,
        settings: Optional[BroadcastSettings] = None,
        *,
        correlator: Optional[MatchCorrelator] = None,
        clock: Clock = time.monotonic,
    ) -> None:
        self._source = source
        self._fixtures = fixtures
        self._settings = settings or get_broadcast_settings()
        self._correlator = correlator or MatchCorrelator(slug_builder=fixtures.slugs.slug_for)
        self._candidates: SingleSlotCache[list[ScrapedCandidate]] = SingleSlotCache(
            self._settings.candidates_ttl_s, name="broadcast_candidates", clock=clock
        )
        self._correlated: SingleSlotCache[list[CorrelationResult]] = SingleSlotCache(
            self._settings.correlation_ttl_s, name="broadcast_correlated", clock=clock
        )

    @property
    def source(self) -> CandidateSource:
        return self._source

    async def start(self) -> None:
        await self._source.start()

    async def close(self) -> None:
        await self._source.close()

    async def get_candidates(self) -> list[ScrapedCandidate]:
        return await self._candidates.get_or_refresh(self._source.fetch_candidates)

    async def refresh(self) -> int:
        """Re-scrape now and drop the correlated view. Returns the candidate count."""
        candidates = await self._candidates.refresh(self._source.fetch_candidates)
        self._correlated.invalidate()
        logger.info("broadcast_candidates_refreshed", source=self._source.source_name, count=len(candidates))
        return len(candidates)

    async def find_broadcast_info(self, home_team: str, away_team: str) -> Optional[str]:
        """
        Broadcast text for a home/away pair, matched on normalized names in
        either orientation. None when unknown or when no candidates are available.
        """
        home_key = _team_key(home_team)
        away_key = _team_key(away_team)
        if not home_key or not away_key:
            return None

        try:
            candidates = await self.get_candidates()
        except FetchError as exc:
            candidates = self._candidates.peek() or []
            logger.warning(
                "broadcast_candidates_unavailable",
                error=str(exc),
                kind=exc.kind.value,
                stale_candidates=len(candidates),
            )
        except Exception as exc:
            # Sources other than the guide page may fail unclassified.
            candidates = self._candidates.peek() or []
            logger.error(
                "broadcast_candidates_unavailable",
                error=repr(exc),
                stale_candidates=len(candidates),
                exc_info=True,
            )

        for candidate in candidates:
            a = _team_key(candidate.raw_home_name)
            b = _team_key(candidate.raw_away_name)
            if (a == home_key and b == away_key) or (a == away_key and b == home_key):
                return candidate.broadcast_text.strip() or None
        logger.debug("broadcast_info_not_found", home=home_team, away=away_team)
        return None

    async def correlated_candidates(self) -> list[CorrelationResult]:
        """Every scraped candidate with the fixture id it maps to (or none)."""

        async def load() -> list[CorrelationResult]:
            candidates = await self.get_candidates()
            fixtures = await self._fixtures.get_correlation_window()
            return self._correlator.correlate(candidates, fixtures)

        return await self._correlated.get_or_refresh(load)
