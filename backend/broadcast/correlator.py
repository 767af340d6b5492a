"""
Scraped candidate -> fixture correlation.

Per candidate, first match wins:
  1. stadium pass: venue keys equal or one contains the other
  2. name pass: home/away keys equal (either orientation) -> exact_names,
     or both sides contained one way or the other -> partial_names
  3. otherwise none

There is no scoring. When several fixtures qualify, the first one in the
input order is taken; callers control precedence by ordering the fixtures.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterable, Optional, Sequence

from shared.models.domain import CorrelationResult, FixtureRecord, ScrapedCandidate
from shared.models.enums import MatchStrategy
from shared.utils.logging import get_logger
from shared.utils.metrics import CORRELATIONS

from broadcast.normalizer import normalize, normalize_venue

logger = get_logger(__name__)

SlugBuilder = Callable[[FixtureRecord], str]


@dataclass(frozen=True)
class _FixtureKeys:
    fixture: FixtureRecord
    venue: str
    home: str
    away: str


def _contains_either_way(a: str, b: str) -> bool:
    return bool(a) and bool(b) and (a in b or b in a)


class MatchCorrelator:
    """Links scraped candidates to authoritative fixture ids."""

    def __init__(self, slug_builder: Optional[SlugBuilder] = None) -> None:
        self._slug_builder = slug_builder

    def correlate(
        self,
        candidates: Iterable[ScrapedCandidate],
        fixtures: Sequence[FixtureRecord],
    ) -> list[CorrelationResult]:
        """Return exactly one result per candidate, in candidate order."""
        keyed = [
            _FixtureKeys(
                fixture=f,
                venue=normalize_venue(f.venue_name),
                home=normalize(f.home_team_name),
                away=normalize(f.away_team_name),
            )
            for f in fixtures
        ]
        results = [self._correlate_one(candidate, keyed) for candidate in candidates]

        matched = sum(1 for r in results if r.matched)
        logger.info(
            "correlation_complete",
            candidates=len(results),
            fixtures=len(keyed),
            matched=matched,
        )
        return results

    def correlate_one(
        self, candidate: ScrapedCandidate, fixtures: Sequence[FixtureRecord]
    ) -> CorrelationResult:
        return self.correlate([candidate], fixtures)[0]

    def _correlate_one(
        self, candidate: ScrapedCandidate, keyed: Sequence[_FixtureKeys]
    ) -> CorrelationResult:
        match = self._by_stadium(candidate, keyed) or self._by_names(candidate, keyed)
        if match is None:
            CORRELATIONS.labels(strategy=MatchStrategy.NONE.value).inc()
            logger.debug(
                "correlation_miss",
                home=candidate.raw_home_name,
                away=candidate.raw_away_name,
                venue=candidate.raw_venue_name,
            )
            return CorrelationResult(candidate=candidate, match_strategy=MatchStrategy.NONE)

        fixture, strategy = match
        CORRELATIONS.labels(strategy=strategy.value).inc()
        return CorrelationResult(
            candidate=candidate,
            matched_fixture_id=fixture.id,
            match_strategy=strategy,
            match_slug=self._slug_builder(fixture) if self._slug_builder else None,
        )

    @staticmethod
    def _by_stadium(
        candidate: ScrapedCandidate, keyed: Sequence[_FixtureKeys]
    ) -> Optional[tuple[FixtureRecord, MatchStrategy]]:
        venue = normalize_venue(candidate.raw_venue_name)
        if not venue:
            return None
        for keys in keyed:
            if _contains_either_way(venue, keys.venue):
                return keys.fixture, MatchStrategy.STADIUM
        return None

    @staticmethod
    def _by_names(
        candidate: ScrapedCandidate, keyed: Sequence[_FixtureKeys]
    ) -> Optional[tuple[FixtureRecord, MatchStrategy]]:
        home = normalize(candidate.raw_home_name)
        away = normalize(candidate.raw_away_name)
        if not home or not away:
            return None
        for keys in keyed:
            if (home == keys.home and away == keys.away) or (home == keys.away and away == keys.home):
                return keys.fixture, MatchStrategy.EXACT_NAMES
            if _contains_either_way(home, keys.home) and _contains_either_way(away, keys.away):
                return keys.fixture, MatchStrategy.PARTIAL_NAMES
        return None
