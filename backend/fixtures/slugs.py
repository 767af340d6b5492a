"""Readable match slugs: ``{league}/{home}-vs-{away}-{dd-mm-yyyy}`` -> fixture id."""
from __future__ import annotations

import re
from collections import OrderedDict
from typing import Optional

from unidecode import unidecode

from shared.models.domain import FixtureRecord

_NON_SLUG_RE = re.compile(r"[^a-z0-9]+")


def slugify(text: str) -> str:
    return _NON_SLUG_RE.sub("-", unidecode(text or "").lower()).strip("-")


def build_slug(league: str, home: str, away: str, date_str: str) -> str:
    return f"{slugify(league)}/{slugify(home)}-vs-{slugify(away)}-{date_str}"


class MatchSlugIndex:
    """
    Remembers the slugs it hands out so they can be resolved back to an id.

    Bounded LRU: handing out or resolving a slug marks it recently used, and
    the least recently used slug is dropped once ``max_entries`` is reached.
    """

    def __init__(self, max_entries: int = 5000) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self._max_entries = max_entries
        self._ids: OrderedDict[str, int] = OrderedDict()

    def __len__(self) -> int:
        return len(self._ids)

    def slug_for(self, fixture: FixtureRecord) -> str:
        slug = build_slug(
            fixture.league_name,
            fixture.home_team_name,
            fixture.away_team_name,
            fixture.kickoff.strftime("%d-%m-%Y"),
        )
        self._ids[slug] = fixture.id
        self._ids.move_to_end(slug)
        while len(self._ids) > self._max_entries:
            self._ids.popitem(last=False)
        return slug

    def register_all(self, fixtures: list[FixtureRecord]) -> None:
        for fixture in fixtures:
            self.slug_for(fixture)

    def resolve(self, slug: str) -> Optional[int]:
        key = slug.strip("/")
        fixture_id = self._ids.get(key)
        if fixture_id is not None:
            self._ids.move_to_end(key)
        return fixture_id
