"""
Base interface for scraped candidate sources.
A source returns every candidate it can see right now; caching is the caller's job.
"""
from __future__ import annotations

from abc import ABC, abstractmethod

from shared.models.domain import ScrapedCandidate


class CandidateSource(ABC):
    """Secondary (non-authoritative) listing of matches with broadcast text."""

    @property
    @abstractmethod
    def source_name(self) -> str:
        pass

    async def start(self) -> None:
        """Acquire network resources. Default: nothing to do."""

    async def close(self) -> None:
        """Release network resources. Default: nothing to do."""

    @abstractmethod
    async def fetch_candidates(self) -> list[ScrapedCandidate]:
        """
        Fetch and parse the full candidate list.

        Raises a FetchError subclass when the page cannot be retrieved;
        an empty list means the page had no recognizable matches.
        """
        pass


class StaticCandidateSource(CandidateSource):
    """Fixed candidate list; used when no scrape parser is configured and in tests."""

    def __init__(self, candidates: list[ScrapedCandidate] | None = None, name: str = "static") -> None:
        self._candidates = list(candidates or [])
        self._name = name
        self.fetch_count = 0

    @property
    def source_name(self) -> str:
        return self._name

    def replace(self, candidates: list[ScrapedCandidate]) -> None:
        self._candidates = list(candidates)

    async def fetch_candidates(self) -> list[ScrapedCandidate]:
        self.fetch_count += 1
        return list(self._candidates)
