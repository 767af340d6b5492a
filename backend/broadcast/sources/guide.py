"""
Broadcast guide page fetched through a CORS proxy.

The page HTML is handed to an injected parser; this module knows nothing
about the page's markup. Fetching uses a ResilientFetcher with a fixed
delay between attempts and a short timeout.
"""
from __future__ import annotations

import importlib
from typing import Callable, Optional

from shared.errors import MalformedResponseError, MatchdayError
from shared.models.domain import ScrapedCandidate
from shared.utils.http_client import ResilientFetcher, RetryPolicy
from shared.utils.logging import get_logger

from broadcast.config import BroadcastSettings
from broadcast.sources.base import CandidateSource

logger = get_logger(__name__)

PageParser = Callable[[str], list[ScrapedCandidate]]

BROWSER_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
}


def load_parser(path: Optional[str]) -> Optional[PageParser]:
    """Resolve 'package.module:function' to a callable; None stays None."""
    if not path:
        return None
    module_name, _, attr = path.partition(":")
    if not module_name or not attr:
        raise ValueError(f"parser must look like 'package.module:function', got {path!r}")
    parser = getattr(importlib.import_module(module_name), attr)
    if not callable(parser):
        raise TypeError(f"{path} is not callable")
    return parser


class ProxiedPageSource(CandidateSource):
    """Fetches one HTML page through ``proxy_url?url=<page>`` and parses it."""

    def __init__(
        self,
        settings: BroadcastSettings,
        parser: Optional[PageParser] = None,
        fetcher: Optional[ResilientFetcher] = None,
    ) -> None:
        self._settings = settings
        self._parser = parser if parser is not None else load_parser(settings.parser)
        self._fetcher = fetcher or ResilientFetcher(
            "broadcast_guide",
            headers=BROWSER_HEADERS,
            timeout_s=settings.fetch_timeout_s,
            policy=RetryPolicy.fixed(settings.fetch_max_retries, settings.fetch_retry_delay_s),
        )

    @property
    def source_name(self) -> str:
        return "guide_page"

    async def start(self) -> None:
        await self._fetcher.start()

    async def close(self) -> None:
        await self._fetcher.close()

    async def fetch_candidates(self) -> list[ScrapedCandidate]:
        if self._parser is None:
            logger.warning("broadcast_parser_not_configured", source=self.source_name)
            return []

        response = await self._fetcher.get(self._settings.proxy_url, params={"url": self._settings.page_url})
        html = response.text
        if not html.strip():
            raise MalformedResponseError("guide page body is empty", endpoint=self._settings.page_url)

        try:
            candidates = self._parser(html)
        except MatchdayError:
            raise
        except Exception as exc:
            raise MalformedResponseError(
                f"guide page parser failed: {type(exc).__name__}: {exc}",
                endpoint=self._settings.page_url,
            ) from exc
        logger.info("broadcast_candidates_scraped", source=self.source_name, count=len(candidates))
        return candidates
