"""
Bounded, de-duplicating image loader.

Per URL: queued -> loading -> loaded | failed. Terminal states are kept for
the life of the loader; a failed URL is not fetched again until evicted.
Concurrent requests for one URL share a single in-flight task, and at most
``max_concurrent_loads`` URLs hold an admission slot at any moment. Retries
use a fixed delay and keep the slot.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

import httpx

from shared.config import Settings, get_settings
from shared.errors import ImageLoadError
from shared.models.domain import ImageHandle, ImageLoadState
from shared.models.enums import ImageLoadStatus
from shared.utils.inflight import InFlightRegistry
from shared.utils.logging import get_logger
from shared.utils.metrics import IMAGE_LOADS, IMAGE_LOADS_IN_FLIGHT, IMAGE_LOADS_QUEUED

from media.pool import AdmissionPool

logger = get_logger(__name__)


@dataclass(frozen=True)
class ImageLoaderSettings:
    max_concurrent_loads: int = 5
    max_retries: int = 3
    retry_delay_s: float = 1.0
    timeout_s: float = 10.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "ImageLoaderSettings":
        return cls(
            max_concurrent_loads=settings.image_max_concurrent_loads,
            max_retries=settings.image_max_retries,
            retry_delay_s=settings.image_retry_delay_s,
            timeout_s=settings.image_timeout_s,
        )


class _AttemptFailed(Exception):
    pass


def _publish_pool_gauges(pool: AdmissionPool) -> None:
    IMAGE_LOADS_IN_FLIGHT.set(pool.in_flight)
    IMAGE_LOADS_QUEUED.set(pool.queued)


class BoundedImageLoader:
    def __init__(
        self,
        config: Optional[ImageLoaderSettings] = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._config = config or ImageLoaderSettings.from_settings(get_settings())
        self._transport = transport
        self._sleep = sleep
        self._pool = AdmissionPool(self._config.max_concurrent_loads, on_change=_publish_pool_gauges)
        self._inflight: InFlightRegistry[str, ImageHandle] = InFlightRegistry(name="image")
        self._states: dict[str, ImageLoadState] = {}
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def pool(self) -> AdmissionPool:
        return self._pool

    @property
    def config(self) -> ImageLoaderSettings:
        return self._config

    async def start(self) -> None:
        if self._client is not None:
            return
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(self._config.timeout_s),
            follow_redirects=True,
            transport=self._transport,
        )

    async def close(self) -> None:
        await self._inflight.cancel_all()
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    # ── Public API ───────────────────────────────────────────────────────

    def state(self, url: str) -> Optional[ImageLoadState]:
        return self._states.get(url)

    async def load(self, url: str) -> ImageHandle:
        """
        Return the image for ``url``, loading it at most once.

        Raises:
            ImageLoadError: the URL is (or just became) failed.
        """
        current = self._states.get(url)
        if current is not None:
            if current.status == ImageLoadStatus.LOADED and current.handle is not None:
                return current.handle
            if current.status == ImageLoadStatus.FAILED:
                raise ImageLoadError(url, current.error or "")

        if url not in self._inflight:
            self._states[url] = ImageLoadState(url=url, status=ImageLoadStatus.QUEUED)
        return await self._inflight.run(url, lambda: self._load(url))

    def evict(self, url: str) -> bool:
        """Forget a terminal entry so the next load() fetches again. Pending entries stay."""
        current = self._states.get(url)
        if current is None or current.status.is_pending:
            return False
        del self._states[url]
        return True

    def clear(self) -> int:
        """Evict every terminal entry; returns how many were dropped."""
        terminal = [url for url, s in self._states.items() if not s.status.is_pending]
        for url in terminal:
            del self._states[url]
        return len(terminal)

    # ── Internals ────────────────────────────────────────────────────────

    async def _load(self, url: str) -> ImageHandle:
        try:
            async with self._pool.slot():
                self._states[url] = ImageLoadState(url=url, status=ImageLoadStatus.LOADING)
                return await self._load_with_retry(url)
        except asyncio.CancelledError:
            self._states.pop(url, None)
            raise
        except ImageLoadError:
            raise
        except Exception as exc:
            error = f"{type(exc).__name__}: {exc}"
            self._states[url] = ImageLoadState(url=url, status=ImageLoadStatus.FAILED, error=error)
            IMAGE_LOADS.labels(outcome="failed").inc()
            logger.error("image_load_crashed", url=url, error=error, exc_info=True)
            raise

    async def _load_with_retry(self, url: str) -> ImageHandle:
        attempts = self._config.max_retries + 1
        last_error = ""
        for attempt in range(1, attempts + 1):
            try:
                handle = await self._fetch_once(url)
            except _AttemptFailed as exc:
                last_error = str(exc)
                if attempt < attempts:
                    logger.debug(
                        "image_load_retry",
                        url=url,
                        attempt=attempt,
                        error=last_error,
                        delay_s=self._config.retry_delay_s,
                    )
                    await self._sleep(self._config.retry_delay_s)
                continue

            self._states[url] = ImageLoadState(
                url=url, status=ImageLoadStatus.LOADED, handle=handle, attempts=attempt
            )
            IMAGE_LOADS.labels(outcome="loaded").inc()
            return handle

        self._states[url] = ImageLoadState(
            url=url, status=ImageLoadStatus.FAILED, error=last_error, attempts=attempts
        )
        IMAGE_LOADS.labels(outcome="failed").inc()
        logger.warning("image_load_failed", url=url, attempts=attempts, error=last_error)
        raise ImageLoadError(url, last_error)

    async def _fetch_once(self, url: str) -> ImageHandle:
        if self._client is None:
            raise RuntimeError("BoundedImageLoader not started. Call start() first.")
        try:
            response = await self._client.get(url)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise _AttemptFailed(f"{type(exc).__name__}: {exc}") from exc

        if not response.is_success:
            raise _AttemptFailed(f"HTTP {response.status_code}")
        content_type = response.headers.get("content-type", "").split(";")[0].strip().lower()
        if not content_type.startswith("image/"):
            raise _AttemptFailed(f"unexpected content-type {content_type or 'none'!r}")
        return ImageHandle(url=url, content_type=content_type, data=response.content)
