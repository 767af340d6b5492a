"""
Dependency injection for the API service.
One ServiceContainer per app, built at startup and stored on ``app.state``;
route handlers reach it through the Depends() helpers below.
"""
from __future__ import annotations

from typing import Optional

from fastapi import Request

from shared.config import Settings, get_settings
from shared.utils.http_client import ResilientFetcher, RetryPolicy
from shared.utils.logging import get_logger

from broadcast.config import BroadcastSettings, get_broadcast_settings
from broadcast.scheduler import BroadcastRefreshScheduler
from broadcast.service import BroadcastService
from broadcast.sources import CandidateSource, ProxiedPageSource
from fixtures.providers.api_football import ApiFootballClient, api_headers
from fixtures.service import FixtureService
from media.loader import BoundedImageLoader, ImageLoaderSettings

logger = get_logger(__name__)


class ServiceContainer:
    """Owns every long-lived client and service; start()/close() bracket the app's life."""

    def __init__(
        self,
        fixtures: FixtureService,
        broadcast: BroadcastService,
        images: BoundedImageLoader,
        *,
        fetchers: Optional[list[ResilientFetcher]] = None,
        scheduler: Optional[BroadcastRefreshScheduler] = None,
    ) -> None:
        self.fixtures = fixtures
        self.broadcast = broadcast
        self.images = images
        self.scheduler = scheduler
        self._fetchers = fetchers or []

    @classmethod
    def from_settings(
        cls,
        settings: Optional[Settings] = None,
        broadcast_settings: Optional[BroadcastSettings] = None,
        *,
        source: Optional[CandidateSource] = None,
    ) -> "ServiceContainer":
        settings = settings or get_settings()
        broadcast_settings = broadcast_settings or get_broadcast_settings()
        headers = api_headers(settings.api_football_key)
        policy = RetryPolicy.from_settings(settings)

        api_fetcher = ResilientFetcher(
            "api_football",
            settings.api_football_base_url,
            headers=headers,
            timeout_s=settings.api_football_timeout_s,
            policy=policy,
        )
        # Status probe: short timeout, single attempt.
        status_fetcher = ResilientFetcher(
            "api_football_status",
            settings.api_football_base_url,
            headers=headers,
            timeout_s=settings.api_status_timeout_s,
            policy=RetryPolicy.fixed(0, 0.0),
        )
        client = ApiFootballClient(
            api_fetcher,
            settings.api_football_timezone,
            status_fetcher=status_fetcher,
        )
        fixtures = FixtureService(client, settings)
        broadcast = BroadcastService(
            source or ProxiedPageSource(broadcast_settings),
            fixtures,
            broadcast_settings,
        )
        scheduler = None
        if broadcast_settings.enabled:
            scheduler = BroadcastRefreshScheduler(broadcast, broadcast_settings.refresh_interval_s)
        images = BoundedImageLoader(ImageLoaderSettings.from_settings(settings))
        return cls(
            fixtures,
            broadcast,
            images,
            fetchers=[api_fetcher, status_fetcher],
            scheduler=scheduler,
        )

    async def start(self) -> None:
        for fetcher in self._fetchers:
            await fetcher.start()
        await self.broadcast.start()
        await self.images.start()
        if self.scheduler is not None:
            self.scheduler.start()
        logger.info(
            "services_started",
            fetchers=[f.name for f in self._fetchers],
            broadcast_source=self.broadcast.source.source_name,
            scheduler=self.scheduler is not None,
        )

    async def close(self) -> None:
        if self.scheduler is not None:
            await self.scheduler.stop()
        await self.images.close()
        await self.broadcast.close()
        for fetcher in self._fetchers:
            await fetcher.close()
        logger.info("services_stopped")


def get_container(request: Request) -> ServiceContainer:
    """FastAPI dependency: returns the app's ServiceContainer."""
    container = getattr(request.app.state, "container", None)
    if container is None:
        raise RuntimeError("ServiceContainer not initialized; create_app() must be given one or run its lifespan")
    return container


def get_fixture_service(request: Request) -> FixtureService:
    return get_container(request).fixtures


def get_broadcast_service(request: Request) -> BroadcastService:
    return get_container(request).broadcast


def get_image_loader(request: Request) -> BoundedImageLoader:
    return get_container(request).images
