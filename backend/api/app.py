"""
FastAPI application factory for the Matchday API service.

Creates the app with:
- REST routes (matches, leagues, teams, broadcast, images)
- Middleware stack
- Health and status endpoints
- Lifespan management: builds the ServiceContainer, starts the broadcast
  refresh scheduler, tears everything down on shutdown
"""
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Optional

from fastapi import Depends, FastAPI

from shared.config import get_settings
from shared.utils.logging import get_logger, setup_logging
from shared.utils.metrics import start_metrics_server

from api.dependencies import ServiceContainer, get_container
from api.middleware import setup_middleware
from api.routes.broadcast import router as broadcast_router
from api.routes.images import router as images_router
from api.routes.leagues import router as leagues_router
from api.routes.leagues import teams_router
from api.routes.matches import router as matches_router

logger = get_logger(__name__)


def _make_lifespan(container: Optional[ServiceContainer], manage: bool):
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """
        Application lifespan manager.
        With ``manage`` set, builds (if needed), starts and finally closes the
        container; otherwise only attaches the one it was given.
        """
        if not manage:
            app.state.container = container
            yield
            return

        settings = get_settings()
        setup_logging("api")
        start_metrics_server(settings.metrics_port)

        services = container or ServiceContainer.from_settings(settings)
        app.state.container = services
        await services.start()
        logger.info("api_service_started", host=settings.api_host, port=settings.api_port)
        try:
            yield
        finally:
            await services.close()
            logger.info("api_service_stopped")

    return lifespan


def create_app(container: Optional[ServiceContainer] = None, *, use_lifespan: bool = True) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Set use_lifespan=False for tests: the given container is attached as-is
    and never started or closed by the app.
    """
    app = FastAPI(
        title="Matchday API",
        description="Football fixtures, match details and broadcast info",
        version="1.0.0",
        lifespan=_make_lifespan(container, manage=use_lifespan),
        docs_url="/docs",
        redoc_url="/redoc",
    )
    # Available before startup for TestClient used without a context manager.
    app.state.container = container

    setup_middleware(app)

    app.include_router(matches_router)
    app.include_router(leagues_router)
    app.include_router(teams_router)
    app.include_router(broadcast_router)
    app.include_router(images_router)

    @app.get("/health", tags=["system"])
    async def health() -> dict[str, str]:
        return {"status": "ok", "service": "api"}

    @app.get("/v1/status", tags=["system"])
    async def system_status(services: ServiceContainer = Depends(get_container)) -> dict[str, Any]:
        """Upstream API availability plus background-task and loader counters."""
        api = await services.fixtures.check_api_status()
        scheduler = services.scheduler
        pool = services.images.pool
        return {
            "status": "ok" if api.is_available else "degraded",
            "api_football": api.model_dump(mode="json"),
            "broadcast_refresh": {
                "running": scheduler.running if scheduler else False,
                "runs": scheduler.runs if scheduler else 0,
                "failures": scheduler.failures if scheduler else 0,
            },
            "images": {
                "in_flight": pool.in_flight,
                "queued": pool.queued,
                "peak": pool.peak,
                "max_concurrent": pool.max_concurrent,
            },
        }

    return app


app = create_app()
