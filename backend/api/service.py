"""
Entrypoint for the Matchday API (`matchday-api` console script).
PORT, when set by the platform, wins over MD_API_PORT.
"""
from __future__ import annotations

import os

import uvicorn

from shared.config import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run(
        "api.app:app",
        host=settings.api_host,
        port=int(os.environ.get("PORT") or settings.api_port),
        workers=settings.api_workers,
        log_level=settings.log_level.lower(),
        # http_request events come from RequestContextMiddleware
        access_log=False,
        proxy_headers=True,
    )


if __name__ == "__main__":
    main()
