"""
API middleware stack.

RequestContextMiddleware assigns the request id, binds it into the logging
context for everything the handler logs, and emits one ``http_request``
event per call. Classified errors become JSON bodies with the status from
ERROR_STATUS; anything unclassified is a 500.
"""
from __future__ import annotations

import time
import uuid

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from shared.config import get_settings
from shared.errors import ErrorKind, FetchError, MatchdayError
from shared.utils.logging import get_logger, request_context

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
UNLOGGED_PATHS = frozenset({"/health", "/metrics"})
RATE_LIMIT_RETRY_AFTER_S = 60

ERROR_STATUS: dict[ErrorKind, int] = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.RATE_LIMITED: 429,
    ErrorKind.CLIENT: 502,
    ErrorKind.TRANSIENT: 503,
    ErrorKind.MALFORMED: 503,
}


class RequestContextMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex[:16]
        request.state.request_id = request_id
        path = request.url.path

        started = time.perf_counter()
        with request_context(request_id=request_id):
            response = await call_next(request)
            if path not in UNLOGGED_PATHS:
                logger.info(
                    "http_request",
                    method=request.method,
                    path=path,
                    status=response.status_code,
                    duration_ms=round((time.perf_counter() - started) * 1000, 2),
                )
        response.headers[REQUEST_ID_HEADER] = request_id
        return response


def error_response(exc: MatchdayError) -> JSONResponse:
    """Map a classified error to its HTTP status and user-facing body."""
    headers = None
    if exc.kind == ErrorKind.RATE_LIMITED:
        headers = {"Retry-After": str(RATE_LIMIT_RETRY_AFTER_S)}
    return JSONResponse(
        status_code=ERROR_STATUS.get(exc.kind, 503),
        content={"error": exc.kind.value, "message": exc.user_message},
        headers=headers,
    )


def setup_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(MatchdayError)
    async def classified_error_handler(request: Request, exc: MatchdayError) -> JSONResponse:
        upstream = {}
        if isinstance(exc, FetchError):
            upstream = {"endpoint": exc.endpoint, "upstream_status": exc.status_code, "attempts": exc.attempts}
        logger.warning("request_failed", path=request.url.path, kind=exc.kind.value, error=str(exc), **upstream)
        return error_response(exc)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        # Runs outside the request context; the id comes from request.state.
        request_id = getattr(request.state, "request_id", None)
        logger.error(
            "unhandled_exception",
            path=request.url.path,
            error=repr(exc),
            request_id=request_id,
            exc_info=exc,
        )
        return JSONResponse(
            status_code=500,
            content={
                "error": "internal_server_error",
                "message": "An unexpected error occurred",
                "request_id": request_id,
            },
        )


def setup_middleware(app: FastAPI) -> None:
    settings = get_settings()
    app.add_middleware(RequestContextMiddleware)
    # Added last so it wraps everything, including error responses.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=False,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=[REQUEST_ID_HEADER, "Cache-Control", "Retry-After"],
    )
    setup_exception_handlers(app)
