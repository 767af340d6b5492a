"""
Resilient async HTTP client used for every upstream call.

One ``fetch`` = one logical request: attempt, classify the outcome, back off
and retry when the policy allows, otherwise raise a classified FetchError.
Includes timeout management, retry logging and metrics per attempt.
"""
from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar

import httpx

from shared.config import RateLimitPolicy, Settings
from shared.errors import (
    ClientRequestError,
    FetchError,
    RateLimitedError,
    TransientUpstreamError,
)
from shared.utils.logging import get_logger
from shared.utils.metrics import UPSTREAM_LATENCY, UPSTREAM_REQUESTS, UPSTREAM_RETRIES

logger = get_logger(__name__)

T = TypeVar("T")
Sleep = Callable[[float], Awaitable[None]]

DEFAULT_RETRYABLE_STATUS_CODES = frozenset({408, 429, 500, 502, 503, 504})


class NetworkErrorKind(str, Enum):
    TIMEOUT = "timeout"
    CONNECTION_ABORTED = "connection_aborted"
    NETWORK_UNREACHABLE = "network_unreachable"
    PROTOCOL = "protocol"


DEFAULT_RETRYABLE_NETWORK_ERRORS = frozenset(
    {
        NetworkErrorKind.TIMEOUT,
        NetworkErrorKind.CONNECTION_ABORTED,
        NetworkErrorKind.NETWORK_UNREACHABLE,
    }
)


def classify_transport_error(exc: httpx.TransportError) -> NetworkErrorKind:
    """Map an httpx transport failure onto the retry policy's network error kinds."""
    if isinstance(exc, httpx.TimeoutException):
        return NetworkErrorKind.TIMEOUT
    if isinstance(exc, (httpx.ConnectError, httpx.ProxyError)):
        return NetworkErrorKind.NETWORK_UNREACHABLE
    if isinstance(exc, (httpx.NetworkError, httpx.RemoteProtocolError)):
        return NetworkErrorKind.CONNECTION_ABORTED
    return NetworkErrorKind.PROTOCOL


@dataclass(frozen=True)
class RetryPolicy:
    max_retries: int = 3
    base_delay_s: float = 1.0
    backoff_multiplier: float = 1.5
    max_delay_s: float = 5.0
    retryable_status_codes: frozenset[int] = DEFAULT_RETRYABLE_STATUS_CODES
    retryable_network_errors: frozenset[NetworkErrorKind] = DEFAULT_RETRYABLE_NETWORK_ERRORS
    rate_limit_policy: RateLimitPolicy = RateLimitPolicy.RETRY

    def delay_for(self, attempt_index: int) -> float:
        """Delay before retry number ``attempt_index`` (0-based)."""
        return min(self.base_delay_s * self.backoff_multiplier ** attempt_index, self.max_delay_s)

    @classmethod
    def from_settings(cls, settings: Settings) -> "RetryPolicy":
        return cls(
            max_retries=settings.fetch_max_retries,
            base_delay_s=settings.fetch_base_delay_s,
            backoff_multiplier=settings.fetch_backoff_multiplier,
            max_delay_s=settings.fetch_max_delay_s,
            rate_limit_policy=settings.rate_limit_policy,
        )

    @classmethod
    def fixed(cls, max_retries: int, delay_s: float) -> "RetryPolicy":
        """Constant delay between attempts (multiplier 1)."""
        return cls(
            max_retries=max_retries,
            base_delay_s=delay_s,
            backoff_multiplier=1.0,
            max_delay_s=delay_s,
        )


class ResilientFetcher:
    """
    Async HTTP client with policy-driven retry and classified errors.

    Retries only while attempts remain AND the failure is a retryable network
    error or a retryable status. Any other 4xx raises ClientRequestError on
    the first attempt. 429 is retried like other transients unless the policy
    is FAIL_FAST, and always surfaces as RateLimitedError.

    ``transport`` and ``sleep`` are injectable for tests.
    """

    def __init__(
        self,
        name: str,
        base_url: str = "",
        *,
        headers: dict[str, str] | None = None,
        timeout_s: float = 10.0,
        policy: RetryPolicy | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._name = name
        self._base_url = base_url.rstrip("/")
        self._headers = headers or {}
        self._timeout = timeout_s
        self._policy = policy or RetryPolicy()
        self._transport = transport
        self._sleep = sleep
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def name(self) -> str:
        return self._name

    @property
    def policy(self) -> RetryPolicy:
        return self._policy

    async def start(self) -> None:
        """Initialize the underlying httpx client."""
        if self._client is not None:
            return
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers=self._headers,
            timeout=httpx.Timeout(self._timeout, connect=min(self._timeout, 5.0)),
            follow_redirects=True,
            limits=httpx.Limits(max_connections=50, max_keepalive_connections=20),
            transport=self._transport,
        )

    async def close(self) -> None:
        """Close the underlying httpx client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "ResilientFetcher":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    def _require_client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError(f"ResilientFetcher {self._name!r} not started. Call start() first.")
        return self._client

    def build_request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Request:
        return self._require_client().build_request(method, path, params=params, headers=headers)

    async def get(
        self,
        path: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        return await self.fetch(self.build_request("GET", path, params=params, headers=headers))

    async def fetch(self, request: httpx.Request) -> httpx.Response:
        """
        Send ``request`` under the retry policy.

        Returns:
            The first 2xx response.

        Raises:
            ClientRequestError: non-retryable 4xx, immediately.
            RateLimitedError: 429 after retries (or at once under FAIL_FAST).
            TransientUpstreamError: network failure or retryable status after retries,
                or a non-retryable 5xx.
        """
        client = self._require_client()
        policy = self._policy
        endpoint = request.url.path
        attempt = 0

        while True:
            start = time.perf_counter()
            try:
                response = await client.send(request)
            except httpx.TransportError as exc:
                kind = classify_transport_error(exc)
                self._observe(kind.value, start)
                if kind in policy.retryable_network_errors and attempt < policy.max_retries:
                    await self._backoff(attempt, endpoint, reason=kind.value)
                    attempt += 1
                    continue
                logger.error(
                    "upstream_network_error",
                    client=self._name,
                    endpoint=endpoint,
                    error_kind=kind.value,
                    attempts=attempt + 1,
                    error=str(exc),
                )
                raise TransientUpstreamError(
                    f"{self._name} {endpoint}: {kind.value} ({exc})",
                    endpoint=endpoint,
                    attempts=attempt + 1,
                    user_message=TransientUpstreamError.connection_user_message,
                ) from exc

            status = response.status_code
            self._observe(str(status), start)
            if response.is_success:
                logger.debug(
                    "upstream_request_success",
                    client=self._name,
                    endpoint=endpoint,
                    status=status,
                    attempts=attempt + 1,
                )
                return response

            if status == 429 and policy.rate_limit_policy == RateLimitPolicy.FAIL_FAST:
                raise self._status_error(status, endpoint, attempt + 1)

            if status in policy.retryable_status_codes and attempt < policy.max_retries:
                await self._backoff(attempt, endpoint, reason=str(status))
                attempt += 1
                continue

            raise self._status_error(status, endpoint, attempt + 1)

    async def _backoff(self, attempt: int, endpoint: str, *, reason: str) -> None:
        delay = self._policy.delay_for(attempt)
        UPSTREAM_RETRIES.labels(client=self._name, reason=reason).inc()
        logger.warning(
            "upstream_retry",
            client=self._name,
            endpoint=endpoint,
            reason=reason,
            retry=attempt + 1,
            max_retries=self._policy.max_retries,
            delay_s=round(delay, 3),
        )
        await self._sleep(delay)

    def _status_error(self, status: int, endpoint: str, attempts: int) -> FetchError:
        message = f"{self._name} {endpoint}: HTTP {status}"
        logger.error(
            "upstream_http_error",
            client=self._name,
            endpoint=endpoint,
            status=status,
            attempts=attempts,
        )
        if status == 429:
            return RateLimitedError(message, endpoint=endpoint, status_code=status, attempts=attempts)
        if status in self._policy.retryable_status_codes or status >= 500:
            return TransientUpstreamError(message, endpoint=endpoint, status_code=status, attempts=attempts)
        return ClientRequestError(message, endpoint=endpoint, status_code=status, attempts=attempts)

    def _observe(self, status: str, start: float) -> None:
        UPSTREAM_REQUESTS.labels(client=self._name, status=status).inc()
        UPSTREAM_LATENCY.labels(client=self._name).observe(time.perf_counter() - start)


@dataclass(frozen=True)
class Settled(Generic[T]):
    """Outcome of one awaitable inside gather_settled."""
    value: Optional[T] = None
    error: Optional[BaseException] = field(default=None)

    @property
    def ok(self) -> bool:
        return self.error is None


async def gather_settled(**awaitables: Awaitable[Any]) -> dict[str, Settled[Any]]:
    """
    Run awaitables concurrently; each one succeeds or fails on its own.

    Cancellation of the caller still propagates.
    """
    keys = list(awaitables)
    results = await asyncio.gather(*awaitables.values(), return_exceptions=True)
    settled: dict[str, Settled[Any]] = {}
    for key, result in zip(keys, results):
        if isinstance(result, BaseException):
            if not isinstance(result, Exception):
                raise result
            settled[key] = Settled(error=result)
        else:
            settled[key] = Settled(value=result)
    return settled
