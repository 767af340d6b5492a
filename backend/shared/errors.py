"""
Classified error taxonomy shared by the fetch, cache and API layers.

Every failure that reaches a caller carries an ErrorKind plus a short
user-facing message; the HTTP layer maps kinds to status codes.
"""
from __future__ import annotations

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    TRANSIENT = "transient"
    RATE_LIMITED = "rate_limited"
    CLIENT = "client"
    NOT_FOUND = "not_found"
    MALFORMED = "malformed"


class MatchdayError(Exception):
    """Base for all classified errors raised by this project."""

    kind: ErrorKind = ErrorKind.TRANSIENT
    default_user_message = "Erro inesperado. Tente novamente."

    def __init__(self, message: str, *, user_message: Optional[str] = None) -> None:
        super().__init__(message)
        self.user_message = user_message or self.default_user_message


class FetchError(MatchdayError):
    """An outbound request failed after the retry policy ran its course."""

    def __init__(
        self,
        message: str,
        *,
        endpoint: str = "",
        status_code: Optional[int] = None,
        attempts: int = 1,
        user_message: Optional[str] = None,
    ) -> None:
        super().__init__(message, user_message=user_message)
        self.endpoint = endpoint
        self.status_code = status_code
        self.attempts = attempts


class TransientUpstreamError(FetchError):
    """Timeouts, connection failures, 408 and 5xx after retries are exhausted."""

    kind = ErrorKind.TRANSIENT
    default_user_message = "Servidor temporariamente indisponível. Tente novamente em alguns instantes."
    connection_user_message = "Erro de conexão. Verifique sua internet e tente novamente."


class RateLimitedError(FetchError):
    kind = ErrorKind.RATE_LIMITED
    default_user_message = "Limite de requisições atingido. Tente novamente em alguns minutos."


class ClientRequestError(FetchError):
    """A 4xx other than 408/429; never retried."""

    kind = ErrorKind.CLIENT
    default_user_message = "Requisição inválida ao provedor de dados."


class UpstreamApiError(ClientRequestError):
    """Upstream answered 200 but reported errors in its envelope (bad key, plan limits)."""

    def __init__(self, message: str, *, errors: Optional[dict] = None, **kwargs) -> None:
        super().__init__(message, **kwargs)
        self.errors = errors or {}


class MalformedResponseError(FetchError):
    kind = ErrorKind.MALFORMED
    default_user_message = "Resposta inválida do provedor de dados."


class NotFoundError(MatchdayError):
    """Upstream returned an empty result for an entity that was asked for by id."""

    kind = ErrorKind.NOT_FOUND
    default_user_message = "Recurso não encontrado."


class FixtureNotFoundError(NotFoundError):
    default_user_message = "Partida não encontrada."

    def __init__(self, fixture_id: int) -> None:
        super().__init__(f"fixture {fixture_id} not found")
        self.fixture_id = fixture_id


class TeamNotFoundError(NotFoundError):
    default_user_message = "Time não encontrado."

    def __init__(self, team_id: int) -> None:
        super().__init__(f"team {team_id} not found")
        self.team_id = team_id


class ImageLoadError(MatchdayError):
    """An image URL is in the terminal failed state."""

    kind = ErrorKind.TRANSIENT
    default_user_message = "Não foi possível carregar a imagem."

    def __init__(self, url: str, reason: str = "") -> None:
        super().__init__(f"image load failed: {url} ({reason})" if reason else f"image load failed: {url}")
        self.url = url
        self.reason = reason
