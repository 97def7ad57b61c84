"""HTTP client for the Jikan v4 API."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

import httpx
from pydantic import ValidationError

from mediashelf.adapters.http_resilience import ResilientClient
from mediashelf.domain.errors import RateLimitedError, TransientFetchError
from mediashelf.domain.model import MediaKind

from .schema import (
    JikanAnimeResponse,
    JikanBaseModel,
    JikanErrorResponse,
    JikanMangaResponse,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    from mediashelf.config.http_resilience import ResilienceConfig
    from mediashelf.config.jikan import JikanConfig

    from .schema import JikanAnime, JikanManga

log = getLogger(__name__)

HTTP_TOO_MANY_REQUESTS = 429
HTTP_SERVER_ERROR = 500


class JikanAPIError(RuntimeError):
    """Raised when Jikan answers with a non-retryable error or an unexpected payload."""

    def __init__(self, message: str, *, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class JikanRateLimitedError(RateLimitedError):
    """Jikan answered HTTP 429."""


class JikanUnavailableError(TransientFetchError):
    """Jikan could not be reached or answered with a server error."""


class JikanClient:
    """Low-level async client for single-record lookups."""

    def __init__(
        self,
        *,
        config: JikanConfig,
        client_factory: Callable[[ResilienceConfig], ResilientClient] | None = None,
    ) -> None:
        self._resilience = config.resilience
        self._client_factory = client_factory or ResilientClient

    async def fetch_anime(self, mal_id: int) -> JikanAnime:
        payload = await self._get_json(f"anime/{mal_id}/full")
        return _validate(JikanAnimeResponse, payload).data

    async def fetch_manga(self, mal_id: int) -> JikanManga:
        payload = await self._get_json(f"manga/{mal_id}/full")
        return _validate(JikanMangaResponse, payload).data

    async def fetch(self, kind: MediaKind, mal_id: int) -> JikanAnime | JikanManga:
        if kind is MediaKind.ANIME:
            return await self.fetch_anime(mal_id)
        if kind is MediaKind.MANGA:
            return await self.fetch_manga(mal_id)
        raise JikanAPIError(f"Jikan has no {kind} records")

    async def _get_json(self, path: str) -> object:
        if self._resilience.base_url is None:
            raise JikanAPIError("Missing Jikan base_url in resilience configuration")
        try:
            async with self._client_factory(self._resilience) as client:
                response = await client.get(path)
        except httpx.TransportError as exc:
            raise JikanUnavailableError(f"Jikan request {path} failed: {exc}") from exc

        if response.status_code == HTTP_TOO_MANY_REQUESTS:
            raise JikanRateLimitedError(
                f"Jikan rate limit hit on {path}",
                retry_after=_retry_after(response),
            )
        if response.status_code >= HTTP_SERVER_ERROR:
            raise JikanUnavailableError(f"Jikan returned {response.status_code} for {path}")
        if response.is_error:
            raise JikanAPIError(_error_message(response, path), status=response.status_code)

        try:
            return response.json()
        except ValueError as exc:
            raise JikanAPIError(f"Jikan returned invalid JSON for {path}") from exc


def should_cache_payload(payload: object) -> bool:
    """Keep record payloads only; Jikan error bodies carry no ``data`` key."""

    return isinstance(payload, dict) and "data" in payload


def _validate[TModel: JikanBaseModel](
    model: type[TModel], payload: object
) -> TModel:
    if not isinstance(payload, dict) or "data" not in payload:
        raise JikanAPIError("Unexpected Jikan response payload")
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        raise JikanAPIError(f"Unexpected Jikan response payload: {exc}") from exc


def _retry_after(response: httpx.Response) -> float | None:
    raw = response.headers.get("Retry-After")
    if raw is None:
        return None
    try:
        return float(raw)
    except ValueError:
        return None


def _error_message(response: httpx.Response, path: str) -> str:
    try:
        error = JikanErrorResponse.model_validate(response.json())
    except (ValueError, ValidationError):
        return f"Jikan returned {response.status_code} for {path}"
    log.error("Jikan API error %s: %s", error.status, error.message)
    return error.message or error.error or f"Jikan returned {error.status} for {path}"
