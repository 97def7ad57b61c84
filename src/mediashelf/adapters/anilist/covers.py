"""Cover art lookups through AniList, keyed by MyAnimeList id."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

import httpx

from mediashelf.adapters.http_resilience import ResilientClient
from mediashelf.config.anilist import get_anilist_config
from mediashelf.domain.enrichment import EnrichmentResult
from mediashelf.domain.model import ExternalNamespace
from mediashelf.domain.ports.enrichment import CoverResolver

from .schema import AniListResponse

if TYPE_CHECKING:
    from collections.abc import Callable

    from mediashelf.config.anilist import AniListConfig
    from mediashelf.config.http_resilience import ResilienceConfig
    from mediashelf.domain.model import ExternalRef

log = getLogger(__name__)

SERVICE_NAME = "anilist"

COVER_QUERY = """
query ($idMal: Int, $type: MediaType) {
  Media(idMal: $idMal, type: $type) {
    id
    idMal
    coverImage { extraLarge large medium }
  }
}
"""

_MEDIA_TYPES = {
    ExternalNamespace.MAL_ANIME: "ANIME",
    ExternalNamespace.MAL_MANGA: "MANGA",
}


class AniListCoverResolver:
    """Resolve a high resolution cover; failures come back as ``EnrichmentResult`` errors."""

    def __init__(
        self,
        *,
        config: AniListConfig | None = None,
        client_factory: Callable[[ResilienceConfig], ResilientClient] | None = None,
    ) -> None:
        self._resilience = (config or get_anilist_config()).resilience
        self._client_factory = client_factory or ResilientClient

    async def resolve_cover(self, ref: ExternalRef) -> EnrichmentResult[str]:
        media_type = _MEDIA_TYPES.get(ref.namespace)
        if media_type is None or not ref.value.isdigit():
            return EnrichmentResult.failure(f"No AniList lookup for {ref}", service=SERVICE_NAME)

        body = {"query": COVER_QUERY, "variables": {"idMal": int(ref.value), "type": media_type}}
        try:
            async with self._client_factory(self._resilience) as client:
                response = await client.post("", json=body)
            response.raise_for_status()
            parsed = AniListResponse.model_validate(response.json())
        except (httpx.HTTPError, ValueError) as exc:
            log.warning("AniList cover lookup for %s failed: %s", ref, exc)
            return EnrichmentResult.failure(str(exc), service=SERVICE_NAME)

        if parsed.errors:
            message = "; ".join(error.message for error in parsed.errors)
            return EnrichmentResult.failure(message, service=SERVICE_NAME)
        media = parsed.data.media if parsed.data else None
        url = media.cover_image.best_url if media and media.cover_image else None
        if url is None:
            return EnrichmentResult.failure(f"No cover for {ref}", service=SERVICE_NAME)
        return EnrichmentResult.success(url)


if TYPE_CHECKING:
    _resolver_check: CoverResolver = AniListCoverResolver()
