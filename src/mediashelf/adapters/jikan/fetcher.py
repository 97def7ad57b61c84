"""Jikan-backed metadata fetcher."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from mediashelf.config.jikan import get_jikan_config
from mediashelf.domain.errors import ImportValidationError
from mediashelf.domain.model import ExternalNamespace, MediaKind
from mediashelf.domain.ports.fetching import MetadataFetcher
from mediashelf.domain.sources import to_import_payload

from .client import JikanClient, should_cache_payload
from .translator import translate_media

if TYPE_CHECKING:
    from mediashelf.config.jikan import JikanConfig
    from mediashelf.domain.model import ExternalRef
    from mediashelf.domain.reconciliation.contracts import ImportPayload

log = getLogger(__name__)

_KIND_BY_NAMESPACE = {
    ExternalNamespace.MAL_ANIME: MediaKind.ANIME,
    ExternalNamespace.MAL_MANGA: MediaKind.MANGA,
}


class JikanMetadataFetcher:
    def __init__(
        self,
        *,
        config: JikanConfig | None = None,
        client: JikanClient | None = None,
    ) -> None:
        self._client = client or JikanClient(
            config=config or get_jikan_config(cache_predicate=should_cache_payload)
        )

    async def fetch_by_external_id(self, ref: ExternalRef) -> ImportPayload:
        kind = _KIND_BY_NAMESPACE.get(ref.namespace)
        if kind is None:
            raise ImportValidationError(f"Jikan cannot resolve {ref}")
        try:
            mal_id = int(ref.value)
        except ValueError as exc:
            raise ImportValidationError(f"Invalid MyAnimeList id {ref.value!r}") from exc
        media = await self._client.fetch(kind, mal_id)
        log.info("Fetched %s from Jikan: %r", ref, media.title)
        return to_import_payload(translate_media(media))


if TYPE_CHECKING:
    _fetcher_check: MetadataFetcher = JikanMetadataFetcher()
