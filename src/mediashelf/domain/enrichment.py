"""Optional enrichment of import payloads.

Translation and cover lookups are best effort. Adapters return an
``EnrichmentResult`` instead of raising, and :func:`enrich_payload` keeps the
payload's own value whenever a lookup fails.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING

from mediashelf.domain.errors import EnrichmentError

if TYPE_CHECKING:
    from mediashelf.domain.ports.enrichment import CoverResolver, Translator
    from mediashelf.domain.reconciliation.contracts import ImportPayload

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class EnrichmentResult[T]:
    value: T | None = None
    error: EnrichmentError | None = None

    @classmethod
    def success(cls, value: T) -> EnrichmentResult[T]:
        return cls(value=value)

    @classmethod
    def failure(cls, message: str, *, service: str) -> EnrichmentResult[T]:
        return cls(error=EnrichmentError(message, service=service))

    @property
    def ok(self) -> bool:
        return self.error is None and self.value is not None

    def value_or(self, fallback: T) -> T:
        return self.value if self.ok and self.value is not None else fallback


@dataclass(frozen=True, slots=True)
class EnrichedPayload:
    payload: ImportPayload
    degradations: tuple[EnrichmentError, ...] = ()


async def enrich_payload(
    payload: ImportPayload,
    *,
    translator: Translator | None = None,
    cover_resolver: CoverResolver | None = None,
    target_language: str = "fr",
) -> EnrichedPayload:
    """Translate the synopsis and look up a better cover, falling back silently."""

    fields = dict(payload.fields)
    degradations: list[EnrichmentError] = []

    synopsis = fields.get("synopsis")
    if translator is not None and isinstance(synopsis, str) and synopsis.strip():
        translated = await translator.translate(synopsis, target_language)
        if translated.error is not None:
            degradations.append(translated.error)
        fields["synopsis"] = translated.value_or(synopsis)

    if cover_resolver is not None and payload.external_id is not None:
        cover = await cover_resolver.resolve_cover(payload.external_id)
        if cover.error is not None:
            degradations.append(cover.error)
        elif cover.value:
            fields["cover_url"] = cover.value

    for degradation in degradations:
        log.warning(
            "Enrichment degraded for %s (%s): %s",
            payload.label,
            degradation.service,
            degradation,
        )
    return EnrichedPayload(
        payload=replace(payload, fields=fields),
        degradations=tuple(degradations),
    )
