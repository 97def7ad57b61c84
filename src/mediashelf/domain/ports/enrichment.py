"""Ports for optional enrichment services."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from mediashelf.domain.enrichment import EnrichmentResult
    from mediashelf.domain.model import ExternalRef


@runtime_checkable
class Translator(Protocol):
    async def translate(self, text: str, target_language: str) -> EnrichmentResult[str]: ...


@runtime_checkable
class CoverResolver(Protocol):
    async def resolve_cover(self, ref: ExternalRef) -> EnrichmentResult[str]: ...
