"""Shared reconciliation contracts.

This module holds the transient values passed between stages:
- the canonical ``ImportPayload`` every source variant is converted into
- matcher output (``MatchCandidate``/``MatchScan``)
- resolver decisions and the result handed back to callers
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Literal

from mediashelf.domain.reconciliation.normalize import normalize_title

if TYPE_CHECKING:
    from collections.abc import Mapping
    from uuid import UUID

    from mediashelf.domain.errors import EnrichmentError, ExternalIdConflictError
    from mediashelf.domain.model import (
        CatalogEntry,
        ExternalRef,
        MediaKind,
        ProgressStatus,
        Provider,
    )


class MatchKind(StrEnum):
    """How the matcher found a candidate."""

    EXACT_ID = "exact-id"
    EXACT_TITLE = "exact-title"
    FUZZY_TITLE = "fuzzy-title"


@dataclass(slots=True, frozen=True, kw_only=True)
class MatchCandidate:
    entry: CatalogEntry
    match_kind: MatchKind
    similarity: float
    matched_title: str

    @property
    def entry_id(self) -> UUID:
        return self.entry.id

    @property
    def is_certain(self) -> bool:
        if self.match_kind is MatchKind.FUZZY_TITLE:
            return False
        return self.similarity >= 100  # noqa: PLR2004


@dataclass(slots=True, frozen=True, kw_only=True)
class MatchScan:
    """Matcher output: usable candidates and title hits suppressed by an id mismatch."""

    candidates: tuple[MatchCandidate, ...] = ()
    conflicts: tuple[MatchCandidate, ...] = ()


@dataclass(slots=True, frozen=True, kw_only=True)
class ProgressReport:
    """Progress an external list (e.g. a MAL export) reports for the importing user."""

    consumed_units: int = 0
    status: ProgressStatus | None = None


@dataclass(slots=True, frozen=True, kw_only=True)
class ImportPayload:
    """Canonical incoming record, consumed once per reconciliation call."""

    source: Provider
    kind: MediaKind
    titles: tuple[str, ...]
    external_id: ExternalRef | None = None
    fields: Mapping[str, object] = field(default_factory=dict[str, object])
    progress: ProgressReport | None = None
    # Writers of fields that did not come from ``source`` (e.g. sheet columns kept
    # alongside a Jikan refresh) and providers that contributed before ``source``.
    field_sources: Mapping[str, Provider] = field(default_factory=dict[str, "Provider"])
    contributors: tuple[Provider, ...] = ()

    @property
    def primary_title(self) -> str | None:
        for title in self.titles:
            if title.strip():
                return title.strip()
        return None

    @property
    def label(self) -> str:
        return self.primary_title or (str(self.external_id) if self.external_id else "?")

    @property
    def provenance(self) -> tuple[Provider, ...]:
        """Every contributing provider, earliest first, ending with ``source``."""

        ordered: list[Provider] = []
        for provider in (*self.contributors, self.source):
            if provider not in ordered:
                ordered.append(provider)
        return tuple(ordered)

    def source_of(self, name: str) -> Provider:
        return self.field_sources.get(name, self.source)

    def usable_titles(self) -> tuple[str, ...]:
        """Titles that can participate in matching (non-empty normalized key)."""

        return tuple(title for title in self.titles if normalize_title(title))


class ReconciliationDecision(StrEnum):
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    AMBIGUOUS = "AMBIGUOUS"
    REJECT = "REJECT"


@dataclass(slots=True, kw_only=True)
class CreateResolution:
    decision: Literal[ReconciliationDecision.CREATE] = ReconciliationDecision.CREATE
    reason: str | None = None


@dataclass(slots=True, kw_only=True)
class UpdateResolution:
    target: CatalogEntry
    match_kind: MatchKind
    similarity: float
    reason: str | None = None
    decision: Literal[ReconciliationDecision.UPDATE] = ReconciliationDecision.UPDATE


@dataclass(slots=True, kw_only=True)
class AmbiguousResolution:
    candidates: tuple[MatchCandidate, ...]
    reason: str | None = None
    decision: Literal[ReconciliationDecision.AMBIGUOUS] = ReconciliationDecision.AMBIGUOUS

    def __post_init__(self) -> None:
        if not self.candidates:
            raise ValueError("AmbiguousResolution requires at least one candidate")


@dataclass(slots=True, kw_only=True)
class RejectResolution:
    error: ExternalIdConflictError
    conflicts: tuple[MatchCandidate, ...] = ()
    reason: str | None = None
    decision: Literal[ReconciliationDecision.REJECT] = ReconciliationDecision.REJECT


type Resolution = CreateResolution | UpdateResolution | AmbiguousResolution | RejectResolution


@dataclass(slots=True, kw_only=True)
class ReconciliationResult:
    """What ``reconcile_import`` hands back to the UI/API boundary."""

    decision: ReconciliationDecision
    entry_id: UUID | None = None
    candidates: tuple[MatchCandidate, ...] = ()
    error: ExternalIdConflictError | None = None
    changes: dict[str, object] = field(default_factory=dict[str, object])
    degradations: tuple[EnrichmentError, ...] = ()

    @property
    def written(self) -> bool:
        return self.decision in {ReconciliationDecision.CREATE, ReconciliationDecision.UPDATE}
