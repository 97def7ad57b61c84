"""Source-specific import records and their conversion to ``ImportPayload``.

Every source hands the reconciliation engine the same canonical payload; the
differences between sources (field names, id formats, title fields) are
settled here at the boundary.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import TYPE_CHECKING

from mediashelf.domain.errors import ImportValidationError
from mediashelf.domain.model import (
    ExternalRef,
    MediaKind,
    ProgressStatus,
    Provider,
    mal_namespace_for,
)
from mediashelf.domain.reconciliation.contracts import ImportPayload, ProgressReport
from mediashelf.domain.reconciliation.normalize import extract_alternative_titles

if TYPE_CHECKING:
    from collections.abc import Mapping


@dataclass(frozen=True, slots=True, kw_only=True)
class JikanImport:
    """A MyAnimeList record as served by the Jikan API."""

    kind: MediaKind
    mal_id: int
    title: str
    title_english: str | None = None
    title_japanese: str | None = None
    synonyms: tuple[str, ...] = ()
    fields: Mapping[str, object] = field(default_factory=dict[str, object])


@dataclass(frozen=True, slots=True, kw_only=True)
class MalListImport:
    """One row of a MyAnimeList XML list export."""

    kind: MediaKind
    mal_id: int
    title: str
    unit_total: int | None = None
    consumed_units: int = 0
    status: ProgressStatus | None = None
    media_type: str | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class SheetImport:
    """One row of a scraped or hand-maintained spreadsheet."""

    kind: MediaKind
    title: str
    alternative_titles: str | None = None
    mal_id: str | None = None
    fields: Mapping[str, object] = field(default_factory=dict[str, object])


@dataclass(frozen=True, slots=True, kw_only=True)
class ManualImport:
    """An entry typed in by the user."""

    kind: MediaKind
    title: str
    alternative_titles: tuple[str, ...] = ()
    external_id: ExternalRef | None = None
    fields: Mapping[str, object] = field(default_factory=dict[str, object])


type ImportSource = JikanImport | MalListImport | SheetImport | ManualImport


def to_import_payload(source: ImportSource) -> ImportPayload:
    if isinstance(source, JikanImport):
        return _from_jikan(source)
    if isinstance(source, MalListImport):
        return _from_mal_list(source)
    if isinstance(source, SheetImport):
        return _from_sheet(source)
    return _from_manual(source)


def mal_ref(kind: MediaKind, mal_id: int | str | None) -> ExternalRef | None:
    if mal_id is None or not str(mal_id).strip():
        return None
    namespace = mal_namespace_for(kind)
    if namespace is None:
        raise ImportValidationError(f"MyAnimeList ids are not used for {kind} entries")
    return ExternalRef(namespace=namespace, value=str(mal_id).strip())


def _titles(*candidates: str | None) -> tuple[str, ...]:
    return tuple(title.strip() for title in candidates if title and title.strip())


def _from_jikan(source: JikanImport) -> ImportPayload:
    return ImportPayload(
        source=Provider.MAL,
        kind=source.kind,
        titles=_titles(
            source.title,
            source.title_english,
            source.title_japanese,
            *source.synonyms,
        ),
        external_id=mal_ref(source.kind, source.mal_id),
        fields=dict(source.fields),
    )


def _from_mal_list(source: MalListImport) -> ImportPayload:
    fields: dict[str, object] = {}
    if source.unit_total:
        fields["unit_total"] = source.unit_total
    if source.media_type:
        fields["media_type"] = source.media_type
    return ImportPayload(
        source=Provider.MAL,
        kind=source.kind,
        titles=_titles(source.title),
        external_id=mal_ref(source.kind, source.mal_id),
        fields=fields,
        progress=ProgressReport(consumed_units=source.consumed_units, status=source.status),
    )


def _from_sheet(source: SheetImport) -> ImportPayload:
    alternatives = extract_alternative_titles(source.alternative_titles)
    fields = dict(source.fields)
    if alternatives:
        fields["alternative_titles"] = alternatives
    return ImportPayload(
        source=Provider.SHEET,
        kind=source.kind,
        titles=_titles(source.title, *alternatives),
        external_id=mal_ref(source.kind, source.mal_id),
        fields=fields,
    )


def _from_manual(source: ManualImport) -> ImportPayload:
    fields = dict(source.fields)
    if source.alternative_titles:
        fields["alternative_titles"] = list(source.alternative_titles)
    return ImportPayload(
        source=Provider.MANUAL,
        kind=source.kind,
        titles=_titles(source.title, *source.alternative_titles),
        external_id=source.external_id,
        fields=fields,
    )


def parse_partial_date(value: str | None) -> date | None:
    """Parse ``YYYY-MM-DD`` (optionally with a time part); ``None`` when unusable."""

    if not value:
        return None
    try:
        return date.fromisoformat(value.strip()[:10])
    except ValueError:
        return None

