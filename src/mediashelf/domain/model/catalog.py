"""Catalog entries: one media work in the local collection."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Final
from uuid import UUID, uuid4

from mediashelf.domain.errors import ExternalIdConflictError
from mediashelf.domain.model.enums import FieldCategory, MediaKind, Provider
from mediashelf.domain.model.external_ids import ExternalID, Namespace, provider_for
from mediashelf.domain.model.provenance import merge_source_labels

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping
    from datetime import date, datetime


def new_id() -> UUID:
    return uuid4()


# Fields an import (or a user edit) may write, and how conflicting writes merge.
FIELD_CATEGORIES: Final[dict[str, FieldCategory]] = {
    "title": FieldCategory.GENERAL,
    "alternative_titles": FieldCategory.AUTHORITATIVE,
    "media_type": FieldCategory.GENERAL,
    "unit_total": FieldCategory.INCREMENTAL,
    "release_status": FieldCategory.GENERAL,
    "start_date": FieldCategory.GENERAL,
    "end_date": FieldCategory.GENERAL,
    "year": FieldCategory.GENERAL,
    "season": FieldCategory.GENERAL,
    "streaming_start_date": FieldCategory.GENERAL,
    "synopsis": FieldCategory.GENERAL,
    "genres": FieldCategory.AUTHORITATIVE,
    "themes": FieldCategory.AUTHORITATIVE,
    "studios": FieldCategory.AUTHORITATIVE,
    "cover_url": FieldCategory.GENERAL,
    "score": FieldCategory.GENERAL,
    "prequel_ref": FieldCategory.GENERAL,
    "sequel_ref": FieldCategory.GENERAL,
}

CATALOG_FIELDS: Final[tuple[str, ...]] = tuple(FIELD_CATEGORIES)


@dataclass(eq=False, kw_only=True)
class CatalogEntry:
    id: UUID = field(default_factory=new_id)
    kind: MediaKind
    title: str
    alternative_titles: list[str] = field(default_factory=list[str])

    media_type: str | None = None
    unit_total: int | None = None
    release_status: str | None = None
    start_date: date | None = None
    end_date: date | None = None
    year: int | None = None
    season: str | None = None
    streaming_start_date: date | None = None

    synopsis: str | None = None
    genres: list[str] = field(default_factory=list[str])
    themes: list[str] = field(default_factory=list[str])
    studios: list[str] = field(default_factory=list[str])
    cover_url: str | None = None
    score: float | None = None
    prequel_ref: str | None = None
    sequel_ref: str | None = None

    source_import: str | None = None
    user_modified_fields: frozenset[str] = field(default_factory=frozenset[str])
    field_sources: dict[str, Provider] = field(default_factory=dict[str, Provider])
    update_available: bool = False

    created_at: datetime | None = None
    updated_at: datetime | None = None

    _external_ids: list[ExternalID] = field(
        default_factory=list["ExternalID"], repr=False, init=False
    )

    @property
    def external_ids(self) -> tuple[ExternalID, ...]:
        return tuple(self._external_ids)

    def external_id(self, namespace: Namespace) -> str | None:
        for external_id in self._external_ids:
            if external_id.namespace == namespace:
                return external_id.value
        return None

    def link_external_id(
        self,
        namespace: Namespace,
        value: str,
        *,
        provider: Provider | None = None,
    ) -> None:
        """Attach an external id; an entry holds at most one per namespace."""

        stored = self.external_id(namespace)
        if stored == value:
            return
        if stored is not None:
            raise ExternalIdConflictError(
                f"{self.title!r} is already linked to {namespace}={stored}",
                entry_id=self.id,
                entry_title=self.title,
                stored_value=stored,
            )
        self._external_ids.append(
            ExternalID(
                namespace=namespace,
                value=value,
                provider=provider if provider is not None else provider_for(namespace),
            )
        )

    def field_snapshot(self) -> dict[str, object]:
        return {name: getattr(self, name) for name in CATALOG_FIELDS}

    def apply_changes(self, changes: Mapping[str, object], *, source: Provider | None) -> None:
        """Write a field-diff map; ``source=None`` marks the writes as human edits."""

        unknown = set(changes).difference(CATALOG_FIELDS)
        if unknown:
            raise ValueError(f"Unknown catalog fields: {', '.join(sorted(unknown))}")
        for name, value in changes.items():
            setattr(self, name, list(value) if isinstance(value, (list, tuple)) else value)
        if source is None:
            self.mark_user_modified(changes)
        else:
            self.field_sources = {**self.field_sources, **dict.fromkeys(changes, source)}

    def mark_user_modified(self, fields: Iterable[str]) -> None:
        self.user_modified_fields = self.user_modified_fields | frozenset(fields)

    def add_source(self, source: Provider | str) -> None:
        self.source_import = merge_source_labels(self.source_import, str(source))
