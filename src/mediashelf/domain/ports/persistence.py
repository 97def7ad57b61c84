"""Ports for persisting domain aggregates."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

from mediashelf.domain.model import CatalogEntry, UserMediaState

if TYPE_CHECKING:
    from collections.abc import Mapping
    from uuid import UUID

    from mediashelf.domain.model import MediaKind, Namespace, Provider


@runtime_checkable
class Repository[TEntity](Protocol):
    """Minimal repository contract for a persistent aggregate store."""

    def add(self, entity: TEntity) -> None: ...


@runtime_checkable
class CatalogRepository(Repository[CatalogEntry], Protocol):
    """Persistence contract for catalog entries."""

    def get(self, entry_id: UUID) -> CatalogEntry | None: ...

    def get_by_external_id(self, namespace: Namespace, value: str) -> CatalogEntry | None: ...

    def list_all(self, *, kind: MediaKind | None = None) -> list[CatalogEntry]:
        """Entries ordered by creation time, ties kept in insertion order."""
        ...

    def update(
        self,
        entry: CatalogEntry,
        changes: Mapping[str, object],
        *,
        source: Provider,
    ) -> None:
        """Apply an import's field-diff map to ``entry``."""
        ...


@runtime_checkable
class UserStateRepository(Repository[UserMediaState], Protocol):
    """Persistence contract for per-user progress rows."""

    def get(self, entry_id: UUID, user_id: UUID) -> UserMediaState | None: ...

    def ensure(self, entry_id: UUID, user_id: UUID) -> UserMediaState:
        """Return the row for (entry, user), creating it on first use."""
        ...

    def list_for_entry(self, entry_id: UUID) -> list[UserMediaState]: ...
