"""Human edits of catalog entries.

Every field written here joins the entry's ``user_modified_fields`` marker,
which shields it from later automated imports.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from mediashelf.domain.errors import EntryNotFoundError

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping
    from uuid import UUID

    from mediashelf.domain.model import CatalogEntry
    from mediashelf.domain.ports.unit_of_work import CatalogUnitOfWork

UnitOfWorkFactory = Callable[[], "CatalogUnitOfWork"]

log = logging.getLogger(__name__)


def edit_entry_fields(
    *,
    unit_of_work_factory: UnitOfWorkFactory,
    entry_id: UUID,
    changes: Mapping[str, object],
    now: datetime | None = None,
) -> CatalogEntry:
    with unit_of_work_factory() as uow:
        entry = uow.repositories.entries.get(entry_id)
        if entry is None:
            raise EntryNotFoundError(f"Unknown catalog entry {entry_id}")
        entry.apply_changes(changes, source=None)
        entry.updated_at = now or datetime.now(UTC)
        uow.commit()
    log.info("User edited %r: %s", entry.title, ", ".join(sorted(changes)))
    return entry


def release_fields(
    *,
    unit_of_work_factory: UnitOfWorkFactory,
    entry_id: UUID,
    fields: Iterable[str],
) -> frozenset[str]:
    """Hand fields back to automated imports; returns the remaining marker."""

    with unit_of_work_factory() as uow:
        entry = uow.repositories.entries.get(entry_id)
        if entry is None:
            raise EntryNotFoundError(f"Unknown catalog entry {entry_id}")
        entry.user_modified_fields = entry.user_modified_fields - frozenset(fields)
        uow.commit()
        return entry.user_modified_fields
