"""Repository implementations backed by SQLAlchemy sessions."""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

from sqlalchemy import literal_column, select

from mediashelf.adapters.sqlalchemy.mappings import (
    catalog_entry_table,
    external_id_table,
    user_media_state_table,
)
from mediashelf.domain.model import CatalogEntry, UserMediaState

if TYPE_CHECKING:
    from collections.abc import Mapping

    from sqlalchemy.orm import Session

    from mediashelf.domain.model import MediaKind, Namespace, Provider


class SqlAlchemyCatalogRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: CatalogEntry) -> None:
        self.session.add(entity)

    def get(self, entry_id: uuid.UUID) -> CatalogEntry | None:
        return self.session.get(CatalogEntry, entry_id)

    def get_by_external_id(self, namespace: Namespace, value: str) -> CatalogEntry | None:
        stmt = (
            select(external_id_table.c._entry_id)  # noqa: SLF001
            .where(external_id_table.c.namespace == str(namespace))
            .where(external_id_table.c.value == value)
            .limit(1)
        )
        entry_id = self.session.execute(stmt).scalar_one_or_none()
        if not isinstance(entry_id, uuid.UUID):
            return None
        return self.session.get(CatalogEntry, entry_id)

    def list_all(self, *, kind: MediaKind | None = None) -> list[CatalogEntry]:
        # Entries created in one flush share a timestamp; rowid keeps their insertion order.
        stmt = select(CatalogEntry).order_by(
            catalog_entry_table.c.created_at,
            literal_column("catalog_entry.rowid"),
        )
        if kind is not None:
            stmt = stmt.where(catalog_entry_table.c.kind == kind)
        return list(self.session.execute(stmt).scalars())

    def update(
        self,
        entry: CatalogEntry,
        changes: Mapping[str, object],
        *,
        source: Provider,
    ) -> None:
        entry.apply_changes(changes, source=source)


class SqlAlchemyUserStateRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: UserMediaState) -> None:
        self.session.add(entity)

    def get(self, entry_id: uuid.UUID, user_id: uuid.UUID) -> UserMediaState | None:
        return self.session.get(UserMediaState, (entry_id, user_id))

    def ensure(self, entry_id: uuid.UUID, user_id: uuid.UUID) -> UserMediaState:
        state = self.get(entry_id, user_id)
        if state is None:
            state = UserMediaState(entry_id=entry_id, user_id=user_id)
            self.session.add(state)
        return state

    def list_for_entry(self, entry_id: uuid.UUID) -> list[UserMediaState]:
        stmt = select(UserMediaState).where(user_media_state_table.c.entry_id == entry_id)
        return list(self.session.execute(stmt).scalars())


if TYPE_CHECKING:
    from mediashelf.domain.ports.persistence import CatalogRepository, UserStateRepository

    def _check_repositories(session: Session) -> None:
        _catalog: CatalogRepository = SqlAlchemyCatalogRepository(session)
        _states: UserStateRepository = SqlAlchemyUserStateRepository(session)
