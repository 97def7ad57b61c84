"""SQLAlchemy mapping metadata for the mediashelf domain model."""

from __future__ import annotations

import json
import logging
import uuid
from datetime import UTC, datetime
from functools import cache
from typing import TYPE_CHECKING, Any, cast

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Dialect,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    TypeDecorator,
    UniqueConstraint,
    Uuid,
    orm,
)
from sqlalchemy.orm import configure_mappers, relationship

from mediashelf.domain.model import (
    CatalogEntry,
    ExternalID,
    MediaKind,
    ProgressMark,
    ProgressStatus,
    Provider,
    UserMediaState,
)
from mediashelf.domain.reconciliation.protection import (
    parse_protection_marker,
    serialize_protection_marker,
)

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

log = logging.getLogger(__name__)

UUIDColumnType = Uuid[uuid.UUID]


def _utcnow() -> datetime:
    return datetime.now(UTC)


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


def _load_json(value: str | None) -> object:
    if value is None:
        return None
    try:
        return json.loads(value)
    except json.JSONDecodeError:
        log.warning("Ignoring malformed JSON column value: %r", value)
        return None


class StringListType(TypeDecorator[list[str]]):
    """Ordered list of strings stored as a JSON array."""

    impl = String
    cache_ok = True

    def process_bind_param(self, value: list[str] | None, dialect: Dialect) -> str:
        _ = dialect
        return json.dumps(list(value or []), ensure_ascii=False)

    def process_result_value(self, value: str | None, dialect: Dialect) -> list[str]:
        _ = dialect
        loaded = _load_json(value)
        if not isinstance(loaded, list):
            return []
        return [item for item in cast(list[Any], loaded) if isinstance(item, str)]


class ProtectedFieldsType(TypeDecorator[frozenset[str]]):
    """The ``user_modified_fields`` marker: a JSON array, NULL when nothing is protected."""

    impl = String
    cache_ok = True

    def process_bind_param(self, value: frozenset[str] | None, dialect: Dialect) -> str | None:
        _ = dialect
        return serialize_protection_marker(value or ())

    def process_result_value(self, value: str | None, dialect: Dialect) -> frozenset[str]:
        _ = dialect
        return parse_protection_marker(value)


class ProviderMapType(TypeDecorator[dict[str, Provider]]):
    """Field name to the provider that last wrote it."""

    impl = String
    cache_ok = True

    def process_bind_param(self, value: dict[str, Provider] | None, dialect: Dialect) -> str:
        _ = dialect
        payload = {name: str(source) for name, source in sorted((value or {}).items())}
        return json.dumps(payload)

    def process_result_value(self, value: str | None, dialect: Dialect) -> dict[str, Provider]:
        _ = dialect
        loaded = _load_json(value)
        if not isinstance(loaded, dict):
            return {}
        sources: dict[str, Provider] = {}
        for name, raw in cast(dict[str, Any], loaded).items():
            try:
                sources[name] = Provider(raw)
            except ValueError:
                log.warning("Ignoring unknown provider %r for field %s", raw, name)
        return sources


class ProgressMapType(TypeDecorator[dict[int, ProgressMark]]):
    """Unit number to done flag and timestamp, stored as a JSON object."""

    impl = String
    cache_ok = True

    def process_bind_param(self, value: dict[int, ProgressMark] | None, dialect: Dialect) -> str:
        _ = dialect
        payload = {
            str(unit): {
                "done": mark.done,
                "timestamp": mark.timestamp.isoformat() if mark.timestamp else None,
            }
            for unit, mark in sorted((value or {}).items())
        }
        return json.dumps(payload)

    def process_result_value(
        self, value: str | None, dialect: Dialect
    ) -> dict[int, ProgressMark]:
        _ = dialect
        loaded = _load_json(value)
        if not isinstance(loaded, dict):
            return {}
        progress: dict[int, ProgressMark] = {}
        for raw_unit, raw_mark in cast(dict[str, Any], loaded).items():
            if not raw_unit.isdigit() or not isinstance(raw_mark, dict):
                continue
            mark = cast(dict[str, Any], raw_mark)
            raw_timestamp = mark.get("timestamp")
            timestamp = (
                datetime.fromisoformat(raw_timestamp) if isinstance(raw_timestamp, str) else None
            )
            progress[int(raw_unit)] = ProgressMark(done=bool(mark.get("done")), timestamp=timestamp)
        return progress


mapper_registry = orm.registry()
mapper_registry.metadata.naming_convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_label)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_label)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

catalog_entry_table = Table(
    "catalog_entry",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("kind", Enum(MediaKind, native_enum=False), nullable=False),
    Column("title", String, nullable=False),
    Column("alternative_titles", StringListType(), nullable=False, default=list),
    Column("media_type", String, nullable=True),
    Column("unit_total", Integer, nullable=True),
    Column("release_status", String, nullable=True),
    Column("start_date", Date, nullable=True),
    Column("end_date", Date, nullable=True),
    Column("year", Integer, nullable=True),
    Column("season", String, nullable=True),
    Column("streaming_start_date", Date, nullable=True),
    Column("synopsis", String, nullable=True),
    Column("genres", StringListType(), nullable=False, default=list),
    Column("themes", StringListType(), nullable=False, default=list),
    Column("studios", StringListType(), nullable=False, default=list),
    Column("cover_url", String, nullable=True),
    Column("score", Float, nullable=True),
    Column("prequel_ref", String, nullable=True),
    Column("sequel_ref", String, nullable=True),
    Column("source_import", String, nullable=True),
    Column("user_modified_fields", ProtectedFieldsType(), nullable=True),
    Column("field_sources", ProviderMapType(), nullable=False, default=dict),
    Column("update_available", Boolean, nullable=False, default=False),
    Column("created_at", UTCDateTime(), nullable=True, default=_utcnow),
    Column("updated_at", UTCDateTime(), nullable=True),
    Index("ix_catalog_entry_kind", "kind"),
)

external_id_table = Table(
    "external_id",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column(
        "entry_id",
        UUIDColumnType,
        ForeignKey("catalog_entry.id", ondelete="CASCADE"),
        key="_entry_id",
        nullable=False,
    ),
    Column("namespace", String, nullable=False),
    Column("value", String, nullable=False),
    Column("provider", Enum(Provider, native_enum=False), nullable=True),
    Column("created_at", UTCDateTime(), nullable=True, default=_utcnow),
    UniqueConstraint("namespace", "value", name="uq_external_id_namespace_value"),
    UniqueConstraint("_entry_id", "namespace", name="uq_external_id_entry_namespace"),
)

user_media_state_table = Table(
    "user_media_state",
    mapper_registry.metadata,
    Column(
        "entry_id",
        UUIDColumnType,
        ForeignKey("catalog_entry.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column("user_id", UUIDColumnType, primary_key=True),
    Column("progress", ProgressMapType(), nullable=False, default=dict),
    Column("status", Enum(ProgressStatus, native_enum=False), nullable=True),
    Column("favorite", Boolean, nullable=False, default=False),
    Column("tags", StringListType(), nullable=False, default=list),
    Column("label", String, nullable=True),
    Column("updated_at", UTCDateTime(), nullable=True),
)


@cache
def start_mappers() -> orm.registry:
    """Configure SQLAlchemy mappers for the domain model."""

    log.info("Starting SQLAlchemy mappers")

    mapper_registry.map_imperatively(
        CatalogEntry,
        catalog_entry_table,
        properties={
            "_external_ids": relationship(
                ExternalID,
                cascade="all, delete-orphan",
                lazy="selectin",
            ),
        },
    )

    mapper_registry.map_imperatively(
        ExternalID,
        external_id_table,
    )

    mapper_registry.map_imperatively(
        UserMediaState,
        user_media_state_table,
    )

    configure_mappers()
    return mapper_registry


def create_all_tables(engine: Engine) -> None:
    """Create database tables for the mapped metadata."""

    log.info("Creating all tables")
    mapper_registry.metadata.create_all(engine)
