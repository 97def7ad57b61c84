"""Domain model for the media library."""

from __future__ import annotations

from .catalog import CATALOG_FIELDS, FIELD_CATEGORIES, CatalogEntry, new_id
from .enums import (
    AUTO_MANAGED_STATUSES,
    ExternalNamespace,
    FieldCategory,
    MediaKind,
    ProgressStatus,
    Provider,
    TieBreakRule,
)
from .external_ids import (
    ExternalID,
    ExternalRef,
    Namespace,
    is_numeric_namespace,
    mal_namespace_for,
    provider_for,
)
from .provenance import merge_source_labels, split_source_labels
from .user_state import ProgressMark, UserMediaState

__all__ = [
    "AUTO_MANAGED_STATUSES",
    "CATALOG_FIELDS",
    "FIELD_CATEGORIES",
    "CatalogEntry",
    "ExternalID",
    "ExternalNamespace",
    "ExternalRef",
    "FieldCategory",
    "MediaKind",
    "Namespace",
    "ProgressMark",
    "ProgressStatus",
    "Provider",
    "TieBreakRule",
    "UserMediaState",
    "is_numeric_namespace",
    "mal_namespace_for",
    "merge_source_labels",
    "new_id",
    "provider_for",
    "split_source_labels",
]
