"""Entity resolution and import reconciliation."""

from __future__ import annotations

from .contracts import (
    ImportPayload,
    MatchCandidate,
    MatchKind,
    MatchScan,
    ProgressReport,
    ReconciliationDecision,
    ReconciliationResult,
)
from .engine import reconcile_import
from .matching import find_candidates, scan_collection
from .normalize import extract_alternative_titles, normalize_title, title_similarity
from .policy import ReconciliationContext, ReconciliationSettings
from .protection import (
    SafeUpdate,
    SkipReason,
    build_safe_update,
    is_field_protected,
    parse_protection_marker,
    serialize_protection_marker,
)
from .resolve import resolve_import, validate_payload

__all__ = [
    "ImportPayload",
    "MatchCandidate",
    "MatchKind",
    "MatchScan",
    "ProgressReport",
    "ReconciliationContext",
    "ReconciliationDecision",
    "ReconciliationResult",
    "ReconciliationSettings",
    "SafeUpdate",
    "SkipReason",
    "build_safe_update",
    "extract_alternative_titles",
    "find_candidates",
    "is_field_protected",
    "normalize_title",
    "parse_protection_marker",
    "reconcile_import",
    "resolve_import",
    "scan_collection",
    "serialize_protection_marker",
    "title_similarity",
    "validate_payload",
]
