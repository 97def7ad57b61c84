"""Field protection guard.

Decides which incoming values may overwrite stored catalog fields and produces
a declarative field-diff map that storage applies generically.

Rules, in order:
- a field in the ``user_modified_fields`` marker is never written by an import
- an empty incoming value never erases stored data
- authoritative fields are written only by their designated source
- incremental fields (unit counts) never decrease unless forced
- other differing values follow the configured tie-break rule
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Any, cast

from mediashelf.domain.model import FIELD_CATEGORIES, FieldCategory, TieBreakRule

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from mediashelf.domain.model import Provider
    from mediashelf.domain.reconciliation.policy import ReconciliationSettings

log = logging.getLogger(__name__)


class SkipReason(StrEnum):
    PROTECTED = "protected"
    EMPTY = "empty"
    UNCHANGED = "unchanged"
    UNKNOWN_FIELD = "unknown_field"
    NOT_AUTHORITATIVE = "not_authoritative"
    WOULD_DECREASE = "would_decrease"
    TIE_BREAK = "tie_break"


@dataclass(slots=True, kw_only=True)
class SafeUpdate:
    changes: dict[str, object] = field(default_factory=dict[str, object])
    skipped: dict[str, SkipReason] = field(default_factory=dict[str, SkipReason])

    def __bool__(self) -> bool:
        return bool(self.changes)


def parse_protection_marker(raw: str | Iterable[str] | None) -> frozenset[str]:
    """Read a stored ``user_modified_fields`` marker; malformed input yields no protection."""

    if raw is None:
        return frozenset()
    if not isinstance(raw, str):
        return frozenset(name for name in raw if name)
    if not raw.strip():
        return frozenset()
    try:
        loaded = json.loads(raw)
    except json.JSONDecodeError:
        log.warning("Ignoring malformed user_modified_fields marker: %r", raw)
        return frozenset()
    if not isinstance(loaded, list):
        log.warning("Ignoring non-list user_modified_fields marker: %r", raw)
        return frozenset()
    items = cast("list[Any]", loaded)
    return frozenset(item for item in items if isinstance(item, str) and item)


def serialize_protection_marker(fields: Iterable[str]) -> str | None:
    names = sorted(set(fields))
    if not names:
        return None
    return json.dumps(names)


def is_field_protected(marker: Iterable[str] | str | None, field_name: str) -> bool:
    return field_name in parse_protection_marker(marker)


def is_empty_value(value: object) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, set, frozenset, dict)):
        return not value
    return False


def build_safe_update(  # noqa: PLR0913
    existing: Mapping[str, object],
    incoming: Mapping[str, object],
    marker: Iterable[str] | str | None,
    *,
    source: Provider,
    settings: ReconciliationSettings,
    field_sources: Mapping[str, Provider] | None = None,
    force_overwrite: bool = False,
) -> SafeUpdate:
    """Compute the writes an automated import from ``source`` may perform."""

    protected = parse_protection_marker(marker)
    writers = field_sources or {}
    update = SafeUpdate()

    for name, value in incoming.items():
        category = FIELD_CATEGORIES.get(name)
        current = existing.get(name)
        if category is None:
            update.skipped[name] = SkipReason.UNKNOWN_FIELD
        elif name in protected:
            update.skipped[name] = SkipReason.PROTECTED
        elif is_empty_value(value):
            update.skipped[name] = SkipReason.EMPTY
        elif _same_value(current, value):
            update.skipped[name] = SkipReason.UNCHANGED
        elif not settings.is_authoritative(category, source):
            update.skipped[name] = SkipReason.NOT_AUTHORITATIVE
        elif category is FieldCategory.INCREMENTAL:
            if force_overwrite or not _is_decrease(current, value):
                update.changes[name] = value
            else:
                update.skipped[name] = SkipReason.WOULD_DECREASE
        elif is_empty_value(current) or _wins_tie_break(
            settings, source=source, previous_writer=writers.get(name)
        ):
            update.changes[name] = value
        else:
            update.skipped[name] = SkipReason.TIE_BREAK

    protected_hits = [
        name for name, reason in update.skipped.items() if reason is SkipReason.PROTECTED
    ]
    if protected_hits:
        log.info("Kept user-edited fields: %s", ", ".join(sorted(protected_hits)))
    return update


def _same_value(current: object, value: object) -> bool:
    if isinstance(current, (list, tuple)) and isinstance(value, (list, tuple)):
        return list(cast("list[object]", current)) == list(cast("list[object]", value))
    return current == value


def _is_decrease(current: object, value: object) -> bool:
    if not isinstance(current, (int, float)) or not isinstance(value, (int, float)):
        return False
    return value < current


def _wins_tie_break(
    settings: ReconciliationSettings,
    *,
    source: Provider,
    previous_writer: Provider | None,
) -> bool:
    if settings.tie_break is TieBreakRule.LATEST_WINS:
        return True
    if settings.tie_break is TieBreakRule.KEEP_EXISTING:
        return False
    if previous_writer is None:
        return True
    return settings.priority_rank(source) <= settings.priority_rank(previous_writer)
