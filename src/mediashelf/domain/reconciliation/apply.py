"""Apply stage: turn a CREATE/UPDATE resolution into storage writes."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from mediashelf.domain.model import CATALOG_FIELDS, CatalogEntry
from mediashelf.domain.progress import refresh_entry_progress
from mediashelf.domain.reconciliation.normalize import (
    dedupe_titles,
    extract_alternative_titles,
    normalize_title,
)
from mediashelf.domain.reconciliation.protection import build_safe_update, is_empty_value

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence
    from datetime import datetime

    from mediashelf.domain.model import Provider
    from mediashelf.domain.ports.unit_of_work import CatalogRepositories
    from mediashelf.domain.reconciliation.contracts import ImportPayload
    from mediashelf.domain.reconciliation.policy import ReconciliationContext
    from mediashelf.domain.reconciliation.protection import SkipReason

log = logging.getLogger(__name__)

# A change in any of these tells the user new content is out.
_UPDATE_SIGNAL_FIELDS = ("unit_total", "release_status", "streaming_start_date")


def incoming_fields(
    payload: ImportPayload,
    *,
    canonical_title: str,
    existing_alternatives: Sequence[str] = (),
) -> dict[str, object]:
    """Known catalog fields of the payload, with secondary titles folded into alternatives.

    ``title`` never appears in the result: the canonical title is chosen on
    creation and an incoming title only ever becomes an alternative. New
    alternative titles are appended to ``existing_alternatives`` so an update
    never drops a title other sources contributed.
    """

    fields = {name: value for name, value in payload.fields.items() if name in CATALOG_FIELDS}
    title_field = fields.pop("title", None)
    canonical_key = normalize_title(canonical_title)
    alternatives = dedupe_titles(
        [
            *extract_alternative_titles(fields.get("alternative_titles")),
            *([title_field] if isinstance(title_field, str) else []),
            *(title for title in payload.titles if title.strip()),
        ]
    )
    alternatives = [title for title in alternatives if normalize_title(title) != canonical_key]
    if alternatives:
        fields["alternative_titles"] = dedupe_titles([*existing_alternatives, *alternatives])
    else:
        fields.pop("alternative_titles", None)
    return fields


def by_source(
    payload: ImportPayload,
    fields: Mapping[str, object],
) -> dict[Provider, dict[str, object]]:
    """Split ``fields`` by the provider that supplied each value."""

    groups: dict[Provider, dict[str, object]] = {}
    for name, value in fields.items():
        groups.setdefault(payload.source_of(name), {})[name] = value
    return groups


def create_entry(
    payload: ImportPayload,
    repositories: CatalogRepositories,
    *,
    now: datetime,
) -> tuple[CatalogEntry, dict[str, object]]:
    title_field = payload.fields.get("title")
    title = title_field if isinstance(title_field, str) and title_field.strip() else None
    title = title or payload.primary_title or ""
    fields = incoming_fields(payload, canonical_title=title)
    changes = {name: value for name, value in fields.items() if not is_empty_value(value)}

    entry = CatalogEntry(kind=payload.kind, title=title, created_at=now, updated_at=now)
    for source, group in by_source(payload, changes).items():
        entry.apply_changes(group, source=source)
    entry.field_sources = {**entry.field_sources, "title": payload.source_of("title")}
    if payload.external_id is not None:
        entry.link_external_id(payload.external_id.namespace, payload.external_id.value)
    for provider in payload.provenance:
        entry.add_source(provider)
    repositories.entries.add(entry)
    log.info("Created %s entry %r from %s", entry.kind, entry.title, entry.source_import)
    return entry, {"title": title, **changes}


def update_entry(
    entry: CatalogEntry,
    payload: ImportPayload,
    context: ReconciliationContext,
    repositories: CatalogRepositories,
    *,
    now: datetime,
) -> dict[str, object]:
    incoming = incoming_fields(
        payload,
        canonical_title=entry.title,
        existing_alternatives=entry.alternative_titles,
    )
    before = {name: getattr(entry, name) for name in _UPDATE_SIGNAL_FIELDS}
    changes: dict[str, object] = {}
    skipped: dict[str, SkipReason] = {}
    for source, group in by_source(payload, incoming).items():
        safe = build_safe_update(
            entry.field_snapshot(),
            group,
            entry.user_modified_fields,
            source=source,
            settings=context.settings,
            field_sources=entry.field_sources,
            force_overwrite=context.force_overwrite,
        )
        if safe.changes:
            repositories.entries.update(entry, safe.changes, source=source)
            changes.update(safe.changes)
        skipped.update(safe.skipped)
    if changes:
        entry.updated_at = now

    ref = payload.external_id
    if ref is not None and entry.external_id(ref.namespace) is None:
        entry.link_external_id(ref.namespace, ref.value)
    for provider in payload.provenance:
        entry.add_source(provider)

    if _signals_new_content(before, changes):
        entry.update_available = True
    if "unit_total" in changes:
        changed = refresh_entry_progress(repositories.user_states, entry)
        if changed:
            log.info("Re-evaluated progress of %d user(s) for %r", changed, entry.title)
    log.debug("Skipped fields for %r: %s", entry.title, skipped)
    return changes


def _signals_new_content(before: dict[str, object], changes: dict[str, object]) -> bool:
    for name in _UPDATE_SIGNAL_FIELDS:
        if name not in changes or before[name] is None:
            continue
        previous, current = before[name], changes[name]
        if name == "unit_total":
            if isinstance(previous, int) and isinstance(current, int) and current > previous:
                return True
        elif previous != current:
            return True
    return False
