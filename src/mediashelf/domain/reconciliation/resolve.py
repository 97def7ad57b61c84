"""Resolution stage: classify an import as CREATE, UPDATE, AMBIGUOUS or REJECT.

Decision order:
- a caller-confirmed target wins, unless its external id contradicts the payload
- an external id already stored locally resolves deterministically
- ``force_create`` skips title matching
- otherwise the candidate matcher decides:
  no hit -> CREATE, one certain hit -> UPDATE, several certain or only
  probable hits -> AMBIGUOUS, only id-conflicting hits -> REJECT

This stage reads storage but never writes.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from mediashelf.domain.errors import ExternalIdConflictError, ImportValidationError
from mediashelf.domain.model import is_numeric_namespace
from mediashelf.domain.reconciliation.contracts import (
    AmbiguousResolution,
    CreateResolution,
    MatchKind,
    RejectResolution,
    UpdateResolution,
)
from mediashelf.domain.reconciliation.matching import PERFECT_SCORE, scan_collection

if TYPE_CHECKING:
    from mediashelf.domain.model import CatalogEntry, ExternalRef
    from mediashelf.domain.ports.persistence import CatalogRepository
    from mediashelf.domain.reconciliation.contracts import (
        ImportPayload,
        MatchCandidate,
        Resolution,
    )
    from mediashelf.domain.reconciliation.policy import ReconciliationContext

log = logging.getLogger(__name__)


def validate_payload(payload: ImportPayload) -> None:
    """Raise ``ImportValidationError`` for records that cannot be reconciled."""

    ref = payload.external_id
    if ref is not None:
        value = ref.value.strip()
        if not value:
            raise ImportValidationError(f"Blank external id for namespace {ref.namespace}")
        if is_numeric_namespace(ref.namespace) and not (value.isdigit() and int(value) > 0):
            raise ImportValidationError(f"Invalid {ref.namespace} id: {ref.value!r}")
    if payload.primary_title is None and ref is None:
        raise ImportValidationError("Import needs at least one title or an external id")


def resolve_import(
    payload: ImportPayload,
    context: ReconciliationContext,
    *,
    entries: CatalogRepository,
) -> Resolution:
    validate_payload(payload)
    ref = payload.external_id

    if context.confirmed_target_id is not None:
        return _resolve_confirmed_target(payload, context, entries=entries)

    if ref is not None:
        linked = entries.get_by_external_id(ref.namespace, ref.value)
        if linked is not None:
            if context.force_create:
                return RejectResolution(
                    error=_already_imported(linked, ref),
                    reason="external_id_already_imported",
                )
            return UpdateResolution(
                target=linked,
                match_kind=MatchKind.EXACT_ID,
                similarity=PERFECT_SCORE,
                reason="external_id_match",
            )

    if context.force_create:
        return _create(payload, reason="forced")

    threshold = context.settings.similarity_threshold
    scan = scan_collection(
        entries.list_all(kind=payload.kind),
        payload.usable_titles(),
        external_id=ref,
        threshold=threshold,
    )
    if not scan.candidates:
        if scan.conflicts and ref is not None:
            first = scan.conflicts[0].entry
            return RejectResolution(
                error=_id_mismatch(first, ref, stored=first.external_id(ref.namespace)),
                conflicts=scan.conflicts,
                reason="external_id_mismatch",
            )
        return _create(payload, reason="no_match")

    certain = [candidate for candidate in scan.candidates if candidate.is_certain]
    if len(certain) == 1:
        return _update(certain[0], reason="exact_title_match")
    if len(certain) > 1:
        return AmbiguousResolution(candidates=tuple(certain), reason="multiple_exact_matches")

    probable = tuple(c for c in scan.candidates if c.similarity >= threshold)
    if probable:
        return AmbiguousResolution(candidates=probable, reason="probable_match")
    return _create(payload, reason="below_threshold")


def _resolve_confirmed_target(
    payload: ImportPayload,
    context: ReconciliationContext,
    *,
    entries: CatalogRepository,
) -> Resolution:
    target_id = context.confirmed_target_id
    target = entries.get(target_id) if target_id is not None else None
    if target is None:
        raise ImportValidationError(f"Unknown target entry {target_id}")

    ref = payload.external_id
    if ref is not None:
        stored = target.external_id(ref.namespace)
        if stored is not None and stored != ref.value:
            return RejectResolution(
                error=_id_mismatch(target, ref, stored=stored),
                reason="confirmed_target_id_mismatch",
            )
        linked = entries.get_by_external_id(ref.namespace, ref.value)
        if linked is not None and linked.id != target.id:
            return RejectResolution(
                error=_already_imported(linked, ref),
                reason="external_id_already_imported",
            )

    linked_by_id = ref is not None and target.external_id(ref.namespace) == ref.value
    return UpdateResolution(
        target=target,
        match_kind=MatchKind.EXACT_ID if linked_by_id else MatchKind.EXACT_TITLE,
        similarity=PERFECT_SCORE,
        reason="confirmed_target",
    )


def _create(payload: ImportPayload, *, reason: str) -> CreateResolution:
    if payload.primary_title is None:
        raise ImportValidationError(
            f"Cannot create an entry for {payload.external_id} without a title"
        )
    return CreateResolution(reason=reason)


def _update(candidate: MatchCandidate, *, reason: str) -> UpdateResolution:
    return UpdateResolution(
        target=candidate.entry,
        match_kind=candidate.match_kind,
        similarity=candidate.similarity,
        reason=reason,
    )


def _id_mismatch(
    entry: CatalogEntry,
    ref: ExternalRef,
    *,
    stored: str | None,
) -> ExternalIdConflictError:
    return ExternalIdConflictError(
        f"{entry.title!r} is already linked to {ref.namespace} id {stored}, not {ref.value}",
        entry_id=entry.id,
        entry_title=entry.title,
        stored_value=stored,
    )


def _already_imported(entry: CatalogEntry, ref: ExternalRef) -> ExternalIdConflictError:
    return ExternalIdConflictError(
        f"{ref.namespace} id {ref.value} is already imported as {entry.title!r}",
        entry_id=entry.id,
        entry_title=entry.title,
        stored_value=ref.value,
    )
