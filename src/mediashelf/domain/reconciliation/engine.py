"""Orchestrator for one import reconciliation.

Resolution, field guarding and writes happen inside a single unit of work with
no suspension point, so each entry mutation is atomic from the caller's view.
AMBIGUOUS and REJECT outcomes return without writing anything.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from mediashelf.domain.progress import apply_progress_report
from mediashelf.domain.reconciliation.apply import create_entry, update_entry
from mediashelf.domain.reconciliation.contracts import (
    AmbiguousResolution,
    CreateResolution,
    ReconciliationDecision,
    ReconciliationResult,
    RejectResolution,
)
from mediashelf.domain.reconciliation.resolve import resolve_import

if TYPE_CHECKING:
    from mediashelf.domain.model import CatalogEntry
    from mediashelf.domain.ports.unit_of_work import CatalogRepositories, CatalogUnitOfWork
    from mediashelf.domain.reconciliation.contracts import ImportPayload
    from mediashelf.domain.reconciliation.policy import ReconciliationContext

UnitOfWorkFactory = Callable[[], "CatalogUnitOfWork"]

log = logging.getLogger(__name__)


def reconcile_import(
    payload: ImportPayload,
    context: ReconciliationContext,
    *,
    unit_of_work_factory: UnitOfWorkFactory,
    now: datetime | None = None,
) -> ReconciliationResult:
    """Decide what ``payload`` refers to and apply the decision.

    Raises ``ImportValidationError`` before touching storage when the payload
    has no usable title/external id or names an unknown target.
    """

    timestamp = now or datetime.now(UTC)
    with unit_of_work_factory() as uow:
        repositories = uow.repositories
        resolution = resolve_import(payload, context, entries=repositories.entries)

        if isinstance(resolution, AmbiguousResolution):
            log.info(
                "Ambiguous import %r: %d candidates (%s)",
                payload.label,
                len(resolution.candidates),
                resolution.reason,
            )
            return ReconciliationResult(
                decision=ReconciliationDecision.AMBIGUOUS,
                candidates=resolution.candidates,
            )

        if isinstance(resolution, RejectResolution):
            log.warning("Rejected import %r: %s", payload.label, resolution.error)
            return ReconciliationResult(
                decision=ReconciliationDecision.REJECT,
                entry_id=resolution.error.entry_id,
                candidates=resolution.conflicts,
                error=resolution.error,
            )

        if isinstance(resolution, CreateResolution):
            entry, changes = create_entry(payload, repositories, now=timestamp)
        else:
            entry = resolution.target
            changes = update_entry(entry, payload, context, repositories, now=timestamp)
            log.info(
                "Updated %r from %s via %s (%s): %d field(s)",
                entry.title,
                payload.source,
                resolution.match_kind,
                resolution.reason,
                len(changes),
            )

        _record_progress(payload, context, repositories, entry, now=timestamp)
        uow.commit()

    return ReconciliationResult(
        decision=resolution.decision,
        entry_id=entry.id,
        changes=changes,
    )


def _record_progress(
    payload: ImportPayload,
    context: ReconciliationContext,
    repositories: CatalogRepositories,
    entry: CatalogEntry,
    *,
    now: datetime,
) -> None:
    if payload.progress is None or context.user_id is None:
        return
    state = repositories.user_states.ensure(entry.id, context.user_id)
    status = apply_progress_report(state, payload.progress, total=entry.unit_total, now=now)
    log.debug("Progress for %r now %s", entry.title, status)
