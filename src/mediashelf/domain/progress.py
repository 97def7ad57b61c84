"""Episode/chapter progress state machine.

Statuses ``NOT_STARTED``, ``IN_PROGRESS`` and ``COMPLETED`` are derived from
the done-count whenever the entry's unit total is known. ``ON_HOLD`` and
``DROPPED`` are set by the user and survive every automatic recomputation.

The transition functions mutate a ``UserMediaState`` and return its status;
the service functions at the bottom wrap them in a unit of work.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from mediashelf.domain.errors import EntryNotFoundError, ProgressError
from mediashelf.domain.model import AUTO_MANAGED_STATUSES, ProgressMark, ProgressStatus

if TYPE_CHECKING:
    from uuid import UUID

    from mediashelf.domain.model import CatalogEntry, UserMediaState
    from mediashelf.domain.ports.persistence import UserStateRepository
    from mediashelf.domain.ports.unit_of_work import CatalogUnitOfWork
    from mediashelf.domain.reconciliation.contracts import ProgressReport

UnitOfWorkFactory = Callable[[], "CatalogUnitOfWork"]

log = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


def derive_status(done_count: int, total: int | None) -> ProgressStatus | None:
    """Return the automatic status, or ``None`` when the total is unknown."""

    if total is None or total <= 0:
        return None
    if done_count <= 0:
        return ProgressStatus.NOT_STARTED
    if done_count >= total:
        return ProgressStatus.COMPLETED
    return ProgressStatus.IN_PROGRESS


def is_auto_managed(status: ProgressStatus | None) -> bool:
    return status is None or status in AUTO_MANAGED_STATUSES


def reevaluate(state: UserMediaState, total: int | None) -> ProgressStatus | None:
    derived = derive_status(state.done_count(total), total)
    if derived is not None and is_auto_managed(state.status):
        state.status = derived
    return state.status


def toggle_unit(
    state: UserMediaState,
    unit: int,
    *,
    done: bool,
    total: int | None,
    now: datetime | None = None,
) -> ProgressStatus | None:
    if unit < 1:
        raise ProgressError(f"Unit numbers start at 1, got {unit}")
    timestamp = now or _utcnow()
    progress = dict(state.progress)
    if done:
        progress[unit] = ProgressMark(done=True, timestamp=timestamp)
    else:
        progress.pop(unit, None)
    state.progress = progress
    state.updated_at = timestamp
    return reevaluate(state, total)


def mark_complete(
    state: UserMediaState,
    *,
    total: int | None,
    now: datetime | None = None,
) -> ProgressStatus:
    """Mark units ``1..total`` done and force ``COMPLETED``."""

    if total is None or total <= 0:
        raise ProgressError("Cannot mark complete: the unit total is unknown")
    timestamp = now or _utcnow()
    progress = dict(state.progress)
    for unit in range(1, total + 1):
        if not (unit in progress and progress[unit].done):
            progress[unit] = ProgressMark(done=True, timestamp=timestamp)
    state.progress = progress
    state.status = ProgressStatus.COMPLETED
    state.updated_at = timestamp
    return state.status


def set_status(
    state: UserMediaState,
    status: ProgressStatus,
    *,
    now: datetime | None = None,
) -> ProgressStatus:
    state.status = status
    state.updated_at = now or _utcnow()
    return status


def extend_total(state: UserMediaState, total: int | None) -> ProgressStatus | None:
    """Re-evaluate after the unit total changed; done units are kept."""

    return reevaluate(state, total)


def apply_progress_report(
    state: UserMediaState,
    report: ProgressReport,
    *,
    total: int | None,
    now: datetime | None = None,
) -> ProgressStatus | None:
    """Merge progress reported by an external list without undoing local progress."""

    timestamp = now or _utcnow()
    consumed = report.consumed_units
    if total is not None and total > 0:
        consumed = min(consumed, total)
    if consumed > 0:
        progress = dict(state.progress)
        for unit in range(1, consumed + 1):
            if not (unit in progress and progress[unit].done):
                progress[unit] = ProgressMark(done=True, timestamp=timestamp)
        state.progress = progress
        state.updated_at = timestamp

    if not is_auto_managed(state.status):
        return state.status
    if report.status is not None and report.status not in AUTO_MANAGED_STATUSES:
        return set_status(state, report.status, now=timestamp)
    if derive_status(state.done_count(total), total) is None and report.status is not None:
        return set_status(state, report.status, now=timestamp)
    return reevaluate(state, total)


def refresh_entry_progress(user_states: UserStateRepository, entry: CatalogEntry) -> int:
    """Re-evaluate every user's status for ``entry``; returns how many changed."""

    changed = 0
    for state in user_states.list_for_entry(entry.id):
        before = state.status
        if extend_total(state, entry.unit_total) != before:
            changed += 1
    return changed


@dataclass(slots=True, frozen=True)
class ProgressUpdateResult:
    success: bool
    new_status: ProgressStatus | None = None


def toggle_progress_unit(  # noqa: PLR0913
    *,
    unit_of_work_factory: UnitOfWorkFactory,
    entry_id: UUID,
    user_id: UUID,
    unit: int,
    done: bool,
    now: datetime | None = None,
) -> ProgressUpdateResult:
    with unit_of_work_factory() as uow:
        entry = _require_entry(uow, entry_id)
        state = uow.repositories.user_states.ensure(entry_id, user_id)
        status = toggle_unit(state, unit, done=done, total=entry.unit_total, now=now)
        uow.commit()
    log.info("Unit %s of %r set done=%s, status=%s", unit, entry.title, done, status)
    return ProgressUpdateResult(success=True, new_status=status)


def set_manual_status(
    *,
    unit_of_work_factory: UnitOfWorkFactory,
    entry_id: UUID,
    user_id: UUID,
    status: ProgressStatus,
    now: datetime | None = None,
) -> ProgressUpdateResult:
    with unit_of_work_factory() as uow:
        _require_entry(uow, entry_id)
        state = uow.repositories.user_states.ensure(entry_id, user_id)
        set_status(state, status, now=now)
        uow.commit()
    return ProgressUpdateResult(success=True, new_status=status)


def mark_entry_complete(
    *,
    unit_of_work_factory: UnitOfWorkFactory,
    entry_id: UUID,
    user_id: UUID,
    now: datetime | None = None,
) -> ProgressUpdateResult:
    with unit_of_work_factory() as uow:
        entry = _require_entry(uow, entry_id)
        state = uow.repositories.user_states.ensure(entry_id, user_id)
        status = mark_complete(state, total=entry.unit_total, now=now)
        uow.commit()
    log.info("Marked %r complete (%s units)", entry.title, entry.unit_total)
    return ProgressUpdateResult(success=True, new_status=status)


def _require_entry(uow: CatalogUnitOfWork, entry_id: UUID) -> CatalogEntry:
    entry = uow.repositories.entries.get(entry_id)
    if entry is None:
        raise EntryNotFoundError(f"Unknown catalog entry {entry_id}")
    return entry
