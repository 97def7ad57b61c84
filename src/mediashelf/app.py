"""Application orchestration entry points."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from logging import getLogger
from typing import TYPE_CHECKING

from mediashelf.adapters.anilist import AniListCoverResolver
from mediashelf.adapters.groq import GroqTranslator
from mediashelf.adapters.jikan import JikanMetadataFetcher
from mediashelf.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemyCatalogUnitOfWork,
    is_started,
    startup,
)
from mediashelf.config import (
    MissingConfigurationError,
    get_batch_settings,
    get_groq_config,
    get_reconciliation_settings,
)
from mediashelf.config.groq import translation_language
from mediashelf.domain import curation, progress
from mediashelf.domain.importing import ImportServices, import_batch, import_record
from mediashelf.domain.model import Provider, provider_for
from mediashelf.domain.reconciliation import engine
from mediashelf.domain.reconciliation.contracts import ImportPayload
from mediashelf.domain.reconciliation.policy import ReconciliationContext

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence
    from uuid import UUID

    from mediashelf.domain.batch import (
        BatchResult,
        BatchSettings,
        CancellationToken,
        ProgressCallback,
        SleepFunc,
    )
    from mediashelf.domain.importing import BatchRecord
    from mediashelf.domain.model import CatalogEntry, ExternalRef, MediaKind, ProgressStatus
    from mediashelf.domain.ports.enrichment import Translator
    from mediashelf.domain.ports.unit_of_work import CatalogUnitOfWork
    from mediashelf.domain.progress import ProgressUpdateResult
    from mediashelf.domain.reconciliation.contracts import ReconciliationResult
    from mediashelf.domain.reconciliation.policy import ReconciliationSettings

UnitOfWorkFactory = Callable[[], "CatalogUnitOfWork"]


log = getLogger(__name__)


def _resolve_unit_of_work(unit_of_work_factory: UnitOfWorkFactory | None) -> UnitOfWorkFactory:
    if unit_of_work_factory is not None:
        return unit_of_work_factory
    if not is_started():
        startup()
    return SqlAlchemyCatalogUnitOfWork


def _optional_translator() -> Translator | None:
    try:
        return GroqTranslator(config=get_groq_config())
    except MissingConfigurationError:
        log.info("GROQ_API_KEY not configured; synopses stay untranslated")
        return None


def build_import_services(
    *,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    fetch: bool = True,
    enrich: bool = True,
) -> ImportServices:
    """Wire the HTTP adapters; ``fetch``/``enrich`` switch the network steps off."""

    return ImportServices(
        unit_of_work_factory=_resolve_unit_of_work(unit_of_work_factory),
        fetcher=JikanMetadataFetcher() if fetch else None,
        translator=_optional_translator() if enrich else None,
        cover_resolver=AniListCoverResolver() if enrich else None,
        target_language=translation_language(),
    )


def _context(
    *,
    user_id: UUID | None,
    settings: ReconciliationSettings | None,
    confirmed_target_id: UUID | None = None,
    force_create: bool = False,
    force_overwrite: bool = False,
) -> ReconciliationContext:
    return ReconciliationContext(
        user_id=user_id,
        settings=settings or get_reconciliation_settings(),
        confirmed_target_id=confirmed_target_id,
        force_create=force_create,
        force_overwrite=force_overwrite,
    )


def reconcile_import(  # noqa: PLR0913
    payload: ImportPayload,
    *,
    user_id: UUID | None = None,
    confirmed_target_id: UUID | None = None,
    force_create: bool = False,
    force_overwrite: bool = False,
    settings: ReconciliationSettings | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> ReconciliationResult:
    """Reconcile one already-built payload against the local catalog."""

    context = _context(
        user_id=user_id,
        settings=settings,
        confirmed_target_id=confirmed_target_id,
        force_create=force_create,
        force_overwrite=force_overwrite,
    )
    return engine.reconcile_import(
        payload,
        context,
        unit_of_work_factory=_resolve_unit_of_work(unit_of_work_factory),
    )


def import_by_external_id(  # noqa: PLR0913
    ref: ExternalRef,
    *,
    kind: MediaKind,
    user_id: UUID | None = None,
    confirmed_target_id: UUID | None = None,
    force_create: bool = False,
    services: ImportServices | None = None,
    settings: ReconciliationSettings | None = None,
    batch_settings: BatchSettings | None = None,
) -> ReconciliationResult:
    """Fetch a record by its external id, enrich it and reconcile it."""

    effective_services = services or build_import_services()
    record = ImportPayload(
        source=provider_for(ref.namespace) or Provider.MANUAL,
        kind=kind,
        titles=(),
        external_id=ref,
    )
    context = _context(
        user_id=user_id,
        settings=settings,
        confirmed_target_id=confirmed_target_id,
        force_create=force_create,
    )
    result = asyncio.run(
        import_record(
            record,
            context,
            effective_services,
            settings=batch_settings or get_batch_settings(),
        )
    )
    log.info("Imported %s: %s (entry %s)", ref, result.decision, result.entry_id)
    return result


def run_batch_import(  # noqa: PLR0913
    records: Sequence[BatchRecord],
    *,
    on_progress: ProgressCallback | None = None,
    cancellation: CancellationToken | None = None,
    user_id: UUID | None = None,
    services: ImportServices | None = None,
    settings: ReconciliationSettings | None = None,
    batch_settings: BatchSettings | None = None,
    sleep: SleepFunc = asyncio.sleep,
) -> BatchResult:
    """Import many records sequentially with retries, pacing and progress reporting."""

    effective_services = services or build_import_services()
    result = asyncio.run(
        import_batch(
            records,
            _context(user_id=user_id, settings=settings),
            effective_services,
            settings=batch_settings or get_batch_settings(),
            on_progress=on_progress,
            cancellation=cancellation,
            sleep=sleep,
        )
    )
    log.info(
        "Batch import done: imported=%s, updated=%s, skipped=%s, errors=%s",
        result.imported,
        result.updated,
        result.skipped,
        result.errors,
    )
    return result


def toggle_progress_unit(
    entry_id: UUID,
    user_id: UUID,
    unit: int,
    *,
    done: bool,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> ProgressUpdateResult:
    return progress.toggle_progress_unit(
        unit_of_work_factory=_resolve_unit_of_work(unit_of_work_factory),
        entry_id=entry_id,
        user_id=user_id,
        unit=unit,
        done=done,
    )


def set_manual_status(
    entry_id: UUID,
    user_id: UUID,
    status: ProgressStatus,
    *,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> ProgressUpdateResult:
    return progress.set_manual_status(
        unit_of_work_factory=_resolve_unit_of_work(unit_of_work_factory),
        entry_id=entry_id,
        user_id=user_id,
        status=status,
    )


def mark_entry_complete(
    entry_id: UUID,
    user_id: UUID,
    *,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> ProgressUpdateResult:
    return progress.mark_entry_complete(
        unit_of_work_factory=_resolve_unit_of_work(unit_of_work_factory),
        entry_id=entry_id,
        user_id=user_id,
    )


def edit_entry_fields(
    entry_id: UUID,
    changes: Mapping[str, object],
    *,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> CatalogEntry:
    return curation.edit_entry_fields(
        unit_of_work_factory=_resolve_unit_of_work(unit_of_work_factory),
        entry_id=entry_id,
        changes=changes,
    )


def release_fields(
    entry_id: UUID,
    fields: Iterable[str],
    *,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> frozenset[str]:
    return curation.release_fields(
        unit_of_work_factory=_resolve_unit_of_work(unit_of_work_factory),
        entry_id=entry_id,
        fields=fields,
    )
