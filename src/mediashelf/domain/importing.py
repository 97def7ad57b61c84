"""Import workflows built on the reconciliation engine.

A record is optionally refreshed from its external catalog (with retry),
enriched best-effort, then reconciled. Batches run the same steps per record
through the batch driver.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING

from mediashelf.domain.batch import (
    BatchSettings,
    ItemOutcome,
    fetch_with_retry,
    run_batch,
)
from mediashelf.domain.enrichment import EnrichedPayload, enrich_payload
from mediashelf.domain.reconciliation.contracts import ImportPayload, ReconciliationDecision
from mediashelf.domain.reconciliation.engine import reconcile_import
from mediashelf.domain.reconciliation.normalize import dedupe_titles
from mediashelf.domain.reconciliation.protection import is_empty_value
from mediashelf.domain.sources import to_import_payload

if TYPE_CHECKING:
    from mediashelf.domain.batch import (
        BatchResult,
        CancellationToken,
        Clock,
        ProgressCallback,
        SleepFunc,
    )
    from mediashelf.domain.ports.enrichment import CoverResolver, Translator
    from mediashelf.domain.ports.fetching import MetadataFetcher
    from mediashelf.domain.ports.unit_of_work import CatalogUnitOfWork
    from mediashelf.domain.reconciliation.contracts import ReconciliationResult
    from mediashelf.domain.reconciliation.policy import ReconciliationContext
    from mediashelf.domain.sources import ImportSource

UnitOfWorkFactory = Callable[[], "CatalogUnitOfWork"]
type BatchRecord = ImportPayload | ImportSource

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True, kw_only=True)
class ImportServices:
    """Collaborators of an import run; only the unit of work is mandatory."""

    unit_of_work_factory: UnitOfWorkFactory
    fetcher: MetadataFetcher | None = None
    translator: Translator | None = None
    cover_resolver: CoverResolver | None = None
    target_language: str = "fr"


def merge_fetched(fetched: ImportPayload, record: ImportPayload) -> ImportPayload:
    """Fetched metadata wins for catalog fields; the record keeps its titles and progress.

    Fields only the record carries stay attributed to the record's source, and
    the record's providers stay ahead of the fetcher's in the provenance.
    """

    fetched_fields = {
        name: value for name, value in fetched.fields.items() if not is_empty_value(value)
    }
    record_only = [name for name in record.fields if name not in fetched_fields]
    return replace(
        fetched,
        titles=tuple(dedupe_titles([*fetched.titles, *record.titles])),
        fields={**record.fields, **fetched_fields},
        progress=record.progress if record.progress is not None else fetched.progress,
        field_sources={
            **fetched.field_sources,
            **{name: record.source_of(name) for name in record_only},
        },
        contributors=(*record.provenance, *fetched.contributors),
    )


async def prepare_payload(
    record: ImportPayload,
    services: ImportServices,
    *,
    settings: BatchSettings | None = None,
    sleep: SleepFunc = asyncio.sleep,
) -> EnrichedPayload:
    payload = record
    ref = record.external_id
    fetcher = services.fetcher
    if fetcher is not None and ref is not None:
        effective = settings or BatchSettings()
        fetched = await fetch_with_retry(
            lambda: fetcher.fetch_by_external_id(ref),
            max_attempts=effective.max_attempts,
            rate_limit_base_delay=effective.rate_limit_base_delay,
            transient_base_delay=effective.transient_base_delay,
            sleep=sleep,
            label=str(ref),
        )
        payload = merge_fetched(fetched, record)
    return await enrich_payload(
        payload,
        translator=services.translator,
        cover_resolver=services.cover_resolver,
        target_language=services.target_language,
    )


async def import_record(
    record: ImportPayload,
    context: ReconciliationContext,
    services: ImportServices,
    *,
    settings: BatchSettings | None = None,
    sleep: SleepFunc = asyncio.sleep,
) -> ReconciliationResult:
    enriched = await prepare_payload(record, services, settings=settings, sleep=sleep)
    result = reconcile_import(
        enriched.payload,
        context,
        unit_of_work_factory=services.unit_of_work_factory,
    )
    result.degradations = enriched.degradations
    return result


def as_payload(record: BatchRecord) -> ImportPayload:
    if isinstance(record, ImportPayload):
        return record
    return to_import_payload(record)


def outcome_for(result: ReconciliationResult) -> ItemOutcome:
    """Map a reconciliation decision onto batch counters; REJECT counts as a failure."""

    if result.decision is ReconciliationDecision.CREATE:
        return ItemOutcome.IMPORTED
    if result.decision is ReconciliationDecision.UPDATE:
        return ItemOutcome.UPDATED
    if result.decision is ReconciliationDecision.REJECT and result.error is not None:
        raise result.error
    return ItemOutcome.SKIPPED


async def import_batch(  # noqa: PLR0913
    records: Sequence[BatchRecord],
    context: ReconciliationContext,
    services: ImportServices,
    *,
    settings: BatchSettings | None = None,
    on_progress: ProgressCallback | None = None,
    cancellation: CancellationToken | None = None,
    sleep: SleepFunc = asyncio.sleep,
    clock: Clock = time.monotonic,
) -> BatchResult:
    async def work(record: BatchRecord) -> ItemOutcome:
        result = await import_record(
            as_payload(record), context, services, settings=settings, sleep=sleep
        )
        return outcome_for(result)

    log.info("Starting batch import of %d record(s)", len(records))
    return await run_batch(
        records,
        work,
        on_progress=on_progress,
        cancellation=cancellation,
        settings=settings,
        label=_record_label,
        sleep=sleep,
        clock=clock,
    )


def _record_label(record: BatchRecord) -> str:
    if isinstance(record, ImportPayload):
        return record.label
    return record.title
