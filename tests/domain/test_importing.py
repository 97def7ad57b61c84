from __future__ import annotations

import asyncio
from uuid import uuid4

import pytest

from mediashelf.domain.batch import BatchProgress, BatchSettings, ItemOutcome
from mediashelf.domain.errors import ExternalIdConflictError, ImportValidationError
from mediashelf.domain.importing import (
    ImportServices,
    as_payload,
    import_batch,
    import_record,
    merge_fetched,
    outcome_for,
)
from mediashelf.domain.model import ExternalNamespace, MediaKind, ProgressStatus, Provider
from mediashelf.domain.reconciliation.contracts import (
    ImportPayload,
    ProgressReport,
    ReconciliationDecision,
    ReconciliationResult,
)
from mediashelf.domain.reconciliation.policy import ReconciliationContext
from mediashelf.domain.sources import MalListImport, SheetImport
from tests.helpers.catalog import (
    FakeCatalogRepository,
    FakeCatalogUnitOfWork,
    FakeCoverResolver,
    FakeMetadataFetcher,
    FakeTranslator,
    RecordingSleep,
    make_entry,
    make_payload,
)

FAST = BatchSettings(inter_call_delay=0, rate_limit_base_delay=3.0, yield_every=1000)


def _fetched(mal_id: int, title: str, **fields: object) -> ImportPayload:
    return make_payload(title, mal_id=mal_id, fields=fields)


def test_merge_fetched_keeps_record_titles_and_progress() -> None:
    fetched = make_payload("Frieren", "Sousou no Frieren", mal_id=52991, fields={"unit_total": 28})
    record = make_payload(
        "Frieren: Beyond Journey's End",
        source=Provider.MAL,
        mal_id=52991,
        fields={"unit_total": 10, "media_type": "TV"},
        progress=ProgressReport(consumed_units=3),
    )

    merged = merge_fetched(fetched, record)

    assert merged.titles == ("Frieren", "Sousou no Frieren", "Frieren: Beyond Journey's End")
    assert merged.fields == {"unit_total": 28, "media_type": "TV"}
    assert merged.progress == ProgressReport(consumed_units=3)


def test_merge_fetched_keeps_the_record_provenance() -> None:
    fetched = make_payload("Frieren", mal_id=52991, fields={"unit_total": 28, "synopsis": None})
    record = make_payload(
        "Frieren",
        source=Provider.SHEET,
        mal_id=52991,
        fields={"streaming_start_date": "2023-09-29", "synopsis": "Mon résumé"},
    )

    merged = merge_fetched(fetched, record)

    assert merged.source is Provider.MAL
    assert merged.provenance == (Provider.SHEET, Provider.MAL)
    assert merged.fields["synopsis"] == "Mon résumé"
    assert merged.source_of("streaming_start_date") is Provider.SHEET
    assert merged.source_of("synopsis") is Provider.SHEET
    assert merged.source_of("unit_total") is Provider.MAL


def test_sheet_record_refreshed_through_fetcher_keeps_sheet_label() -> None:
    uow = FakeCatalogUnitOfWork()
    fetcher = FakeMetadataFetcher({"52991": _fetched(52991, "Sousou no Frieren", unit_total=28)})
    services = ImportServices(unit_of_work_factory=uow, fetcher=fetcher)
    record = make_payload(
        "Frieren",
        source=Provider.SHEET,
        mal_id=52991,
        fields={"score": 9.1},
    )

    result = asyncio.run(import_record(record, ReconciliationContext(), services, settings=FAST))

    entry = uow.entries.get(result.entry_id)  # type: ignore[arg-type]
    assert entry is not None
    assert entry.source_import == "sheet+mal"
    assert entry.field_sources["score"] is Provider.SHEET
    assert entry.field_sources["unit_total"] is Provider.MAL


def test_refreshed_sheet_update_attributes_each_field() -> None:
    existing = make_entry("Frieren", mal_id=52991, source_import="manual")
    uow = FakeCatalogUnitOfWork(FakeCatalogRepository([existing]))
    fetcher = FakeMetadataFetcher({"52991": _fetched(52991, "Frieren", unit_total=28)})
    services = ImportServices(unit_of_work_factory=uow, fetcher=fetcher)
    record = make_payload("Frieren", source=Provider.SHEET, mal_id=52991, fields={"score": 9.1})

    result = asyncio.run(import_record(record, ReconciliationContext(), services, settings=FAST))

    assert result.decision is ReconciliationDecision.UPDATE
    assert existing.source_import == "manual+sheet+mal"
    assert existing.field_sources == {"score": Provider.SHEET, "unit_total": Provider.MAL}
    assert {source for _, _, source in uow.entries.updates} == {Provider.SHEET, Provider.MAL}


def test_import_record_fetches_enriches_and_creates() -> None:
    uow = FakeCatalogUnitOfWork()
    fetcher = FakeMetadataFetcher(
        {"5114": _fetched(5114, "Fullmetal Alchemist: Brotherhood", synopsis="Two brothers...")}
    )
    translator = FakeTranslator()
    covers = FakeCoverResolver()
    services = ImportServices(
        unit_of_work_factory=uow,
        fetcher=fetcher,
        translator=translator,
        cover_resolver=covers,
        target_language="fr",
    )
    record = make_payload(mal_id=5114)

    result = asyncio.run(import_record(record, ReconciliationContext(), services, settings=FAST))

    assert result.decision is ReconciliationDecision.CREATE
    entry = uow.entries.get(result.entry_id)  # type: ignore[arg-type]
    assert entry is not None
    assert entry.title == "Fullmetal Alchemist: Brotherhood"
    assert entry.synopsis == "[fr] Two brothers..."
    assert entry.cover_url == "https://img.example/cover.jpg"
    assert result.degradations == ()
    assert [str(ref) for ref in fetcher.calls] == ["mal:anime=5114"]


def test_enrichment_failures_degrade_without_aborting() -> None:
    uow = FakeCatalogUnitOfWork()
    services = ImportServices(
        unit_of_work_factory=uow,
        translator=FakeTranslator(fail=True),
        cover_resolver=FakeCoverResolver(url=None),
    )
    record = make_payload(
        "Mob Psycho 100",
        mal_id=32182,
        fields={"synopsis": "Shigeo Kageyama is an average middle schooler."},
    )

    result = asyncio.run(import_record(record, ReconciliationContext(), services))

    assert result.decision is ReconciliationDecision.CREATE
    assert {error.service for error in result.degradations} == {"fake-translator", "fake-covers"}
    entry = uow.entries.get(result.entry_id)  # type: ignore[arg-type]
    assert entry is not None
    assert entry.synopsis == "Shigeo Kageyama is an average middle schooler."
    assert entry.cover_url is None


def test_import_record_retries_rate_limited_fetch() -> None:
    sleep = RecordingSleep()
    fetcher = FakeMetadataFetcher({"21": _fetched(21, "One Piece")}, rate_limited={"21": 2})
    services = ImportServices(unit_of_work_factory=FakeCatalogUnitOfWork(), fetcher=fetcher)

    result = asyncio.run(
        import_record(
            make_payload(mal_id=21),
            ReconciliationContext(),
            services,
            settings=FAST,
            sleep=sleep,
        )
    )

    assert result.decision is ReconciliationDecision.CREATE
    assert len(fetcher.calls) == 3
    assert sleep.delays == [3.0, 6.0]


def test_outcome_for_maps_decisions() -> None:
    conflict = ExternalIdConflictError("already linked")

    assert outcome_for(ReconciliationResult(decision=ReconciliationDecision.CREATE)) is (
        ItemOutcome.IMPORTED
    )
    assert outcome_for(ReconciliationResult(decision=ReconciliationDecision.UPDATE)) is (
        ItemOutcome.UPDATED
    )
    assert outcome_for(ReconciliationResult(decision=ReconciliationDecision.AMBIGUOUS)) is (
        ItemOutcome.SKIPPED
    )
    with pytest.raises(ExternalIdConflictError):
        outcome_for(ReconciliationResult(decision=ReconciliationDecision.REJECT, error=conflict))


def test_as_payload_converts_source_records() -> None:
    sheet = SheetImport(kind=MediaKind.MANGA, title="Berserk", mal_id="2")

    payload = as_payload(sheet)

    assert payload.source is Provider.SHEET
    assert payload.external_id is not None
    assert payload.external_id.namespace is ExternalNamespace.MAL_MANGA
    assert as_payload(payload) is payload


def test_batch_import_with_rate_limited_item_counts_one_error() -> None:
    sleep = RecordingSleep()
    payloads = {str(mal_id): _fetched(mal_id, f"Series {mal_id}") for mal_id in range(1, 11)}
    fetcher = FakeMetadataFetcher(payloads, rate_limited={"4": 3})
    uow = FakeCatalogUnitOfWork()
    services = ImportServices(unit_of_work_factory=uow, fetcher=fetcher)
    records = [make_payload(mal_id=mal_id) for mal_id in range(1, 11)]
    progress: list[BatchProgress] = []

    result = asyncio.run(
        import_batch(
            records,
            ReconciliationContext(),
            services,
            settings=FAST,
            on_progress=progress.append,
            sleep=sleep,
        )
    )

    assert result.errors == 1
    assert result.imported == 9
    assert result.failures[0].label == "mal:anime=4"
    assert len(uow.entries.entries) == 9
    assert len(progress) == 10
    assert all(update.eta_ms is None or update.eta_ms >= 0 for update in progress)


def test_batch_import_counts_updates_skips_and_rejects() -> None:
    existing = make_entry("Monster", mal_id=19)
    first = make_entry("Hashigo", alternative_titles=["Ladder"])
    second = make_entry("Rappu", alternative_titles=["Ladder"])
    conflicting = make_entry("Hunter x Hunter", mal_id=136)
    uow = FakeCatalogUnitOfWork(FakeCatalogRepository([existing, first, second, conflicting]))
    services = ImportServices(unit_of_work_factory=uow)
    records = [
        make_payload("Monster", mal_id=19, fields={"unit_total": 74}),
        make_payload("Ladder"),
        make_payload("Hunter x Hunter", mal_id=11061),
        make_payload("Mushishi"),
    ]

    result = asyncio.run(
        import_batch(records, ReconciliationContext(), services, settings=FAST)
    )

    assert (result.imported, result.updated, result.skipped, result.errors) == (1, 1, 1, 1)
    assert result.failures[0].label == "Hunter x Hunter"


def test_batch_import_records_mal_list_progress() -> None:
    user_id = uuid4()
    uow = FakeCatalogUnitOfWork()
    services = ImportServices(unit_of_work_factory=uow)
    records = [
        MalListImport(
            kind=MediaKind.ANIME,
            mal_id=1,
            title="Cowboy Bebop",
            unit_total=26,
            consumed_units=26,
            status=ProgressStatus.COMPLETED,
        ),
        MalListImport(kind=MediaKind.ANIME, mal_id=0, title=""),
    ]

    result = asyncio.run(
        import_batch(records, ReconciliationContext(user_id=user_id), services, settings=FAST)
    )

    assert result.imported == 1
    assert result.errors == 1
    entry = next(iter(uow.entries.entries.values()))
    state = uow.user_states.get(entry.id, user_id)
    assert state is not None
    assert state.status is ProgressStatus.COMPLETED


def test_import_record_surfaces_validation_errors() -> None:
    services = ImportServices(unit_of_work_factory=FakeCatalogUnitOfWork())

    with pytest.raises(ImportValidationError):
        asyncio.run(import_record(make_payload(), ReconciliationContext(), services))
