from __future__ import annotations

from datetime import UTC, datetime
from uuid import uuid4

import pytest

from mediashelf.domain.errors import ImportValidationError
from mediashelf.domain.model import (
    ExternalNamespace,
    ProgressMark,
    ProgressStatus,
    Provider,
    UserMediaState,
)
from mediashelf.domain.reconciliation.contracts import ProgressReport, ReconciliationDecision
from mediashelf.domain.reconciliation.engine import reconcile_import
from mediashelf.domain.reconciliation.policy import ReconciliationContext
from tests.helpers.catalog import (
    FakeCatalogRepository,
    FakeCatalogUnitOfWork,
    FakeUserStateRepository,
    make_entry,
    make_payload,
)

NOW = datetime(2025, 3, 1, 12, tzinfo=UTC)


def test_create_stamps_source_and_external_id() -> None:
    uow = FakeCatalogUnitOfWork()
    payload = make_payload(
        "Cowboy Bebop",
        "Kaubōi Bibappu",
        mal_id=1,
        fields={"unit_total": 26, "genres": ["Action", "Sci-Fi"], "synopsis": ""},
    )

    result = reconcile_import(payload, ReconciliationContext(), unit_of_work_factory=uow, now=NOW)

    assert result.decision is ReconciliationDecision.CREATE
    assert result.written
    entry = uow.entries.get(result.entry_id)  # type: ignore[arg-type]
    assert entry is not None
    assert entry.title == "Cowboy Bebop"
    assert entry.alternative_titles == ["Kaubōi Bibappu"]
    assert entry.unit_total == 26
    assert entry.genres == ["Action", "Sci-Fi"]
    assert entry.synopsis is None
    assert entry.external_id(ExternalNamespace.MAL_ANIME) == "1"
    assert entry.source_import == "mal"
    assert entry.created_at == NOW
    assert entry.user_modified_fields == frozenset()
    assert result.changes["title"] == "Cowboy Bebop"
    assert uow.commits == 1


def test_update_by_external_id_applies_safe_changes() -> None:
    entry = make_entry(
        "One Piece",
        mal_id=21,
        unit_total=1100,
        release_status="Currently Airing",
        source_import="sheet",
    )
    uow = FakeCatalogUnitOfWork(FakeCatalogRepository([entry]))
    payload = make_payload("One Piece", mal_id=21, fields={"unit_total": 1120, "score": 8.7})

    result = reconcile_import(payload, ReconciliationContext(), unit_of_work_factory=uow, now=NOW)

    assert result.decision is ReconciliationDecision.UPDATE
    assert result.entry_id == entry.id
    assert result.changes == {"unit_total": 1120, "score": 8.7}
    assert entry.unit_total == 1120
    assert entry.update_available
    assert entry.source_import == "sheet+mal"
    assert entry.field_sources["unit_total"] is Provider.MAL
    assert entry.updated_at == NOW
    assert len(uow.entries.entries) == 1
    assert uow.commits == 1


def test_update_never_touches_user_edited_fields() -> None:
    entry = make_entry(
        "Mushishi",
        mal_id=457,
        synopsis="Mon résumé",
        user_modified_fields={"synopsis"},
    )
    uow = FakeCatalogUnitOfWork(FakeCatalogRepository([entry]))
    payload = make_payload(
        "Mushishi",
        mal_id=457,
        fields={"synopsis": "Ginko travels...", "unit_total": 26},
    )

    result = reconcile_import(payload, ReconciliationContext(), unit_of_work_factory=uow, now=NOW)

    assert result.changes == {"unit_total": 26}
    assert entry.synopsis == "Mon résumé"
    assert entry.user_modified_fields == {"synopsis"}


def test_update_by_title_links_missing_external_id() -> None:
    entry = make_entry("Mushishi")
    uow = FakeCatalogUnitOfWork(FakeCatalogRepository([entry]))

    result = reconcile_import(
        make_payload("Mushishi", mal_id=457),
        ReconciliationContext(),
        unit_of_work_factory=uow,
        now=NOW,
    )

    assert result.decision is ReconciliationDecision.UPDATE
    assert entry.external_id(ExternalNamespace.MAL_ANIME) == "457"


def test_update_never_replaces_the_canonical_title() -> None:
    entry = make_entry("Shingeki no Kyojin", mal_id=16498)
    uow = FakeCatalogUnitOfWork(FakeCatalogRepository([entry]))
    payload = make_payload(
        "Shingeki no Kyojin",
        source=Provider.MANUAL,
        mal_id=16498,
        fields={"title": "L'Attaque des Titans", "score": 9.0},
    )

    result = reconcile_import(payload, ReconciliationContext(), unit_of_work_factory=uow, now=NOW)

    assert result.decision is ReconciliationDecision.UPDATE
    assert entry.title == "Shingeki no Kyojin"
    assert result.changes == {"score": 9.0}
    assert "title" not in entry.field_sources


def test_update_unions_alternative_titles() -> None:
    entry = make_entry("Shingeki no Kyojin", mal_id=16498, alternative_titles=["SnK"])
    uow = FakeCatalogUnitOfWork(FakeCatalogRepository([entry]))
    payload = make_payload(
        "Shingeki no Kyojin",
        "Attack on Titan",
        "snk",
        mal_id=16498,
    )

    reconcile_import(payload, ReconciliationContext(), unit_of_work_factory=uow, now=NOW)

    assert entry.title == "Shingeki no Kyojin"
    assert entry.alternative_titles == ["SnK", "Attack on Titan"]


def test_ambiguous_import_writes_nothing() -> None:
    first = make_entry("Hashigo", alternative_titles=["Ladder"])
    second = make_entry("Rappu", alternative_titles=["Ladder"])
    entries = FakeCatalogRepository([first, second])
    uow = FakeCatalogUnitOfWork(entries)

    result = reconcile_import(
        make_payload("Ladder", fields={"unit_total": 12}),
        ReconciliationContext(),
        unit_of_work_factory=uow,
        now=NOW,
    )

    assert result.decision is ReconciliationDecision.AMBIGUOUS
    assert not result.written
    assert result.entry_id is None
    assert [candidate.entry for candidate in result.candidates] == [first, second]
    assert len(entries.entries) == 2
    assert entries.updates == []
    assert first.unit_total is None
    assert second.unit_total is None
    assert uow.commits == 0


def test_ambiguous_import_then_confirmed_target() -> None:
    first = make_entry("Hashigo", alternative_titles=["Ladder"])
    second = make_entry("Rappu", alternative_titles=["Ladder"])
    uow = FakeCatalogUnitOfWork(FakeCatalogRepository([first, second]))
    payload = make_payload("Ladder", fields={"unit_total": 12})

    result = reconcile_import(
        payload,
        ReconciliationContext(confirmed_target_id=second.id),
        unit_of_work_factory=uow,
        now=NOW,
    )

    assert result.decision is ReconciliationDecision.UPDATE
    assert result.entry_id == second.id
    assert second.unit_total == 12
    assert first.unit_total is None


def test_ambiguous_import_then_forced_create() -> None:
    first = make_entry("Hashigo", alternative_titles=["Ladder"])
    second = make_entry("Rappu", alternative_titles=["Ladder"])
    uow = FakeCatalogUnitOfWork(FakeCatalogRepository([first, second]))

    result = reconcile_import(
        make_payload("Ladder"),
        ReconciliationContext(force_create=True),
        unit_of_work_factory=uow,
        now=NOW,
    )

    assert result.decision is ReconciliationDecision.CREATE
    assert result.entry_id not in {first.id, second.id}
    assert len(uow.entries.entries) == 3


def test_conflicting_external_id_is_rejected_without_writes() -> None:
    stored = make_entry("Hunter x Hunter", mal_id=136, unit_total=62)
    uow = FakeCatalogUnitOfWork(FakeCatalogRepository([stored]))

    result = reconcile_import(
        make_payload("Hunter x Hunter", mal_id=11061, fields={"unit_total": 148}),
        ReconciliationContext(),
        unit_of_work_factory=uow,
        now=NOW,
    )

    assert result.decision is ReconciliationDecision.REJECT
    assert result.entry_id == stored.id
    assert result.error is not None
    assert "136" in str(result.error)
    assert stored.unit_total == 62
    assert stored.external_id(ExternalNamespace.MAL_ANIME) == "136"
    assert uow.commits == 0


def test_invalid_payload_raises_before_writing() -> None:
    uow = FakeCatalogUnitOfWork()

    with pytest.raises(ImportValidationError):
        reconcile_import(
            make_payload("   "),
            ReconciliationContext(),
            unit_of_work_factory=uow,
        )

    assert uow.commits == 0
    assert uow.rollbacks == 1


def test_progress_report_is_recorded_for_the_importing_user() -> None:
    user_id = uuid4()
    uow = FakeCatalogUnitOfWork()
    payload = make_payload(
        "Frieren",
        mal_id=52991,
        fields={"unit_total": 28},
        progress=ProgressReport(consumed_units=5, status=ProgressStatus.IN_PROGRESS),
    )

    result = reconcile_import(
        payload,
        ReconciliationContext(user_id=user_id),
        unit_of_work_factory=uow,
        now=NOW,
    )

    state = uow.user_states.get(result.entry_id, user_id)  # type: ignore[arg-type]
    assert state is not None
    assert state.done_units() == {1, 2, 3, 4, 5}
    assert state.status is ProgressStatus.IN_PROGRESS


def test_progress_report_without_user_is_ignored() -> None:
    uow = FakeCatalogUnitOfWork()
    payload = make_payload(
        "Frieren",
        mal_id=52991,
        progress=ProgressReport(consumed_units=5),
    )

    reconcile_import(payload, ReconciliationContext(), unit_of_work_factory=uow, now=NOW)

    assert uow.user_states.states == {}


def test_growing_unit_total_reopens_completed_progress() -> None:
    user_id = uuid4()
    entry = make_entry("Kingdom", mal_id=12031, unit_total=12)
    state = UserMediaState(
        entry_id=entry.id,
        user_id=user_id,
        progress={unit: ProgressMark(done=True, timestamp=NOW) for unit in range(1, 13)},
        status=ProgressStatus.COMPLETED,
    )
    uow = FakeCatalogUnitOfWork(
        FakeCatalogRepository([entry]),
        FakeUserStateRepository([state]),
    )

    reconcile_import(
        make_payload("Kingdom", mal_id=12031, fields={"unit_total": 24}),
        ReconciliationContext(),
        unit_of_work_factory=uow,
        now=NOW,
    )

    assert entry.unit_total == 24
    assert entry.update_available
    assert state.done_units() == frozenset(range(1, 13))
    assert state.status is ProgressStatus.IN_PROGRESS
