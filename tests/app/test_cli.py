from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import uuid4

import pytest

from mediashelf.domain.batch import BatchResult
from mediashelf.domain.errors import EntryNotFoundError
from mediashelf.domain.model import ExternalNamespace, ExternalRef, MediaKind, ProgressStatus
from mediashelf.domain.progress import ProgressUpdateResult
from mediashelf.domain.reconciliation.contracts import (
    ReconciliationDecision,
    ReconciliationResult,
)
from mediashelf.domain.sources import MalListImport
from mediashelf.ui import cli as cli_module

if TYPE_CHECKING:
    from pathlib import Path


def _no_services(**_: object) -> object:
    return object()


def test_import_mal_passes_ids_and_flags(monkeypatch: pytest.MonkeyPatch) -> None:
    captured: dict[str, object] = {}
    target_id = uuid4()

    def fake_import(ref: ExternalRef, **kwargs: object) -> ReconciliationResult:
        captured["ref"] = ref
        captured.update(kwargs)
        return ReconciliationResult(decision=ReconciliationDecision.UPDATE, entry_id=target_id)

    monkeypatch.setattr(cli_module, "build_import_services", _no_services)
    monkeypatch.setattr(cli_module, "import_by_external_id", fake_import)

    cli_module.main(["import-mal", "2", "--kind", "manga", "--target-id", str(target_id)])

    assert captured["ref"] == ExternalRef(ExternalNamespace.MAL_MANGA, "2")
    assert captured["kind"] is MediaKind.MANGA
    assert captured["confirmed_target_id"] == target_id
    assert captured["force_create"] is False


def test_import_xml_runs_a_batch(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    captured: dict[str, object] = {}
    user_id = uuid4()
    record = MalListImport(kind=MediaKind.ANIME, mal_id=1, title="Cowboy Bebop")

    class _Export:
        records = [record]

    def fake_batch(records: list[object], **kwargs: object) -> BatchResult:
        captured["records"] = records
        captured.update(kwargs)
        return BatchResult(imported=1)

    def fake_services(**kwargs: object) -> object:
        captured["services_kwargs"] = kwargs
        return object()

    monkeypatch.setattr(cli_module, "read_mal_export", lambda _path: _Export())
    monkeypatch.setattr(cli_module, "build_import_services", fake_services)
    monkeypatch.setattr(cli_module, "run_batch_import", fake_batch)

    cli_module.main(
        ["import-xml", str(tmp_path / "animelist.xml"), "--user-id", str(user_id), "--no-enrich"]
    )

    assert captured["records"] == [record]
    assert captured["user_id"] == user_id
    assert captured["services_kwargs"] == {"fetch": True, "enrich": False}


def test_toggle_and_undo(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[tuple[object, ...]] = []
    entry_id, user_id = uuid4(), uuid4()

    def fake_toggle(
        entry: object, user: object, unit: int, *, done: bool
    ) -> ProgressUpdateResult:
        calls.append((entry, user, unit, done))
        return ProgressUpdateResult(success=True, new_status=ProgressStatus.IN_PROGRESS)

    monkeypatch.setattr(cli_module, "toggle_progress_unit", fake_toggle)

    cli_module.main(["toggle", str(entry_id), "4", "--user-id", str(user_id)])
    cli_module.main(["toggle", str(entry_id), "4", "--user-id", str(user_id), "--undo"])

    assert calls == [(entry_id, user_id, 4, True), (entry_id, user_id, 4, False)]


def test_status_command(monkeypatch: pytest.MonkeyPatch) -> None:
    captured: list[object] = []

    def fake_status(entry: object, user: object, status: ProgressStatus) -> None:
        captured.extend([entry, user, status])

    monkeypatch.setattr(cli_module, "set_manual_status", fake_status)
    entry_id, user_id = uuid4(), uuid4()

    cli_module.main(["status", str(entry_id), "dropped", "--user-id", str(user_id)])

    assert captured == [entry_id, user_id, ProgressStatus.DROPPED]


def test_invalid_uuid_exits_with_usage_error(monkeypatch: pytest.MonkeyPatch) -> None:
    def fake_toggle(*_: object, **__: object) -> None:
        raise AssertionError("must not be called")

    monkeypatch.setattr(cli_module, "toggle_progress_unit", fake_toggle)

    with pytest.raises(SystemExit) as excinfo:
        cli_module.main(["toggle", "not-a-uuid", "1", "--user-id", str(uuid4())])

    assert excinfo.value.code == 2


def test_unknown_entry_exits_with_failure(monkeypatch: pytest.MonkeyPatch) -> None:
    def fake_complete(*_: object, **__: object) -> None:
        raise EntryNotFoundError("Unknown catalog entry")

    monkeypatch.setattr(cli_module, "mark_entry_complete", fake_complete)

    with pytest.raises(SystemExit) as excinfo:
        cli_module.main(["complete", str(uuid4()), "--user-id", str(uuid4())])

    assert excinfo.value.code == 1


def test_missing_command_is_rejected_by_argparse() -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli_module.main([])

    assert excinfo.value.code == 2
