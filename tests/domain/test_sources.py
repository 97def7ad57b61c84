from __future__ import annotations

from datetime import date

import pytest

from mediashelf.domain.errors import ImportValidationError
from mediashelf.domain.model import ExternalNamespace, ExternalRef, MediaKind, ProgressStatus, Provider
from mediashelf.domain.reconciliation.contracts import ProgressReport
from mediashelf.domain.sources import (
    JikanImport,
    MalListImport,
    ManualImport,
    SheetImport,
    mal_ref,
    parse_partial_date,
    to_import_payload,
)


def test_jikan_record_collects_every_title() -> None:
    payload = to_import_payload(
        JikanImport(
            kind=MediaKind.ANIME,
            mal_id=16498,
            title="Shingeki no Kyojin",
            title_english="Attack on Titan",
            title_japanese="進撃の巨人",
            synonyms=("AoT", " "),
            fields={"unit_total": 25},
        )
    )

    assert payload.source is Provider.MAL
    assert payload.titles == ("Shingeki no Kyojin", "Attack on Titan", "進撃の巨人", "AoT")
    assert payload.external_id == ExternalRef(ExternalNamespace.MAL_ANIME, "16498")
    assert payload.fields == {"unit_total": 25}
    assert payload.progress is None


def test_mal_list_row_carries_progress() -> None:
    payload = to_import_payload(
        MalListImport(
            kind=MediaKind.MANGA,
            mal_id=2,
            title="Berserk",
            unit_total=None,
            consumed_units=41,
            status=ProgressStatus.ON_HOLD,
            media_type="Manga",
        )
    )

    assert payload.external_id == ExternalRef(ExternalNamespace.MAL_MANGA, "2")
    assert payload.fields == {"media_type": "Manga"}
    assert payload.progress == ProgressReport(consumed_units=41, status=ProgressStatus.ON_HOLD)


def test_sheet_row_splits_alternative_titles() -> None:
    payload = to_import_payload(
        SheetImport(
            kind=MediaKind.ANIME,
            title="Kimetsu no Yaiba",
            alternative_titles="Demon Slayer; 鬼滅の刃",
            mal_id=" 38000 ",
            fields={"year": 2019},
        )
    )

    assert payload.source is Provider.SHEET
    assert payload.titles == ("Kimetsu no Yaiba", "Demon Slayer", "鬼滅の刃")
    assert payload.fields == {"year": 2019, "alternative_titles": ["Demon Slayer", "鬼滅の刃"]}
    assert payload.external_id == ExternalRef(ExternalNamespace.MAL_ANIME, "38000")


def test_sheet_row_without_id_matches_by_title_only() -> None:
    payload = to_import_payload(SheetImport(kind=MediaKind.GAME, title="Hollow Knight", mal_id=""))

    assert payload.external_id is None
    assert payload.fields == {}


def test_manual_entry_keeps_custom_namespace() -> None:
    ref = ExternalRef(namespace="igdb:game", value="hollow-knight")

    payload = to_import_payload(
        ManualImport(
            kind=MediaKind.GAME,
            title="Hollow Knight",
            alternative_titles=("HK",),
            external_id=ref,
        )
    )

    assert payload.source is Provider.MANUAL
    assert payload.titles == ("Hollow Knight", "HK")
    assert payload.external_id is ref
    assert payload.fields == {"alternative_titles": ["HK"]}


def test_mal_ref_rejects_games() -> None:
    assert mal_ref(MediaKind.GAME, None) is None
    with pytest.raises(ImportValidationError):
        mal_ref(MediaKind.GAME, 42)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("2019-04-06", date(2019, 4, 6)),
        ("2019-04-06T00:00:00+00:00", date(2019, 4, 6)),
        (" 2001-09-01 ", date(2001, 9, 1)),
        ("2019", None),
        ("not a date", None),
        ("", None),
        (None, None),
    ],
)
def test_parse_partial_date(raw: str | None, expected: date | None) -> None:
    assert parse_partial_date(raw) == expected
