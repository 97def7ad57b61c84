from __future__ import annotations

import pytest

from mediashelf.domain.model import FieldCategory, Provider, TieBreakRule
from mediashelf.domain.reconciliation.policy import ReconciliationSettings
from mediashelf.domain.reconciliation.protection import (
    SkipReason,
    build_safe_update,
    is_field_protected,
    parse_protection_marker,
    serialize_protection_marker,
)

DEFAULT_SETTINGS = ReconciliationSettings()


def test_protected_field_is_never_overwritten() -> None:
    update = build_safe_update(
        {"synopsis": "Written by hand", "unit_total": 12},
        {"synopsis": "Scraped synopsis", "unit_total": 13},
        frozenset({"synopsis"}),
        source=Provider.MAL,
        settings=DEFAULT_SETTINGS,
        force_overwrite=True,
    )

    assert update.changes == {"unit_total": 13}
    assert update.skipped == {"synopsis": SkipReason.PROTECTED}


def test_empty_incoming_value_never_erases() -> None:
    update = build_safe_update(
        {"synopsis": "Kept", "genres": ["Action"], "score": 8.1},
        {"synopsis": "   ", "genres": [], "score": None},
        None,
        source=Provider.MAL,
        settings=DEFAULT_SETTINGS,
    )

    assert not update
    assert set(update.skipped.values()) == {SkipReason.EMPTY}


def test_unknown_and_unchanged_fields_are_skipped() -> None:
    update = build_safe_update(
        {"genres": ["Action", "Drama"]},
        {"genres": ("Action", "Drama"), "rating": "PG-13"},
        None,
        source=Provider.MAL,
        settings=DEFAULT_SETTINGS,
    )

    assert update.changes == {}
    assert update.skipped == {
        "genres": SkipReason.UNCHANGED,
        "rating": SkipReason.UNKNOWN_FIELD,
    }


def test_authoritative_fields_only_from_designated_source() -> None:
    existing = {"genres": ["Action"], "studios": []}
    incoming = {"genres": ["Action", "Comedy"], "studios": ["Madhouse"]}

    from_sheet = build_safe_update(
        existing, incoming, None, source=Provider.SHEET, settings=DEFAULT_SETTINGS
    )
    from_mal = build_safe_update(
        existing, incoming, None, source=Provider.MAL, settings=DEFAULT_SETTINGS
    )

    assert from_sheet.changes == {}
    assert from_sheet.skipped == {
        "genres": SkipReason.NOT_AUTHORITATIVE,
        "studios": SkipReason.NOT_AUTHORITATIVE,
    }
    assert from_mal.changes == incoming


def test_authoritative_sources_are_configurable() -> None:
    settings = ReconciliationSettings(
        authoritative_sources={FieldCategory.AUTHORITATIVE: frozenset({Provider.SHEET})}
    )

    update = build_safe_update(
        {"genres": []},
        {"genres": ["Slice of Life"]},
        None,
        source=Provider.SHEET,
        settings=settings,
    )

    assert update.changes == {"genres": ["Slice of Life"]}


@pytest.mark.parametrize(
    ("current", "incoming", "force", "expected"),
    [
        (12, 24, False, {"unit_total": 24}),
        (24, 12, False, {}),
        (24, 12, True, {"unit_total": 12}),
        (None, 12, False, {"unit_total": 12}),
    ],
)
def test_incremental_counts_never_decrease_unless_forced(
    current: int | None,
    incoming: int,
    force: bool,  # noqa: FBT001
    expected: dict[str, object],
) -> None:
    update = build_safe_update(
        {"unit_total": current},
        {"unit_total": incoming},
        None,
        source=Provider.SHEET,
        settings=DEFAULT_SETTINGS,
        force_overwrite=force,
    )

    assert update.changes == expected
    if not expected:
        assert update.skipped == {"unit_total": SkipReason.WOULD_DECREASE}


def test_latest_wins_overwrites_general_fields() -> None:
    update = build_safe_update(
        {"release_status": "Currently Airing"},
        {"release_status": "Finished Airing"},
        None,
        source=Provider.SHEET,
        settings=DEFAULT_SETTINGS,
        field_sources={"release_status": Provider.MAL},
    )

    assert update.changes == {"release_status": "Finished Airing"}


def test_keep_existing_only_fills_blanks() -> None:
    settings = ReconciliationSettings(tie_break=TieBreakRule.KEEP_EXISTING)

    update = build_safe_update(
        {"release_status": "Currently Airing", "season": None},
        {"release_status": "Finished Airing", "season": "fall"},
        None,
        source=Provider.MAL,
        settings=settings,
    )

    assert update.changes == {"season": "fall"}
    assert update.skipped == {"release_status": SkipReason.TIE_BREAK}


def test_source_priority_respects_previous_writer() -> None:
    settings = ReconciliationSettings(tie_break=TieBreakRule.SOURCE_PRIORITY)
    existing = {"synopsis": "From MAL", "cover_url": "https://sheet.example/a.jpg"}
    incoming = {"synopsis": "From sheet", "cover_url": "https://sheet.example/b.jpg"}

    update = build_safe_update(
        existing,
        incoming,
        None,
        source=Provider.SHEET,
        settings=settings,
        field_sources={"synopsis": Provider.MAL, "cover_url": Provider.SHEET},
    )

    assert update.changes == {"cover_url": "https://sheet.example/b.jpg"}
    assert update.skipped == {"synopsis": SkipReason.TIE_BREAK}


def test_parse_protection_marker_variants() -> None:
    assert parse_protection_marker('["synopsis", "title", ""]') == {"synopsis", "title"}
    assert parse_protection_marker(["cover_url"]) == {"cover_url"}
    assert parse_protection_marker(None) == frozenset()
    assert parse_protection_marker("  ") == frozenset()
    assert parse_protection_marker("{not json") == frozenset()
    assert parse_protection_marker('{"synopsis": true}') == frozenset()


def test_serialize_protection_marker_is_sorted_and_null_when_empty() -> None:
    assert serialize_protection_marker({"title", "synopsis"}) == '["synopsis", "title"]'
    assert serialize_protection_marker(()) is None


def test_is_field_protected() -> None:
    assert is_field_protected('["synopsis"]', "synopsis")
    assert is_field_protected(frozenset({"synopsis"}), "synopsis")
    assert not is_field_protected('["synopsis"]', "title")
    assert not is_field_protected("garbage", "synopsis")


def test_settings_reject_out_of_range_threshold() -> None:
    with pytest.raises(ValueError, match="similarity_threshold"):
        ReconciliationSettings(similarity_threshold=0)
    with pytest.raises(ValueError, match="similarity_threshold"):
        ReconciliationSettings(similarity_threshold=101)
