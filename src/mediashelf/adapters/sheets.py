"""Reader for spreadsheet exports (CSV) of a hand-maintained library."""

from __future__ import annotations

import csv
import io
import logging
from typing import TYPE_CHECKING, Final

from mediashelf.domain.model import CATALOG_FIELDS
from mediashelf.domain.reconciliation.normalize import extract_alternative_titles
from mediashelf.domain.sources import SheetImport, parse_partial_date

if TYPE_CHECKING:
    from pathlib import Path

    from mediashelf.domain.model import MediaKind

log = logging.getLogger(__name__)

# Header aliases seen in real sheets; keys are compared case-insensitively.
HEADER_ALIASES: Final[dict[str, str]] = {
    "titre": "title",
    "name": "title",
    "alternative titles": "alternative_titles",
    "titres alternatifs": "alternative_titles",
    "mal id": "mal_id",
    "mal_id": "mal_id",
    "episodes": "unit_total",
    "volumes": "unit_total",
    "type": "media_type",
    "status": "release_status",
    "description": "synopsis",
    "cover": "cover_url",
}

_INT_FIELDS: Final[frozenset[str]] = frozenset({"unit_total", "year"})
_FLOAT_FIELDS: Final[frozenset[str]] = frozenset({"score"})
_DATE_FIELDS: Final[frozenset[str]] = frozenset({"start_date", "end_date", "streaming_start_date"})
_LIST_FIELDS: Final[frozenset[str]] = frozenset({"genres", "themes", "studios"})


def read_sheet(path: Path, *, kind: MediaKind) -> list[SheetImport]:
    return parse_sheet(path.read_text(encoding="utf-8-sig"), kind=kind)


def parse_sheet(text: str, *, kind: MediaKind) -> list[SheetImport]:
    """Turn CSV rows into sheet records; rows without a title are dropped."""

    reader = csv.DictReader(io.StringIO(text))
    records: list[SheetImport] = []
    for line, row in enumerate(reader, start=2):
        normalized = {_column(key): (value or "").strip() for key, value in row.items() if key}
        title = normalized.pop("title", "")
        if not title:
            log.warning("Skipping sheet line %d without a title", line)
            continue
        records.append(
            SheetImport(
                kind=kind,
                title=title,
                alternative_titles=normalized.pop("alternative_titles", None) or None,
                mal_id=normalized.pop("mal_id", None) or None,
                fields=_fields(normalized, line),
            )
        )
    return records


def _column(header: str) -> str:
    key = header.strip().lower()
    return HEADER_ALIASES.get(key, key.replace(" ", "_"))


def _fields(row: dict[str, str], line: int) -> dict[str, object]:
    fields: dict[str, object] = {}
    for name, raw in row.items():
        if not raw or name not in CATALOG_FIELDS:
            continue
        try:
            fields[name] = _convert(name, raw)
        except ValueError:
            log.warning("Ignoring unreadable %s=%r on sheet line %d", name, raw, line)
    return fields


def _convert(name: str, raw: str) -> object:
    if name in _INT_FIELDS:
        return int(raw)
    if name in _FLOAT_FIELDS:
        return float(raw.replace(",", "."))
    if name in _DATE_FIELDS:
        parsed = parse_partial_date(raw)
        if parsed is None:
            raise ValueError(raw)
        return parsed
    if name in _LIST_FIELDS:
        return extract_alternative_titles(raw)
    return raw
