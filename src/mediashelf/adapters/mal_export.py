"""Reader for MyAnimeList XML list exports (anime and manga, optionally gzipped)."""

from __future__ import annotations

import gzip
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Final

from lxml import etree

from mediashelf.domain.errors import ImportValidationError
from mediashelf.domain.model import MediaKind, ProgressStatus
from mediashelf.domain.sources import MalListImport

if TYPE_CHECKING:
    from pathlib import Path

    from lxml.etree import _Element

log = logging.getLogger(__name__)

_GZIP_MAGIC: Final[bytes] = b"\x1f\x8b"

# Exports are user-supplied files: no entity expansion, no DTD or network fetches.
_PARSER: Final = etree.XMLParser(
    resolve_entities=False,
    no_network=True,
    load_dtd=False,
    huge_tree=False,
)

MAL_STATUSES: Final[dict[str, ProgressStatus]] = {
    "watching": ProgressStatus.IN_PROGRESS,
    "reading": ProgressStatus.IN_PROGRESS,
    "completed": ProgressStatus.COMPLETED,
    "on-hold": ProgressStatus.ON_HOLD,
    "dropped": ProgressStatus.DROPPED,
    "plan to watch": ProgressStatus.NOT_STARTED,
    "plan to read": ProgressStatus.NOT_STARTED,
}


@dataclass(frozen=True, slots=True)
class _Layout:
    kind: MediaKind
    item_tag: str
    id_tag: str
    title_tag: str
    type_tag: str
    total_tag: str
    consumed_tag: str


_ANIME = _Layout(
    kind=MediaKind.ANIME,
    item_tag="anime",
    id_tag="series_animedb_id",
    title_tag="series_title",
    type_tag="series_type",
    total_tag="series_episodes",
    consumed_tag="my_watched_episodes",
)
_MANGA = _Layout(
    kind=MediaKind.MANGA,
    item_tag="manga",
    id_tag="manga_mangadb_id",
    title_tag="manga_title",
    type_tag="manga_type",
    total_tag="manga_volumes",
    consumed_tag="my_read_volumes",
)


@dataclass(slots=True)
class MalExport:
    records: list[MalListImport] = field(default_factory=list[MalListImport])
    skipped: int = 0


def read_mal_export(path: Path) -> MalExport:
    raw = path.read_bytes()
    if raw.startswith(_GZIP_MAGIC):
        raw = gzip.decompress(raw)
    return parse_mal_export(raw)


def parse_mal_export(document: bytes | str) -> MalExport:
    """Parse an export; rows without an id or a title are skipped and counted."""

    if isinstance(document, str):
        document = document.encode("utf-8")
    try:
        root = etree.fromstring(document, parser=_PARSER)
    except etree.XMLSyntaxError as exc:
        raise ImportValidationError(f"Not a MyAnimeList export: {exc}") from exc

    export = MalExport()
    for layout in (_ANIME, _MANGA):
        for item in root.iter(layout.item_tag):
            record = _parse_item(item, layout)
            if record is None:
                export.skipped += 1
                continue
            export.records.append(record)

    log.info(
        "Read %d record(s) from MyAnimeList export, skipped %d",
        len(export.records),
        export.skipped,
    )
    return export


def parse_mal_status(raw: str | None) -> ProgressStatus | None:
    if raw is None:
        return None
    return MAL_STATUSES.get(raw.strip().lower())


def _parse_item(item: _Element, layout: _Layout) -> MalListImport | None:
    mal_id = _int(item, layout.id_tag)
    title = _text(item, layout.title_tag)
    if not mal_id or not title:
        log.warning("Skipping MyAnimeList row without id or title (id=%s)", mal_id)
        return None
    return MalListImport(
        kind=layout.kind,
        mal_id=mal_id,
        title=title,
        unit_total=_int(item, layout.total_tag) or None,
        consumed_units=_int(item, layout.consumed_tag) or 0,
        status=parse_mal_status(_text(item, "my_status")),
        media_type=_text(item, layout.type_tag),
    )


def _text(item: _Element, tag: str) -> str | None:
    value = item.findtext(tag)
    if value is None:
        return None
    return value.strip() or None


def _int(item: _Element, tag: str) -> int | None:
    value = _text(item, tag)
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None
