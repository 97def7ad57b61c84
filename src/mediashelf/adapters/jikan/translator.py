"""Translate Jikan payloads into import records."""

from __future__ import annotations

from typing import TYPE_CHECKING

from mediashelf.domain.model import MediaKind
from mediashelf.domain.sources import JikanImport, parse_partial_date

from .schema import JikanAnime

if TYPE_CHECKING:
    from .schema import JikanManga, JikanMedia, JikanNamedResource

_PREQUEL = "Prequel"
_SEQUEL = "Sequel"


def translate_media(media: JikanAnime | JikanManga) -> JikanImport:
    if isinstance(media, JikanAnime):
        return translate_anime(media)
    return translate_manga(media)


def translate_anime(anime: JikanAnime) -> JikanImport:
    fields = _common_fields(anime)
    fields["unit_total"] = anime.episodes
    fields["year"] = anime.year
    fields["season"] = anime.season
    fields["studios"] = _names(anime.studios)
    if anime.aired is not None:
        fields["start_date"] = parse_partial_date(anime.aired.start)
        fields["end_date"] = parse_partial_date(anime.aired.end)
    return _to_import(anime, MediaKind.ANIME, fields)


def translate_manga(manga: JikanManga) -> JikanImport:
    fields = _common_fields(manga)
    fields["unit_total"] = manga.volumes
    if manga.published is not None:
        start = parse_partial_date(manga.published.start)
        fields["start_date"] = start
        fields["end_date"] = parse_partial_date(manga.published.end)
        fields["year"] = start.year if start else None
    return _to_import(manga, MediaKind.MANGA, fields)


def _common_fields(media: JikanMedia) -> dict[str, object]:
    return {
        "media_type": media.type,
        "release_status": media.status,
        "synopsis": media.synopsis,
        "score": media.score,
        "genres": _names(media.genres),
        "themes": _names(media.themes),
        "cover_url": media.images.best_url if media.images else None,
        "prequel_ref": _relation_ref(media, _PREQUEL),
        "sequel_ref": _relation_ref(media, _SEQUEL),
    }


def _to_import(media: JikanMedia, kind: MediaKind, fields: dict[str, object]) -> JikanImport:
    return JikanImport(
        kind=kind,
        mal_id=media.mal_id,
        title=media.title,
        title_english=media.title_english,
        title_japanese=media.title_japanese,
        synonyms=tuple(media.title_synonyms),
        fields={name: value for name, value in fields.items() if value is not None},
    )


def _names(resources: list[JikanNamedResource]) -> list[str]:
    return [resource.name for resource in resources]


def _relation_ref(media: JikanMedia, relation: str) -> str | None:
    for group in media.relations:
        if group.relation != relation:
            continue
        for entry in group.entry:
            if entry.type in (None, "anime", "manga"):
                return f"{entry.type or 'anime'}:{entry.mal_id}"
    return None
