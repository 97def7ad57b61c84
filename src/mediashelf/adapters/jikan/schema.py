"""Pydantic models describing the Jikan v4 payloads."""

from __future__ import annotations

import logging
from typing import ClassVar

from pydantic import BaseModel, ConfigDict, Field

log = logging.getLogger(__name__)

type JikanDate = str  # ISO 8601 with time, e.g. 1999-10-20T00:00:00+00:00


class JikanBaseModel(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)
    _logged_extra_keys: ClassVar[set[str]] = set()

    def model_post_init(self, _context: object, /) -> None:
        extras = self.__pydantic_extra__
        if not extras:
            return
        new_keys = set(extras).difference(self._logged_extra_keys)
        if not new_keys:
            return
        self._logged_extra_keys.update(new_keys)
        log.debug(
            "Jikan %s: unmodeled keys: %s",
            type(self).__name__,
            ", ".join(sorted(new_keys)),
        )


class JikanImageSet(JikanBaseModel):
    image_url: str | None = None
    small_image_url: str | None = None
    large_image_url: str | None = None


class JikanImages(JikanBaseModel):
    jpg: JikanImageSet | None = None
    webp: JikanImageSet | None = None

    @property
    def best_url(self) -> str | None:
        for variant in (self.jpg, self.webp):
            if variant is None:
                continue
            url = variant.large_image_url or variant.image_url
            if url:
                return url
        return None


class JikanTitle(JikanBaseModel):
    type: str
    title: str


class JikanNamedResource(JikanBaseModel):
    mal_id: int
    type: str | None = None
    name: str
    url: str | None = None


class JikanDateRange(JikanBaseModel):
    start: JikanDate | None = Field(default=None, alias="from")
    end: JikanDate | None = Field(default=None, alias="to")
    string: str | None = None


class JikanRelation(JikanBaseModel):
    relation: str
    entry: list[JikanNamedResource] = Field(default_factory=list[JikanNamedResource])


class JikanMedia(JikanBaseModel):
    """Fields shared by anime and manga records."""

    mal_id: int
    url: str | None = None
    images: JikanImages | None = None
    title: str
    title_english: str | None = None
    title_japanese: str | None = None
    title_synonyms: list[str] = Field(default_factory=list[str])
    titles: list[JikanTitle] = Field(default_factory=list[JikanTitle])
    type: str | None = None
    status: str | None = None
    score: float | None = None
    synopsis: str | None = None
    genres: list[JikanNamedResource] = Field(default_factory=list[JikanNamedResource])
    themes: list[JikanNamedResource] = Field(default_factory=list[JikanNamedResource])
    relations: list[JikanRelation] = Field(default_factory=list[JikanRelation])


class JikanAnime(JikanMedia):
    episodes: int | None = None
    airing: bool | None = None
    aired: JikanDateRange | None = None
    season: str | None = None
    year: int | None = None
    studios: list[JikanNamedResource] = Field(default_factory=list[JikanNamedResource])


class JikanManga(JikanMedia):
    chapters: int | None = None
    volumes: int | None = None
    publishing: bool | None = None
    published: JikanDateRange | None = None
    authors: list[JikanNamedResource] = Field(default_factory=list[JikanNamedResource])


class JikanAnimeResponse(JikanBaseModel):
    data: JikanAnime


class JikanMangaResponse(JikanBaseModel):
    data: JikanManga


class JikanErrorResponse(JikanBaseModel):
    status: int
    type: str | None = None
    message: str | None = None
    error: str | None = None
