"""Pydantic models for the AniList ``Media`` cover query."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class AniListBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class AniListCoverImage(AniListBaseModel):
    extra_large: str | None = Field(default=None, alias="extraLarge")
    large: str | None = None
    medium: str | None = None

    @property
    def best_url(self) -> str | None:
        return self.extra_large or self.large or self.medium


class AniListMedia(AniListBaseModel):
    id: int
    id_mal: int | None = Field(default=None, alias="idMal")
    cover_image: AniListCoverImage | None = Field(default=None, alias="coverImage")


class AniListMediaData(AniListBaseModel):
    media: AniListMedia | None = Field(default=None, alias="Media")


class AniListError(AniListBaseModel):
    message: str
    status: int | None = None


class AniListResponse(AniListBaseModel):
    data: AniListMediaData | None = None
    errors: list[AniListError] = Field(default_factory=list[AniListError])
