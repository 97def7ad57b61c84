"""External identifiers owned by catalog entries."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Final

from mediashelf.domain.model.enums import ExternalNamespace, MediaKind, Provider

if TYPE_CHECKING:
    from datetime import datetime


type Namespace = str | ExternalNamespace


_NAMESPACE_PROVIDERS: Final[dict[Namespace, Provider]] = {
    ExternalNamespace.MAL_ANIME: Provider.MAL,
    ExternalNamespace.MAL_MANGA: Provider.MAL,
    ExternalNamespace.ANILIST_MEDIA: Provider.ANILIST,
}

_MAL_NAMESPACES: Final[dict[MediaKind, ExternalNamespace]] = {
    MediaKind.ANIME: ExternalNamespace.MAL_ANIME,
    MediaKind.MANGA: ExternalNamespace.MAL_MANGA,
}


def provider_for(namespace: Namespace) -> Provider | None:
    return _NAMESPACE_PROVIDERS.get(namespace)


def mal_namespace_for(kind: MediaKind) -> ExternalNamespace | None:
    return _MAL_NAMESPACES.get(kind)


def is_numeric_namespace(namespace: Namespace) -> bool:
    """MyAnimeList and AniList ids are positive integers."""

    return namespace in _NAMESPACE_PROVIDERS


@dataclass(eq=False, kw_only=True)
class ExternalID:
    """Persisted external id row; at most one per namespace and entry."""

    namespace: Namespace
    value: str
    provider: Provider | None = None
    created_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class ExternalRef:
    """External id carried by an incoming record."""

    namespace: Namespace
    value: str

    def __str__(self) -> str:
        return f"{self.namespace}={self.value}"
