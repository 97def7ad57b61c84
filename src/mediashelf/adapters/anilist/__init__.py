"""AniList GraphQL adapter (cover art lookups)."""

from __future__ import annotations

from .covers import AniListCoverResolver

__all__ = ["AniListCoverResolver"]
