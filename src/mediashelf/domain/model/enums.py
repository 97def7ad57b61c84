"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


class MediaKind(StrEnum):
    ANIME = "anime"
    MANGA = "manga"
    GAME = "game"


class Provider(StrEnum):
    """Origin of imported data; the value doubles as the ``source_import`` label."""

    MAL = "mal"
    ANILIST = "anilist"
    SHEET = "sheet"
    MANUAL = "manual"


class ExternalNamespace(StrEnum):
    MAL_ANIME = "mal:anime"
    MAL_MANGA = "mal:manga"
    ANILIST_MEDIA = "anilist:media"


class ProgressStatus(StrEnum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    ON_HOLD = "on_hold"
    DROPPED = "dropped"


AUTO_MANAGED_STATUSES = frozenset(
    {ProgressStatus.NOT_STARTED, ProgressStatus.IN_PROGRESS, ProgressStatus.COMPLETED}
)


class FieldCategory(StrEnum):
    """Merge category of a catalog field."""

    GENERAL = "general"
    AUTHORITATIVE = "authoritative"  # only the designated source may write
    INCREMENTAL = "incremental"  # counts only ever grow


class TieBreakRule(StrEnum):
    """How differing values from two automated sources are settled."""

    LATEST_WINS = "latest_wins"
    KEEP_EXISTING = "keep_existing"
    SOURCE_PRIORITY = "source_priority"
