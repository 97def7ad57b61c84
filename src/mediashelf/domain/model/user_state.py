"""Per-user progress on a catalog entry."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from datetime import datetime
    from uuid import UUID

    from mediashelf.domain.model.enums import ProgressStatus


@dataclass(frozen=True, slots=True)
class ProgressMark:
    done: bool
    timestamp: datetime | None = None


@dataclass(eq=False, kw_only=True)
class UserMediaState:
    """Exactly one row per (entry, user); created on first write."""

    entry_id: UUID
    user_id: UUID
    progress: dict[int, ProgressMark] = field(default_factory=dict[int, ProgressMark])
    status: ProgressStatus | None = None
    favorite: bool = False
    tags: list[str] = field(default_factory=list[str])
    label: str | None = None
    updated_at: datetime | None = None

    def done_units(self) -> frozenset[int]:
        return frozenset(unit for unit, mark in self.progress.items() if mark.done)

    def done_count(self, total: int | None = None) -> int:
        """Count done units, only within ``1..total`` when a total is given."""

        units = self.done_units()
        if total is None:
            return len(units)
        return sum(1 for unit in units if 1 <= unit <= total)
