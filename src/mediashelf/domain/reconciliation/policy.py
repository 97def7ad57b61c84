"""Merge and matching policy for reconciliation.

The settings are plain data so callers (CLI, batch imports, tests) pass them
explicitly through :class:`ReconciliationContext` instead of reading global
state.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Final

from mediashelf.domain.model import FieldCategory, Provider, TieBreakRule

if TYPE_CHECKING:
    from collections.abc import Mapping
    from uuid import UUID

DEFAULT_SIMILARITY_THRESHOLD: Final[float] = 75.0
DEFAULT_SOURCE_PRIORITY: Final[tuple[Provider, ...]] = (
    Provider.MANUAL,
    Provider.MAL,
    Provider.ANILIST,
    Provider.SHEET,
)


def _default_authoritative_sources() -> dict[FieldCategory, frozenset[Provider]]:
    return {FieldCategory.AUTHORITATIVE: frozenset({Provider.MAL})}


@dataclass(frozen=True, slots=True, kw_only=True)
class ReconciliationSettings:
    """Tunable knobs of matching and merging.

    ``similarity_threshold`` opens the "probable match" band ``[threshold, 100)``.
    ``source_priority`` lists providers from most to least trusted; it only
    matters for ``TieBreakRule.SOURCE_PRIORITY``. ``tie_break`` settles general
    fields two automated sources disagree on.
    """

    similarity_threshold: float = DEFAULT_SIMILARITY_THRESHOLD
    source_priority: tuple[Provider, ...] = DEFAULT_SOURCE_PRIORITY
    authoritative_sources: Mapping[FieldCategory, frozenset[Provider]] = field(
        default_factory=_default_authoritative_sources
    )
    tie_break: TieBreakRule = TieBreakRule.LATEST_WINS

    def __post_init__(self) -> None:
        if not 0 < self.similarity_threshold <= 100:  # noqa: PLR2004
            raise ValueError("similarity_threshold must be within (0, 100]")

    def is_authoritative(self, category: FieldCategory, source: Provider) -> bool:
        allowed = self.authoritative_sources.get(category)
        return allowed is None or source in allowed

    def priority_rank(self, source: Provider | None) -> int:
        """Lower is more trusted; unknown sources rank last."""

        if source is None or source not in self.source_priority:
            return len(self.source_priority)
        return self.source_priority.index(source)


@dataclass(frozen=True, slots=True, kw_only=True)
class ReconciliationContext:
    """Explicit per-call parameters for one reconciliation.

    ``confirmed_target_id`` and ``force_create`` are how a caller answers an
    AMBIGUOUS or REJECT result.
    """

    user_id: UUID | None = None
    settings: ReconciliationSettings = field(default_factory=ReconciliationSettings)
    confirmed_target_id: UUID | None = None
    force_create: bool = False
    force_overwrite: bool = False

    def __post_init__(self) -> None:
        if self.confirmed_target_id is not None and self.force_create:
            raise ValueError("confirmed_target_id and force_create are mutually exclusive")
