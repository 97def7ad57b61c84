"""Candidate matching of incoming titles against the local collection.

Responsibilities of this stage:
- turn incoming titles into a normalized key set (empty keys never match)
- classify each local entry as exact-id, exact-title or fuzzy-title hit
- set aside title hits whose stored external id contradicts the incoming one;
  near-title hits on such entries are dropped
- rank hits by similarity, first-seen order breaking ties
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Final

from mediashelf.domain.reconciliation.contracts import MatchCandidate, MatchKind, MatchScan
from mediashelf.domain.reconciliation.normalize import (
    dedupe_titles,
    extract_alternative_titles,
    normalize_title,
    title_similarity,
)
from mediashelf.domain.reconciliation.policy import DEFAULT_SIMILARITY_THRESHOLD

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence
    from uuid import UUID

    from mediashelf.domain.model import CatalogEntry, ExternalRef

log = logging.getLogger(__name__)

PERFECT_SCORE: Final[float] = 100.0
# An alternative-title hit is never as certain as a canonical title hit.
ALTERNATIVE_TITLE_CEILING: Final[float] = 99.0


def find_candidates(
    entries: Iterable[CatalogEntry],
    incoming_titles: Sequence[str | None],
    *,
    external_id: ExternalRef | None = None,
    threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
) -> list[MatchCandidate]:
    """Return ranked candidates for the incoming titles."""

    scan = scan_collection(
        entries,
        incoming_titles,
        external_id=external_id,
        threshold=threshold,
    )
    return list(scan.candidates)


def scan_collection(
    entries: Iterable[CatalogEntry],
    incoming_titles: Sequence[str | None],
    *,
    external_id: ExternalRef | None = None,
    threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
) -> MatchScan:
    incoming_by_key: dict[str, str] = {}
    for title in incoming_titles:
        key = normalize_title(title)
        if key and title is not None:
            incoming_by_key.setdefault(key, title)

    candidates: dict[UUID, MatchCandidate] = {}
    conflicts: dict[UUID, MatchCandidate] = {}
    for entry in entries:
        if entry.id in candidates or entry.id in conflicts:
            continue
        stored_id = entry.external_id(external_id.namespace) if external_id is not None else None
        if external_id is not None and stored_id == external_id.value:
            candidates[entry.id] = MatchCandidate(
                entry=entry,
                match_kind=MatchKind.EXACT_ID,
                similarity=PERFECT_SCORE,
                matched_title=entry.title,
            )
            continue
        if not incoming_by_key:
            continue

        candidate = _match_entry(entry, incoming_by_key, threshold=threshold)
        if candidate is None:
            continue
        if stored_id:
            # Only a shared title key makes an id mismatch a conflict.
            if normalize_title(candidate.matched_title) not in incoming_by_key:
                continue
            log.debug(
                "Title hit on %r suppressed: stored %s differs from %s",
                entry.title,
                stored_id,
                external_id,
            )
            conflicts[entry.id] = candidate
            continue
        candidates[entry.id] = candidate

    ranked = sorted(candidates.values(), key=lambda candidate: -candidate.similarity)
    return MatchScan(candidates=tuple(ranked), conflicts=tuple(conflicts.values()))


def _match_entry(
    entry: CatalogEntry,
    incoming_by_key: dict[str, str],
    *,
    threshold: float,
) -> MatchCandidate | None:
    if normalize_title(entry.title) in incoming_by_key:
        return MatchCandidate(
            entry=entry,
            match_kind=MatchKind.EXACT_TITLE,
            similarity=PERFECT_SCORE,
            matched_title=entry.title,
        )

    alternatives = dedupe_titles(extract_alternative_titles(entry.alternative_titles))
    for alternative in alternatives:
        incoming = incoming_by_key.get(normalize_title(alternative))
        if incoming is None:
            continue
        return MatchCandidate(
            entry=entry,
            match_kind=MatchKind.FUZZY_TITLE,
            similarity=min(title_similarity(alternative, incoming), ALTERNATIVE_TITLE_CEILING),
            matched_title=alternative,
        )

    best_score = 0.0
    best_title: str | None = None
    for local_title in (entry.title, *alternatives):
        for incoming in incoming_by_key.values():
            score = title_similarity(local_title, incoming)
            if score > best_score:
                best_score, best_title = score, local_title
    if best_title is None or best_score < threshold:
        return None
    return MatchCandidate(
        entry=entry,
        match_kind=MatchKind.FUZZY_TITLE,
        similarity=min(best_score, ALTERNATIVE_TITLE_CEILING),
        matched_title=best_title,
    )
