"""Title normalization for matching.

Responsibilities of this stage:
- fold case, diacritics and punctuation so titles compare as keys
- split free-text alternative title fields into lists
- score title pairs on a 0-100 scale

Nothing here raises on bad input: an unusable title degrades to ``""`` and
``""`` is never a match key.
"""

from __future__ import annotations

import json
import logging
import re
import unicodedata
from typing import TYPE_CHECKING, Any, cast

from rapidfuzz.distance import Levenshtein

if TYPE_CHECKING:
    from collections.abc import Iterable

log = logging.getLogger(__name__)

_NON_ALNUM = re.compile(r"[^a-z0-9]+")
_ALTERNATIVE_TITLE_DELIMITERS = re.compile(r"[;,|\r\n]+")


def normalize_title(title: str | None) -> str:
    """Return the comparison key for ``title``.

    >>> normalize_title("Ōkami: Saison 2!")
    'okami saison 2'
    """

    if not title:
        return ""
    try:
        decomposed = unicodedata.normalize("NFKD", str(title).casefold())
    except (TypeError, ValueError):
        log.warning("Could not normalize title %r", title)
        return ""
    stripped = "".join(char for char in decomposed if not unicodedata.combining(char))
    return _NON_ALNUM.sub(" ", stripped.lower()).strip()


def extract_alternative_titles(raw: object) -> list[str]:
    """Split a stored or scraped alternative-title field into clean titles.

    Accepts a list, a JSON array string or a delimited string (``;``, ``,``,
    ``|`` or line breaks). List items holding a JSON array are expanded, other
    list items are kept whole. Malformed JSON falls back to the delimiter split.
    """

    if raw is None:
        return []
    if isinstance(raw, (list, tuple)):
        titles: list[str] = []
        for item in cast("Iterable[Any]", raw):
            if not isinstance(item, str) or not item.strip():
                continue
            nested = _json_titles(item.strip())
            titles.extend(nested if nested is not None else [item.strip()])
        return titles
    text = str(raw).strip()
    if not text:
        return []
    nested = _json_titles(text)
    if nested is not None:
        return nested
    return [part.strip() for part in _ALTERNATIVE_TITLE_DELIMITERS.split(text) if part.strip()]


def normalized_title_set(titles: Iterable[str | None]) -> set[str]:
    return {key for key in (normalize_title(title) for title in titles) if key}


def dedupe_titles(titles: Iterable[str]) -> list[str]:
    """Drop titles whose normalized key was already seen, keeping first-seen order."""

    seen: set[str] = set()
    unique: list[str] = []
    for title in titles:
        key = normalize_title(title)
        if not key or key in seen:
            continue
        seen.add(key)
        unique.append(title)
    return unique


def title_similarity(left: str | None, right: str | None) -> float:
    """Levenshtein similarity of two titles on normalized keys, 0-100."""

    left_key = normalize_title(left)
    right_key = normalize_title(right)
    if not left_key or not right_key:
        return 0.0
    if left_key == right_key:
        return 100.0
    return round(Levenshtein.normalized_similarity(left_key, right_key) * 100, 2)


def _json_titles(text: str) -> list[str] | None:
    if not text.startswith("["):
        return None
    try:
        loaded = json.loads(text)
    except json.JSONDecodeError:
        return None
    if not isinstance(loaded, list):
        return None
    items = cast("list[Any]", loaded)
    return [item.strip() for item in items if isinstance(item, str) and item.strip()]
