"""Source attribution helpers for ``source_import`` labels."""

from __future__ import annotations

SOURCE_SEPARATOR = "+"


def split_source_labels(raw: str | None) -> list[str]:
    if not raw:
        return []
    return [part.strip() for part in raw.split(SOURCE_SEPARATOR) if part.strip()]


def merge_source_labels(existing: str | None, incoming: str) -> str:
    """Concatenate provenance labels instead of replacing them.

    >>> merge_source_labels("sheet", "mal")
    'sheet+mal'
    >>> merge_source_labels("sheet+mal", "mal")
    'sheet+mal'
    """

    labels = split_source_labels(existing)
    if not labels:
        return incoming
    if incoming in labels:
        return SOURCE_SEPARATOR.join(labels)
    return SOURCE_SEPARATOR.join([*labels, incoming])
