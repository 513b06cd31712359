"""Numbered citation ledger with a global scope and a per-chapter scope.

Both scopes share one numbering sequence. Keys are string-encoded positive
integers assigned in the order the generation service reported the sources;
a key is never reused.
"""

from __future__ import annotations

import logging
from typing import Protocol

from ..models import CitationIndex

logger = logging.getLogger(__name__)

REFERENCES_HEADER = "## References"


class ReferenceListService(Protocol):
    def generate_reference_list(self, citations: CitationIndex, chapter_title: str) -> str: ...


def _max_key(index: CitationIndex) -> int:
    keys = [int(k) for k in index if str(k).isdigit()]
    return max(keys, default=0)


def sorted_keys(index: CitationIndex) -> list[str]:
    """Keys in ascending numeric order."""
    return sorted(index, key=int)


def register_citations(existing: CitationIndex, new_citations: list[str]) -> CitationIndex:
    """Number *new_citations* after the highest key in *existing*.

    Returns only the delta; the caller merges it.
    """
    next_id = _max_key(existing) + 1
    delta: CitationIndex = {}
    for payload in new_citations:
        delta[str(next_id)] = payload
        next_id += 1
    return delta


class CitationLedger:
    """Global and chapter-scope ledgers updated together."""

    def __init__(
        self,
        global_index: CitationIndex | None = None,
        chapter_index: CitationIndex | None = None,
    ) -> None:
        self.global_index: CitationIndex = dict(global_index or {})
        self.chapter_index: CitationIndex = dict(chapter_index or {})

    def register(self, new_citations: list[str]) -> CitationIndex:
        # the global scope holds every key ever assigned, so it drives numbering
        delta = register_citations(self.global_index, new_citations)
        self.global_index.update(delta)
        self.chapter_index.update(delta)
        if delta:
            logger.debug("Registered citations %s", ", ".join(delta))
        return delta

    def clear_chapter(self) -> None:
        self.chapter_index = {}

    def __len__(self) -> int:
        return len(self.global_index)


def fallback_reference_list(citations: CitationIndex, chapter_title: str) -> str:
    """Deterministic reference list keeping the ledger numbering."""
    lines = [REFERENCES_HEADER, ""]
    lines.extend(f"[{key}] {citations[key]}" for key in sorted_keys(citations))
    logger.debug("Built fallback reference list for %r", chapter_title)
    return "\n".join(lines)


def render_reference_list(
    chapter_index: CitationIndex,
    chapter_title: str,
    service: ReferenceListService,
) -> str:
    """Formatted reference list for a chapter, or "" when nothing was cited."""
    if not chapter_index:
        return ""
    return service.generate_reference_list(dict(chapter_index), chapter_title)
