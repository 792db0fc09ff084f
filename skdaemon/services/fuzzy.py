"""Fuzzy weighting of completion labels against the typed query."""
from __future__ import annotations

from difflib import SequenceMatcher
from typing import Protocol


class FuzzyMatcher(Protocol):
    def weight(self, query: str, text: str) -> float: ...


def _subsequence_span(query: str, text: str) -> tuple[int, int] | None:
    """Return (first, last) indexes of the leftmost in-order match, or None."""
    first = -1
    pos = 0
    for ch in query:
        idx = text.find(ch, pos)
        if idx < 0:
            return None
        if first < 0:
            first = idx
        pos = idx + 1
    return first, pos - 1


class SubsequenceMatcher:
    """Smart-case subsequence matcher.

    Every query character has to appear in order; the weight rewards compact
    matches that start early in the label. A lower-case query matches
    case-insensitively.
    """

    def weight(self, query: str, text: str) -> float:
        if not query:
            return 1.0
        if not text:
            return 0.0
        haystack = text.lower() if query.islower() else text
        span = _subsequence_span(query, haystack)
        if span is None:
            return 0.0
        first, last = span
        window = haystack[first:last + 1]
        compactness = SequenceMatcher(None, query, window).ratio()
        position = 1.0 / (1.0 + first)
        score = 0.7 * compactness + 0.3 * position
        return round(min(1.0, max(0.0, score)), 6)
