"""Fuzzy matching for typo-tolerant search.

This module provides edit distance calculation and fuzzy term matching
against the index vocabulary. A term within ``max_distance`` edits of the
query contributes its field weight scaled by a linear decay::

    weight * (max_distance - distance + 1) / (max_distance + 1)

so exact matches keep their full weight and each edit costs an equal share.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from cms_search.search.index import SearchIndex


class InvalidDistanceError(ValueError):
    """Raised when a negative maximum edit distance is requested."""


def validate_max_distance(max_distance: int) -> int:
    if max_distance < 0:
        raise InvalidDistanceError(f"max_distance must be >= 0, got {max_distance}")
    return max_distance


def levenshtein_distance(s1: str, s2: str, max_distance: int | None = None) -> int:
    """Calculate the Levenshtein (edit) distance between two strings.

    Uses dynamic programming for O(m*n) time complexity, with optional
    early termination when distance exceeds max_distance.

    Args:
        s1: First string.
        s2: Second string.
        max_distance: If provided, return max_distance+1 early when
            distance is guaranteed to exceed this threshold.

    Returns:
        The minimum number of single-character edits (insertions,
        deletions, substitutions) needed to change s1 into s2.
        If max_distance is set and exceeded, returns max_distance+1.

    Examples:
        >>> levenshtein_distance("kitten", "sitting")
        3
        >>> levenshtein_distance("helo", "hello")
        1
        >>> levenshtein_distance("", "abc")
        3
    """
    if not s1:
        return len(s2) if max_distance is None else min(len(s2), max_distance + 1)
    if not s2:
        return len(s1) if max_distance is None else min(len(s1), max_distance + 1)

    # Shorter string as columns
    if len(s1) > len(s2):
        s1, s2 = s2, s1

    m, n = len(s1), len(s2)

    if max_distance is not None and n - m > max_distance:
        return max_distance + 1

    prev_row = list(range(m + 1))
    curr_row = [0] * (m + 1)

    for j in range(1, n + 1):
        curr_row[0] = j
        row_min = curr_row[0]
        for i in range(1, m + 1):
            cost = 0 if s1[i - 1] == s2[j - 1] else 1
            curr_row[i] = min(
                prev_row[i] + 1,  # deletion
                curr_row[i - 1] + 1,  # insertion
                prev_row[i - 1] + cost,  # substitution
            )
            row_min = min(row_min, curr_row[i])

        if max_distance is not None and row_min > max_distance:
            return max_distance + 1

        prev_row, curr_row = curr_row, prev_row

    return prev_row[m]


def find_fuzzy_matches(
    query_term: str,
    vocabulary: Iterable[str],
    max_distance: int = 2,
) -> list[tuple[str, int]]:
    """Find terms in vocabulary within ``max_distance`` edits of the query term.

    Returns:
        List of (matching_term, edit_distance) tuples, sorted by
        edit distance (closest matches first), then alphabetically.
    """
    validate_max_distance(max_distance)
    query_lower = query_term.strip().lower()
    if not query_lower:
        return []

    matches: list[tuple[str, int]] = []
    for term in vocabulary:
        term_lower = term.lower()
        if abs(len(query_lower) - len(term_lower)) > max_distance:
            continue
        distance = levenshtein_distance(query_lower, term_lower, max_distance)
        if distance <= max_distance:
            matches.append((term, distance))

    matches.sort(key=lambda x: (x[1], x[0]))
    return matches


def decay_factor(distance: int, max_distance: int) -> float:
    """Linear decay from 1.0 at distance 0 to ``1/(max+1)`` at ``max_distance``."""
    if distance > max_distance:
        return 0.0
    return (max_distance - distance + 1) / (max_distance + 1)


@dataclass
class FuzzyMatch:
    doc_id: str
    score: float = 0.0
    terms: list[str] = field(default_factory=list)


def fuzzy_scores(index: SearchIndex, query: str, max_distance: int) -> dict[str, FuzzyMatch]:
    """Score every indexed item against the raw ``query`` by edit distance.

    Distances are computed once per vocabulary term, then summed per item
    using the item's aggregated field weight for that term.
    """
    matches = find_fuzzy_matches(query, index.postings.keys(), max_distance)
    results: dict[str, FuzzyMatch] = {}
    for term, distance in matches:
        factor = decay_factor(distance, max_distance)
        for doc_id in index.postings_for(term):
            entry = index.entry(doc_id)
            if entry is None:
                continue
            contribution = entry.term_weights.get(term, 0.0) * factor
            if contribution <= 0:
                continue
            match = results.setdefault(doc_id, FuzzyMatch(doc_id=doc_id))
            match.score += contribution
            match.terms.append(term)
    return results
