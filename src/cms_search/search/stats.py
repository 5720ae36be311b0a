"""Statistical helpers for relevance scoring.

The functions here know nothing about the index layout so the scorer, the
phrase matcher and tests can share them.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import datetime, timedelta
import math
from typing import TYPE_CHECKING


if TYPE_CHECKING:
    from cms_search.config import RecencyBracket


SECONDS_PER_DAY = 86400.0


def calculate_idf(doc_freq: int, total_docs: int) -> float:
    """Return ``ln(total_docs / doc_freq)``.

    Guarded: returns 0.0 when either count is non-positive, which covers a
    stale index asked about a term it no longer holds.
    """

    if total_docs <= 0 or doc_freq <= 0:
        return 0.0
    return math.log(total_docs / min(doc_freq, total_docs))


def age_in_days(published: datetime, now: datetime) -> float:
    """Age of an item in days; future dates count as age 0."""

    return max((now - published).total_seconds() / SECONDS_PER_DAY, 0.0)


def recency_boost(published: datetime | None, now: datetime, brackets: Sequence[RecencyBracket]) -> float:
    """Return the boost of the first bracket the item's age falls under."""

    if published is None:
        return 0.0
    age = age_in_days(published, now)
    for bracket in brackets:
        if age < bracket.max_age_days:
            return bracket.boost
    return 0.0


def coverage_multiplier(matched_terms: int, total_terms: int) -> float:
    """Return ``1 + matched / total``, rewarding items that match more query terms."""

    if total_terms <= 0:
        return 1.0
    return 1.0 + min(matched_terms, total_terms) / total_terms


def recency_edges(dates: Iterable[datetime | None], brackets: Sequence[RecencyBracket]) -> tuple[datetime, ...]:
    """Sorted instants at which a dated item leaves a recency bracket.

    Between two consecutive edges every item's recency boost is constant.
    """

    edges = {
        published + timedelta(days=bracket.max_age_days)
        for published in dates
        if published is not None
        for bracket in brackets
    }
    return tuple(sorted(edges))
