"""Related-item scoring.

The score between an item and a candidate is additive over the requested
criteria:

- ``tags`` / ``categories``: 3 per shared label
- ``author``: 5 when both items have the same author
- ``title``: 1 per shared title word
- anything else: 2 when both items carry the same truthy custom value

Labels are compared case-insensitively after `label_of` normalization, so
plain strings and enriched records compare equal when they name the same
thing.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from cms_search.domain.model import Item, label_of


TAG_WEIGHT = 3
CATEGORY_WEIGHT = 3
AUTHOR_WEIGHT = 5
TITLE_WORD_WEIGHT = 1
META_WEIGHT = 2


def _label_set(values: Iterable[object]) -> set[str]:
    return {label for label in (label_of(value).strip().casefold() for value in values) if label}


def _title_words(title: str) -> set[str]:
    return {word for word in title.casefold().split() if word}


def similarity_score(item: Item, candidate: Item, criteria: Sequence[str]) -> int:
    score = 0
    for criterion in criteria:
        if criterion == "tags":
            score += len(_label_set(item.tags) & _label_set(candidate.tags)) * TAG_WEIGHT
        elif criterion == "categories":
            score += len(_label_set(item.categories) & _label_set(candidate.categories)) * CATEGORY_WEIGHT
        elif criterion == "author":
            author = item.author_name.strip().casefold()
            if author and author == candidate.author_name.strip().casefold():
                score += AUTHOR_WEIGHT
        elif criterion == "title":
            score += len(_title_words(item.title) & _title_words(candidate.title)) * TITLE_WORD_WEIGHT
        else:
            value = item.meta(criterion)
            if value and value == candidate.meta(criterion):
                score += META_WEIGHT
    return score


def find_related(
    item: Item,
    candidates: Iterable[Item],
    criteria: Sequence[str] = ("tags",),
    limit: int = 5,
) -> list[Item]:
    """Return up to ``limit`` candidates related to ``item``, best first.

    The item itself (by slug) and zero-score candidates are excluded.

    Raises:
        ValueError: when ``limit`` is negative.
    """
    if limit < 0:
        raise ValueError(f"limit must be >= 0, got {limit}")
    if isinstance(criteria, str):
        criteria = (criteria,)

    scored: list[tuple[int, str, int, Item]] = []
    for position, candidate in enumerate(candidates):
        if candidate.slug == item.slug:
            continue
        score = similarity_score(item, candidate, criteria)
        if score > 0:
            scored.append((score, candidate.slug, position, candidate))

    scored.sort(key=lambda entry: (-entry[0], entry[1], entry[2]))
    return [candidate for _, _, _, candidate in scored[:limit]]
