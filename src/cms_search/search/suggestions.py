"""Autocomplete suggestions built from item titles and tags."""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable

from cms_search.domain.model import Item


TITLE_WORD_WEIGHT = 10
TAG_WEIGHT = 5


def get_suggestions(partial: str, items: Iterable[Item], limit: int = 5, *, min_length: int = 2) -> list[str]:
    """Suggest completions for ``partial``.

    Title words and tag labels that start with the partial query (and are
    strictly longer than it) collect weight per occurrence: 10 for a title
    word, 5 for a tag. Results are ordered by weight, then alphabetically.
    """
    prefix = (partial or "").strip().lower()
    if len(prefix) < min_length or limit <= 0:
        return []

    weights: Counter[str] = Counter()
    for item in items:
        for word in item.title.lower().split():
            if word.startswith(prefix) and len(word) > len(prefix):
                weights[word] += TITLE_WORD_WEIGHT
        for tag in item.tag_names:
            label = tag.strip().lower()
            if label.startswith(prefix) and len(label) > len(prefix):
                weights[label] += TAG_WEIGHT

    ranked = sorted(weights.items(), key=lambda pair: (-pair[1], pair[0]))
    return [suggestion for suggestion, _ in ranked[:limit]]
