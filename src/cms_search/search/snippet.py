"""Snippet extraction for search results.

Picks the window of the item text with the most query-term occurrences,
widens it to word boundaries, marks truncation with ``...`` and wraps
whole-word term matches in ``<mark>`` tags.
"""

from __future__ import annotations

from collections.abc import Sequence
import re

from cms_search.domain.model import Item
from cms_search.search.analyzers import strip_html


ELLIPSIS = "..."


def snippet_source(item: Item) -> str:
    """Return the text a snippet is cut from: the excerpt, else the body."""

    source = item.excerpt or item.body
    return " ".join(strip_html(source).split())


def _term_pattern(terms: Sequence[str]) -> re.Pattern[str] | None:
    cleaned = sorted({term for term in terms if term}, key=lambda term: (-len(term), term))
    if not cleaned:
        return None
    alternatives = "|".join(re.escape(term) for term in cleaned)
    return re.compile(rf"(?<!\w)({alternatives})(?!\w)", re.IGNORECASE)


def find_best_window(text: str, terms: Sequence[str], length: int) -> tuple[int, int]:
    """Return ``(start, end)`` of the window holding the most term occurrences.

    Without any occurrence the window starts at the beginning of the text.
    """

    if len(text) <= length:
        return 0, len(text)

    pattern = _term_pattern(terms)
    positions = [match.start() for match in pattern.finditer(text)] if pattern else []
    if not positions:
        return 0, length

    best_start = positions[0]
    best_count = 0
    right = 0
    for left, start in enumerate(positions):
        right = max(right, left)
        while right < len(positions) and positions[right] < start + length:
            right += 1
        count = right - left
        if count > best_count:
            best_start, best_count = start, count

    # Leave a little leading context before the first hit
    start = max(0, min(best_start - length // 5, len(text) - length))
    return start, start + length


def widen_to_words(text: str, start: int, end: int) -> tuple[int, int]:
    """Move ``start`` back and ``end`` forward so no word is cut in half."""

    if start > 0 and not text[start - 1].isspace():
        boundary = text.rfind(" ", 0, start)
        start = boundary + 1 if boundary != -1 else 0
    if end < len(text) and not text[end].isspace():
        boundary = text.find(" ", end)
        end = boundary if boundary != -1 else len(text)
    return start, end


def highlight_terms_in_snippet(snippet: str, terms: Sequence[str], style: str = "html") -> str:
    """Highlight whole-word term matches in a snippet.

    Args:
        snippet: The snippet text to highlight.
        terms: Terms to highlight.
        style: "html" for <mark>term</mark> or "plain" for [[term]].
    """

    if not snippet or not terms:
        return snippet
    pattern = _term_pattern(terms)
    if pattern is None:
        return snippet
    replacement = r"<mark>\1</mark>" if style == "html" else r"[[\1]]"
    return pattern.sub(replacement, snippet)


def build_snippet(text: str, terms: Sequence[str], length: int = 200, style: str = "html") -> str:
    """Build a highlighted snippet of roughly ``length`` characters.

    This is the main entry point for snippet generation.
    """

    text = " ".join(text.split()) if text else ""
    if not text:
        return ""

    start, end = find_best_window(text, terms, length)
    start, end = widen_to_words(text, start, end)
    snippet = text[start:end].strip()
    snippet = highlight_terms_in_snippet(snippet, terms, style=style)

    if start > 0:
        snippet = f"{ELLIPSIS}{snippet}"
    if end < len(text):
        snippet = f"{snippet}{ELLIPSIS}"
    return snippet


def build_item_snippet(item: Item, terms: Sequence[str], length: int = 200) -> str:
    return build_snippet(snippet_source(item), terms, length)
