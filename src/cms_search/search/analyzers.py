"""Analyzer utilities for CMS item search.

Text is turned into terms by a small composable pipeline: an HTML-stripping
pre-pass, a regex tokenizer, then filters for lowercasing, length bounds and
stop words. The same pipeline analyzes item fields at index time and query
strings at search time so both sides agree on what a term is.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass
import re
from typing import Protocol


HTML_TAG_PATTERN = re.compile(r"<[^>]*>")

# Runs of letters and digits; underscores and punctuation split words.
WORD_PATTERN = re.compile(r"[^\W_]+", re.UNICODE)

BASIC_STOPWORDS: tuple[str, ...] = (
    "the",
    "and",
    "or",
    "but",
    "in",
    "on",
    "at",
    "to",
    "for",
    "of",
    "with",
    "by",
    "is",
    "are",
    "was",
    "were",
    "a",
    "an",
)

EXTENDED_STOPWORDS: tuple[str, ...] = (
    *BASIC_STOPWORDS,
    "be",
    "been",
    "have",
    "has",
    "had",
    "do",
    "does",
    "did",
    "will",
    "would",
    "could",
    "should",
)


@dataclass
class Token:
    """Represents a token emitted by analyzers."""

    text: str
    position: int
    start_char: int
    end_char: int


class TokenFilter(Protocol):
    """Protocol implemented by token filters."""

    def __call__(self, tokens: Iterable[Token]) -> Iterator[Token]:  # pragma: no cover - interface definition
        ...


def strip_html(text: str | None) -> str:
    """Remove HTML tags, leaving a space where each tag was."""

    if not text:
        return ""
    return HTML_TAG_PATTERN.sub(" ", text)


def normalize_text(text: str | None) -> str:
    """Return HTML-free, lowercased text with collapsed whitespace."""

    return " ".join(strip_html(text).lower().split())


class RegexTokenizer:
    """Regex-based tokenizer that yields word tokens."""

    def __init__(self, pattern: re.Pattern[str] = WORD_PATTERN) -> None:
        self.pattern = pattern

    def __call__(self, text: str) -> Iterator[Token]:
        for position, match in enumerate(self.pattern.finditer(text)):
            yield Token(
                text=match.group(0),
                position=position,
                start_char=match.start(),
                end_char=match.end(),
            )


class LowercaseFilter:
    """Filter that lowercases token text."""

    def __call__(self, tokens: Iterable[Token]) -> Iterator[Token]:
        for token in tokens:
            if not token.text.islower():
                token.text = token.text.lower()
            yield token


class LengthFilter:
    """Drops tokens outside the configured length bounds."""

    def __init__(self, min_length: int = 2, max_length: int | None = None) -> None:
        self.min_length = min_length
        self.max_length = max_length

    def __call__(self, tokens: Iterable[Token]) -> Iterator[Token]:
        for token in tokens:
            size = len(token.text)
            if size < self.min_length:
                continue
            if self.max_length is not None and size > self.max_length:
                continue
            yield token


class StopFilter:
    """Removes stopwords from the stream."""

    def __init__(self, stopwords: Sequence[str] | None = None) -> None:
        vocab = stopwords if stopwords is not None else BASIC_STOPWORDS
        self.stopwords = frozenset(word.lower() for word in vocab)

    def __call__(self, tokens: Iterable[Token]) -> Iterator[Token]:
        for token in tokens:
            if token.text not in self.stopwords:
                yield token


class AnalyzerPipeline:
    """Composable analyzer pipeline (html strip + tokenizer + filters)."""

    def __init__(self, tokenizer: RegexTokenizer, filters: Sequence[TokenFilter] | None = None) -> None:
        self.tokenizer = tokenizer
        self.filters = list(filters or [])

    def __call__(self, text: str | None) -> list[Token]:
        if not text:
            return []
        stream: Iterable[Token] = self.tokenizer(strip_html(text))
        for token_filter in self.filters:
            stream = token_filter(stream)
        tokens = list(stream)
        for idx, token in enumerate(tokens):  # normalize positions post-filtering
            token.position = idx
        return tokens


class TermAnalyzer:
    """Default analyzer used for both indexing and queries."""

    def __init__(
        self,
        *,
        min_word_length: int = 2,
        max_word_length: int | None = 50,
        stopwords: Sequence[str] | None = None,
    ) -> None:
        self.min_word_length = min_word_length
        self.max_word_length = max_word_length
        self.pipeline = AnalyzerPipeline(
            RegexTokenizer(),
            [LowercaseFilter(), LengthFilter(min_word_length, max_word_length), StopFilter(stopwords)],
        )

    def __call__(self, text: str | None) -> list[Token]:
        return self.pipeline(text)

    def terms(self, text: str | None) -> list[str]:
        """Return every term occurrence, in order."""
        return [token.text for token in self.pipeline(text)]

    def unique_terms(self, text: str | None) -> list[str]:
        """Return distinct terms in first-seen order."""
        return list(dict.fromkeys(self.terms(text)))
