"""Query classification and evaluation.

A raw query is dispatched to exactly one strategy:

- phrase: wrapped in matching quotes, literal substring match
- boolean: contains the whole words AND, OR or NOT
- plain: everything else, scored term by term

Boolean queries are parsed into a small expression tree with precedence
NOT > AND > OR and an implicit AND between adjacent operands. There is no
grouping. Operands that analyze to nothing and dangling operators are
dropped rather than rejected, so every input string yields a result.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
import re

from cms_search.domain.search import QueryMode
from cms_search.search.analyzers import TermAnalyzer
from cms_search.search.index import IndexedItem


BOOLEAN_PATTERN = re.compile(r"\b(and|or|not)\b", re.IGNORECASE)
QUOTE_CHARS = "\"'"


def normalize_query(raw: str | None) -> str:
    """Trim and collapse whitespace; case is left to the strategy."""
    if not raw:
        return ""
    return " ".join(raw.split())


def classify_query(raw: str | None) -> QueryMode:
    query = normalize_query(raw)
    if len(query) > 1 and query[0] == query[-1] and query[0] in QUOTE_CHARS:
        return QueryMode.PHRASE
    if BOOLEAN_PATTERN.search(query):
        return QueryMode.BOOLEAN
    return QueryMode.PLAIN


def strip_phrase_quotes(raw: str) -> str:
    """Return the lowercased phrase without its surrounding quotes."""
    return normalize_query(normalize_query(raw).strip(QUOTE_CHARS)).lower()


def phrase_score(entry: IndexedItem, phrase: str, scores: Mapping[str, float]) -> float:
    """Sum the per-field scores of every field containing ``phrase`` literally."""
    if not phrase:
        return 0.0
    return sum(weight for field_name, weight in scores.items() if phrase in entry.field_text.get(field_name, ""))


# Boolean expression tree


@dataclass(frozen=True)
class Term:
    """Operand: true when every analyzed term is present."""

    terms: tuple[str, ...]


@dataclass(frozen=True)
class Not:
    operand: Node


@dataclass(frozen=True)
class And:
    left: Node
    right: Node


@dataclass(frozen=True)
class Or:
    left: Node
    right: Node


Node = Term | Not | And | Or

_OPERATORS = frozenset({"AND", "OR", "NOT"})


def _combine(kind: type[And] | type[Or], left: Node | None, right: Node | None) -> Node | None:
    if left is None:
        return right
    if right is None:
        return left
    return kind(left, right)


class BooleanParser:
    """Recursive-descent parser over whitespace-separated query words."""

    def __init__(self, analyzer: TermAnalyzer) -> None:
        self.analyzer = analyzer
        self._tokens: list[str] = []
        self._pos = 0

    def parse(self, query: str) -> Node | None:
        self._tokens = normalize_query(query).split(" ") if query and query.strip() else []
        self._pos = 0
        return self._parse_or()

    def _peek(self) -> str | None:
        if self._pos >= len(self._tokens):
            return None
        token = self._tokens[self._pos]
        upper = token.upper()
        return upper if upper in _OPERATORS else token

    def _at_end(self) -> bool:
        return self._pos >= len(self._tokens)

    def _parse_or(self) -> Node | None:
        left = self._parse_and()
        while self._peek() == "OR":
            self._pos += 1
            left = _combine(Or, left, self._parse_and())
        return left

    def _parse_and(self) -> Node | None:
        left = self._parse_not()
        while not self._at_end() and self._peek() != "OR":
            if self._peek() == "AND":
                self._pos += 1
                continue
            left = _combine(And, left, self._parse_not())
        return left

    def _parse_not(self) -> Node | None:
        token = self._peek()
        if token is None or token in ("AND", "OR"):
            return None
        self._pos += 1
        if token == "NOT":
            operand = self._parse_not()
            return Not(operand) if operand is not None else None
        terms = tuple(self.analyzer.unique_terms(token))
        return Term(terms) if terms else None


def parse_boolean(query: str, analyzer: TermAnalyzer | None = None) -> Node | None:
    """Parse ``query`` into an expression tree, or None when nothing is left."""
    return BooleanParser(analyzer or TermAnalyzer()).parse(query)


def evaluate(node: Node | None, terms: frozenset[str] | set[str]) -> bool:
    """Evaluate the expression against an item's term set."""
    if node is None:
        return False
    if isinstance(node, Term):
        return all(term in terms for term in node.terms)
    if isinstance(node, Not):
        return not evaluate(node.operand, terms)
    if isinstance(node, And):
        return evaluate(node.left, terms) and evaluate(node.right, terms)
    return evaluate(node.left, terms) or evaluate(node.right, terms)


def positive_terms(node: Node | None, *, negated: bool = False) -> list[str]:
    """Return operand terms that are not under a negation, in query order."""
    if node is None:
        return []
    if isinstance(node, Term):
        return [] if negated else list(node.terms)
    if isinstance(node, Not):
        return positive_terms(node.operand, negated=not negated)
    collected = positive_terms(node.left, negated=negated) + positive_terms(node.right, negated=negated)
    return list(dict.fromkeys(collected))
