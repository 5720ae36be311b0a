"""Domain models for search results and options.

Following Cosmic Python principles:
- Value Objects are immutable (frozen=True)
- No infrastructure dependencies

A `SearchResult` is built once per search call and never updated.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from cms_search.domain.model import Item


class QueryMode(str, Enum):
    """Strategy a query was evaluated with."""

    PHRASE = "phrase"
    BOOLEAN = "boolean"
    PLAIN = "plain"
    FUZZY = "fuzzy"


class ScoredItem(BaseModel):
    """Value object pairing an item with its relevance score and snippet."""

    model_config = ConfigDict(frozen=True)

    item: Item
    score: float
    snippet: str = ""
    matched_terms: tuple[str, ...] = ()


class PageInfo(BaseModel):
    """Pagination metadata for a page of results."""

    model_config = ConfigDict(frozen=True)

    current_page: int
    per_page: int
    total_items: int
    last_page: int

    @property
    def has_more(self) -> bool:
        return self.current_page < self.last_page


class SearchOptions(BaseModel):
    """Options recognized by the search entry points.

    `limit` truncates the ranked list; `page`/`per_page` paginate it. The two
    are mutually exclusive.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    fuzzy: bool = False
    filters: dict[str, Any] = Field(default_factory=dict)
    page: Annotated[int | None, Field(ge=1)] = None
    per_page: Annotated[int | None, Field(ge=1)] = None
    limit: Annotated[int | None, Field(ge=0)] = None

    @model_validator(mode="after")
    def validate_limit_or_page(self) -> "SearchOptions":
        if self.limit is not None and self.paginated:
            raise ValueError("limit cannot be combined with page or per_page")
        return self

    @classmethod
    def coerce(cls, options: "SearchOptions | dict[str, Any] | None") -> "SearchOptions":
        """Accept an options model, a plain dict, or None."""
        if options is None:
            return cls()
        if isinstance(options, cls):
            return options
        return cls.model_validate(options)

    @property
    def paginated(self) -> bool:
        return self.page is not None or self.per_page is not None


class SearchResult(BaseModel):
    """Value object for a complete search response.

    `total` counts every match before truncation or pagination; `hits`
    holds only the returned slice.
    """

    model_config = ConfigDict(frozen=True)

    hits: tuple[ScoredItem, ...] = ()
    total: int = 0
    query: str = ""
    mode: QueryMode = QueryMode.PLAIN
    duration: float = 0.0
    filters: dict[str, Any] = Field(default_factory=dict)
    page: PageInfo | None = None

    @property
    def items(self) -> list[Item]:
        return [hit.item for hit in self.hits]

    def has_results(self) -> bool:
        return bool(self.hits)

    def first(self) -> Item | None:
        return self.hits[0].item if self.hits else None

    def count(self) -> int:
        return len(self.hits)

    def metrics(self) -> dict[str, Any]:
        """Summary numbers for logging and analytics."""
        return {
            "query": self.query,
            "mode": self.mode.value,
            "total_results": self.total,
            "returned": self.count(),
            "duration_ms": round(self.duration * 1000, 2),
            "has_filters": bool(self.filters),
        }

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "query": self.query,
            "mode": self.mode.value,
            "total": self.total,
            "duration": self.duration,
            "filters": dict(self.filters),
            "results": [
                {
                    "slug": hit.item.slug,
                    "title": hit.item.title,
                    "score": hit.score,
                    "snippet": hit.snippet,
                    "matched_terms": list(hit.matched_terms),
                }
                for hit in self.hits
            ],
        }
        if self.page is not None:
            payload["page"] = self.page.model_dump()
        return payload


class SearchEventKind(str, Enum):
    STARTED = "search_start"
    COMPLETED = "search_complete"


class SearchEvent(BaseModel):
    """Analytics record emitted around every search."""

    model_config = ConfigDict(frozen=True)

    kind: SearchEventKind
    query: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    mode: QueryMode | None = None
    results: int | None = None
    duration: float | None = None
