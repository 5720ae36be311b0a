"""Domain model - CMS items and their enriched relationships.

Items arrive already parsed (front matter plus rendered body) from an item
repository. The search core only reads them:
- Value objects are immutable (frozen=True)
- Tags, categories and authors are either plain strings or enriched records
- A single `label_of` function turns any of those into a comparable string
"""

from collections.abc import Mapping
from datetime import date as date_type
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ItemStatus(str, Enum):
    """Publication status of an item."""

    PUBLISHED = "published"
    DRAFT = "draft"
    PRIVATE = "private"


class EnrichedRecord(BaseModel):
    """Relationship record loaded from a sibling metadata file.

    Carries the identifying fields plus any extra front matter keys.
    """

    model_config = ConfigDict(frozen=True, extra="allow")

    name: str | None = None
    slug: str | None = None
    title: str | None = None

    def label(self) -> str:
        return label_of(self)


Label = str | EnrichedRecord


def label_of(value: Any) -> str:
    """Normalize a tag, category or author to a comparable string.

    Prefers ``name``, then ``slug``, then ``title``, then ``str(value)``.
    Plain mappings are read the same way as enriched records.
    """
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, EnrichedRecord):
        candidates = (value.name, value.slug, value.title)
    elif isinstance(value, Mapping):
        candidates = (value.get("name"), value.get("slug"), value.get("title"))
    else:
        return str(value)
    for candidate in candidates:
        if candidate:
            return str(candidate)
    return ""


def _coerce_label(value: Any) -> Label:
    if isinstance(value, (str, EnrichedRecord)):
        return value
    if isinstance(value, Mapping):
        return EnrichedRecord(**{str(key): val for key, val in value.items()})
    return str(value)


class Item(BaseModel):
    """Immutable CMS item as produced by the parsing pipeline."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    slug: Annotated[str, Field(min_length=1, description="Identifier, unique within a collection")]
    title: str = ""
    author: Label | None = None
    tags: tuple[Label, ...] = ()
    categories: tuple[Label, ...] = ()
    excerpt: str = ""
    body: str = ""
    date: datetime | None = None
    featured: bool = False
    status: ItemStatus = ItemStatus.PUBLISHED
    custom: dict[str, Any] = Field(default_factory=dict)

    @field_validator("tags", "categories", mode="before")
    @classmethod
    def _coerce_labels(cls, value: Any) -> Any:
        if value is None:
            return ()
        if isinstance(value, (str, EnrichedRecord, Mapping)):
            value = [value]
        return tuple(_coerce_label(entry) for entry in value)

    @field_validator("author", mode="before")
    @classmethod
    def _coerce_author(cls, value: Any) -> Any:
        if value is None or value == "":
            return None
        return _coerce_label(value)

    @field_validator("title", "excerpt", "body", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("date", mode="before")
    @classmethod
    def _coerce_date(cls, value: Any) -> Any:
        if isinstance(value, date_type) and not isinstance(value, datetime):
            return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
        return value

    @field_validator("date")
    @classmethod
    def _assume_utc(cls, value: datetime | None) -> datetime | None:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    def meta(self, key: str, default: Any = None) -> Any:
        """Read a custom front matter value."""
        return self.custom.get(key, default)

    @property
    def author_name(self) -> str:
        return label_of(self.author)

    @property
    def tag_names(self) -> list[str]:
        return [label_of(tag) for tag in self.tags]

    @property
    def category_names(self) -> list[str]:
        return [label_of(category) for category in self.categories]
