"""Canonical entity schemas.

Every strategy, whatever it scraped, hands back instances of these models.
They are frozen: a DetailRecord is built by copy-merging fetched fields onto
an existing CatalogEntry, never by mutating it.

Validation rules shared by all entities:
    - titles are whitespace-normalized and must not be empty
    - every URL exposed to the host must be absolute http(s); an unusable
      optional image link is discarded rather than failing the entity
    - ids are never empty
"""

from datetime import datetime
from enum import Enum
from typing import Any
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, field_validator


class MangaState(str, Enum):
    """Canonical lifecycle state of a catalog entry."""

    ONGOING = "ongoing"
    FINISHED = "finished"
    ABANDONED = "abandoned"


class SortOrder(str, Enum):
    """Listing order requested by the host."""

    UPDATED = "updated"
    POPULARITY = "popularity"
    ALPHABETICAL = "alphabetical"
    NEWEST = "newest"


def _clean_text(value: Any) -> str:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        value = str(value)
    if not isinstance(value, str):
        raise ValueError(f"Expected text, got {type(value).__name__}")

    cleaned = " ".join(value.split())
    if not cleaned:
        raise ValueError("Text cannot be empty")
    return cleaned


def _absolute_url(value: str) -> str:
    parsed = urlparse(value)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValueError(f"URL must be absolute, got '{value}'")
    return value


def _optional_url(value: str | None) -> str | None:
    """Optional links that are unusable are dropped, never the entity."""
    if value is None:
        return None
    try:
        return _absolute_url(value)
    except ValueError:
        return None


class _Entity(BaseModel):
    model_config = ConfigDict(frozen=True)


class ListFilter(_Entity):
    """Listing filter supplied by the host.

    Attributes:
        query: Free-text search query, if any.
        tags: Tag keys to restrict the listing to.
        states: Lifecycle states to restrict the listing to.
    """

    query: str | None = None
    tags: tuple[str, ...] = ()
    states: tuple[MangaState, ...] = ()


class CatalogEntry(_Entity):
    """One item of a catalog listing.

    Attributes:
        id: Stable identifier (source slug/id, or canonical relative URL).
        title: Display title.
        url: Absolute URL of the entry's page.
        cover_url: Absolute cover image URL.
        state: Lifecycle state when the source exposes one.
    """

    id: str = Field(..., min_length=1)
    title: str
    url: str
    cover_url: str | None = None
    state: MangaState | None = None

    @field_validator("id", mode="before")
    @classmethod
    def stringify_id(cls, value: Any) -> Any:
        """Accept numeric identifiers from structured sources."""
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("title", mode="before")
    @classmethod
    def clean_title(cls, value: Any) -> str:
        return _clean_text(value)

    @field_validator("url")
    @classmethod
    def validate_url(cls, value: str) -> str:
        return _absolute_url(value)

    @field_validator("cover_url")
    @classmethod
    def validate_cover_url(cls, value: str | None) -> str | None:
        return _optional_url(value)


class ChapterRecord(_Entity):
    """One chapter of a detail record.

    Attributes:
        id: Stable identifier (source id, or canonical relative URL).
        title: Chapter title.
        number: Non-negative chapter number.
        volume: Volume number, 0 when unknown.
        url: Absolute URL of the chapter reader page.
        upload_date: Publication time when the source exposes one.
    """

    id: str = Field(..., min_length=1)
    title: str
    number: float = Field(..., ge=0.0)
    volume: int = Field(default=0, ge=0)
    url: str
    upload_date: datetime | None = None

    @field_validator("title", mode="before")
    @classmethod
    def clean_title(cls, value: Any) -> str:
        return _clean_text(value)

    @field_validator("url")
    @classmethod
    def validate_url(cls, value: str) -> str:
        return _absolute_url(value)


class DetailRecord(CatalogEntry):
    """A catalog entry enriched with description, authors and chapters.

    Chapters are ordered newest-first.
    """

    description: str | None = None
    authors: tuple[str, ...] = ()
    chapters: tuple[ChapterRecord, ...] = ()

    @classmethod
    def merge(cls, entry: CatalogEntry, **fetched: Any) -> "DetailRecord":
        """Copy-merge freshly fetched fields onto an existing entry.

        Fetched values that are None (or empty collections) leave the
        entry's value in place. ``id`` and ``url`` always come from the
        entry so the record stays addressable by the host.

        Args:
            entry: The catalog entry being enriched. Left untouched.
            **fetched: Newly resolved field values.

        Returns:
            A new DetailRecord.
        """
        data = entry.model_dump()
        for key, value in fetched.items():
            if key in ("id", "url"):
                continue
            if value is None or value == () or value == []:
                continue
            data[key] = value
        return cls(**data)

    @property
    def has_content(self) -> bool:
        """Whether the fetch produced anything beyond the catalog fields."""
        return bool(self.chapters) or bool(self.description)


class PageRecord(_Entity):
    """One image of a chapter."""

    id: str = Field(..., min_length=1)
    url: str
    preview: str | None = None

    @field_validator("url")
    @classmethod
    def validate_url(cls, value: str) -> str:
        return _absolute_url(value)

    @field_validator("preview")
    @classmethod
    def validate_preview(cls, value: str | None) -> str | None:
        return _optional_url(value)


class Tag(_Entity):
    """A genre/tag exposed by the source. ``key`` is unique per source."""

    key: str = Field(..., min_length=1)
    title: str

    @field_validator("key", mode="before")
    @classmethod
    def stringify_key(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("title", mode="before")
    @classmethod
    def clean_title(cls, value: Any) -> str:
        return _clean_text(value)
