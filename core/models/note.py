"""Note domain models."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

DEFAULT_COLOR = "#ffffff"
COLOR_PATTERN = r"^#[0-9A-Fa-f]{6}$"

TITLE_MAX_LENGTH = 200
CONTENT_MAX_LENGTH = 50000


def normalize_tags(tags: list[str]) -> list[str]:
    """Trim and lowercase tags, dropping empties and duplicates (first seen wins)."""
    seen: dict[str, None] = {}
    for tag in tags:
        cleaned = tag.strip().lower()
        if cleaned:
            seen.setdefault(cleaned, None)
    return list(seen)


class _NoteFields(BaseModel):
    """Field rules shared by create and update payloads."""

    @field_validator("title", "content", mode="before", check_fields=False)
    @classmethod
    def strip_text(cls, value):
        if value is None:
            raise ValueError("must not be null")
        if isinstance(value, str):
            return value.strip()
        return value

    @field_validator("tags", mode="before", check_fields=False)
    @classmethod
    def null_tags(cls, value):
        return [] if value is None else value

    @field_validator("tags", check_fields=False)
    @classmethod
    def clean_tags(cls, value: list[str]) -> list[str]:
        return normalize_tags(value)


class NoteCreate(_NoteFields):
    """Data required to create a note."""

    title: str = Field(..., min_length=1, max_length=TITLE_MAX_LENGTH)
    content: str = Field(..., min_length=1, max_length=CONTENT_MAX_LENGTH)
    color: str = Field(DEFAULT_COLOR, pattern=COLOR_PATTERN)
    tags: list[str] = Field(default_factory=list)

    @field_validator("color", mode="before")
    @classmethod
    def default_color(cls, value):
        # Absent, null and empty all mean "use the default"
        return value or DEFAULT_COLOR


class NoteUpdate(_NoteFields):
    """
    Partial note update. Only fields present in the payload are applied.

    Use model_dump(exclude_unset=True) to get the changes.
    """

    title: str | None = Field(None, min_length=1, max_length=TITLE_MAX_LENGTH)
    content: str | None = Field(None, min_length=1, max_length=CONTENT_MAX_LENGTH)
    color: str | None = Field(None, pattern=COLOR_PATTERN)
    tags: list[str] | None = None
    is_pinned: bool | None = None
    is_archived: bool | None = None

    # Present-but-null is an error; omit the field to leave it unchanged
    @field_validator("color", "is_pinned", "is_archived", mode="before")
    @classmethod
    def reject_null(cls, value):
        if value is None:
            raise ValueError("must not be null")
        return value


class NoteFilters(BaseModel):
    """Query filters for listing notes."""

    search: str | None = None
    tag: str | None = None
    pinned: bool = False
    archived: bool = False

    @field_validator("search", "tag", mode="before")
    @classmethod
    def blank_is_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value


class Note(BaseModel):
    """Full note entity as stored."""

    id: UUID
    user_id: UUID
    title: str
    content: str
    color: str = DEFAULT_COLOR
    tags: list[str] = Field(default_factory=list)
    is_pinned: bool = False
    is_archived: bool = False
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}

    def matches(self, filters: NoteFilters) -> bool:
        """Whether this note belongs in a listing with the given filters."""
        if self.is_archived != filters.archived:
            return False
        if filters.pinned and not self.is_pinned:
            return False
        if filters.tag is not None and filters.tag not in self.tags:
            return False
        if filters.search is not None:
            needle = filters.search.lower()
            if needle not in self.title.lower() and needle not in self.content.lower():
                return False
        return True


class NoteList(BaseModel):
    """A page of notes plus the number returned."""

    notes: list[Note]
    total: int


class TagCount(BaseModel):
    """How many of a user's notes carry a tag."""

    name: str
    count: int
