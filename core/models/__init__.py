"""Core domain models."""

from core.models.note import (
    Note,
    NoteCreate,
    NoteUpdate,
    NoteFilters,
    NoteList,
    TagCount,
    DEFAULT_COLOR,
    normalize_tags,
)

__all__ = [
    "Note", "NoteCreate", "NoteUpdate", "NoteFilters", "NoteList", "TagCount",
    "DEFAULT_COLOR", "normalize_tags",
]
