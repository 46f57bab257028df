"""
Note service for a user's personal notes.

Every operation takes the owner's ID and never sees other users' notes.
Missing and foreign notes are reported identically (NoteNotFoundError).
"""

import logging
from uuid import UUID, uuid4

from core.exceptions import NoteNotFoundError
from core.models import Note, NoteCreate, NoteFilters, NoteList, NoteUpdate, TagCount
from storage.base import NOTE_LIST_LIMIT, TAG_LIST_LIMIT, NoteStore
from utils.timezone import now_utc

logger = logging.getLogger(__name__)


class NoteService:
    """Service for note operations."""

    def __init__(self, store: NoteStore):
        self.store = store

    def list_notes(self, owner_id: UUID, filters: NoteFilters | None = None) -> NoteList:
        """
        List the owner's notes.

        Args:
            owner_id: Owner's user ID
            filters: Search, tag, pinned and archived filters. Archived and
                active notes are never mixed in one listing.

        Returns:
            At most 100 notes, pinned first then newest first
        """
        notes = self.store.list_for_owner(owner_id, filters or NoteFilters(), limit=NOTE_LIST_LIMIT)
        return NoteList(notes=notes, total=len(notes))

    def create(self, owner_id: UUID, data: NoteCreate) -> Note:
        """
        Create a new note.

        Args:
            owner_id: Owner's user ID
            data: Validated note fields

        Returns:
            Created note (unpinned, unarchived)
        """
        now = now_utc()
        note = self.store.create(
            Note(
                id=uuid4(),
                user_id=owner_id,
                title=data.title,
                content=data.content,
                color=data.color,
                tags=data.tags,
                is_pinned=False,
                is_archived=False,
                created_at=now,
                updated_at=now,
            )
        )
        logger.info(f"Created note {note.id} for user {owner_id}")
        return note

    def get(self, owner_id: UUID, note_id: UUID) -> Note:
        """
        Get note by ID.

        Raises:
            NoteNotFoundError: If the note does not exist or is not the owner's.
        """
        note = self.store.get(owner_id, note_id)
        if note is None:
            raise NoteNotFoundError(note_id)
        return note

    def update(self, owner_id: UUID, note_id: UUID, data: NoteUpdate) -> Note:
        """
        Apply a partial update. Only fields present in data are changed.

        Archiving a note through an update also unpins it.

        Raises:
            NoteNotFoundError: If the note does not exist or is not the owner's.
        """
        changes = data.model_dump(exclude_unset=True)
        if changes.get("is_archived"):
            changes["is_pinned"] = False
        return self._save(owner_id, note_id, changes)

    def toggle_pin(self, owner_id: UUID, note_id: UUID) -> Note:
        """Flip the pinned flag. Archive state is untouched."""
        note = self.get(owner_id, note_id)
        return self._save(owner_id, note_id, {"is_pinned": not note.is_pinned})

    def toggle_archive(self, owner_id: UUID, note_id: UUID) -> Note:
        """Flip the archived flag. Archiving unpins; unarchiving leaves pin as is."""
        note = self.get(owner_id, note_id)
        changes = {"is_archived": not note.is_archived}
        if changes["is_archived"]:
            changes["is_pinned"] = False
        return self._save(owner_id, note_id, changes)

    def delete(self, owner_id: UUID, note_id: UUID) -> None:
        """
        Permanently delete a note.

        Raises:
            NoteNotFoundError: If the note does not exist or is not the owner's.
        """
        if not self.store.delete(owner_id, note_id):
            raise NoteNotFoundError(note_id)
        logger.info(f"Deleted note {note_id} for user {owner_id}")

    def tags(self, owner_id: UUID) -> list[TagCount]:
        """Tag usage across all the owner's notes (archived included), most used first."""
        return self.store.tag_counts(owner_id, limit=TAG_LIST_LIMIT)

    def _save(self, owner_id: UUID, note_id: UUID, changes: dict) -> Note:
        current = self.get(owner_id, note_id)
        updated = self.store.update(
            current.model_copy(update={**changes, "updated_at": now_utc()})
        )
        if updated is None:
            raise NoteNotFoundError(note_id)
        return updated
