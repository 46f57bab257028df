"""Store contracts for users, one-time codes, and notes.

Services depend only on these interfaces. Each backend (PostgreSQL,
in-memory) supplies one implementation of every store; the backend is
chosen once at startup by storage.factory.build_stores.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from uuid import UUID

from auth.types import OTPEntry, User
from core.models import Note, NoteFilters, TagCount

NOTE_LIST_LIMIT = 100
TAG_LIST_LIMIT = 50


class UserStore(ABC):
    """Users keyed by id and by unique lowercase email."""

    @abstractmethod
    def create(self, user: User) -> User:
        """Persist a new user.

        Raises:
            EmailAlreadyRegisteredError: If the email is already taken.
            GoogleAccountInUseError: If the Google ID belongs to another user.
        """

    @abstractmethod
    def get_by_id(self, user_id: UUID) -> User | None:
        """Find user by ID."""

    @abstractmethod
    def get_by_email(self, email: str) -> User | None:
        """Find user by email (case-insensitive)."""

    @abstractmethod
    def find_by_email_or_google_id(self, email: str, google_id: str) -> User | None:
        """Find a user matching either the email or the linked Google ID.

        An email match wins over a Google ID match.
        """

    @abstractmethod
    def link_google_account(self, user_id: UUID, google_id: str, avatar: str | None) -> User:
        """Attach a Google ID to an account, keeping any existing avatar.

        Raises:
            GoogleAccountInUseError: If the Google ID belongs to another user.
        """


class OTPStore(ABC):
    """One-time codes, at most one active per email."""

    @abstractmethod
    def replace(self, entry: OTPEntry) -> None:
        """Atomically drop every code for entry.email and store entry."""

    @abstractmethod
    def get_active(self, email: str, now: datetime) -> OTPEntry | None:
        """Return the unused, unexpired code for email, if any."""

    @abstractmethod
    def increment_attempts(self, entry_id: UUID) -> int:
        """Record a failed verification attempt. Returns the new count."""

    @abstractmethod
    def mark_used(self, entry_id: UUID) -> bool:
        """Mark a code used and count the attempt in one step.

        Returns False if the code was already used (lost a race).
        """

    @abstractmethod
    def delete_expired(self, now: datetime) -> int:
        """Delete codes whose expiry has passed, used or not. Returns count."""


class NoteStore(ABC):
    """Notes; every operation is scoped to the owning user."""

    @abstractmethod
    def create(self, note: Note) -> Note:
        """Persist a new note."""

    @abstractmethod
    def get(self, owner_id: UUID, note_id: UUID) -> Note | None:
        """Find a note by ID if it belongs to owner_id."""

    @abstractmethod
    def list_for_owner(self, owner_id: UUID, filters: NoteFilters, limit: int = NOTE_LIST_LIMIT) -> list[Note]:
        """Notes matching filters, pinned first then newest first."""

    @abstractmethod
    def update(self, note: Note) -> Note | None:
        """Write all mutable fields of note. None if it no longer exists."""

    @abstractmethod
    def delete(self, owner_id: UUID, note_id: UUID) -> bool:
        """Permanently delete. Returns False if not found for owner_id."""

    @abstractmethod
    def tag_counts(self, owner_id: UUID, limit: int = TAG_LIST_LIMIT) -> list[TagCount]:
        """Tag usage over all the owner's notes, most used first."""
