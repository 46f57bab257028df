"""In-memory store backend.

Used when PostgreSQL is unreachable at startup. Data lives for the life of
the process only. Each store guards its own dicts with a re-entrant lock;
records are copied on the way in and out so callers never share state.
"""

import threading
from collections import Counter
from datetime import datetime
from uuid import UUID

from auth.exceptions import EmailAlreadyRegisteredError, GoogleAccountInUseError
from auth.types import OTPEntry, User
from core.models import Note, NoteFilters, TagCount
from storage.base import NOTE_LIST_LIMIT, TAG_LIST_LIMIT, NoteStore, OTPStore, UserStore
from utils.timezone import now_utc


class InMemoryUserStore(UserStore):
    def __init__(self):
        self._lock = threading.RLock()
        self._users: dict[UUID, User] = {}
        self._ids_by_email: dict[str, UUID] = {}
        self._ids_by_google_id: dict[str, UUID] = {}

    def create(self, user: User) -> User:
        email = user.email.lower()
        with self._lock:
            if email in self._ids_by_email:
                raise EmailAlreadyRegisteredError("User already exists with this email")
            if user.google_id and user.google_id in self._ids_by_google_id:
                raise GoogleAccountInUseError("Google account is already linked to another user")
            stored = user.model_copy(update={"email": email})
            self._users[stored.id] = stored
            self._ids_by_email[email] = stored.id
            if stored.google_id:
                self._ids_by_google_id[stored.google_id] = stored.id
            return stored.model_copy()

    def get_by_id(self, user_id: UUID) -> User | None:
        with self._lock:
            user = self._users.get(user_id)
            return user.model_copy() if user else None

    def get_by_email(self, email: str) -> User | None:
        with self._lock:
            user_id = self._ids_by_email.get(email.lower())
            return self.get_by_id(user_id) if user_id else None

    def find_by_email_or_google_id(self, email: str, google_id: str) -> User | None:
        with self._lock:
            user = self.get_by_email(email)
            if user is not None:
                return user
            user_id = self._ids_by_google_id.get(google_id)
            return self.get_by_id(user_id) if user_id else None

    def link_google_account(self, user_id: UUID, google_id: str, avatar: str | None) -> User:
        with self._lock:
            current = self._users.get(user_id)
            if current is None:
                raise ValueError(f"User {user_id} not found")
            owner_id = self._ids_by_google_id.get(google_id)
            if owner_id is not None and owner_id != user_id:
                raise GoogleAccountInUseError("Google account is already linked to another user")
            updated = current.model_copy(update={
                "google_id": google_id,
                "avatar": current.avatar or avatar,
                "updated_at": now_utc(),
            })
            self._users[user_id] = updated
            self._ids_by_google_id[google_id] = user_id
            return updated.model_copy()


class InMemoryOTPStore(OTPStore):
    def __init__(self):
        self._lock = threading.RLock()
        self._entries: dict[UUID, OTPEntry] = {}

    def replace(self, entry: OTPEntry) -> None:
        email = entry.email.lower()
        with self._lock:
            for entry_id in [k for k, v in self._entries.items() if v.email == email]:
                del self._entries[entry_id]
            self._entries[entry.id] = entry.model_copy(update={"email": email})

    def get_active(self, email: str, now: datetime) -> OTPEntry | None:
        email = email.lower()
        with self._lock:
            candidates = [
                e for e in self._entries.values()
                if e.email == email and not e.used and not e.is_expired(now)
            ]
            if not candidates:
                return None
            return max(candidates, key=lambda e: e.created_at).model_copy()

    def increment_attempts(self, entry_id: UUID) -> int:
        with self._lock:
            entry = self._entries.get(entry_id)
            if entry is None:
                return 0
            entry.attempts += 1
            return entry.attempts

    def mark_used(self, entry_id: UUID) -> bool:
        with self._lock:
            entry = self._entries.get(entry_id)
            if entry is None or entry.used:
                return False
            entry.used = True
            entry.attempts += 1
            return True

    def delete_expired(self, now: datetime) -> int:
        with self._lock:
            expired = [k for k, v in self._entries.items() if v.is_expired(now)]
            for entry_id in expired:
                del self._entries[entry_id]
            return len(expired)


class InMemoryNoteStore(NoteStore):
    def __init__(self):
        self._lock = threading.RLock()
        self._notes: dict[UUID, Note] = {}

    def create(self, note: Note) -> Note:
        with self._lock:
            self._notes[note.id] = note.model_copy(deep=True)
            return note.model_copy(deep=True)

    def get(self, owner_id: UUID, note_id: UUID) -> Note | None:
        with self._lock:
            note = self._notes.get(note_id)
            if note is None or note.user_id != owner_id:
                return None
            return note.model_copy(deep=True)

    def list_for_owner(self, owner_id: UUID, filters: NoteFilters, limit: int = NOTE_LIST_LIMIT) -> list[Note]:
        with self._lock:
            matching = [
                n.model_copy(deep=True) for n in self._notes.values()
                if n.user_id == owner_id and n.matches(filters)
            ]
        # Two stable sorts: newest first, then pinned ahead of unpinned
        matching.sort(key=lambda n: n.created_at, reverse=True)
        matching.sort(key=lambda n: not n.is_pinned)
        return matching[:limit]

    def update(self, note: Note) -> Note | None:
        with self._lock:
            current = self._notes.get(note.id)
            if current is None or current.user_id != note.user_id:
                return None
            self._notes[note.id] = note.model_copy(deep=True)
            return note.model_copy(deep=True)

    def delete(self, owner_id: UUID, note_id: UUID) -> bool:
        with self._lock:
            note = self._notes.get(note_id)
            if note is None or note.user_id != owner_id:
                return False
            del self._notes[note_id]
            return True

    def tag_counts(self, owner_id: UUID, limit: int = TAG_LIST_LIMIT) -> list[TagCount]:
        with self._lock:
            counts = Counter(
                tag
                for note in self._notes.values() if note.user_id == owner_id
                for tag in note.tags
            )
        ranked = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
        return [TagCount(name=name, count=count) for name, count in ranked[:limit]]
