"""PostgreSQL store backend.

Tables are defined in schema.sql. Emails are stored lowercase; note queries
always filter on user_id in addition to the RLS policy on the notes table.
"""

import logging
from datetime import datetime
from uuid import UUID

from psycopg2 import errors as pg_errors

from auth.exceptions import EmailAlreadyRegisteredError, GoogleAccountInUseError
from auth.types import OTPEntry, User
from clients.postgres_client import PostgresClient
from core.models import Note, NoteFilters, TagCount
from storage.base import NOTE_LIST_LIMIT, TAG_LIST_LIMIT, NoteStore, OTPStore, UserStore
from utils.timezone import now_utc

logger = logging.getLogger(__name__)

_USER_COLUMNS = """id, email, name, password_hash, avatar, auth_method, google_id,
                   is_email_verified, created_at, updated_at"""

# Default constraint name for the UNIQUE column in schema.sql
_GOOGLE_ID_CONSTRAINT = "users_google_id_key"


def _like_pattern(text: str) -> str:
    """Escape LIKE wildcards so search text matches literally."""
    escaped = text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def _duplicate_user_error(e: pg_errors.UniqueViolation) -> Exception:
    """Name the column that collided on a users insert or update."""
    if e.diag.constraint_name == _GOOGLE_ID_CONSTRAINT:
        return GoogleAccountInUseError("Google account is already linked to another user")
    return EmailAlreadyRegisteredError("User already exists with this email")


class PostgresUserStore(UserStore):
    """Users table access."""

    def __init__(self, postgres: PostgresClient):
        self._db = postgres

    def create(self, user: User) -> User:
        try:
            rows = self._db.execute_returning(
                f"""INSERT INTO users (id, email, name, password_hash, avatar, auth_method,
                                       google_id, is_email_verified, created_at, updated_at)
                    VALUES (%s, lower(%s), %s, %s, %s, %s, %s, %s, %s, %s)
                    RETURNING {_USER_COLUMNS}""",
                (
                    user.id, user.email, user.name, user.password_hash, user.avatar,
                    user.auth_method.value, user.google_id, user.is_email_verified,
                    user.created_at, user.updated_at,
                ),
            )
        except pg_errors.UniqueViolation as e:
            raise _duplicate_user_error(e) from e
        return User.model_validate(rows[0])

    def get_by_id(self, user_id: UUID) -> User | None:
        row = self._db.execute_single(
            f"SELECT {_USER_COLUMNS} FROM users WHERE id = %s",
            (user_id,),
        )
        return User.model_validate(row) if row else None

    def get_by_email(self, email: str) -> User | None:
        row = self._db.execute_single(
            f"SELECT {_USER_COLUMNS} FROM users WHERE email = lower(%s)",
            (email,),
        )
        return User.model_validate(row) if row else None

    def find_by_email_or_google_id(self, email: str, google_id: str) -> User | None:
        row = self._db.execute_single(
            f"""SELECT {_USER_COLUMNS} FROM users
                WHERE email = lower(%s) OR google_id = %s
                ORDER BY (email = lower(%s)) DESC
                LIMIT 1""",
            (email, google_id, email),
        )
        return User.model_validate(row) if row else None

    def link_google_account(self, user_id: UUID, google_id: str, avatar: str | None) -> User:
        try:
            rows = self._db.execute_returning(
                f"""UPDATE users
                    SET google_id = %s, avatar = COALESCE(avatar, %s), updated_at = %s
                    WHERE id = %s
                    RETURNING {_USER_COLUMNS}""",
                (google_id, avatar, now_utc(), user_id),
            )
        except pg_errors.UniqueViolation as e:
            raise _duplicate_user_error(e) from e
        if not rows:
            raise ValueError(f"User {user_id} not found")
        return User.model_validate(rows[0])


class PostgresOTPStore(OTPStore):
    """otp_codes table access."""

    def __init__(self, postgres: PostgresClient):
        self._db = postgres

    def replace(self, entry: OTPEntry) -> None:
        with self._db.transaction() as cur:
            # Advisory lock serialises concurrent replaces for the same email
            cur.execute("SELECT pg_advisory_xact_lock(hashtext(lower(%s)))", (entry.email,))
            cur.execute("DELETE FROM otp_codes WHERE email = lower(%s)", (entry.email,))
            cur.execute(
                """INSERT INTO otp_codes (id, email, code, expires_at, attempts, used, created_at)
                   VALUES (%s, lower(%s), %s, %s, %s, %s, %s)""",
                (
                    entry.id, entry.email, entry.code, entry.expires_at,
                    entry.attempts, entry.used, entry.created_at,
                ),
            )

    def get_active(self, email: str, now: datetime) -> OTPEntry | None:
        row = self._db.execute_single(
            """SELECT id, email, code, expires_at, attempts, used, created_at
               FROM otp_codes
               WHERE email = lower(%s) AND used = false AND expires_at > %s
               ORDER BY created_at DESC
               LIMIT 1""",
            (email, now),
        )
        return OTPEntry.model_validate(row) if row else None

    def increment_attempts(self, entry_id: UUID) -> int:
        rows = self._db.execute_returning(
            "UPDATE otp_codes SET attempts = attempts + 1 WHERE id = %s RETURNING attempts",
            (entry_id,),
        )
        return rows[0]["attempts"] if rows else 0

    def mark_used(self, entry_id: UUID) -> bool:
        rows = self._db.execute_returning(
            """UPDATE otp_codes
               SET used = true, attempts = attempts + 1
               WHERE id = %s AND used = false
               RETURNING id""",
            (entry_id,),
        )
        return len(rows) > 0

    def delete_expired(self, now: datetime) -> int:
        rows = self._db.execute_returning(
            "DELETE FROM otp_codes WHERE expires_at <= %s RETURNING id",
            (now,),
        )
        return len(rows)


class PostgresNoteStore(NoteStore):
    """notes table access."""

    def __init__(self, postgres: PostgresClient):
        self._db = postgres

    def create(self, note: Note) -> Note:
        row = self._db.execute_returning(
            """
            INSERT INTO notes (
                id, user_id, title, content, color, tags,
                is_pinned, is_archived, created_at, updated_at
            ) VALUES (
                %s, %s, %s, %s, %s, %s,
                %s, %s, %s, %s
            )
            RETURNING *
            """,
            (
                note.id, note.user_id, note.title, note.content, note.color, note.tags,
                note.is_pinned, note.is_archived, note.created_at, note.updated_at,
            ),
        )[0]
        return Note.model_validate(row)

    def get(self, owner_id: UUID, note_id: UUID) -> Note | None:
        row = self._db.execute_single(
            "SELECT * FROM notes WHERE id = %s AND user_id = %s",
            (note_id, owner_id),
        )
        return Note.model_validate(row) if row else None

    def list_for_owner(self, owner_id: UUID, filters: NoteFilters, limit: int = NOTE_LIST_LIMIT) -> list[Note]:
        conditions = ["user_id = %s", "is_archived = %s"]
        params: list = [owner_id, filters.archived]

        if filters.pinned:
            conditions.append("is_pinned = true")

        if filters.tag is not None:
            conditions.append("%s = ANY(tags)")
            params.append(filters.tag)

        if filters.search is not None:
            pattern = _like_pattern(filters.search)
            conditions.append("(title ILIKE %s OR content ILIKE %s)")
            params.extend([pattern, pattern])

        params.append(limit)

        rows = self._db.execute(
            f"""
            SELECT * FROM notes
            WHERE {" AND ".join(conditions)}
            ORDER BY is_pinned DESC, created_at DESC
            LIMIT %s
            """,
            tuple(params),
        )
        return [Note.model_validate(row) for row in rows]

    def update(self, note: Note) -> Note | None:
        rows = self._db.execute_returning(
            """
            UPDATE notes
            SET title = %s, content = %s, color = %s, tags = %s,
                is_pinned = %s, is_archived = %s, updated_at = %s
            WHERE id = %s AND user_id = %s
            RETURNING *
            """,
            (
                note.title, note.content, note.color, note.tags,
                note.is_pinned, note.is_archived, note.updated_at,
                note.id, note.user_id,
            ),
        )
        return Note.model_validate(rows[0]) if rows else None

    def delete(self, owner_id: UUID, note_id: UUID) -> bool:
        rows = self._db.execute_returning(
            "DELETE FROM notes WHERE id = %s AND user_id = %s RETURNING id",
            (note_id, owner_id),
        )
        return len(rows) > 0

    def tag_counts(self, owner_id: UUID, limit: int = TAG_LIST_LIMIT) -> list[TagCount]:
        rows = self._db.execute(
            """
            SELECT tag AS name, COUNT(*) AS count
            FROM notes, unnest(tags) AS tag
            WHERE user_id = %s
            GROUP BY tag
            ORDER BY count DESC, tag ASC
            LIMIT %s
            """,
            (owner_id, limit),
        )
        return [TagCount(name=row["name"], count=row["count"]) for row in rows]
