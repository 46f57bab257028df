"""Persistence: store contracts and their PostgreSQL / in-memory backends."""

from storage.base import UserStore, OTPStore, NoteStore, NOTE_LIST_LIMIT, TAG_LIST_LIMIT
from storage.memory import InMemoryUserStore, InMemoryOTPStore, InMemoryNoteStore
from storage.postgres import PostgresUserStore, PostgresOTPStore, PostgresNoteStore
from storage.sweeper import OTPSweeper
from storage.factory import Stores, build_stores, in_memory_stores, postgres_stores
