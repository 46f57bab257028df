"""Backend selection at startup."""

import logging
from dataclasses import dataclass

import psycopg2

from clients.postgres_client import PostgresClient
from storage.base import NoteStore, OTPStore, UserStore
from storage.memory import InMemoryNoteStore, InMemoryOTPStore, InMemoryUserStore
from storage.postgres import PostgresNoteStore, PostgresOTPStore, PostgresUserStore

logger = logging.getLogger(__name__)


@dataclass
class Stores:
    """The three stores of one backend, plus its client if it has one."""

    users: UserStore
    otps: OTPStore
    notes: NoteStore
    postgres: PostgresClient | None = None

    @property
    def durable(self) -> bool:
        return self.postgres is not None


def in_memory_stores() -> Stores:
    """Fresh, empty in-memory stores."""
    return Stores(
        users=InMemoryUserStore(),
        otps=InMemoryOTPStore(),
        notes=InMemoryNoteStore(),
    )


def postgres_stores(postgres: PostgresClient) -> Stores:
    """Stores backed by an already-connected PostgresClient."""
    return Stores(
        users=PostgresUserStore(postgres),
        otps=PostgresOTPStore(postgres),
        notes=PostgresNoteStore(postgres),
        postgres=postgres,
    )


def build_stores(database_url: str | None) -> Stores:
    """
    Connect to PostgreSQL, or fall back to in-memory stores.

    The fallback loses all data on restart and is meant for development.
    """
    if not database_url:
        logger.warning("No database URL configured - using in-memory storage")
        return in_memory_stores()

    try:
        postgres = PostgresClient(database_url)
        postgres.ping()
    except psycopg2.Error as e:
        logger.error(f"PostgreSQL connection failed: {e}")
        logger.warning("Falling back to in-memory storage; data will not survive a restart")
        return in_memory_stores()

    logger.info("PostgreSQL connected")
    return postgres_stores(postgres)
