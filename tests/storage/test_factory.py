"""Tests for build_stores - backend selection at startup."""

from unittest.mock import Mock

import psycopg2

from clients.postgres_client import PostgresClient
from storage.factory import build_stores
from storage.memory import InMemoryNoteStore, InMemoryOTPStore, InMemoryUserStore
from storage.postgres import PostgresNoteStore, PostgresOTPStore, PostgresUserStore


class TestBuildStores:
    def test_no_url_uses_memory(self):
        stores = build_stores(None)

        assert isinstance(stores.users, InMemoryUserStore)
        assert isinstance(stores.otps, InMemoryOTPStore)
        assert isinstance(stores.notes, InMemoryNoteStore)
        assert stores.durable is False

    def test_unreachable_database_falls_back(self, monkeypatch, caplog):
        def refuse(url):
            raise psycopg2.OperationalError("connection refused")

        monkeypatch.setattr("storage.factory.PostgresClient", refuse)

        stores = build_stores("postgresql://nowhere/db")

        assert isinstance(stores.notes, InMemoryNoteStore)
        assert stores.postgres is None
        assert "in-memory" in caplog.text

    def test_reachable_database_uses_postgres(self, monkeypatch):
        client = Mock(spec=PostgresClient)
        client.ping.return_value = True
        monkeypatch.setattr("storage.factory.PostgresClient", lambda url: client)

        stores = build_stores("postgresql://db/notes")

        assert isinstance(stores.users, PostgresUserStore)
        assert isinstance(stores.otps, PostgresOTPStore)
        assert isinstance(stores.notes, PostgresNoteStore)
        assert stores.postgres is client
        assert stores.durable is True

    def test_failed_ping_falls_back(self, monkeypatch):
        client = Mock(spec=PostgresClient)
        client.ping.side_effect = psycopg2.OperationalError("server closed the connection")
        monkeypatch.setattr("storage.factory.PostgresClient", lambda url: client)

        stores = build_stores("postgresql://db/notes")

        assert isinstance(stores.users, InMemoryUserStore)
