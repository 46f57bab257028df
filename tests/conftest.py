"""Shared test fixtures for NoteTaker test suite."""

import os
from unittest.mock import Mock

import pytest
from uuid import UUID
from pathlib import Path

from dotenv import load_dotenv
from fastapi.testclient import TestClient

# Load .env file BEFORE any other imports that might use env vars
# override=True ensures .env takes precedence over shell env vars
load_dotenv(Path(__file__).parent.parent / ".env", override=True)

# Reset vault client singleton to pick up env vars
import clients.vault_client as vault_module
vault_module._vault_client_instance = None
vault_module._secret_cache.clear()

from app import create_app
from auth.config import AuthConfig
from auth.google import GoogleIdentityVerifier
from auth.notifier import Notifier
from auth.security_logger import SecurityLogger
from auth.service import AuthService
from auth.session import SessionManager
from core.services.note_service import NoteService
from storage.memory import InMemoryNoteStore, InMemoryOTPStore, InMemoryUserStore
from utils.request_context import user_context, clear_current_user_id


# =============================================================================
# TEST USER CONSTANTS
# =============================================================================

# Primary test user - use for single-user tests
TEST_USER_ID = UUID("00000000-0000-0000-0000-000000000001")
TEST_USER_EMAIL = "testuser@test.local"

# Secondary test user - use for isolation tests
TEST_USER_B_ID = UUID("00000000-0000-0000-0000-000000000002")
TEST_USER_B_EMAIL = "testuser-b@test.local"


# =============================================================================
# USER CONTEXT FIXTURES
# =============================================================================


@pytest.fixture(autouse=True)
def reset_user_context():
    """Ensure clean user context before and after each test."""
    clear_current_user_id()
    yield
    clear_current_user_id()


@pytest.fixture
def test_user_id() -> UUID:
    """The primary test user's ID."""
    return TEST_USER_ID


@pytest.fixture
def test_user_b_id() -> UUID:
    """The secondary test user's ID (for isolation tests)."""
    return TEST_USER_B_ID


@pytest.fixture
def as_test_user(test_user_id):
    """Context manager that sets primary test user context."""
    with user_context(test_user_id):
        yield test_user_id


# =============================================================================
# CONFIG / IN-MEMORY FIXTURES
# =============================================================================


@pytest.fixture
def config():
    """Test config with the cheapest bcrypt cost."""
    return AuthConfig(
        bcrypt_rounds=4,
        app_base_url="https://test.example.com",
    )


@pytest.fixture
def session_manager(config):
    """SessionManager signing with a fixed test secret."""
    return SessionManager("test-secret-for-session-tokens-only", config)


@pytest.fixture
def user_store():
    return InMemoryUserStore()


@pytest.fixture
def otp_store():
    return InMemoryOTPStore()


@pytest.fixture
def note_store():
    return InMemoryNoteStore()


# =============================================================================
# SERVICE / APP FIXTURES
# =============================================================================


@pytest.fixture
def mock_notifier():
    """Mock notifier - no emails sent in tests."""
    mock = Mock(spec=Notifier)
    mock.send_otp.return_value = True
    return mock


@pytest.fixture
def mock_google_verifier():
    return Mock(spec=GoogleIdentityVerifier)


@pytest.fixture
def auth_service(config, user_store, otp_store, session_manager, mock_notifier, mock_google_verifier):
    """AuthService over in-memory stores with mocked delivery and Google."""
    return AuthService(
        config=config,
        users=user_store,
        otps=otp_store,
        session_manager=session_manager,
        notifier=mock_notifier,
        google_verifier=mock_google_verifier,
        security_logger=SecurityLogger(),
    )


@pytest.fixture
def note_service(note_store):
    return NoteService(note_store)


@pytest.fixture
def app(auth_service, note_service, session_manager):
    """The full application over in-memory stores."""
    return create_app(
        auth_service=auth_service,
        note_service=note_service,
        session_manager=session_manager,
    )


@pytest.fixture
def client(app):
    """Test client."""
    return TestClient(app)


@pytest.fixture
def signup(client):
    """Sign up a user over HTTP; returns (auth headers, user dict)."""

    def _signup(email="alice@example.com", name="Alice", password="secret1"):
        response = client.post(
            "/api/auth/signup",
            json={"email": email, "name": name, "password": password},
        )
        assert response.status_code == 201, response.text
        data = response.json()["data"]
        return {"Authorization": f"Bearer {data['token']}"}, data["user"]

    return _signup


# =============================================================================
# DATABASE FIXTURES
# =============================================================================


@pytest.fixture(scope="session")
def db():
    """Session-scoped PostgresClient. Skips when Vault is not configured."""
    if not os.getenv("VAULT_ADDR"):
        pytest.skip("VAULT_ADDR not set - PostgreSQL tests need Vault")

    from clients.postgres_client import PostgresClient
    from clients.vault_client import get_database_url

    client = PostgresClient(get_database_url())
    yield client
    client.close()


@pytest.fixture
def clean_db(db):
    """Empty every table before the test."""
    db.execute("TRUNCATE notes, otp_codes, security_events, users CASCADE")
    yield db


# =============================================================================
# VALKEY FIXTURES
# =============================================================================


@pytest.fixture(scope="session")
def valkey():
    """Session-scoped ValkeyClient. Skips when Vault is not configured."""
    if not os.getenv("VAULT_ADDR"):
        pytest.skip("VAULT_ADDR not set - Valkey tests need Vault")

    from clients.valkey_client import ValkeyClient
    from clients.vault_client import get_valkey_url

    client = ValkeyClient(get_valkey_url())
    yield client
    client.close()
