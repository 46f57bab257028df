"""Tests for AuthService - core auth orchestration."""

from datetime import datetime, timedelta, timezone
from unittest.mock import Mock
from uuid import uuid4

import pytest

from auth.google import GoogleIdentityVerifier
from auth.passwords import verify_password
from auth.rate_limiter import RateLimiter
from auth.security_logger import SecurityLogger
from auth.service import AuthService
from auth.types import AuthMethod, AuthenticatedUser, GoogleIdentity, User
from auth.exceptions import (
    EmailAlreadyRegisteredError,
    InvalidCredentialsError,
    InvalidInputError,
    InvalidTokenError,
    OTPAttemptsExceededError,
    OTPInvalidError,
    RateLimitedError,
    UserNotFoundError,
)

T0 = datetime(2025, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock(monkeypatch):
    """Controllable clock for the service's view of 'now'."""

    class Clock:
        now = T0

        def advance(self, **kwargs):
            self.now = self.now + timedelta(**kwargs)

    c = Clock()
    monkeypatch.setattr("auth.service.now_utc", lambda: c.now)
    return c


@pytest.fixture
def rate_limiter():
    limiter = Mock(spec=RateLimiter)
    limiter.record_request.return_value = 4
    return limiter


@pytest.fixture
def limited_service(config, user_store, otp_store, session_manager, mock_notifier, rate_limiter):
    """AuthService with an OTP rate limiter attached."""
    return AuthService(
        config=config,
        users=user_store,
        otps=otp_store,
        session_manager=session_manager,
        notifier=mock_notifier,
        google_verifier=Mock(spec=GoogleIdentityVerifier),
        security_logger=SecurityLogger(),
        rate_limiter=rate_limiter,
    )


def _sent_code(mock_notifier) -> str:
    """The code handed to the notifier by the most recent send_otp."""
    return mock_notifier.send_otp.call_args.args[1]


def _existing_user(user_store, email, **fields) -> User:
    now = T0
    defaults = dict(
        id=uuid4(),
        email=email,
        name="Existing",
        auth_method=AuthMethod.PASSWORD,
        is_email_verified=True,
        created_at=now,
        updated_at=now,
    )
    defaults.update(fields)
    return user_store.create(User(**defaults))


class TestSignup:
    """Test password signup."""

    def test_creates_verified_password_user(self, auth_service, config):
        """Signup stores a hashed password and auto-verifies the email."""
        result = auth_service.signup("Alice@Example.com", "Alice", "secret1")

        assert isinstance(result, AuthenticatedUser)
        assert result.user.email == "alice@example.com"
        assert result.user.auth_method == AuthMethod.PASSWORD
        assert result.user.is_email_verified is True
        assert result.user.password_hash != "secret1"
        assert verify_password("secret1", result.user.password_hash)

    def test_returns_session_for_new_user(self, auth_service, session_manager):
        """The token identifies the new user."""
        result = auth_service.signup("bob@example.com", "Bob", "secret1")

        assert session_manager.validate_session(result.session.token).user_id == result.user.id

    def test_sends_welcome_email(self, auth_service, mock_notifier):
        """Welcome email is queued for the new account."""
        auth_service.signup("carol@example.com", "Carol", "secret1")

        mock_notifier.send_welcome.assert_called_once_with("carol@example.com", "Carol")

    def test_duplicate_email_any_case_rejected(self, auth_service):
        """Email uniqueness is case-insensitive."""
        auth_service.signup("a@x.com", "A", "secret1")

        with pytest.raises(EmailAlreadyRegisteredError):
            auth_service.signup("A@X.COM", "Other", "secret2")

    def test_short_password_rejected(self, auth_service):
        """Passwords shorter than six characters are rejected."""
        with pytest.raises(InvalidInputError):
            auth_service.signup("a@x.com", "A", "12345")

    def test_six_character_password_accepted(self, auth_service):
        """Exactly the minimum length is fine."""
        result = auth_service.signup("a@x.com", "A", "123456")

        assert result.user.email == "a@x.com"

    @pytest.mark.parametrize("email,name,password", [
        ("", "A", "secret1"),
        ("a@x.com", "", "secret1"),
        ("a@x.com", "A", ""),
    ])
    def test_missing_field_rejected(self, auth_service, email, name, password):
        with pytest.raises(InvalidInputError):
            auth_service.signup(email, name, password)


class TestLogin:
    """Test password login."""

    def test_correct_password_succeeds(self, auth_service):
        signed_up = auth_service.signup("a@x.com", "A", "secret1")

        result = auth_service.login("A@x.com", "secret1")

        assert result.user.id == signed_up.user.id

    def test_wrong_password_fails(self, auth_service):
        auth_service.signup("a@x.com", "A", "secret1")

        with pytest.raises(InvalidCredentialsError) as exc_info:
            auth_service.login("a@x.com", "wrong-password")

        assert str(exc_info.value) == "Invalid email or password"

    def test_unknown_email_fails_with_same_message(self, auth_service):
        with pytest.raises(InvalidCredentialsError) as exc_info:
            auth_service.login("nobody@x.com", "secret1")

        assert str(exc_info.value) == "Invalid email or password"

    def test_account_without_password_fails_with_same_message(self, auth_service, user_store):
        """OTP- and Google-created accounts cannot log in with a password."""
        _existing_user(user_store, "otp@x.com", auth_method=AuthMethod.OTP)

        with pytest.raises(InvalidCredentialsError) as exc_info:
            auth_service.login("otp@x.com", "anything")

        assert str(exc_info.value) == "Invalid email or password"


class TestSendOTP:
    """Test one-time code issuance."""

    def test_issues_six_digit_code(self, auth_service, otp_store, mock_notifier, clock):
        auth_service.send_otp("A@X.com")

        code = _sent_code(mock_notifier)
        assert len(code) == 6 and code.isdigit()
        entry = otp_store.get_active("a@x.com", clock.now)
        assert entry.code == code
        assert entry.attempts == 0
        assert entry.used is False

    def test_code_expires_after_ten_minutes(self, auth_service, otp_store, clock):
        auth_service.send_otp("a@x.com")

        entry = otp_store.get_active("a@x.com", clock.now)
        assert entry.expires_at == T0 + timedelta(minutes=10)

    def test_delivery_failure_is_not_an_error(self, auth_service, mock_notifier):
        """Caller sees success even when the email could not be sent."""
        mock_notifier.send_otp.return_value = False

        auth_service.send_otp("a@x.com")

        mock_notifier.send_otp.assert_called_once()

    def test_new_code_invalidates_previous(self, auth_service, mock_notifier, clock, monkeypatch):
        codes = iter([111111, 222222])
        monkeypatch.setattr("auth.service.secrets.randbelow", lambda n: next(codes))

        auth_service.send_otp("a@x.com")
        auth_service.send_otp("a@x.com")

        with pytest.raises(OTPInvalidError):
            auth_service.verify_otp("a@x.com", "111111")
        assert auth_service.verify_otp("a@x.com", "222222").user.email == "a@x.com"

    def test_leading_zeros_kept(self, auth_service, mock_notifier, monkeypatch):
        monkeypatch.setattr("auth.service.secrets.randbelow", lambda n: 42)

        auth_service.send_otp("a@x.com")

        assert _sent_code(mock_notifier) == "000042"

    def test_rate_limiter_consulted(self, limited_service, rate_limiter):
        limited_service.send_otp("a@x.com")

        rate_limiter.record_request.assert_called_once_with("a@x.com")

    def test_remaining_requests_recorded(self, limited_service, caplog):
        with caplog.at_level("INFO", logger="notetaker.security"):
            limited_service.send_otp("a@x.com")

        assert "otp_requested" in caplog.text
        assert "'remaining_requests': 4" in caplog.text

    def test_rate_limited_request_stores_nothing(
        self, limited_service, rate_limiter, otp_store, mock_notifier
    ):
        rate_limiter.record_request.side_effect = RateLimitedError(retry_after_seconds=60)

        with pytest.raises(RateLimitedError):
            limited_service.send_otp("a@x.com")

        mock_notifier.send_otp.assert_not_called()
        assert otp_store.get_active("a@x.com", T0) is None


class TestVerifyOTP:
    """Test one-time code verification."""

    def test_creates_user_from_email_local_part(self, auth_service, mock_notifier, clock):
        auth_service.send_otp("jane.doe@x.com")

        result = auth_service.verify_otp("jane.doe@x.com", _sent_code(mock_notifier))

        assert result.user.name == "jane.doe"
        assert result.user.auth_method == AuthMethod.OTP
        assert result.user.is_email_verified is True
        assert result.user.password_hash is None

    def test_existing_user_signed_in(self, auth_service, user_store, mock_notifier, clock):
        existing = _existing_user(user_store, "a@x.com")
        auth_service.send_otp("a@x.com")

        result = auth_service.verify_otp("A@X.com", _sent_code(mock_notifier))

        assert result.user.id == existing.id
        assert result.user.auth_method == AuthMethod.PASSWORD

    def test_valid_one_second_before_expiry(self, auth_service, mock_notifier, clock):
        auth_service.send_otp("a@x.com")
        clock.advance(minutes=10, seconds=-1)

        result = auth_service.verify_otp("a@x.com", _sent_code(mock_notifier))

        assert result.user.email == "a@x.com"

    def test_invalid_one_second_after_expiry(self, auth_service, mock_notifier, clock):
        auth_service.send_otp("a@x.com")
        clock.advance(minutes=10, seconds=1)

        with pytest.raises(OTPInvalidError):
            auth_service.verify_otp("a@x.com", _sent_code(mock_notifier))

    def test_code_consumed_only_once(self, auth_service, mock_notifier, clock):
        auth_service.send_otp("a@x.com")
        code = _sent_code(mock_notifier)
        auth_service.verify_otp("a@x.com", code)

        with pytest.raises(OTPInvalidError):
            auth_service.verify_otp("a@x.com", code)

    def test_marks_used_and_counts_attempt(self, auth_service, otp_store, mock_notifier, clock):
        auth_service.send_otp("a@x.com")
        entry = otp_store.get_active("a@x.com", clock.now)

        auth_service.verify_otp("a@x.com", entry.code)

        assert otp_store.get_active("a@x.com", clock.now) is None
        assert otp_store._entries[entry.id].used is True
        assert otp_store._entries[entry.id].attempts == 1

    def test_wrong_code_counts_attempt(self, auth_service, otp_store, mock_notifier, clock):
        auth_service.send_otp("a@x.com")
        code = _sent_code(mock_notifier)
        wrong = "000000" if code != "000000" else "111111"

        with pytest.raises(OTPInvalidError):
            auth_service.verify_otp("a@x.com", wrong)

        assert otp_store.get_active("a@x.com", clock.now).attempts == 1

    def test_five_wrong_then_correct_is_too_many_attempts(self, auth_service, mock_notifier, clock):
        auth_service.send_otp("a@x.com")
        code = _sent_code(mock_notifier)
        wrong = "000000" if code != "000000" else "111111"

        for _ in range(5):
            with pytest.raises(OTPInvalidError):
                auth_service.verify_otp("a@x.com", wrong)

        with pytest.raises(OTPAttemptsExceededError):
            auth_service.verify_otp("a@x.com", code)

    def test_no_code_issued(self, auth_service, clock):
        with pytest.raises(OTPInvalidError):
            auth_service.verify_otp("a@x.com", "123456")

    def test_missing_code_rejected(self, auth_service):
        with pytest.raises(InvalidInputError):
            auth_service.verify_otp("a@x.com", "")

    def test_success_resets_rate_limit(self, limited_service, rate_limiter, mock_notifier, clock):
        limited_service.send_otp("a@x.com")

        limited_service.verify_otp("a@x.com", _sent_code(mock_notifier))

        rate_limiter.clear.assert_called_once_with("a@x.com")


class TestGoogleLogin:
    """Test Google ID token login."""

    def _identity(self, **overrides) -> GoogleIdentity:
        values = dict(
            google_id="google-123",
            email="g@x.com",
            name="Gee",
            avatar="https://img.example.com/g.png",
            email_verified=True,
        )
        values.update(overrides)
        return GoogleIdentity(**values)

    def test_rejected_token(self, auth_service, mock_google_verifier):
        mock_google_verifier.verify.return_value = None

        with pytest.raises(InvalidTokenError):
            auth_service.google_login("bad-token")

    def test_unverified_email_rejected(self, auth_service, mock_google_verifier, user_store):
        mock_google_verifier.verify.return_value = self._identity(email_verified=False)

        with pytest.raises(InvalidTokenError):
            auth_service.google_login("token")

        assert user_store.get_by_email("g@x.com") is None

    def test_creates_google_user(self, auth_service, mock_google_verifier, mock_notifier):
        mock_google_verifier.verify.return_value = self._identity()

        result = auth_service.google_login("token")

        assert result.user.auth_method == AuthMethod.GOOGLE
        assert result.user.google_id == "google-123"
        assert result.user.avatar == "https://img.example.com/g.png"
        assert result.user.is_email_verified is True
        mock_notifier.send_welcome.assert_called_once_with("g@x.com", "Gee")

    def test_links_existing_password_account(
        self, auth_service, mock_google_verifier, mock_notifier, user_store
    ):
        """Same email: link in place, keep password and existing avatar."""
        existing = _existing_user(
            user_store,
            "g@x.com",
            password_hash="$2b$04$existinghash",
            avatar="https://img.example.com/mine.png",
        )
        mock_google_verifier.verify.return_value = self._identity()

        result = auth_service.google_login("token")

        assert result.user.id == existing.id
        assert result.user.google_id == "google-123"
        assert result.user.avatar == "https://img.example.com/mine.png"
        assert result.user.password_hash == "$2b$04$existinghash"
        assert result.user.auth_method == AuthMethod.PASSWORD
        mock_notifier.send_welcome.assert_not_called()

    def test_link_fills_missing_avatar(self, auth_service, mock_google_verifier, user_store):
        _existing_user(user_store, "g@x.com")
        mock_google_verifier.verify.return_value = self._identity()

        result = auth_service.google_login("token")

        assert result.user.avatar == "https://img.example.com/g.png"

    def test_finds_user_by_google_id(self, auth_service, mock_google_verifier, user_store):
        """A linked account is found even if the Google email changed."""
        existing = _existing_user(
            user_store, "old@x.com", auth_method=AuthMethod.GOOGLE, google_id="google-123"
        )
        mock_google_verifier.verify.return_value = self._identity(email="new@x.com")

        result = auth_service.google_login("token")

        assert result.user.id == existing.id

    def test_concurrent_google_signup_returns_winner(
        self, auth_service, mock_google_verifier, user_store, monkeypatch
    ):
        """Another request linked this Google ID between lookup and insert."""
        existing = _existing_user(
            user_store, "old@x.com", auth_method=AuthMethod.GOOGLE, google_id="google-123"
        )
        real_find = user_store.find_by_email_or_google_id
        lookups = []

        def find_after_race(email, google_id):
            lookups.append(email)
            return None if len(lookups) == 1 else real_find(email, google_id)

        monkeypatch.setattr(user_store, "find_by_email_or_google_id", find_after_race)
        mock_google_verifier.verify.return_value = self._identity(email="new@x.com")

        result = auth_service.google_login("token")

        assert result.user.id == existing.id
        assert user_store.get_by_email("new@x.com") is None


class TestSessions:
    """Test get_user and authenticate."""

    def test_authenticate_returns_user_id(self, auth_service):
        result = auth_service.signup("a@x.com", "A", "secret1")

        assert auth_service.authenticate(result.session.token) == result.user.id

    def test_authenticate_rejects_garbage(self, auth_service):
        with pytest.raises(InvalidTokenError):
            auth_service.authenticate("not-a-token")

    def test_get_user(self, auth_service):
        result = auth_service.signup("a@x.com", "A", "secret1")

        assert auth_service.get_user(result.user.id).email == "a@x.com"

    def test_get_unknown_user(self, auth_service):
        with pytest.raises(UserNotFoundError):
            auth_service.get_user(uuid4())
