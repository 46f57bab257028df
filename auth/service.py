"""Authentication service - orchestrates password, OTP and Google sign-in."""

import hmac
import logging
import secrets
from datetime import timedelta
from uuid import UUID, uuid4

from auth.config import AuthConfig
from auth.exceptions import (
    EmailAlreadyRegisteredError,
    GoogleAccountInUseError,
    InvalidCredentialsError,
    InvalidInputError,
    InvalidTokenError,
    OTPAttemptsExceededError,
    OTPInvalidError,
    RateLimitedError,
    UserNotFoundError,
)
from auth.google import GoogleIdentityVerifier
from auth.notifier import Notifier
from auth.passwords import hash_password, verify_password
from auth.rate_limiter import RateLimiter
from auth.security_logger import SecurityEvent, SecurityLogger
from auth.session import SessionManager
from auth.types import AuthenticatedUser, AuthMethod, OTPEntry, User
from storage.base import OTPStore, UserStore
from utils.timezone import now_utc

logger = logging.getLogger(__name__)


def _normalize_email(email: str | None) -> str:
    return (email or "").strip().lower()


def _name_from_email(email: str) -> str:
    """Placeholder display name: the local part of the address."""
    return email.split("@", 1)[0]


class AuthService:
    """Orchestrates every sign-in flow.

    Handles:
    - Password signup and login
    - One-time code issuance and verification (with just-in-time signup)
    - Google ID token login (with account linking by email)
    - Session issuing and validation
    """

    def __init__(
        self,
        config: AuthConfig,
        users: UserStore,
        otps: OTPStore,
        session_manager: SessionManager,
        notifier: Notifier,
        google_verifier: GoogleIdentityVerifier,
        security_logger: SecurityLogger,
        rate_limiter: RateLimiter | None = None,
    ):
        self._config = config
        self._users = users
        self._otps = otps
        self._session_manager = session_manager
        self._notifier = notifier
        self._google_verifier = google_verifier
        self._security_logger = security_logger
        self._rate_limiter = rate_limiter

    def _authenticated(self, user: User) -> AuthenticatedUser:
        return AuthenticatedUser(
            user=user,
            session=self._session_manager.create_session(user.id),
        )

    def _new_user(self, email: str, name: str, auth_method: AuthMethod, **fields) -> User:
        now = now_utc()
        return User(
            id=uuid4(),
            email=email,
            name=name,
            auth_method=auth_method,
            is_email_verified=True,
            created_at=now,
            updated_at=now,
            **fields,
        )

    def signup(self, email: str, name: str, password: str) -> AuthenticatedUser:
        """Register a password account and sign it in.

        Signup is auto-verified; there is no separate confirmation step.

        Raises:
            InvalidInputError: If a field is missing or the password is too short.
            EmailAlreadyRegisteredError: If the email is already registered.
        """
        email = _normalize_email(email)
        name = (name or "").strip()

        if not email or not name or not password:
            raise InvalidInputError("Please provide email, name, and password")

        if len(password) < self._config.min_password_length:
            raise InvalidInputError(
                f"Password must be at least {self._config.min_password_length} characters"
            )

        if self._users.get_by_email(email) is not None:
            self._security_logger.log(
                SecurityEvent.SIGNUP_REJECTED,
                email=email,
                details={"reason": "email_exists"},
            )
            raise EmailAlreadyRegisteredError("User already exists with this email")

        user = self._users.create(
            self._new_user(
                email,
                name,
                AuthMethod.PASSWORD,
                password_hash=hash_password(password, rounds=self._config.bcrypt_rounds),
            )
        )

        self._security_logger.log(SecurityEvent.SIGNUP_SUCCEEDED, email=email, user_id=user.id)
        self._notifier.send_welcome(user.email, user.name)

        return self._authenticated(user)

    def login(self, email: str, password: str) -> AuthenticatedUser:
        """Sign in with email and password.

        Raises:
            InvalidCredentialsError: Same error for unknown email, an account
                without a password, and a wrong password.
        """
        email = _normalize_email(email)
        if not email or not password:
            raise InvalidInputError("Please provide email and password")

        user = self._users.get_by_email(email)

        if user is None or not user.password_hash:
            reason = "user_not_found" if user is None else "no_password"
        elif not verify_password(password, user.password_hash):
            reason = "wrong_password"
        else:
            reason = None

        if reason is not None:
            self._security_logger.log(
                SecurityEvent.LOGIN_FAILED,
                email=email,
                user_id=user.id if user else None,
                details={"reason": reason},
            )
            raise InvalidCredentialsError()

        self._security_logger.log(SecurityEvent.LOGIN_SUCCEEDED, email=email, user_id=user.id)
        return self._authenticated(user)

    def send_otp(self, email: str) -> None:
        """Issue a fresh one-time code for email, replacing any earlier one.

        Delivery problems are never reported to the caller; the Notifier
        writes the code to the diagnostic log instead.

        Raises:
            InvalidInputError: If email is empty.
            RateLimitedError: If the email has requested too many codes.
        """
        email = _normalize_email(email)
        if not email:
            raise InvalidInputError("Email is required")

        details = None
        if self._rate_limiter is not None:
            try:
                details = {"remaining_requests": self._rate_limiter.record_request(email)}
            except RateLimitedError as e:
                self._security_logger.log(
                    SecurityEvent.RATE_LIMITED,
                    email=email,
                    details={"retry_after_seconds": e.retry_after_seconds},
                )
                raise

        now = now_utc()
        entry = OTPEntry(
            id=uuid4(),
            email=email,
            code=f"{secrets.randbelow(10**6):06d}",
            expires_at=now + timedelta(minutes=self._config.otp_expiry_minutes),
            attempts=0,
            used=False,
            created_at=now,
        )
        self._otps.replace(entry)

        self._security_logger.log(SecurityEvent.OTP_REQUESTED, email=email, details=details)

        if not self._notifier.send_otp(email, entry.code):
            self._security_logger.log(SecurityEvent.OTP_DELIVERY_FAILED, email=email)

    def verify_otp(self, email: str, code: str) -> AuthenticatedUser:
        """Consume a one-time code and sign in, creating the account if needed.

        The attempt ceiling is checked before the code is compared, so once
        it is reached even the correct code is refused. Wrong codes count
        toward the ceiling.

        Raises:
            InvalidInputError: If email or code is empty.
            OTPInvalidError: If there is no active code or it does not match.
            OTPAttemptsExceededError: If the active code is out of attempts.
        """
        email = _normalize_email(email)
        code = (code or "").strip()
        if not email or not code:
            raise InvalidInputError("Email and OTP are required")

        entry = self._otps.get_active(email, now_utc())
        if entry is None:
            self._security_logger.log(
                SecurityEvent.OTP_FAILED, email=email, details={"reason": "no_active_code"}
            )
            raise OTPInvalidError("Invalid or expired OTP")

        if entry.attempts >= self._config.otp_max_attempts:
            self._security_logger.log(SecurityEvent.OTP_ATTEMPTS_EXCEEDED, email=email)
            raise OTPAttemptsExceededError("Too many attempts. Please request a new OTP")

        if not hmac.compare_digest(entry.code.encode(), code.encode()):
            attempts = self._otps.increment_attempts(entry.id)
            self._security_logger.log(
                SecurityEvent.OTP_FAILED,
                email=email,
                details={"reason": "code_mismatch", "attempts": attempts},
            )
            raise OTPInvalidError("Invalid or expired OTP")

        if not self._otps.mark_used(entry.id):
            # A concurrent request consumed it first
            raise OTPInvalidError("Invalid or expired OTP")

        user = self._users.get_by_email(email)
        if user is None:
            user = self._create_or_fetch(self._new_user(email, _name_from_email(email), AuthMethod.OTP))
            self._security_logger.log(
                SecurityEvent.USER_CREATED, email=email, user_id=user.id, details={"via": "otp"}
            )

        if self._rate_limiter is not None:
            self._rate_limiter.clear(email)

        self._security_logger.log(SecurityEvent.OTP_VERIFIED, email=email, user_id=user.id)
        return self._authenticated(user)

    def google_login(self, token: str) -> AuthenticatedUser:
        """Sign in with a Google ID token.

        An existing account with the same email is linked to the Google
        identity rather than duplicated; its avatar is kept if it has one.

        Raises:
            InvalidTokenError: If the token does not verify or the Google
                email is unverified.
        """
        if not token:
            raise InvalidInputError("Google token is required")

        identity = self._google_verifier.verify(token)
        if identity is None or not identity.email:
            self._security_logger.log(
                SecurityEvent.GOOGLE_LOGIN_FAILED, details={"reason": "token_rejected"}
            )
            raise InvalidTokenError("Invalid Google token")

        email = _normalize_email(identity.email)
        if not identity.email_verified:
            self._security_logger.log(
                SecurityEvent.GOOGLE_LOGIN_FAILED, email=email, details={"reason": "email_unverified"}
            )
            raise InvalidTokenError("Google email not verified")

        user = self._users.find_by_email_or_google_id(email, identity.google_id)

        if user is None:
            user = self._create_or_fetch(
                self._new_user(
                    email,
                    identity.name or _name_from_email(email),
                    AuthMethod.GOOGLE,
                    google_id=identity.google_id,
                    avatar=identity.avatar,
                )
            )
            self._security_logger.log(
                SecurityEvent.USER_CREATED, email=email, user_id=user.id, details={"via": "google"}
            )
            self._notifier.send_welcome(user.email, user.name)
        elif not user.google_id:
            user = self._users.link_google_account(user.id, identity.google_id, identity.avatar)
            self._security_logger.log(SecurityEvent.GOOGLE_ACCOUNT_LINKED, email=email, user_id=user.id)

        self._security_logger.log(SecurityEvent.GOOGLE_LOGIN_SUCCEEDED, email=email, user_id=user.id)
        return self._authenticated(user)

    def _create_or_fetch(self, user: User) -> User:
        """Create user, or return the account a concurrent request just made."""
        try:
            return self._users.create(user)
        except (EmailAlreadyRegisteredError, GoogleAccountInUseError):
            if user.google_id:
                existing = self._users.find_by_email_or_google_id(user.email, user.google_id)
            else:
                existing = self._users.get_by_email(user.email)
            if existing is None:
                raise
            return existing

    def get_user(self, user_id: UUID) -> User:
        """Look up an authenticated user.

        Raises:
            UserNotFoundError: If the account does not exist.
        """
        user = self._users.get_by_id(user_id)
        if user is None:
            raise UserNotFoundError("User not found")
        return user

    def authenticate(self, token: str) -> UUID:
        """Validate a session token and return its user ID.

        Raises:
            InvalidTokenError: If the token is invalid or expired.
        """
        return self._session_manager.validate_session(token).user_id
