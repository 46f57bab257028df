"""Typed exceptions for auth failures."""


class AuthError(Exception):
    """Base class for authentication/authorization errors."""


class InvalidInputError(AuthError):
    """Required field missing or malformed (e.g. password too short)."""


class InvalidCredentialsError(AuthError):
    """
    Email/password pair rejected.

    Raised with the same message whether the account is missing, has no
    password, or the password is wrong, so responses never reveal which
    emails are registered.
    """

    MESSAGE = "Invalid email or password"

    def __init__(self):
        super().__init__(self.MESSAGE)


class EmailAlreadyRegisteredError(AuthError):
    """An account already exists for this email (any letter case)."""


class GoogleAccountInUseError(AuthError):
    """The Google identity is already linked to a different account."""


class InvalidTokenError(AuthError):
    """
    Token is invalid, expired, or malformed.

    Used for both session tokens and Google ID tokens.
    """


class OTPInvalidError(AuthError):
    """No unused, unexpired code matches the email and code supplied."""


class OTPAttemptsExceededError(AuthError):
    """The active code has reached its verification attempt ceiling."""


class RateLimitedError(AuthError):
    """Too many attempts. Client should wait before retrying."""

    def __init__(self, retry_after_seconds: int):
        self.retry_after_seconds = retry_after_seconds
        super().__init__(f"Rate limited. Retry after {retry_after_seconds} seconds.")


class UserNotFoundError(AuthError):
    """
    No user with the requested ID.

    Only raised for already-authenticated lookups (GET /auth/me); login
    flows never surface it.
    """
