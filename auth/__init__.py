"""Authentication and authorization modules.

Only the leaf modules are re-exported here; import the service, router and
middleware from their own modules (they depend on storage, which depends on
auth.types).
"""

from auth.exceptions import (
    AuthError,
    InvalidInputError,
    InvalidCredentialsError,
    EmailAlreadyRegisteredError,
    GoogleAccountInUseError,
    InvalidTokenError,
    OTPInvalidError,
    OTPAttemptsExceededError,
    RateLimitedError,
    UserNotFoundError,
)
from auth.types import (
    AuthMethod,
    User,
    UserProfile,
    Session,
    OTPEntry,
    GoogleIdentity,
    AuthenticatedUser,
)
from auth.config import AuthConfig
