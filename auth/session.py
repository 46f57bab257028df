"""Session token issuing and validation.

Sessions are stateless HS256 JWTs carrying the user ID in 'sub'. There is no
server-side session record, so a token stays valid until its 'exp' claim
passes; expiry is the only way to invalidate it.
"""

import logging
from datetime import timedelta
from uuid import UUID

from jose import JWTError, jwt

from auth.config import AuthConfig
from auth.types import Session
from auth.exceptions import InvalidTokenError
from utils.timezone import now_utc, from_timestamp

logger = logging.getLogger(__name__)


class SessionManager:
    """Mints and validates signed session tokens."""

    _DECODE_OPTIONS = {"require_exp": True, "require_sub": True, "require_iat": True}

    def __init__(self, secret: str, config: AuthConfig):
        if not secret:
            raise ValueError("secret is required")
        self._secret = secret
        self._config = config

    def create_session(self, user_id: UUID) -> Session:
        """Issue a token for user_id that expires session_expiry_days from now."""
        now = now_utc()
        issued_at = int(now.timestamp())
        expires_at = int((now + timedelta(days=self._config.session_expiry_days)).timestamp())

        token = jwt.encode(
            {"sub": str(user_id), "iat": issued_at, "exp": expires_at},
            self._secret,
            algorithm=self._config.jwt_algorithm,
        )

        return Session(
            token=token,
            user_id=user_id,
            issued_at=from_timestamp(issued_at),
            expires_at=from_timestamp(expires_at),
        )

    def validate_session(self, token: str) -> Session:
        """Verify signature and expiry and return the session.

        Raises:
            InvalidTokenError: If the signature is bad, the token has expired,
                or 'sub' is not a UUID.
        """
        try:
            claims = jwt.decode(
                token,
                self._secret,
                algorithms=[self._config.jwt_algorithm],
                options=self._DECODE_OPTIONS,
            )
        except JWTError as e:
            logger.debug(f"Session token rejected: {e}")
            raise InvalidTokenError("Invalid or expired token") from e

        try:
            user_id = UUID(claims["sub"])
        except (TypeError, ValueError):
            raise InvalidTokenError("Invalid token format")

        return Session(
            token=token,
            user_id=user_id,
            issued_at=from_timestamp(claims["iat"]),
            expires_at=from_timestamp(claims["exp"]),
        )
