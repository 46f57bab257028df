"""Security event logging for the auth audit trail.

Every event is written to the 'notetaker.security' logger. When PostgreSQL is
the active backend, events are also appended to the security_events table.
"""

import logging
from enum import Enum
from typing import Any
from uuid import UUID

import psycopg2
from psycopg2.extras import Json

from clients.postgres_client import PostgresClient
from utils.timezone import now_utc

logger = logging.getLogger("notetaker.security")


class SecurityEvent(Enum):
    """Auth security event types."""

    SIGNUP_SUCCEEDED = "signup_succeeded"
    SIGNUP_REJECTED = "signup_rejected"
    LOGIN_SUCCEEDED = "login_succeeded"
    LOGIN_FAILED = "login_failed"
    OTP_REQUESTED = "otp_requested"
    OTP_DELIVERY_FAILED = "otp_delivery_failed"
    OTP_VERIFIED = "otp_verified"
    OTP_FAILED = "otp_failed"
    OTP_ATTEMPTS_EXCEEDED = "otp_attempts_exceeded"
    GOOGLE_LOGIN_SUCCEEDED = "google_login_succeeded"
    GOOGLE_LOGIN_FAILED = "google_login_failed"
    GOOGLE_ACCOUNT_LINKED = "google_account_linked"
    USER_CREATED = "user_created"
    RATE_LIMITED = "rate_limited"


class SecurityLogger:
    """Append-only security event logger."""

    def __init__(self, postgres: PostgresClient | None = None):
        self._db = postgres

    def log(
        self,
        event: SecurityEvent,
        email: str | None = None,
        user_id: UUID | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Record a security event."""
        logger.info(
            "%s email=%s user_id=%s details=%s",
            event.value,
            email,
            user_id,
            details or {},
        )

        if self._db is None:
            return

        # The audit row is best effort; the auth flow has already committed
        try:
            self._db.execute_returning(
                """INSERT INTO security_events
                   (event_type, email, user_id, details, created_at)
                   VALUES (%s, %s, %s, %s, %s)
                   RETURNING id""",
                (
                    event.value,
                    email,
                    str(user_id) if user_id else None,
                    Json(details) if details else None,
                    now_utc(),
                ),
            )
        except psycopg2.Error:
            logger.exception(f"Failed to persist security event {event.value}")
