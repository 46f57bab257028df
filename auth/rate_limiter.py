"""Per-email throttle on one-time code requests.

Fixed window kept in Valkey: the first request for an email opens a window
of rate_limit_window_minutes, and at most rate_limit_attempts requests are
accepted inside it. A successful verification closes the window early.
"""

import logging

from auth.config import AuthConfig
from auth.exceptions import RateLimitedError
from clients.valkey_client import ValkeyClient

logger = logging.getLogger(__name__)


class RateLimiter:
    """Counts code requests per email in Valkey."""

    KEY_PREFIX = "notetaker:otp-requests:"

    def __init__(self, valkey: ValkeyClient, config: AuthConfig):
        self._valkey = valkey
        self._allowance = config.rate_limit_attempts
        self._window_seconds = config.rate_limit_window_minutes * 60

    def _counter_key(self, email: str) -> str:
        return f"{self.KEY_PREFIX}{email.strip().lower()}"

    def record_request(self, email: str) -> int:
        """Count one code request and return how many remain in the window.

        Raises:
            RateLimitedError: If the window's allowance is already spent.
        """
        key = self._counter_key(email)
        count = self._valkey.incr(key)
        if count == 1:
            self._valkey.expire(key, self._window_seconds)

        if count <= self._allowance:
            return self._allowance - count

        retry_after = self._valkey.ttl(key)
        if retry_after < 0:
            # Counter without an expiry would block the email forever
            logger.warning(f"Rate limit counter {key} had no expiry; restarting window")
            self._valkey.expire(key, self._window_seconds)
            retry_after = self._window_seconds
        raise RateLimitedError(retry_after_seconds=max(retry_after, 1))

    def clear(self, email: str) -> None:
        """Drop the email's window after it proves control of the inbox."""
        self._valkey.delete(self._counter_key(email))
