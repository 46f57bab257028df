"""Periodic removal of expired one-time codes."""

import logging
import threading

from storage.base import OTPStore
from utils.timezone import now_utc

logger = logging.getLogger(__name__)


class OTPSweeper:
    """
    Runs OTPStore.delete_expired on a background thread.

    Started and stopped by the application lifespan. A failed sweep is
    logged and retried on the next tick. Racing a verification is harmless:
    verification applies its own expiry check.
    """

    def __init__(self, otp_store: OTPStore, interval_seconds: float = 60):
        self._otp_store = otp_store
        self._interval = interval_seconds
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start sweeping. Calling start on a running sweeper is a no-op."""
        if self.running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name="otp-sweeper", daemon=True)
        self._thread.start()
        logger.info(f"OTP sweeper started (every {self._interval}s)")

    def stop(self, timeout: float | None = 5) -> None:
        """Signal the thread to exit and wait for it."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        logger.info("OTP sweeper stopped")

    def sweep(self) -> int:
        """Delete expired codes once. Returns how many were removed."""
        deleted = self._otp_store.delete_expired(now_utc())
        if deleted:
            logger.debug(f"Swept {deleted} expired OTP codes")
        return deleted

    def _run(self) -> None:
        while not self._stop_event.wait(self._interval):
            try:
                self.sweep()
            except Exception:
                logger.exception("OTP sweep failed")
