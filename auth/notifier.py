"""User-facing notifications for the auth flows.

OTP delivery is best effort: when the gateway is unconfigured or fails, the
code is written to the 'notetaker.otp' logger so it is never silently lost.
Welcome emails are fire-and-forget on a small worker pool.
"""

import logging
from concurrent.futures import ThreadPoolExecutor

from auth.config import AuthConfig
from clients.email_client import EmailGatewayClient, EmailGatewayError

logger = logging.getLogger(__name__)
otp_logger = logging.getLogger("notetaker.otp")


class Notifier:
    """Sends OTP and welcome emails through an optional gateway client."""

    def __init__(
        self,
        config: AuthConfig,
        email_client: EmailGatewayClient | None = None,
        max_workers: int = 2,
    ):
        self._config = config
        self._email_client = email_client
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="notifier"
        )

    def send_otp(self, email: str, code: str) -> bool:
        """
        Deliver an OTP code.

        Returns True if the gateway accepted it, False if it was written to
        the diagnostic log instead.
        """
        if self._email_client is None:
            otp_logger.warning(
                "Email gateway not configured. OTP for %s: %s (expires in %d minutes)",
                email,
                code,
                self._config.otp_expiry_minutes,
            )
            return False

        try:
            self._email_client.send_otp_code(
                email=email,
                code=code,
                expires_minutes=self._config.otp_expiry_minutes,
                app_name=self._config.app_name,
            )
        except EmailGatewayError as e:
            otp_logger.warning(
                "OTP email to %s failed (%s). OTP for %s: %s", email, e, email, code
            )
            return False

        return True

    def send_welcome(self, email: str, name: str) -> None:
        """Queue the welcome email. Never raises; failures are only logged."""
        if self._email_client is None:
            logger.info(f"Welcome email not sent to {email} - no email gateway configured")
            return

        self._executor.submit(self._deliver_welcome, email, name)

    def _deliver_welcome(self, email: str, name: str) -> None:
        try:
            self._email_client.send_welcome(
                email=email,
                name=name,
                app_url=f"{self._config.app_base_url}/dashboard",
                app_name=self._config.app_name,
            )
        except Exception:
            logger.exception(f"Welcome email to {email} failed")

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting work and, by default, wait for queued emails."""
        self._executor.shutdown(wait=wait)
