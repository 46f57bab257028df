"""Google ID token verification (frontend Google Sign-In)."""

import logging

from google.auth import exceptions as google_exceptions
from google.auth.transport import requests as google_requests
from google.oauth2 import id_token

from auth.types import GoogleIdentity

logger = logging.getLogger(__name__)

_VALID_ISSUERS = ("accounts.google.com", "https://accounts.google.com")


class GoogleIdentityVerifier:
    """Verify ID tokens issued by Google for this application's client ID."""

    def __init__(self, client_id: str | None):
        self.client_id = client_id
        self._request = google_requests.Request()

    def verify(self, token: str) -> GoogleIdentity | None:
        """
        Verify a Google ID token.

        Returns the asserted identity, or None if the token is invalid, was
        issued for another audience, or no client ID is configured.
        """
        if not self.client_id:
            logger.error("[GoogleAuth] Google client ID not configured")
            return None

        try:
            idinfo = id_token.verify_oauth2_token(token, self._request, self.client_id)
        except ValueError as e:
            logger.warning(f"[GoogleAuth] Invalid ID token: {e}")
            return None
        except google_exceptions.GoogleAuthError as e:
            logger.error(f"[GoogleAuth] Token verification error: {e}")
            return None

        if idinfo.get("iss") not in _VALID_ISSUERS:
            logger.warning("[GoogleAuth] Invalid token issuer")
            return None

        return GoogleIdentity(
            google_id=idinfo["sub"],
            email=idinfo.get("email", ""),
            name=idinfo.get("name", ""),
            avatar=idinfo.get("picture"),
            email_verified=bool(idinfo.get("email_verified", False)),
        )
