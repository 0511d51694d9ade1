"""
Google ID token verification: the upstream boundary for Google sign-in
"""
import asyncio
import logging
from typing import Any, Dict

from google.auth import exceptions as google_exceptions
from google.auth.transport import requests as google_requests
from google.oauth2 import id_token

from ...core.errors import InternalFailureError, UnauthorizedError

logger = logging.getLogger(__name__)


class GoogleIdTokenVerifier:
    """
    Verifies Google ID tokens (signature, issuer, audience, expiry) with google-auth.

    Returns the raw claim bag; identity fields are resolved by
    extract_external_claims.
    """

    PROVIDER = "google"

    def __init__(self, client_id: str):
        self.client_id = client_id
        self._request = google_requests.Request()

    async def verify(self, token: str) -> Dict[str, Any]:
        """
        Verify the token.

        Raises:
            InternalFailureError: If no Google client id is configured
            UnauthorizedError: If verification fails
        """
        if not self.client_id:
            raise InternalFailureError(
                "Google authentication is not configured. Set GOOGLE_CLIENT_ID environment variable."
            )

        try:
            claims = await asyncio.to_thread(
                id_token.verify_oauth2_token, token, self._request, self.client_id
            )
        except (ValueError, google_exceptions.GoogleAuthError) as e:
            logger.warning(f"[Auth][Google] ID token verification failed: {e}")
            raise UnauthorizedError("Invalid Google ID token.")

        if claims.get("aud") != self.client_id:
            raise UnauthorizedError("Token audience mismatch.")

        # An unverified Google email must not link to an existing account
        if claims.get("email") and not claims.get("email_verified", False):
            claims = {k: v for k, v in claims.items() if k != "email"}

        return claims
