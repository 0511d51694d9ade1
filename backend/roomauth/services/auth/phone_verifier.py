"""
Third-party phone verification providers.

A provider turns a client-held token into a verified (uid, phone) pair. The
phone is proven by the provider, not by our own OTP ledger.
"""
import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass

from google.auth import exceptions as google_exceptions
from google.auth.transport import requests as google_requests
from google.oauth2 import id_token

from ...core.config import Settings
from ...core.errors import UnauthorizedError
from ...utils.phone import get_phone_last4

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VerifiedPhone:
    uid: str
    phone: str


class PhoneVerifier(ABC):
    """Abstract base class for phone verification providers"""

    @abstractmethod
    async def verify(self, token: str) -> VerifiedPhone:
        """
        Verify a provider token.

        Raises:
            UnauthorizedError: If the token is invalid or carries no phone number
        """
        pass


class GoogleFirebasePhoneVerifier(PhoneVerifier):
    """Verifies Firebase Authentication ID tokens issued after phone sign-in"""

    def __init__(self, project_id: str):
        if not project_id:
            raise ValueError("FIREBASE_PROJECT_ID not configured for firebase phone provider")
        self.project_id = project_id
        self._request = google_requests.Request()

    async def verify(self, token: str) -> VerifiedPhone:
        try:
            # Fetches Google signing certs; blocking
            claims = await asyncio.to_thread(
                id_token.verify_firebase_token, token, self._request, self.project_id
            )
        except (ValueError, google_exceptions.GoogleAuthError) as e:
            logger.warning(f"[PhoneAuth] Firebase token verification failed: {e}")
            raise UnauthorizedError("Invalid phone verification token.")

        phone = (claims or {}).get("phone_number")
        uid = (claims or {}).get("user_id") or (claims or {}).get("sub")
        if not phone or not uid:
            raise UnauthorizedError("Token does not carry a verified phone number.")

        logger.info(f"[PhoneAuth] Firebase token verified for ***{get_phone_last4(phone)}")
        return VerifiedPhone(uid=uid, phone=phone)


class SimulatedPhoneVerifier(PhoneVerifier):
    """
    Dev/test provider accepting tokens of the form ``simulated:{uid}:{phone}``.

    Refused in production by startup validation.
    """

    PREFIX = "simulated:"

    async def verify(self, token: str) -> VerifiedPhone:
        if not token or not token.lower().startswith(self.PREFIX):
            raise UnauthorizedError("Invalid phone verification token.")

        parts = token.split(":", 2)
        if len(parts) != 3 or not parts[1].strip() or not parts[2].strip():
            raise UnauthorizedError("Invalid phone verification token.")

        logger.info(f"[PhoneAuth][Simulated] Token accepted for ***{get_phone_last4(parts[2])}")
        return VerifiedPhone(uid=parts[1].strip(), phone=parts[2].strip())


def build_phone_verifier(settings: Settings) -> PhoneVerifier:
    provider = settings.external.phone_provider.lower()

    if provider == "firebase":
        return GoogleFirebasePhoneVerifier(settings.external.firebase_project_id)
    if provider == "simulated":
        if not settings.is_local:
            logger.warning(f"[PhoneAuth] Simulated phone provider enabled in ENV={settings.ENV}")
        return SimulatedPhoneVerifier()

    raise ValueError(f"Unknown phone provider: {provider}. Must be one of: firebase, simulated")
