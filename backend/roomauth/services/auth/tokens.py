"""
Session token issuance and validation (HS256 JWT)
"""
import calendar
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import JWTError, jwt

from ...core.clock import Clock, utcnow
from ...core.config import JwtSettings
from ...core.errors import InvalidTokenError
from ...models import Identity

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionClaims:
    subject: str
    email: Optional[str]
    name: str
    issued_at: Optional[datetime]
    expires_at: Optional[datetime]
    phone: Optional[str] = None
    auth_method: Optional[str] = None


def _timestamp(value: datetime) -> int:
    return calendar.timegm(value.utctimetuple())


def _from_timestamp(value: int) -> datetime:
    return datetime.fromtimestamp(value, timezone.utc).replace(tzinfo=None)


class TokenIssuer:
    """
    Creates and validates access tokens for an Identity.

    Built once from JwtSettings; holds no mutable state.
    """

    def __init__(self, settings: JwtSettings, clock: Clock = utcnow):
        if not settings.signing_key:
            raise ValueError("JWT signing key is not configured")
        self.settings = settings
        self._clock = clock

    def create_session(self, identity: Identity, extra_claims: Optional[Dict[str, Any]] = None) -> str:
        """
        Create a signed access token for the identity.

        Args:
            identity: The reconciled identity (sub = identity.id)
            extra_claims: Optional additional claims, e.g. phone and auth_method

        Returns:
            Encoded JWT string
        """
        issued_at = self._clock().replace(microsecond=0)
        expires_at = issued_at + timedelta(minutes=self.settings.access_token_minutes)

        payload: Dict[str, Any] = {
            "sub": identity.id,
            "email": identity.email or "",
            "name": identity.display_name or "",
            "iss": self.settings.issuer,
            "aud": self.settings.audience,
            "iat": _timestamp(issued_at),
            "nbf": _timestamp(issued_at),
            "exp": _timestamp(expires_at),
        }
        if extra_claims:
            payload.update({k: v for k, v in extra_claims.items() if v is not None})

        return jwt.encode(payload, self.settings.signing_key, algorithm=self.settings.algorithm)

    def validate_and_decode(self, token: str) -> SessionClaims:
        """
        Validate signature, issuer, audience and lifetime.

        Raises:
            InvalidTokenError: for any malformed, expired or foreign token
        """
        if not token:
            raise InvalidTokenError()

        try:
            payload = jwt.decode(
                token,
                self.settings.signing_key,
                algorithms=[self.settings.algorithm],
                audience=self.settings.audience,
                issuer=self.settings.issuer,
                options={"leeway": self.settings.clock_skew_seconds},
            )
        except JWTError as e:
            logger.info(f"[Auth] Token rejected: {e}")
            raise InvalidTokenError()

        subject = payload.get("sub")
        if not subject:
            raise InvalidTokenError()

        return SessionClaims(
            subject=subject,
            email=payload.get("email") or None,
            name=payload.get("name", ""),
            issued_at=_from_timestamp(payload["iat"]) if "iat" in payload else None,
            expires_at=_from_timestamp(payload["exp"]) if "exp" in payload else None,
            phone=payload.get("phone"),
            auth_method=payload.get("auth_method"),
        )
