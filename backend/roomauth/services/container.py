"""
Wiring of the auth services from one Settings value.

The app factory builds a single AuthServices and keeps it on app.state; tests
build their own with fakes for the SMS sender, phone verifier or clock.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from ..core.clock import Clock, utcnow
from ..core.config import Settings
from ..core.errors import InvalidTokenError
from ..models import Identity
from .auth.google_oauth import GoogleIdTokenVerifier
from .auth.phone_verifier import PhoneVerifier, build_phone_verifier
from .auth.rate_limit import RateLimitService, build_rate_limit_service
from .auth.sms import SmsSender, build_sms_sender
from .auth.tokens import TokenIssuer
from .credential_store import CredentialStore
from .external_auth import ExternalAuthService
from .identity_reconciler import IdentityReconciler
from .otp_auth import OtpAuthService
from .otp_ledger import OtpLedger
from .password_auth import PasswordAuthService
from .phone_provider_auth import PhoneProviderAuthService
from .profile_service import ProfileService

logger = logging.getLogger(__name__)


@dataclass
class AuthServices:
    settings: Settings
    token_issuer: TokenIssuer
    rate_limiter: RateLimitService
    credential_store: CredentialStore
    ledger: OtpLedger
    reconciler: IdentityReconciler
    otp: OtpAuthService
    password: PasswordAuthService
    external: ExternalAuthService
    phone_provider: PhoneProviderAuthService
    profile: ProfileService

    @classmethod
    def build(
        cls,
        settings: Settings,
        sms_sender: Optional[SmsSender] = None,
        rate_limiter: Optional[RateLimitService] = None,
        phone_verifier: Optional[PhoneVerifier] = None,
        google_verifier: Optional[GoogleIdTokenVerifier] = None,
        clock: Clock = utcnow,
    ) -> "AuthServices":
        token_issuer = TokenIssuer(settings.jwt, clock=clock)
        rate_limiter = rate_limiter or build_rate_limit_service(settings)
        sms_sender = sms_sender or build_sms_sender(settings)
        phone_verifier = phone_verifier or build_phone_verifier(settings)
        google_verifier = google_verifier or GoogleIdTokenVerifier(settings.external.google_client_id)

        credential_store = CredentialStore(settings.lockout, clock=clock)
        ledger = OtpLedger(settings.otp, clock=clock)
        reconciler = IdentityReconciler(settings.otp, clock=clock)

        return cls(
            settings=settings,
            token_issuer=token_issuer,
            rate_limiter=rate_limiter,
            credential_store=credential_store,
            ledger=ledger,
            reconciler=reconciler,
            otp=OtpAuthService(
                settings, ledger, reconciler, rate_limiter, sms_sender, token_issuer, clock=clock
            ),
            password=PasswordAuthService(credential_store, reconciler, token_issuer, clock=clock),
            external=ExternalAuthService(reconciler, token_issuer, google_verifier),
            phone_provider=PhoneProviderAuthService(
                settings, phone_verifier, reconciler, credential_store, token_issuer
            ),
            profile=ProfileService(reconciler, token_issuer),
        )

    def validate_token(self, db: Session, token: str) -> Optional[Identity]:
        """Resolve a bearer token to its identity, or None if invalid or the identity is gone"""
        try:
            claims = self.token_issuer.validate_and_decode(token)
        except InvalidTokenError:
            return None
        return db.get(Identity, claims.subject)
