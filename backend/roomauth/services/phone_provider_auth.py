"""
Sign-in and password reset backed by a third-party phone verification provider.
"""
import logging
from typing import Tuple

from sqlalchemy.orm import Session

from ..core.config import Settings
from ..core.errors import NotFoundError
from ..utils.phone import get_phone_last4, normalize_phone
from .auth.audit import AuditService
from .auth.phone_verifier import PhoneVerifier, VerifiedPhone
from .auth.tokens import TokenIssuer
from .credential_store import CredentialStore
from .identity_reconciler import IdentityReconciler
from .results import AuthResult, PhoneCheckResult

logger = logging.getLogger(__name__)


class PhoneProviderAuthService:
    """
    The provider proves phone possession; we reconcile the phone the same way
    a verified OTP is reconciled.
    """

    def __init__(
        self,
        settings: Settings,
        verifier: PhoneVerifier,
        reconciler: IdentityReconciler,
        credential_store: CredentialStore,
        token_issuer: TokenIssuer,
    ):
        self.settings = settings
        self.verifier = verifier
        self.reconciler = reconciler
        self.credential_store = credential_store
        self.token_issuer = token_issuer
        self.auth_method = f"{settings.external.phone_provider}_phone"

    async def _verify(self, token: str) -> Tuple[VerifiedPhone, str]:
        verified = await self.verifier.verify(token)
        return verified, normalize_phone(verified.phone, self.settings.PHONE_DEFAULT_REGION)

    def _session(self, identity, phone: str) -> str:
        return self.token_issuer.create_session(
            identity, {"phone": phone, "auth_method": self.auth_method}
        )

    async def check_phone(self, db: Session, token: str) -> PhoneCheckResult:
        _, phone = await self._verify(token)
        identity = self.reconciler.find_by_confirmed_phone(db, phone)
        return PhoneCheckResult(
            user_exists=identity is not None,
            phone=phone,
            identity_id=identity.id if identity else None,
        )

    async def sign_in(self, db: Session, token: str) -> AuthResult:
        _, phone = await self._verify(token)
        identity, is_new_user = self.reconciler.reconcile_phone(db, phone)
        logger.info(
            f"[PhoneAuth] ***{get_phone_last4(phone)} signed in as identity {identity.id} (new={is_new_user})"
        )
        return AuthResult(
            access_token=self._session(identity, phone),
            identity=identity,
            is_new_user=is_new_user,
            requires_profile_completion=not identity.profile_complete,
        )

    async def reset_password(self, db: Session, token: str, new_password: str) -> AuthResult:
        """
        Set a new password for the identity owning the verified phone.

        Clears any login lockout. An attached email is marked unconfirmed,
        since possession of the phone says nothing about the mailbox.

        Raises:
            NotFoundError: no identity holds this confirmed phone
            ValidationError: password policy
        """
        _, phone = await self._verify(token)
        identity = self.reconciler.find_by_confirmed_phone(db, phone)
        if identity is None:
            raise NotFoundError("No account found with this phone number.")

        self.credential_store.set_password(identity, new_password)
        self.credential_store.clear_lockout(identity)
        if identity.email:
            identity.email_confirmed = False
        db.commit()

        AuditService.log_password_reset(identity.id, get_phone_last4(phone))
        return AuthResult(
            access_token=self._session(identity, phone),
            identity=identity,
            requires_profile_completion=not identity.profile_complete,
        )
