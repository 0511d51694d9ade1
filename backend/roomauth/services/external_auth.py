"""
Sign-in through a delegated identity provider.
"""
import logging
from typing import Any, Mapping, Optional

from sqlalchemy.orm import Session

from .auth.claims import extract_external_claims
from .auth.google_oauth import GoogleIdTokenVerifier
from .auth.tokens import TokenIssuer
from .identity_reconciler import IdentityReconciler
from .results import AuthResult

logger = logging.getLogger(__name__)


class ExternalAuthService:
    def __init__(
        self,
        reconciler: IdentityReconciler,
        token_issuer: TokenIssuer,
        google_verifier: GoogleIdTokenVerifier,
    ):
        self.reconciler = reconciler
        self.token_issuer = token_issuer
        self.google_verifier = google_verifier

    def sync_external_user(
        self, db: Session, claims: Mapping[str, Any], provider: Optional[str] = None
    ) -> AuthResult:
        """
        Reconcile claims that an upstream boundary already validated.

        Raises:
            ValidationError: no subject claim
            ConflictError: email already linked to another external account
        """
        external = extract_external_claims(claims, provider)
        identity, is_new_user = self.reconciler.reconcile_external(db, external)
        logger.info(f"[Auth] External sign-in via {external.provider}: identity {identity.id} (new={is_new_user})")
        return AuthResult(
            access_token=self.token_issuer.create_session(identity),
            identity=identity,
            is_new_user=is_new_user,
            requires_profile_completion=not identity.profile_complete,
        )

    async def sign_in_with_google(self, db: Session, token: str) -> AuthResult:
        claims = await self.google_verifier.verify(token)
        return self.sync_external_user(db, claims, provider=GoogleIdTokenVerifier.PROVIDER)
