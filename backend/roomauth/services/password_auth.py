"""
Email + password registration and login.
"""
import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.clock import Clock, utcnow
from ..core.errors import ConflictError, InvalidCredentialsError, ValidationError
from ..models import AUTH_PROVIDER_PASSWORD, Identity
from ..utils.email import normalize_email, validate_email_address
from .auth.audit import AuditService
from .auth.tokens import TokenIssuer
from .credential_store import CredentialStore
from .identity_reconciler import IdentityReconciler
from .results import AuthResult

logger = logging.getLogger(__name__)

MAX_NAME_LENGTH = 200


class PasswordAuthService:
    def __init__(
        self,
        credential_store: CredentialStore,
        reconciler: IdentityReconciler,
        token_issuer: TokenIssuer,
        clock: Clock = utcnow,
    ):
        self.credential_store = credential_store
        self.reconciler = reconciler
        self.token_issuer = token_issuer
        self._clock = clock

    def register(self, db: Session, name: str, email: str, password: str) -> AuthResult:
        """
        Create a password account.

        Raises:
            ValidationError: bad name, email or password
            ConflictError: email already registered
        """
        name = (name or "").strip()
        if not name:
            raise ValidationError("Name is required.", field="name")
        if len(name) > MAX_NAME_LENGTH:
            raise ValidationError(f"Name must be at most {MAX_NAME_LENGTH} characters.", field="name")
        email = validate_email_address(email)
        self.credential_store.validate_password(password)

        if self.reconciler.email_in_use(db, email):
            raise ConflictError("Email is already registered.", field="email")

        identity = Identity(
            display_name=name,
            email=email,
            email_confirmed=False,
            auth_provider=AUTH_PROVIDER_PASSWORD,
            profile_complete=True,
            created_at=self._clock(),
        )
        self.credential_store.set_password(identity, password)
        db.add(identity)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            logger.info("[Auth] Registration lost an email race")
            raise ConflictError("Email is already registered.", field="email")

        AuditService.log_identity_created(identity.id, AUTH_PROVIDER_PASSWORD)
        logger.info(f"[Auth] Registered identity {identity.id}")
        return AuthResult(
            access_token=self.token_issuer.create_session(identity),
            identity=identity,
            is_new_user=True,
        )

    def login(self, db: Session, email: str, password: str) -> AuthResult:
        """
        Authenticate by email and password.

        Every failure, including a locked account, is reported as
        InvalidCredentialsError.
        """
        email = normalize_email(email)
        if not email or not password:
            raise InvalidCredentialsError()

        identity = self.reconciler.find_by_email(db, email)
        if identity is None:
            AuditService.log_login(None, "fail", error="unknown_email")
            raise InvalidCredentialsError()

        if self.credential_store.is_locked_out(identity):
            AuditService.log_login(identity.id, "fail", error="locked_out", locked=True)
            raise InvalidCredentialsError()

        if not identity.password_hash:
            AuditService.log_login(identity.id, "fail", error="no_password")
            raise InvalidCredentialsError()

        if not self.credential_store.verify(identity, password):
            locked = self.credential_store.record_failure(db, identity)
            AuditService.log_login(identity.id, "fail", error="bad_password", locked=locked)
            raise InvalidCredentialsError()

        self.credential_store.record_success(db, identity, password)
        AuditService.log_login(identity.id, "success")
        return AuthResult(
            access_token=self.token_issuer.create_session(identity),
            identity=identity,
            requires_profile_completion=not identity.profile_complete,
        )
