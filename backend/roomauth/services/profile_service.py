"""
Profile completion and self-service profile management.
"""
import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.errors import ConflictError, NotFoundError, ValidationError
from ..models import Identity
from ..utils.email import validate_email_address
from .auth.tokens import TokenIssuer
from .identity_reconciler import IdentityReconciler
from .results import AuthResult

logger = logging.getLogger(__name__)

NAME_MIN_LENGTH = 2
NAME_MAX_LENGTH = 200
OCCUPATION_MAX_LENGTH = 100
BIO_MAX_LENGTH = 1000
IMAGE_URL_MAX_LENGTH = 500


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def _check_length(value: Optional[str], max_length: int, field: str) -> None:
    if value is not None and len(value) > max_length:
        raise ValidationError(f"{field.capitalize()} must be at most {max_length} characters.", field=field)


class ProfileService:
    def __init__(self, reconciler: IdentityReconciler, token_issuer: TokenIssuer):
        self.reconciler = reconciler
        self.token_issuer = token_issuer

    def get_profile(self, db: Session, identity_id: str) -> Identity:
        identity = db.get(Identity, identity_id)
        if identity is None:
            raise NotFoundError("User not found.")
        return identity

    def complete_profile(
        self,
        db: Session,
        identity_id: str,
        name: str,
        email: Optional[str] = None,
        occupation: Optional[str] = None,
        bio: Optional[str] = None,
    ) -> AuthResult:
        """
        Fill in the profile of a (typically phone-created) identity.

        An email is only attached when the identity has none; it stays
        unconfirmed. Nothing is written when any check fails.

        Raises:
            NotFoundError: unknown identity
            ValidationError: bad field, or an attempt to change an existing email
            ConflictError: email belongs to another identity
        """
        identity = self.get_profile(db, identity_id)

        name = (name or "").strip()
        if len(name) < NAME_MIN_LENGTH or len(name) > NAME_MAX_LENGTH:
            raise ValidationError(
                f"Name must be between {NAME_MIN_LENGTH} and {NAME_MAX_LENGTH} characters.", field="name"
            )
        occupation = _clean(occupation)
        bio = _clean(bio)
        _check_length(occupation, OCCUPATION_MAX_LENGTH, "occupation")
        _check_length(bio, BIO_MAX_LENGTH, "bio")

        new_email = None
        if _clean(email):
            email = validate_email_address(email)
            if identity.email:
                if identity.email != email:
                    raise ValidationError("Email cannot be changed while completing the profile.", field="email")
            elif self.reconciler.email_in_use(db, email, exclude_id=identity.id):
                raise ConflictError("Email is already in use by another account.", field="email")
            else:
                new_email = email

        identity.display_name = name
        identity.occupation = occupation
        identity.bio = bio
        identity.profile_complete = True
        if new_email:
            identity.email = new_email
            identity.email_confirmed = False

        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            raise ConflictError("Email is already in use by another account.", field="email")

        logger.info(f"[Auth] Profile completed for identity {identity.id}")
        return AuthResult(
            access_token=self.token_issuer.create_session(identity),
            identity=identity,
        )

    def update_profile(
        self,
        db: Session,
        identity_id: str,
        name: Optional[str] = None,
        occupation: Optional[str] = None,
        bio: Optional[str] = None,
        profile_image_url: Optional[str] = None,
    ) -> Identity:
        """Partial update; fields left as None are unchanged and a blank name is ignored."""
        identity = self.get_profile(db, identity_id)

        name = _clean(name)
        if name is not None:
            if len(name) < NAME_MIN_LENGTH or len(name) > NAME_MAX_LENGTH:
                raise ValidationError(
                    f"Name must be between {NAME_MIN_LENGTH} and {NAME_MAX_LENGTH} characters.", field="name"
                )
            identity.display_name = name
        if occupation is not None:
            _check_length(occupation.strip(), OCCUPATION_MAX_LENGTH, "occupation")
            identity.occupation = _clean(occupation)
        if bio is not None:
            _check_length(bio.strip(), BIO_MAX_LENGTH, "bio")
            identity.bio = _clean(bio)
        if profile_image_url is not None:
            _check_length(profile_image_url.strip(), IMAGE_URL_MAX_LENGTH, "profile_image_url")
            identity.profile_image_url = _clean(profile_image_url)

        db.commit()
        return identity

    def delete_account(self, db: Session, identity_id: str) -> None:
        identity = self.get_profile(db, identity_id)
        db.delete(identity)
        db.commit()
        logger.info(f"[Auth] Deleted identity {identity_id}")
