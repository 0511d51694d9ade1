"""
Identity reconciliation: maps a proven phone, an external identity or an
email onto exactly one Identity row.

Uniqueness is enforced by the database (confirmed phone, email, provider +
external id). When a concurrent request wins the insert, the IntegrityError
is rolled back and the lookup is retried, so both requests end up on the same
row.
"""
import logging
from typing import Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.clock import Clock, utcnow
from ..core.config import OtpSettings
from ..core.errors import ConflictError, InternalFailureError
from ..models import AUTH_PROVIDER_EXTERNAL, AUTH_PROVIDER_PHONE, Identity
from ..utils.phone import get_phone_last4
from .auth.audit import AuditService
from .auth.claims import ExternalClaims

logger = logging.getLogger(__name__)

MAX_RECONCILE_ATTEMPTS = 3


class IdentityReconciler:
    def __init__(self, otp_settings: OtpSettings, clock: Clock = utcnow):
        self.adopt_unconfirmed_phone = otp_settings.adopt_unconfirmed_phone
        self._clock = clock

    @staticmethod
    def find_by_confirmed_phone(db: Session, phone: str) -> Optional[Identity]:
        return (
            db.query(Identity)
            .filter(Identity.phone == phone, Identity.phone_confirmed.is_(True))
            .first()
        )

    @staticmethod
    def find_by_email(db: Session, email: str) -> Optional[Identity]:
        return db.query(Identity).filter(Identity.email == email.lower()).first()

    @staticmethod
    def email_in_use(db: Session, email: str, exclude_id: Optional[str] = None) -> bool:
        query = db.query(Identity.id).filter(Identity.email == email.lower())
        if exclude_id:
            query = query.filter(Identity.id != exclude_id)
        return query.first() is not None

    def reconcile_phone(self, db: Session, phone: str) -> Tuple[Identity, bool]:
        """
        Resolve a verified phone to an Identity.

        Order: confirmed owner, then (when enabled) a legacy record holding the
        phone unconfirmed, then a new phone-only identity.

        Returns:
            Tuple of (identity, is_new_user)
        """
        last4 = get_phone_last4(phone)

        for attempt in range(1, MAX_RECONCILE_ATTEMPTS + 1):
            existing = self.find_by_confirmed_phone(db, phone)
            if existing:
                return existing, False

            if self.adopt_unconfirmed_phone:
                legacy = (
                    db.query(Identity)
                    .filter(Identity.phone == phone, Identity.phone_confirmed.is_(False))
                    .order_by(Identity.created_at.asc())
                    .first()
                )
                if legacy:
                    legacy.phone_confirmed = True
                    try:
                        db.commit()
                    except IntegrityError:
                        db.rollback()
                        logger.info(f"[Reconcile] Phone ***{last4} confirmed concurrently, retrying ({attempt})")
                        continue
                    logger.info(f"[Reconcile] Adopted unconfirmed phone ***{last4} on identity {legacy.id}")
                    return legacy, False

            identity = Identity(
                display_name="",
                phone=phone,
                phone_confirmed=True,
                auth_provider=AUTH_PROVIDER_PHONE,
                profile_complete=False,
                created_at=self._clock(),
            )
            db.add(identity)
            try:
                db.commit()
            except IntegrityError:
                db.rollback()
                logger.info(f"[Reconcile] Identity for ***{last4} created concurrently, retrying ({attempt})")
                continue

            AuditService.log_identity_created(identity.id, AUTH_PROVIDER_PHONE)
            logger.info(f"[Reconcile] Created identity {identity.id} for phone ***{last4}")
            return identity, True

        raise InternalFailureError("Could not reconcile identity for phone.")

    def reconcile_external(self, db: Session, claims: ExternalClaims) -> Tuple[Identity, bool]:
        """
        Resolve pre-validated external claims to an Identity.

        Order: exact (provider, external id) match, then link by email, then
        create. Linking onto an identity that already carries a different
        external id raises ConflictError.

        Returns:
            Tuple of (identity, is_new_user)
        """
        for attempt in range(1, MAX_RECONCILE_ATTEMPTS + 1):
            existing = (
                db.query(Identity)
                .filter(
                    Identity.external_provider == claims.provider,
                    Identity.external_id == claims.external_id,
                )
                .first()
            )
            if existing:
                self._sync_display_fields(db, existing, claims)
                return existing, False

            if claims.email:
                by_email = self.find_by_email(db, claims.email)
                if by_email:
                    if by_email.external_id:
                        logger.warning(
                            f"[Reconcile] Email owned by identity {by_email.id} is linked to another external account"
                        )
                        raise ConflictError(
                            "This email is already linked to a different external account.", field="email"
                        )
                    by_email.external_provider = claims.provider
                    by_email.external_id = claims.external_id
                    by_email.email_confirmed = True
                    if not by_email.display_name and claims.name:
                        by_email.display_name = claims.name
                    if not by_email.profile_image_url and claims.avatar_url:
                        by_email.profile_image_url = claims.avatar_url
                    try:
                        db.commit()
                    except IntegrityError:
                        db.rollback()
                        logger.info(f"[Reconcile] External link raced, retrying ({attempt})")
                        continue
                    AuditService.log_external_linked(by_email.id, claims.provider)
                    return by_email, False

            identity = Identity(
                display_name=claims.name or "",
                email=claims.email,
                email_confirmed=bool(claims.email),
                external_provider=claims.provider,
                external_id=claims.external_id,
                auth_provider=AUTH_PROVIDER_EXTERNAL,
                profile_complete=bool(claims.name),
                profile_image_url=claims.avatar_url,
                created_at=self._clock(),
            )
            db.add(identity)
            try:
                db.commit()
            except IntegrityError:
                db.rollback()
                logger.info(f"[Reconcile] External identity created concurrently, retrying ({attempt})")
                continue

            AuditService.log_identity_created(identity.id, AUTH_PROVIDER_EXTERNAL, provider=claims.provider)
            logger.info(f"[Reconcile] Created identity {identity.id} for {claims.provider} account")
            return identity, True

        raise InternalFailureError("Could not reconcile external identity.")

    @staticmethod
    def _sync_display_fields(db: Session, identity: Identity, claims: ExternalClaims) -> None:
        changed = False
        if claims.name and claims.name != identity.display_name:
            identity.display_name = claims.name
            changed = True
        if claims.avatar_url and claims.avatar_url != identity.profile_image_url:
            identity.profile_image_url = claims.avatar_url
            changed = True
        if changed:
            db.commit()
