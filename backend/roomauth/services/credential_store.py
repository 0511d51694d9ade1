"""
Credential store: password policy, hashing and login lockout.
"""
import logging
from datetime import timedelta

from sqlalchemy import update
from sqlalchemy.orm import Session

from ..core.clock import Clock, utcnow
from ..core.config import LockoutSettings
from ..core.errors import ValidationError
from ..core.security import hash_password, password_needs_rehash, verify_password
from ..models import Identity

logger = logging.getLogger(__name__)


class CredentialStore:
    """
    Owns everything about password credentials.

    Passwords must be at least ``password_min_length`` characters and contain
    a digit, a lowercase letter, an uppercase letter and a non-alphanumeric
    character. After ``max_failed_attempts`` consecutive failures the account
    is locked for ``lockout_minutes`` and the counter starts over.
    """

    def __init__(self, settings: LockoutSettings, clock: Clock = utcnow):
        self.settings = settings
        self._clock = clock

    def validate_password(self, password: str) -> None:
        problems = []
        if not password or len(password) < self.settings.password_min_length:
            problems.append(f"at least {self.settings.password_min_length} characters")
        password = password or ""
        if not any(c.isdigit() for c in password):
            problems.append("a digit")
        if not any(c.islower() for c in password):
            problems.append("a lowercase letter")
        if not any(c.isupper() for c in password):
            problems.append("an uppercase letter")
        if all(c.isalnum() for c in password):
            problems.append("a non-alphanumeric character")

        if problems:
            raise ValidationError(f"Password must contain {', '.join(problems)}.", field="password")

    def set_password(self, identity: Identity, password: str) -> None:
        """Validate and hash a new password onto the identity (caller commits)"""
        self.validate_password(password)
        identity.password_hash = hash_password(password)

    def verify(self, identity: Identity, password: str) -> bool:
        if not identity.password_hash or not password:
            return False
        return verify_password(password, identity.password_hash)

    def is_locked_out(self, identity: Identity) -> bool:
        return identity.lockout_until is not None and identity.lockout_until > self._clock()

    def record_failure(self, db: Session, identity: Identity) -> bool:
        """
        Count a failed login atomically; lock the account once the limit is hit.

        Returns:
            True if this failure locked the account
        """
        db.execute(
            update(Identity)
            .where(Identity.id == identity.id)
            .values(failed_login_count=Identity.failed_login_count + 1)
        )
        lockout_until = self._clock() + timedelta(minutes=self.settings.lockout_minutes)
        locked = db.execute(
            update(Identity)
            .where(
                Identity.id == identity.id,
                Identity.failed_login_count >= self.settings.max_failed_attempts,
            )
            .values(failed_login_count=0, lockout_until=lockout_until)
        ).rowcount > 0
        db.commit()
        db.refresh(identity)

        if locked:
            logger.warning(
                f"[Auth] Identity {identity.id} locked out for {self.settings.lockout_minutes} minutes"
            )
        return locked

    def record_success(self, db: Session, identity: Identity, password: str) -> None:
        """Reset failure state and upgrade the hash if the scheme changed"""
        changed = False
        if identity.failed_login_count or identity.lockout_until is not None:
            identity.failed_login_count = 0
            identity.lockout_until = None
            changed = True
        if password_needs_rehash(identity.password_hash):
            identity.password_hash = hash_password(password)
            changed = True
        if changed:
            db.commit()

    @staticmethod
    def clear_lockout(identity: Identity) -> None:
        identity.failed_login_count = 0
        identity.lockout_until = None
