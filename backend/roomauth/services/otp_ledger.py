"""
OTP ledger: persistence of OTP challenges and their atomic state transitions.
"""
import logging
from datetime import timedelta
from typing import Optional, Tuple

from sqlalchemy import update
from sqlalchemy.orm import Session

from ..core.clock import Clock, utcnow
from ..core.config import OtpSettings
from ..core.errors import AttemptsExceededError, CodeUsedError, ExpiredCodeError
from ..models import OTPChallenge
from .auth.otp_codes import codes_match, generate_code, generate_request_id, generate_salt, hash_code

logger = logging.getLogger(__name__)


class OtpLedger:
    """
    Stores challenges and applies verify outcomes.

    Attempt counting and consumption are single conditional UPDATE statements,
    so two concurrent verifies can never both consume a challenge or push
    attempt_count past max_attempts.
    """

    def __init__(self, settings: OtpSettings, clock: Clock = utcnow):
        self.settings = settings
        self._clock = clock

    def latest_for_phone(self, db: Session, phone: str, lock: bool = False) -> Optional[OTPChallenge]:
        query = (
            db.query(OTPChallenge)
            .filter(OTPChallenge.phone == phone)
            .order_by(OTPChallenge.last_sent_at.desc())
        )
        if lock:
            query = query.with_for_update()
        return query.first()

    def cooldown_remaining(self, db: Session, phone: str) -> int:
        """
        Seconds until a new code may be sent to this phone (0 when allowed).

        Locks the phone's latest challenge (Postgres) until the caller's next
        commit, so a concurrent request on another worker waits and then sees
        the new challenge. A phone with no challenge yet has nothing to lock.
        """
        latest = self.latest_for_phone(db, phone, lock=True)
        if latest is None:
            return 0
        ready_at = latest.last_sent_at + timedelta(seconds=self.settings.resend_cooldown_seconds)
        remaining = (ready_at - self._clock()).total_seconds()
        return max(0, int(remaining + 0.999))

    def create(self, db: Session, phone: str, request_ip: Optional[str] = None) -> Tuple[OTPChallenge, str]:
        """
        Create and commit a new challenge.

        Returns:
            Tuple of (challenge, plaintext code); the code is never stored
        """
        now = self._clock()
        code = generate_code(self.settings.code_length)
        salt = generate_salt()

        challenge = OTPChallenge(
            phone=phone,
            request_id=generate_request_id(),
            otp_hash=hash_code(code, salt),
            salt=salt,
            expires_at=now + timedelta(minutes=self.settings.expiry_minutes),
            attempt_count=0,
            used=False,
            last_sent_at=now,
            channel="sms",
            request_ip=request_ip,
            created_at=now,
        )
        db.add(challenge)
        db.commit()
        return challenge, code

    def get_by_request_id(self, db: Session, request_id: str) -> Optional[OTPChallenge]:
        return db.query(OTPChallenge).filter(OTPChallenge.request_id == request_id).first()

    def ensure_verifiable(self, challenge: OTPChallenge) -> None:
        """
        Reject a challenge that is used, expired or out of attempts.

        Raises:
            CodeUsedError, ExpiredCodeError, AttemptsExceededError
        """
        if challenge.used:
            raise CodeUsedError()
        if self._clock() > challenge.expires_at:
            raise ExpiredCodeError()
        if challenge.attempt_count >= self.settings.max_attempts:
            raise AttemptsExceededError()

    @staticmethod
    def matches(challenge: OTPChallenge, code: str) -> bool:
        return codes_match(code, challenge.salt, challenge.otp_hash)

    def _open_challenge(self, challenge: OTPChallenge):
        return (
            update(OTPChallenge)
            .where(
                OTPChallenge.id == challenge.id,
                OTPChallenge.used.is_(False),
                OTPChallenge.attempt_count < self.settings.max_attempts,
            )
            .execution_options(synchronize_session=False)
        )

    def record_mismatch(self, db: Session, challenge: OTPChallenge) -> bool:
        """
        Count a wrong code.

        Returns:
            False if the challenge was consumed or exhausted concurrently
        """
        result = db.execute(
            self._open_challenge(challenge).values(attempt_count=OTPChallenge.attempt_count + 1)
        )
        db.commit()
        db.refresh(challenge)
        return result.rowcount > 0

    def consume(self, db: Session, challenge: OTPChallenge) -> bool:
        """
        Mark the challenge used, counting the successful attempt.

        Returns:
            False if another request consumed or exhausted it first
        """
        result = db.execute(
            self._open_challenge(challenge).values(
                used=True,
                used_at=self._clock(),
                attempt_count=OTPChallenge.attempt_count + 1,
            )
        )
        db.commit()
        db.refresh(challenge)
        return result.rowcount > 0
