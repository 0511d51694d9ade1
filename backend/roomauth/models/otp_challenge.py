import uuid

from sqlalchemy import Boolean, Column, DateTime, Integer, String

from ..core.clock import utcnow
from ..db import Base


class OTPChallenge(Base):
    """
    One OTP issuance-to-verification cycle.

    Rows are never deleted: once used, exhausted or expired they stay for audit.
    Only the salted hash of the code is stored.
    """

    __tablename__ = "otp_challenges"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    phone = Column(String(32), nullable=False, index=True)  # E.164 format
    request_id = Column(String(64), nullable=False, unique=True)
    otp_hash = Column(String(128), nullable=False)
    salt = Column(String(64), nullable=False)
    expires_at = Column(DateTime, nullable=False)
    attempt_count = Column(Integer, nullable=False, default=0)
    used = Column(Boolean, nullable=False, default=False)
    used_at = Column(DateTime, nullable=True)
    last_sent_at = Column(DateTime, nullable=False, default=utcnow)
    channel = Column(String(10), nullable=False, default="sms")
    request_ip = Column(String(64), nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
