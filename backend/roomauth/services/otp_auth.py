"""
Phone OTP sign-in: request a code, verify it, reconcile the phone to an identity.
"""
import asyncio
import logging
from typing import NoReturn, Optional

from sqlalchemy.orm import Session

from ..core.clock import Clock, utcnow
from ..core.config import Settings
from ..core.errors import (
    AuthError,
    CodeUsedError,
    InvalidCodeError,
    NotFoundError,
    RateLimitedError,
    ValidationError,
)
from ..utils.phone import get_phone_last4, normalize_phone
from .auth.audit import AuditService
from .auth.rate_limit import RateLimitService
from .auth.sms import SmsSender
from .auth.tokens import TokenIssuer
from .identity_reconciler import IdentityReconciler
from .otp_ledger import OtpLedger
from .results import AuthResult, RequestOtpResult

logger = logging.getLogger(__name__)

SMS_TEMPLATE = "RoomMitra code: {code}. Expires in {minutes} minutes."


class OtpAuthService:
    """
    OTP lifecycle manager.

    request_otp: rate limit, resend cooldown, persist the challenge, then send.
    verify_otp: rate limit, lookup, state checks, constant-time compare,
    atomic attempt/consume update, phone reconciliation.
    """

    def __init__(
        self,
        settings: Settings,
        ledger: OtpLedger,
        reconciler: IdentityReconciler,
        rate_limiter: RateLimitService,
        sms_sender: SmsSender,
        token_issuer: TokenIssuer,
        clock: Clock = utcnow,
    ):
        self.settings = settings
        self.ledger = ledger
        self.reconciler = reconciler
        self.rate_limiter = rate_limiter
        self.sms_sender = sms_sender
        self.token_issuer = token_issuer
        self._clock = clock

    async def request_otp(self, db: Session, phone: str, request_ip: Optional[str] = None) -> RequestOtpResult:
        """
        Issue a new code for the phone and dispatch it by SMS.

        A failed or timed-out send does not invalidate the challenge; the
        result carries sent=False and the client may resend after the cooldown.

        Raises:
            ValidationError: empty or impossible phone number
            RateLimitedError: window limit or resend cooldown hit
        """
        phone = normalize_phone(phone, self.settings.PHONE_DEFAULT_REGION)
        last4 = get_phone_last4(phone)

        allowed, reason = self.rate_limiter.check_request(phone, request_ip)
        if not allowed:
            logger.warning(f"[OTP] Request rate limited for ***{last4}: {reason}")
            AuditService.log_otp_rate_limited("otp_request", last4, request_ip, reason)
            raise RateLimitedError(reason)

        remaining = self.ledger.cooldown_remaining(db, phone)
        if remaining > 0:
            reason = f"Please wait {remaining} seconds before requesting a new code."
            logger.info(f"[OTP] Resend cooldown active for ***{last4} ({remaining}s)")
            AuditService.log_otp_rate_limited("otp_request", last4, request_ip, reason)
            raise RateLimitedError(reason)

        self.rate_limiter.record_request(phone, request_ip)
        challenge, code = self.ledger.create(db, phone, request_ip)
        AuditService.log_otp_requested(last4, request_ip, challenge.request_id)
        logger.info(f"[OTP] Challenge {challenge.request_id} created for ***{last4}")

        message = SMS_TEMPLATE.format(code=code, minutes=self.settings.otp.expiry_minutes)
        sent = await self._dispatch(phone, message, challenge.request_id)

        return RequestOtpResult(
            request_id=challenge.request_id,
            expires_at=challenge.expires_at,
            sent=sent,
        )

    async def _dispatch(self, phone: str, message: str, request_id: str) -> bool:
        last4 = get_phone_last4(phone)
        timeout = self.settings.SMS_SEND_TIMEOUT_SECONDS
        try:
            sent = await asyncio.wait_for(self.sms_sender.send(phone, message), timeout=timeout)
        except asyncio.TimeoutError:
            logger.error(f"[OTP] SMS send to ***{last4} timed out after {timeout}s")
            AuditService.log_otp_send_failed(last4, request_id, "timeout")
            return False
        except Exception as e:
            logger.error(f"[OTP] SMS send to ***{last4} failed: {e}", exc_info=True)
            AuditService.log_otp_send_failed(last4, request_id, type(e).__name__)
            return False

        if not sent:
            logger.warning(f"[OTP] SMS provider rejected message to ***{last4}")
            AuditService.log_otp_send_failed(last4, request_id, "rejected")
        return sent

    def verify_otp(self, db: Session, phone: str, request_id: str, code: str) -> AuthResult:
        """
        Verify a code against its challenge and sign the phone in.

        Every failure is an AuthError whose ``kind`` (core.errors.ErrorKind) is
        the stable contract callers branch on:

            validation_error   empty phone, code or request id
            rate_limited       verify window exceeded or phone locked out
            not_found          unknown request id, or one issued to another phone
            used               challenge already consumed (CodeUsedError)
            expired            challenge past expires_at (ExpiredCodeError)
            attempts_exceeded  max_attempts wrong codes already recorded
            invalid_code       wrong code; one attempt counted
        """
        phone = normalize_phone(phone, self.settings.PHONE_DEFAULT_REGION)
        code = (code or "").strip()
        if not code:
            raise ValidationError("Code is required.", field="code")
        if not request_id:
            raise ValidationError("Request id is required.", field="request_id")
        last4 = get_phone_last4(phone)

        allowed, reason = self.rate_limiter.check_verify(phone)
        if not allowed:
            logger.warning(f"[OTP] Verify rate limited for ***{last4}: {reason}")
            AuditService.log_otp_rate_limited("otp_verify", last4, None, reason)
            raise RateLimitedError(reason)

        challenge = self.ledger.get_by_request_id(db, request_id)
        if challenge is None or challenge.phone != phone:
            self._reject(phone, NotFoundError("OTP request not found."))

        try:
            self.ledger.ensure_verifiable(challenge)
        except AuthError as e:
            self._reject(phone, e, challenge.attempt_count)

        if not self.ledger.matches(challenge, code):
            if self.ledger.record_mismatch(db, challenge):
                self._reject(phone, InvalidCodeError(), challenge.attempt_count)
            self._reject_current_state(phone, challenge, InvalidCodeError())

        if not self.ledger.consume(db, challenge):
            self._reject_current_state(phone, challenge, CodeUsedError())

        self.rate_limiter.record_verify(phone, True)
        identity, is_new_user = self.reconciler.reconcile_phone(db, phone)
        AuditService.log_otp_verify_success(last4, identity.id, is_new_user)
        logger.info(f"[OTP] Verified ***{last4} as identity {identity.id} (new={is_new_user})")

        return AuthResult(
            access_token=self.token_issuer.create_session(identity),
            identity=identity,
            is_new_user=is_new_user,
            requires_profile_completion=not identity.profile_complete,
        )

    def _reject_current_state(self, phone: str, challenge, fallback: AuthError) -> NoReturn:
        """A conditional update matched nothing: report what the re-read row says"""
        try:
            self.ledger.ensure_verifiable(challenge)
        except AuthError as e:
            self._reject(phone, e, challenge.attempt_count)
        self._reject(phone, fallback, challenge.attempt_count)

    def _reject(self, phone: str, error: AuthError, attempt_count: Optional[int] = None) -> NoReturn:
        self.rate_limiter.record_verify(phone, False)
        AuditService.log_otp_verify_fail(get_phone_last4(phone), error.kind.value, attempt_count)
        raise error
