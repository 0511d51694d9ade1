"""
Structured audit logging service for authentication events
"""
import json
import logging
from typing import Optional

from ...core.clock import utcnow

logger = logging.getLogger(__name__)


class AuditService:
    """
    Structured audit logging service for authentication events.

    Never logs full codes, passwords or full phone numbers.
    """

    @staticmethod
    def _log_audit_event(
        event_type: str,
        outcome: Optional[str] = None,
        phone_last4: Optional[str] = None,
        ip: Optional[str] = None,
        error: Optional[str] = None,
        **kwargs,
    ):
        """
        Log structured audit event.

        Args:
            event_type: Event type (e.g., 'otp_request')
            outcome: Outcome (requested/success/fail/rate_limited/send_failed)
            phone_last4: Last 4 digits of phone number
            ip: Client IP address
            error: Error kind (if any)
            **kwargs: Additional event-specific fields
        """
        audit_data = {
            "event_type": event_type,
            "timestamp": utcnow().isoformat() + "Z",
            "outcome": outcome,
        }

        if phone_last4:
            audit_data["phone_last4"] = phone_last4
        if ip:
            audit_data["ip"] = ip
        if error:
            audit_data["error"] = error

        audit_data.update({k: v for k, v in kwargs.items() if v is not None})

        logger.info(f"[Auth][Audit] {json.dumps(audit_data, default=str)}")

    @staticmethod
    def log_otp_requested(phone_last4: str, ip: Optional[str], request_id: str):
        AuditService._log_audit_event(
            "otp_request", outcome="requested", phone_last4=phone_last4, ip=ip, otp_request_id=request_id
        )

    @staticmethod
    def log_otp_send_failed(phone_last4: str, request_id: str, reason: str):
        """Log an SMS dispatch failure; the challenge stays valid"""
        AuditService._log_audit_event(
            "otp_send", outcome="send_failed", phone_last4=phone_last4, error=reason, otp_request_id=request_id
        )

    @staticmethod
    def log_otp_rate_limited(event_type: str, phone_last4: str, ip: Optional[str], reason: Optional[str]):
        AuditService._log_audit_event(
            event_type, outcome="rate_limited", phone_last4=phone_last4, ip=ip, error=reason
        )

    @staticmethod
    def log_otp_verify_success(phone_last4: str, user_id: str, is_new_user: bool):
        AuditService._log_audit_event(
            "otp_verify", outcome="success", phone_last4=phone_last4, user_id=user_id, is_new_user=is_new_user
        )

    @staticmethod
    def log_otp_verify_fail(phone_last4: str, error: str, attempt_count: Optional[int] = None):
        AuditService._log_audit_event(
            "otp_verify", outcome="fail", phone_last4=phone_last4, error=error, attempt_count=attempt_count
        )

    @staticmethod
    def log_login(user_id: Optional[str], outcome: str, error: Optional[str] = None, locked: bool = False):
        AuditService._log_audit_event(
            "password_login", outcome=outcome, user_id=user_id, error=error, locked=locked or None
        )

    @staticmethod
    def log_identity_created(user_id: str, auth_provider: str, provider: Optional[str] = None):
        AuditService._log_audit_event(
            "identity_created", outcome="success", user_id=user_id, auth_provider=auth_provider, provider=provider
        )

    @staticmethod
    def log_external_linked(user_id: str, provider: str):
        AuditService._log_audit_event("external_linked", outcome="success", user_id=user_id, provider=provider)

    @staticmethod
    def log_password_reset(user_id: str, phone_last4: str):
        AuditService._log_audit_event(
            "password_reset", outcome="success", user_id=user_id, phone_last4=phone_last4
        )
