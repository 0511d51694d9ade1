"""
Typed failures raised by the identity core.

Every failure carries a stable ``kind`` code and the HTTP status the transport
maps it to. Services raise these; exception_handlers.py renders them.
"""
from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    VALIDATION = "validation_error"
    CONFLICT = "conflict"
    RATE_LIMITED = "rate_limited"
    NOT_FOUND = "not_found"
    INVALID_CREDENTIALS = "invalid_credentials"
    INVALID_CODE = "invalid_code"
    EXPIRED = "expired"
    USED = "used"
    ATTEMPTS_EXCEEDED = "attempts_exceeded"
    UNAUTHORIZED = "unauthorized"
    INTERNAL = "internal_failure"


class AuthError(Exception):
    kind: ErrorKind = ErrorKind.INTERNAL
    status_code: int = 500
    default_message = "Internal error."

    def __init__(self, message: Optional[str] = None, *, field: Optional[str] = None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message
        self.field = field

    def to_dict(self) -> dict:
        body = {"error": self.kind.value, "detail": self.message}
        if self.field:
            body["field"] = self.field
        return body


class ValidationError(AuthError):
    kind = ErrorKind.VALIDATION
    status_code = 400
    default_message = "Invalid request."


class ConflictError(AuthError):
    kind = ErrorKind.CONFLICT
    status_code = 409
    default_message = "Resource already exists."


class RateLimitedError(AuthError):
    kind = ErrorKind.RATE_LIMITED
    status_code = 429
    default_message = "Too many requests. Try again later."


class NotFoundError(AuthError):
    kind = ErrorKind.NOT_FOUND
    status_code = 404
    default_message = "Not found."


class InvalidCredentialsError(AuthError):
    kind = ErrorKind.INVALID_CREDENTIALS
    status_code = 401
    default_message = "Invalid credentials."


class InvalidCodeError(AuthError):
    kind = ErrorKind.INVALID_CODE
    status_code = 400
    default_message = "Invalid code."


class ExpiredCodeError(AuthError):
    kind = ErrorKind.EXPIRED
    status_code = 400
    default_message = "Code has expired."


class CodeUsedError(ExpiredCodeError):
    kind = ErrorKind.USED
    default_message = "Code has already been used."


class AttemptsExceededError(AuthError):
    kind = ErrorKind.ATTEMPTS_EXCEEDED
    status_code = 400
    default_message = "Maximum attempts exceeded."


class UnauthorizedError(AuthError):
    kind = ErrorKind.UNAUTHORIZED
    status_code = 401
    default_message = "Unauthorized."


class InvalidTokenError(UnauthorizedError):
    default_message = "Invalid or expired token."


class InternalFailureError(AuthError):
    kind = ErrorKind.INTERNAL
    status_code = 500
    default_message = "Internal error."


# Kinds reported as one generic failure on the OTP verify route
OTP_VERIFY_FAILURE_KINDS = frozenset({
    ErrorKind.NOT_FOUND,
    ErrorKind.INVALID_CODE,
    ErrorKind.EXPIRED,
    ErrorKind.USED,
    ErrorKind.ATTEMPTS_EXCEEDED,
})
