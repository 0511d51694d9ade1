"""
Exception handlers mapping typed auth failures to JSON responses.

Register these on a FastAPI app instance via `register_exception_handlers(app)`.
Every error body has the shape {"error": <kind>, "detail": <message>}.
"""
import logging

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from .core.errors import OTP_VERIFY_FAILURE_KINDS, AuthError, ErrorKind, InternalFailureError

logger = logging.getLogger(__name__)

OTP_VERIFY_PATH_SUFFIX = "/otp/verify"
GENERIC_OTP_ERROR = {"error": "invalid_or_expired_code", "detail": "Invalid or expired code."}


async def auth_error_handler(request: Request, exc: AuthError):
    settings = request.app.state.settings
    if (
        settings.otp.generic_errors
        and request.url.path.endswith(OTP_VERIFY_PATH_SUFFIX)
        and exc.kind in OTP_VERIFY_FAILURE_KINDS
    ):
        # One response for every verify failure so challenge state cannot be probed
        return JSONResponse(status_code=400, content=GENERIC_OTP_ERROR)

    if exc.status_code >= 500:
        logger.error(f"{exc.kind.value} on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body") or None
    body = {"error": ErrorKind.VALIDATION.value, "detail": first.get("msg", "Invalid request data")}
    if field:
        body["field"] = field
    return JSONResponse(status_code=400, content=body)


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    kind = {
        401: ErrorKind.UNAUTHORIZED,
        404: ErrorKind.NOT_FOUND,
        405: ErrorKind.VALIDATION,
    }.get(exc.status_code, ErrorKind.INTERNAL if exc.status_code >= 500 else ErrorKind.VALIDATION)
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": kind.value, "detail": exc.detail},
        headers=getattr(exc, "headers", None),
    )


async def database_error_handler(request: Request, exc: SQLAlchemyError):
    """Database errors outside the handled race paths"""
    logger.error(f"Database error on {request.method} {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(status_code=500, content=InternalFailureError().to_dict())


def register_exception_handlers(app):
    """Register all exception handlers on the given FastAPI app."""
    app.add_exception_handler(AuthError, auth_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(SQLAlchemyError, database_error_handler)
