"""
Authentication dependencies for bearer-token and internal-caller routes
"""
import hmac
from typing import Optional

from fastapi import Depends, Header, Request
from sqlalchemy.orm import Session

from ..core.errors import InternalFailureError, UnauthorizedError
from ..db import get_db
from ..models import Identity
from ..services.container import AuthServices
from .services import get_services


def _bearer_token(request: Request) -> str:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        raise UnauthorizedError("Missing or invalid authorization header")
    return auth_header[7:]  # Remove "Bearer " prefix


def get_current_identity(
    request: Request,
    db: Session = Depends(get_db),
    services: AuthServices = Depends(get_services),
) -> Identity:
    """
    Resolve the bearer token to an Identity.

    Raises:
        UnauthorizedError: If the token is missing, invalid or its identity no longer exists
    """
    identity = services.validate_token(db, _bearer_token(request))
    if identity is None:
        raise UnauthorizedError("Invalid or expired token.")
    request.state.user_id = identity.id
    return identity


def require_internal_caller(
    x_internal_token: Optional[str] = Header(default=None),
    services: AuthServices = Depends(get_services),
) -> None:
    """Trusted upstream boundary authenticates with the shared EXTERNAL_SYNC_TOKEN"""
    expected = services.settings.external.internal_sync_token
    if not expected:
        raise InternalFailureError("External sync is not configured.")
    if not x_internal_token or not hmac.compare_digest(x_internal_token.encode(), expected.encode()):
        raise UnauthorizedError("Invalid internal token.")
