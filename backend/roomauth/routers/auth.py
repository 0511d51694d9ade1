"""
Auth endpoints: phone OTP, password, external provider and phone provider sign-in.
"""
import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from ..db import get_db
from ..dependencies.auth import get_current_identity, require_internal_caller
from ..dependencies.services import get_client_ip, get_services
from ..models import Identity
from ..schemas.auth import (
    AuthResponse,
    ExternalSyncRequest,
    GoogleAuthRequest,
    LoginRequest,
    OTPRequestRequest,
    OTPRequestResponse,
    OTPVerifyRequest,
    PhoneCheckResponse,
    PhoneResetPasswordRequest,
    PhoneTokenRequest,
    RegisterRequest,
    UserResponse,
)
from ..services.container import AuthServices
from ..services.results import AuthResult

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/auth", tags=["auth"])


def _auth_response(result: AuthResult) -> AuthResponse:
    return AuthResponse(
        access_token=result.access_token,
        user=UserResponse.from_identity(result.identity),
        is_new_user=result.is_new_user,
        requires_profile_completion=result.requires_profile_completion,
    )


@router.post("/otp/request", response_model=OTPRequestResponse)
async def otp_request(
    payload: OTPRequestRequest,
    request: Request,
    db: Session = Depends(get_db),
    services: AuthServices = Depends(get_services),
):
    """Send a one-time code to the phone. A failed SMS send still returns the request id."""
    result = await services.otp.request_otp(db, payload.phone, request_ip=get_client_ip(request))
    return OTPRequestResponse(request_id=result.request_id, expires_at=result.expires_at)


@router.post("/otp/verify", response_model=AuthResponse)
def otp_verify(
    payload: OTPVerifyRequest,
    db: Session = Depends(get_db),
    services: AuthServices = Depends(get_services),
):
    result = services.otp.verify_otp(db, payload.phone, payload.request_id, payload.code)
    return _auth_response(result)


@router.post("/register", response_model=AuthResponse)
def register(
    payload: RegisterRequest,
    db: Session = Depends(get_db),
    services: AuthServices = Depends(get_services),
):
    result = services.password.register(db, payload.name, payload.email, payload.password)
    return _auth_response(result)


@router.post("/login", response_model=AuthResponse)
def login(
    payload: LoginRequest,
    db: Session = Depends(get_db),
    services: AuthServices = Depends(get_services),
):
    result = services.password.login(db, payload.email, payload.password)
    return _auth_response(result)


@router.post(
    "/external/sync",
    response_model=AuthResponse,
    dependencies=[Depends(require_internal_caller)],
)
def external_sync(
    payload: ExternalSyncRequest,
    db: Session = Depends(get_db),
    services: AuthServices = Depends(get_services),
):
    """
    Reconcile an identity from claims a trusted upstream boundary already validated.

    Callers authenticate with the X-Internal-Token header.
    """
    result = services.external.sync_external_user(db, payload.claims, provider=payload.provider)
    return _auth_response(result)


@router.post("/google", response_model=AuthResponse)
async def auth_google(
    payload: GoogleAuthRequest,
    db: Session = Depends(get_db),
    services: AuthServices = Depends(get_services),
):
    """Authenticate with a Google ID token."""
    result = await services.external.sign_in_with_google(db, payload.id_token)
    return _auth_response(result)


@router.post("/phone/check", response_model=PhoneCheckResponse)
async def phone_check(
    payload: PhoneTokenRequest,
    db: Session = Depends(get_db),
    services: AuthServices = Depends(get_services),
):
    result = await services.phone_provider.check_phone(db, payload.token)
    return PhoneCheckResponse(user_exists=result.user_exists, phone=result.phone)


@router.post("/phone/sign-in", response_model=AuthResponse)
async def phone_sign_in(
    payload: PhoneTokenRequest,
    db: Session = Depends(get_db),
    services: AuthServices = Depends(get_services),
):
    result = await services.phone_provider.sign_in(db, payload.token)
    return _auth_response(result)


@router.post("/phone/reset-password", response_model=AuthResponse)
async def phone_reset_password(
    payload: PhoneResetPasswordRequest,
    db: Session = Depends(get_db),
    services: AuthServices = Depends(get_services),
):
    result = await services.phone_provider.reset_password(db, payload.token, payload.new_password)
    return _auth_response(result)


@router.get("/me", response_model=UserResponse)
def me(identity: Identity = Depends(get_current_identity)):
    return UserResponse.from_identity(identity)
