from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..models import Identity


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    email: Optional[str] = None
    email_confirmed: bool = False
    phone: Optional[str] = None
    phone_confirmed: bool = False
    auth_provider: str
    profile_complete: bool = False
    profile_image_url: Optional[str] = None
    occupation: Optional[str] = None
    bio: Optional[str] = None
    created_at: datetime

    @classmethod
    def from_identity(cls, identity: Identity) -> "UserResponse":
        return cls(
            id=identity.id,
            name=identity.display_name or "",
            email=identity.email,
            email_confirmed=bool(identity.email_confirmed),
            phone=identity.phone,
            phone_confirmed=bool(identity.phone_confirmed),
            auth_provider=identity.auth_provider,
            profile_complete=bool(identity.profile_complete),
            profile_image_url=identity.profile_image_url,
            occupation=identity.occupation,
            bio=identity.bio,
            created_at=identity.created_at,
        )


class AuthResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserResponse
    is_new_user: bool = False
    requires_profile_completion: bool = False


class OTPRequestRequest(BaseModel):
    phone: str


class OTPRequestResponse(BaseModel):
    request_id: str
    expires_at: datetime


class OTPVerifyRequest(BaseModel):
    phone: str
    request_id: str
    code: str


class RegisterRequest(BaseModel):
    name: str
    email: str
    password: str


class LoginRequest(BaseModel):
    email: str
    password: str


class ExternalSyncRequest(BaseModel):
    # Claim bag as issued by the provider (sub/oid, email/emails, name, idp...)
    claims: Dict[str, Any]
    provider: Optional[str] = None


class GoogleAuthRequest(BaseModel):
    id_token: str


class PhoneTokenRequest(BaseModel):
    token: str = Field(..., description="Phone verification provider ID token")


class PhoneCheckResponse(BaseModel):
    user_exists: bool
    phone: str


class PhoneResetPasswordRequest(BaseModel):
    token: str
    new_password: str


class CompleteProfileRequest(BaseModel):
    name: str
    email: Optional[str] = None
    occupation: Optional[str] = None
    bio: Optional[str] = None


class UpdateProfileRequest(BaseModel):
    name: Optional[str] = None
    occupation: Optional[str] = None
    bio: Optional[str] = None
    profile_image_url: Optional[str] = None
