from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..models import Identity


@dataclass
class AuthResult:
    access_token: str
    identity: Identity
    is_new_user: bool = False
    requires_profile_completion: bool = False


@dataclass(frozen=True)
class RequestOtpResult:
    request_id: str
    expires_at: datetime
    sent: bool


@dataclass(frozen=True)
class PhoneCheckResult:
    user_exists: bool
    phone: str
    identity_id: Optional[str] = None
