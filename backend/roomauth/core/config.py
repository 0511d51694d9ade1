"""
Process-wide configuration.

A single immutable Settings value is built at startup (Settings.from_env) and
passed explicitly into the app factory, the token issuer and every auth flow.
"""
import os
from typing import Mapping, Optional

from pydantic import BaseModel, ConfigDict


def _bool(value: Optional[str], default: bool = False) -> bool:
    if value is None or value == "":
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


class JwtSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    signing_key: str = "dev-secret-change-me"
    issuer: str = "roommitra"
    audience: str = "roommitra-api"
    access_token_minutes: int = 60
    algorithm: str = "HS256"
    clock_skew_seconds: int = 60


class OtpSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    code_length: int = 6
    expiry_minutes: int = 5
    max_attempts: int = 5
    resend_cooldown_seconds: int = 60
    # Adopt an existing unconfirmed phone record on first OTP success
    adopt_unconfirmed_phone: bool = True
    # Collapse OTP failure kinds into one response at the HTTP layer
    generic_errors: bool = True


class LockoutSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    max_failed_attempts: int = 5
    lockout_minutes: int = 5
    password_min_length: int = 6


class RateLimitSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    request_limit_phone: int = 5
    request_limit_ip: int = 20
    request_window_seconds: int = 60
    verify_limit_phone: int = 10
    verify_window_seconds: int = 60
    lockout_seconds: int = 300


class ExternalAuthSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    # Shared secret a trusted upstream OIDC boundary presents on /external/sync
    internal_sync_token: str = ""
    google_client_id: str = ""
    # firebase | simulated
    phone_provider: str = "simulated"
    firebase_project_id: str = ""


class Settings(BaseModel):
    model_config = ConfigDict(frozen=True)

    ENV: str = "dev"
    DATABASE_URL: str = "sqlite:///./roommitra.db"
    REDIS_URL: str = ""
    PHONE_DEFAULT_REGION: str = "IN"

    # console | twilio
    SMS_PROVIDER: str = "console"
    SMS_SEND_TIMEOUT_SECONDS: float = 10.0
    TWILIO_ACCOUNT_SID: str = ""
    TWILIO_AUTH_TOKEN: str = ""
    TWILIO_FROM_NUMBER: str = ""

    SENTRY_DSN: str = ""

    jwt: JwtSettings = JwtSettings()
    otp: OtpSettings = OtpSettings()
    lockout: LockoutSettings = LockoutSettings()
    rate_limit: RateLimitSettings = RateLimitSettings()
    external: ExternalAuthSettings = ExternalAuthSettings()

    @property
    def is_local(self) -> bool:
        return self.ENV.lower() in {"local", "dev", "test"}

    @property
    def is_production(self) -> bool:
        return self.ENV.lower() in {"prod", "production"}

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """Build settings from environment variables (os.environ by default)."""
        env = os.environ if environ is None else environ
        get = env.get

        jwt = JwtSettings(
            signing_key=get("JWT_SECRET", JwtSettings().signing_key),
            issuer=get("JWT_ISSUER", "roommitra"),
            audience=get("JWT_AUDIENCE", "roommitra-api"),
            access_token_minutes=int(get("ACCESS_TOKEN_EXPIRE_MINUTES", "60")),
            clock_skew_seconds=int(get("JWT_CLOCK_SKEW_SECONDS", "60")),
        )
        otp = OtpSettings(
            code_length=int(get("OTP_CODE_LENGTH", "6")),
            expiry_minutes=int(get("OTP_EXPIRY_MINUTES", "5")),
            max_attempts=int(get("OTP_MAX_ATTEMPTS", "5")),
            resend_cooldown_seconds=int(get("OTP_RESEND_COOLDOWN_SECONDS", "60")),
            adopt_unconfirmed_phone=_bool(get("OTP_ADOPT_UNCONFIRMED_PHONE"), True),
            generic_errors=_bool(get("OTP_GENERIC_ERRORS"), True),
        )
        lockout = LockoutSettings(
            max_failed_attempts=int(get("LOGIN_MAX_FAILED_ATTEMPTS", "5")),
            lockout_minutes=int(get("LOGIN_LOCKOUT_MINUTES", "5")),
            password_min_length=int(get("PASSWORD_MIN_LENGTH", "6")),
        )
        rate_limit = RateLimitSettings(
            request_limit_phone=int(get("OTP_REQUEST_LIMIT_PHONE", "5")),
            request_limit_ip=int(get("OTP_REQUEST_LIMIT_IP", "20")),
            request_window_seconds=int(get("OTP_REQUEST_WINDOW_SECONDS", "60")),
            verify_limit_phone=int(get("OTP_VERIFY_LIMIT_PHONE", "10")),
            verify_window_seconds=int(get("OTP_VERIFY_WINDOW_SECONDS", "60")),
            lockout_seconds=int(get("OTP_VERIFY_LOCKOUT_SECONDS", "300")),
        )
        external = ExternalAuthSettings(
            internal_sync_token=get("EXTERNAL_SYNC_TOKEN", ""),
            google_client_id=get("GOOGLE_CLIENT_ID", ""),
            phone_provider=get("PHONE_PROVIDER", "simulated").lower(),
            firebase_project_id=get("FIREBASE_PROJECT_ID", ""),
        )
        return cls(
            ENV=get("ENV", "dev").lower(),
            DATABASE_URL=get("DATABASE_URL", "sqlite:///./roommitra.db"),
            REDIS_URL=get("REDIS_URL", ""),
            PHONE_DEFAULT_REGION=get("PHONE_DEFAULT_REGION", "IN"),
            SMS_PROVIDER=get("SMS_PROVIDER", "console").lower(),
            SMS_SEND_TIMEOUT_SECONDS=float(get("SMS_SEND_TIMEOUT_SECONDS", "10")),
            TWILIO_ACCOUNT_SID=get("TWILIO_ACCOUNT_SID", ""),
            TWILIO_AUTH_TOKEN=get("TWILIO_AUTH_TOKEN", ""),
            TWILIO_FROM_NUMBER=get("TWILIO_FROM_NUMBER", ""),
            SENTRY_DSN=get("SENTRY_DSN", ""),
            jwt=jwt,
            otp=otp,
            lockout=lockout,
            rate_limit=rate_limit,
            external=external,
        )
