"""
Settings and service wiring shared by the test modules.
"""
from roomauth.core.config import ExternalAuthSettings, JwtSettings, Settings
from roomauth.services.auth.google_oauth import GoogleIdTokenVerifier
from roomauth.services.auth.phone_verifier import SimulatedPhoneVerifier
from roomauth.services.auth.rate_limit import RateLimitService
from roomauth.services.container import AuthServices

TEST_SIGNING_KEY = "test-signing-key-0123456789abcdef-0123456789"
TEST_SYNC_TOKEN = "internal-sync-secret"
TEST_GOOGLE_CLIENT_ID = "test-client.apps.googleusercontent.com"


def make_settings(**overrides) -> Settings:
    values = dict(
        ENV="test",
        DATABASE_URL="sqlite:///:memory:",
        SMS_SEND_TIMEOUT_SECONDS=2.0,
        jwt=JwtSettings(signing_key=TEST_SIGNING_KEY),
        external=ExternalAuthSettings(
            internal_sync_token=TEST_SYNC_TOKEN,
            google_client_id=TEST_GOOGLE_CLIENT_ID,
            phone_provider="simulated",
        ),
    )
    values.update(overrides)
    return Settings(**values)


def with_otp(settings: Settings, **changes) -> Settings:
    return settings.model_copy(update={"otp": settings.otp.model_copy(update=changes)})


def build_services(settings: Settings, clock, sms_sender, **kwargs) -> AuthServices:
    kwargs.setdefault("rate_limiter", RateLimitService(settings.rate_limit))
    kwargs.setdefault("phone_verifier", SimulatedPhoneVerifier())
    kwargs.setdefault("google_verifier", GoogleIdTokenVerifier(settings.external.google_client_id))
    return AuthServices.build(settings, sms_sender=sms_sender, clock=clock, **kwargs)
