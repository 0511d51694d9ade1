"""
Startup validation for the identity core.

Each check raises ValueError so the process refuses to start with an unsafe
configuration outside local environments.
"""
import logging
import re

from .config import Settings

logger = logging.getLogger(__name__)

DEFAULT_SECRETS = {"", "dev-secret", "dev-secret-change-me"}
MIN_SIGNING_KEY_LENGTH = 32


def validate_jwt_secret(settings: Settings) -> None:
    """Signing key must be set, non-default and long enough in non-local envs"""
    if settings.is_local:
        return

    key = settings.jwt.signing_key
    if key == settings.DATABASE_URL:
        error_msg = (
            "CRITICAL SECURITY ERROR: JWT secret cannot equal DATABASE_URL in non-local environment. "
            f"ENV={settings.ENV}. Set JWT_SECRET to a secure random value."
        )
        logger.error(error_msg)
        raise ValueError(error_msg)

    if key in DEFAULT_SECRETS or len(key) < MIN_SIGNING_KEY_LENGTH:
        error_msg = (
            "CRITICAL SECURITY ERROR: JWT secret must be set, not a default value, and at least "
            f"{MIN_SIGNING_KEY_LENGTH} characters in non-local environment. ENV={settings.ENV}."
        )
        logger.error(error_msg)
        raise ValueError(error_msg)

    logger.info("JWT secret validation passed")


def validate_database_url(settings: Settings) -> None:
    """Refuse SQLite outside local environments"""
    if settings.is_local:
        return

    if re.match(r"^sqlite:", settings.DATABASE_URL, re.IGNORECASE):
        error_msg = (
            "CRITICAL: SQLite database is not supported in production. "
            f"ENV={settings.ENV}. Please use PostgreSQL."
        )
        logger.error(error_msg)
        raise ValueError(error_msg)


def validate_providers(settings: Settings) -> None:
    """Stub SMS and simulated phone verification are dev-only"""
    if not settings.is_production:
        return

    if settings.SMS_PROVIDER == "console":
        raise ValueError("SMS_PROVIDER=console is not allowed in production")
    if settings.external.phone_provider == "simulated":
        raise ValueError("PHONE_PROVIDER=simulated is not allowed in production")
    if settings.SMS_PROVIDER == "twilio" and not (
        settings.TWILIO_ACCOUNT_SID and settings.TWILIO_AUTH_TOKEN and settings.TWILIO_FROM_NUMBER
    ):
        raise ValueError("Twilio SMS provider selected but TWILIO_* settings are incomplete")


def validate_settings(settings: Settings) -> None:
    validate_jwt_secret(settings)
    validate_database_url(settings)
    validate_providers(settings)
