from .identity import (
    AUTH_PROVIDER_EXTERNAL,
    AUTH_PROVIDER_PASSWORD,
    AUTH_PROVIDER_PHONE,
    Identity,
)
from .otp_challenge import OTPChallenge

__all__ = [
    "Identity",
    "OTPChallenge",
    "AUTH_PROVIDER_PASSWORD",
    "AUTH_PROVIDER_PHONE",
    "AUTH_PROVIDER_EXTERNAL",
]
