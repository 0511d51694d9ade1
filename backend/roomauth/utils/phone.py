"""
Phone number normalization and validation utilities
"""
import re

import phonenumbers
from phonenumbers import NumberParseException, PhoneNumberFormat

from ..core.errors import ValidationError

_SEPARATORS = re.compile(r"[\s\-().]")


def normalize_phone(phone: str, default_region: str = "IN") -> str:
    """
    Normalize phone number to E.164 format.

    Args:
        phone: Phone number string (spaces, dashes and brackets allowed)
        default_region: Region used when the number has no country code

    Returns:
        Normalized phone number in E.164 format (e.g., +911234567890)

    Raises:
        ValidationError: If the phone is empty or not a possible number
    """
    cleaned = _SEPARATORS.sub("", (phone or "").strip())
    if not cleaned:
        raise ValidationError("Phone number is required.", field="phone")

    try:
        parsed = phonenumbers.parse(cleaned, default_region)
    except NumberParseException as e:
        raise ValidationError(f"Invalid phone number format: {e}", field="phone")

    if not phonenumbers.is_possible_number(parsed):
        raise ValidationError("Invalid phone number.", field="phone")

    return phonenumbers.format_number(parsed, PhoneNumberFormat.E164)


def get_phone_last4(phone: str) -> str:
    """
    Get last 4 digits of phone number for safe logging.

    Returns the full digit string when it has fewer than 4 digits.
    """
    digits = "".join(filter(str.isdigit, phone or ""))
    if len(digits) >= 4:
        return digits[-4:]
    return digits


def mask_phone(phone: str) -> str:
    return f"***{get_phone_last4(phone)}"
