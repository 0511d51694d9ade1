from typing import Optional

from email_validator import EmailNotValidError, validate_email

from ..core.errors import ValidationError


def normalize_email(email: Optional[str]) -> Optional[str]:
    """Lower-case and strip an email; blank values become None."""
    if email is None:
        return None
    cleaned = email.strip().lower()
    return cleaned or None


def validate_email_address(email: str) -> str:
    """
    Check email syntax and return the normalized (lower-cased) address.

    Deliverability (DNS) is not checked.
    """
    cleaned = normalize_email(email)
    if not cleaned:
        raise ValidationError("Email is required.", field="email")
    try:
        validate_email(cleaned, check_deliverability=False)
    except EmailNotValidError as e:
        raise ValidationError(f"Invalid email address: {e}", field="email")
    return cleaned
