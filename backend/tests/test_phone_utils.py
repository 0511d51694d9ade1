"""
Phone and email normalization helpers
"""
import pytest

from roomauth.core.errors import ValidationError
from roomauth.utils.email import normalize_email, validate_email_address
from roomauth.utils.phone import get_phone_last4, mask_phone, normalize_phone


@pytest.mark.parametrize(
    "raw",
    ["+911234567890", "+91 12345 67890", "+91-12345-67890", "(+91) 12345.67890", "1234567890", "  1234567890 "],
)
def test_normalize_phone_to_e164(raw):
    assert normalize_phone(raw) == "+911234567890"


def test_default_region_applies_to_national_numbers():
    assert normalize_phone("(415) 555-2671", default_region="US") == "+14155552671"


@pytest.mark.parametrize("raw", ["", "   ", None])
def test_empty_phone(raw):
    with pytest.raises(ValidationError) as exc_info:
        normalize_phone(raw)
    assert exc_info.value.message == "Phone number is required."
    assert exc_info.value.field == "phone"


@pytest.mark.parametrize("raw", ["abc", "+91 12", "12"])
def test_invalid_phone(raw):
    with pytest.raises(ValidationError):
        normalize_phone(raw)


def test_last4_and_mask():
    assert get_phone_last4("+911234567890") == "7890"
    assert get_phone_last4("+12") == "12"
    assert mask_phone("+911234567890") == "***7890"


def test_normalize_email():
    assert normalize_email("  Ann@Example.COM ") == "ann@example.com"
    assert normalize_email(None) is None
    assert normalize_email("   ") is None


def test_validate_email_address():
    assert validate_email_address("Ann@Example.com") == "ann@example.com"
    with pytest.raises(ValidationError) as exc_info:
        validate_email_address("ann@")
    assert exc_info.value.field == "email"
