"""
SMS senders and provider selection
"""
import logging
from unittest.mock import MagicMock, patch

import pytest
from twilio.base.exceptions import TwilioRestException

from roomauth.services.auth.sms import ConsoleSmsSender, TwilioSmsSender, build_sms_sender
from tests.helpers.auth_setup import make_settings

PHONE = "+911234567890"


@pytest.mark.asyncio
async def test_console_sender_logs_masked_phone(caplog):
    with caplog.at_level(logging.INFO, logger="roomauth.services.auth.sms"):
        assert await ConsoleSmsSender().send(PHONE, "RoomMitra code: 123456. Expires in 5 minutes.") is True

    assert "***7890" in caplog.text
    assert PHONE not in caplog.text


@pytest.mark.asyncio
async def test_twilio_sender_success():
    with patch("roomauth.services.auth.sms.Client") as client_cls:
        client_cls.return_value.messages.create.return_value = MagicMock(sid="SM123")
        sender = TwilioSmsSender("AC123", "token", "+15005550006")

        assert await sender.send(PHONE, "hello") is True

    client_cls.return_value.messages.create.assert_called_once_with(
        body="hello", from_="+15005550006", to=PHONE
    )


@pytest.mark.asyncio
async def test_twilio_sender_failure_returns_false():
    with patch("roomauth.services.auth.sms.Client") as client_cls:
        client_cls.return_value.messages.create.side_effect = TwilioRestException(400, "uri", "bad number")
        sender = TwilioSmsSender("AC123", "token", "+15005550006")

        assert await sender.send(PHONE, "hello") is False


def test_twilio_requires_configuration():
    with pytest.raises(ValueError):
        TwilioSmsSender("", "", "+15005550006")
    with pytest.raises(ValueError):
        TwilioSmsSender("AC123", "token", "")


def test_build_sms_sender():
    assert isinstance(build_sms_sender(make_settings(SMS_PROVIDER="console")), ConsoleSmsSender)

    with patch("roomauth.services.auth.sms.Client"):
        sender = build_sms_sender(
            make_settings(
                SMS_PROVIDER="twilio",
                TWILIO_ACCOUNT_SID="AC123",
                TWILIO_AUTH_TOKEN="token",
                TWILIO_FROM_NUMBER="+15005550006",
            )
        )
    assert isinstance(sender, TwilioSmsSender)

    with pytest.raises(ValueError):
        build_sms_sender(make_settings(SMS_PROVIDER="carrier-pigeon"))
