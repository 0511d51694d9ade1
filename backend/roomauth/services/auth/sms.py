"""
SMS send channel for OTP codes
"""
import asyncio
import logging
from abc import ABC, abstractmethod

from twilio.base.exceptions import TwilioException
from twilio.rest import Client

from ...core.config import Settings
from ...utils.phone import get_phone_last4

logger = logging.getLogger(__name__)


class SmsSender(ABC):
    """Abstract base class for SMS senders. Implementations do not retry."""

    @abstractmethod
    async def send(self, phone: str, message: str) -> bool:
        """
        Send a text message.

        Args:
            phone: Normalized phone number in E.164 format
            message: Message body

        Returns:
            True if the message was accepted by the provider
        """
        pass


class ConsoleSmsSender(SmsSender):
    """
    Dev sender: logs the message instead of sending it.

    Refused in production by startup validation.
    """

    async def send(self, phone: str, message: str) -> bool:
        logger.info(f"[OTP][ConsoleSMS] To ***{get_phone_last4(phone)}: {message}")
        return True


class TwilioSmsSender(SmsSender):
    """Twilio direct SMS sender"""

    def __init__(self, account_sid: str, auth_token: str, from_number: str):
        if not account_sid or not auth_token:
            raise ValueError("Twilio credentials not configured")
        if not from_number:
            raise ValueError("TWILIO_FROM_NUMBER not configured for SMS provider")

        self.client = Client(account_sid, auth_token)
        self.from_number = from_number

    async def send(self, phone: str, message: str) -> bool:
        try:
            # Twilio client is blocking
            result = await asyncio.to_thread(
                self.client.messages.create,
                body=message,
                from_=self.from_number,
                to=phone,
            )
        except TwilioException as e:
            logger.error(f"[OTP][TwilioSMS] Failed to send SMS to ***{get_phone_last4(phone)}: {e}")
            return False

        logger.info(f"[OTP][TwilioSMS] SMS sent to ***{get_phone_last4(phone)}, SID: {result.sid}")
        return True


def build_sms_sender(settings: Settings) -> SmsSender:
    """Get SMS sender based on configuration"""
    provider = settings.SMS_PROVIDER.lower()

    if provider == "twilio":
        sender = TwilioSmsSender(
            settings.TWILIO_ACCOUNT_SID,
            settings.TWILIO_AUTH_TOKEN,
            settings.TWILIO_FROM_NUMBER,
        )
        logger.info("[OTP] Using Twilio SMS sender")
        return sender

    if provider == "console":
        logger.info("[OTP] Using console SMS sender")
        return ConsoleSmsSender()

    raise ValueError(f"Unknown SMS provider: {provider}. Must be one of: twilio, console")
