"""
OTP rate limiting: sliding windows, verify lockout, Redis fallback
"""
from unittest.mock import MagicMock

import pytest
import redis

from roomauth.core.config import RateLimitSettings
from roomauth.services.auth.rate_limit import RateLimitService

PHONE = "+911234567890"


class FakeTime:
    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


@pytest.fixture
def fake_time():
    return FakeTime()


@pytest.fixture
def limiter(fake_time):
    return RateLimitService(RateLimitSettings(), time_func=fake_time)


class TestRequestLimits:
    def test_phone_limit_per_window(self, limiter, fake_time):
        for _ in range(5):
            assert limiter.check_request(PHONE, "10.0.0.1") == (True, None)
            limiter.record_request(PHONE, "10.0.0.1")

        allowed, message = limiter.check_request(PHONE, "10.0.0.1")
        assert allowed is False
        assert "Too many OTP requests" in message

        fake_time.advance(61)
        assert limiter.check_request(PHONE, "10.0.0.1")[0] is True

    def test_ip_limit_across_phones(self, limiter):
        for i in range(20):
            phone = f"+9112345678{i:02d}"
            assert limiter.check_request(phone, "10.0.0.1")[0] is True
            limiter.record_request(phone, "10.0.0.1")

        allowed, message = limiter.check_request("+919999999999", "10.0.0.1")
        assert allowed is False
        assert "IP" in message
        assert limiter.check_request("+919999999999", "10.0.0.2")[0] is True

    def test_missing_ip_only_limits_phone(self, limiter):
        limiter.record_request(PHONE, None)
        assert limiter.check_request(PHONE, None) == (True, None)


class TestVerifyLimits:
    def test_lockout_after_verify_failures(self, limiter, fake_time):
        for _ in range(10):
            assert limiter.check_verify(PHONE)[0] is True
            limiter.record_verify(PHONE, success=False)

        assert limiter.is_locked_out(PHONE) is True
        allowed, message = limiter.check_verify(PHONE)
        assert allowed is False
        assert "temporarily locked" in message

        # Lockout also blocks requesting a fresh code
        assert limiter.check_request(PHONE, None)[0] is False

        fake_time.advance(301)
        assert limiter.is_locked_out(PHONE) is False
        assert limiter.check_verify(PHONE)[0] is True

    def test_success_clears_failures(self, limiter):
        for _ in range(9):
            limiter.record_verify(PHONE, success=False)
        limiter.record_verify(PHONE, success=True)

        limiter.record_verify(PHONE, success=False)
        assert limiter.is_locked_out(PHONE) is False

    def test_failures_outside_window_expire(self, limiter, fake_time):
        for _ in range(9):
            limiter.record_verify(PHONE, success=False)
        fake_time.advance(61)
        limiter.record_verify(PHONE, success=False)
        assert limiter.is_locked_out(PHONE) is False

    def test_phones_are_independent(self, limiter):
        for _ in range(10):
            limiter.record_verify(PHONE, success=False)
        assert limiter.is_locked_out(PHONE) is True
        assert limiter.is_locked_out("+919876543210") is False


class TestRedisBackend:
    def test_uses_redis_counts(self, fake_time):
        client = MagicMock()
        client.pipeline.return_value.execute.return_value = [0, 5, True]
        client.get.return_value = None
        limiter = RateLimitService(RateLimitSettings(), redis_client=client, time_func=fake_time)

        allowed, _ = limiter.check_request(PHONE, None)
        assert allowed is False

    def test_falls_back_to_memory_on_redis_error(self, fake_time):
        client = MagicMock()
        client.pipeline.return_value.execute.side_effect = redis.ConnectionError("down")
        client.get.side_effect = redis.ConnectionError("down")
        limiter = RateLimitService(RateLimitSettings(), redis_client=client, time_func=fake_time)

        assert limiter.check_request(PHONE, None) == (True, None)
        limiter.record_request(PHONE, None)
        assert limiter.check_request(PHONE, None) == (True, None)
