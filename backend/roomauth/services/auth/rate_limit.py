"""
Rate limiting service for OTP authentication
Redis-backed with in-memory fallback
"""
import logging
import time
from collections import defaultdict
from typing import Callable, Dict, List, Optional, Tuple

import redis

from ...core.config import RateLimitSettings, Settings

logger = logging.getLogger(__name__)


class RateLimitEntry:
    """Rate limit entry for a phone or IP"""

    def __init__(self):
        self.attempts: List[float] = []  # Timestamps of attempts
        self.locked_until: Optional[float] = None  # Timestamp when lockout expires


class RateLimitService:
    """
    Sliding-window rate limiting for OTP request and verify.

    Limits (defaults, see RateLimitSettings):
    - request: max 5 / min per phone, max 20 / min per IP
    - verify: max 10 rejected attempts / min per phone
    - Lockout: 5 min after too many verify failures (per phone)

    The resend cooldown is enforced against the OTP ledger, not here. The
    in-memory fallback is per-process; run Redis when more than one worker
    serves traffic.
    """

    def __init__(
        self,
        settings: RateLimitSettings,
        redis_client: Optional["redis.Redis"] = None,
        time_func: Callable[[], float] = time.time,
    ):
        self.settings = settings
        self._redis = redis_client
        self._time = time_func
        self._request_phone: Dict[str, RateLimitEntry] = defaultdict(RateLimitEntry)
        self._request_ip: Dict[str, RateLimitEntry] = defaultdict(RateLimitEntry)
        self._verify_phone: Dict[str, RateLimitEntry] = defaultdict(RateLimitEntry)
        self._cleanup_interval = 3600  # Cleanup old entries every hour
        self._last_cleanup = self._time()

    def _count_redis(self, key: str, window_seconds: int) -> Optional[int]:
        """Count attempts in window using a Redis sorted set. Returns None if Redis unavailable."""
        if not self._redis:
            return None

        try:
            now = self._time()
            pipe = self._redis.pipeline()
            pipe.zremrangebyscore(key, 0, now - window_seconds)
            pipe.zcard(key)
            pipe.expire(key, window_seconds)
            _, count, _ = pipe.execute()
            return count
        except redis.RedisError as e:
            logger.warning(f"Redis rate limit check failed, using fallback: {e}")
            return None

    def _record_redis(self, key: str, timestamp: float, window_seconds: int):
        if not self._redis:
            return

        try:
            pipe = self._redis.pipeline()
            pipe.zadd(key, {str(timestamp): timestamp})
            pipe.zremrangebyscore(key, 0, timestamp - window_seconds)
            pipe.expire(key, window_seconds)
            pipe.execute()
        except redis.RedisError as e:
            logger.warning(f"Redis attempt record failed: {e}")

    def _get_lockout_redis(self, key: str) -> Optional[float]:
        if not self._redis:
            return None

        try:
            value = self._redis.get(key)
            return float(value) if value else None
        except redis.RedisError as e:
            logger.warning(f"Redis lockout read failed: {e}")
            return None

    def _set_lockout_redis(self, key: str, expiry_seconds: int):
        if not self._redis:
            return

        try:
            self._redis.setex(key, expiry_seconds, str(self._time() + expiry_seconds))
        except redis.RedisError as e:
            logger.warning(f"Redis lockout set failed: {e}")

    def _clear_redis(self, *keys: str):
        if not self._redis:
            return

        try:
            self._redis.delete(*keys)
        except redis.RedisError as e:
            logger.warning(f"Redis key delete failed: {e}")

    @staticmethod
    def _count_memory(entry: RateLimitEntry, window_start: float) -> int:
        entry.attempts = [ts for ts in entry.attempts if ts > window_start]
        return len(entry.attempts)

    def _cleanup_old_entries(self):
        """Remove entries with no activity inside any window"""
        now = self._time()
        if now - self._last_cleanup < self._cleanup_interval:
            return

        longest_window = max(self.settings.request_window_seconds, self.settings.verify_window_seconds)
        cutoff = now - longest_window
        for store in (self._request_phone, self._request_ip, self._verify_phone):
            stale = [
                key for key, entry in store.items()
                if all(ts <= cutoff for ts in entry.attempts)
                and (not entry.locked_until or entry.locked_until < now)
            ]
            for key in stale:
                del store[key]

        self._last_cleanup = now

    def _locked_until(self, phone: str) -> Optional[float]:
        locked_until = self._get_lockout_redis(f"rate_limit:lockout:phone:{phone}")
        if locked_until is None:
            locked_until = self._verify_phone[phone].locked_until
        return locked_until

    def check_request(self, phone: str, ip: Optional[str]) -> Tuple[bool, Optional[str]]:
        """
        Check if an OTP request is allowed.

        Args:
            phone: Normalized phone number
            ip: Client IP address (may be None outside HTTP)

        Returns:
            Tuple of (allowed, error_message)
        """
        self._cleanup_old_entries()
        now = self._time()
        window = self.settings.request_window_seconds

        count = self._count_redis(f"rate_limit:request:phone:{phone}", window)
        if count is None:
            count = self._count_memory(self._request_phone[phone], now - window)
        if count >= self.settings.request_limit_phone:
            return False, "Too many OTP requests. Please wait before requesting a new code."

        locked_until = self._locked_until(phone)
        if locked_until and locked_until > now:
            remaining = int(locked_until - now)
            return False, f"Phone number is temporarily locked. Please try again in {remaining} seconds."

        if ip:
            count = self._count_redis(f"rate_limit:request:ip:{ip}", window)
            if count is None:
                count = self._count_memory(self._request_ip[ip], now - window)
            if count >= self.settings.request_limit_ip:
                return False, "Too many OTP requests from this IP. Please wait before requesting a new code."

        return True, None

    def record_request(self, phone: str, ip: Optional[str]):
        """Record an OTP request"""
        now = self._time()
        window = self.settings.request_window_seconds
        self._record_redis(f"rate_limit:request:phone:{phone}", now, window)
        self._request_phone[phone].attempts.append(now)
        if ip:
            self._record_redis(f"rate_limit:request:ip:{ip}", now, window)
            self._request_ip[ip].attempts.append(now)

    def check_verify(self, phone: str) -> Tuple[bool, Optional[str]]:
        """
        Check if an OTP verify attempt is allowed.

        Returns:
            Tuple of (allowed, error_message)
        """
        self._cleanup_old_entries()
        now = self._time()

        locked_until = self._locked_until(phone)
        if locked_until and locked_until > now:
            remaining = int(locked_until - now)
            return False, f"Phone number is temporarily locked. Please try again in {remaining} seconds."

        window = self.settings.verify_window_seconds
        count = self._count_redis(f"rate_limit:verify:phone:{phone}", window)
        if count is None:
            count = self._count_memory(self._verify_phone[phone], now - window)
        if count >= self.settings.verify_limit_phone:
            self._lock(phone, now)
            return False, "Too many verification attempts. Phone number is temporarily locked."

        return True, None

    def record_verify(self, phone: str, success: bool):
        """
        Record an OTP verify attempt.

        A success clears the phone's failures and lockout; a failure counts
        toward the verify limit and locks the phone once the limit is reached.
        """
        now = self._time()
        entry = self._verify_phone[phone]
        verify_key = f"rate_limit:verify:phone:{phone}"
        lockout_key = f"rate_limit:lockout:phone:{phone}"

        if success:
            entry.attempts = []
            entry.locked_until = None
            self._clear_redis(verify_key, lockout_key)
            return

        window = self.settings.verify_window_seconds
        self._record_redis(verify_key, now, window)
        entry.attempts.append(now)
        if self._count_memory(entry, now - window) >= self.settings.verify_limit_phone:
            self._lock(phone, now)

    def _lock(self, phone: str, now: float):
        lockout = self.settings.lockout_seconds
        self._verify_phone[phone].locked_until = now + lockout
        self._set_lockout_redis(f"rate_limit:lockout:phone:{phone}", lockout)
        logger.warning(f"[OTP] Verify lockout for {lockout}s")

    def is_locked_out(self, phone: str) -> bool:
        """Check if phone number is currently locked out"""
        locked_until = self._locked_until(phone)
        return locked_until is not None and locked_until > self._time()


def build_rate_limit_service(settings: Settings) -> RateLimitService:
    """Create the rate limiter, backed by Redis when REDIS_URL is set and reachable"""
    redis_client = None
    if settings.REDIS_URL:
        try:
            redis_client = redis.from_url(
                settings.REDIS_URL,
                decode_responses=True,
                socket_connect_timeout=3,
                socket_timeout=3,
            )
            redis_client.ping()
            logger.info("Redis rate limiting enabled")
        except redis.RedisError as e:
            logger.warning(f"Failed to initialize Redis for rate limiting, using in-memory fallback: {e}")
            redis_client = None
    return RateLimitService(settings.rate_limit, redis_client=redis_client)
