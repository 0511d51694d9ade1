from datetime import datetime, timezone
from typing import Callable

# Services take a clock so tests can move time; timestamps are naive UTC
Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)
