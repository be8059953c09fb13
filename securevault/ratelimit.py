"""Per-client token-bucket rate limiting."""

from __future__ import annotations

import threading
import time
from typing import Optional


class TokenBucket:
    """A bucket refilled at ``rate`` tokens per second, holding at most ``burst``."""

    def __init__(self, rate: float = 1.0, burst: int = 5) -> None:
        self.rate = rate
        self.burst = burst
        self.tokens = float(burst)
        self.last: Optional[float] = None

    def allow(self, now: Optional[float] = None) -> bool:
        """Take one token if available at time ``now`` (seconds)."""
        now = time.monotonic() if now is None else now
        if self.last is None or now > self.last:
            if self.last is not None:
                self.tokens = min(float(self.burst), self.tokens + (now - self.last) * self.rate)
            self.last = now
        if self.tokens >= 1.0:
            self.tokens -= 1.0
            return True
        return False


class RateLimiter:
    """A set of token buckets, one per client key."""

    def __init__(self, rate: float = 1.0, burst: int = 5) -> None:
        self.rate = rate
        self.burst = burst
        self._buckets: dict[str, TokenBucket] = {}
        self._lock = threading.Lock()

    def allow(self, key: str, now: Optional[float] = None) -> bool:
        """Report whether a request from ``key`` may proceed at time ``now``."""
        with self._lock:
            bucket = self._buckets.setdefault(key, TokenBucket(self.rate, self.burst))
            return bucket.allow(now)