"""Client-side rate limit tracking for the Jupiter APIs.

Jupiter enforces per-IP (or per-API-key) request quotas. The bot polls
prices every few seconds and only quotes/swaps on crossings, so a single
sliding window per client is enough.

This module provides a sliding window rate limiter with exponential backoff
support for handling 429 responses.

Reference: https://dev.jup.ag/docs/api-rate-limit
"""

import asyncio
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Callable


@dataclass
class RateLimitConfig:
    """Configuration for Jupiter rate limits.

    Attributes:
        max_requests: Maximum requests per window (default: 60)
        window_seconds: Sliding window size in seconds (default: 60.0)
        backoff_base: Base delay in seconds for exponential backoff (default: 1.0)
        max_backoff: Maximum backoff delay in seconds (default: 60.0)
    """

    max_requests: int = 60
    window_seconds: float = 60.0
    backoff_base: float = 1.0
    max_backoff: float = 60.0


@dataclass
class RateLimiter:
    """Track and enforce a client-side request rate.

    Uses a sliding window of request timestamps to determine available
    capacity. Supports exponential backoff when the API answers HTTP 429.

    Example:
        limiter = RateLimiter()

        await limiter.acquire()
        response = await client.get(...)
        if response.status_code == 429:
            limiter.record_rate_limit_hit()
        else:
            limiter.record_success()
    """

    config: RateLimitConfig = field(default_factory=RateLimitConfig)
    clock: Callable[[], float] = field(default=time.monotonic, repr=False)
    _timestamps: deque = field(default_factory=deque, init=False)
    _backoff_until: float = field(default=0.0, init=False)
    _consecutive_429s: int = field(default=0, init=False)

    def can_request(self) -> bool:
        """Check if a request can be made now."""
        now = self.clock()
        if now < self._backoff_until:
            return False
        self._cleanup_old_timestamps(now)
        return len(self._timestamps) < self.config.max_requests

    def record_request(self) -> None:
        """Record a request timestamp."""
        self._timestamps.append(self.clock())

    def wait_time(self) -> float:
        """Calculate seconds to wait before the next request is allowed.

        Returns:
            Seconds to wait (0.0 if a request can be made now)
        """
        now = self.clock()

        if now < self._backoff_until:
            return self._backoff_until - now

        self._cleanup_old_timestamps(now)
        if len(self._timestamps) < self.config.max_requests:
            return 0.0

        available_at = self._timestamps[0] + self.config.window_seconds
        return max(0.0, available_at - now)

    async def acquire(self) -> None:
        """Wait for a request slot, then record the request."""
        wait = self.wait_time()
        if wait > 0:
            await asyncio.sleep(wait)
        self.record_request()

    def record_rate_limit_hit(self) -> None:
        """Record a 429 response, activating exponential backoff.

        Each consecutive 429 doubles the backoff delay.
        """
        self._consecutive_429s += 1
        backoff_seconds = min(
            self.config.backoff_base * (2 ** (self._consecutive_429s - 1)),
            self.config.max_backoff,
        )
        self._backoff_until = self.clock() + backoff_seconds

    def record_success(self) -> None:
        """Record a non-429 response, resetting the consecutive 429 counter."""
        self._consecutive_429s = 0

    def get_backoff_remaining(self) -> float:
        """Seconds remaining in the backoff period (0.0 if not in backoff)."""
        return max(0.0, self._backoff_until - self.clock())

    def reset(self) -> None:
        """Reset all rate limit state."""
        self._timestamps.clear()
        self._backoff_until = 0.0
        self._consecutive_429s = 0

    def _cleanup_old_timestamps(self, now: float) -> None:
        """Remove timestamps outside the sliding window."""
        window_start = now - self.config.window_seconds
        while self._timestamps and self._timestamps[0] < window_start:
            self._timestamps.popleft()
