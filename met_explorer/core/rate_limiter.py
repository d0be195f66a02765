"""Rate limiting for outbound Met collection API calls.

The Met API allows roughly 80 requests per second.  Every outbound call made
by the package, whether a search page, an object detail or an image, goes
through a single shared ``RateLimiter`` so concurrent hydration workers never
push the combined call rate past that ceiling.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

logger = logging.getLogger(__name__)

MET_API_RATE_LIMIT_PER_SECOND = 80


@dataclass
class RateLimitConfig:
    """Configuration for a fixed-window rate limit."""

    max_calls_per_window: int = MET_API_RATE_LIMIT_PER_SECOND
    window_seconds: float = 1.0
    enabled: bool = True

    def __post_init__(self) -> None:
        if self.max_calls_per_window < 1:
            raise ValueError("max_calls_per_window must be at least 1")
        if self.window_seconds <= 0:
            raise ValueError("window_seconds must be positive")


class RateLimiter:
    """Fixed-window limiter shared by every outbound caller.

    Acquisitions are serialized through an ``asyncio.Lock``.  Waiters on the
    lock are woken in FIFO order, so callers are admitted in the order they
    asked and the check-and-increment of ``calls_in_window`` can never be
    observed by two callers at once.
    """

    def __init__(
        self,
        config: Optional[RateLimitConfig] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize rate limiter.

        Args:
            config: Window size and ceiling (defaults to 80 calls per second)
            clock: Monotonic time source, replaceable in tests
        """
        self.config = config or RateLimitConfig()
        self._clock = clock
        self.window_start = clock()
        self.calls_in_window = 0
        self._lock = asyncio.Lock()
        self.logger = logging.getLogger(self.__class__.__name__)

        # Statistics
        self._requests = 0
        self._total_wait = 0.0

    @property
    def max_calls_per_window(self) -> int:
        return self.config.max_calls_per_window

    async def acquire_slot(self) -> float:
        """Wait until it is safe to issue one call.

        Returns:
            Time waited in seconds
        """
        if not self.config.enabled:
            return 0.0

        start = self._clock()
        async with self._lock:
            window = self.config.window_seconds
            now = self._clock()

            if now - self.window_start >= window:
                self.calls_in_window = 0
                self.window_start = now

            if self.calls_in_window >= self.config.max_calls_per_window:
                wait_time = window - (now - self.window_start)
                self.logger.debug(
                    "Rate limit of %d per %.1fs reached, waiting %.3fs",
                    self.config.max_calls_per_window,
                    window,
                    wait_time,
                )
                if wait_time > 0:
                    await asyncio.sleep(wait_time)
                self.calls_in_window = 0
                self.window_start = self._clock()

            self.calls_in_window += 1

        waited = self._clock() - start
        self._requests += 1
        self._total_wait += waited

        if waited > 0.1:  # Log significant waits
            self.logger.debug("Rate limited: waited %.2fs", waited)

        return waited

    def get_stats(self) -> Dict[str, float]:
        """Get rate limiting statistics."""
        return {
            "requests": self._requests,
            "total_wait_seconds": round(self._total_wait, 3),
            "avg_wait_seconds": (
                round(self._total_wait / self._requests, 3) if self._requests > 0 else 0
            ),
            "calls_in_window": self.calls_in_window,
        }

    def reset_stats(self) -> None:
        """Reset statistics."""
        self._requests = 0
        self._total_wait = 0.0


# Global rate limiter instance
_rate_limiter: Optional[RateLimiter] = None


def get_rate_limiter() -> RateLimiter:
    """Get or create the global rate limiter instance."""
    global _rate_limiter
    if _rate_limiter is None:
        _rate_limiter = RateLimiter()
    return _rate_limiter


def set_rate_limiter(limiter: Optional[RateLimiter]) -> None:
    """Set (or clear, with ``None``) the global rate limiter instance."""
    global _rate_limiter
    _rate_limiter = limiter
