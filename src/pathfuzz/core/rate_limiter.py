"""
Rate Limiter - Shared dispatch gate and retry backoff policy.

The gate enforces a minimum spacing between dispatches across all
workers. Each caller reserves the next free slot under a short lock and
then sleeps outside of it, so a waiting worker never holds up the others
beyond the reservation itself.
"""

import asyncio
import random
import time
from dataclasses import dataclass
from typing import Optional

import structlog


@dataclass
class RetryPolicy:
    """Retry policy for transient failures (connect errors, timeouts)"""
    max_retries: int = 2     # Retries after the first attempt
    base_delay: float = 0.5  # Backoff before the first retry (seconds)
    max_delay: float = 10.0  # Backoff cap (seconds)
    jitter: float = 0.0      # Random extra delay, fraction of the backoff

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def backoff(self, attempt: int) -> float:
        """
        Delay before retrying after the given (1-based) failed attempt.

        Exponential: base, 2*base, 4*base, ... capped at max_delay.
        """
        delay = min(self.max_delay, self.base_delay * (2 ** max(0, attempt - 1)))
        if self.jitter > 0:
            delay += random.uniform(0, delay * self.jitter)
        return delay


class RateLimiter:
    """
    Fixed-interval dispatch gate shared by all workers.

    A rate of N milliseconds means consecutive dispatches are at least
    N ms apart. With no interval configured ``acquire()`` is a no-op.

    Example:
        >>> limiter = RateLimiter(interval_ms=100)
        >>> await limiter.acquire()  # Wait for the next dispatch slot
    """

    def __init__(self, interval_ms: Optional[float] = None):
        """
        Initialize the rate limiter.

        Args:
            interval_ms: Minimum spacing between dispatches (None/0 = unlimited)
        """
        self.interval = (interval_ms or 0) / 1000.0
        self.request_count = 0
        self.total_wait = 0.0
        self.last_request_time: Optional[float] = None
        self._next_slot = 0.0
        self._lock = asyncio.Lock()

        self.logger = structlog.get_logger(__name__)

        self.logger.info(
            "rate_limiter_initialized",
            interval_ms=interval_ms or 0,
            enabled=self.enabled,
        )

    @property
    def enabled(self) -> bool:
        return self.interval > 0

    async def acquire(self):
        """
        Wait until the calling worker may dispatch.

        The slot is reserved under the lock; the sleep happens outside it.
        """
        if not self.enabled:
            self.request_count += 1
            return

        async with self._lock:
            now = time.monotonic()
            slot = max(now, self._next_slot)
            self._next_slot = slot + self.interval
            self.request_count += 1

        delay = slot - now
        if delay > 0:
            self.total_wait += delay
            await asyncio.sleep(delay)

        self.last_request_time = time.monotonic()

    def reset(self):
        """Reset the limiter to its initial state"""
        self.request_count = 0
        self.total_wait = 0.0
        self.last_request_time = None
        self._next_slot = 0.0

        self.logger.info("rate_limiter_reset")

    def get_stats(self) -> dict:
        """
        Get rate limiter statistics.

        Returns:
            Dictionary with current statistics
        """
        return {
            "interval_ms": self.interval * 1000.0,
            "request_count": self.request_count,
            "total_wait": f"{self.total_wait:.2f}s",
        }
