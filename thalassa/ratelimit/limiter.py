"""
Rate limiting implementation for the Thalassa Cloud client.
"""

import asyncio
import logging
import threading
import time
from abc import ABC, abstractmethod
from typing import Callable, Optional

from ..errors import ErrorSource, RequestTimeoutError

logger = logging.getLogger(__name__)


class RateLimiter(ABC):
    """Abstract base class for client-side rate limiting"""

    @abstractmethod
    async def acquire(self, timeout: Optional[float] = None) -> None:
        """Wait until a request may proceed"""
        pass

    @abstractmethod
    def try_acquire(self) -> bool:
        """Take a token if one is available right now"""
        pass

    async def close(self) -> None:
        """Close the rate limiter and release resources"""
        pass


class UnlimitedLimiter(RateLimiter):
    """Limiter used when no rate limit is configured"""

    async def acquire(self, timeout: Optional[float] = None) -> None:
        return None

    def try_acquire(self) -> bool:
        return True


class TokenBucketRateLimiter(RateLimiter):
    """
    Token bucket rate limiter.

    The bucket holds up to ``burst`` tokens and refills at ``rate`` tokens per
    second. ``acquire`` reserves a token immediately, letting the balance go
    negative, and then sleeps until the reservation is covered. A cancelled
    wait gives its token back.
    """

    def __init__(
        self,
        rate: float,
        burst: int,
        clock: Callable[[], float] = time.monotonic,
    ):
        if rate <= 0:
            raise ValueError("rate must be positive")
        if burst < 1:
            raise ValueError("burst must be at least 1")
        self.rate = float(rate)
        self.burst = int(burst)
        self._clock = clock
        self._tokens = float(self.burst)
        self._last_update = clock()
        self._lock = threading.Lock()

    def _advance(self, now: float) -> None:
        elapsed = max(0.0, now - self._last_update)
        self._tokens = min(float(self.burst), self._tokens + elapsed * self.rate)
        self._last_update = now

    def _reserve(self, max_wait: Optional[float]) -> Optional[float]:
        """Reserve one token and return how long to wait, or None if the wait exceeds max_wait"""
        with self._lock:
            self._advance(self._clock())
            tokens = self._tokens - 1.0
            wait = 0.0 if tokens >= 0 else -tokens / self.rate
            if max_wait is not None and wait > max_wait:
                return None
            self._tokens = tokens
            return wait

    def _cancel_reservation(self) -> None:
        with self._lock:
            self._advance(self._clock())
            self._tokens = min(float(self.burst), self._tokens + 1.0)

    @property
    def tokens(self) -> float:
        """Tokens currently available (negative when callers are queued)"""
        with self._lock:
            self._advance(self._clock())
            return self._tokens

    def try_acquire(self) -> bool:
        """Take a token without waiting"""
        return self._reserve(0.0) is not None

    async def acquire(self, timeout: Optional[float] = None) -> None:
        """
        Block until a token is available.

        Args:
            timeout: Longest the caller is willing to wait, in seconds

        Raises:
            RequestTimeoutError: The wait would exceed ``timeout``
            asyncio.CancelledError: The calling task was cancelled while waiting
        """
        wait = self._reserve(timeout)
        if wait is None:
            raise RequestTimeoutError(
                f"rate limiter wait would exceed the deadline ({timeout:.3f}s)",
                source=ErrorSource.RATE_LIMITER
            )
        if wait <= 0:
            return

        logger.debug(f"Rate limit reached, waiting {wait:.3f}s for a token")
        try:
            await asyncio.sleep(wait)
        except asyncio.CancelledError:
            self._cancel_reservation()
            raise


def create_rate_limiter(rate: Optional[float] = None, burst: Optional[int] = None) -> RateLimiter:
    """
    Factory function to create rate limiters

    Args:
        rate: Steady-state requests per second; ``None`` or 0 disables limiting
        burst: Bucket capacity; defaults to ``max(1, int(rate))``

    Returns:
        RateLimiter instance
    """
    if not rate:
        return UnlimitedLimiter()
    if burst is None:
        burst = max(1, int(rate))
    return TokenBucketRateLimiter(rate, burst)
