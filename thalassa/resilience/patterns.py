"""
Retry patterns with configurable backoff.
"""

import asyncio
import inspect
import logging
import random
from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum
from typing import Any, Callable, FrozenSet, List, Optional, Type

logger = logging.getLogger(__name__)

DEFAULT_RETRYABLE_STATUS_CODES = frozenset({429, 502, 503, 504})


class BackoffStrategy(Enum):
    """How the delay grows between attempts."""
    EXPONENTIAL = "exponential"
    LINEAR = "linear"
    FIXED = "fixed"


@dataclass
class RetryConfig:
    """
    Retry configuration.

    ``max_retries`` counts retries after the first attempt, so a request is
    sent at most ``max_retries + 1`` times.
    """
    max_retries: int = 0
    min_backoff: timedelta = field(default_factory=lambda: timedelta(milliseconds=100))
    max_backoff: timedelta = field(default_factory=lambda: timedelta(seconds=2))
    strategy: BackoffStrategy = BackoffStrategy.EXPONENTIAL
    multiplier: float = 2.0
    jitter: bool = True
    retryable_status_codes: FrozenSet[int] = DEFAULT_RETRYABLE_STATUS_CODES
    retryable_exceptions: List[Type[BaseException]] = field(default_factory=lambda: [Exception])

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1


class Retry:
    """Retry handler with configurable backoff strategies."""

    def __init__(
        self,
        config: RetryConfig,
        should_retry_result: Optional[Callable[[Any], bool]] = None,
        should_retry_exception: Optional[Callable[[BaseException], bool]] = None,
        delay_hint: Optional[Callable[[Any], Optional[float]]] = None,
    ):
        self.config = config
        self._should_retry_result = should_retry_result
        self._should_retry_exception = should_retry_exception
        self._delay_hint = delay_hint

    async def execute(self, func: Callable, *args, **kwargs) -> Any:
        """
        Execute function with retry logic.

        A result that ``should_retry_result`` flags is retried like a failure;
        once attempts run out the last such result is returned. The last
        exception is re-raised when attempts run out on an exception.
        """
        for attempt in range(1, self.config.max_attempts + 1):
            try:
                result = func(*args, **kwargs)
                if inspect.isawaitable(result):
                    result = await result
            except Exception as e:
                if not self._is_retryable(e):
                    logger.debug(f"Non-retryable exception: {e}")
                    raise

                if attempt == self.config.max_attempts:
                    if attempt > 1:
                        logger.error(f"Request failed after {attempt} attempts: {e}")
                    raise

                delay = self.calculate_delay(attempt)
                logger.warning(f"Attempt {attempt} failed: {e}. Retrying in {delay:.2f}s")
                await asyncio.sleep(delay)
                continue

            if self._should_retry_result is None or not self._should_retry_result(result):
                if attempt > 1:
                    logger.info(f"Request succeeded on attempt {attempt}")
                return result

            if attempt == self.config.max_attempts:
                if attempt > 1:
                    logger.error(f"Retries exhausted after {attempt} attempts")
                return result

            delay = self.calculate_delay(attempt, result)
            logger.warning(f"Attempt {attempt} returned a retryable result. Retrying in {delay:.2f}s")
            await asyncio.sleep(delay)

    def _is_retryable(self, exception: BaseException) -> bool:
        """Check if exception is retryable."""
        if self._should_retry_exception is not None:
            return self._should_retry_exception(exception)
        return any(isinstance(exception, exc_type) for exc_type in self.config.retryable_exceptions)

    def calculate_delay(self, attempt: int, result: Any = None) -> float:
        """Calculate delay before the attempt following ``attempt``."""
        min_delay = self.config.min_backoff.total_seconds()
        max_delay = self.config.max_backoff.total_seconds()

        if result is not None and self._delay_hint is not None:
            hint = self._delay_hint(result)
            if hint is not None:
                return max(0.0, min(hint, max_delay))

        if self.config.strategy == BackoffStrategy.FIXED:
            delay_seconds = fixed_backoff(attempt, min_delay)
        elif self.config.strategy == BackoffStrategy.LINEAR:
            delay_seconds = linear_backoff(attempt, min_delay, min_delay, max_delay)
        else:
            delay_seconds = exponential_backoff(attempt, min_delay, self.config.multiplier, max_delay)

        if self.config.jitter:
            delay_seconds *= random.uniform(0.5, 1.5)

        return max(min_delay, min(delay_seconds, max_delay))


# Backoff strategies
def exponential_backoff(attempt: int, initial_delay: float = 1.0, multiplier: float = 2.0, max_delay: float = 60.0) -> float:
    """Calculate exponential backoff delay."""
    delay = initial_delay * (multiplier ** (attempt - 1))
    return min(delay, max_delay)


def linear_backoff(attempt: int, initial_delay: float = 1.0, increment: float = 1.0, max_delay: float = 60.0) -> float:
    """Calculate linear backoff delay."""
    delay = initial_delay + ((attempt - 1) * increment)
    return min(delay, max_delay)


def fixed_backoff(attempt: int, delay: float = 1.0) -> float:
    """Calculate fixed backoff delay."""
    return delay
