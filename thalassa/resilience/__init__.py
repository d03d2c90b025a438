"""
Package resilience provides the retry policy used by the request dispatcher.

- Retry with exponential, linear or fixed backoff between bounds
- Optional jitter
- Result-based retries for retryable HTTP status codes
"""

from .patterns import (
    RetryConfig,
    Retry,
    BackoffStrategy,
    DEFAULT_RETRYABLE_STATUS_CODES,
    exponential_backoff,
    linear_backoff,
    fixed_backoff,
)

__all__ = [
    'RetryConfig',
    'Retry',
    'BackoffStrategy',
    'DEFAULT_RETRYABLE_STATUS_CODES',
    'exponential_backoff',
    'linear_backoff',
    'fixed_backoff',
]
