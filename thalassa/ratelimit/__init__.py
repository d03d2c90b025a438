"""
Rate limiting module initialization
"""

from .limiter import (
    RateLimiter,
    TokenBucketRateLimiter,
    UnlimitedLimiter,
    create_rate_limiter,
)

__all__ = [
    "RateLimiter",
    "TokenBucketRateLimiter",
    "UnlimitedLimiter",
    "create_rate_limiter",
]
