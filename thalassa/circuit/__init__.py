"""
Package circuit provides the circuit breaker guarding outbound API calls.

- Circuit breaker state management (closed, open, half-open)
- Consecutive failure and failure ratio thresholds
- Automatic recovery through half-open trial requests
- State change callbacks
- Statistics collection
"""

from .circuit import (
    # Core circuit breaker
    CircuitBreaker,
    CircuitBreakerOptions,

    # State management
    CircuitState,
    StateTransition,
    Counts,

    # Statistics
    CircuitStats,
)

from ..errors import CircuitOpenError, TooManyRequestsError

__all__ = [
    # Core circuit breaker
    'CircuitBreaker',
    'CircuitBreakerOptions',

    # State management
    'CircuitState',
    'StateTransition',
    'Counts',

    # Statistics
    'CircuitStats',

    # Exceptions
    'CircuitOpenError',
    'TooManyRequestsError',
]
