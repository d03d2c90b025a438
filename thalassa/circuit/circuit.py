"""
Circuit breaker implementation for protecting the API from cascading failures.
"""

import inspect
import logging
import threading
import time
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Callable, Deque, Dict, List, Optional, Tuple

from ..errors import CircuitOpenError, TooManyRequestsError

logger = logging.getLogger(__name__)

MAX_TRANSITIONS = 100


class CircuitState(Enum):
    """Circuit breaker states."""
    CLOSED = "closed"      # Normal operation, requests allowed
    OPEN = "open"          # Failure mode, requests blocked
    HALF_OPEN = "half_open"  # Testing mode, limited requests allowed


@dataclass
class Counts:
    """Request counters for the current generation."""
    requests: int = 0
    total_successes: int = 0
    total_failures: int = 0
    consecutive_successes: int = 0
    consecutive_failures: int = 0

    def on_request(self) -> None:
        self.requests += 1

    def on_success(self) -> None:
        self.total_successes += 1
        self.consecutive_successes += 1
        self.consecutive_failures = 0

    def on_failure(self) -> None:
        self.total_failures += 1
        self.consecutive_failures += 1
        self.consecutive_successes = 0

    def clear(self) -> None:
        self.requests = 0
        self.total_successes = 0
        self.total_failures = 0
        self.consecutive_successes = 0
        self.consecutive_failures = 0

    @property
    def failure_rate(self) -> float:
        if self.requests == 0:
            return 0.0
        return self.total_failures / self.requests


@dataclass
class StateTransition:
    """A recorded change of state."""
    name: str
    from_state: CircuitState
    to_state: CircuitState
    timestamp: datetime
    reason: str


@dataclass
class CircuitStats:
    """Point-in-time breaker statistics."""
    name: str
    state: CircuitState
    counts: Counts
    generation: int = 0
    state_change_time: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'name': self.name,
            'state': self.state.value,
            'requests': self.counts.requests,
            'total_successes': self.counts.total_successes,
            'total_failures': self.counts.total_failures,
            'consecutive_successes': self.counts.consecutive_successes,
            'consecutive_failures': self.counts.consecutive_failures,
            'failure_rate': self.counts.failure_rate,
            'generation': self.generation,
            'state_change_time': self.state_change_time.isoformat(),
        }


@dataclass
class CircuitBreakerOptions:
    """Circuit breaker configuration options."""
    name: str
    max_requests: int = 1  # Trial calls allowed (and successes needed) in half-open
    interval: Optional[timedelta] = None  # Closed-state counting window; None keeps counts until a transition
    timeout: timedelta = field(default_factory=lambda: timedelta(seconds=60))  # Open -> half-open cooldown
    failure_threshold: int = 5
    failure_ratio: Optional[float] = None
    min_requests: int = 1
    ready_to_trip: Optional[Callable[[Counts], bool]] = None
    is_failure: Optional[Callable[[Any], bool]] = None  # Classifies a returned result
    exclude: Optional[Callable[[BaseException], bool]] = None  # Errors that are not backend failures
    on_state_change: Optional[Callable[[StateTransition], None]] = None


class CircuitBreaker:
    """
    Circuit breaker implementation to prevent cascading failures.

    States:
    - CLOSED: Normal operation, all requests allowed
    - OPEN: Failure mode, all requests rejected until the timeout elapses
    - HALF_OPEN: Testing mode, up to ``max_requests`` trial requests allowed

    Every transition starts a new generation; outcomes of calls that began
    in an earlier generation are ignored.
    """

    def __init__(self, options: CircuitBreakerOptions, clock: Callable[[], float] = time.monotonic):
        if options.max_requests < 1:
            options.max_requests = 1
        self.options = options
        self._clock = clock
        self._state = CircuitState.CLOSED
        self._generation = 0
        self._counts = Counts()
        self._expiry: Optional[float] = None
        self._state_change_time = datetime.now()
        self._lock = threading.RLock()
        self._transitions: Deque[StateTransition] = deque(maxlen=MAX_TRANSITIONS)

        self._new_generation(self._clock())
        logger.info(f"Circuit breaker '{self.name}' initialized")

    @property
    def name(self) -> str:
        return self.options.name

    @property
    def state(self) -> CircuitState:
        """State at this instant; reading it may move open to half-open."""
        with self._lock:
            state, _ = self._current_state(self._clock())
            return state

    @property
    def counts(self) -> Counts:
        """Get a copy of the current generation's counters."""
        with self._lock:
            self._current_state(self._clock())
            return Counts(**self._counts.__dict__)

    @property
    def stats(self) -> CircuitStats:
        """Snapshot of the current generation."""
        with self._lock:
            state, generation = self._current_state(self._clock())
            return CircuitStats(
                name=self.name,
                state=state,
                counts=Counts(**self._counts.__dict__),
                generation=generation,
                state_change_time=self._state_change_time,
            )

    def reset(self) -> None:
        """Reset circuit breaker to closed state."""
        with self._lock:
            self._set_state(CircuitState.CLOSED, self._clock(), "Manual reset")
            self._new_generation(self._clock())

        logger.info(f"Circuit breaker '{self.name}' manually reset")

    async def call(self, func: Callable, *args, **kwargs) -> Any:
        """Execute function with circuit breaker protection."""
        generation = self._before_request()

        try:
            result = func(*args, **kwargs)
            if inspect.isawaitable(result):
                result = await result
        except Exception as e:
            if self.options.exclude is not None and self.options.exclude(e):
                self._abandon(generation)
            else:
                self._after_request(generation, False, str(e))
            raise
        except BaseException:
            # Cancellation is not a verdict on the backend.
            self._abandon(generation)
            raise

        failed = self.options.is_failure is not None and self.options.is_failure(result)
        self._after_request(generation, not failed, "result classified as failure")
        return result

    def _before_request(self) -> int:
        with self._lock:
            state, generation = self._current_state(self._clock())

            if state == CircuitState.OPEN:
                raise CircuitOpenError(self.name)
            if state == CircuitState.HALF_OPEN and self._counts.requests >= self.options.max_requests:
                raise TooManyRequestsError(self.name)

            self._counts.on_request()
            return generation

    def _after_request(self, before: int, success: bool, reason: str = "") -> None:
        with self._lock:
            now = self._clock()
            state, generation = self._current_state(now)
            if generation != before:
                return

            if success:
                self._on_success(state, now)
            else:
                self._on_failure(state, now)
                logger.debug(f"Circuit breaker '{self.name}' recorded failure: {reason}")

    def _abandon(self, before: int) -> None:
        with self._lock:
            _, generation = self._current_state(self._clock())
            if generation == before and self._counts.requests > 0:
                self._counts.requests -= 1

    def _on_success(self, state: CircuitState, now: float) -> None:
        self._counts.on_success()
        if state == CircuitState.HALF_OPEN and self._counts.consecutive_successes >= self.options.max_requests:
            self._set_state(
                CircuitState.CLOSED, now,
                f"Recovery successful ({self._counts.consecutive_successes} successes)"
            )

    def _on_failure(self, state: CircuitState, now: float) -> None:
        if state == CircuitState.CLOSED:
            self._counts.on_failure()
            if self._ready_to_trip(self._counts):
                self._set_state(
                    CircuitState.OPEN, now,
                    f"Failure threshold exceeded ({self._counts.consecutive_failures} consecutive failures)"
                )
        elif state == CircuitState.HALF_OPEN:
            self._set_state(CircuitState.OPEN, now, "Trial request failed")

    def _ready_to_trip(self, counts: Counts) -> bool:
        if self.options.ready_to_trip is not None:
            return self.options.ready_to_trip(counts)
        if counts.consecutive_failures >= self.options.failure_threshold:
            return True
        if self.options.failure_ratio is not None:
            return (counts.requests >= self.options.min_requests
                    and counts.failure_rate >= self.options.failure_ratio)
        return False

    def _current_state(self, now: float) -> Tuple[CircuitState, int]:
        if self._state == CircuitState.CLOSED:
            if self._expiry is not None and self._expiry <= now:
                self._new_generation(now)
        elif self._state == CircuitState.OPEN:
            if self._expiry is not None and self._expiry <= now:
                self._set_state(CircuitState.HALF_OPEN, now, "Timeout elapsed, attempting recovery")
        return self._state, self._generation

    def _set_state(self, state: CircuitState, now: float, reason: str) -> None:
        if self._state == state:
            return

        previous = self._state
        self._state = state
        self._state_change_time = datetime.now()
        self._new_generation(now)
        self._record_transition(previous, state, reason)

        if state == CircuitState.OPEN:
            logger.warning(f"Circuit breaker '{self.name}' opened: {reason}")
        else:
            logger.info(f"Circuit breaker '{self.name}' {state.value}: {reason}")

    def _new_generation(self, now: float) -> None:
        self._generation += 1
        self._counts.clear()

        if self._state == CircuitState.CLOSED:
            interval = self.options.interval
            self._expiry = now + interval.total_seconds() if interval else None
        elif self._state == CircuitState.OPEN:
            self._expiry = now + self.options.timeout.total_seconds()
        else:
            self._expiry = None

    def _record_transition(self, previous: CircuitState, state: CircuitState, reason: str) -> None:
        transition = StateTransition(self.name, previous, state, datetime.now(), reason)
        self._transitions.append(transition)

        callback = self.options.on_state_change
        if callback is None:
            return
        try:
            callback(transition)
        except Exception as e:
            logger.error(f"on_state_change callback for '{self.name}' raised: {e}")

    def get_transitions(self) -> List[StateTransition]:
        """Return the most recent state transitions, oldest first."""
        with self._lock:
            return list(self._transitions)
