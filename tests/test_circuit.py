"""
Tests for the circuit breaker.
"""

import asyncio
from datetime import timedelta

import pytest

from thalassa.circuit import (
    CircuitBreaker, CircuitBreakerOptions, CircuitOpenError, CircuitState,
    TooManyRequestsError,
)


class BackendDown(Exception):
    pass


class Ignored(Exception):
    pass


def make_breaker(clock, **kwargs):
    kwargs.setdefault("timeout", timedelta(seconds=30))
    return CircuitBreaker(CircuitBreakerOptions(name="test", **kwargs), clock=clock)


async def fail():
    raise BackendDown("down")


async def succeed():
    return "ok"


async def trip(breaker, times):
    for _ in range(times):
        with pytest.raises(BackendDown):
            await breaker.call(fail)


class TestStateMachine:
    """Test transitions between closed, open and half-open"""

    @pytest.mark.asyncio
    async def test_opens_after_threshold(self, clock):
        breaker = make_breaker(clock, failure_threshold=3)

        await trip(breaker, 2)
        assert breaker.state == CircuitState.CLOSED

        await trip(breaker, 1)
        assert breaker.state == CircuitState.OPEN

    @pytest.mark.asyncio
    async def test_open_breaker_does_not_call(self, clock):
        """Test that an open breaker rejects without invoking the function"""
        breaker = make_breaker(clock, failure_threshold=1)
        await trip(breaker, 1)

        calls = []

        async def tracked():
            calls.append(1)

        with pytest.raises(CircuitOpenError):
            await breaker.call(tracked)

        assert calls == []

    @pytest.mark.asyncio
    async def test_success_resets_consecutive_failures(self, clock):
        breaker = make_breaker(clock, failure_threshold=2)

        await trip(breaker, 1)
        await breaker.call(succeed)
        await trip(breaker, 1)

        assert breaker.state == CircuitState.CLOSED
        assert breaker.counts.consecutive_failures == 1

    @pytest.mark.asyncio
    async def test_half_open_success_closes(self, clock):
        breaker = make_breaker(clock, failure_threshold=1)
        await trip(breaker, 1)

        clock.advance(30)
        assert breaker.state == CircuitState.HALF_OPEN

        assert await breaker.call(succeed) == "ok"
        assert breaker.state == CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_half_open_failure_reopens(self, clock):
        breaker = make_breaker(clock, failure_threshold=1)
        await trip(breaker, 1)
        clock.advance(30)

        await trip(breaker, 1)

        assert breaker.state == CircuitState.OPEN
        clock.advance(29)
        assert breaker.state == CircuitState.OPEN

    @pytest.mark.asyncio
    async def test_half_open_trial_quota(self, clock):
        """Test that half-open admits at most max_requests trial calls"""
        breaker = make_breaker(clock, failure_threshold=1, max_requests=2)
        await trip(breaker, 1)
        clock.advance(30)

        release = asyncio.Event()

        async def slow():
            await release.wait()
            return "ok"

        first = asyncio.ensure_future(breaker.call(slow))
        second = asyncio.ensure_future(breaker.call(slow))
        await asyncio.sleep(0)

        with pytest.raises(TooManyRequestsError):
            await breaker.call(succeed)

        release.set()
        assert await asyncio.gather(first, second) == ["ok", "ok"]
        assert breaker.state == CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_manual_reset(self, clock):
        breaker = make_breaker(clock, failure_threshold=1)
        await trip(breaker, 1)

        breaker.reset()

        assert breaker.state == CircuitState.CLOSED
        assert await breaker.call(succeed) == "ok"


class TestFailureClassification:
    """Test what counts as a failure"""

    @pytest.mark.asyncio
    async def test_result_classifier(self, clock):
        """Test that classified results count as failures but are returned"""
        breaker = make_breaker(clock, failure_threshold=2, is_failure=lambda result: result >= 500)

        assert await breaker.call(lambda: 503) == 503
        assert await breaker.call(lambda: 500) == 500

        assert breaker.state == CircuitState.OPEN

    @pytest.mark.asyncio
    async def test_excluded_errors_not_counted(self, clock):
        breaker = make_breaker(clock, failure_threshold=1, exclude=lambda e: isinstance(e, Ignored))

        async def ignored():
            raise Ignored()

        for _ in range(3):
            with pytest.raises(Ignored):
                await breaker.call(ignored)

        assert breaker.state == CircuitState.CLOSED
        assert breaker.counts.requests == 0

    @pytest.mark.asyncio
    async def test_failure_ratio(self, clock):
        breaker = make_breaker(clock, failure_threshold=100, failure_ratio=0.5, min_requests=4)

        await breaker.call(succeed)
        await trip(breaker, 1)
        await breaker.call(succeed)
        assert breaker.state == CircuitState.CLOSED

        await trip(breaker, 1)
        assert breaker.state == CircuitState.OPEN

    @pytest.mark.asyncio
    async def test_custom_ready_to_trip(self, clock):
        breaker = make_breaker(clock, ready_to_trip=lambda counts: counts.total_failures >= 2)

        await trip(breaker, 1)
        await breaker.call(succeed)
        await trip(breaker, 1)

        assert breaker.state == CircuitState.OPEN

    @pytest.mark.asyncio
    async def test_interval_clears_counts(self, clock):
        breaker = make_breaker(clock, failure_threshold=3, interval=timedelta(seconds=10))

        await trip(breaker, 2)
        clock.advance(11)
        await trip(breaker, 2)

        assert breaker.state == CircuitState.CLOSED
        assert breaker.counts.consecutive_failures == 2

    @pytest.mark.asyncio
    async def test_cancelled_call_not_counted(self, clock):
        breaker = make_breaker(clock, failure_threshold=1)

        task = asyncio.ensure_future(breaker.call(asyncio.sleep, 10))
        await asyncio.sleep(0)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert breaker.state == CircuitState.CLOSED
        assert breaker.counts.requests == 0

    @pytest.mark.asyncio
    async def test_stale_generation_ignored(self, clock):
        """Test that outcomes of calls started before a transition are dropped"""
        breaker = make_breaker(clock, failure_threshold=1)
        release = asyncio.Event()

        async def slow_failure():
            await release.wait()
            raise BackendDown("late")

        task = asyncio.ensure_future(breaker.call(slow_failure))
        await asyncio.sleep(0)

        breaker.reset()
        await trip(breaker, 1)
        clock.advance(30)
        await breaker.call(succeed)
        assert breaker.state == CircuitState.CLOSED

        release.set()
        with pytest.raises(BackendDown):
            await task

        assert breaker.state == CircuitState.CLOSED


class TestObservability:
    """Test statistics and transition history"""

    @pytest.mark.asyncio
    async def test_state_change_callback(self, clock):
        seen = []
        breaker = make_breaker(clock, failure_threshold=1, on_state_change=seen.append)

        await trip(breaker, 1)
        clock.advance(30)
        await breaker.call(succeed)

        assert [(t.from_state, t.to_state) for t in seen] == [
            (CircuitState.CLOSED, CircuitState.OPEN),
            (CircuitState.OPEN, CircuitState.HALF_OPEN),
            (CircuitState.HALF_OPEN, CircuitState.CLOSED),
        ]
        assert len(breaker.get_transitions()) == 3

    @pytest.mark.asyncio
    async def test_stats(self, clock):
        breaker = make_breaker(clock, failure_threshold=5)
        await breaker.call(succeed)
        await trip(breaker, 1)

        stats = breaker.stats.to_dict()

        assert stats["name"] == "test"
        assert stats["state"] == "closed"
        assert stats["requests"] == 2
        assert stats["total_failures"] == 1
        assert stats["failure_rate"] == 0.5
