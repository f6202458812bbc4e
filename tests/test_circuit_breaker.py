"""
Tests for circuit breaker pattern.
"""

import asyncio
import time

import pytest

from src.circuit_breaker import CircuitBreaker, CircuitBreakerOpenError, CircuitState


async def succeed():
    return "success"


async def fail():
    raise RuntimeError("Test failure")


def call(cb, func):
    return asyncio.run(cb.call(func))


def trip(cb):
    for _ in range(cb.failure_threshold):
        with pytest.raises(RuntimeError):
            call(cb, fail)


class TestCircuitBreaker:
    """Test circuit breaker functionality."""

    def test_initial_state_closed(self):
        """Circuit breaker should start in CLOSED state."""
        cb = CircuitBreaker(failure_threshold=3, timeout=5)
        assert cb.state == CircuitState.CLOSED
        assert cb.failure_count == 0

    def test_successful_call_in_closed_state(self):
        cb = CircuitBreaker(failure_threshold=3)

        assert call(cb, succeed) == "success"
        assert cb.state == CircuitState.CLOSED
        assert cb.failure_count == 0

    def test_arguments_are_forwarded(self):
        cb = CircuitBreaker()

        async def add(a, b=0):
            return a + b

        assert asyncio.run(cb.call(add, 2, b=3)) == 5

    def test_single_failure_stays_closed(self):
        """Single failure should not open circuit."""
        cb = CircuitBreaker(failure_threshold=3)

        with pytest.raises(RuntimeError):
            call(cb, fail)

        assert cb.state == CircuitState.CLOSED
        assert cb.failure_count == 1

    def test_threshold_failures_opens_circuit(self):
        cb = CircuitBreaker(failure_threshold=3)

        trip(cb)

        assert cb.state == CircuitState.OPEN
        assert cb.failure_count == 3

    def test_open_circuit_blocks_calls(self):
        """Open circuit should not run the wrapped coroutine."""
        cb = CircuitBreaker(failure_threshold=2, timeout=60)
        trip(cb)
        executed = []

        async def tracked():
            executed.append(True)
            return "should not execute"

        with pytest.raises(CircuitBreakerOpenError):
            call(cb, tracked)
        assert executed == []

    def test_success_resets_failure_count(self):
        cb = CircuitBreaker(failure_threshold=3)

        with pytest.raises(RuntimeError):
            call(cb, fail)
        call(cb, succeed)

        assert cb.failure_count == 0
        assert cb.last_failure_time is None

    def test_half_open_after_timeout(self):
        """After timeout a trial call is let through and closes the circuit."""
        cb = CircuitBreaker(failure_threshold=2, timeout=60)
        trip(cb)
        cb.last_failure_time = time.time() - 61

        assert call(cb, succeed) == "success"
        assert cb.state == CircuitState.CLOSED
        assert cb.failure_count == 0

    def test_half_open_failure_reopens(self):
        cb = CircuitBreaker(failure_threshold=2, timeout=60)
        trip(cb)
        cb.last_failure_time = time.time() - 61

        with pytest.raises(RuntimeError):
            call(cb, fail)

        assert cb.state == CircuitState.OPEN
        with pytest.raises(CircuitBreakerOpenError):
            call(cb, succeed)

    def test_get_state(self):
        cb = CircuitBreaker(failure_threshold=4, timeout=10, name="TestBreaker")

        with pytest.raises(RuntimeError):
            call(cb, fail)
        state = cb.get_state()

        assert state["name"] == "TestBreaker"
        assert state["state"] == "closed"
        assert state["failure_count"] == 1
        assert state["failure_threshold"] == 4
        assert state["last_failure_time"] is not None

    def test_excluded_exceptions_do_not_count(self):
        cb = CircuitBreaker(failure_threshold=2, excluded_exceptions=(ValueError,))

        async def rejected():
            raise ValueError("bad request")

        for _ in range(5):
            with pytest.raises(ValueError):
                call(cb, rejected)

        assert cb.state == CircuitState.CLOSED
        assert cb.failure_count == 0

    def test_half_open_allows_single_trial(self):
        """Calls arriving while the trial is awaiting are rejected."""
        cb = CircuitBreaker(failure_threshold=2, timeout=60)
        trip(cb)
        cb.last_failure_time = time.time() - 61

        async def scenario():
            release = asyncio.Event()

            async def slow_trial():
                await release.wait()
                return "recovered"

            trial = asyncio.create_task(cb.call(slow_trial))
            await asyncio.sleep(0)
            assert cb.state == CircuitState.HALF_OPEN

            with pytest.raises(CircuitBreakerOpenError):
                await cb.call(succeed)

            release.set()
            return await trial

        assert asyncio.run(scenario()) == "recovered"
        assert cb.state == CircuitState.CLOSED
        assert call(cb, succeed) == "success"

    def test_excluded_exception_during_trial_allows_next_trial(self):
        cb = CircuitBreaker(failure_threshold=2, timeout=60, excluded_exceptions=(ValueError,))
        trip(cb)
        cb.last_failure_time = time.time() - 61

        async def rejected():
            raise ValueError("bad request")

        with pytest.raises(ValueError):
            call(cb, rejected)

        assert cb.state == CircuitState.HALF_OPEN
        assert call(cb, succeed) == "success"
        assert cb.state == CircuitState.CLOSED
