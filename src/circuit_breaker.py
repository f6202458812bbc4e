"""
Circuit breaker pattern for resilient external service calls.
Keeps calls to the model provider and the TTS service from piling up while
they are down.
"""

import logging
import time
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)


class CircuitBreakerOpenError(RuntimeError):
    """Raised when circuit breaker blocks execution."""


class CircuitState(Enum):
    """Circuit breaker states."""

    CLOSED = "closed"  # Normal operation
    OPEN = "open"  # Blocking requests
    HALF_OPEN = "half_open"  # Testing recovery


class CircuitBreaker:
    """
    Async circuit breaker.

    States:
    - CLOSED: Calls pass through normally
    - OPEN: Calls fail immediately with CircuitBreakerOpenError
    - HALF_OPEN: A single trial call is let through to probe recovery;
      concurrent calls are rejected until it finishes

    Transitions:
    - CLOSED -> OPEN: After failure_threshold consecutive failures
    - OPEN -> HALF_OPEN: After timeout seconds
    - HALF_OPEN -> CLOSED: If the trial call succeeds
    - HALF_OPEN -> OPEN: If the trial call fails

    Exceptions listed in excluded_exceptions are re-raised without counting
    as failures.
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        timeout: int = 60,
        name: str = "CircuitBreaker",
        excluded_exceptions: tuple[type[Exception], ...] = (),
    ):
        """
        Initialize circuit breaker.

        Args:
            failure_threshold: Consecutive failures before opening circuit
            timeout: Seconds to wait before attempting recovery
            name: Name for logging
            excluded_exceptions: Exception types that never trip the circuit
        """
        self.failure_threshold = failure_threshold
        self.timeout = timeout
        self.name = name
        self.excluded_exceptions = excluded_exceptions

        self.failure_count = 0
        self.state = CircuitState.CLOSED
        self.last_failure_time = None
        self._trial_in_flight = False

        logger.info(
            f"CircuitBreaker '{name}' initialized: "
            f"threshold={failure_threshold}, timeout={timeout}s"
        )

    async def call(self, func: Callable[..., Awaitable[Any]], *args, **kwargs) -> Any:
        """
        Await a coroutine function with circuit breaker protection.

        Raises:
            CircuitBreakerOpenError: If the circuit is OPEN or a trial call is running
            Exception: Whatever the wrapped call raised
        """
        is_trial = self._before_call()

        try:
            result = await func(*args, **kwargs)
        except self.excluded_exceptions:
            raise
        except Exception as e:
            self._record_failure()
            logger.error(
                f"CircuitBreaker '{self.name}' failure "
                f"({self.failure_count}/{self.failure_threshold}): {str(e)}"
            )
            raise
        else:
            self._record_success()
            return result
        finally:
            if is_trial:
                self._trial_in_flight = False

    def _before_call(self) -> bool:
        """Reject the call or let it through. Returns True for the half-open trial call."""
        if self.state == CircuitState.CLOSED:
            return False

        if self.state == CircuitState.OPEN:
            if not self._should_attempt_reset():
                raise CircuitBreakerOpenError(
                    f"CircuitBreaker '{self.name}' is OPEN. Service unavailable."
                )
            logger.info(f"CircuitBreaker '{self.name}': OPEN -> HALF_OPEN")
            self.state = CircuitState.HALF_OPEN
        elif self._trial_in_flight:
            raise CircuitBreakerOpenError(
                f"CircuitBreaker '{self.name}' is HALF_OPEN and a trial call is running."
            )

        self._trial_in_flight = True
        return True

    def _record_success(self) -> None:
        if self.state == CircuitState.HALF_OPEN:
            logger.info(f"CircuitBreaker '{self.name}': HALF_OPEN -> CLOSED")
        self._reset()

    def _record_failure(self) -> None:
        """Record a failure and potentially open circuit."""
        self.failure_count += 1
        self.last_failure_time = time.time()

        if self.state == CircuitState.HALF_OPEN:
            logger.warning(f"CircuitBreaker '{self.name}': trial failed. HALF_OPEN -> OPEN")
            self.state = CircuitState.OPEN
        elif self.failure_count >= self.failure_threshold:
            logger.warning(f"CircuitBreaker '{self.name}': Threshold exceeded. CLOSED -> OPEN")
            self.state = CircuitState.OPEN

    def _should_attempt_reset(self) -> bool:
        """Check if enough time has passed to attempt recovery."""
        if self.last_failure_time is None:
            return True

        elapsed = time.time() - self.last_failure_time
        return elapsed >= self.timeout

    def _reset(self) -> None:
        self.failure_count = 0
        self.state = CircuitState.CLOSED
        self.last_failure_time = None

    def get_state(self) -> dict:
        """Get current circuit breaker state for monitoring."""
        return {
            "name": self.name,
            "state": self.state.value,
            "failure_count": self.failure_count,
            "failure_threshold": self.failure_threshold,
            "last_failure_time": self.last_failure_time,
        }
