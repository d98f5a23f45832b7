"""Circuit breaker pattern implementation for resilient service operations."""

import logging
import threading
import time
from collections.abc import Callable
from typing import Any

from .config import (
    BreakerOutcome,
    CircuitBreakerConfig,
    CircuitBreakerStats,
    CircuitState,
)
from .exceptions import CircuitOpenError

logger = logging.getLogger(__name__)


class CircuitBreaker:
    """Circuit breaker protecting calls to one upstream dependency.

    The breaker never wraps the protected call itself. Callers ask for
    admission with :meth:`acquire` before a call and report the completed
    call with :meth:`record`, so no lock is ever held across I/O:

        trial = breaker.acquire()      # raises CircuitOpenError when rejecting
        ...perform the call...
        breaker.record(BreakerOutcome.SUCCESS, trial=trial)

    State only changes inside ``acquire``/``record``/``state`` (the OPEN to
    HALF_OPEN move is time driven), always under the internal lock.
    """

    def __init__(
        self,
        name: str,
        config: CircuitBreakerConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the circuit breaker.

        Args:
            name: Name of the circuit breaker for logging
            config: Configuration for circuit breaker behavior
            clock: Monotonic time source in seconds
        """
        self.name = name
        self.config = config or CircuitBreakerConfig()
        self._clock = clock

        # State management
        self._state = CircuitState.CLOSED
        self._lock = threading.RLock()

        # Failure tracking
        self._failure_times: list[float] = []
        self._last_open_time: float | None = None
        self._half_open_successes = 0
        self._half_open_in_flight = 0

        # Statistics
        self.stats = CircuitBreakerStats()

        logger.info(f"Circuit breaker '{name}' initialized in CLOSED state")

    @property
    def state(self) -> CircuitState:
        """Get current circuit state, checking for automatic transitions."""
        with self._lock:
            self._check_cool_down(self._clock())
            return self._state

    def _check_cool_down(self, now: float) -> None:
        if (
            self._state == CircuitState.OPEN
            and self._last_open_time is not None
            and now - self._last_open_time >= self.config.timeout
        ):
            self._transition_to_half_open(now)

    def _record_transition(self, old_state: CircuitState, new_state: CircuitState, now: float, reason: str) -> None:
        self.stats.state_changes.append(
            {
                "from": old_state.value,
                "to": new_state.value,
                "timestamp": now,
                "reason": reason,
            }
        )

    def _run_hook(self, hook: Callable[[str], None] | None, hook_name: str) -> None:
        if hook is None:
            return
        try:
            hook(self.name)
        except Exception as e:
            logger.error(f"Error in {hook_name} hook: {e}")

    def _transition_to_open(self, now: float, reason: str) -> None:
        """Transition circuit to OPEN state."""
        old_state = self._state
        self._state = CircuitState.OPEN
        self._last_open_time = now
        self._half_open_successes = 0
        self._half_open_in_flight = 0

        self._record_transition(old_state, CircuitState.OPEN, now, reason)

        logger.warning(
            f"Circuit breaker '{self.name}' opened: {reason}",
            extra={
                "consecutive_failures": self.stats.consecutive_failures,
                "threshold": self.config.failure_threshold,
            },
        )
        self._run_hook(self.config.on_open, "on_open")

    def _transition_to_closed(self, now: float) -> None:
        """Transition circuit to CLOSED state."""
        old_state = self._state
        self._state = CircuitState.CLOSED
        self._failure_times.clear()
        self._last_open_time = None
        self._half_open_successes = 0
        self._half_open_in_flight = 0

        self._record_transition(old_state, CircuitState.CLOSED, now, "Service recovered")

        logger.info(
            f"Circuit breaker '{self.name}' closed - service recovered",
            extra={"consecutive_successes": self.stats.consecutive_successes},
        )
        self._run_hook(self.config.on_close, "on_close")

    def _transition_to_half_open(self, now: float) -> None:
        """Transition circuit to HALF_OPEN state."""
        old_state = self._state
        self._state = CircuitState.HALF_OPEN
        self._half_open_successes = 0
        self._half_open_in_flight = 0

        self._record_transition(
            old_state, CircuitState.HALF_OPEN, now, f"Cool-down ({self.config.timeout}s) expired"
        )

        logger.info(f"Circuit breaker '{self.name}' half-open - testing recovery")
        self._run_hook(self.config.on_half_open, "on_half_open")

    def acquire(self) -> bool:
        """Ask for admission of one call.

        Returns:
            True when the call is a half-open trial, False for a normal call

        Raises:
            CircuitOpenError: If the breaker is open or all trial slots are taken
        """
        with self._lock:
            now = self._clock()
            self._check_cool_down(now)

            if self._state == CircuitState.CLOSED:
                return False

            if self._state == CircuitState.HALF_OPEN and self._half_open_in_flight < self.config.half_open_max_calls:
                self._half_open_in_flight += 1
                return True

            self.stats.rejected_calls += 1
            retry_in = None
            if self._state == CircuitState.OPEN and self._last_open_time is not None:
                retry_in = max(0.0, self.config.timeout - (now - self._last_open_time))
            logger.debug(f"Circuit breaker '{self.name}' rejected a call in {self._state.value} state")
            raise CircuitOpenError(self.name, retry_in=retry_in)

    def record(self, outcome: BreakerOutcome, trial: bool = False) -> None:
        """Report a completed call.

        Args:
            outcome: How the call ended from the upstream's point of view
            trial: The value returned by :meth:`acquire` for this call

        A non-trial call that completes while the breaker is half-open was
        admitted before the breaker opened; it is counted in the statistics
        only.
        """
        with self._lock:
            now = self._clock()
            if trial and self._state == CircuitState.HALF_OPEN:
                self._half_open_in_flight = max(0, self._half_open_in_flight - 1)

            # While half-open only trial calls may move the state
            moves_state = trial or self._state != CircuitState.HALF_OPEN

            self.stats.total_calls += 1
            if outcome == BreakerOutcome.SUCCESS:
                self._record_success(now, moves_state)
            elif outcome == BreakerOutcome.FAILURE:
                self._record_failure(now, moves_state)
            else:
                self.stats.ignored_calls += 1

    def _record_success(self, now: float, moves_state: bool = True) -> None:
        """Record a successful call."""
        self.stats.successful_calls += 1
        self.stats.last_success_time = now
        self.stats.consecutive_successes += 1
        self.stats.consecutive_failures = 0

        if not moves_state:
            return

        if self._state == CircuitState.HALF_OPEN:
            self._half_open_successes += 1
            if self._half_open_successes >= self.config.success_threshold:
                self._transition_to_closed(now)

        # Clear old failures outside the window
        self._failure_times = [t for t in self._failure_times if now - t < self.config.failure_window]

    def _record_failure(self, now: float, moves_state: bool = True) -> None:
        """Record a failed call."""
        self.stats.failed_calls += 1
        self.stats.last_failure_time = now
        self.stats.consecutive_failures += 1
        self.stats.consecutive_successes = 0

        if not moves_state:
            return

        self._failure_times.append(now)
        self._failure_times = [t for t in self._failure_times if now - t < self.config.failure_window]

        if self._state == CircuitState.CLOSED:
            if len(self._failure_times) >= self.config.failure_threshold:
                self._transition_to_open(
                    now,
                    f"{len(self._failure_times)} failures within {self.config.failure_window}s "
                    f"(threshold {self.config.failure_threshold})",
                )
        elif self._state == CircuitState.HALF_OPEN:
            # Any failure in half-open state reopens the circuit
            self._transition_to_open(now, "Trial call failed")

    def get_stats(self) -> dict[str, Any]:
        """Get circuit breaker statistics.

        Returns:
            Dictionary containing circuit breaker statistics
        """
        with self._lock:
            success_rate = (
                (self.stats.successful_calls / self.stats.total_calls * 100) if self.stats.total_calls > 0 else 0
            )

            return {
                "name": self.name,
                "state": self.state.value,
                "total_calls": self.stats.total_calls,
                "successful_calls": self.stats.successful_calls,
                "failed_calls": self.stats.failed_calls,
                "ignored_calls": self.stats.ignored_calls,
                "rejected_calls": self.stats.rejected_calls,
                "success_rate": success_rate,
                "consecutive_failures": self.stats.consecutive_failures,
                "consecutive_successes": self.stats.consecutive_successes,
                "last_failure_time": self.stats.last_failure_time,
                "last_success_time": self.stats.last_success_time,
                "recent_failures": len(self._failure_times),
                "state_changes": len(self.stats.state_changes),
            }


class CircuitBreakerManager:
    """Keeps exactly one circuit breaker per upstream dependency name.

    Create one manager at process startup and pass breakers to the components
    that need them; breakers are never recreated per request.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        """Initialize circuit breaker manager.

        Args:
            clock: Time source handed to every breaker created here
        """
        self._circuit_breakers: dict[str, CircuitBreaker] = {}
        self._clock = clock
        self._lock = threading.RLock()

    def get_circuit_breaker(
        self,
        name: str,
        config: CircuitBreakerConfig | None = None,
    ) -> CircuitBreaker:
        """Get or create a circuit breaker.

        Args:
            name: Upstream dependency name
            config: Configuration used only when the breaker is first created

        Returns:
            Circuit breaker instance
        """
        with self._lock:
            if name not in self._circuit_breakers:
                self._circuit_breakers[name] = CircuitBreaker(name=name, config=config, clock=self._clock)
            return self._circuit_breakers[name]

    def get_all_stats(self) -> dict[str, dict[str, Any]]:
        """Get statistics for every managed breaker."""
        with self._lock:
            breakers = list(self._circuit_breakers.values())
        return {breaker.name: breaker.get_stats() for breaker in breakers}
