"""Configuration classes for circuit breaker behavior."""

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .exceptions import CircuitBreakerConfigurationError


class CircuitState(Enum):
    """Circuit breaker states."""

    CLOSED = "closed"  # Normal operation
    OPEN = "open"  # Failing, reject all calls
    HALF_OPEN = "half_open"  # Testing if service recovered


class BreakerOutcome(Enum):
    """How a completed call is reported back to the breaker."""

    SUCCESS = "success"
    FAILURE = "failure"
    IGNORED = "ignored"  # Completed, but says nothing about upstream health


@dataclass
class CircuitBreakerStats:
    """Statistics for circuit breaker monitoring."""

    total_calls: int = 0
    successful_calls: int = 0
    failed_calls: int = 0
    ignored_calls: int = 0
    rejected_calls: int = 0
    last_failure_time: float | None = None
    last_success_time: float | None = None
    consecutive_failures: int = 0
    consecutive_successes: int = 0
    state_changes: list[dict[str, Any]] = field(default_factory=list)


@dataclass
class CircuitBreakerConfig:
    """Configuration for circuit breaker behavior.

    Failures are counted in a time-based sliding window: the breaker opens once
    ``failure_threshold`` failed calls have completed within the last
    ``failure_window`` seconds.
    """

    # Failure threshold configuration
    failure_threshold: int = 5  # Failures inside the window before opening
    success_threshold: int = 1  # Trial successes in half-open before closing
    timeout: float = 30.0  # Seconds to stay open before trying half-open

    # Time window for counting failures
    failure_window: float = 60.0

    # Trial calls admitted concurrently while half-open
    half_open_max_calls: int = 1

    # Monitoring hooks
    on_open: Callable[[str], None] | None = None
    on_close: Callable[[str], None] | None = None
    on_half_open: Callable[[str], None] | None = None

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if self.failure_threshold < 1:
            raise CircuitBreakerConfigurationError(
                "failure_threshold must be at least 1",
                config_key="failure_threshold",
                config_value=self.failure_threshold,
            )

        if self.success_threshold < 1:
            raise CircuitBreakerConfigurationError(
                "success_threshold must be at least 1",
                config_key="success_threshold",
                config_value=self.success_threshold,
            )

        if self.timeout <= 0:
            raise CircuitBreakerConfigurationError(
                "timeout must be positive",
                config_key="timeout",
                config_value=self.timeout,
            )

        if self.failure_window <= 0:
            raise CircuitBreakerConfigurationError(
                "failure_window must be positive",
                config_key="failure_window",
                config_value=self.failure_window,
            )

        if self.half_open_max_calls < 1:
            raise CircuitBreakerConfigurationError(
                "half_open_max_calls must be at least 1",
                config_key="half_open_max_calls",
                config_value=self.half_open_max_calls,
            )
