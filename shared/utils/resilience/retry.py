"""Retry policy with bounded attempts and exponential backoff."""

import asyncio
import random
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from .exceptions import CircuitBreakerConfigurationError


@dataclass
class RetryPolicy:
    """Policy for re-attempting a failed upstream call.

    ``backoff(n)`` is the pause before attempt ``n + 1``. Delays grow
    exponentially from ``base_delay`` and are capped at ``max_delay``. Jitter
    never pushes a delay past the next step, so the sequence is
    non-decreasing.
    """

    max_attempts: int = 3
    base_delay: float = 0.5  # Seconds before the second attempt
    max_delay: float = 10.0
    multiplier: float = 2.0
    jitter: bool = True  # Spread retries of concurrent callers

    sleep: Callable[[float], Awaitable[None]] = field(default=asyncio.sleep, repr=False, compare=False)

    def __post_init__(self) -> None:
        """Validate policy values."""
        if self.max_attempts < 1:
            raise CircuitBreakerConfigurationError(
                "max_attempts must be at least 1",
                config_key="max_attempts",
                config_value=self.max_attempts,
            )
        if self.base_delay < 0 or self.max_delay < self.base_delay:
            raise CircuitBreakerConfigurationError(
                "delays must satisfy 0 <= base_delay <= max_delay",
                config_key="base_delay",
                config_value=self.base_delay,
            )
        if self.multiplier < 1.0:
            raise CircuitBreakerConfigurationError(
                "multiplier must be at least 1.0",
                config_key="multiplier",
                config_value=self.multiplier,
            )

    def _step(self, attempt: int) -> float:
        return min(self.base_delay * (self.multiplier ** (attempt - 1)), self.max_delay)

    def backoff(self, attempt: int) -> float:
        """Calculate the delay after a failed attempt.

        Args:
            attempt: Number of the attempt that just failed (1-based)

        Returns:
            Delay in seconds
        """
        delay = self._step(attempt)
        if self.jitter:
            headroom = self._step(attempt + 1) - delay
            delay += random.uniform(0, headroom)
        return delay

    def should_retry(self, attempt: int, retryable: bool) -> bool:
        """Decide whether another attempt may follow ``attempt``."""
        return retryable and attempt < self.max_attempts


@dataclass
class RetryState:
    """Attempt bookkeeping for one logical call."""

    attempt: int = 0
    started_at: float = field(default_factory=time.monotonic)

    def next_attempt(self) -> int:
        self.attempt += 1
        return self.attempt

    def elapsed(self) -> float:
        return time.monotonic() - self.started_at
