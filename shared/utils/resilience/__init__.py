"""Resilience patterns and utilities for robust service operations.

This module provides circuit breaker and retry building blocks that help
services handle upstream failures gracefully and recover from issues.

Main components:
- CircuitBreaker: Lock-guarded circuit breaker with sliding-window failure counting
- CircuitBreakerConfig: Configuration for circuit breaker behavior
- CircuitBreakerManager: One breaker per upstream dependency
- RetryPolicy: Bounded attempts with exponential backoff and jitter
- Exception handling: Standardized exceptions for circuit breaker operations
"""

from .circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerManager,
)
from .config import (
    BreakerOutcome,
    CircuitBreakerConfig,
    CircuitBreakerStats,
    CircuitState,
)
from .exceptions import (
    CircuitBreakerConfigurationError,
    CircuitBreakerError,
    CircuitOpenError,
)
from .retry import RetryPolicy, RetryState

__all__ = [
    "BreakerOutcome",
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitBreakerConfigurationError",
    "CircuitBreakerError",
    "CircuitBreakerManager",
    "CircuitBreakerStats",
    "CircuitOpenError",
    "CircuitState",
    "RetryPolicy",
    "RetryState",
]
