"""Circuit breaker exceptions for resilience patterns."""

from typing import Any


class CircuitBreakerError(Exception):
    """Base exception for circuit breaker errors."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize circuit breaker error.

        Args:
            message: Error message
            details: Additional error details
        """
        super().__init__(message)
        self.details = details or {}


class CircuitOpenError(CircuitBreakerError):
    """Exception raised when the breaker refuses to admit a call."""

    def __init__(
        self,
        name: str,
        retry_in: float | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize circuit open error.

        Args:
            name: Circuit breaker name
            retry_in: Seconds until the breaker will admit a trial call, if known
            details: Additional error details
        """
        message = f"Circuit breaker '{name}' is OPEN - calls are being rejected"
        error_details = details or {}
        error_details["circuit_name"] = name
        if retry_in is not None:
            error_details["retry_in"] = retry_in
        super().__init__(message, error_details)
        self.circuit_name = name
        self.retry_in = retry_in


class CircuitBreakerConfigurationError(CircuitBreakerError):
    """Exception raised for circuit breaker or retry configuration errors."""

    def __init__(
        self,
        message: str,
        config_key: str | None = None,
        config_value: Any = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize configuration error.

        Args:
            message: Error message
            config_key: Configuration key that caused the error
            config_value: Configuration value that caused the error
            details: Additional error details
        """
        error_details = details or {}
        if config_key is not None:
            error_details["config_key"] = config_key
        if config_value is not None:
            error_details["config_value"] = config_value
        super().__init__(message, error_details)
        self.config_key = config_key
        self.config_value = config_value
