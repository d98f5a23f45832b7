"""
Configuration management for the posts service.

Provides centralized configuration for the upstream provider, retry and
circuit breaker policy, and the API surface.
"""

import os
from dataclasses import dataclass, field


def _as_bool(value: str) -> bool:
    return value.lower() in ("true", "1", "yes")


@dataclass
class UpstreamConfig:
    """Configuration for the upstream posts provider."""

    base_url: str = "https://jsonplaceholder.typicode.com"
    posts_path: str = "/posts"
    comments_path: str = "/comments"
    connect_timeout: float = 5.0
    read_timeout: float = 10.0
    user_agent: str = "postgate/1.0"
    breaker_name: str = "postsApi"


@dataclass
class ResilienceConfig:
    """Configuration for retry and circuit breaker behavior."""

    max_attempts: int = 3
    base_delay: float = 0.5
    max_delay: float = 10.0
    backoff_multiplier: float = 2.0
    jitter: bool = True
    failure_threshold: int = 5
    success_threshold: int = 1
    open_timeout: float = 30.0
    failure_window: float = 60.0
    half_open_max_calls: int = 1
    call_deadline: float = 30.0  # 0 disables the per-call deadline


@dataclass
class APIConfig:
    """Configuration for API endpoints."""

    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "info"
    api_prefix: str = "/api/v1"
    docs_enabled: bool = True


@dataclass
class ServiceConfig:
    """Main configuration for the posts service."""

    upstream: UpstreamConfig = field(default_factory=UpstreamConfig)
    resilience: ResilienceConfig = field(default_factory=ResilienceConfig)
    api: APIConfig = field(default_factory=APIConfig)

    # Service-level settings
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "ServiceConfig":
        """Create configuration from environment variables.

        Environment variables follow the pattern:
        POSTGATE_<SECTION>_<SETTING>

        Examples:
        - POSTGATE_UPSTREAM_BASE_URL=http://localhost:3000
        - POSTGATE_RESILIENCE_MAX_ATTEMPTS=5
        - POSTGATE_API_PORT=8001
        """
        config = cls()

        # Upstream configuration
        config.upstream.base_url = os.getenv("POSTGATE_UPSTREAM_BASE_URL", config.upstream.base_url)
        config.upstream.posts_path = os.getenv("POSTGATE_UPSTREAM_POSTS_PATH", config.upstream.posts_path)
        config.upstream.comments_path = os.getenv("POSTGATE_UPSTREAM_COMMENTS_PATH", config.upstream.comments_path)
        if val := os.getenv("POSTGATE_UPSTREAM_CONNECT_TIMEOUT"):
            config.upstream.connect_timeout = float(val)
        if val := os.getenv("POSTGATE_UPSTREAM_READ_TIMEOUT"):
            config.upstream.read_timeout = float(val)
        config.upstream.user_agent = os.getenv("POSTGATE_UPSTREAM_USER_AGENT", config.upstream.user_agent)
        config.upstream.breaker_name = os.getenv("POSTGATE_UPSTREAM_BREAKER_NAME", config.upstream.breaker_name)

        # Resilience configuration
        if val := os.getenv("POSTGATE_RESILIENCE_MAX_ATTEMPTS"):
            config.resilience.max_attempts = int(val)
        if val := os.getenv("POSTGATE_RESILIENCE_BASE_DELAY"):
            config.resilience.base_delay = float(val)
        if val := os.getenv("POSTGATE_RESILIENCE_MAX_DELAY"):
            config.resilience.max_delay = float(val)
        if val := os.getenv("POSTGATE_RESILIENCE_BACKOFF_MULTIPLIER"):
            config.resilience.backoff_multiplier = float(val)
        if val := os.getenv("POSTGATE_RESILIENCE_JITTER"):
            config.resilience.jitter = _as_bool(val)
        if val := os.getenv("POSTGATE_RESILIENCE_FAILURE_THRESHOLD"):
            config.resilience.failure_threshold = int(val)
        if val := os.getenv("POSTGATE_RESILIENCE_SUCCESS_THRESHOLD"):
            config.resilience.success_threshold = int(val)
        if val := os.getenv("POSTGATE_RESILIENCE_OPEN_TIMEOUT"):
            config.resilience.open_timeout = float(val)
        if val := os.getenv("POSTGATE_RESILIENCE_FAILURE_WINDOW"):
            config.resilience.failure_window = float(val)
        if val := os.getenv("POSTGATE_RESILIENCE_HALF_OPEN_MAX_CALLS"):
            config.resilience.half_open_max_calls = int(val)
        if val := os.getenv("POSTGATE_RESILIENCE_CALL_DEADLINE"):
            config.resilience.call_deadline = float(val)

        # API configuration
        config.api.host = os.getenv("POSTGATE_API_HOST", config.api.host)
        if val := os.getenv("POSTGATE_API_PORT"):
            config.api.port = int(val)
        config.api.log_level = os.getenv("POSTGATE_API_LOG_LEVEL", config.api.log_level)
        config.api.api_prefix = os.getenv("POSTGATE_API_PREFIX", config.api.api_prefix)
        if val := os.getenv("POSTGATE_API_DOCS_ENABLED"):
            config.api.docs_enabled = _as_bool(val)

        # Service-level settings
        config.log_level = os.getenv("POSTGATE_LOG_LEVEL", config.log_level)

        return config

    def validate(self) -> list[str]:
        """Validate configuration and return any errors.

        Returns:
            List of validation error messages (empty if valid)
        """
        errors = []

        # Validate upstream settings
        if not self.upstream.base_url.strip():
            errors.append("Upstream base_url must not be blank")
        if not self.upstream.posts_path.strip():
            errors.append("Upstream posts_path must not be blank")
        if not self.upstream.comments_path.strip():
            errors.append("Upstream comments_path must not be blank")
        if self.upstream.connect_timeout <= 0:
            errors.append("Upstream connect_timeout must be positive")
        if self.upstream.read_timeout <= 0:
            errors.append("Upstream read_timeout must be positive")
        if not self.upstream.breaker_name.strip():
            errors.append("Upstream breaker_name must not be blank")

        # Validate resilience settings
        if self.resilience.max_attempts < 1:
            errors.append("Resilience max_attempts must be at least 1")
        if self.resilience.base_delay < 0:
            errors.append("Resilience base_delay must be non-negative")
        if self.resilience.max_delay < self.resilience.base_delay:
            errors.append("Resilience max_delay cannot be lower than base_delay")
        if self.resilience.backoff_multiplier < 1.0:
            errors.append("Resilience backoff_multiplier must be at least 1.0")
        if self.resilience.failure_threshold < 1:
            errors.append("Resilience failure_threshold must be at least 1")
        if self.resilience.success_threshold < 1:
            errors.append("Resilience success_threshold must be at least 1")
        if self.resilience.open_timeout <= 0:
            errors.append("Resilience open_timeout must be positive")
        if self.resilience.failure_window <= 0:
            errors.append("Resilience failure_window must be positive")
        if self.resilience.half_open_max_calls < 1:
            errors.append("Resilience half_open_max_calls must be at least 1")
        if self.resilience.call_deadline < 0:
            errors.append("Resilience call_deadline must be non-negative")

        # Validate API settings
        if not 1 <= self.api.port <= 65535:
            errors.append("API port must be between 1 and 65535")

        return errors


# Global configuration instance
_config: ServiceConfig | None = None


def get_config() -> ServiceConfig:
    """Get the global configuration instance.

    Creates the configuration from environment variables on first call.
    """
    global _config  # noqa: PLW0603  # Global config pattern for application configuration
    if _config is None:
        _config = ServiceConfig.from_env()
    return _config


def set_config(config: ServiceConfig) -> None:
    """Replace the global configuration instance."""
    global _config  # noqa: PLW0603
    _config = config


def reset_config() -> None:
    """Drop the global configuration so the next access re-reads the environment."""
    global _config  # noqa: PLW0603
    _config = None
