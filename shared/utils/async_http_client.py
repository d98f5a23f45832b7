"""Async HTTP transport producing raw call outcomes.

The transport performs exactly one request per call and never raises for
upstream behaviour: every call ends in an :class:`HttpResponseOutcome` or a
:class:`TransportFailure`. Deciding what an outcome means is left to the
caller.
"""

import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

import httpx
import structlog

logger = structlog.get_logger(__name__)

MAX_BODY_LOG_LENGTH = 1000


class HTTPClientConfig:
    """Configuration for async HTTP clients."""

    def __init__(
        self,
        base_url: str = "",
        connect_timeout: float = 5.0,
        read_timeout: float = 10.0,
        max_keepalive_connections: int = 20,
        max_connections: int = 50,
        keepalive_expiry: float = 30.0,
        user_agent: str = "postgate/1.0",
    ) -> None:
        """Initialize HTTP client configuration.

        Args:
            base_url: Base URL every request path is resolved against
            connect_timeout: Connection timeout in seconds
            read_timeout: Read timeout in seconds
            max_keepalive_connections: Maximum number of keepalive connections
            max_connections: Maximum total connections
            keepalive_expiry: Keepalive timeout in seconds
            user_agent: User agent string for requests
        """
        self.base_url = base_url
        self.connect_timeout = connect_timeout
        self.read_timeout = read_timeout
        self.max_keepalive_connections = max_keepalive_connections
        self.max_connections = max_connections
        self.keepalive_expiry = keepalive_expiry
        self.user_agent = user_agent


@dataclass(frozen=True)
class HttpResponseOutcome:
    """Upstream answered with a status line, whatever the status."""

    status_code: int
    headers: Mapping[str, str] = field(default_factory=dict)  # lower-cased names
    body: bytes = b""

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300


@dataclass(frozen=True)
class TransportFailure:
    """The call never produced a response (refused, timed out, DNS, TLS...)."""

    cause: Exception


Outcome = HttpResponseOutcome | TransportFailure


class AsyncHTTPClientFactory:
    """Factory for creating configured httpx async clients."""

    def __init__(self, config: HTTPClientConfig | None = None) -> None:
        """Initialize the HTTP client factory.

        Args:
            config: Optional configuration, uses defaults if not provided
        """
        self.config = config or HTTPClientConfig()
        self._httpx_client: httpx.AsyncClient | None = None

    def get_httpx_client(self, transport: httpx.AsyncBaseTransport | None = None) -> httpx.AsyncClient:
        """Get or create the shared httpx async client.

        Args:
            transport: Optional transport override, used by tests

        Returns:
            Configured httpx async client
        """
        if self._httpx_client is None:
            self._httpx_client = httpx.AsyncClient(
                base_url=self.config.base_url,
                timeout=httpx.Timeout(
                    self.config.read_timeout,
                    connect=self.config.connect_timeout,
                ),
                limits=httpx.Limits(
                    max_keepalive_connections=self.config.max_keepalive_connections,
                    max_connections=self.config.max_connections,
                    keepalive_expiry=self.config.keepalive_expiry,
                ),
                headers={"User-Agent": self.config.user_agent, "Accept": "application/json"},
                transport=transport,
            )
        return self._httpx_client

    async def close(self) -> None:
        """Close the shared client."""
        if self._httpx_client:
            await self._httpx_client.aclose()
            self._httpx_client = None


def _truncate(text: str) -> str:
    if len(text) <= MAX_BODY_LOG_LENGTH:
        return text
    return text[:MAX_BODY_LOG_LENGTH] + "...[truncated]"


class TransportClient:
    """Performs single GET calls and reports their raw outcome."""

    def __init__(self, client: httpx.AsyncClient) -> None:
        """Initialize the transport.

        Args:
            client: Shared httpx client carrying base URL and timeouts
        """
        self.client = client

    async def get(self, path: str, params: Mapping[str, Any] | None = None) -> Outcome:
        """Issue one GET request.

        Args:
            path: Path relative to the client's base URL
            params: Query parameters, sent in iteration order

        Returns:
            The raw outcome of the call
        """
        query = list((params or {}).items())
        logger.debug("Upstream request", method="GET", path=path, params=query)
        started = time.perf_counter()

        try:
            response = await self.client.get(path, params=query)
        except httpx.HTTPError as e:
            elapsed_ms = round((time.perf_counter() - started) * 1000, 1)
            logger.warning(
                "Upstream transport failure",
                path=path,
                error=str(e) or e.__class__.__name__,
                error_type=e.__class__.__name__,
                elapsed_ms=elapsed_ms,
            )
            return TransportFailure(cause=e)

        elapsed_ms = round((time.perf_counter() - started) * 1000, 1)
        logger.debug(
            "Upstream response",
            method="GET",
            url=str(response.request.url),
            status_code=response.status_code,
            elapsed_ms=elapsed_ms,
        )
        if not response.is_success:
            logger.debug("Upstream error body", body=_truncate(response.text))

        return HttpResponseOutcome(
            status_code=response.status_code,
            headers={key.lower(): value for key, value in response.headers.items()},
            body=response.content,
        )
