"""
Main entry point for the posts service.

Builds the FastAPI application, the shared upstream client and the
process-wide circuit breaker, and serves the API with uvicorn.
"""

import asyncio
import logging
import sys
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

import structlog
import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI

from shared.utils.async_http_client import AsyncHTTPClientFactory, HTTPClientConfig, TransportClient
from shared.utils.resilience import CircuitBreakerConfig, CircuitBreakerManager, RetryPolicy

from .api import RequestContextMiddleware, posts_router, register_exception_handlers
from .config import ServiceConfig, get_config
from .integration import OperationCatalog, ResilientGateway

VERSION = "0.1.0"


# Configure structured logging
def setup_logging(config: ServiceConfig | None = None) -> None:
    """Configure structured logging for the service."""
    config = config or get_config()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer(),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, config.log_level.upper(), logging.INFO),
    )


class AppContext:
    """Owns the long-lived upstream resources of one process."""

    def __init__(self, config: ServiceConfig) -> None:
        self.config = config
        self.http_factory: AsyncHTTPClientFactory | None = None
        self.breakers = CircuitBreakerManager()
        self.gateway: ResilientGateway | None = None

    def build_gateway(self) -> ResilientGateway:
        """Create the shared client, breaker and gateway."""
        upstream = self.config.upstream
        resilience = self.config.resilience

        self.http_factory = AsyncHTTPClientFactory(
            HTTPClientConfig(
                base_url=upstream.base_url,
                connect_timeout=upstream.connect_timeout,
                read_timeout=upstream.read_timeout,
                user_agent=upstream.user_agent,
            )
        )
        breaker = self.breakers.get_circuit_breaker(
            upstream.breaker_name,
            CircuitBreakerConfig(
                failure_threshold=resilience.failure_threshold,
                success_threshold=resilience.success_threshold,
                timeout=resilience.open_timeout,
                failure_window=resilience.failure_window,
                half_open_max_calls=resilience.half_open_max_calls,
            ),
        )
        self.gateway = ResilientGateway(
            transport=TransportClient(self.http_factory.get_httpx_client()),
            breaker=breaker,
            retry_policy=RetryPolicy(
                max_attempts=resilience.max_attempts,
                base_delay=resilience.base_delay,
                max_delay=resilience.max_delay,
                multiplier=resilience.backoff_multiplier,
                jitter=resilience.jitter,
            ),
            catalog=OperationCatalog(upstream.posts_path, upstream.comments_path),
            call_deadline=resilience.call_deadline,
        )
        return self.gateway

    async def shutdown(self) -> None:
        """Release the shared upstream client."""
        if self.http_factory:
            await self.http_factory.close()


def create_app(config: ServiceConfig | None = None, gateway: ResilientGateway | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        config: Service configuration, the global one when omitted
        gateway: Prebuilt gateway; when omitted one is built at startup
    """
    config = config or get_config()
    context = AppContext(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        logger = structlog.get_logger(__name__)
        if gateway is None:
            app.state.gateway = context.build_gateway()
        logger.info("Starting posts service", version=VERSION, upstream=config.upstream.base_url)
        try:
            yield
        finally:
            await context.shutdown()
            logger.info("Posts service shutdown complete")

    app = FastAPI(
        title="Posts Service",
        description="Filtered, paginated and resilient view of an upstream posts provider",
        version=VERSION,
        lifespan=lifespan,
        docs_url="/docs" if config.api.docs_enabled else None,
        redoc_url="/redoc" if config.api.docs_enabled else None,
    )
    if gateway is not None:
        app.state.gateway = gateway

    app.add_middleware(RequestContextMiddleware)
    register_exception_handlers(app)
    app.include_router(posts_router, prefix=config.api.api_prefix)

    @app.get("/health")
    async def health_check() -> dict[str, Any]:
        """Health check endpoint."""
        current: ResilientGateway | None = getattr(app.state, "gateway", None)
        return {
            "status": "healthy",
            "service": "posts_service",
            "version": VERSION,
            "circuit_state": current.breaker.state.value if current else None,
        }

    return app


async def main() -> None:
    """Main async entry point."""
    load_dotenv()
    config = get_config()
    setup_logging(config)

    errors = config.validate()
    if errors:
        logger = structlog.get_logger(__name__)
        logger.error("Configuration validation failed", errors=errors)
        sys.exit(1)

    app = create_app(config)

    uvicorn_config = uvicorn.Config(
        app,
        host=config.api.host,
        port=config.api.port,
        log_level=config.api.log_level,
    )

    server = uvicorn.Server(uvicorn_config)
    await server.serve()


def run() -> None:
    """Console script entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    run()
