"""Request context middleware for structured logging and trace propagation."""

import re
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from uuid import uuid4

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

REQUEST_ID_HEADER = "X-Request-ID"
FORWARDED_FOR_HEADER = "X-Forwarded-For"

# W3C Trace Context
TRACEPARENT_HEADER = "traceparent"
TRACESTATE_HEADER = "tracestate"
TRACE_ID_HEADER = "X-Trace-Id"
SPAN_ID_HEADER = "X-Span-Id"
TRACEPARENT_VERSION = "00"
TRACE_FLAGS_SAMPLED = "01"
TRACE_ID_LENGTH = 32
SPAN_ID_LENGTH = 16
TRACESTATE_VENDOR = "postgate"

TRACEPARENT_PATTERN = re.compile(r"^[0-9a-f]{2}-([0-9a-f]{32})-[0-9a-f]{16}-[0-9a-f]{2}$")
TRACE_ID_PATTERN = re.compile(r"^[0-9a-f]{1,32}$")


def client_ip(request: Request) -> str:
    """First hop of X-Forwarded-For, else the peer address."""
    forwarded_for = request.headers.get(FORWARDED_FOR_HEADER)
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


@dataclass(frozen=True)
class TraceContext:
    """Trace and span identifiers of one request."""

    trace_id: str
    span_id: str

    @property
    def traceparent(self) -> str:
        # 64-bit trace ids are zero-padded to the 128 bits W3C requires
        padded = self.trace_id.rjust(TRACE_ID_LENGTH, "0")
        return f"{TRACEPARENT_VERSION}-{padded}-{self.span_id}-{TRACE_FLAGS_SAMPLED}"

    def headers(self) -> dict[str, str]:
        return {
            TRACEPARENT_HEADER: self.traceparent,
            TRACESTATE_HEADER: f"{TRACESTATE_VENDOR}={self.span_id}",
            TRACE_ID_HEADER: self.trace_id,
            SPAN_ID_HEADER: self.span_id,
        }


def _incoming_trace_id(request: Request) -> str | None:
    traceparent = request.headers.get(TRACEPARENT_HEADER, "").strip().lower()
    match = TRACEPARENT_PATTERN.match(traceparent)
    if match and match.group(1).strip("0"):
        return match.group(1)

    trace_id = request.headers.get(TRACE_ID_HEADER, "").strip().lower()
    if TRACE_ID_PATTERN.match(trace_id) and trace_id.strip("0"):
        return trace_id
    return None


def trace_context(request: Request) -> TraceContext:
    """Continue the caller's trace when it sent one, else start a new trace.

    Each request always gets its own span id.
    """
    trace_id = _incoming_trace_id(request) or uuid4().hex
    span_id = uuid4().hex[:SPAN_ID_LENGTH]
    return TraceContext(trace_id=trace_id, span_id=span_id)


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Bind request and trace identifiers to every log line emitted while handling a request."""

    async def dispatch(self, request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
        """Bind context, run the request, echo the identifiers, then clear the context.

        Args:
            request: FastAPI request object
            call_next: Next middleware/endpoint to call

        Returns:
            Response carrying the X-Request-ID and trace headers
        """
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid4())
        trace = trace_context(request)
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            trace_id=trace.trace_id,
            span_id=trace.span_id,
            client_ip=client_ip(request),
            http_method=request.method,
            request_uri=request.url.path,
            user_agent=request.headers.get("User-Agent", "unknown"),
        )
        try:
            response = await call_next(request)
        finally:
            structlog.contextvars.clear_contextvars()

        response.headers[REQUEST_ID_HEADER] = request_id
        response.headers.update(trace.headers())
        return response
