"""RFC 7807 problem responses for DomainError values."""

import time
from collections.abc import Callable
from dataclasses import dataclass, field
from http import HTTPStatus
from typing import Any

from fastapi.responses import JSONResponse

from services.posts_service.src.exceptions import DEFAULT_TITLE, DomainError

PROBLEM_MEDIA_TYPE = "application/problem+json"
DEFAULT_DETAIL = "API Error occurred. Please contact support or administrator."

HEADER_RETRY_AFTER = "Retry-After"
HEADER_RATELIMIT_LIMIT = "X-RateLimit-Limit"
HEADER_RATELIMIT_REMAINING = "X-RateLimit-Remaining"
HEADER_RATELIMIT_RESET = "X-RateLimit-Reset"

# Fixed policy of this service, not echoed from the upstream
RETRY_AFTER_SECONDS = 60
RATE_LIMIT_LIMIT = 100
RATE_LIMIT_REMAINING = 0


@dataclass(frozen=True)
class ProblemResponse:
    """Wire-ready problem payload plus extra response headers."""

    status: int
    title: str
    detail: str
    headers: dict[str, str] = field(default_factory=dict)

    def body(self) -> dict[str, Any]:
        return {"status": self.status, "title": self.title, "detail": self.detail}

    def to_response(self) -> JSONResponse:
        return JSONResponse(
            status_code=self.status,
            content=self.body(),
            headers=self.headers,
            media_type=PROBLEM_MEDIA_TYPE,
        )


class ProblemResponseBuilder:
    """Builds problem responses, adding rate-limit headers for 429 errors."""

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        """Initialize the builder.

        Args:
            clock: Wall-clock source in epoch seconds, used for X-RateLimit-Reset
        """
        self._clock = clock

    def build(self, error: DomainError) -> ProblemResponse:
        status = _resolve_status(error.status_code)
        title = error.title or DEFAULT_TITLE
        detail = error.detail if error.detail and error.detail.strip() else DEFAULT_DETAIL
        headers = self.rate_limit_headers() if status == HTTPStatus.TOO_MANY_REQUESTS else {}
        return ProblemResponse(status=status, title=title, detail=detail, headers=headers)

    def build_validation(self, detail: str) -> ProblemResponse:
        return self.build(DomainError.validation(detail))

    def rate_limit_headers(self) -> dict[str, str]:
        reset_at = int(self._clock()) + RETRY_AFTER_SECONDS
        return {
            HEADER_RETRY_AFTER: str(RETRY_AFTER_SECONDS),
            HEADER_RATELIMIT_LIMIT: str(RATE_LIMIT_LIMIT),
            HEADER_RATELIMIT_REMAINING: str(RATE_LIMIT_REMAINING),
            HEADER_RATELIMIT_RESET: str(reset_at),
        }


def _resolve_status(status_code: int) -> int:
    """Fall back to 500 for codes that are not valid HTTP statuses."""
    try:
        return HTTPStatus(status_code).value
    except ValueError:
        return HTTPStatus.INTERNAL_SERVER_ERROR.value
