"""
Structured error model for the posts service.

``DomainError`` is the only exception type that leaves the upstream gateway.
Its status code is a classification code in the HTTP range; it does not tie
the error to any particular transport.
"""

from http import HTTPStatus
from typing import Any

DEFAULT_TITLE = "API Error Occurred"

TITLE_VALIDATION = "Validation Error"
TITLE_NOT_FOUND = "Resource Not Found"
TITLE_UPSTREAM_CLIENT_ERROR = "API Error"
TITLE_RATE_LIMITED = "Rate Limit Exceeded"
TITLE_SERVICE_UNAVAILABLE = "Service Unavailable"
TITLE_INTERNAL_ERROR = "Internal Server Error"

RATE_LIMITED_DETAIL = "API rate limit exceeded. Please try again later."
SERVICE_UNAVAILABLE_DETAIL = "Service temporarily unavailable. Please try again later."
INTERNAL_ERROR_DETAIL = "An unexpected error occurred while communicating with the API."


class DomainError(Exception):
    """Structured, transport-agnostic service error.

    Attributes are read-only once the error is built. Prefer the factory
    class methods over calling the constructor directly.
    """

    def __init__(
        self,
        detail: str,
        title: str = DEFAULT_TITLE,
        status_code: int = HTTPStatus.INTERNAL_SERVER_ERROR,
        cause: BaseException | None = None,
    ) -> None:
        """Initialize the error.

        Args:
            detail: Human readable description, safe to show to callers
            title: Stable title for the error class
            status_code: Classification code in the HTTP range
            cause: Optional underlying error, never rendered to callers
        """
        super().__init__(detail)
        self._detail = detail
        self._title = title
        self._status_code = int(status_code)
        self._cause = cause
        if cause is not None:
            self.__cause__ = cause

    @property
    def detail(self) -> str:
        return self._detail

    @property
    def title(self) -> str:
        return self._title

    @property
    def status_code(self) -> int:
        return self._status_code

    @property
    def cause(self) -> BaseException | None:
        return self._cause

    def to_dict(self) -> dict[str, Any]:
        """Render the caller-visible fields."""
        return {"status": self.status_code, "title": self.title, "detail": self.detail}

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(status_code={self.status_code}, title={self.title!r}, detail={self.detail!r})"

    @classmethod
    def validation(cls, detail: str) -> "DomainError":
        return cls(detail, TITLE_VALIDATION, HTTPStatus.BAD_REQUEST)

    @classmethod
    def not_found(cls, detail: str, cause: BaseException | None = None) -> "DomainError":
        return cls(detail, TITLE_NOT_FOUND, HTTPStatus.NOT_FOUND, cause)

    @classmethod
    def upstream_client_error(cls, detail: str, status_code: int, cause: BaseException | None = None) -> "DomainError":
        """Upstream rejected the request with a 4xx other than 404/429; its code is preserved."""
        return cls(detail, TITLE_UPSTREAM_CLIENT_ERROR, status_code, cause)

    @classmethod
    def rate_limit_exceeded(
        cls, detail: str = RATE_LIMITED_DETAIL, cause: BaseException | None = None
    ) -> "DomainError":
        return cls(detail, TITLE_RATE_LIMITED, HTTPStatus.TOO_MANY_REQUESTS, cause)

    @classmethod
    def service_unavailable(
        cls, detail: str = SERVICE_UNAVAILABLE_DETAIL, cause: BaseException | None = None
    ) -> "DomainError":
        return cls(detail, TITLE_SERVICE_UNAVAILABLE, HTTPStatus.SERVICE_UNAVAILABLE, cause)

    @classmethod
    def internal_error(
        cls, detail: str = INTERNAL_ERROR_DETAIL, cause: BaseException | None = None
    ) -> "DomainError":
        return cls(detail, TITLE_INTERNAL_ERROR, HTTPStatus.INTERNAL_SERVER_ERROR, cause)
