"""Classification of raw transport outcomes.

This is the only place that decides whether an outcome is worth retrying.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any

import httpx
from pydantic import ValidationError

from services.posts_service.src.integration.operations import Operation
from shared.utils.async_http_client import HttpResponseOutcome, Outcome, TransportFailure
from shared.utils.resilience import BreakerOutcome

RETRYABLE_STATUS_CODES = frozenset({500, 502, 503, 504})
RATE_LIMITED_STATUS_CODE = 429
NOT_FOUND_STATUS_CODE = 404


class FailureClass(Enum):
    """What a completed attempt means for the caller."""

    SUCCESS = "success"
    RETRYABLE_TRANSIENT = "retryable_transient"
    RATE_LIMITED = "rate_limited"
    NOT_FOUND = "not_found"
    CLIENT_ERROR = "client_error"
    FATAL = "fatal"

    @property
    def is_retryable(self) -> bool:
        return self in (FailureClass.RETRYABLE_TRANSIENT, FailureClass.RATE_LIMITED)

    @property
    def breaker_outcome(self) -> BreakerOutcome:
        """How the attempt is reported to the circuit breaker.

        Upstream answering properly (even with 404 or another 4xx) counts as
        healthy. Unexpected shapes do not move the breaker either way.
        """
        if self.is_retryable:
            return BreakerOutcome.FAILURE
        if self == FailureClass.FATAL:
            return BreakerOutcome.IGNORED
        return BreakerOutcome.SUCCESS


@dataclass(frozen=True)
class Classification:
    """Result of classifying one outcome."""

    failure_class: FailureClass
    payload: Any = None
    status_code: int | None = None
    retry_after: int | None = None
    cause: BaseException | None = None
    reason: str = ""


class UpstreamPayloadError(Exception):
    """The upstream answered 2xx with a body that does not fit the expected shape."""


def _parse_retry_after(outcome: HttpResponseOutcome) -> int | None:
    value = outcome.headers.get("retry-after")
    if value is None:
        return None
    try:
        seconds = int(value.strip())
    except ValueError:
        # HTTP-date form is not used as a hint
        return None
    return seconds if seconds >= 0 else None


def _is_absent(body: bytes) -> bool:
    stripped = body.strip()
    return stripped in (b"", b"null", b"{}")


def _classify_success(outcome: HttpResponseOutcome, operation: Operation) -> Classification:
    if _is_absent(outcome.body):
        if operation.requires_body:
            return Classification(
                FailureClass.NOT_FOUND,
                status_code=outcome.status_code,
                reason="empty body",
            )
        return Classification(FailureClass.SUCCESS, payload=[], status_code=outcome.status_code)

    try:
        payload = operation.response.validate_json(outcome.body)
    except ValidationError as e:
        # Includes malformed JSON, which pydantic reports as a json_invalid error
        return Classification(
            FailureClass.FATAL,
            status_code=outcome.status_code,
            cause=UpstreamPayloadError(f"Unexpected payload for {operation.name}: {e.error_count()} error(s)"),
            reason="unexpected payload shape",
        )

    return Classification(FailureClass.SUCCESS, payload=payload, status_code=outcome.status_code)


def classify(outcome: Outcome, operation: Operation) -> Classification:
    """Assign a failure class to the outcome of one attempt.

    Args:
        outcome: Raw transport outcome
        operation: Operation that produced it, used to decode success bodies

    Returns:
        Classification carrying the decoded payload on success
    """
    if isinstance(outcome, TransportFailure):
        if isinstance(outcome.cause, httpx.TransportError):
            return Classification(
                FailureClass.RETRYABLE_TRANSIENT,
                cause=outcome.cause,
                reason=outcome.cause.__class__.__name__,
            )
        return Classification(FailureClass.FATAL, cause=outcome.cause, reason=outcome.cause.__class__.__name__)

    status_code = outcome.status_code
    if outcome.is_success:
        return _classify_success(outcome, operation)
    if status_code in RETRYABLE_STATUS_CODES:
        return Classification(FailureClass.RETRYABLE_TRANSIENT, status_code=status_code, reason=f"HTTP {status_code}")
    if status_code == RATE_LIMITED_STATUS_CODE:
        return Classification(
            FailureClass.RATE_LIMITED,
            status_code=status_code,
            retry_after=_parse_retry_after(outcome),
            reason="HTTP 429",
        )
    if status_code == NOT_FOUND_STATUS_CODE:
        return Classification(FailureClass.NOT_FOUND, status_code=status_code, reason="HTTP 404")
    if 400 <= status_code < 500:
        return Classification(FailureClass.CLIENT_ERROR, status_code=status_code, reason=f"HTTP {status_code}")
    return Classification(FailureClass.FATAL, status_code=status_code, reason=f"unexpected HTTP {status_code}")
