"""Resilient gateway to the upstream posts provider.

Every public operation runs the same loop: ask the circuit breaker for
admission, perform one transport attempt, classify the outcome, report it to
the breaker, then either return the decoded payload, retry after a backoff
delay, or raise a :class:`DomainError`. No other exception type leaves this
module.
"""

import asyncio
from collections.abc import Callable
from typing import Any

import structlog

from services.posts_service.src.exceptions import DomainError
from services.posts_service.src.integration.failure_classifier import Classification, FailureClass, classify
from services.posts_service.src.integration.operations import Operation, OperationCatalog
from services.posts_service.src.integration.query_translator import translate_criteria
from services.posts_service.src.models import Comment, Post, SearchCriteria
from services.posts_service.src.validation import ensure_valid
from shared.utils.async_http_client import TransportClient
from shared.utils.resilience import BreakerOutcome, CircuitBreaker, CircuitOpenError, RetryPolicy, RetryState

logger = structlog.get_logger(__name__)

FallbackHandler = Callable[[Operation, Classification], DomainError]


class CallDeadlineExceededError(Exception):
    """The caller's overall deadline ran out before the upstream answered."""


def default_fallback(operation: Operation, failure: Classification) -> DomainError:
    """Translate an exhausted or short-circuited call into a DomainError.

    Rate limiting keeps its own error so callers receive rate-limit headers;
    everything else the gateway gave up on is reported as unavailable.
    """
    if failure.failure_class == FailureClass.RATE_LIMITED:
        return DomainError.rate_limit_exceeded(cause=failure.cause)
    return DomainError.service_unavailable(cause=failure.cause)


def terminal_error(operation: Operation, failure: Classification) -> DomainError:
    """Map a non-retryable classification to its DomainError."""
    if failure.failure_class == FailureClass.NOT_FOUND:
        return DomainError.not_found(f"Cannot find {operation.resource}", cause=failure.cause)
    if failure.failure_class == FailureClass.CLIENT_ERROR and failure.status_code is not None:
        return DomainError.upstream_client_error(
            f"Upstream rejected the request for {operation.resource} with status {failure.status_code}",
            failure.status_code,
            cause=failure.cause,
        )
    return DomainError.internal_error(cause=failure.cause)


class ResilientGateway:
    """Circuit-breaker gated, retrying access to the posts provider.

    One gateway (and one breaker) is built at startup and shared by all
    requests; per-call state lives in local variables only.
    """

    def __init__(
        self,
        transport: TransportClient,
        breaker: CircuitBreaker,
        retry_policy: RetryPolicy | None = None,
        catalog: OperationCatalog | None = None,
        fallback: FallbackHandler = default_fallback,
        call_deadline: float | None = None,
    ) -> None:
        """Initialize the gateway.

        Args:
            transport: Transport performing single upstream calls
            breaker: Breaker guarding the upstream dependency
            retry_policy: Attempt bound and backoff, defaults to RetryPolicy()
            catalog: Builder for upstream operations
            fallback: Translates exhausted or rejected calls into a DomainError
            call_deadline: Overall seconds allowed per logical call, None for no limit
        """
        self.transport = transport
        self.breaker = breaker
        self.retry_policy = retry_policy or RetryPolicy()
        self.catalog = catalog or OperationCatalog()
        self.fallback = fallback
        self.call_deadline = call_deadline or None

    async def list_posts(self, criteria: SearchCriteria) -> list[Post]:
        """List posts matching the criteria.

        Raises:
            DomainError: 400 for invalid criteria, or any upstream failure
        """
        ensure_valid(criteria)
        operation = self.catalog.list_posts(translate_criteria(criteria))
        posts: list[Post] = await self.execute(operation)
        return posts

    async def get_post(self, post_id: int) -> Post:
        """Fetch one post; a missing post raises a 404 DomainError."""
        post: Post = await self.execute(self.catalog.post_by_id(post_id))
        return post

    async def get_post_with_comments(self, post_id: int) -> Post:
        """Fetch one post with its comments embedded."""
        post: Post = await self.execute(self.catalog.post_with_comments(post_id))
        return post

    async def get_comments(self, post_id: int) -> list[Comment]:
        """Fetch the comments of a post; an unknown post yields whatever upstream lists."""
        comments: list[Comment] = await self.execute(self.catalog.comments_for_post(post_id))
        return comments

    async def execute(self, operation: Operation) -> Any:
        """Run one operation through the breaker and retry loop.

        Args:
            operation: Upstream call to perform

        Returns:
            The decoded payload

        Raises:
            DomainError: When the call cannot produce a payload
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.call_deadline if self.call_deadline else None
        state = RetryState()
        log = logger.bind(operation=operation.name, path=operation.path)
        previous: Classification | None = None

        while True:
            attempt = state.next_attempt()

            try:
                trial = self.breaker.acquire()
            except CircuitOpenError as e:
                log.warning("Circuit open, call short-circuited", attempt=attempt, retry_in=e.retry_in)
                # A retry cut short keeps the class of the attempt that failed
                rejected = previous or Classification(
                    FailureClass.RETRYABLE_TRANSIENT, cause=e, reason="circuit open"
                )
                raise self.fallback(operation, rejected) from e

            failure = await self._attempt(operation, deadline, trial)
            previous = failure

            if failure.failure_class == FailureClass.SUCCESS:
                if attempt > 1:
                    log.info("Upstream call succeeded after retry", attempt=attempt)
                return failure.payload

            if not failure.failure_class.is_retryable:
                if failure.failure_class == FailureClass.FATAL:
                    log.error("Unexpected upstream outcome", reason=failure.reason, error=str(failure.cause))
                else:
                    log.info("Upstream call ended", failure_class=failure.failure_class.value, reason=failure.reason)
                raise terminal_error(operation, failure)

            if isinstance(failure.cause, CallDeadlineExceededError):
                log.warning("Call deadline exceeded", attempt=attempt, elapsed=round(state.elapsed(), 3))
                raise self.fallback(operation, failure)

            if not self.retry_policy.should_retry(attempt, failure.failure_class.is_retryable):
                log.error(
                    "Upstream call failed, attempts exhausted",
                    attempts=attempt,
                    failure_class=failure.failure_class.value,
                    reason=failure.reason,
                )
                raise self.fallback(operation, failure)

            delay = self.retry_policy.backoff(attempt)
            if deadline is not None and loop.time() + delay >= deadline:
                log.warning("No time left for another attempt", attempt=attempt, delay=round(delay, 3))
                raise self.fallback(operation, failure)

            log.warning(
                "Upstream call failed, retrying",
                attempt=attempt,
                max_attempts=self.retry_policy.max_attempts,
                failure_class=failure.failure_class.value,
                reason=failure.reason,
                sleep_time=round(delay, 3),
            )
            await self.retry_policy.sleep(delay)

    async def _attempt(self, operation: Operation, deadline: float | None, trial: bool) -> Classification:
        """Perform and classify one admitted attempt, always reporting it to the breaker.

        An attempt cut off by the caller's deadline is reported as ignored: it
        says nothing about the upstream's health.
        """
        breaker_outcome = BreakerOutcome.IGNORED
        try:
            async with asyncio.timeout_at(deadline):
                outcome = await self.transport.get(operation.path, operation.params)
            failure = classify(outcome, operation)
            breaker_outcome = failure.failure_class.breaker_outcome
        except TimeoutError as e:
            deadline_error = CallDeadlineExceededError(f"Deadline exceeded during {operation.name}")
            deadline_error.__cause__ = e
            failure = Classification(FailureClass.RETRYABLE_TRANSIENT, cause=deadline_error, reason="deadline exceeded")
        except Exception as e:
            failure = Classification(FailureClass.FATAL, cause=e, reason=e.__class__.__name__)
        finally:
            # Cancelled attempts still free their trial slot
            self.breaker.record(breaker_outcome, trial=trial)
        return failure
