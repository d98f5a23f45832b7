"""Unit tests for the resilient gateway.

The upstream is an ``httpx.MockTransport``; retry sleeps are recorded rather
than awaited and the breaker runs on a manual clock.
"""

import asyncio

import httpx
import pytest

from services.posts_service.src.exceptions import DomainError
from services.posts_service.src.integration import Classification, FailureClass, ResilientGateway
from services.posts_service.src.models import SearchCriteria
from shared.utils.async_http_client import TransportClient
from shared.utils.resilience import CircuitBreaker, CircuitBreakerConfig, CircuitState, RetryPolicy
from tests.shared_utilities import UpstreamStub, generate_comment, generate_post, make_client


def make_gateway(handler, fake_clock, recording_sleep, breaker_config=None, **kwargs):
    """Build a gateway over a stubbed upstream with a three-attempt policy."""
    breaker = CircuitBreaker(
        "postsApi",
        breaker_config or CircuitBreakerConfig(failure_threshold=5, timeout=30.0),
        clock=fake_clock,
    )
    retry_policy = kwargs.pop(
        "retry_policy", RetryPolicy(max_attempts=3, base_delay=0.5, jitter=False, sleep=recording_sleep)
    )
    return ResilientGateway(TransportClient(make_client(handler)), breaker, retry_policy=retry_policy, **kwargs)


class TestGatewaySuccess:
    """Test calls that reach a healthy upstream."""

    @pytest.mark.asyncio
    async def test_list_posts(self, fake_clock, recording_sleep):
        """Test a filtered listing returns decoded posts."""
        stub = UpstreamStub([httpx.Response(200, json=[generate_post(1)])])
        gateway = make_gateway(stub, fake_clock, recording_sleep)

        posts = await gateway.list_posts(SearchCriteria(user_id=1))

        assert [post.id for post in posts] == [1]
        assert stub.call_count == 1
        assert stub.requests[0].url.path == "/posts"
        assert stub.requests[0].url.params["userId"] == "1"

    @pytest.mark.asyncio
    async def test_list_posts_forwards_translated_query(self, fake_clock, recording_sleep):
        """Test pagination and sorting reach the upstream in its vocabulary."""
        stub = UpstreamStub([httpx.Response(200, json=[])])
        gateway = make_gateway(stub, fake_clock, recording_sleep)

        await gateway.list_posts(SearchCriteria(page=2, size=10, sort="title", order="desc"))

        assert list(stub.requests[0].url.params.multi_items()) == [
            ("_page", "2"),
            ("_limit", "10"),
            ("_sort", "title"),
            ("_order", "desc"),
        ]

    @pytest.mark.asyncio
    async def test_invalid_criteria_never_reach_upstream(self, fake_clock, recording_sleep):
        """Test invalid criteria fail with 400 before any call."""
        stub = UpstreamStub([httpx.Response(200, json=[])])
        gateway = make_gateway(stub, fake_clock, recording_sleep)

        with pytest.raises(DomainError) as exc_info:
            await gateway.list_posts(SearchCriteria(page=1))

        assert exc_info.value.status_code == 400
        assert stub.call_count == 0

    @pytest.mark.asyncio
    async def test_get_post(self, fake_clock, recording_sleep):
        """Test fetching one post."""
        stub = UpstreamStub([httpx.Response(200, json=generate_post(3))])
        gateway = make_gateway(stub, fake_clock, recording_sleep)

        post = await gateway.get_post(3)

        assert post.id == 3
        assert post.comments is None
        assert stub.requests[0].url.path == "/posts/3"

    @pytest.mark.asyncio
    async def test_get_post_with_comments(self, fake_clock, recording_sleep):
        """Test comments are requested embedded in the post."""
        payload = generate_post(1, comments=[generate_comment(1), generate_comment(2)])
        stub = UpstreamStub([httpx.Response(200, json=payload)])
        gateway = make_gateway(stub, fake_clock, recording_sleep)

        post = await gateway.get_post_with_comments(1)

        assert len(post.comments) == 2
        assert stub.requests[0].url.params["_embed"] == "comments"

    @pytest.mark.asyncio
    async def test_get_comments(self, fake_clock, recording_sleep):
        """Test listing the comments of a post."""
        stub = UpstreamStub([httpx.Response(200, json=[generate_comment(1, post_id=4)])])
        gateway = make_gateway(stub, fake_clock, recording_sleep)

        comments = await gateway.get_comments(4)

        assert [comment.post_id for comment in comments] == [4]
        assert stub.requests[0].url.path == "/posts/4/comments"

    @pytest.mark.asyncio
    async def test_concurrent_calls_share_one_gateway(self, fake_clock, recording_sleep):
        """Test concurrent callers each get their own result."""
        stub = UpstreamStub([httpx.Response(200, json=generate_post(1))])
        gateway = make_gateway(stub, fake_clock, recording_sleep)

        posts = await asyncio.gather(*(gateway.get_post(1) for _ in range(10)))

        assert len(posts) == 10
        assert stub.call_count == 10
        assert gateway.breaker.get_stats()["successful_calls"] == 10


class TestGatewayTerminalErrors:
    """Test failures that are never retried."""

    @pytest.mark.asyncio
    async def test_not_found(self, fake_clock, recording_sleep):
        """Test an upstream 404 becomes a not-found error after one call."""
        stub = UpstreamStub([httpx.Response(404, json={})])
        gateway = make_gateway(stub, fake_clock, recording_sleep)

        with pytest.raises(DomainError) as exc_info:
            await gateway.get_post(999)

        error = exc_info.value
        assert error.status_code == 404
        assert error.title == "Resource Not Found"
        assert error.detail == "Cannot find Post with id 999"
        assert stub.call_count == 1
        assert recording_sleep.delays == []

    @pytest.mark.asyncio
    async def test_empty_body_is_not_found(self, fake_clock, recording_sleep):
        """Test a 200 with an empty object means the post does not exist."""
        stub = UpstreamStub([httpx.Response(200, json={})])
        gateway = make_gateway(stub, fake_clock, recording_sleep)

        with pytest.raises(DomainError) as exc_info:
            await gateway.get_post(1)

        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_not_found_does_not_trip_breaker(self, fake_clock, recording_sleep):
        """Test 404s count as healthy upstream answers."""
        stub = UpstreamStub([httpx.Response(404)])
        gateway = make_gateway(stub, fake_clock, recording_sleep, CircuitBreakerConfig(failure_threshold=2))

        for _ in range(5):
            with pytest.raises(DomainError):
                await gateway.get_post(999)

        assert gateway.breaker.state == CircuitState.CLOSED
        assert stub.call_count == 5

    @pytest.mark.asyncio
    async def test_client_error_keeps_status(self, fake_clock, recording_sleep):
        """Test other 4xx answers keep their status code."""
        stub = UpstreamStub([httpx.Response(403)])
        gateway = make_gateway(stub, fake_clock, recording_sleep)

        with pytest.raises(DomainError) as exc_info:
            await gateway.get_comments(1)

        assert exc_info.value.status_code == 403
        assert exc_info.value.title == "API Error"
        assert stub.call_count == 1

    @pytest.mark.asyncio
    async def test_malformed_payload_is_internal_error(self, fake_clock, recording_sleep):
        """Test an unexpected body is a 500 that leaves the breaker alone."""
        stub = UpstreamStub([httpx.Response(200, content=b"<html>oops</html>")])
        gateway = make_gateway(stub, fake_clock, recording_sleep, CircuitBreakerConfig(failure_threshold=1))

        with pytest.raises(DomainError) as exc_info:
            await gateway.get_post(1)

        assert exc_info.value.status_code == 500
        assert stub.call_count == 1
        assert gateway.breaker.state == CircuitState.CLOSED
        assert gateway.breaker.get_stats()["ignored_calls"] == 1


class TestGatewayRetries:
    """Test retry behaviour for transient failures."""

    @pytest.mark.asyncio
    async def test_server_errors_exhaust_attempts(self, fake_clock, recording_sleep):
        """Test persistent 5xx answers use every attempt then report unavailable."""
        stub = UpstreamStub([httpx.Response(503)])
        gateway = make_gateway(stub, fake_clock, recording_sleep)

        with pytest.raises(DomainError) as exc_info:
            await gateway.list_posts(SearchCriteria())

        assert exc_info.value.status_code == 503
        assert exc_info.value.title == "Service Unavailable"
        assert stub.call_count == 3
        assert recording_sleep.delays == [0.5, 1.0]

    @pytest.mark.asyncio
    async def test_recovers_after_transient_failure(self, fake_clock, recording_sleep):
        """Test a retry succeeds after a transient failure."""
        stub = UpstreamStub(
            [
                httpx.ConnectError("refused"),
                httpx.Response(502),
                httpx.Response(200, json=[generate_post(1)]),
            ]
        )
        gateway = make_gateway(stub, fake_clock, recording_sleep)

        posts = await gateway.list_posts(SearchCriteria())

        assert len(posts) == 1
        assert stub.call_count == 3

    @pytest.mark.asyncio
    async def test_rate_limited_exhausts_to_429(self, fake_clock, recording_sleep):
        """Test persistent 429 answers surface as a rate-limit error."""
        stub = UpstreamStub([httpx.Response(429, headers={"Retry-After": "1"})])
        gateway = make_gateway(stub, fake_clock, recording_sleep)

        with pytest.raises(DomainError) as exc_info:
            await gateway.get_post(1)

        assert exc_info.value.status_code == 429
        assert exc_info.value.detail == "API rate limit exceeded. Please try again later."
        assert stub.call_count == 3

    @pytest.mark.asyncio
    async def test_single_attempt_policy(self, fake_clock, recording_sleep):
        """Test a one-attempt policy never retries."""
        stub = UpstreamStub([httpx.Response(500)])
        gateway = make_gateway(
            stub, fake_clock, recording_sleep, retry_policy=RetryPolicy(max_attempts=1, sleep=recording_sleep)
        )

        with pytest.raises(DomainError):
            await gateway.get_post(1)

        assert stub.call_count == 1
        assert recording_sleep.delays == []

    @pytest.mark.asyncio
    async def test_custom_fallback(self, fake_clock, recording_sleep):
        """Test the fallback decides the error for exhausted calls."""
        seen: list[Classification] = []

        def fallback(operation, failure):
            seen.append(failure)
            return DomainError("custom", status_code=502)

        stub = UpstreamStub([httpx.Response(504)])
        gateway = make_gateway(stub, fake_clock, recording_sleep, fallback=fallback)

        with pytest.raises(DomainError) as exc_info:
            await gateway.get_post(1)

        assert exc_info.value.detail == "custom"
        assert seen[0].failure_class == FailureClass.RETRYABLE_TRANSIENT
        assert seen[0].status_code == 504


class TestGatewayCircuitBreaker:
    """Test breaker integration."""

    @pytest.mark.asyncio
    async def test_open_breaker_short_circuits(self, fake_clock, recording_sleep):
        """Test an open breaker answers without calling upstream."""
        stub = UpstreamStub([httpx.Response(500)])
        gateway = make_gateway(stub, fake_clock, recording_sleep, CircuitBreakerConfig(failure_threshold=3))

        with pytest.raises(DomainError):
            await gateway.get_post(1)
        assert gateway.breaker.state == CircuitState.OPEN
        assert stub.call_count == 3

        with pytest.raises(DomainError) as exc_info:
            await gateway.get_post(1)

        assert exc_info.value.status_code == 503
        assert stub.call_count == 3

    @pytest.mark.asyncio
    async def test_breaker_opening_mid_call_stops_retries(self, fake_clock, recording_sleep):
        """Test retries stop as soon as the breaker opens."""
        stub = UpstreamStub([httpx.Response(500)])
        gateway = make_gateway(stub, fake_clock, recording_sleep, CircuitBreakerConfig(failure_threshold=2))

        with pytest.raises(DomainError) as exc_info:
            await gateway.get_post(1)

        assert exc_info.value.status_code == 503
        assert stub.call_count == 2

    @pytest.mark.asyncio
    async def test_rate_limit_survives_breaker_opening_mid_call(self, fake_clock, recording_sleep):
        """Test a rate-limited call stays a 429 when the breaker opens during its retries."""
        stub = UpstreamStub([httpx.Response(429)])
        gateway = make_gateway(stub, fake_clock, recording_sleep, CircuitBreakerConfig(failure_threshold=5))

        statuses = []
        for _ in range(2):
            with pytest.raises(DomainError) as exc_info:
                await gateway.get_post(1)
            statuses.append(exc_info.value.status_code)

        assert statuses == [429, 429]
        assert stub.call_count == 5
        assert gateway.breaker.state == CircuitState.OPEN

    @pytest.mark.asyncio
    async def test_rejection_before_any_attempt_is_unavailable(self, fake_clock, recording_sleep):
        """Test a call refused on its first attempt reports unavailable."""
        stub = UpstreamStub([httpx.Response(429)])
        gateway = make_gateway(stub, fake_clock, recording_sleep, CircuitBreakerConfig(failure_threshold=3))

        with pytest.raises(DomainError):
            await gateway.get_post(1)

        with pytest.raises(DomainError) as exc_info:
            await gateway.get_post(1)

        assert exc_info.value.status_code == 503
        assert stub.call_count == 3

    @pytest.mark.asyncio
    async def test_half_open_trial_closes_breaker(self, fake_clock, recording_sleep):
        """Test a successful trial after the cool-down closes the breaker."""
        stub = UpstreamStub([httpx.Response(500), httpx.Response(500), httpx.Response(200, json=generate_post(1))])
        gateway = make_gateway(
            stub, fake_clock, recording_sleep, CircuitBreakerConfig(failure_threshold=2, timeout=30.0)
        )

        with pytest.raises(DomainError):
            await gateway.get_post(1)
        fake_clock.advance(30.0)

        post = await gateway.get_post(1)

        assert post.id == 1
        assert gateway.breaker.state == CircuitState.CLOSED


class TestGatewayDeadline:
    """Test the per-call deadline."""

    @pytest.mark.asyncio
    async def test_slow_upstream_hits_deadline(self, fake_clock, recording_sleep):
        """Test an attempt outliving the deadline is abandoned without blaming the upstream."""

        async def slow(request):
            await asyncio.sleep(5)
            return httpx.Response(200, json=generate_post(1))

        gateway = make_gateway(slow, fake_clock, recording_sleep, call_deadline=0.05)

        with pytest.raises(DomainError) as exc_info:
            await gateway.get_post(1)

        assert exc_info.value.status_code == 503
        assert gateway.breaker.get_stats()["failed_calls"] == 0
        assert gateway.breaker.get_stats()["ignored_calls"] == 1
        assert recording_sleep.delays == []

    @pytest.mark.asyncio
    async def test_short_deadlines_do_not_trip_breaker(self, fake_clock, recording_sleep):
        """Test repeated deadline expiries leave the breaker closed."""

        async def slow(request):
            await asyncio.sleep(5)
            return httpx.Response(200, json=generate_post(1))

        gateway = make_gateway(
            slow, fake_clock, recording_sleep, CircuitBreakerConfig(failure_threshold=1), call_deadline=0.01
        )

        for _ in range(3):
            with pytest.raises(DomainError):
                await gateway.get_post(1)

        assert gateway.breaker.state == CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_backoff_past_deadline_gives_up(self, fake_clock, recording_sleep):
        """Test no retry is scheduled when its delay would cross the deadline."""
        stub = UpstreamStub([httpx.Response(503)])
        gateway = make_gateway(
            stub,
            fake_clock,
            recording_sleep,
            retry_policy=RetryPolicy(max_attempts=3, base_delay=5.0, jitter=False, sleep=recording_sleep),
            call_deadline=1.0,
        )

        with pytest.raises(DomainError) as exc_info:
            await gateway.get_post(1)

        assert exc_info.value.status_code == 503
        assert stub.call_count == 1
        assert recording_sleep.delays == []
