"""Unit tests for problem response building."""

import json

from services.posts_service.src.api import ProblemResponseBuilder
from services.posts_service.src.exceptions import DomainError


def fixed_clock():
    return 1_700_000_000.4


class TestProblemResponseBuilder:
    """Test mapping of DomainError onto problem responses."""

    def setup_method(self):
        """Set up test fixtures."""
        self.builder = ProblemResponseBuilder(clock=fixed_clock)

    def test_not_found(self):
        """Test status, title and detail are copied over."""
        problem = self.builder.build(DomainError.not_found("Cannot find Post with id 999"))

        assert problem.status == 404
        assert problem.title == "Resource Not Found"
        assert problem.detail == "Cannot find Post with id 999"
        assert problem.headers == {}

    def test_rate_limit_headers(self):
        """Test 429 responses carry the fixed rate-limit headers."""
        problem = self.builder.build(DomainError.rate_limit_exceeded())

        assert problem.status == 429
        assert problem.headers == {
            "Retry-After": "60",
            "X-RateLimit-Limit": "100",
            "X-RateLimit-Remaining": "0",
            "X-RateLimit-Reset": "1700000060",
        }

    def test_invalid_status_becomes_500(self):
        """Test codes outside the HTTP range fall back to 500."""
        problem = self.builder.build(DomainError("odd", status_code=999))

        assert problem.status == 500

    def test_blank_detail_replaced(self):
        """Test a blank detail gets the generic message."""
        problem = self.builder.build(DomainError("  "))

        assert problem.detail == "API Error occurred. Please contact support or administrator."
        assert problem.title == "API Error Occurred"

    def test_validation(self):
        """Test validation problems."""
        problem = self.builder.build_validation("page: Page number must be at least 1")

        assert problem.status == 400
        assert problem.title == "Validation Error"
        assert problem.body() == {
            "status": 400,
            "title": "Validation Error",
            "detail": "page: Page number must be at least 1",
        }

    def test_to_response(self):
        """Test the JSON response carries body, headers and media type."""
        response = self.builder.build(DomainError.rate_limit_exceeded()).to_response()

        assert response.status_code == 429
        assert response.headers["content-type"] == "application/problem+json"
        assert response.headers["retry-after"] == "60"
        assert json.loads(response.body) == {
            "status": 429,
            "title": "Rate Limit Exceeded",
            "detail": "API rate limit exceeded. Please try again later.",
        }
