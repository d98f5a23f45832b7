"""Shared test utilities for the postgate test suite.

Upstream stubs, a controllable clock and sample payloads used across the
unit tests.
"""

from .data_generators import generate_comment, generate_post
from .upstream_helpers import (
    UPSTREAM_BASE_URL,
    FakeClock,
    RecordingSleep,
    UpstreamStub,
    make_client,
)

__all__ = [
    "UPSTREAM_BASE_URL",
    "FakeClock",
    "RecordingSleep",
    "UpstreamStub",
    "generate_comment",
    "generate_post",
    "make_client",
]
