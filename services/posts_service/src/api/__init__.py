"""HTTP surface of the posts service."""

from .error_handlers import register_exception_handlers
from .middleware import RequestContextMiddleware
from .posts_api import router as posts_router
from .problem_response import ProblemResponse, ProblemResponseBuilder

__all__ = [
    "ProblemResponse",
    "ProblemResponseBuilder",
    "RequestContextMiddleware",
    "posts_router",
    "register_exception_handlers",
]
