"""Error handlers for API endpoints.

This module converts DomainError and request binding failures into
problem responses.
"""

from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from services.posts_service.src.exceptions import DomainError

from .problem_response import ProblemResponseBuilder

logger = structlog.get_logger(__name__)

TYPE_MISMATCH_ERRORS = frozenset({"int_parsing", "int_type", "float_parsing", "int_from_float"})


def format_binding_error(error: dict[str, Any]) -> str:
    """Render one request binding error as ``field: message``."""
    loc = error.get("loc") or ()
    field = str(loc[-1]) if loc else "request"
    if error.get("type") in TYPE_MISMATCH_ERRORS:
        return f"'{error.get('input')}' is not a valid value for '{field}'. Please provide a valid number."
    return f"{field}: {error.get('msg', 'invalid value')}"


def log_domain_error(error: DomainError) -> None:
    if error.status_code >= 500:
        logger.error(
            "Request failed",
            title=error.title,
            detail=error.detail,
            status_code=error.status_code,
            exc_info=error.cause,
        )
    elif error.status_code >= 400:
        logger.warning("Client error", title=error.title, detail=error.detail, status_code=error.status_code)
    else:
        logger.info("Domain error", title=error.title, detail=error.detail, status_code=error.status_code)


def register_exception_handlers(app: FastAPI, builder: ProblemResponseBuilder | None = None) -> None:
    """Register exception handlers with the FastAPI app.

    Args:
        app: FastAPI application instance.
        builder: Problem response builder, a default one when omitted.
    """
    problems = builder or ProblemResponseBuilder()

    @app.exception_handler(DomainError)
    async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
        log_domain_error(exc)
        return problems.build(exc).to_response()

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        detail = "; ".join(format_binding_error(error) for error in exc.errors())
        logger.warning("Validation error", detail=detail)
        return problems.build_validation(detail).to_response()

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        error = DomainError(str(exc.detail), status_code=exc.status_code)
        return problems.build(error).to_response()

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error("Unhandled exception", error=str(exc), exc_info=exc)
        return problems.build(DomainError.internal_error("An unexpected error occurred")).to_response()
