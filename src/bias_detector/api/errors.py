"""
Error responses and global exception handlers.

Maps the BiasDetectorError hierarchy onto HTTP status codes. Every error
body carries ``error``, ``error_code`` and ``correlation_id``.
"""

from __future__ import annotations

import logging
from typing import Any

from bias_detector.common.exceptions import (
    AuthenticationError,
    BiasDetectorError,
    ConfigurationError,
    LLMOutputSchemaError,
    ModelOutputError,
    NoCandidatesError,
    ProviderError,
    RetrievalError,
    SecurityError,
    ValidationError,
)
from bias_detector.context import correlation_id_ctx
from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


def create_error_response(
    status_code: int,
    message: str,
    error_code: str | None = None,
    extra: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    """Create a flat error response with correlation ID."""
    body: dict[str, Any] = {
        "success": False,
        "error": message,
        "error_code": error_code,
        "correlation_id": correlation_id_ctx.get(),
    }
    if extra:
        body.update(extra)
    return JSONResponse(status_code=status_code, content=body, headers=headers)


def status_for(exc: BiasDetectorError) -> int:
    if isinstance(exc, ValidationError):
        return 400
    if isinstance(exc, AuthenticationError):
        return 401
    if isinstance(exc, SecurityError):
        return 403
    if isinstance(exc, (NoCandidatesError, LLMOutputSchemaError, RetrievalError)):
        return 502
    if isinstance(exc, ProviderError):
        return 503 if exc.retryable else 502
    if isinstance(exc, ConfigurationError):
        return 500
    return 500


async def bias_detector_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Global exception handler for the BiasDetectorError hierarchy.

    - ValidationError -> 400
    - AuthenticationError -> 401
    - NoCandidatesError / ModelOutputError / RetrievalError -> 502
    - ConfigurationError -> 500
    """
    if not isinstance(exc, BiasDetectorError):
        return await generic_exception_handler(request, exc)

    status_code = status_for(exc)
    extra: dict[str, Any] = {}
    headers = None
    message = exc.message

    if isinstance(exc, ModelOutputError):
        extra = {
            "rawFirstPass": exc.raw_first_pass,
            "rawSecondPass": exc.raw_second_pass,
        }
    elif isinstance(exc, AuthenticationError):
        message = "Unauthorized"
        headers = {"WWW-Authenticate": "Bearer"}

    if status_code >= 500:
        logger.error("Request failed: %s", exc.to_dict())
    else:
        logger.info("Request rejected (%d): %s", status_code, exc.error_code)

    return create_error_response(
        status_code=status_code,
        message=message,
        error_code=exc.error_code,
        extra=extra,
        headers=headers,
    )


async def http_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    if not isinstance(exc, StarletteHTTPException):
        return await generic_exception_handler(request, exc)
    return create_error_response(
        status_code=exc.status_code,
        message=str(exc.detail),
        error_code=f"HTTP_{exc.status_code}",
        headers=getattr(exc, "headers", None),
    )


async def request_validation_handler(request: Request, exc: Exception) -> JSONResponse:
    """Malformed bodies (e.g. invalid JSON) are client errors, not 422s."""
    return create_error_response(
        status_code=400,
        message="Invalid request body",
        error_code="INVALID_REQUEST",
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handler for unexpected exceptions."""
    logger.exception("Unhandled exception: %s", type(exc).__name__)
    return create_error_response(
        status_code=500,
        message="An unexpected error occurred.",
        error_code="INTERNAL_ERROR",
    )
