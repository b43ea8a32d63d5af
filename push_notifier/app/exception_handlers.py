"""Global exception handlers for FastAPI application.

Error responses are plain text: the exception's detail when one was given,
otherwise the fixed phrase for the status code (``core.exceptions``).
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import PlainTextResponse

from push_notifier.core.exceptions import AppException, STATUS_PHRASES

logger = logging.getLogger(__name__)


def _plain(status_code: int, body: str | None) -> PlainTextResponse:
    return PlainTextResponse(content=body or "", status_code=status_code)


async def app_exception_handler(request: Request, exc: AppException) -> PlainTextResponse:
    """Handle custom application exceptions.

    Args:
        request: The FastAPI request object.
        exc: The application exception that was raised.

    Returns:
        Plain-text response carrying the detail or fixed phrase.
    """
    logger.warning(
        "Application exception occurred",
        extra={
            "path": request.url.path,
            "method": request.method,
            "status_code": exc.status_code,
            "detail": exc.detail,
            **exc.extra,
        },
    )
    return _plain(exc.status_code, exc.body)


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> PlainTextResponse:
    """Handle malformed request bodies and parameters as 400 bad request."""
    logger.warning(
        "Request validation failed",
        extra={
            "path": request.url.path,
            "method": request.method,
            "error_count": len(exc.errors()),
        },
    )
    return _plain(status.HTTP_400_BAD_REQUEST, STATUS_PHRASES[status.HTTP_400_BAD_REQUEST])


async def generic_exception_handler(request: Request, exc: Exception) -> PlainTextResponse:
    """Handle unexpected exceptions as 500 internal server error."""
    logger.exception(
        "Unhandled exception",
        extra={"path": request.url.path, "method": request.method},
    )
    return _plain(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        STATUS_PHRASES[status.HTTP_500_INTERNAL_SERVER_ERROR],
    )


def configure_exception_handlers(app: FastAPI) -> None:
    """Register the exception handlers on ``app``."""
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    logger.info("Exception handlers configured")
