"""Exception handlers for the application."""

from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from listening_player.exceptions import ListeningPlayerException
from listening_player.logging_config import get_logger, log_with_context
from listening_player.middleware.logging_middleware import redact_sensitive_data

logger = get_logger(__name__)


async def player_exception_handler(request: Request, exc: ListeningPlayerException) -> JSONResponse:
    """Handle application exceptions with proper HTTP status codes.

    Renders ``{"error": <message>, "code": <code>, **details}`` so clients
    can read ``message`` and ``devices`` next to the error.
    """
    log_with_context(
        logger,
        "warning",
        "Application error",
        error_code=exc.code.value,
        error_message=exc.message,
        status_code=exc.status_code,
        method=request.method,
        url=redact_sensitive_data(str(request.url)),
        event_type="player_app_error",
    )

    content: dict[str, Any] = {"error": exc.message, "code": exc.code.value}
    content.update(exc.details)

    return JSONResponse(status_code=exc.status_code, content=content)


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle general exceptions with logging."""
    log_with_context(
        logger,
        "error",
        "Unhandled exception",
        error=str(exc),
        error_type=type(exc).__name__,
        method=request.method,
        url=redact_sensitive_data(str(request.url)),
        event_type="unhandled_error",
    )
    logger.error("Exception traceback:", exc_info=exc)

    # Don't expose internal error details to clients
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error", "code": "INTERNAL_ERROR"},
    )


def register_error_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the application."""
    from slowapi import _rate_limit_exceeded_handler
    from slowapi.errors import RateLimitExceeded

    app.add_exception_handler(ListeningPlayerException, player_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
