"""Application lifespan management."""

import os
import time
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from typing import Any

import httpx
from fastapi import FastAPI

from listening_player import __version__
from listening_player.config import get_settings
from listening_player.logging_config import get_logger, log_with_context
from listening_player.middleware.logging_middleware import redact_headers, redact_sensitive_data
from listening_player.state_managers import SpotifyTokenStore, UserSessionStore

logger = get_logger(__name__)


async def log_request(request: httpx.Request) -> None:
    """Event hook to log upstream requests with redacted sensitive data."""
    log_with_context(
        logger,
        "info",
        "HTTP Request",
        method=request.method,
        url=redact_sensitive_data(str(request.url)),
        headers=redact_headers(dict(request.headers)),
        event_type="http_request",
    )


async def log_response(response: httpx.Response) -> None:
    """Event hook to log upstream responses with redacted sensitive data."""
    log_with_context(
        logger,
        "info",
        "HTTP Response",
        status_code=response.status_code,
        url=redact_sensitive_data(str(response.request.url)),
        event_type="http_response",
    )


def create_http_client() -> httpx.AsyncClient:
    """Shared client for Spotify calls, honouring HTTP(S)_PROXY."""
    proxy = os.getenv("HTTPS_PROXY") or os.getenv("HTTP_PROXY")

    event_hooks: dict[str, list[Callable[..., Any]]] = {
        "request": [log_request],
        "response": [log_response],
    }

    if proxy:
        log_with_context(
            logger,
            "info",
            "Using outbound proxy",
            proxy=redact_sensitive_data(proxy),
            event_type="proxy_config",
        )

    return httpx.AsyncClient(
        timeout=httpx.Timeout(
            connect=5.0,
            read=30.0 if proxy else 10.0,  # proxies add latency on reads
            write=5.0,
            pool=5.0,
        ),
        limits=httpx.Limits(
            max_keepalive_connections=5,
            max_connections=10,
            keepalive_expiry=30.0,
        ),
        follow_redirects=True,
        proxy=proxy,
        event_hooks=event_hooks,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application lifespan - startup and shutdown events.

    Exceptions after yield are re-raised so cleanup always runs.
    """
    app.state.startup_time = time.time()
    app.state.request_count = 0

    log_with_context(
        logger,
        "info",
        "Starting Listening Player application",
        version=__version__,
        event_type="app_startup",
    )

    client = create_http_client()
    app.state.http_client = client
    log_with_context(logger, "info", "HTTP client initialized successfully", event_type="http_client_ready")

    settings = get_settings()
    app.state.token_store = SpotifyTokenStore()
    app.state.session_store = UserSessionStore(ttl_seconds=settings.session_ttl_seconds)
    await app.state.token_store.initialize()
    await app.state.session_store.initialize()
    log_with_context(logger, "info", "State managers initialized", event_type="state_managers_ready")

    try:
        yield
    except Exception as e:
        log_with_context(
            logger,
            "error",
            "Application error during lifespan",
            error=str(e),
            error_type=type(e).__name__,
            event_type="app_error",
        )
        raise
    finally:
        log_with_context(logger, "info", "Shutting down Listening Player application", event_type="app_shutdown")

        await app.state.token_store.cleanup()
        await app.state.session_store.cleanup()
        log_with_context(logger, "info", "State managers cleaned up", event_type="state_managers_cleanup")

        await client.aclose()
        log_with_context(logger, "info", "HTTP client closed", event_type="http_client_cleanup")
