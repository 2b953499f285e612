"""Health endpoints."""

import time
from datetime import UTC, datetime

import httpx
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from listening_player import __version__
from listening_player.dependencies import get_http_client, get_session_store, get_token_store
from listening_player.models import DetailedHealthResponse, HealthResponse
from listening_player.state_managers import SpotifyTokenStore, UserSessionStore

router = APIRouter()


@router.get("/up", response_model=HealthResponse)
@router.get("/health", response_model=HealthResponse)
async def health_check():
    """Basic health check for load balancers and uptime monitors."""
    return HealthResponse(status="ok", version=__version__)


@router.get("/health/ready", response_model=DetailedHealthResponse)
async def readiness_check(
    request: Request,
    client: httpx.AsyncClient = Depends(get_http_client),
    token_store: SpotifyTokenStore = Depends(get_token_store),
    sessions: UserSessionStore = Depends(get_session_store),
):
    """Readiness probe - can the application serve traffic?

    **Returns:**
    - 200: HTTP client and state managers are up
    - 503: something failed to initialize
    """
    checks: dict[str, str] = {}

    checks["http_client"] = "ok" if client and not client.is_closed else "failed"
    checks["logged_in_sessions"] = str(await sessions.count())
    checks["stored_tokens"] = str(await token_store.count())
    checks["uptime_seconds"] = str(int(time.time() - request.app.state.startup_time))
    checks["total_requests"] = str(request.app.state.request_count)

    healthy = checks["http_client"] == "ok"
    return JSONResponse(
        status_code=200 if healthy else 503,
        content=DetailedHealthResponse(
            status="healthy" if healthy else "unhealthy",
            version=__version__,
            timestamp=datetime.now(UTC),
            checks=checks,
        ).model_dump(mode="json"),
    )
