"""Spotify OAuth login, logout and token endpoints."""

import secrets
import time

import httpx
from fastapi import APIRouter, Depends, Request
from fastapi.responses import RedirectResponse

from listening_player.config import Settings, get_settings
from listening_player.dependencies import get_http_client, get_session_store, get_token_store
from listening_player.exceptions import SpotifyException
from listening_player.logging_config import get_logger, log_with_context
from listening_player.security import require_spotify_login
from listening_player.services import spotify_service
from listening_player.state_managers import SpotifyTokenStore, UserSessionStore

router = APIRouter()
logger = get_logger(__name__)

# OAuth state storage with TTL cleanup
# States expire after 10 minutes so abandoned logins don't pile up
_oauth_states: dict[str, float] = {}  # state -> timestamp
OAUTH_STATE_TTL_SECONDS = 600


def _cleanup_expired_oauth_states() -> None:
    """Remove expired OAuth states."""
    current_time = time.time()
    expired_states = [
        state for state, timestamp in _oauth_states.items() if current_time - timestamp > OAUTH_STATE_TTL_SECONDS
    ]
    for state in expired_states:
        _oauth_states.pop(state, None)


def _redirect_with_error(error: str) -> RedirectResponse:
    return RedirectResponse(url=f"/?error={error}", status_code=303)


@router.get("/login")
async def login(settings: Settings = Depends(get_settings)):
    """Initiate Spotify OAuth flow."""
    _cleanup_expired_oauth_states()

    state = secrets.token_urlsafe(32)
    _oauth_states[state] = time.time()

    return RedirectResponse(url=spotify_service.build_authorize_url(settings, state), status_code=307)


@router.get("/auth/spotify/callback")
async def auth_callback(
    code: str | None = None,
    state: str | None = None,
    error: str | None = None,
    client: httpx.AsyncClient = Depends(get_http_client),
    token_store: SpotifyTokenStore = Depends(get_token_store),
    sessions: UserSessionStore = Depends(get_session_store),
    settings: Settings = Depends(get_settings),
):
    """Handle Spotify OAuth callback and start a login session."""
    if error:
        log_with_context(logger, "warning", "Spotify authorization denied", error=error, event_type="auth_denied")
        return _redirect_with_error("auth_failed")

    # Verify state to prevent CSRF
    if not state or state not in _oauth_states:
        log_with_context(logger, "warning", "Invalid OAuth state parameter", event_type="auth_invalid_state")
        return _redirect_with_error("auth_failed")
    _oauth_states.pop(state, None)

    if not code:
        return _redirect_with_error("auth_failed")

    try:
        data = await spotify_service.exchange_code(client, code, settings)
        user_id = await spotify_service.get_current_user_id(client, data["access_token"])
    except SpotifyException as e:
        log_with_context(
            logger,
            "error",
            "Spotify login failed",
            error=e.message,
            event_type="auth_failed",
        )
        return _redirect_with_error("auth_failed")

    await token_store.save(
        user_id,
        data["access_token"],
        int(data.get("expires_in", 3600)),
        data.get("refresh_token"),
    )
    session_id = await sessions.create(user_id)

    log_with_context(logger, "info", "Successfully signed in with Spotify", user_id=user_id, event_type="auth_success")

    response = RedirectResponse(url="/player", status_code=303)
    response.set_cookie(
        settings.session_cookie_name,
        session_id,
        max_age=settings.session_ttl_seconds,
        httponly=True,
        samesite="lax",
        secure=settings.spotify_redirect_uri.startswith("https://"),
    )
    return response


@router.get("/logout")
async def logout(
    request: Request,
    sessions: UserSessionStore = Depends(get_session_store),
    settings: Settings = Depends(get_settings),
):
    """End the login session; stored tokens stay until they expire."""
    await sessions.delete(request.cookies.get(settings.session_cookie_name))
    response = RedirectResponse(url="/", status_code=303)
    response.delete_cookie(settings.session_cookie_name)
    return response


@router.get("/auth/spotify/token")
async def access_token(
    user_id: str = Depends(require_spotify_login),
    client: httpx.AsyncClient = Depends(get_http_client),
    token_store: SpotifyTokenStore = Depends(get_token_store),
    settings: Settings = Depends(get_settings),
):
    """Current access token for the Web Playback SDK, refreshed when expired."""
    token = await spotify_service.get_access_token(client, token_store, user_id, settings)
    stored = await token_store.get(user_id)
    return {"access_token": token, "expires_in": stored.expires_in if stored else 0}
