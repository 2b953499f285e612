"""FastAPI dependencies for dependency injection."""

import httpx
from fastapi import Depends, Request

from listening_player.config import Settings, get_settings
from listening_player.state_managers import SpotifyTokenStore, UserSessionStore


async def get_http_client(request: Request) -> httpx.AsyncClient:
    """
    Get the shared HTTP client from app state.

    Raises:
        RuntimeError: If HTTP client is not initialized.
    """
    client: httpx.AsyncClient | None = getattr(request.app.state, "http_client", None)

    if client is None:
        raise RuntimeError("HTTP client not initialized. This should never happen.")

    return client


async def get_token_store(request: Request) -> SpotifyTokenStore:
    """
    Get the Spotify token store from app state.

    Raises:
        RuntimeError: If the token store is not initialized.
    """
    store: SpotifyTokenStore | None = getattr(request.app.state, "token_store", None)

    if store is None:
        raise RuntimeError("Spotify token store not initialized.")

    return store


async def get_session_store(request: Request) -> UserSessionStore:
    """
    Get the login session store from app state.

    Raises:
        RuntimeError: If the session store is not initialized.
    """
    store: UserSessionStore | None = getattr(request.app.state, "session_store", None)

    if store is None:
        raise RuntimeError("Session store not initialized.")

    return store


async def get_current_user_id(
    request: Request,
    sessions: UserSessionStore = Depends(get_session_store),
    settings: Settings = Depends(get_settings),
) -> str | None:
    """Spotify user id of the logged-in user, or None when logged out."""
    return await sessions.get_user_id(request.cookies.get(settings.session_cookie_name))
