"""Login checks and host/origin configuration for Listening Player."""

import httpx
from fastapi import Depends, Request

from listening_player.config import Settings, get_settings
from listening_player.dependencies import get_current_user_id, get_http_client, get_token_store
from listening_player.exceptions import SpotifyNotAuthenticatedException
from listening_player.logging_config import get_logger, log_with_context
from listening_player.services import spotify_service
from listening_player.state_managers import SpotifyTokenStore

logger = get_logger(__name__)


async def require_spotify_login(
    request: Request,
    user_id: str | None = Depends(get_current_user_id),
) -> str:
    """Require a logged-in Spotify user.

    Returns:
        Spotify user id

    Raises:
        SpotifyNotAuthenticatedException: If no live session cookie was sent
    """
    if user_id is None:
        log_with_context(
            logger,
            "warning",
            "Request without Spotify login",
            event_type="auth_failure",
            path=request.url.path,
            ip=request.client.host if request.client else "unknown",
        )
        raise SpotifyNotAuthenticatedException()
    return user_id


async def get_spotify_token(
    user_id: str = Depends(require_spotify_login),
    client: httpx.AsyncClient = Depends(get_http_client),
    token_store: SpotifyTokenStore = Depends(get_token_store),
    settings: Settings = Depends(get_settings),
) -> str:
    """Fresh access token of the logged-in user.

    Example:
        @router.get("/devices")
        async def devices(token: str = Depends(get_spotify_token)):
            ...
    """
    return await spotify_service.get_access_token(client, token_store, user_id, settings)


def get_cors_origins(settings: Settings) -> list[str]:
    """Get allowed CORS origins from settings."""
    return [origin.strip() for origin in settings.cors_origins.split(",") if origin.strip()]


def get_trusted_hosts(settings: Settings) -> list[str]:
    """Get trusted host patterns from settings."""
    return [host.strip() for host in settings.trusted_hosts.split(",") if host.strip()]
