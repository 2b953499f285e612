"""Spotify Web API service."""

import time
from urllib.parse import urlencode

import httpx

from listening_player.config import Settings
from listening_player.exceptions import (
    SpotifyAPIException,
    SpotifyAuthException,
    SpotifyNotAuthenticatedException,
    SpotifyNotFoundException,
)
from listening_player.logging_config import get_logger, log_with_context
from listening_player.models import Device, PlaybackState, Playlist, Track
from listening_player.state_managers import SpotifyTokenStore

logger = get_logger(__name__)

ACCOUNTS_URL = "https://accounts.spotify.com"
API_URL = "https://api.spotify.com/v1"

# Refresh a little before the upstream expiry
TOKEN_EXPIRY_LEEWAY_SECONDS = 30


def upstream_error_message(response: httpx.Response) -> str | None:
    """Extract the human readable error from an upstream error body.

    The Web API answers ``{"error": {"status": 404, "message": "..."}}``;
    the accounts service answers ``{"error": "...", "error_description": "..."}``.
    """
    try:
        data = response.json()
    except ValueError:
        return None
    if not isinstance(data, dict):
        return None
    error = data.get("error")
    if isinstance(error, dict):
        return error.get("message")
    if isinstance(error, str):
        return data.get("error_description") or error
    return None


def _raise_for_status(response: httpx.Response, action: str) -> None:
    """Translate upstream error statuses into application exceptions.

    Args:
        response: Upstream response
        action: What we were doing, for logs and messages

    Raises:
        SpotifyAuthException: on 401
        SpotifyNotFoundException: on 404
        SpotifyAPIException: on any other non-2xx status
    """
    if response.is_success:
        return

    message = upstream_error_message(response)
    log_with_context(
        logger,
        "error",
        f"Spotify API error while trying to {action}",
        status_code=response.status_code,
        error=message,
        event_type="spotify_api_error",
    )

    if response.status_code == 401:
        raise SpotifyAuthException(
            details={"message": "Your Spotify session may have expired."},
        )
    if response.status_code == 404:
        raise SpotifyNotFoundException(
            details={"message": message or "The requested resource could not be found."},
        )
    raise SpotifyAPIException(
        message or f"Failed to {action} ({response.status_code})",
        status_code=response.status_code,
    )


async def _request(
    client: httpx.AsyncClient,
    method: str,
    path: str,
    access_token: str,
    action: str,
    **kwargs,
) -> httpx.Response:
    """Send an authenticated Web API request and check its status."""
    try:
        response = await client.request(
            method,
            f"{API_URL}{path}",
            headers={"Authorization": f"Bearer {access_token}"},
            timeout=10.0,
            **kwargs,
        )
    except httpx.RequestError as e:
        log_with_context(
            logger,
            "error",
            f"Network error while trying to {action}",
            error=str(e),
            error_type=type(e).__name__,
            event_type="spotify_network_error",
        )
        raise SpotifyAPIException(f"Failed to {action}: {e}", status_code=500) from e

    _raise_for_status(response, action)
    return response


def build_authorize_url(settings: Settings, state: str) -> str:
    """Build the Spotify authorization URL for the OAuth code flow.

    Args:
        settings: Settings with client id, redirect URI and scopes
        state: CSRF state echoed back to the callback
    """
    params = {
        "client_id": settings.spotify_client_id,
        "response_type": "code",
        "redirect_uri": settings.spotify_redirect_uri,
        "state": state,
        "scope": settings.spotify_scopes,
        "show_dialog": "false",
    }
    return f"{ACCOUNTS_URL}/authorize?{urlencode(params)}"


async def _token_request(client: httpx.AsyncClient, data: dict[str, str], settings: Settings) -> dict:
    try:
        response = await client.post(
            f"{ACCOUNTS_URL}/api/token",
            auth=(settings.spotify_client_id, settings.spotify_client_secret),
            data=data,
            timeout=10.0,
        )
    except httpx.RequestError as e:
        raise SpotifyAPIException(f"Spotify token request failed: {e}", status_code=500) from e

    if response.status_code in (400, 401):
        raise SpotifyAuthException(
            "Spotify token request was rejected",
            details={"message": upstream_error_message(response) or "Please log in again."},
        )
    _raise_for_status(response, "request a token")

    try:
        payload = response.json()
        payload["access_token"]
    except (KeyError, ValueError) as e:
        raise SpotifyAPIException(f"Invalid Spotify token response: {e}") from e
    return payload


async def exchange_code(client: httpx.AsyncClient, code: str, settings: Settings) -> dict:
    """Exchange an authorization code for access and refresh tokens.

    Args:
        client: Shared HTTP client from dependency injection.
        code: Authorization code from the OAuth callback
        settings: Settings instance

    Returns:
        Token endpoint JSON (access_token, refresh_token, expires_in).
    """
    return await _token_request(
        client,
        {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": settings.spotify_redirect_uri,
        },
        settings,
    )


async def refresh_access_token(client: httpx.AsyncClient, refresh_token: str, settings: Settings) -> dict:
    """Trade a refresh token for a new access token."""
    return await _token_request(
        client,
        {"grant_type": "refresh_token", "refresh_token": refresh_token},
        settings,
    )


async def get_access_token(
    client: httpx.AsyncClient,
    token_store: SpotifyTokenStore,
    user_id: str,
    settings: Settings,
) -> str:
    """
    Get a valid access token for a user, refreshing it when expired.

    Args:
        client: Shared HTTP client from dependency injection.
        token_store: Token store holding the user's credentials
        user_id: Spotify user id of the logged-in user
        settings: Settings instance

    Returns:
        Access token string.

    Raises:
        SpotifyNotAuthenticatedException: if nothing is stored or the token
            is expired with no refresh token.
    """
    stored = await token_store.get(user_id)
    if stored is None:
        raise SpotifyNotAuthenticatedException()

    if not stored.is_expired(leeway=TOKEN_EXPIRY_LEEWAY_SECONDS):
        return stored.access_token

    if not stored.refresh_token:
        raise SpotifyNotAuthenticatedException("Spotify session expired. Please log in again.")

    log_with_context(
        logger,
        "info",
        "Refreshing expired Spotify access token",
        user_id=user_id,
        event_type="spotify_token_refresh",
    )
    data = await refresh_access_token(client, stored.refresh_token, settings)
    await token_store.save(
        user_id,
        data["access_token"],
        int(data.get("expires_in", 3600)),
        data.get("refresh_token"),
    )
    return data["access_token"]


async def get_current_user_id(client: httpx.AsyncClient, access_token: str) -> str:
    """Return the Spotify user id the token belongs to."""
    response = await _request(client, "GET", "/me", access_token, "get the current user")
    return response.json()["id"]


async def get_devices(client: httpx.AsyncClient, access_token: str) -> list[Device]:
    """List the user's available playback devices."""
    response = await _request(client, "GET", "/me/player/devices", access_token, "list devices")
    return [Device.model_validate(d) for d in response.json().get("devices", [])]


async def get_track(client: httpx.AsyncClient, access_token: str, track_id: str) -> Track:
    """Fetch track metadata by id."""
    response = await _request(client, "GET", f"/tracks/{track_id}", access_token, "get track")
    return Track.model_validate(response.json())


async def start_playback(
    client: httpx.AsyncClient,
    access_token: str,
    device_id: str,
    *,
    uris: list[str] | None = None,
    context_uri: str | None = None,
) -> None:
    """
    Start playback on a device.

    Args:
        client: Shared HTTP client from dependency injection.
        access_token: User access token
        device_id: Target device id
        uris: Track URIs to play
        context_uri: Playlist/album URI to play
    """
    body: dict = {}
    if uris:
        body["uris"] = uris
    if context_uri:
        body["context_uri"] = context_uri

    await _request(
        client,
        "PUT",
        "/me/player/play",
        access_token,
        "start playback",
        params={"device_id": device_id},
        json=body,
    )


async def search_tracks(
    client: httpx.AsyncClient,
    access_token: str,
    query: str,
    limit: int = 10,
    market: str = "US",
) -> list[Track]:
    """Search the catalogue for tracks."""
    response = await _request(
        client,
        "GET",
        "/search",
        access_token,
        "search tracks",
        params={"q": query, "type": "track", "limit": limit, "market": market},
    )
    items = response.json().get("tracks", {}).get("items", [])
    return [Track.model_validate(item) for item in items if item]


async def get_user_playlists(client: httpx.AsyncClient, access_token: str, limit: int = 50) -> list[Playlist]:
    """Return the current user's playlists (first page)."""
    response = await _request(
        client,
        "GET",
        "/me/playlists",
        access_token,
        "list playlists",
        params={"limit": limit},
    )
    items = response.json().get("items", [])
    return [Playlist.model_validate(item) for item in items if item]


async def get_current_playback(client: httpx.AsyncClient, access_token: str) -> PlaybackState | None:
    """
    Get current playback state on Spotify.

    Returns:
        PlaybackState, or None when nothing is playing (204 No Content).
    """
    start = time.monotonic()
    response = await _request(client, "GET", "/me/player", access_token, "get playback state")
    log_with_context(
        logger,
        "debug",
        "Fetched playback state",
        status_code=response.status_code,
        elapsed_ms=int((time.monotonic() - start) * 1000),
        event_type="spotify_playback_state",
    )
    if response.status_code == 204 or not response.content:
        return None
    return PlaybackState.model_validate(response.json())
