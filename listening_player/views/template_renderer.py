"""Template rendering utilities for HTML views."""

from pathlib import Path

import httpx
from fastapi import Request
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates

from listening_player.config import Settings
from listening_player.exceptions import SpotifyException
from listening_player.logging_config import get_logger, log_with_context
from listening_player.models import PlaybackState, Playlist, Track
from listening_player.services import spotify_service

logger = get_logger(__name__)

TEMPLATES_DIR = Path(__file__).parent.parent / "templates"
templates = Jinja2Templates(directory=TEMPLATES_DIR)

LOGIN_ERRORS = {
    "auth_failed": "Authentication failed. Please try again.",
    "session_expired": "Your Spotify session has expired. Please log in again.",
}


async def fetch_filtered_playlists(client: httpx.AsyncClient, access_token: str, settings: Settings) -> list[Playlist]:
    """User playlists whose name starts with the configured prefix.

    Upstream failures are logged and yield an empty list.
    """
    try:
        playlists = await spotify_service.get_user_playlists(client, access_token, limit=settings.playlist_limit)
    except SpotifyException as e:
        log_with_context(
            logger,
            "error",
            "Error fetching playlists",
            error=e.message,
            event_type="playlists_error",
        )
        return []

    if settings.playlist_prefix:
        playlists = [p for p in playlists if p.name.startswith(settings.playlist_prefix)]
    return playlists


class TemplateRenderer:
    """Handles rendering of Jinja2 templates for all player views."""

    @staticmethod
    def render_login(request: Request, error: str | None = None) -> HTMLResponse:
        """Render the logged-out landing page."""
        return templates.TemplateResponse(
            request,
            "login.html",
            {"error": LOGIN_ERRORS.get(error or "")},
        )

    @staticmethod
    async def render_player(
        request: Request,
        client: httpx.AsyncClient,
        access_token: str,
        settings: Settings,
    ) -> HTMLResponse:
        """Render the player page.

        Args:
            request: FastAPI request object
            client: HTTP client for API calls
            access_token: Token handed to the Web Playback SDK
            settings: Settings instance

        Returns:
            HTMLResponse with playlists and the current playback, if any
        """
        playlists = await fetch_filtered_playlists(client, access_token, settings)

        playback: PlaybackState | None
        try:
            playback = await spotify_service.get_current_playback(client, access_token)
        except SpotifyException as e:
            log_with_context(
                logger,
                "warning",
                "Failed to get current Spotify playback",
                error=e.message,
                event_type="spotify_playback_error",
            )
            playback = None

        return templates.TemplateResponse(
            request,
            "player.html",
            {
                "access_token": access_token,
                "playlists": playlists,
                "playlist_prefix": settings.playlist_prefix,
                "playback": playback,
            },
        )

    @staticmethod
    def render_search(request: Request, query: str, tracks: list[Track]) -> HTMLResponse:
        """Render search results."""
        return templates.TemplateResponse(
            request,
            "search.html",
            {"query": query, "tracks": tracks},
        )
