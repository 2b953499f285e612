"""Player pages, track search and play commands."""

import httpx
from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import RedirectResponse
from slowapi import Limiter
from slowapi.util import get_remote_address

from listening_player.config import Settings, get_settings
from listening_player.dependencies import get_current_user_id, get_http_client, get_token_store
from listening_player.exceptions import (
    ErrorCode,
    ListeningPlayerException,
    SpotifyException,
    SpotifyNotAuthenticatedException,
)
from listening_player.logging_config import get_logger, log_with_context
from listening_player.models import PlayRequest
from listening_player.security import get_spotify_token
from listening_player.services import player_service, spotify_service
from listening_player.state_managers import SpotifyTokenStore
from listening_player.views.template_renderer import TemplateRenderer

router = APIRouter()
limiter = Limiter(key_func=get_remote_address)
logger = get_logger(__name__)


def wants_json(request: Request) -> bool:
    """True when the client asked for JSON rather than a page."""
    accept = request.headers.get("accept", "")
    return "application/json" in accept and "text/html" not in accept


async def _render_player(
    request: Request,
    user_id: str | None,
    client: httpx.AsyncClient,
    token_store: SpotifyTokenStore,
    settings: Settings,
):
    if user_id is None:
        return TemplateRenderer.render_login(request, error=request.query_params.get("error"))

    try:
        access_token = await spotify_service.get_access_token(client, token_store, user_id, settings)
    except SpotifyException as e:
        log_with_context(
            logger,
            "warning",
            "Could not get access token for player page",
            error=e.message,
            user_id=user_id,
            event_type="player_token_error",
        )
        return TemplateRenderer.render_login(request, error="session_expired")

    return await TemplateRenderer.render_player(request, client, access_token, settings)


@router.get("/")
async def index(
    request: Request,
    user_id: str | None = Depends(get_current_user_id),
    client: httpx.AsyncClient = Depends(get_http_client),
    token_store: SpotifyTokenStore = Depends(get_token_store),
    settings: Settings = Depends(get_settings),
):
    """Player page, or the login prompt when logged out."""
    return await _render_player(request, user_id, client, token_store, settings)


@router.get("/player")
async def player(
    request: Request,
    user_id: str | None = Depends(get_current_user_id),
    client: httpx.AsyncClient = Depends(get_http_client),
    token_store: SpotifyTokenStore = Depends(get_token_store),
    settings: Settings = Depends(get_settings),
):
    """Player page with the user's filtered playlists."""
    return await _render_player(request, user_id, client, token_store, settings)


@router.get("/search")
async def search(
    request: Request,
    query: str = Query(default=""),
    user_id: str | None = Depends(get_current_user_id),
    client: httpx.AsyncClient = Depends(get_http_client),
    token_store: SpotifyTokenStore = Depends(get_token_store),
    settings: Settings = Depends(get_settings),
):
    """Search tracks; JSON or HTML depending on the Accept header."""
    as_json = wants_json(request)
    query = query.strip()

    if user_id is None:
        if as_json:
            raise SpotifyNotAuthenticatedException()
        return RedirectResponse(url="/", status_code=303)

    if not query:
        if as_json:
            raise ListeningPlayerException(
                "No search query provided",
                code=ErrorCode.VALIDATION_ERROR,
                status_code=400,
            )
        return RedirectResponse(url="/player", status_code=303)

    access_token = await spotify_service.get_access_token(client, token_store, user_id, settings)
    tracks = await spotify_service.search_tracks(
        client,
        access_token,
        query,
        limit=settings.search_limit,
        market=settings.search_market,
    )

    if as_json:
        return [track.model_dump() for track in tracks]
    return TemplateRenderer.render_search(request, query, tracks)


def _require_play_params(body: PlayRequest, what: str) -> tuple[str, str]:
    uri = (body.uri or "").strip()
    device_id = (body.device_id or "").strip()
    if not uri or not device_id:
        log_with_context(
            logger,
            "warning",
            f"Missing {what} URI or device ID",
            uri=uri,
            device_id=device_id,
            event_type="play_missing_params",
        )
        raise ListeningPlayerException(
            f"Missing {what} URI or device ID",
            code=ErrorCode.VALIDATION_ERROR,
            status_code=400,
        )
    return uri, device_id


@router.post(
    "/play_track",
    summary="Play a track on a device",
    responses={
        200: {"content": {"application/json": {"example": {"success": True}}}},
        400: {"description": "Missing track URI or device ID"},
        401: {"description": "Not logged in, or Spotify session expired"},
        404: {"description": "Device (with `devices` list) or track not found"},
    },
)
@limiter.limit("30/minute")
async def play_track(
    request: Request,
    body: PlayRequest,
    access_token: str = Depends(get_spotify_token),
    client: httpx.AsyncClient = Depends(get_http_client),
):
    """Forward a play-track command after validating the device."""
    track_uri, device_id = _require_play_params(body, "track")
    await player_service.play_track(client, access_token, track_uri, device_id)
    return {"success": True}


@router.post(
    "/play_playlist",
    summary="Play a playlist on a device",
    responses={
        200: {"content": {"application/json": {"example": {"success": True}}}},
        400: {"description": "Missing playlist URI or device ID"},
        401: {"description": "Not logged in, or Spotify session expired"},
        404: {"description": "Device (with `devices` list) or playlist not found"},
    },
)
@limiter.limit("30/minute")
async def play_playlist(
    request: Request,
    body: PlayRequest,
    access_token: str = Depends(get_spotify_token),
    client: httpx.AsyncClient = Depends(get_http_client),
):
    """Forward a play-playlist command (context_uri) after validating the device."""
    playlist_uri, device_id = _require_play_params(body, "playlist")
    await player_service.play_playlist(client, access_token, playlist_uri, device_id)
    return {"success": True}
