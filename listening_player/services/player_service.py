"""Play commands forwarded from the browser to Spotify.

Both commands first check that the target device is one of the user's
available devices, so a stale device id is reported as a 404 with the
list of devices the client could use instead.
"""

import httpx

from listening_player.exceptions import DeviceNotFoundException, SpotifyException, SpotifyNotFoundException
from listening_player.logging_config import get_logger, log_with_context
from listening_player.services import spotify_service

logger = get_logger(__name__)


def uri_id(uri: str) -> str:
    """Last segment of a ``spotify:<type>:<id>`` URI."""
    return uri.rsplit(":", 1)[-1]


async def ensure_device_available(client: httpx.AsyncClient, access_token: str, device_id: str) -> None:
    """
    Raise unless ``device_id`` is among the user's devices.

    Raises:
        DeviceNotFoundException: with ``devices: [{id, name}]`` in details
    """
    devices = await spotify_service.get_devices(client, access_token)
    if any(device.id == device_id for device in devices):
        return

    log_with_context(
        logger,
        "warning",
        "Device not found in user's available devices",
        device_id=device_id,
        available=len(devices),
        event_type="device_not_found",
    )
    raise DeviceNotFoundException(
        details={
            "message": "The specified device was not found among your available devices.",
            "devices": [{"id": device.id, "name": device.name} for device in devices],
        }
    )


async def play_track(client: httpx.AsyncClient, access_token: str, track_uri: str, device_id: str) -> None:
    """
    Play a single track on a device.

    Args:
        client: Shared HTTP client from dependency injection.
        access_token: User access token
        track_uri: spotify:track:<id>
        device_id: Target device id

    Raises:
        DeviceNotFoundException: device is not available
        SpotifyNotFoundException: track does not exist
        SpotifyException: any other upstream failure
    """
    log_with_context(
        logger,
        "info",
        "Attempting to play track",
        track_uri=track_uri,
        device_id=device_id,
        event_type="play_track",
    )
    await ensure_device_available(client, access_token, device_id)

    # Track lookup only validates; failures other than 404 do not block playback
    try:
        track = await spotify_service.get_track(client, access_token, uri_id(track_uri))
        log_with_context(
            logger,
            "info",
            "Track found",
            track_name=track.name,
            artists=", ".join(track.artist_names),
            event_type="track_found",
        )
    except SpotifyNotFoundException as e:
        raise SpotifyNotFoundException(
            "Track not found",
            details={"message": "The specified track could not be found."},
        ) from e
    except SpotifyException as e:
        log_with_context(
            logger,
            "warning",
            "Error checking track, continuing",
            error=e.message,
            event_type="track_check_failed",
        )

    await spotify_service.start_playback(client, access_token, device_id, uris=[track_uri])
    log_with_context(logger, "info", "Successfully sent play request to Spotify API", event_type="play_track_sent")


async def play_playlist(client: httpx.AsyncClient, access_token: str, playlist_uri: str, device_id: str) -> None:
    """
    Play a playlist (or any context URI) on a device.

    Raises:
        DeviceNotFoundException: device is not available
        SpotifyNotFoundException: playlist does not exist
        SpotifyException: any other upstream failure
    """
    log_with_context(
        logger,
        "info",
        "Attempting to play playlist",
        playlist_uri=playlist_uri,
        device_id=device_id,
        event_type="play_playlist",
    )
    await ensure_device_available(client, access_token, device_id)

    try:
        await spotify_service.start_playback(client, access_token, device_id, context_uri=playlist_uri)
    except SpotifyNotFoundException as e:
        raise SpotifyNotFoundException(
            details={"message": "The requested playlist could not be found."},
        ) from e
    log_with_context(logger, "info", "Successfully sent play playlist request to Spotify API", event_type="play_playlist_sent")
