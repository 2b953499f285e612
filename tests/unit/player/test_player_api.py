"""Unit tests for the controller's HTTP client and factory wiring."""

import json

import httpx
import pytest

from listening_player.player import events as ev
from listening_player.player.api import PlayerApiClient
from listening_player.player.factory import create_controller
from listening_player.player.state import PlaybackCommand
from listening_player.player.storage import DEVICE_ID_KEY, JsonFileDeviceStore


def recording_client(routes):
    """AsyncClient answering from ``routes`` ({(method, path): response}) and recording requests."""
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return routes[(request.method, request.url.path)]

    return httpx.AsyncClient(transport=httpx.MockTransport(handler)), seen


@pytest.mark.asyncio
async def test_send_command_posts_to_proxy():
    client, seen = recording_client({("POST", "/play_playlist"): httpx.Response(200, json={"success": True})})
    api = PlayerApiClient(client, "http://proxy.test/")

    response = await api.send_command(PlaybackCommand.for_uri("spotify:playlist:p1", "device-1"))

    assert response.status_code == 200
    assert str(seen[0].url) == "http://proxy.test/play_playlist"
    assert json.loads(seen[0].content) == {"uri": "spotify:playlist:p1", "device_id": "device-1"}
    await client.aclose()


@pytest.mark.asyncio
async def test_fetch_current_playback_no_content():
    client, _ = recording_client({("GET", "/v1/me/player"): httpx.Response(204)})
    api = PlayerApiClient(client, "http://proxy.test", "https://api.test/v1")

    assert await api.fetch_current_playback("token") is None
    await client.aclose()


@pytest.mark.asyncio
async def test_fetch_current_playback_parses_state(track_factory):
    client, seen = recording_client(
        {("GET", "/v1/me/player"): httpx.Response(200, json={"is_playing": True, "item": track_factory()})}
    )
    api = PlayerApiClient(client, "http://proxy.test", "https://api.test/v1")

    playback = await api.fetch_current_playback("token")

    assert playback.is_playing is True
    assert playback.item.name == "Test Song"
    assert seen[0].headers["Authorization"] == "Bearer token"
    await client.aclose()


@pytest.mark.asyncio
async def test_fetch_devices_raises_on_error():
    client, _ = recording_client({("GET", "/v1/me/player/devices"): httpx.Response(401)})
    api = PlayerApiClient(client, "http://proxy.test", "https://api.test/v1")

    with pytest.raises(httpx.HTTPStatusError):
        await api.fetch_devices("token")
    await client.aclose()


@pytest.mark.asyncio
async def test_factory_refreshes_token_on_expiry(fake_sdk, player_settings):
    """spotify:tokenExpired fetches a new token from the proxy."""
    client, seen = recording_client(
        {("GET", "/auth/spotify/token"): httpx.Response(200, json={"access_token": "new-token", "expires_in": 3600})}
    )
    controller = create_controller(fake_sdk, client, player_settings)
    await controller.initialize("old-token")

    controller.events.emit(ev.TOKEN_EXPIRED)
    await controller.wait_until_settled()

    assert controller.token == "new-token"
    assert str(seen[0].url) == "http://proxy.test/auth/spotify/token"
    await client.aclose()


@pytest.mark.asyncio
async def test_factory_persists_device_id(fake_sdk, player_settings):
    client = httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(204)))
    controller = create_controller(fake_sdk, client, player_settings)
    await controller.initialize("token")

    fake_sdk.player.fire("ready", {"device_id": "device-9"})

    assert JsonFileDeviceStore(player_settings.device_store_path).get_item(DEVICE_ID_KEY) == "device-9"
    assert fake_sdk.player.name == player_settings.player_name
    await client.aclose()
