"""Pytest configuration and shared fixtures."""

import os
import time
from unittest.mock import AsyncMock

# Settings are read at import time of the app
os.environ.setdefault("SPOTIFY_CLIENT_ID", "test-spotify-client-id")
os.environ.setdefault("SPOTIFY_CLIENT_SECRET", "test-spotify-client-secret")
os.environ.setdefault("SPOTIFY_REDIRECT_URI", "http://localhost:8000/auth/spotify/callback")
os.environ["TRUSTED_HOSTS"] = "localhost,127.0.0.1,testserver"

import httpx
import pytest
from fastapi.testclient import TestClient

from listening_player.config import PlayerSettings, Settings
from listening_player.main import app as fastapi_app
from listening_player.player.api import PlayerApiClient
from listening_player.player.backoff import ReconnectPolicy
from listening_player.player.controller import PlaybackSessionController
from listening_player.player.events import EventBus
from listening_player.player.storage import MemoryDeviceStore
from listening_player.routers import auth_router, player_router


class FakePlayer:
    """In-memory stand-in for one Web Playback SDK player."""

    def __init__(self, name, get_oauth_token, volume, connect_result=True):
        self.name = name
        self.get_oauth_token = get_oauth_token
        self.volume = volume
        self.connect_result = connect_result
        self.listeners = {}
        self.calls = []
        self.connected = False
        self.disconnected = False
        self.fail_commands = False

    def add_listener(self, event, listener):
        self.listeners.setdefault(event, []).append(listener)

    def fire(self, event, payload=None):
        for listener in self.listeners.get(event, []):
            listener(payload)

    async def connect(self):
        self.calls.append("connect")
        self.connected = self.connect_result
        return self.connect_result

    async def disconnect(self):
        self.calls.append("disconnect")
        self.disconnected = True

    async def _command(self, name):
        self.calls.append(name)
        if self.fail_commands:
            raise RuntimeError(f"{name} failed")

    async def resume(self):
        await self._command("resume")

    async def pause(self):
        await self._command("pause")

    async def previous_track(self):
        await self._command("previous_track")

    async def next_track(self):
        await self._command("next_track")


class FakePlaybackSDK:
    """SDK loader that hands out FakePlayers and records them."""

    def __init__(self, loaded=True, connect_result=True):
        self.loaded = loaded
        self.connect_result = connect_result
        self.players = []

    def is_loaded(self):
        return self.loaded

    def create_player(self, name, get_oauth_token, volume):
        player = FakePlayer(name, get_oauth_token, volume, connect_result=self.connect_result)
        self.players.append(player)
        return player

    @property
    def player(self):
        return self.players[-1] if self.players else None


def make_track(name="Test Song", artist="Test Artist", track_id="track123"):
    """SDK/Web API shaped track dict."""
    return {
        "name": name,
        "uri": f"spotify:track:{track_id}",
        "id": track_id,
        "duration_ms": 240000,
        "artists": [{"name": artist, "uri": "spotify:artist:artist123"}],
        "album": {
            "name": "Test Album",
            "uri": "spotify:album:album123",
            "images": [
                {"url": "https://example.com/large.jpg", "height": 640, "width": 640},
                {"url": "https://example.com/small.jpg", "height": 64, "width": 64},
            ],
        },
    }


def make_response(status_code=200, json_data=None, method="GET", url="https://api.spotify.com/v1/me/player"):
    """Real httpx.Response bound to a request so raise_for_status works."""
    kwargs = {} if json_data is None else {"json": json_data}
    return httpx.Response(status_code, request=httpx.Request(method, url), **kwargs)


@pytest.fixture(autouse=True)
def disable_rate_limits():
    """Play commands are rate limited; tests fire them back to back."""
    player_router.limiter.enabled = False
    yield
    player_router.limiter.enabled = True


@pytest.fixture(autouse=True)
def clear_oauth_states():
    auth_router._oauth_states.clear()
    yield
    auth_router._oauth_states.clear()


@pytest.fixture
def test_client():
    """FastAPI test client with lifespan context."""
    with TestClient(fastapi_app) as client:
        yield client
    fastapi_app.dependency_overrides.clear()


@pytest.fixture
def logged_in_client(test_client):
    """Test client that went through the OAuth callback as user ``test-user``."""
    auth_router._oauth_states["test-state"] = time.time()
    with pytest.MonkeyPatch.context() as mp:
        mp.setattr(
            "listening_player.services.spotify_service.exchange_code",
            AsyncMock(return_value={"access_token": "user-access-token", "refresh_token": "user-refresh", "expires_in": 3600}),
        )
        mp.setattr(
            "listening_player.services.spotify_service.get_current_user_id",
            AsyncMock(return_value="test-user"),
        )
        response = test_client.get(
            "/auth/spotify/callback",
            params={"code": "auth-code", "state": "test-state"},
            follow_redirects=False,
        )
    assert response.status_code == 303
    return test_client


@pytest.fixture
def mock_http_client():
    """Mock httpx.AsyncClient for external API calls."""
    mock_client = AsyncMock(spec=httpx.AsyncClient)
    mock_client.get = AsyncMock()
    mock_client.post = AsyncMock()
    mock_client.request = AsyncMock()
    mock_client.aclose = AsyncMock()
    return mock_client


@pytest.fixture
def mock_settings():
    """Settings instance with test values."""
    return Settings(
        api_host="0.0.0.0",
        api_port=8000,
        spotify_client_id="test-spotify-client-id",
        spotify_client_secret="test-spotify-client-secret",
        spotify_redirect_uri="http://localhost:8000/auth/spotify/callback",
        playlist_prefix="K:",
    )


@pytest.fixture
def player_settings(tmp_path):
    return PlayerSettings(
        proxy_base_url="http://proxy.test",
        api_base_url="https://api.test/v1",
        reconnect_base_delay=0,
        device_store_path=tmp_path / "local_storage.json",
    )


@pytest.fixture
def fake_sdk():
    return FakePlaybackSDK()


@pytest.fixture
def device_store():
    return MemoryDeviceStore()


@pytest.fixture
def event_bus():
    return EventBus()


@pytest.fixture
def mock_api():
    """PlayerApiClient with every call mocked."""
    api = AsyncMock(spec=PlayerApiClient)
    api.send_command = AsyncMock(return_value=make_response(200, {"success": True}, "POST", "http://proxy.test/play_track"))
    api.fetch_current_playback = AsyncMock(return_value=None)
    api.fetch_devices = AsyncMock(return_value=[])
    api.fetch_token = AsyncMock(return_value="fresh-token")
    return api


@pytest.fixture
def controller(fake_sdk, mock_api, device_store, event_bus):
    """Controller with zero backoff delays so reconnects run immediately."""
    return PlaybackSessionController(
        fake_sdk,
        mock_api,
        device_store,
        event_bus,
        sdk_load_timeout=0.05,
        reconnect_policy=ReconnectPolicy(base_delay=0, multiplier=2.0, max_delay=0, max_attempts=3),
        token_provider=mock_api.fetch_token,
    )


@pytest.fixture
def recorded_events(event_bus):
    """List of (name, detail) for every spotify:* event published."""
    from listening_player.player import events as ev

    recorded = []
    for name in (
        ev.READY,
        ev.NOT_READY,
        ev.ERROR,
        ev.PLAYER_STATE_CHANGED,
        ev.TRACK_CHANGED,
        ev.TOKEN_EXPIRED,
    ):
        event_bus.on(name, lambda detail, name=name: recorded.append((name, detail)))
    return recorded


@pytest.fixture
def track_factory():
    """Builds track dicts in the shape both the SDK and the Web API use."""
    return make_track


@pytest.fixture
def response_factory():
    """Builds real httpx responses."""
    return make_response
