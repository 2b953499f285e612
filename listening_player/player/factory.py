"""Wiring for a ready-to-use playback session controller."""

import httpx

from listening_player.config import PlayerSettings
from listening_player.player.api import PlayerApiClient
from listening_player.player.backoff import ReconnectPolicy
from listening_player.player.controller import PlaybackSessionController
from listening_player.player.events import TOKEN_EXPIRED, EventBus
from listening_player.player.sdk import PlaybackSDK
from listening_player.player.storage import DeviceStore, JsonFileDeviceStore


def create_controller(
    sdk: PlaybackSDK,
    client: httpx.AsyncClient,
    settings: PlayerSettings | None = None,
    store: DeviceStore | None = None,
    events: EventBus | None = None,
) -> PlaybackSessionController:
    """Build a controller from settings.

    The device id is persisted to ``settings.device_store_path`` unless a
    store is given, and ``spotify:tokenExpired`` triggers a token refresh
    through the proxy.
    """
    settings = settings or PlayerSettings()
    api = PlayerApiClient(client, settings.proxy_base_url, settings.api_base_url)
    events = events or EventBus()

    controller = PlaybackSessionController(
        sdk,
        api,
        store if store is not None else JsonFileDeviceStore(settings.device_store_path),
        events,
        player_name=settings.player_name,
        volume=settings.volume,
        sdk_load_timeout=settings.sdk_load_timeout_seconds,
        reconnect_policy=ReconnectPolicy.from_settings(settings),
        token_provider=api.fetch_token,
    )
    events.on(TOKEN_EXPIRED, controller.refresh_token)
    return controller
