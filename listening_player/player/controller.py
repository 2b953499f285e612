"""Playback session controller.

Owns the single playback session: the access token, the device id the SDK
assigned to us and the connection state machine

    UNINITIALIZED -> CONNECTING_SDK -> AWAITING_DEVICE -> READY
    READY -> AWAITING_DEVICE        (device went offline)
    any   -> RECONNECTING           (transient failure, retried with backoff)
    any   -> FAILED                 (fatal error, needs a new initialize())

SDK callbacks are turned into tagged events and applied by ``dispatch``;
everything the UI needs to know is published on the ``EventBus``.
"""

import asyncio
from typing import Any

import httpx
from pydantic import ValidationError

from listening_player.exceptions import (
    AccountError,
    AuthenticationError,
    ConnectionFailedError,
    DeviceUnavailableError,
    InitializationError,
    PlaybackError,
    PlayerError,
    SdkLoadTimeoutError,
    SdkMissingError,
    SessionExpiredError,
    TokenMissingError,
    TrackOrDeviceNotFoundError,
    UpstreamError,
)
from listening_player.logging_config import get_logger, log_with_context
from listening_player.player import events as ev
from listening_player.player.api import PlayerApiClient
from listening_player.player.backoff import ReconnectPolicy
from listening_player.player.events import (
    DeviceNotReady,
    DeviceReady,
    EventBus,
    PlayerStateChanged,
    SdkErrorRaised,
    SdkEvent,
)
from listening_player.player.sdk import (
    SDK_ERROR_EVENTS,
    SDK_NOT_READY_EVENT,
    SDK_PLAYER_STATE_CHANGED_EVENT,
    SDK_READY_EVENT,
    PlaybackSDK,
    SDKPlayer,
    TokenProvider,
)
from listening_player.player.state import ConnectionState, NowPlaying, PlaybackCommand, Session, TrackWindow
from listening_player.player.storage import DEVICE_ID_KEY, DeviceStore

logger = get_logger(__name__)

NO_TRACK_TEXT = "No track playing"

# Playback errors with these fragments mean the device is gone, not the track
TRANSIENT_PLAYBACK_PATTERNS = ("404", "not found", "no active device")

SDK_ERROR_CLASSES: dict[str, type[PlayerError]] = {
    "initialization": InitializationError,
    "authentication": AuthenticationError,
    "account": AccountError,
    "playback": PlaybackError,
    "connection": ConnectionFailedError,
}


def is_transient_playback_error(message: str) -> bool:
    lowered = message.lower()
    return any(pattern in lowered for pattern in TRANSIENT_PLAYBACK_PATTERNS)


class PlaybackSessionController:
    """Keeps one SDK player connected and routes playback commands.

    Args:
        sdk: Loader/factory for SDK players
        api: HTTP client for the proxy and the Web API
        store: Persistent storage for the cached device id
        events: Bus the controller publishes on
        player_name: Device name shown in Spotify Connect
        volume: Initial volume (0..1)
        sdk_load_timeout: Seconds to wait for the SDK before giving up
        reconnect_policy: Backoff used for transient failures
        token_provider: Coroutine function returning a fresh access token
    """

    def __init__(
        self,
        sdk: PlaybackSDK,
        api: PlayerApiClient,
        store: DeviceStore,
        events: EventBus,
        *,
        player_name: str = "Listening Player",
        volume: float = 0.5,
        sdk_load_timeout: float = 10.0,
        reconnect_policy: ReconnectPolicy | None = None,
        token_provider: TokenProvider | None = None,
    ):
        self._sdk = sdk
        self._api = api
        self._store = store
        self.events = events
        self.player_name = player_name
        self.volume = volume
        self.sdk_load_timeout = sdk_load_timeout
        self.reconnect_policy = reconnect_policy or ReconnectPolicy()
        self._token_provider = token_provider

        self.session = Session()
        self.now_playing: NowPlaying | None = None
        self.track_window: TrackWindow | None = None
        self.status_text = NO_TRACK_TEXT
        self.last_error: PlayerError | None = None

        self._player: SDKPlayer | None = None
        self._reconnect_attempts = 0
        self._sdk_loaded = asyncio.Event()
        self._sdk_task: asyncio.Task | None = None
        self._reconnect_task: asyncio.Task | None = None
        self._background: set[asyncio.Task] = set()
        self._handlers = {
            DeviceReady: self._handle_ready,
            DeviceNotReady: self._handle_not_ready,
            PlayerStateChanged: self._handle_player_state,
            SdkErrorRaised: self._handle_error,
        }

        self.events.on(ev.SDK_READY, self._on_sdk_ready)

    # ------------------------------------------------------------------ #
    # Accessors

    @property
    def state(self) -> ConnectionState:
        return self.session.connection_state

    @property
    def device_id(self) -> str | None:
        return self.session.device_id

    @property
    def token(self) -> str | None:
        return self.session.token

    @property
    def reconnect_attempts(self) -> int:
        return self._reconnect_attempts

    def is_ready(self) -> bool:
        return self.state is ConnectionState.READY and self.session.device_id is not None

    # ------------------------------------------------------------------ #
    # Lifecycle

    async def initialize(self, token: str | None) -> bool:
        """Start (or restart) the session with ``token``.

        Returns True once the connection process is under way; readiness is
        announced later with ``spotify:ready``. Already-ready sessions only
        take the new token.

        Raises:
            TokenMissingError: If ``token`` is empty
        """
        if not token:
            error = TokenMissingError("No Spotify access token provided")
            self._report_error(error)
            raise error

        self.session.token = token

        if self.is_ready() and self._player is not None:
            logger.debug("Player already ready, keeping device %s", self.session.device_id)
            return True

        if self._player is not None or self._task_pending(self._sdk_task) or self._task_pending(self._reconnect_task):
            logger.debug("Connection already in progress (%s)", self.state.value)
            return True

        if self.state is ConnectionState.FAILED:
            log_with_context(
                logger,
                "info",
                "Restarting playback session after failure",
                event_type="player_restart",
            )
            self.last_error = None
        self._reconnect_attempts = 0

        cached_device_id = self._store.get_item(DEVICE_ID_KEY)
        if cached_device_id:
            self.session.device_id = cached_device_id

        await self._connect_sdk()
        return True

    async def disconnect(self) -> None:
        """Tear down the player; the cached device id is kept."""
        for task in (self._sdk_task, self._reconnect_task):
            if self._task_pending(task):
                task.cancel()
        self._sdk_task = None
        self._reconnect_task = None

        player, self._player = self._player, None
        if player is not None:
            try:
                await player.disconnect()
            except Exception as e:
                log_with_context(
                    logger,
                    "warning",
                    "Player disconnect failed",
                    error=str(e),
                    error_type=type(e).__name__,
                    event_type="player_disconnect_error",
                )
        self._set_state(ConnectionState.UNINITIALIZED)
        logger.info("Player disconnected")

    async def wait_until_settled(self) -> None:
        """Wait for pending SDK loads, reconnects and event handlers."""
        while True:
            pending = [
                task
                for task in (self._sdk_task, self._reconnect_task, *self._background)
                if task is not None and not task.done()
            ]
            if not pending:
                break
            await asyncio.gather(*pending, return_exceptions=True)
        await self.events.drain()

    def _on_sdk_ready(self, detail: dict[str, Any]) -> None:
        self._sdk_loaded.set()

    async def _connect_sdk(self) -> None:
        self._set_state(ConnectionState.CONNECTING_SDK)
        if self._sdk.is_loaded():
            await self._setup_player()
            return
        logger.info("Waiting for the Spotify SDK to load")
        if not self._task_pending(self._sdk_task):
            self._sdk_task = asyncio.create_task(self._await_sdk())

    async def _await_sdk(self) -> None:
        try:
            await asyncio.wait_for(self._sdk_loaded.wait(), timeout=self.sdk_load_timeout)
        except asyncio.TimeoutError:
            if not self._sdk.is_loaded():
                self._fail(SdkLoadTimeoutError(f"Spotify SDK did not load within {self.sdk_load_timeout:g}s"))
                return
        if self.state is ConnectionState.CONNECTING_SDK:
            await self._setup_player()

    async def _setup_player(self) -> None:
        if self._player is not None:
            logger.debug("Player already exists")
            return
        if not self._sdk.is_loaded():
            self._fail(SdkMissingError("Spotify Web Playback SDK is not available"))
            return

        player = self._sdk.create_player(self.player_name, self._current_token, self.volume)
        self._player = player
        self._register_listeners(player)
        self._set_state(ConnectionState.AWAITING_DEVICE)

        try:
            connected = await player.connect()
        except Exception as e:
            log_with_context(
                logger,
                "warning",
                "Player connect raised",
                error=str(e),
                error_type=type(e).__name__,
                event_type="player_connect_error",
            )
            connected = False

        if not connected and self._player is player:
            self.dispatch(SdkErrorRaised(error_type="connection", message="Failed to connect to Spotify"))

    def _current_token(self) -> str | None:
        return self.session.token

    def _register_listeners(self, player: SDKPlayer) -> None:
        def listen(sdk_event: str, build) -> None:
            def listener(payload: Any) -> None:
                if player is not self._player:
                    logger.debug("Ignoring %s from a disposed player", sdk_event)
                    return
                try:
                    event = build(payload)
                except (ValidationError, KeyError, TypeError) as e:
                    log_with_context(
                        logger,
                        "warning",
                        "Malformed SDK payload",
                        sdk_event=sdk_event,
                        error=str(e),
                        event_type="sdk_payload_invalid",
                    )
                    return
                self.dispatch(event)

            player.add_listener(sdk_event, listener)

        listen(SDK_READY_EVENT, lambda p: DeviceReady(device_id=p["device_id"]))
        listen(SDK_NOT_READY_EVENT, lambda p: DeviceNotReady(device_id=(p or {}).get("device_id")))
        listen(SDK_PLAYER_STATE_CHANGED_EVENT, lambda p: PlayerStateChanged(state=p or None))
        for sdk_event, error_type in SDK_ERROR_EVENTS.items():
            listen(
                sdk_event,
                lambda p, t=error_type: SdkErrorRaised(error_type=t, message=(p or {}).get("message", "")),
            )

    # ------------------------------------------------------------------ #
    # Event dispatch

    def dispatch(self, event: SdkEvent) -> None:
        """Apply one SDK event to the session."""
        if self.state is ConnectionState.FAILED:
            logger.debug("Session failed, ignoring %s", event.kind)
            return
        self._handlers[type(event)](event)

    def _handle_ready(self, event: DeviceReady) -> None:
        self.session.device_id = event.device_id
        self._store.set_item(DEVICE_ID_KEY, event.device_id)
        self._reconnect_attempts = 0
        self._set_state(ConnectionState.READY)
        log_with_context(
            logger,
            "info",
            "Spotify player ready",
            device_id=event.device_id,
            event_type="player_ready",
        )
        self.events.emit(ev.READY, {"device_id": event.device_id})

    def _handle_not_ready(self, event: DeviceNotReady) -> None:
        log_with_context(
            logger,
            "warning",
            "Device went offline",
            device_id=event.device_id,
            event_type="player_not_ready",
        )
        if self.state is ConnectionState.READY:
            self._set_state(ConnectionState.AWAITING_DEVICE)
        self.events.emit(ev.NOT_READY, {"device_id": event.device_id})

    def _handle_player_state(self, event: PlayerStateChanged) -> None:
        state = event.state
        self.events.emit(ev.PLAYER_STATE_CHANGED, state or {})
        if state is None:
            return

        try:
            track_window = TrackWindow.from_sdk(state.get("track_window") or {})
            position_ms = int(state.get("position") or 0)
        except (ValidationError, TypeError, ValueError) as e:
            log_with_context(
                logger,
                "warning",
                "Malformed SDK payload",
                sdk_event=SDK_PLAYER_STATE_CHANGED_EVENT,
                error=str(e),
                event_type="sdk_payload_invalid",
            )
            return

        paused = bool(state.get("paused", True))
        self.track_window = track_window
        current = track_window.current
        if current is not None:
            self._apply_now_playing(
                NowPlaying.from_track(
                    current,
                    position_ms=position_ms,
                    paused=paused,
                    source="sdk",
                )
            )
        elif self.now_playing is not None:
            self._apply_now_playing(self.now_playing.model_copy(update={"paused": paused}))

    def _handle_error(self, event: SdkErrorRaised) -> None:
        error_class = SDK_ERROR_CLASSES[event.error_type]
        error = error_class(event.message or f"Spotify {event.error_type} error")
        self._report_error(error)

        if event.error_type in ("initialization", "account"):
            self._fail(error, report=False)
        elif event.error_type == "authentication":
            self.events.emit(ev.TOKEN_EXPIRED, {"message": error.message})
            self._schedule_reconnect("authentication error")
        elif event.error_type == "playback":
            if is_transient_playback_error(error.message):
                self._schedule_reconnect("playback error")
        else:
            self._schedule_reconnect("connection failed")

    # ------------------------------------------------------------------ #
    # Reconnection

    def _schedule_reconnect(self, reason: str) -> None:
        if self.state is ConnectionState.FAILED:
            return
        if self._task_pending(self._reconnect_task):
            logger.debug("Reconnect already scheduled, ignoring %s", reason)
            return
        if self.reconnect_policy.exhausted(self._reconnect_attempts):
            self._fail(InitializationError(f"Could not reconnect after {self._reconnect_attempts} attempts"))
            return

        delay = self.reconnect_policy.delay(self._reconnect_attempts)
        self._reconnect_attempts += 1
        log_with_context(
            logger,
            "info",
            "Scheduling reconnect",
            reason=reason,
            attempt=self._reconnect_attempts,
            delay_seconds=delay,
            event_type="player_reconnect_scheduled",
        )
        self._dispose_player()
        self._clear_device()
        self._set_state(ConnectionState.RECONNECTING)
        self._reconnect_task = asyncio.create_task(self._reconnect_after(delay))

    async def _reconnect_after(self, delay: float) -> None:
        await asyncio.sleep(delay)
        self._reconnect_task = None
        if self.state is not ConnectionState.RECONNECTING:
            return
        await self._connect_sdk()

    def _dispose_player(self) -> None:
        player, self._player = self._player, None
        if player is None:
            return
        task = asyncio.ensure_future(player.disconnect())
        self._background.add(task)
        task.add_done_callback(self._background_done)

    def _background_done(self, task: asyncio.Task) -> None:
        self._background.discard(task)
        if not task.cancelled() and task.exception() is not None:
            log_with_context(
                logger,
                "warning",
                "Disposing player failed",
                error=str(task.exception()),
                event_type="player_disconnect_error",
            )

    def _clear_device(self) -> None:
        self._store.remove_item(DEVICE_ID_KEY)
        self.session.device_id = None

    def _fail(self, error: PlayerError, report: bool = True) -> None:
        if report:
            self._report_error(error)
        self._dispose_player()
        self.status_text = error.message
        self._set_state(ConnectionState.FAILED)

    # ------------------------------------------------------------------ #
    # Commands

    async def play(self, uri: str, device_id: str | None = None) -> dict[str, Any]:
        """Play a track or a context (playlist, album...) on our device.

        Raises:
            DeviceUnavailableError: If the session is not ready
            TrackOrDeviceNotFoundError: Upstream 404; a reconnect is scheduled
            SessionExpiredError: Upstream 401
            UpstreamError: Network failure or any other non-2xx response
        """
        target_device = device_id or self.session.device_id
        if not self.is_ready() or not target_device:
            error = DeviceUnavailableError("No Spotify device ID available")
            self._report_error(error)
            raise error

        command = PlaybackCommand.for_uri(uri, target_device)
        try:
            response = await self._api.send_command(command)
        except httpx.HTTPError as e:
            error = UpstreamError(f"Error playing track: {e}")
            self.status_text = error.message
            self._report_error(error)
            raise error from e

        body = self._response_body(response)

        if response.status_code == 404:
            self._schedule_reconnect("play returned 404")
            error = TrackOrDeviceNotFoundError(
                "Track or device not found. Reconnecting the player.",
                details={"uri": uri},
            )
            self._report_error(error)
            raise error

        if response.status_code == 401:
            self.events.emit(ev.TOKEN_EXPIRED, {"message": "Session expired"})
            error = SessionExpiredError("Your Spotify session has expired. Please refresh the page.")
            self._report_error(error)
            raise error

        if not response.is_success:
            error = UpstreamError(
                body.get("error") or f"Error playing track ({response.status_code})",
                details={"status_code": response.status_code},
            )
            self._report_error(error)
            raise error

        log_with_context(
            logger,
            "info",
            "Playback started",
            uri=uri,
            command=command.kind.value,
            event_type="player_play",
        )
        await self.refresh_now_playing()
        return body

    async def resume(self) -> None:
        await self._transport("resume")

    async def pause(self) -> None:
        await self._transport("pause")

    async def previous_track(self) -> None:
        await self._transport("previous_track")

    async def next_track(self) -> None:
        await self._transport("next_track")

    async def _transport(self, action: str) -> None:
        player = self._player
        if player is None:
            logger.warning("Player not initialized, ignoring %s", action)
            return
        try:
            await getattr(player, action)()
        except Exception as e:
            log_with_context(
                logger,
                "error",
                "Transport command failed",
                action=action,
                error=str(e),
                error_type=type(e).__name__,
                event_type="player_transport_error",
            )
            await self.refresh_now_playing()
            return
        logger.debug("Transport command %s sent", action)

    async def check_device_status(self) -> bool:
        """Verify our device is among the account's devices.

        Returns True when it is. Otherwise the cached id is dropped, the
        player is rebuilt and False is returned.

        Raises:
            DeviceUnavailableError: Without a token or device id, or when
                the session is failed or disconnected
            UpstreamError: If the device list cannot be fetched
        """
        if self.state in (ConnectionState.FAILED, ConnectionState.UNINITIALIZED):
            raise DeviceUnavailableError(f"Player session is {self.state.value}")
        if not self.session.token or not self.session.device_id:
            raise DeviceUnavailableError("No token or device ID available")

        try:
            devices = await self._api.fetch_devices(self.session.token)
        except httpx.HTTPError as e:
            raise UpstreamError(f"Could not list Spotify devices: {e}") from e

        device_id = self.session.device_id
        if any(device.id == device_id for device in devices):
            if self.state is ConnectionState.AWAITING_DEVICE and self._player is not None:
                self._handle_ready(DeviceReady(device_id=device_id))
            return True

        log_with_context(
            logger,
            "warning",
            "Device not found among available devices, reinitializing",
            device_id=device_id,
            available=len(devices),
            event_type="player_device_missing",
        )
        self._clear_device()
        self._dispose_player()
        await self._connect_sdk()
        return False

    async def refresh_now_playing(self) -> NowPlaying | None:
        """Poll current playback and publish it; the latest report wins."""
        if not self.session.token:
            return self.now_playing
        try:
            playback = await self._api.fetch_current_playback(self.session.token)
        except (httpx.HTTPError, ValueError) as e:
            log_with_context(
                logger,
                "error",
                "Failed to fetch current playback",
                error=str(e),
                error_type=type(e).__name__,
                event_type="player_poll_error",
            )
            return self.now_playing

        if playback is None:
            return self.now_playing
        now_playing = NowPlaying.from_playback(playback)
        if now_playing is None:
            return self.now_playing

        self._apply_now_playing(now_playing)
        self.events.emit(ev.TRACK_CHANGED, now_playing.event_detail())
        return now_playing

    async def refresh_token(self, detail: dict[str, Any] | None = None) -> str | None:
        """Fetch a fresh token from the provider and hand it to the SDK."""
        if self._token_provider is None:
            logger.warning("No token provider configured, cannot refresh token")
            return None
        try:
            token = await self._token_provider()
        except (httpx.HTTPError, KeyError, ValueError) as e:
            log_with_context(
                logger,
                "error",
                "Token refresh failed",
                error=str(e),
                error_type=type(e).__name__,
                event_type="player_token_refresh_error",
            )
            return None
        self.session.token = token
        logger.info("Access token refreshed")
        return token

    # ------------------------------------------------------------------ #
    # Helpers

    def _apply_now_playing(self, now_playing: NowPlaying) -> None:
        self.now_playing = now_playing
        self.status_text = now_playing.status_text

    def _report_error(self, error: PlayerError) -> None:
        self.last_error = error
        log_with_context(
            logger,
            "error",
            "Player error",
            error=error.message,
            error_type=error.error_type,
            event_type="player_error",
        )
        self.events.emit(ev.ERROR, {"type": error.error_type, "message": error.message})

    def _set_state(self, new_state: ConnectionState) -> None:
        old_state = self.session.connection_state
        if old_state is new_state:
            return
        self.session.connection_state = new_state
        log_with_context(
            logger,
            "debug",
            "Connection state changed",
            from_state=old_state.value,
            to_state=new_state.value,
            event_type="player_state_transition",
        )

    @staticmethod
    def _task_pending(task: asyncio.Task | None) -> bool:
        return task is not None and not task.done()

    @staticmethod
    def _response_body(response: httpx.Response) -> dict[str, Any]:
        try:
            body = response.json()
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {}
