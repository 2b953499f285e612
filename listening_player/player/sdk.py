"""Protocol definitions for the playback SDK.

The Web Playback SDK lives in the browser; these protocols describe the
part of it the controller talks to, so any host (a browser bridge, a
Connect device, a test double) can provide it.
"""

from collections.abc import Awaitable, Callable
from typing import Any, Protocol

# Listener names the SDK player emits
SDK_READY_EVENT = "ready"
SDK_NOT_READY_EVENT = "not_ready"
SDK_PLAYER_STATE_CHANGED_EVENT = "player_state_changed"
SDK_INITIALIZATION_ERROR = "initialization_error"
SDK_AUTHENTICATION_ERROR = "authentication_error"
SDK_ACCOUNT_ERROR = "account_error"
SDK_PLAYBACK_ERROR = "playback_error"

SDK_ERROR_EVENTS = {
    SDK_INITIALIZATION_ERROR: "initialization",
    SDK_AUTHENTICATION_ERROR: "authentication",
    SDK_ACCOUNT_ERROR: "account",
    SDK_PLAYBACK_ERROR: "playback",
}

TokenCallback = Callable[[], str | None]
Listener = Callable[[Any], None]


class SDKPlayer(Protocol):
    """One player instance, i.e. one playback device."""

    def add_listener(self, event: str, listener: Listener) -> None:
        """Register a listener; payloads are dicts (or None for empty state)."""
        ...

    async def connect(self) -> bool:
        """Connect the device; False when the SDK refused."""
        ...

    async def disconnect(self) -> None: ...

    async def resume(self) -> None: ...

    async def pause(self) -> None: ...

    async def previous_track(self) -> None: ...

    async def next_track(self) -> None: ...


class PlaybackSDK(Protocol):
    """Loader and factory for SDK players."""

    def is_loaded(self) -> bool:
        """True once the SDK script is available."""
        ...

    def create_player(self, name: str, get_oauth_token: TokenCallback, volume: float) -> SDKPlayer:
        """Create a player; ``get_oauth_token`` is called whenever the SDK needs a token."""
        ...


TokenProvider = Callable[[], Awaitable[str]]
