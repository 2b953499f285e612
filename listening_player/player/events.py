"""Event bus shared by the controller and the application shell.

Handlers may be plain callables or coroutine functions. Coroutines are
scheduled on the running loop; a failing handler is logged and never
breaks delivery to the others.
"""

import asyncio
import inspect
from collections import defaultdict
from collections.abc import Callable
from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field

from listening_player.logging_config import get_logger, log_with_context

logger = get_logger(__name__)

SDK_READY = "spotify:sdk:ready"
READY = "spotify:ready"
NOT_READY = "spotify:notReady"
ERROR = "spotify:error"
PLAYER_STATE_CHANGED = "spotify:playerStateChanged"
TRACK_CHANGED = "spotify:trackChanged"
TOKEN_EXPIRED = "spotify:tokenExpired"

Handler = Callable[[dict[str, Any]], Any]


class EventBus:
    """Named events with ``{type, message}``-style dict payloads."""

    def __init__(self):
        self._handlers: dict[str, list[Handler]] = defaultdict(list)
        self._tasks: set[asyncio.Task] = set()

    def on(self, name: str, handler: Handler) -> Callable[[], None]:
        """Subscribe; returns a function that unsubscribes."""
        self._handlers[name].append(handler)
        return lambda: self.off(name, handler)

    def once(self, name: str, handler: Handler) -> Callable[[], None]:
        """Subscribe for the next emission only."""

        def wrapper(detail: dict[str, Any]) -> Any:
            self.off(name, wrapper)
            return handler(detail)

        return self.on(name, wrapper)

    def off(self, name: str, handler: Handler) -> None:
        if handler in self._handlers.get(name, []):
            self._handlers[name].remove(handler)

    def emit(self, name: str, detail: dict[str, Any] | None = None) -> None:
        detail = detail or {}
        for handler in list(self._handlers.get(name, [])):
            try:
                result = handler(detail)
            except Exception as e:
                log_with_context(
                    logger,
                    "error",
                    "Event handler failed",
                    event_name=name,
                    error=str(e),
                    error_type=type(e).__name__,
                    event_type="event_handler_error",
                )
                continue
            if inspect.isawaitable(result):
                task = asyncio.ensure_future(result)
                self._tasks.add(task)
                task.add_done_callback(self._task_done(name))

    def _task_done(self, name: str) -> Callable[[asyncio.Task], None]:
        def callback(task: asyncio.Task) -> None:
            self._tasks.discard(task)
            if task.cancelled():
                return
            exc = task.exception()
            if exc is not None:
                log_with_context(
                    logger,
                    "error",
                    "Async event handler failed",
                    event_name=name,
                    error=str(exc),
                    error_type=type(exc).__name__,
                    event_type="event_handler_error",
                )

        return callback

    async def drain(self) -> None:
        """Wait for scheduled async handlers to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


# Tagged variants for what the SDK reports. Each maps to one transition.


class DeviceReady(BaseModel):
    kind: Literal["ready"] = "ready"
    device_id: str


class DeviceNotReady(BaseModel):
    kind: Literal["not_ready"] = "not_ready"
    device_id: str | None = None


class PlayerStateChanged(BaseModel):
    kind: Literal["player_state_changed"] = "player_state_changed"
    state: dict[str, Any] | None = None


class SdkErrorRaised(BaseModel):
    kind: Literal["error"] = "error"
    error_type: Literal["initialization", "authentication", "account", "playback", "connection"]
    message: str = ""


SdkEvent = Annotated[
    DeviceReady | DeviceNotReady | PlayerStateChanged | SdkErrorRaised,
    Field(discriminator="kind"),
]
