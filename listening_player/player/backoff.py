"""Reconnect backoff policy."""

from dataclasses import dataclass

from listening_player.config import PlayerSettings


@dataclass
class ReconnectPolicy:
    """Capped exponential backoff with a bounded number of consecutive attempts.

    Delay for attempt ``n`` (0-based) is ``base_delay * multiplier ** n``,
    clamped to ``max_delay``.
    """

    base_delay: float = 3.0
    multiplier: float = 2.0
    max_delay: float = 30.0
    max_attempts: int = 5

    @classmethod
    def from_settings(cls, settings: PlayerSettings) -> "ReconnectPolicy":
        return cls(
            base_delay=settings.reconnect_base_delay,
            multiplier=settings.reconnect_multiplier,
            max_delay=settings.reconnect_max_delay,
            max_attempts=settings.reconnect_max_attempts,
        )

    def delay(self, attempt: int) -> float:
        return min(self.base_delay * (self.multiplier**attempt), self.max_delay)

    def exhausted(self, attempt: int) -> bool:
        return attempt >= self.max_attempts
