"""State managers for handling application-wide mutable state.

This module provides task-safe state management using asyncio.Lock
for async operations. All state managers inherit from StateManager ABC.
"""

import asyncio
import secrets
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass


class StateManager(ABC):
    """Base class for all state managers.

    State managers provide task-safe access to mutable application state.
    All subclasses must implement lifecycle methods.
    """

    @abstractmethod
    async def initialize(self) -> None:
        """Initialize the state manager (called during app startup)."""
        pass

    @abstractmethod
    async def cleanup(self) -> None:
        """Cleanup resources (called during app shutdown)."""
        pass


@dataclass
class StoredToken:
    """OAuth credentials of one Spotify user."""

    access_token: str
    refresh_token: str | None
    expires_at: float

    def is_expired(self, leeway: float = 0.0) -> bool:
        return self.expires_at - leeway <= time.time()

    @property
    def expires_in(self) -> int:
        return max(0, int(self.expires_at - time.time()))


class SpotifyTokenStore(StateManager):
    """Keeps access/refresh tokens per Spotify user id.

    Refreshing is done by spotify_service.get_access_token; this class
    only stores what it is given.
    """

    def __init__(self):
        self._tokens: dict[str, StoredToken] = {}
        self._lock = asyncio.Lock()

    async def initialize(self) -> None:
        pass

    async def cleanup(self) -> None:
        async with self._lock:
            self._tokens.clear()

    async def save(self, user_id: str, access_token: str, expires_in: int, refresh_token: str | None = None) -> None:
        """Store a token, keeping the previous refresh token if none is given.

        Args:
            user_id: Spotify user id
            access_token: The access token string
            expires_in: Expiration time in seconds
            refresh_token: New refresh token, if the token endpoint returned one
        """
        async with self._lock:
            previous = self._tokens.get(user_id)
            if refresh_token is None and previous is not None:
                refresh_token = previous.refresh_token
            self._tokens[user_id] = StoredToken(
                access_token=access_token,
                refresh_token=refresh_token,
                expires_at=time.time() + expires_in,
            )

    async def get(self, user_id: str) -> StoredToken | None:
        async with self._lock:
            return self._tokens.get(user_id)

    async def remove(self, user_id: str) -> None:
        async with self._lock:
            self._tokens.pop(user_id, None)

    async def count(self) -> int:
        async with self._lock:
            return len(self._tokens)


class UserSessionStore(StateManager):
    """Maps opaque session cookie values to Spotify user ids.

    Sessions expire after ``ttl_seconds``; expired entries are purged lazily.
    """

    def __init__(self, ttl_seconds: int = 7 * 24 * 3600):
        self._sessions: dict[str, tuple[str, float]] = {}  # session_id -> (user_id, expires_at)
        self._ttl_seconds = ttl_seconds
        self._lock = asyncio.Lock()

    async def initialize(self) -> None:
        pass

    async def cleanup(self) -> None:
        async with self._lock:
            self._sessions.clear()

    async def create(self, user_id: str) -> str:
        """Start a session for ``user_id`` and return its id."""
        session_id = secrets.token_urlsafe(32)
        async with self._lock:
            self._purge_expired()
            self._sessions[session_id] = (user_id, time.time() + self._ttl_seconds)
        return session_id

    async def get_user_id(self, session_id: str | None) -> str | None:
        """Return the user id of a live session, or None."""
        if not session_id:
            return None
        async with self._lock:
            entry = self._sessions.get(session_id)
            if entry is None:
                return None
            user_id, expires_at = entry
            if expires_at <= time.time():
                del self._sessions[session_id]
                return None
            return user_id

    async def delete(self, session_id: str | None) -> None:
        if not session_id:
            return
        async with self._lock:
            self._sessions.pop(session_id, None)

    async def count(self) -> int:
        async with self._lock:
            self._purge_expired()
            return len(self._sessions)

    def _purge_expired(self) -> None:
        now = time.time()
        expired = [sid for sid, (_, expires_at) in self._sessions.items() if expires_at <= now]
        for sid in expired:
            del self._sessions[sid]
