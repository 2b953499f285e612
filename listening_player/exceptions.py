"""Custom exceptions for Listening Player with proper HTTP status codes."""

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Error codes for structured error responses."""

    # Generic errors
    PLAYER_APP_ERROR = "PLAYER_APP_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"

    # Spotify (server side)
    SPOTIFY_ERROR = "SPOTIFY_ERROR"
    SPOTIFY_AUTH_ERROR = "SPOTIFY_AUTH_ERROR"
    SPOTIFY_NOT_AUTHENTICATED = "SPOTIFY_NOT_AUTHENTICATED"
    SPOTIFY_NOT_FOUND = "SPOTIFY_NOT_FOUND"
    SPOTIFY_API_ERROR = "SPOTIFY_API_ERROR"
    DEVICE_NOT_FOUND = "DEVICE_NOT_FOUND"

    # Playback session controller
    TOKEN_MISSING = "TOKEN_MISSING"
    SDK_LOAD_TIMEOUT = "SDK_LOAD_TIMEOUT"
    SDK_MISSING = "SDK_MISSING"
    INITIALIZATION_ERROR = "INITIALIZATION_ERROR"
    CONNECTION_ERROR = "CONNECTION_ERROR"
    AUTHENTICATION_ERROR = "AUTHENTICATION_ERROR"
    ACCOUNT_ERROR = "ACCOUNT_ERROR"
    PLAYBACK_ERROR = "PLAYBACK_ERROR"
    DEVICE_UNAVAILABLE = "DEVICE_UNAVAILABLE"
    TRACK_OR_DEVICE_NOT_FOUND = "TRACK_OR_DEVICE_NOT_FOUND"
    SESSION_EXPIRED = "SESSION_EXPIRED"
    UPSTREAM_ERROR = "UPSTREAM_ERROR"

    # Configuration errors
    CONFIG_ERROR = "CONFIG_ERROR"


class ListeningPlayerException(Exception):
    """Base exception for application errors with HTTP status code support.

    All custom exceptions inherit from this class so the registered
    handler can render them consistently.
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.PLAYER_APP_ERROR,
        status_code: int = 500,
        details: dict[str, Any] | None = None,
    ):
        """Initialize application exception.

        Args:
            message: Human-readable error message
            code: Error code from ErrorCode enum
            status_code: HTTP status code (default 500)
            details: Additional error context rendered next to the error
        """
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


class SpotifyException(ListeningPlayerException):
    """Spotify-related errors."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.SPOTIFY_ERROR,
        status_code: int = 500,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, code, status_code, details)


class SpotifyAuthException(SpotifyException):
    """Upstream rejected our access token."""

    def __init__(self, message: str = "Authorization failed", details: dict[str, Any] | None = None):
        super().__init__(
            message,
            code=ErrorCode.SPOTIFY_AUTH_ERROR,
            status_code=401,
            details=details,
        )


class SpotifyNotAuthenticatedException(SpotifyException):
    """User not logged in with Spotify."""

    def __init__(self, message: str = "Not authenticated with Spotify", details: dict[str, Any] | None = None):
        super().__init__(
            message,
            code=ErrorCode.SPOTIFY_NOT_AUTHENTICATED,
            status_code=401,
            details=details,
        )


class SpotifyNotFoundException(SpotifyException):
    """Upstream resource (track, playlist, device) not found."""

    def __init__(self, message: str = "Not found", details: dict[str, Any] | None = None):
        super().__init__(
            message,
            code=ErrorCode.SPOTIFY_NOT_FOUND,
            status_code=404,
            details=details,
        )


class DeviceNotFoundException(SpotifyException):
    """Target device is not among the user's available devices."""

    def __init__(self, message: str = "Device not found", details: dict[str, Any] | None = None):
        super().__init__(
            message,
            code=ErrorCode.DEVICE_NOT_FOUND,
            status_code=404,
            details=details,
        )


class SpotifyAPIException(SpotifyException):
    """Spotify API request failed."""

    def __init__(self, message: str, status_code: int = 502, details: dict[str, Any] | None = None):
        super().__init__(
            message,
            code=ErrorCode.SPOTIFY_API_ERROR,
            status_code=status_code,
            details=details,
        )


class ConfigurationException(ListeningPlayerException):
    """Configuration errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, ErrorCode.CONFIG_ERROR, 500, details)


class PlayerError(ListeningPlayerException):
    """Errors raised by the playback session controller.

    ``error_type`` is the short name carried by ``spotify:error`` events.
    """

    error_type = "player"
    default_code = ErrorCode.PLAYER_APP_ERROR
    default_status = 500

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, self.default_code, self.default_status, details)


class TokenMissingError(PlayerError):
    error_type = "token_missing"
    default_code = ErrorCode.TOKEN_MISSING
    default_status = 401


class SdkLoadTimeoutError(PlayerError):
    error_type = "sdk_load"
    default_code = ErrorCode.SDK_LOAD_TIMEOUT
    default_status = 504


class SdkMissingError(PlayerError):
    error_type = "sdk_missing"
    default_code = ErrorCode.SDK_MISSING


class InitializationError(PlayerError):
    error_type = "initialization"
    default_code = ErrorCode.INITIALIZATION_ERROR


class ConnectionFailedError(PlayerError):
    error_type = "connection"
    default_code = ErrorCode.CONNECTION_ERROR
    default_status = 503


class AuthenticationError(PlayerError):
    error_type = "authentication"
    default_code = ErrorCode.AUTHENTICATION_ERROR
    default_status = 401


class AccountError(PlayerError):
    """Usually a non-premium account; needs user action."""

    error_type = "account"
    default_code = ErrorCode.ACCOUNT_ERROR
    default_status = 403


class PlaybackError(PlayerError):
    error_type = "playback"
    default_code = ErrorCode.PLAYBACK_ERROR


class DeviceUnavailableError(PlayerError):
    error_type = "device"
    default_code = ErrorCode.DEVICE_UNAVAILABLE
    default_status = 409


class TrackOrDeviceNotFoundError(PlayerError):
    error_type = "not_found"
    default_code = ErrorCode.TRACK_OR_DEVICE_NOT_FOUND
    default_status = 404


class SessionExpiredError(PlayerError):
    error_type = "session_expired"
    default_code = ErrorCode.SESSION_EXPIRED
    default_status = 401


class UpstreamError(PlayerError):
    error_type = "upstream"
    default_code = ErrorCode.UPSTREAM_ERROR
    default_status = 502
