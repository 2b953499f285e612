from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


BASE_DIR = Path(__file__).resolve().parent.parent  # listening-player/

# Scopes the Web Playback SDK and the player pages need
DEFAULT_SPOTIFY_SCOPES = (
    "user-read-email user-read-private user-read-playback-state user-modify-playback-state "
    "streaming user-library-read user-read-currently-playing playlist-read-private"
)


class Settings(BaseSettings):
    """Server settings with validation.

    Spotify credentials are required and will raise validation errors if missing.
    All secrets must be provided via environment variables or .env file.
    """

    # API server settings
    api_host: str = Field(default="127.0.0.1", min_length=1, description="API server host (e.g., '0.0.0.0')")
    api_port: int = Field(ge=1, le=65535, default=8000, description="API server port")

    # Spotify OAuth - required
    spotify_client_id: str = Field(min_length=1, description="Spotify OAuth client ID")
    spotify_client_secret: str = Field(min_length=1, description="Spotify OAuth client secret")
    spotify_redirect_uri: str = Field(pattern=r"^https?://", description="Spotify OAuth redirect URI")
    spotify_scopes: str = Field(default=DEFAULT_SPOTIFY_SCOPES, description="Space separated OAuth scopes")

    # Session cookie
    session_cookie_name: str = Field(default="listening_player_session", min_length=1)
    session_ttl_seconds: int = Field(default=7 * 24 * 3600, ge=60, description="Login session lifetime")

    # Security
    cors_origins: str = Field(default="http://localhost:8000,http://127.0.0.1:8000")
    trusted_hosts: str = Field(default="localhost,127.0.0.1")

    # Player page and search
    playlist_prefix: str = Field(default="K:", description="Only playlists whose name starts with this are listed")
    playlist_limit: int = Field(default=50, ge=1, le=50)
    search_limit: int = Field(default=10, ge=1, le=50)
    search_market: str = Field(default="US", min_length=2, max_length=2)

    model_config = SettingsConfigDict(
        env_file=Path(BASE_DIR / ".env"),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        validate_default=True,
    )

    @field_validator("api_host", "spotify_client_id", "spotify_client_secret", mode="after")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        """Ensure required strings are not whitespace."""
        v = v.strip()
        if not v:
            raise ValueError("value cannot be empty")
        return v

    @field_validator("search_market", mode="after")
    @classmethod
    def validate_search_market(cls, v: str) -> str:
        """Markets are ISO 3166-1 alpha-2 codes."""
        return v.upper()


class PlayerSettings(BaseSettings):
    """Settings for the playback session controller.

    Read from PLAYER_* environment variables so a controller can run
    without the server's Spotify credentials.
    """

    proxy_base_url: str = Field(default="http://127.0.0.1:8000", pattern=r"^https?://")
    api_base_url: str = Field(default="https://api.spotify.com/v1", pattern=r"^https?://")
    player_name: str = Field(default="Listening Player", min_length=1)
    volume: float = Field(default=0.5, ge=0.0, le=1.0)
    sdk_load_timeout_seconds: float = Field(default=10.0, gt=0)

    # Reconnect backoff: base * multiplier ** attempt, capped at max_delay
    reconnect_base_delay: float = Field(default=3.0, ge=0)
    reconnect_multiplier: float = Field(default=2.0, ge=1.0)
    reconnect_max_delay: float = Field(default=30.0, ge=0)
    reconnect_max_attempts: int = Field(default=5, ge=1)

    device_store_path: Path = Field(default=Path.home() / ".listening_player" / "local_storage.json")

    model_config = SettingsConfigDict(
        env_prefix="PLAYER_",
        env_file=Path(BASE_DIR / ".env"),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("proxy_base_url", "api_base_url", mode="after")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Base URLs are joined with paths that start with '/'."""
        return v.rstrip("/")


# Singleton settings instance (cached for performance)
_settings_instance: Settings | None = None


def get_settings() -> Settings:
    """Get singleton Settings instance for dependency injection.

    Creates the instance once to avoid re-reading .env file on every request.

    Example:
        @app.get("/")
        async def route(settings: Settings = Depends(get_settings)):
            return {"host": settings.api_host}
    """
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = Settings()
    return _settings_instance
