"""Pydantic models for Spotify Web API payloads.

Only the fields the player uses are declared; everything else in the
upstream JSON is ignored.
"""

from pydantic import BaseModel, ConfigDict, Field


class SpotifyModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


class SpotifyImage(SpotifyModel):
    url: str
    height: int | None = None
    width: int | None = None


class Artist(SpotifyModel):
    name: str
    id: str | None = None
    uri: str | None = None


class Album(SpotifyModel):
    name: str | None = None
    uri: str | None = None
    images: list[SpotifyImage] = Field(default_factory=list)

    @property
    def image_url(self) -> str | None:
        """Largest image; Spotify lists album art widest first."""
        return self.images[0].url if self.images else None

    @property
    def thumbnail_url(self) -> str | None:
        """Smallest image, used in track lists."""
        return self.images[-1].url if self.images else None


class Track(SpotifyModel):
    name: str
    uri: str
    id: str | None = None
    duration_ms: int = 0
    artists: list[Artist] = Field(default_factory=list)
    album: Album | None = None

    @property
    def artist_names(self) -> list[str]:
        return [artist.name for artist in self.artists]

    @property
    def primary_artist(self) -> str | None:
        return self.artists[0].name if self.artists else None

    @property
    def duration_display(self) -> str:
        """Duration as m:ss."""
        total_seconds = self.duration_ms // 1000
        minutes, seconds = divmod(total_seconds, 60)
        return f"{minutes}:{seconds:02d}"


class Device(SpotifyModel):
    id: str | None = None
    name: str
    type: str | None = None
    is_active: bool = False
    volume_percent: int | None = None


class Playlist(SpotifyModel):
    id: str
    name: str
    uri: str
    images: list[SpotifyImage] | None = None  # null for playlists without a cover

    @property
    def image_url(self) -> str | None:
        return self.images[0].url if self.images else None


class PlaybackState(SpotifyModel):
    """Response of GET /me/player."""

    is_playing: bool = False
    progress_ms: int | None = None
    item: Track | None = None
    device: Device | None = None


class PlayRequest(BaseModel):
    """Body of POST /play_track and /play_playlist."""

    uri: str | None = None
    device_id: str | None = None
