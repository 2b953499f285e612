"""Session state and the records the controller keeps in sync."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field

from listening_player.models import PlaybackState, Track

CONTEXT_URI_TYPES = ("playlist", "album", "artist", "show")


class ConnectionState(str, Enum):
    UNINITIALIZED = "uninitialized"
    CONNECTING_SDK = "connecting_sdk"
    AWAITING_DEVICE = "awaiting_device"
    READY = "ready"
    RECONNECTING = "reconnecting"
    FAILED = "failed"


@dataclass
class Session:
    """The one playback session a controller owns.

    ``device_id`` may hold a cached id that is not yet confirmed; only
    ``connection_state == READY`` means it was confirmed.
    """

    token: str | None = None
    device_id: str | None = None
    connection_state: ConnectionState = ConnectionState.UNINITIALIZED


class CommandKind(str, Enum):
    PLAY_TRACK = "play_track"
    PLAY_PLAYLIST = "play_playlist"


class PlaybackCommand(BaseModel):
    kind: CommandKind
    uri: str
    device_id: str

    @classmethod
    def for_uri(cls, uri: str, device_id: str) -> "PlaybackCommand":
        """Pick the command from the URI type (``spotify:<type>:<id>``).

        Legacy ``spotify:user:<user>:playlist:<id>`` URIs carry the type
        second to last.
        """
        parts = uri.split(":")
        uri_type = parts[-2] if len(parts) >= 3 else ""
        kind = CommandKind.PLAY_PLAYLIST if uri_type in CONTEXT_URI_TYPES else CommandKind.PLAY_TRACK
        return cls(kind=kind, uri=uri, device_id=device_id)

    @property
    def endpoint(self) -> str:
        return "/play_playlist" if self.kind is CommandKind.PLAY_PLAYLIST else "/play_track"

    def payload(self) -> dict[str, str]:
        return {"uri": self.uri, "device_id": self.device_id}


class NowPlaying(BaseModel):
    """What is currently playing, from whichever source reported last."""

    track_name: str
    artist_names: list[str] = Field(default_factory=list)
    album_name: str | None = None
    album_image_url: str | None = None
    duration_ms: int = 0
    position_ms: int = 0
    paused: bool = True
    track_id: str | None = None
    track_uri: str | None = None
    source: Literal["sdk", "poll"] = "sdk"

    @classmethod
    def from_track(cls, track: Track, *, position_ms: int, paused: bool, source: Literal["sdk", "poll"]) -> "NowPlaying":
        return cls(
            track_name=track.name,
            artist_names=track.artist_names,
            album_name=track.album.name if track.album else None,
            album_image_url=track.album.image_url if track.album else None,
            duration_ms=track.duration_ms,
            position_ms=position_ms,
            paused=paused,
            track_id=track.id,
            track_uri=track.uri,
            source=source,
        )

    @classmethod
    def from_playback(cls, playback: PlaybackState) -> "NowPlaying | None":
        """Build from the current-playback poll; None when no item is playing."""
        if playback.item is None:
            return None
        return cls.from_track(
            playback.item,
            position_ms=playback.progress_ms or 0,
            paused=not playback.is_playing,
            source="poll",
        )

    @property
    def status_text(self) -> str:
        artist = self.artist_names[0] if self.artist_names else "Unknown artist"
        return f"{'Paused:' if self.paused else 'Playing:'} {self.track_name} by {artist}"

    def event_detail(self) -> dict[str, Any]:
        """Payload of ``spotify:trackChanged``."""
        return {
            "name": self.track_name,
            "artists": ", ".join(self.artist_names),
            "albumName": self.album_name,
            "albumImage": self.album_image_url,
            "duration": self.duration_ms,
            "isPlaying": not self.paused,
        }


class TrackWindow(BaseModel):
    """Tracks around the current one, as reported by the SDK.

    ``tracks`` runs most recently played first, then the current track,
    then upcoming tracks.
    """

    tracks: list[Track] = Field(default_factory=list)
    current_index: int | None = None

    @property
    def current(self) -> Track | None:
        if self.current_index is None:
            return None
        return self.tracks[self.current_index]

    @classmethod
    def from_sdk(cls, window: dict[str, Any]) -> "TrackWindow":
        previous = [Track.model_validate(t) for t in window.get("previous_tracks") or []]
        upcoming = [Track.model_validate(t) for t in window.get("next_tracks") or []]
        current_data = window.get("current_track")

        tracks = list(reversed(previous))
        current_index = None
        if current_data:
            current_index = len(tracks)
            tracks.append(Track.model_validate(current_data))
        tracks.extend(upcoming)
        return cls(tracks=tracks, current_index=current_index)
