"""Listening Player models"""

from listening_player.models.base_models import DetailedHealthResponse, HealthResponse
from listening_player.models.spotify import (
    Album,
    Artist,
    Device,
    PlaybackState,
    PlayRequest,
    Playlist,
    SpotifyImage,
    Track,
)

__all__ = [
    "Album",
    "Artist",
    "DetailedHealthResponse",
    "Device",
    "HealthResponse",
    "PlayRequest",
    "PlaybackState",
    "Playlist",
    "SpotifyImage",
    "Track",
]
