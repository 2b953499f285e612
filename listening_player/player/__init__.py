"""Playback session controller and its collaborators."""

from listening_player.player.controller import PlaybackSessionController
from listening_player.player.events import EventBus
from listening_player.player.factory import create_controller
from listening_player.player.state import ConnectionState, NowPlaying, Session, TrackWindow
from listening_player.player.storage import DEVICE_ID_KEY, JsonFileDeviceStore, MemoryDeviceStore

__all__ = [
    "DEVICE_ID_KEY",
    "ConnectionState",
    "EventBus",
    "JsonFileDeviceStore",
    "MemoryDeviceStore",
    "NowPlaying",
    "PlaybackSessionController",
    "Session",
    "TrackWindow",
    "create_controller",
]
