"""Engine data models."""

from .dto import (
    LIKED_SONGS_PLAYLIST_ID,
    LIKED_SONGS_PLAYLIST_NAME,
    ActionButton,
    BackendKind,
    CloudUser,
    Device,
    DeviceSet,
    DeviceType,
    Playlist,
    PlaylistItem,
    Track,
    TrackStatus,
)

__all__ = [
    "LIKED_SONGS_PLAYLIST_ID",
    "LIKED_SONGS_PLAYLIST_NAME",
    "ActionButton",
    "BackendKind",
    "CloudUser",
    "Device",
    "DeviceSet",
    "DeviceType",
    "Playlist",
    "PlaylistItem",
    "Track",
    "TrackStatus",
]
