#!/usr/bin/env python
"""
Pydantic models for everything the playback engine caches and routes.

Tracks, playlists and action buttons share the `PlaylistItem` union so a
playlist tree can mix them; devices and the cloud user are reported by the
backends and never persisted.
"""

from __future__ import annotations

from enum import Enum
from typing import List, Literal, Optional, Union

from pydantic import BaseModel, Field


LIKED_SONGS_PLAYLIST_ID = "Liked Songs"
LIKED_SONGS_PLAYLIST_NAME = "Liked Songs"


class BackendKind(str, Enum):
    CLOUD_WEB = "CloudWeb"
    CLOUD_DESKTOP = "CloudDesktop"
    LOCAL_DESKTOP = "LocalDesktop"

    @property
    def is_cloud(self) -> bool:
        return self is not BackendKind.LOCAL_DESKTOP


class TrackStatus(str, Enum):
    PLAYING = "Playing"
    PAUSED = "Paused"
    NOT_ASSIGNED = "NotAssigned"


class DeviceType(str, Enum):
    COMPUTER = "Computer"
    SMARTPHONE = "Smartphone"
    OTHER = "Other"

    @classmethod
    def parse(cls, value: Optional[str]) -> "DeviceType":
        text = (value or "").strip().lower()
        for member in cls:
            if member.value.lower() == text:
                return member
        return cls.OTHER


class Track(BaseModel):
    """A track as reported by a backend; only `status` and `playlist_id` change after fetch."""

    item_type: Literal["track"] = "track"
    id: str
    uri: Optional[str] = None
    name: str = ""
    artist: Optional[str] = None
    popularity: Optional[int] = None
    backend: BackendKind = BackendKind.CLOUD_WEB
    status: TrackStatus = TrackStatus.NOT_ASSIGNED
    # "recommendation" tracks are played as part of the recommendation list
    kind: Literal["track", "recommendation"] = "track"
    position: int = Field(default=0, ge=0)
    playlist_id: Optional[str] = None
    duration_ms: int = Field(default=0, ge=0)
    progress_ms: int = Field(default=0, ge=0)

    @property
    def tooltip(self) -> str:
        text = self.name
        if self.artist:
            text += f" - {self.artist}"
        if self.popularity:
            text += f" (Popularity: {self.popularity})"
        return text

    @property
    def is_playing(self) -> bool:
        return self.status is TrackStatus.PLAYING


class Playlist(BaseModel):
    item_type: Literal["playlist"] = "playlist"
    id: str
    name: str = ""
    backend: BackendKind = BackendKind.CLOUD_WEB
    tag: Optional[str] = None
    loved: bool = False
    track_count: int = Field(default=0, ge=0)
    # well-known generated playlist type (1 = personal weekly top songs)
    type_id: Optional[int] = None

    @property
    def is_liked_songs(self) -> bool:
        return self.id == LIKED_SONGS_PLAYLIST_ID


class ActionButton(BaseModel):
    item_type: Literal["action"] = "action"
    id: str
    name: str
    tooltip: Optional[str] = None
    command: Optional[str] = None
    kind: Literal["action", "divider"] = "action"


PlaylistItem = Union[Playlist, Track, ActionButton]


class Device(BaseModel):
    id: str
    name: str = ""
    type: DeviceType = DeviceType.OTHER
    is_active: bool = False

    @property
    def is_web_player(self) -> bool:
        return "web player" in self.name.lower()

    @property
    def is_desktop_player(self) -> bool:
        return self.type is DeviceType.COMPUTER and not self.is_web_player


class DeviceSet(BaseModel):
    """Summary of a device list used by the launch and routing decisions."""

    web_player: Optional[Device] = None
    desktop: Optional[Device] = None
    active_device: Optional[Device] = None
    active_computer_device: Optional[Device] = None
    active_web_player_device: Optional[Device] = None
    active_desktop_player_device: Optional[Device] = None

    @classmethod
    def from_devices(cls, devices: List[Device]) -> "DeviceSet":
        summary = cls()
        for device in devices:
            if device.is_web_player and summary.web_player is None:
                summary.web_player = device
            if device.is_desktop_player and summary.desktop is None:
                summary.desktop = device
            if not device.is_active:
                continue
            if summary.active_device is None:
                summary.active_device = device
            if device.type is DeviceType.COMPUTER and summary.active_computer_device is None:
                summary.active_computer_device = device
            if device.is_web_player and summary.active_web_player_device is None:
                summary.active_web_player_device = device
            if device.is_desktop_player and summary.active_desktop_player_device is None:
                summary.active_desktop_player_device = device
        return summary

    @property
    def has_desktop(self) -> bool:
        return bool(self.desktop or self.active_desktop_player_device)

    @property
    def has_desktop_or_web(self) -> bool:
        return self.has_desktop or bool(self.web_player or self.active_web_player_device)


class CloudUser(BaseModel):
    id: Optional[str] = None
    email: Optional[str] = None
    product: Optional[str] = None

    @property
    def is_premium(self) -> bool:
        return self.product == "premium"


__all__ = [
    "LIKED_SONGS_PLAYLIST_ID",
    "LIKED_SONGS_PLAYLIST_NAME",
    "BackendKind",
    "TrackStatus",
    "DeviceType",
    "Track",
    "Playlist",
    "ActionButton",
    "PlaylistItem",
    "Device",
    "DeviceSet",
    "CloudUser",
]
