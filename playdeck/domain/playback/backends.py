#!/usr/bin/env python
"""
Backend interface shared by the cloud web, cloud desktop and local desktop
players.

Every operation is a coroutine returning a `CommandResult`; adapters convert
their SDK exceptions into failed results instead of raising, so the
dispatcher can treat all three backends the same way.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from playdeck.models import BackendKind, CloudUser, Device, Playlist, Track


@dataclass
class CommandResult:
    ok: bool
    message: Optional[str] = None
    data: Any = None
    # HTTP-like status code when the backend reports one (401 = access expired)
    status: Optional[int] = None

    @classmethod
    def success(cls, data: Any = None, message: Optional[str] = None) -> "CommandResult":
        return cls(ok=True, data=data, message=message)

    @classmethod
    def failure(cls, message: str, status: Optional[int] = None) -> "CommandResult":
        return cls(ok=False, message=message, status=status)

    @property
    def access_expired(self) -> bool:
        return not self.ok and self.status == 401


def unsupported(kind: BackendKind, operation: str) -> CommandResult:
    return CommandResult.failure(f"{operation} is not supported by the {kind.value} player")


class PlaybackBackend:
    """Typed operation set every backend variant implements."""

    kind: BackendKind = BackendKind.CLOUD_WEB

    # --- library -----------------------------------------------------------

    async def fetch_user(self) -> Optional[CloudUser]:
        return None

    async def fetch_playlists(self) -> List[Playlist]:
        return []

    async def fetch_playlist(self, playlist_id: str) -> Optional[Playlist]:
        return None

    async def fetch_playlist_tracks(self, playlist_id: str) -> List[Track]:
        return []

    async def fetch_liked_songs(self) -> List[Track]:
        return []

    async def fetch_devices(self, force_refresh: bool = False) -> List[Device]:
        return []

    async def fetch_running_track(self) -> Optional[Track]:
        return None

    async def fetch_recommendations(self, seed_track_ids: List[str], limit: int = 50) -> List[Track]:
        return []

    # --- transport ---------------------------------------------------------

    async def play(self, device_id: Optional[str] = None) -> CommandResult:
        return unsupported(self.kind, "play")

    async def pause(self, device_id: Optional[str] = None) -> CommandResult:
        return unsupported(self.kind, "pause")

    async def next(self, device_id: Optional[str] = None) -> CommandResult:
        return unsupported(self.kind, "next")

    async def previous(self, device_id: Optional[str] = None) -> CommandResult:
        return unsupported(self.kind, "previous")

    async def play_track(self, track_id: str, device_id: Optional[str] = None) -> CommandResult:
        return unsupported(self.kind, "play_track")

    async def play_playlist(
        self,
        playlist_id: str,
        track_id: Optional[str] = None,
        device_id: Optional[str] = None,
    ) -> CommandResult:
        return unsupported(self.kind, "play_playlist")

    async def play_tracks(
        self,
        track_ids: List[str],
        offset: int = 0,
        device_id: Optional[str] = None,
    ) -> CommandResult:
        return unsupported(self.kind, "play_tracks")

    async def transfer_playback(self, device_id: str) -> CommandResult:
        return unsupported(self.kind, "transfer_playback")

    # --- library mutations -------------------------------------------------

    async def like(self, track_id: str) -> CommandResult:
        return unsupported(self.kind, "like")

    async def unlike(self, track_id: str) -> CommandResult:
        return unsupported(self.kind, "unlike")

    async def create_playlist(self, name: str) -> CommandResult:
        return unsupported(self.kind, "create_playlist")

    async def replace_tracks(self, playlist_id: str, track_ids: List[str]) -> CommandResult:
        return unsupported(self.kind, "replace_tracks")

    async def add_tracks(self, playlist_id: str, track_ids: List[str]) -> CommandResult:
        return unsupported(self.kind, "add_tracks")

    async def remove_tracks(self, playlist_id: str, track_ids: List[str]) -> CommandResult:
        return unsupported(self.kind, "remove_tracks")

    async def follow_playlist(self, playlist_id: str) -> CommandResult:
        return unsupported(self.kind, "follow_playlist")

    # --- process -----------------------------------------------------------

    async def launch(self, options: Optional[Dict[str, Any]] = None) -> CommandResult:
        """Start the player; failures come back as a result, never raised."""
        return unsupported(self.kind, "launch")


def track_uri(track_id: str) -> str:
    if not track_id or track_id.startswith("spotify:"):
        return track_id
    return f"spotify:track:{track_id}"


def playlist_uri(playlist_id: str) -> str:
    if not playlist_id or playlist_id.startswith("spotify:"):
        return playlist_id
    return f"spotify:playlist:{playlist_id}"


def id_from_uri(value: str) -> str:
    return value.rsplit(":", 1)[-1] if value else value


__all__ = [
    "CommandResult",
    "PlaybackBackend",
    "unsupported",
    "track_uri",
    "playlist_uri",
    "id_from_uri",
]
