#!/usr/bin/env python
"""
Canonical in-memory playback state.

One store is created by the composition root and handed to every engine
component. Writes are last-writer-wins and go through the setter methods so
the selection invariant (a selected track always has its playlist selected)
is enforced in one place. The store performs no I/O and no locking.
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, List, Optional

from playdeck.models import (
    ActionButton,
    BackendKind,
    CloudUser,
    Device,
    DeviceSet,
    Playlist,
    PlaylistItem,
    Track,
    TrackStatus,
)

from .events import DEVICES_CHANGED, SELECTION_CHANGED

logger = logging.getLogger(__name__)

StateListener = Callable[[str], None]


class SharedStateStore:
    def __init__(
        self,
        active_backend: BackendKind = BackendKind.CLOUD_WEB,
        listener: Optional[StateListener] = None,
    ) -> None:
        self._listener = listener
        self._active_backend = active_backend

        # selection
        self._selected_playlist: Optional[Playlist] = None
        self._selected_track: Optional[Track] = None
        self._running_track: Track = Track(id="")

        # account / devices
        self._cloud_user: Optional[CloudUser] = None
        self._connected = False
        self._devices: List[Device] = []

        # caches
        self.playlist_map: Dict[str, Playlist] = {}
        self.playlist_track_map: Dict[str, List[Track]] = {}
        self.raw_playlists: List[Playlist] = []
        self.liked_songs: List[Track] = []
        self.recommendation_tracks: List[Track] = []
        self.seed_track_ids: List[str] = []
        self.user_top_songs: List[dict] = []
        self.generated_playlists: Dict[int, Playlist] = {}
        self.ai_playlist: Optional[Playlist] = None
        self.cloud_items: List[PlaylistItem] = []
        self.local_items: List[PlaylistItem] = []

        # flags
        self.building_playlists = False
        self.building_custom_playlist = False
        self.ready = False
        self.sort_alphabetically = False

    def set_listener(self, listener: Optional[StateListener]) -> None:
        self._listener = listener

    def _emit(self, name: str) -> None:
        if self._listener is None:
            return
        try:
            self._listener(name)
        except Exception as exc:
            logger.warning("State listener failed for %s: %s", name, exc, exc_info=True)

    # --- backend / account -------------------------------------------------

    @property
    def active_backend(self) -> BackendKind:
        return self._active_backend

    def switch_backend(self, kind: BackendKind) -> bool:
        """Activate another backend; caches are dropped only on an actual change."""
        if kind is self._active_backend:
            return False
        logger.info("Switching active backend %s -> %s", self._active_backend.value, kind.value)
        self._active_backend = kind
        self.clear_caches()
        self._selected_playlist = None
        self._selected_track = None
        self._emit(SELECTION_CHANGED)
        return True

    @property
    def cloud_user(self) -> Optional[CloudUser]:
        return self._cloud_user

    def set_cloud_user(self, user: Optional[CloudUser]) -> None:
        self._cloud_user = user

    @property
    def has_cloud_user(self) -> bool:
        return bool(self._cloud_user and self._cloud_user.product)

    @property
    def is_premium(self) -> bool:
        return bool(self._cloud_user and self._cloud_user.is_premium)

    @property
    def connected(self) -> bool:
        return self._connected

    def set_connected(self, connected: bool) -> None:
        self._connected = connected
        if not connected:
            self._cloud_user = None

    # --- selection ---------------------------------------------------------

    @property
    def selected_playlist(self) -> Optional[Playlist]:
        return self._selected_playlist

    @property
    def selected_track(self) -> Optional[Track]:
        return self._selected_track

    def select_playlist(self, playlist: Optional[Playlist]) -> None:
        self._selected_playlist = playlist
        track = self._selected_track
        if track is not None and (playlist is None or track.playlist_id not in (None, playlist.id)):
            self._selected_track = None
        self._emit(SELECTION_CHANGED)

    def select_track(self, track: Track, playlist: Optional[Playlist]) -> None:
        """Select a track together with its owning playlist."""
        if playlist is None:
            raise ValueError(f"track {track.id!r} cannot be selected without a playlist")
        self._selected_playlist = playlist
        self._selected_track = track
        self._emit(SELECTION_CHANGED)

    def clear_selection(self) -> None:
        self._selected_playlist = None
        self._selected_track = None
        self._emit(SELECTION_CHANGED)

    @property
    def selection_is_liked_songs(self) -> bool:
        return bool(self._selected_playlist and self._selected_playlist.is_liked_songs)

    # --- running track -----------------------------------------------------

    @property
    def running_track(self) -> Track:
        return self._running_track

    def set_running_track(self, track: Optional[Track]) -> bool:
        """Replace the running track; returns True when id or status changed."""
        new_track = track or Track(id="")
        changed = (
            new_track.id != self._running_track.id
            or new_track.status is not self._running_track.status
        )
        self._running_track = new_track
        return changed

    def status_for(self, track_id: str) -> TrackStatus:
        if track_id and track_id == self._running_track.id:
            return self._running_track.status
        return TrackStatus.NOT_ASSIGNED

    # --- devices -----------------------------------------------------------

    @property
    def devices(self) -> List[Device]:
        return list(self._devices)

    def set_devices(self, devices: List[Device], notify: bool = True) -> None:
        self._devices = list(devices)
        if notify:
            self._emit(DEVICES_CHANGED)

    def device_set(self) -> DeviceSet:
        return DeviceSet.from_devices(self._devices)

    # --- caches ------------------------------------------------------------

    def get_playlist(self, playlist_id: Optional[str]) -> Optional[Playlist]:
        if not playlist_id:
            return None
        return self.playlist_map.get(playlist_id)

    def find_track(self, track_id: Optional[str]) -> Optional[Track]:
        """Look a track up in the running track, then the liked, recommended and cached lists."""
        if not track_id:
            return None
        if self._running_track.id == track_id:
            return self._running_track
        if self._selected_track is not None and self._selected_track.id == track_id:
            return self._selected_track
        for tracks in (self.liked_songs, self.recommendation_tracks, *self.playlist_track_map.values()):
            for track in tracks:
                if track.id == track_id:
                    return track
        return None

    def register_playlist(self, playlist: Playlist) -> None:
        self.playlist_map[playlist.id] = playlist

    def generated_playlist(self, type_id: int) -> Optional[Playlist]:
        return self.generated_playlists.get(type_id)

    def set_generated_playlist(self, type_id: int, playlist: Playlist) -> None:
        playlist.type_id = type_id
        self.generated_playlists[type_id] = playlist

    def current_items(self) -> List[PlaylistItem]:
        if self._active_backend is BackendKind.LOCAL_DESKTOP:
            return self.local_items
        return self.cloud_items

    def set_items(self, items: List[PlaylistItem]) -> None:
        if self._active_backend is BackendKind.LOCAL_DESKTOP:
            self.local_items = items
        else:
            self.cloud_items = items

    def action_items(self) -> List[ActionButton]:
        return [item for item in self.current_items() if isinstance(item, ActionButton)]

    def clear_playlist_tracks(self, playlist_id: str) -> None:
        self.playlist_track_map.pop(playlist_id, None)

    def clear_caches(self) -> None:
        """Drop every backend-derived cache; nothing here is time-expired."""
        self.playlist_map.clear()
        self.playlist_track_map.clear()
        self.raw_playlists = []
        self.liked_songs = []
        self.recommendation_tracks = []
        self.seed_track_ids = []
        self.generated_playlists.clear()
        self.ai_playlist = None
        self.cloud_items = []
        self.local_items = []
        self.ready = False


__all__ = ["SharedStateStore", "StateListener"]
