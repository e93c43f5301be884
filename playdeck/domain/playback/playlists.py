#!/usr/bin/env python
"""
Builds the playlist tree shown for the active backend.

The tree mixes action buttons, generated playlists, the liked-songs folder and
the user's own playlists in a fixed order. Raw playlists and liked songs are
fetched once and reused until the caches are cleared; a failed sub-fetch only
drops its section. `refresh()` is guarded so overlapping calls collapse into
one fetch sequence.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Awaitable, Dict, List, Optional, TypeVar

from playdeck.core.events import PLAYLISTS_CHANGED, Notifier
from playdeck.core.runner import BackgroundTasks
from playdeck.core.state import SharedStateStore
from playdeck.models import (
    LIKED_SONGS_PLAYLIST_ID,
    BackendKind,
    Playlist,
    PlaylistItem,
    Track,
    TrackStatus,
)
from playdeck.observability.metrics import observe_playlist_build

from .backends import PlaybackBackend
from .items import PERSONAL_TOP_SONGS_TYPE_ID, RECOMMENDATIONS_PLAYLIST_ID, ProviderItems
from .recommendations import RecommendationSeeds

logger = logging.getLogger(__name__)

T = TypeVar("T")

CLOUD_TAG = "spotify"
LOCAL_TAG = "itunes"
CURATED_TAG = "paw"


class PlaylistCacheBuilder:
    def __init__(
        self,
        state: SharedStateStore,
        backends: Dict[BackendKind, PlaybackBackend],
        notifier: Notifier,
        *,
        items: Optional[ProviderItems] = None,
        app_service: Any = None,
        background: Optional[BackgroundTasks] = None,
        is_mac: bool = False,
        show_local_launch_button: bool = True,
        curated_playlist_id: Optional[str] = None,
    ) -> None:
        self.state = state
        self.backends = backends
        self.notifier = notifier
        self.items = items or ProviderItems()
        self.app_service = app_service
        self.background = background if background is not None else BackgroundTasks()
        self.is_mac = is_mac
        self.show_local_launch_button = show_local_launch_button
        self.curated_playlist_id = curated_playlist_id
        self.seeds = RecommendationSeeds(self.get_playlist_tracks)
        self._seeding = False

    # --- helpers -----------------------------------------------------------

    @property
    def cloud(self) -> PlaybackBackend:
        return self.backends[BackendKind.CLOUD_WEB]

    @property
    def local(self) -> Optional[PlaybackBackend]:
        return self.backends.get(BackendKind.LOCAL_DESKTOP)

    def _library_backend(self) -> Optional[PlaybackBackend]:
        if self.state.active_backend is BackendKind.LOCAL_DESKTOP:
            return self.local
        return self.cloud

    async def _safe(self, what: str, call: Awaitable[T], default: T) -> T:
        try:
            result = await call
        except Exception as exc:
            logger.warning("Failed to fetch %s: %s", what, exc, exc_info=True)
            return default
        return default if result is None else result

    # --- tree --------------------------------------------------------------

    async def refresh(self, clear: bool = False) -> bool:
        """Rebuild the tree; returns False when a build is already running."""
        if self.state.building_playlists:
            logger.debug("Playlist build already in progress; skipping refresh")
            return False
        self.state.building_playlists = True
        started = time.perf_counter()
        try:
            if clear:
                self.state.clear_caches()
            items = await self._build()
            self.state.set_items(items)
        finally:
            self.state.building_playlists = False
            observe_playlist_build(time.perf_counter() - started)
        self.state.ready = True
        self.notifier.notify(PLAYLISTS_CHANGED)
        return True

    async def _build(self) -> List[PlaylistItem]:
        state = self.state
        is_local = state.active_backend is BackendKind.LOCAL_DESKTOP
        connected = state.connected

        if connected and not state.has_cloud_user:
            user = await self._safe("cloud user", self.cloud.fetch_user(), None)
            if user is not None:
                state.set_cloud_user(user)

        playlists = await self.load_raw_playlists()

        if connected and not is_local:
            if not state.liked_songs:
                state.liked_songs = await self._safe("liked songs", self.cloud.fetch_liked_songs(), [])
                state.clear_playlist_tracks(LIKED_SONGS_PLAYLIST_ID)
            devices = await self._safe("devices", self.cloud.fetch_devices(), [])
            state.set_devices(devices, notify=False)

        if state.sort_alphabetically:
            playlists.sort(key=lambda playlist: (playlist.name or "").lower())

        tag = LOCAL_TAG if is_local else CLOUD_TAG
        for playlist in playlists:
            playlist.tag = tag
            state.register_playlist(playlist)

        if is_local:
            return self._local_tree(playlists)
        return await self._cloud_tree(playlists)

    def _local_tree(self, playlists: List[Playlist]) -> List[PlaylistItem]:
        items: List[PlaylistItem] = [self.items.readme(), self.items.switch_to_cloud()]
        if playlists:
            items.append(self.items.line_break())
        items.extend(playlists)
        return items

    async def _cloud_tree(self, playlists: List[Playlist]) -> List[PlaylistItem]:
        state = self.state
        connected = state.connected
        items: List[PlaylistItem] = []

        if connected and not state.is_premium:
            items.append(self.items.premium_required())
        if not connected:
            items.append(self.items.connect())
        else:
            items.append(self.items.dashboard())
            items.append(self.items.web_analytics())
        items.append(self.items.readme())

        if connected:
            switch_button = self.items.switch_to_this_device(state.devices)
            if switch_button is not None:
                items.append(switch_button)
            items.append(self.items.active_devices(state.devices))

        if self.is_mac and self.show_local_launch_button:
            items.append(self.items.switch_to_local())

        if not (connected or playlists):
            return items

        items.append(self.items.line_break())

        generated_ids = set()
        generated = await self._generated_section(playlists)
        for entry in generated:
            items.append(entry)
            if isinstance(entry, Playlist):
                generated_ids.add(entry.id)

        curated = await self._curated_playlist(playlists)
        if curated is not None:
            items.append(curated)

        if state.ai_playlist is not None:
            items.append(state.ai_playlist)

        liked_folder = self.items.liked_songs_folder()
        state.register_playlist(liked_folder)
        items.append(liked_folder)

        if not state.seed_track_ids:
            self.schedule_seeds(playlists)

        if playlists:
            items.append(self.items.line_break())

        for playlist in playlists:
            if curated is not None and playlist.id == curated.id:
                # following the curated list shows it once, marked as loved
                curated.loved = True
                continue
            if playlist.id in generated_ids:
                continue
            items.append(playlist)
        return items

    async def _generated_section(self, playlists: List[Playlist]) -> List[PlaylistItem]:
        state = self.state
        if not state.generated_playlists and state.connected and self.app_service is not None:
            saved = await self._safe("generated playlists", self.app_service.fetch_generated_playlists(), [])
            by_id = {playlist.id: playlist for playlist in playlists}
            for entry in saved:
                if not isinstance(entry, dict):
                    logger.warning("Skipping malformed generated playlist entry: %r", entry)
                    continue
                playlist = by_id.get(entry.get("playlist_id"))
                type_id = entry.get("playlistTypeId")
                if playlist is None or type_id is None:
                    continue
                try:
                    state.set_generated_playlist(int(type_id), playlist)
                except (TypeError, ValueError):
                    logger.warning("Skipping generated playlist %s with type id %r", playlist.id, type_id)

        section: List[PlaylistItem] = []
        weekly = state.generated_playlist(PERSONAL_TOP_SONGS_TYPE_ID)
        if weekly is not None:
            section.append(weekly)
        elif state.connected:
            section.append(self.items.generate_weekly_top())
        for type_id, playlist in sorted(state.generated_playlists.items()):
            if type_id != PERSONAL_TOP_SONGS_TYPE_ID:
                section.append(playlist)
        return section

    async def _curated_playlist(self, playlists: List[Playlist]) -> Optional[Playlist]:
        if not self.curated_playlist_id:
            return None
        curated = next((p for p in playlists if p.id == self.curated_playlist_id), None)
        if curated is None:
            curated = await self._safe("curated playlist", self.cloud.fetch_playlist(self.curated_playlist_id), None)
        if curated is None or not curated.id:
            return None
        curated.loved = False
        curated.tag = CURATED_TAG
        self.state.register_playlist(curated)
        return curated

    async def load_raw_playlists(self, force: bool = False) -> List[Playlist]:
        """Fetch the backend's own playlists once per session."""
        state = self.state
        if state.raw_playlists and not force:
            return list(state.raw_playlists)
        backend = self._library_backend()
        if backend is None:
            return []
        if state.active_backend.is_cloud and not state.connected:
            return []
        playlists = await self._safe("playlists", backend.fetch_playlists(), [])
        state.raw_playlists = list(playlists)
        return list(playlists)

    # --- recommendation seeds ---------------------------------------------

    def schedule_seeds(self, playlists: List[Playlist]) -> None:
        if self._seeding:
            return
        self._seeding = True
        self.background.spawn(self.build_seeds(list(playlists)), name="recommendation-seeds")

    async def build_seeds(self, playlists: List[Playlist]) -> List[str]:
        state = self.state
        try:
            seeds = await self.seeds.build(state.liked_songs, playlists)
            state.seed_track_ids = seeds
            if seeds:
                tracks = await self._safe(
                    "recommendations",
                    self.cloud.fetch_recommendations(RecommendationSeeds.request_seeds(seeds)),
                    [],
                )
                state.recommendation_tracks = [track.model_copy(update={"kind": "recommendation"}) for track in tracks]
                state.clear_playlist_tracks(RECOMMENDATIONS_PLAYLIST_ID)
                state.register_playlist(self.items.recommendations_folder())
            return seeds
        finally:
            self._seeding = False

    # --- tracks ------------------------------------------------------------

    async def get_playlist_tracks(self, playlist_id: str) -> List[Track]:
        """Tracks of one playlist, cached per id, statuses recomputed on every call."""
        state = self.state
        tracks = state.playlist_track_map.get(playlist_id)
        if tracks is None:
            if playlist_id == LIKED_SONGS_PLAYLIST_ID and state.active_backend.is_cloud:
                # copies so back-references do not leak into the liked-songs cache
                tracks = [track.model_copy() for track in state.liked_songs]
            elif playlist_id == RECOMMENDATIONS_PLAYLIST_ID:
                tracks = [track.model_copy() for track in state.recommendation_tracks]
            else:
                backend = self._library_backend()
                tracks = []
                if backend is not None:
                    tracks = await self._safe(
                        f"tracks for {playlist_id}", backend.fetch_playlist_tracks(playlist_id), []
                    )
            for index, track in enumerate(tracks, start=1):
                track.position = index
            state.playlist_track_map[playlist_id] = tracks

        for track in tracks:
            track.playlist_id = playlist_id
            track.status = state.status_for(track.id)
        return tracks

    async def get_playlist_state(self, playlist_id: str) -> TrackStatus:
        running_id = self.state.running_track.id
        for track in await self.get_playlist_tracks(playlist_id):
            if running_id and track.id == running_id:
                return self.state.running_track.status
        return TrackStatus.NOT_ASSIGNED

    def clear_playlist_tracks(self, playlist_id: str) -> None:
        self.state.clear_playlist_tracks(playlist_id)

    def recompute_statuses(self) -> None:
        state = self.state
        for tracks in state.playlist_track_map.values():
            for track in tracks:
                track.status = state.status_for(track.id)

    def current_items(self) -> List[PlaylistItem]:
        items = self.state.current_items()
        for item in items:
            if isinstance(item, Playlist):
                self.state.register_playlist(item)
        return list(items)


__all__ = ["PlaylistCacheBuilder", "CLOUD_TAG", "LOCAL_TAG", "CURATED_TAG"]
