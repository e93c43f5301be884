"""Keeps the running track in step with what the backend reports."""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, Optional

from playdeck.core.events import SELECTION_CHANGED, Notifier
from playdeck.core.runner import BackgroundTasks
from playdeck.core.state import SharedStateStore
from playdeck.models import BackendKind, Track

from .backends import PlaybackBackend
from .playlists import PlaylistCacheBuilder

logger = logging.getLogger(__name__)

# margin after the expected end before asking the backend again
TRACK_END_GRACE_SECONDS = 1.0


class PlaybackStateReconciler:
    def __init__(
        self,
        state: SharedStateStore,
        backends: Dict[BackendKind, PlaybackBackend],
        notifier: Notifier,
        playlists: PlaylistCacheBuilder,
        *,
        is_mac: bool = False,
        track_end_interval: float = 5.0,
        end_grace: float = TRACK_END_GRACE_SECONDS,
        background: Optional[BackgroundTasks] = None,
    ) -> None:
        self.state = state
        self.backends = backends
        self.notifier = notifier
        self.playlists = playlists
        self.is_mac = is_mac
        self.track_end_interval = track_end_interval
        self.end_grace = end_grace
        self.background = background if background is not None else BackgroundTasks()
        self._end_check_pending = False

    def source(self) -> Optional[PlaybackBackend]:
        """The backend asked for the currently playing track."""
        active = self.state.active_backend
        if active is BackendKind.LOCAL_DESKTOP:
            return self.backends.get(BackendKind.LOCAL_DESKTOP)
        if self.state.connected:
            return self.backends.get(BackendKind.CLOUD_WEB)
        if self.is_mac:
            return self.backends.get(BackendKind.CLOUD_DESKTOP)
        return None

    async def gather_music_info(self) -> Track:
        backend = self.source()
        if backend is None:
            return self.state.running_track
        try:
            track = await backend.fetch_running_track()
        except Exception as exc:
            logger.warning("Unable to fetch the running track: %s", exc, exc_info=True)
            return self.state.running_track

        changed = self.state.set_running_track(track)
        self.playlists.recompute_statuses()
        if changed:
            running = self.state.running_track
            logger.debug("Running track is now %r (%s)", running.id, running.status.value)
            self.notifier.notify(SELECTION_CHANGED)
        return self.state.running_track

    async def track_end_check(self) -> bool:
        """Schedule a gather shortly after the running track should end."""
        running = self.state.running_track
        if self._end_check_pending or not running.id or not running.is_playing or not running.duration_ms:
            return False
        remaining_ms = running.duration_ms - running.progress_ms
        if remaining_ms > self.track_end_interval * 1000:
            return False

        delay = max(0.0, remaining_ms / 1000.0) + self.end_grace
        self._end_check_pending = True

        async def _after_end() -> None:
            try:
                await asyncio.sleep(delay)
                await self.gather_music_info()
            finally:
                self._end_check_pending = False

        self.background.spawn(_after_end(), name="track-end")
        return True


__all__ = ["PlaybackStateReconciler", "TRACK_END_GRACE_SECONDS"]
