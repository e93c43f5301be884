"""Cloud desktop backend: the vendor's desktop app driven through AppleScript."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from playdeck.domain.playback.backends import CommandResult, id_from_uri, playlist_uri, track_uri
from playdeck.models import BackendKind, Track, TrackStatus

from .applescript import FIELD_SEPARATOR, ScriptedBackend, escape, split_fields

logger = logging.getLogger(__name__)

CURRENT_TRACK_SCRIPT = f'''
if application "Spotify" is not running then
    return "STOPPED"
end if
tell application "Spotify"
    if player state is stopped then
        return "STOPPED"
    end if
    set t to current track
    return (id of t) & "{FIELD_SEPARATOR}" & (name of t) & "{FIELD_SEPARATOR}" & (artist of t) ¬
        & "{FIELD_SEPARATOR}" & (player state as string) & "{FIELD_SEPARATOR}" & (duration of t) ¬
        & "{FIELD_SEPARATOR}" & (player position as string)
end tell'''


def parse_current_track(output: Optional[str]) -> Optional[Track]:
    """Parse the current-track script output; duration is in ms, position in seconds."""
    if not output or output == "STOPPED":
        return None
    fields = split_fields(output)
    if len(fields) < 6 or not fields[0]:
        logger.debug("Unexpected desktop track output: %r", output)
        return None
    track_id, name, artist, state, duration, position = fields[:6]
    try:
        duration_ms = int(float(duration))
        progress_ms = int(float(position.replace(",", ".")) * 1000)
    except ValueError:
        duration_ms, progress_ms = 0, 0
    return Track(
        id=id_from_uri(track_id),
        uri=track_id,
        name=name,
        artist=artist or None,
        backend=BackendKind.CLOUD_DESKTOP,
        status=TrackStatus.PLAYING if state == "playing" else TrackStatus.PAUSED,
        duration_ms=max(0, duration_ms),
        progress_ms=max(0, progress_ms),
    )


class CloudDesktopBackend(ScriptedBackend):
    kind = BackendKind.CLOUD_DESKTOP
    app_name = "Spotify"

    async def fetch_running_track(self) -> Optional[Track]:
        output = await self._query("current track", CURRENT_TRACK_SCRIPT)
        return parse_current_track(output)

    async def play_track(self, track_id: str, device_id: Optional[str] = None) -> CommandResult:
        uri = escape(track_uri(track_id))
        return await self._script("play track", self.tell(f'play track "{uri}"'))

    async def play_playlist(
        self,
        playlist_id: str,
        track_id: Optional[str] = None,
        device_id: Optional[str] = None,
    ) -> CommandResult:
        context = escape(playlist_uri(playlist_id))
        if not track_id:
            return await self._script("play playlist", self.tell(f'play track "{context}"'))
        uri = escape(track_uri(track_id))
        return await self._script("play playlist", self.tell(f'play track "{uri}" in context "{context}"'))

    def launch_args(self, options: Dict[str, Any]) -> List[str]:
        if options.get("track_id"):
            return [track_uri(options["track_id"])]
        if options.get("playlist_id"):
            return [playlist_uri(options["playlist_id"])]
        return []


__all__ = ["CloudDesktopBackend", "parse_current_track", "CURRENT_TRACK_SCRIPT"]
