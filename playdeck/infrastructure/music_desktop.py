"""Local desktop backend: the Music (formerly iTunes) library app via AppleScript.

Playlists are addressed by name and tracks by persistent ID, which is what
the app exposes to scripts.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from playdeck.domain.playback.backends import CommandResult
from playdeck.models import BackendKind, Playlist, Track, TrackStatus

from .applescript import FIELD_SEPARATOR, ScriptedBackend, escape, split_fields

logger = logging.getLogger(__name__)

SEP = FIELD_SEPARATOR

PLAYLISTS_SCRIPT = f'''
tell application "Music"
    set out to {{}}
    repeat with p in (get every user playlist whose special kind is none)
        set end of out to (name of p) & "{SEP}" & (count of tracks of p)
    end repeat
    set AppleScript's text item delimiters to linefeed
    return out as text
end tell'''

CURRENT_TRACK_SCRIPT = f'''
if application "Music" is not running then
    return "STOPPED"
end if
tell application "Music"
    if player state is stopped then
        return "STOPPED"
    end if
    set t to current track
    return (persistent ID of t) & "{SEP}" & (name of t) & "{SEP}" & (artist of t) ¬
        & "{SEP}" & (player state as string) & "{SEP}" & (duration of t) ¬
        & "{SEP}" & (player position as string)
end tell'''


def _tracks_script(playlist_name: str) -> str:
    safe = escape(playlist_name)
    return f'''
tell application "Music"
    try
        set targetPlaylist to first user playlist whose name is "{safe}"
    on error
        return "ERROR:Playlist not found"
    end try
    set out to {{}}
    repeat with t in (get every track of targetPlaylist)
        set end of out to (persistent ID of t) & "{SEP}" & (name of t) & "{SEP}" & (artist of t) & "{SEP}" & (duration of t)
    end repeat
    set AppleScript's text item delimiters to linefeed
    return out as text
end tell'''


def _track_ref(track_id: str) -> str:
    return f'(first track of library playlist 1 whose persistent ID is "{escape(track_id)}")'


def _seconds_to_ms(value: str) -> int:
    try:
        return max(0, int(float(value.replace(",", ".")) * 1000))
    except ValueError:
        return 0


def parse_playlists(output: Optional[str]) -> List[Playlist]:
    playlists: List[Playlist] = []
    for line in (output or "").splitlines():
        fields = split_fields(line)
        if not fields or not fields[0]:
            continue
        count = int(fields[1]) if len(fields) > 1 and fields[1].isdigit() else 0
        playlists.append(Playlist(id=fields[0], name=fields[0], backend=BackendKind.LOCAL_DESKTOP, track_count=count))
    return playlists


def parse_tracks(output: Optional[str]) -> List[Track]:
    tracks: List[Track] = []
    for line in (output or "").splitlines():
        fields = split_fields(line)
        if len(fields) < 2 or not fields[0]:
            continue
        tracks.append(
            Track(
                id=fields[0],
                name=fields[1],
                artist=(fields[2] if len(fields) > 2 else "") or None,
                backend=BackendKind.LOCAL_DESKTOP,
                position=len(tracks) + 1,
                duration_ms=_seconds_to_ms(fields[3]) if len(fields) > 3 else 0,
            )
        )
    return tracks


def parse_current_track(output: Optional[str]) -> Optional[Track]:
    if not output or output == "STOPPED":
        return None
    fields = split_fields(output)
    if len(fields) < 6 or not fields[0]:
        logger.debug("Unexpected Music track output: %r", output)
        return None
    track_id, name, artist, state, duration, position = fields[:6]
    return Track(
        id=track_id,
        name=name,
        artist=artist or None,
        backend=BackendKind.LOCAL_DESKTOP,
        status=TrackStatus.PLAYING if state == "playing" else TrackStatus.PAUSED,
        duration_ms=_seconds_to_ms(duration),
        progress_ms=_seconds_to_ms(position),
    )


class LocalDesktopBackend(ScriptedBackend):
    kind = BackendKind.LOCAL_DESKTOP
    app_name = "Music"

    async def fetch_playlists(self) -> List[Playlist]:
        return parse_playlists(await self._query("playlists", PLAYLISTS_SCRIPT))

    async def fetch_playlist_tracks(self, playlist_id: str) -> List[Track]:
        return parse_tracks(await self._query(f"tracks of {playlist_id}", _tracks_script(playlist_id)))

    async def fetch_running_track(self) -> Optional[Track]:
        return parse_current_track(await self._query("current track", CURRENT_TRACK_SCRIPT))

    async def play_track(self, track_id: str, device_id: Optional[str] = None) -> CommandResult:
        return await self._script("play track", self.tell(f"play {_track_ref(track_id)}"))

    async def play_playlist(
        self,
        playlist_id: str,
        track_id: Optional[str] = None,
        device_id: Optional[str] = None,
    ) -> CommandResult:
        playlist = f'user playlist "{escape(playlist_id)}"'
        if track_id:
            target = f'(first track of {playlist} whose persistent ID is "{escape(track_id)}")'
        else:
            target = playlist
        return await self._script("play playlist", self.tell(f"play {target}"))

    async def _set_loved(self, track_id: str, loved: bool) -> CommandResult:
        flag = "true" if loved else "false"
        ref = _track_ref(track_id)
        # newer releases renamed "loved" to "favorited"
        script = f'''
tell application "Music"
    try
        set favorited of {ref} to {flag}
    on error
        set loved of {ref} to {flag}
    end try
end tell'''
        return await self._script("set loved", script)

    async def like(self, track_id: str) -> CommandResult:
        return await self._set_loved(track_id, True)

    async def unlike(self, track_id: str) -> CommandResult:
        return await self._set_loved(track_id, False)


__all__ = ["LocalDesktopBackend", "parse_playlists", "parse_tracks", "parse_current_track"]
