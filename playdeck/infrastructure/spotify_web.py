#!/usr/bin/env python
"""
Cloud web backend on top of the Spotify Web API (spotipy).

spotipy is synchronous, so every call runs in a worker thread. A 401 triggers
one client rebuild and retry; anything still failing is returned as a failed
`CommandResult` (commands) or an empty value (fetches), never raised.
"""

from __future__ import annotations

import asyncio
import logging
import webbrowser
from typing import Any, Callable, Dict, List, Optional

import spotipy
from spotipy.exceptions import SpotifyException
from spotipy.oauth2 import SpotifyOAuth

from playdeck.domain.playback.backends import CommandResult, PlaybackBackend, playlist_uri, track_uri
from playdeck.models import BackendKind, CloudUser, Device, Playlist, Track
from playdeck.models.spotify_mapping import (
    device_from_payload,
    playlist_from_payload,
    running_track_from_playback,
    track_from_payload,
    tracks_from_items,
    user_from_payload,
)
from playdeck.settings import EngineSettings

logger = logging.getLogger(__name__)

WEB_PLAYER_URL = "https://open.spotify.com"
PAGE_SIZE = 50
PLAYLIST_ITEMS_PAGE_SIZE = 100
MAX_LIKED_SONGS = 500
MUTATION_CHUNK = 100

DEFAULT_SCOPES = " ".join(
    [
        "user-read-private",
        "user-read-email",
        "user-read-playback-state",
        "user-modify-playback-state",
        "user-read-currently-playing",
        "user-library-read",
        "user-library-modify",
        "playlist-read-private",
        "playlist-read-collaborative",
        "playlist-modify-public",
        "playlist-modify-private",
    ]
)

ClientFactory = Callable[[], Optional[Any]]


class _CallFailed(Exception):
    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status


class CloudWebBackend(PlaybackBackend):
    kind = BackendKind.CLOUD_WEB

    def __init__(self, settings: Optional[EngineSettings] = None, client: Any = None, client_factory: Optional[ClientFactory] = None) -> None:
        self.settings = settings
        self._auth_manager: Optional[SpotifyOAuth] = None
        self._client_factory = client_factory or self._build_client
        self.sp = client if client is not None else self._client_factory()
        self._devices: Optional[List[Device]] = None

    # --- client ------------------------------------------------------------

    def _build_client(self) -> Optional[Any]:
        settings = self.settings
        if settings is None or not (settings.spotify_client_id and settings.spotify_client_secret):
            logger.warning("Spotify credentials are not configured; cloud web backend is offline")
            return None
        try:
            self._auth_manager = SpotifyOAuth(
                client_id=settings.spotify_client_id,
                client_secret=settings.spotify_client_secret,
                redirect_uri=settings.spotify_redirect_uri,
                scope=settings.spotify_scopes or DEFAULT_SCOPES,
                cache_path=settings.spotify_cache_path,
                open_browser=False,
            )
            return spotipy.Spotify(auth_manager=self._auth_manager)
        except Exception as exc:
            logger.error("Failed to initialize Spotify client: %s", exc, exc_info=True)
            return None

    def _refresh_client(self) -> bool:
        client = self._client_factory()
        if client is None:
            return False
        self.sp = client
        logger.info("Spotify client refreshed")
        return True

    def has_token(self) -> bool:
        """True when cached OAuth credentials exist (the account is connected)."""
        if self.sp is None:
            return False
        if self._auth_manager is None:
            return True
        try:
            return bool(self._auth_manager.cache_handler.get_cached_token())
        except Exception as exc:
            logger.warning("Unable to read cached Spotify token: %s", exc)
            return False

    def _call_sync(self, action: str, call: Callable[[Any], Any]) -> Any:
        if self.sp is None:
            raise _CallFailed(f"Spotify client not initialized. Cannot {action}.")
        try:
            return call(self.sp)
        except SpotifyException as exc:
            if exc.http_status == 401:
                logger.warning("Spotify token expired during %s. Attempting to refresh credentials.", action)
                if self._refresh_client():
                    try:
                        return call(self.sp)
                    except SpotifyException as retry_exc:
                        logger.error("Spotify API call failed after token refresh during %s: %s", action, retry_exc)
                        raise _CallFailed(retry_exc.msg or str(retry_exc), retry_exc.http_status) from retry_exc
            logger.error("Spotify API call failed during %s: %s", action, exc)
            raise _CallFailed(exc.msg or str(exc), exc.http_status) from exc
        except _CallFailed:
            raise
        except Exception as exc:
            logger.error("Unexpected error during %s: %s", action, exc, exc_info=True)
            raise _CallFailed(str(exc)) from exc

    async def _call(self, action: str, call: Callable[[Any], Any]) -> Any:
        return await asyncio.to_thread(self._call_sync, action, call)

    async def _fetch(self, action: str, call: Callable[[Any], Any], default: Any) -> Any:
        try:
            result = await self._call(action, call)
        except _CallFailed:
            return default
        return default if result is None else result

    async def _command(self, action: str, call: Callable[[Any], Any]) -> CommandResult:
        try:
            data = await self._call(action, call)
        except _CallFailed as exc:
            return CommandResult.failure(str(exc), status=exc.status)
        return CommandResult.success(data)

    @staticmethod
    def _collect(sp: Any, page: Optional[Dict[str, Any]], limit: Optional[int] = None) -> List[Dict[str, Any]]:
        items: List[Dict[str, Any]] = []
        while page:
            items.extend(page.get("items") or [])
            if limit is not None and len(items) >= limit:
                return items[:limit]
            page = sp.next(page) if page.get("next") else None
        return items

    # --- library -----------------------------------------------------------

    async def fetch_user(self) -> Optional[CloudUser]:
        payload = await self._fetch("fetch user", lambda sp: sp.current_user(), None)
        return user_from_payload(payload) if payload else None

    async def fetch_playlists(self) -> List[Playlist]:
        items = await self._fetch(
            "fetch playlists",
            lambda sp: self._collect(sp, sp.current_user_playlists(limit=PAGE_SIZE)),
            [],
        )
        playlists = [playlist_from_payload(item) for item in items]
        return [playlist for playlist in playlists if playlist is not None]

    async def fetch_playlist(self, playlist_id: str) -> Optional[Playlist]:
        payload = await self._fetch(
            f"fetch playlist {playlist_id}",
            lambda sp: sp.playlist(playlist_id, fields="id,name,tracks.total"),
            None,
        )
        return playlist_from_payload(payload) if payload else None

    async def fetch_playlist_tracks(self, playlist_id: str) -> List[Track]:
        items = await self._fetch(
            f"fetch tracks for playlist {playlist_id}",
            lambda sp: self._collect(
                sp,
                sp.playlist_items(playlist_id, limit=PLAYLIST_ITEMS_PAGE_SIZE, additional_types=("track",)),
            ),
            [],
        )
        return tracks_from_items(items)

    async def fetch_liked_songs(self) -> List[Track]:
        items = await self._fetch(
            "fetch liked songs",
            lambda sp: self._collect(sp, sp.current_user_saved_tracks(limit=PAGE_SIZE), limit=MAX_LIKED_SONGS),
            [],
        )
        return tracks_from_items(items)

    async def fetch_devices(self, force_refresh: bool = False) -> List[Device]:
        if self._devices is not None and not force_refresh:
            return list(self._devices)
        payload = await self._fetch("fetch devices", lambda sp: sp.devices(), {})
        devices = [device_from_payload(item) for item in payload.get("devices") or []]
        self._devices = [device for device in devices if device is not None]
        return list(self._devices)

    async def fetch_running_track(self) -> Optional[Track]:
        # failures propagate so the reconciler keeps the last known track
        payload = await self._call("fetch current playback", lambda sp: sp.current_playback())
        return running_track_from_playback(payload)

    async def fetch_recommendations(self, seed_track_ids: List[str], limit: int = 50) -> List[Track]:
        if not seed_track_ids:
            return []
        payload = await self._fetch(
            "fetch recommendations",
            lambda sp: sp.recommendations(seed_tracks=list(seed_track_ids), limit=limit),
            {},
        )
        return [
            track
            for track in (track_from_payload(item, position=index) for index, item in enumerate(payload.get("tracks") or [], start=1))
            if track is not None
        ]

    # --- transport ---------------------------------------------------------

    async def play(self, device_id: Optional[str] = None) -> CommandResult:
        return await self._command("play", lambda sp: sp.start_playback(device_id=device_id))

    async def pause(self, device_id: Optional[str] = None) -> CommandResult:
        return await self._command("pause", lambda sp: sp.pause_playback(device_id=device_id))

    async def next(self, device_id: Optional[str] = None) -> CommandResult:
        return await self._command("next", lambda sp: sp.next_track(device_id=device_id))

    async def previous(self, device_id: Optional[str] = None) -> CommandResult:
        return await self._command("previous", lambda sp: sp.previous_track(device_id=device_id))

    async def play_track(self, track_id: str, device_id: Optional[str] = None) -> CommandResult:
        return await self._command(
            f"play track {track_id}",
            lambda sp: sp.start_playback(device_id=device_id, uris=[track_uri(track_id)]),
        )

    async def play_playlist(
        self,
        playlist_id: str,
        track_id: Optional[str] = None,
        device_id: Optional[str] = None,
    ) -> CommandResult:
        offset = {"uri": track_uri(track_id)} if track_id else None
        return await self._command(
            f"play playlist {playlist_id}",
            lambda sp: sp.start_playback(device_id=device_id, context_uri=playlist_uri(playlist_id), offset=offset),
        )

    async def play_tracks(
        self,
        track_ids: List[str],
        offset: int = 0,
        device_id: Optional[str] = None,
    ) -> CommandResult:
        uris = [track_uri(track_id) for track_id in track_ids]
        return await self._command(
            "play track list",
            lambda sp: sp.start_playback(device_id=device_id, uris=uris, offset={"position": offset}),
        )

    async def transfer_playback(self, device_id: str) -> CommandResult:
        result = await self._command(
            f"transfer playback to {device_id}",
            lambda sp: sp.transfer_playback(device_id=device_id, force_play=True),
        )
        if result.ok:
            self._devices = None
        return result

    # --- library mutations -------------------------------------------------

    async def like(self, track_id: str) -> CommandResult:
        return await self._command("save track", lambda sp: sp.current_user_saved_tracks_add([track_id]))

    async def unlike(self, track_id: str) -> CommandResult:
        return await self._command("remove saved track", lambda sp: sp.current_user_saved_tracks_delete([track_id]))

    async def create_playlist(self, name: str) -> CommandResult:
        def _create(sp: Any) -> Optional[Playlist]:
            user = sp.current_user()
            return playlist_from_payload(sp.user_playlist_create(user["id"], name, public=True))

        return await self._command(f"create playlist {name}", _create)

    async def replace_tracks(self, playlist_id: str, track_ids: List[str]) -> CommandResult:
        uris = [track_uri(track_id) for track_id in track_ids]

        def _replace(sp: Any) -> None:
            sp.playlist_replace_items(playlist_id, uris[:MUTATION_CHUNK])
            for start in range(MUTATION_CHUNK, len(uris), MUTATION_CHUNK):
                sp.playlist_add_items(playlist_id, uris[start:start + MUTATION_CHUNK])

        return await self._command(f"replace tracks in {playlist_id}", _replace)

    async def add_tracks(self, playlist_id: str, track_ids: List[str]) -> CommandResult:
        uris = [track_uri(track_id) for track_id in track_ids]

        def _add(sp: Any) -> None:
            for start in range(0, len(uris), MUTATION_CHUNK):
                sp.playlist_add_items(playlist_id, uris[start:start + MUTATION_CHUNK])

        return await self._command(f"add tracks to {playlist_id}", _add)

    async def remove_tracks(self, playlist_id: str, track_ids: List[str]) -> CommandResult:
        uris = [track_uri(track_id) for track_id in track_ids]
        return await self._command(
            f"remove tracks from {playlist_id}",
            lambda sp: sp.playlist_remove_all_occurrences_of_items(playlist_id, uris),
        )

    async def follow_playlist(self, playlist_id: str) -> CommandResult:
        return await self._command(
            f"follow playlist {playlist_id}",
            lambda sp: sp.current_user_follow_playlist(playlist_id),
        )

    # --- process -----------------------------------------------------------

    async def launch(self, options: Optional[Dict[str, Any]] = None) -> CommandResult:
        options = options or {}
        url = WEB_PLAYER_URL
        if options.get("track_id"):
            url = f"{WEB_PLAYER_URL}/track/{options['track_id']}"
        elif options.get("playlist_id"):
            url = f"{WEB_PLAYER_URL}/playlist/{options['playlist_id']}"
        opened = await asyncio.to_thread(webbrowser.open, url)
        if not opened:
            return CommandResult.failure(f"Unable to open {url}")
        self._devices = None
        return CommandResult.success({"url": url})


__all__ = ["CloudWebBackend", "DEFAULT_SCOPES", "WEB_PLAYER_URL"]
