#!/usr/bin/env python
"""
Public control surface of the playback engine.

Each user action updates the selection first, then either plays right away
or launches a player and lets device discovery continue the play once a
device shows up. Commands are issued through the dispatcher, so failures are
already converted to notices by the time they reach this layer.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

from playdeck.core.events import LAUNCH_REQUIRED, PLAYLISTS_CHANGED, Notifier
from playdeck.core.runner import BackgroundTasks
from playdeck.core.state import SharedStateStore
from playdeck.models import BackendKind, Device, Playlist, PlaylistItem, Track

from .backends import CommandResult
from .discovery import DeviceDiscoveryRetrier
from .dispatcher import MAX_CONTEXT_TRACKS, CommandDispatcher
from .errors import ServiceUnavailable
from .items import PERSONAL_TOP_SONGS_NAME, PERSONAL_TOP_SONGS_TYPE_ID, ProviderItems
from .navigator import LikedSongsNavigator
from .playlists import PlaylistCacheBuilder
from .reconciler import PlaybackStateReconciler
from .recommendations import recommendation_play_ids

logger = logging.getLogger(__name__)

WEB_PLAYER_CHOICE = "Web Player"
DESKTOP_PLAYER_CHOICE = "Desktop Player"
LAUNCH_CHOICES = (WEB_PLAYER_CHOICE, DESKTOP_PLAYER_CHOICE)
LAUNCH_PROMPT = "A running Spotify player is required. Choose a player to launch."
DESKTOP_INSTEAD_MESSAGE = (
    "Launching Spotify desktop instead of the web player to allow playback as a non-premium account"
)
SERVICE_UNAVAILABLE_MESSAGE = "Our service is temporarily unavailable.\n\nPlease try again later.\n"
TOP_SONGS_LIMIT = 40

PlayerChooser = Callable[[str, Sequence[str]], Awaitable[Optional[str]]]


class PlayOutcome(str, enum.Enum):
    PLAYED = "played"
    SELECTED = "selected"
    LAUNCHING = "launching"
    CONFIRMATION_REQUIRED = "confirmation_required"
    CANCELLED = "cancelled"
    NOT_FOUND = "not_found"


class PlaybackOrchestrator:
    def __init__(
        self,
        state: SharedStateStore,
        dispatcher: CommandDispatcher,
        playlists: PlaylistCacheBuilder,
        reconciler: PlaybackStateReconciler,
        discovery: DeviceDiscoveryRetrier,
        notifier: Notifier,
        *,
        app_service: Any = None,
        navigator: Optional[LikedSongsNavigator] = None,
        items: Optional[ProviderItems] = None,
        chooser: Optional[PlayerChooser] = None,
        like_restore_delay: float = 0.5,
        background: Optional[BackgroundTasks] = None,
    ) -> None:
        self.state = state
        self.dispatcher = dispatcher
        self.playlists = playlists
        self.reconciler = reconciler
        self.discovery = discovery
        self.notifier = notifier
        self.app_service = app_service
        self.navigator = navigator or LikedSongsNavigator()
        self.items = items or ProviderItems()
        self.chooser = chooser
        self.like_restore_delay = like_restore_delay
        self.background = background if background is not None else dispatcher.background

    @property
    def is_mac(self) -> bool:
        return self.dispatcher.is_mac

    # --- startup -----------------------------------------------------------

    async def initialize(self) -> None:
        """Load the account, devices and playlist tree for a fresh session."""
        if self.state.connected:
            cloud = self.dispatcher.backend(BackendKind.CLOUD_WEB)
            try:
                user = await cloud.fetch_user()
            except Exception as exc:
                logger.warning("Unable to load the cloud user: %s", exc, exc_info=True)
                user = None
            if user is not None:
                self.state.set_cloud_user(user)
            await self.refresh_devices()
            await self.sync_weekly_top_songs()
        await self.playlists.refresh()
        await self.reconciler.gather_music_info()

    async def refresh_devices(self) -> List[Device]:
        if not self.state.connected:
            return self.state.devices
        cloud = self.dispatcher.backend(BackendKind.CLOUD_WEB)
        try:
            devices = await cloud.fetch_devices(force_refresh=True)
        except Exception as exc:
            logger.warning("Unable to refresh devices: %s", exc, exc_info=True)
            return self.state.devices
        self.state.set_devices(devices)
        return devices

    # --- transport ---------------------------------------------------------

    async def next(self) -> Optional[CommandResult]:
        if self.state.selection_is_liked_songs:
            result = await self._play_adjacent_liked(self.navigator.next)
        else:
            result = await self.dispatcher.transport("next")
        await self.reconciler.gather_music_info()
        return result

    async def previous(self) -> Optional[CommandResult]:
        if self.state.selection_is_liked_songs:
            result = await self._play_adjacent_liked(self.navigator.previous)
        else:
            result = await self.dispatcher.transport("previous")
        await self.reconciler.gather_music_info()
        return result

    async def _play_adjacent_liked(self, step) -> Optional[CommandResult]:
        playlist = self.state.selected_playlist
        current = self.state.selected_track
        track = step(self.state.liked_songs, current.id if current else None)
        if track is None or playlist is None:
            logger.debug("No liked song to move to from %r", current.id if current else None)
            return None

        selected = track.model_copy(update={"playlist_id": playlist.id, "status": self.state.status_for(track.id)})
        self.state.select_track(selected, playlist)

        if self.dispatcher.uses_web_playback:
            return await self.dispatcher.play_track(track.id, BackendKind.CLOUD_WEB, self.dispatcher.device_id())
        return await self.dispatcher.play_track(track.id, BackendKind.CLOUD_DESKTOP)

    async def play(self) -> CommandResult:
        result = await self.dispatcher.transport("play")
        await self._sync_controls()
        return result

    async def pause(self, needs_refresh: bool = True) -> CommandResult:
        result = await self.dispatcher.transport("pause")
        if needs_refresh:
            await self._sync_controls()
        return result

    async def _sync_controls(self) -> None:
        self.notifier.loading(True)
        try:
            await self.reconciler.gather_music_info()
        finally:
            self.notifier.loading(False)

    # --- selection and launch ---------------------------------------------

    async def play_selected_item(
        self,
        item: PlaylistItem,
        choice: Optional[str] = None,
        expand: bool = False,
    ) -> PlayOutcome:
        """Select a track or playlist and play it, launching a player when none is up."""
        if isinstance(item, Track):
            playlist = self.state.get_playlist(item.playlist_id)
            if playlist is None and item.kind == "recommendation":
                playlist = self.items.recommendations_folder()
            if playlist is None:
                logger.debug("Track %s has no known playlist %r", item.id, item.playlist_id)
                return PlayOutcome.NOT_FOUND
            self.state.select_track(item, playlist)
        elif isinstance(item, Playlist):
            self.state.select_playlist(item)
            if expand:
                return PlayOutcome.SELECTED
            tracks = await self.playlists.get_playlist_tracks(item.id)
            if tracks:
                self.state.select_track(tracks[0], item)
        else:
            logger.debug("Ignoring play request for %s item %s", item.item_type, item.id)
            return PlayOutcome.NOT_FOUND

        if self.state.active_backend is BackendKind.LOCAL_DESKTOP:
            await self.play_music_selection()
            return PlayOutcome.PLAYED
        return await self.play_initialization(self.play_music_selection, choice)

    async def select(self, playlist_id: str, track_id: Optional[str] = None, choice: Optional[str] = None) -> PlayOutcome:
        """Resolve ids from the caches and play the result."""
        playlist = self.state.get_playlist(playlist_id)
        if playlist is None:
            logger.debug("Unknown playlist %r", playlist_id)
            return PlayOutcome.NOT_FOUND
        if not track_id:
            return await self.play_selected_item(playlist, choice)
        tracks = await self.playlists.get_playlist_tracks(playlist_id)
        track = next((t for t in tracks if t.id == track_id), None)
        if track is None:
            logger.debug("Track %r not found in playlist %r", track_id, playlist_id)
            return PlayOutcome.NOT_FOUND
        return await self.play_selected_item(track, choice)

    async def play_initialization(self, continuation: Callable[[], Awaitable[Any]], choice: Optional[str] = None) -> PlayOutcome:
        """Play immediately when a usable player is up, else ask which one to launch."""
        state = self.state
        if state.connected and not state.has_cloud_user:
            try:
                user = await self.dispatcher.backend(BackendKind.CLOUD_WEB).fetch_user()
            except Exception as exc:
                logger.warning("Unable to load the cloud user: %s", exc, exc_info=True)
                user = None
            if user is not None:
                state.set_cloud_user(user)

        devices = state.device_set()
        requires_desktop = not state.is_premium and self.is_mac and not devices.has_desktop
        if not devices.has_desktop_or_web or requires_desktop:
            return await self.show_launch_confirmation(continuation, choice)

        await continuation()
        return PlayOutcome.PLAYED

    async def show_launch_confirmation(
        self,
        continuation: Callable[[], Awaitable[Any]],
        choice: Optional[str] = None,
    ) -> PlayOutcome:
        if self.is_mac and not self.state.is_premium:
            await self.launch_track_player(BackendKind.CLOUD_DESKTOP, continuation)
            return PlayOutcome.LAUNCHING

        if choice is None and self.chooser is not None:
            choice = await self.chooser(LAUNCH_PROMPT, LAUNCH_CHOICES)
        if choice is None:
            self.notifier.notify(LAUNCH_REQUIRED, message=LAUNCH_PROMPT, choices=list(LAUNCH_CHOICES))
            return PlayOutcome.CONFIRMATION_REQUIRED
        if choice not in LAUNCH_CHOICES:
            logger.debug("Launch cancelled with choice %r", choice)
            return PlayOutcome.CANCELLED

        player = BackendKind.CLOUD_DESKTOP if choice == DESKTOP_PLAYER_CHOICE else BackendKind.CLOUD_WEB
        await self.launch_track_player(player, continuation)
        return PlayOutcome.LAUNCHING

    def launch_options(self) -> Dict[str, Any]:
        """Non-premium accounts open the selection directly in the launched player."""
        options: Dict[str, Any] = {"quietly": False}
        track = self.state.selected_track
        playlist = self.state.selected_playlist
        if self.state.is_premium or not (track or playlist):
            return options
        if track is not None and (track.kind == "recommendation" or self.state.selection_is_liked_songs):
            options["track_id"] = track.id
        elif playlist is not None:
            options["playlist_id"] = playlist.id
        return options

    async def launch_track_player(
        self,
        player: Optional[BackendKind] = None,
        continuation: Optional[Callable[[], Awaitable[Any]]] = None,
    ) -> asyncio.Task:
        """Launch a player, then discover its device in the background."""
        devices = self.state.device_set()
        requires_desktop = not self.state.is_premium and self.is_mac and not devices.has_desktop
        if requires_desktop and player is not BackendKind.CLOUD_DESKTOP:
            self.notifier.info(DESKTOP_INSTEAD_MESSAGE)
        if requires_desktop or player is BackendKind.CLOUD_DESKTOP:
            player = BackendKind.CLOUD_DESKTOP
        else:
            player = BackendKind.CLOUD_WEB

        await self.dispatcher.launch(player, self.launch_options())
        return self.background.spawn(self.discovery.run(continuation), name="device-discovery")

    async def play_music_selection(self) -> Optional[CommandResult]:
        """Play whatever is selected on the path the account and platform allow."""
        state = self.state
        playlist = state.selected_playlist
        track = state.selected_track
        dispatcher = self.dispatcher

        if state.active_backend is BackendKind.LOCAL_DESKTOP:
            if playlist is not None:
                return await dispatcher.play_playlist(
                    playlist.id, track.id if track else None, BackendKind.LOCAL_DESKTOP
                )
            if track is not None:
                return await dispatcher.play_track(track.id, BackendKind.LOCAL_DESKTOP)
            return None

        device_id = dispatcher.device_id()
        use_web = dispatcher.uses_web_playback
        is_recommendation = track is not None and track.kind == "recommendation"

        if track is not None and (is_recommendation or state.selection_is_liked_songs):
            if use_web:
                return await self.play_recommendations_or_liked_songs(track, device_id)
            return await dispatcher.play_track(track.id, BackendKind.CLOUD_DESKTOP)
        if playlist is not None:
            track_id = track.id if track else None
            if use_web:
                return await dispatcher.play_playlist(playlist.id, track_id, BackendKind.CLOUD_WEB, device_id)
            return await dispatcher.play_playlist(playlist.id, track_id, BackendKind.CLOUD_DESKTOP)
        if track is not None:
            if use_web:
                return await dispatcher.play_track(track.id, BackendKind.CLOUD_WEB, device_id)
            return await dispatcher.play_track(track.id, BackendKind.CLOUD_DESKTOP)
        logger.debug("Nothing selected to play")
        return None

    async def play_recommendations_or_liked_songs(self, track: Track, device_id: Optional[str]) -> CommandResult:
        if track.kind == "recommendation":
            track_ids = recommendation_play_ids(self.state.recommendation_tracks, self.state.seed_track_ids)
        else:
            track_ids = [liked.id for liked in self.state.liked_songs][:MAX_CONTEXT_TRACKS]
        offset = track_ids.index(track.id) if track.id in track_ids else 0
        return await self.dispatcher.play_tracks(track_ids, offset, device_id)

    # --- like --------------------------------------------------------------

    async def _service_available(self) -> bool:
        if self.app_service is None:
            return True
        try:
            return bool(await self.app_service.is_available())
        except Exception as exc:
            logger.warning("App service availability check failed: %s", exc)
            return False

    async def _like_target(self, track: Optional[Track]) -> Track:
        target = track if track is not None else self.state.running_track
        if not await self._service_available() or target is None or not target.id:
            raise ServiceUnavailable(SERVICE_UNAVAILABLE_MESSAGE)
        return target

    async def set_liked(self, liked: bool, track: Optional[Track] = None) -> bool:
        """Like or unlike a track (the running one by default) and persist the flag."""
        try:
            target = await self._like_target(track)
        except ServiceUnavailable as exc:
            self.notifier.info(str(exc))
            return False

        command = "like" if liked else "unlike"
        is_local = target.backend is BackendKind.LOCAL_DESKTOP
        kind = BackendKind.LOCAL_DESKTOP if is_local else BackendKind.CLOUD_WEB
        result = await self.dispatcher.issue(kind, command, target.id, reconcile=False)

        self.notifier.loading(True)
        if result.ok and not is_local:
            self._update_liked_cache(target, liked)

        if self.app_service is not None:
            try:
                saved = await self.app_service.put_liked(target.id, "itunes" if is_local else "spotify", liked)
                if not saved:
                    logger.warning("App service did not store the like flag for %s", target.id)
            except Exception as exc:
                logger.warning("Error updating track like state: %s", exc)

        self.background.spawn(self._restore_loading(), name="like-loading")
        return result.ok

    def _update_liked_cache(self, track: Track, liked: bool) -> None:
        liked_songs = [song for song in self.state.liked_songs if song.id != track.id]
        if liked:
            liked_songs.insert(0, track.model_copy(update={"playlist_id": None, "position": 0}))
        self.state.liked_songs = liked_songs
        self.state.clear_playlist_tracks(self.items.liked_songs_folder().id)

    async def _restore_loading(self) -> None:
        await asyncio.sleep(self.like_restore_delay)
        self.notifier.loading(False)

    # --- generated playlists ----------------------------------------------

    async def sync_weekly_top_songs(self) -> List[dict]:
        songs: List[dict] = []
        if self.app_service is not None:
            try:
                songs = list(await self.app_service.fetch_top_songs(limit=TOP_SONGS_LIMIT) or [])
            except Exception as exc:
                logger.warning("Unable to fetch weekly top songs: %s", exc)
        self.state.user_top_songs = songs
        return songs

    @staticmethod
    def _top_song_ids(songs: List[dict]) -> List[str]:
        ids = []
        for song in songs:
            if not isinstance(song, dict):
                logger.warning("Skipping malformed top song entry: %r", song)
                continue
            value = song.get("uri") or song.get("trackId") or song.get("id")
            if value:
                ids.append(value)
        return ids

    async def generate_weekly_top_playlist(self) -> Optional[Playlist]:
        """Create the personal weekly top songs playlist, or refresh its tracks."""
        state = self.state
        if state.building_custom_playlist:
            logger.debug("Weekly top playlist build already in progress")
            return None
        if not state.connected:
            logger.debug("Not connected; skipping weekly top playlist")
            return None

        state.building_custom_playlist = True
        try:
            existing = state.generated_playlist(PERSONAL_TOP_SONGS_TYPE_ID)
            if existing is None:
                self.notifier.info(f"Creating and populating the {PERSONAL_TOP_SONGS_NAME} playlist, please wait.")
                created = await self.dispatcher.issue(
                    BackendKind.CLOUD_WEB, "create_playlist", PERSONAL_TOP_SONGS_NAME, reconcile=False
                )
                if not created.ok or created.data is None:
                    return None
                playlist: Playlist = created.data
                await self._save_generated(playlist.id, PERSONAL_TOP_SONGS_TYPE_ID, PERSONAL_TOP_SONGS_NAME)
                state.set_generated_playlist(PERSONAL_TOP_SONGS_TYPE_ID, playlist)
            else:
                self.notifier.info(f"Refreshing the {PERSONAL_TOP_SONGS_NAME} playlist, please wait.")
                playlist = existing

            songs = await self.sync_weekly_top_songs()
            track_ids = self._top_song_ids(songs)
            if not track_ids:
                self.notifier.info(
                    f"Successfully created {PERSONAL_TOP_SONGS_NAME}, but we're unable to add any songs at the moment."
                )
            elif existing is None:
                added = await self.dispatcher.issue(
                    BackendKind.CLOUD_WEB, "add_tracks", playlist.id, track_ids, reconcile=False
                )
                if added.ok:
                    self.notifier.info(f"Successfully created {PERSONAL_TOP_SONGS_NAME} and added tracks.")
            else:
                replaced = await self.dispatcher.issue(
                    BackendKind.CLOUD_WEB, "replace_tracks", playlist.id, track_ids, reconcile=False
                )
                if replaced.ok:
                    self.notifier.info(f"Successfully refreshed {PERSONAL_TOP_SONGS_NAME}.")

            state.clear_playlist_tracks(playlist.id)
            await self._repopulate_playlists()
            return playlist
        finally:
            state.building_custom_playlist = False

    async def _save_generated(self, playlist_id: str, type_id: int, name: str) -> None:
        if self.app_service is None:
            return
        try:
            await self.app_service.save_generated_playlist(playlist_id, type_id, name)
        except Exception as exc:
            logger.warning("Error saving generated playlist %s: %s", playlist_id, exc)

    async def _repopulate_playlists(self) -> None:
        await self.playlists.load_raw_playlists(force=True)
        if not await self.playlists.refresh():
            self.notifier.notify(PLAYLISTS_CHANGED)

    # --- playlist management ----------------------------------------------

    async def follow_playlist(self, playlist: Playlist) -> bool:
        result = await self.dispatcher.issue(BackendKind.CLOUD_WEB, "follow_playlist", playlist.id, reconcile=False)
        if not result.ok:
            return False
        self.notifier.info(f"Successfully following the '{playlist.name}' playlist.")
        await self._repopulate_playlists()
        return True

    async def remove_track_from_playlist(self, track: Track) -> bool:
        playlist = self.state.get_playlist(track.playlist_id)
        if playlist is None:
            logger.debug("Track %s is not in a known playlist", track.id)
            return False
        if playlist.is_liked_songs:
            removed = await self.set_liked(False, track)
        else:
            result = await self.dispatcher.issue(
                playlist.backend, "remove_tracks", playlist.id, [track.id], reconcile=False
            )
            removed = result.ok
            if removed:
                self.notifier.info("Song removed successfully")
        if removed:
            self.state.clear_playlist_tracks(playlist.id)
            self.notifier.notify(PLAYLISTS_CHANGED)
        return removed

    async def add_track_to_playlist(self, track: Track, playlist: Playlist) -> bool:
        if playlist.is_liked_songs:
            added = await self.set_liked(True, track)
        else:
            result = await self.dispatcher.issue(
                playlist.backend, "add_tracks", playlist.id, [track.id], reconcile=False
            )
            added = result.ok
            if added:
                self.notifier.info(f"Added '{track.name}' to '{playlist.name}'.")
        if added:
            self.state.clear_playlist_tracks(playlist.id)
            self.notifier.notify(PLAYLISTS_CHANGED)
        return added

    async def create_playlist(self, name: str, tracks: Optional[Sequence[Track]] = None) -> Optional[Playlist]:
        created = await self.dispatcher.issue(BackendKind.CLOUD_WEB, "create_playlist", name, reconcile=False)
        if not created.ok or created.data is None:
            return None
        playlist: Playlist = created.data
        track_ids = [track.id for track in tracks or []]
        if track_ids:
            await self.dispatcher.issue(BackendKind.CLOUD_WEB, "add_tracks", playlist.id, track_ids, reconcile=False)
        await self._repopulate_playlists()
        return playlist

    # --- devices and backends ---------------------------------------------

    async def transfer_to_computer_device(self, device: Optional[Device] = None) -> Optional[CommandResult]:
        return await self.dispatcher.transfer_to_computer_device(device)

    async def switch_backend(self, kind: BackendKind) -> bool:
        if not self.state.switch_backend(kind):
            return False
        await self.playlists.refresh()
        await self.reconciler.gather_music_info()
        return True


__all__ = [
    "PlaybackOrchestrator",
    "PlayOutcome",
    "PlayerChooser",
    "LAUNCH_CHOICES",
    "WEB_PLAYER_CHOICE",
    "DESKTOP_PLAYER_CHOICE",
    "SERVICE_UNAVAILABLE_MESSAGE",
]
