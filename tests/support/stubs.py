"""In-memory stand-ins for the playback backends, the app service and the event sink."""

from typing import Any, Dict, List, Optional

from playdeck.core.events import EventPublisher
from playdeck.domain.playback.backends import CommandResult, PlaybackBackend
from playdeck.models import BackendKind, CloudUser, Device, DeviceType, Playlist, Track


def make_tracks(*ids: str, backend: BackendKind = BackendKind.CLOUD_WEB) -> List[Track]:
    return [Track(id=track_id, name=f"Song {track_id}", artist="Artist", backend=backend) for track_id in ids]


def computer(device_id: str = "computer-1", name: str = "Laptop", active: bool = True) -> Device:
    return Device(id=device_id, name=name, type=DeviceType.COMPUTER, is_active=active)


def web_player(device_id: str = "web-1", active: bool = True) -> Device:
    return Device(id=device_id, name="Web Player (Chrome)", type=DeviceType.COMPUTER, is_active=active)


def premium_user() -> CloudUser:
    return CloudUser(id="user-1", email="user@example.com", product="premium")


def free_user() -> CloudUser:
    return CloudUser(id="user-1", email="user@example.com", product="free")


class FakeBackend(PlaybackBackend):
    """Records every call; fetches serve canned data and commands succeed unless told otherwise."""

    def __init__(
        self,
        kind: BackendKind = BackendKind.CLOUD_WEB,
        *,
        playlists: Optional[List[Playlist]] = None,
        playlist_tracks: Optional[Dict[str, List[Track]]] = None,
        liked: Optional[List[Track]] = None,
        devices: Optional[List[Device]] = None,
        user: Optional[CloudUser] = None,
        running: Optional[Track] = None,
        recommendations: Optional[List[Track]] = None,
    ) -> None:
        self.kind = kind
        self.playlists = list(playlists or [])
        self.extra_playlists: Dict[str, Playlist] = {}
        self.playlist_tracks = dict(playlist_tracks or {})
        self.liked = list(liked or [])
        self.devices = list(devices or [])
        # consumed one list per fetch_devices call before falling back to `devices`
        self.device_sequence: List[List[Device]] = []
        self.user = user
        self.running = running
        self.recommendations = list(recommendations or [])
        self.created_id = "created-playlist"
        self.results: Dict[str, CommandResult] = {}
        self.failing_fetches: set = set()
        self.calls: List[tuple] = []

    # --- inspection --------------------------------------------------------

    def called(self, name: str) -> List[tuple]:
        return [call for call in self.calls if call[0] == name]

    def call_names(self) -> List[str]:
        return [call[0] for call in self.calls]

    def _record(self, name: str, *args: Any, **kwargs: Any) -> None:
        self.calls.append((name, args, kwargs))
        if name in self.failing_fetches:
            raise RuntimeError(f"{name} failed")

    def _command(self, name: str, *args: Any, data: Any = None, **kwargs: Any) -> CommandResult:
        self.calls.append((name, args, kwargs))
        return self.results.get(name) or CommandResult.success(data)

    # --- fetches -----------------------------------------------------------

    async def fetch_user(self):
        self._record("fetch_user")
        return self.user

    async def fetch_playlists(self):
        self._record("fetch_playlists")
        return [playlist.model_copy() for playlist in self.playlists]

    async def fetch_playlist(self, playlist_id):
        self._record("fetch_playlist", playlist_id)
        playlist = self.extra_playlists.get(playlist_id)
        return playlist.model_copy() if playlist else None

    async def fetch_playlist_tracks(self, playlist_id):
        self._record("fetch_playlist_tracks", playlist_id)
        return [track.model_copy() for track in self.playlist_tracks.get(playlist_id, [])]

    async def fetch_liked_songs(self):
        self._record("fetch_liked_songs")
        return [track.model_copy() for track in self.liked]

    async def fetch_devices(self, force_refresh=False):
        self._record("fetch_devices", force_refresh=force_refresh)
        if self.device_sequence:
            return list(self.device_sequence.pop(0))
        return list(self.devices)

    async def fetch_running_track(self):
        self._record("fetch_running_track")
        return self.running.model_copy() if self.running else None

    async def fetch_recommendations(self, seed_track_ids, limit=50):
        self._record("fetch_recommendations", list(seed_track_ids), limit=limit)
        return [track.model_copy() for track in self.recommendations]

    # --- commands ----------------------------------------------------------

    async def play(self, device_id=None):
        return self._command("play", device_id=device_id)

    async def pause(self, device_id=None):
        return self._command("pause", device_id=device_id)

    async def next(self, device_id=None):
        return self._command("next", device_id=device_id)

    async def previous(self, device_id=None):
        return self._command("previous", device_id=device_id)

    async def play_track(self, track_id, device_id=None):
        return self._command("play_track", track_id, device_id=device_id)

    async def play_playlist(self, playlist_id, track_id=None, device_id=None):
        return self._command("play_playlist", playlist_id, track_id=track_id, device_id=device_id)

    async def play_tracks(self, track_ids, offset=0, device_id=None):
        return self._command("play_tracks", list(track_ids), offset=offset, device_id=device_id)

    async def transfer_playback(self, device_id):
        return self._command("transfer_playback", device_id)

    async def like(self, track_id):
        return self._command("like", track_id)

    async def unlike(self, track_id):
        return self._command("unlike", track_id)

    async def create_playlist(self, name):
        return self._command("create_playlist", name, data=Playlist(id=self.created_id, name=name, backend=self.kind))

    async def replace_tracks(self, playlist_id, track_ids):
        return self._command("replace_tracks", playlist_id, list(track_ids))

    async def add_tracks(self, playlist_id, track_ids):
        return self._command("add_tracks", playlist_id, list(track_ids))

    async def remove_tracks(self, playlist_id, track_ids):
        return self._command("remove_tracks", playlist_id, list(track_ids))

    async def follow_playlist(self, playlist_id):
        return self._command("follow_playlist", playlist_id)

    async def launch(self, options=None):
        return self._command("launch", dict(options or {}))


class FakeAppService:
    def __init__(self, available: bool = True, top_songs: Optional[List[dict]] = None) -> None:
        self.available = available
        self.top_songs = list(top_songs or [])
        self.generated: List[dict] = []
        self.liked_calls: List[tuple] = []
        self.saved: List[tuple] = []
        self.availability_checks = 0

    async def is_available(self):
        self.availability_checks += 1
        return self.available

    async def put_liked(self, track_id, backend, liked):
        self.liked_calls.append((track_id, backend, liked))
        return True

    async def fetch_top_songs(self, limit=40):
        return list(self.top_songs[:limit])

    async def save_generated_playlist(self, playlist_id, type_id, name):
        self.saved.append((playlist_id, type_id, name))
        self.generated.append({"playlist_id": playlist_id, "playlistTypeId": type_id, "name": name})
        return True

    async def fetch_generated_playlists(self):
        return list(self.generated)


class RecordingPublisher(EventPublisher):
    def __init__(self) -> None:
        self.events: List[dict] = []

    def publish(self, event: dict) -> None:
        self.events.append(event)

    def names(self) -> List[str]:
        return [event["type"] for event in self.events]

    def of_type(self, name: str) -> List[dict]:
        return [event for event in self.events if event["type"] == name]

    def clear(self) -> None:
        self.events.clear()
