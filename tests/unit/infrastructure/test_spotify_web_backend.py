import asyncio

import pytest
from spotipy.exceptions import SpotifyException

from playdeck.infrastructure import spotify_web
from playdeck.infrastructure.spotify_web import CloudWebBackend
from playdeck.models import DeviceType, TrackStatus


class FakeSpotify:
    """Minimal spotipy.Spotify stand-in; pages are served from dictionaries."""

    def __init__(self, fail_with=None):
        self.fail_with = fail_with
        self.calls = []
        self.pages = {}
        self.device_payload = {"devices": []}
        self.playback = None

    def _maybe_fail(self, call, **kwargs):
        self.calls.append((call, kwargs))
        if self.fail_with is not None:
            raise self.fail_with

    def next(self, page):
        return self.pages.get(page["next"])

    def current_user(self):
        self._maybe_fail("current_user")
        return {"id": "user-1", "email": "u@example.com", "product": "premium"}

    def current_user_playlists(self, limit=50):
        self._maybe_fail("current_user_playlists", limit=limit)
        return self.pages["playlists"]

    def devices(self):
        self._maybe_fail("devices")
        return self.device_payload

    def current_playback(self):
        self._maybe_fail("current_playback")
        return self.playback

    def start_playback(self, **kwargs):
        self._maybe_fail("start_playback", **kwargs)

    def pause_playback(self, device_id=None):
        self._maybe_fail("pause_playback", device_id=device_id)

    def next_track(self, device_id=None):
        self._maybe_fail("next_track", device_id=device_id)

    def previous_track(self, device_id=None):
        self._maybe_fail("previous_track", device_id=device_id)

    def user_playlist_create(self, user, name, public=True):
        self._maybe_fail("user_playlist_create", user=user, name=name)
        return {"id": "new-pl", "name": name, "tracks": {"total": 0}}

    def playlist_replace_items(self, playlist_id, items):
        self._maybe_fail("playlist_replace_items", playlist_id=playlist_id, items=list(items))

    def playlist_add_items(self, playlist_id, items):
        self._maybe_fail("playlist_add_items", playlist_id=playlist_id, items=list(items))


def _names(client):
    return [name for name, _ in client.calls]


@pytest.mark.unit
def test_playlists_follow_next_pages():
    client = FakeSpotify()
    client.pages = {
        "playlists": {"items": [{"id": "p1", "name": "Focus", "tracks": {"total": 3}}], "next": "page-2"},
        "page-2": {"items": [{"id": "p2", "name": "Chill"}, {"name": "no id"}], "next": None},
    }
    backend = CloudWebBackend(client=client)

    playlists = asyncio.run(backend.fetch_playlists())

    assert [p.id for p in playlists] == ["p1", "p2"]
    assert playlists[0].track_count == 3


@pytest.mark.unit
def test_expired_token_rebuilds_client_and_retries_once():
    expired = FakeSpotify(fail_with=SpotifyException(401, -1, "The access token expired"))
    fresh = FakeSpotify()
    backend = CloudWebBackend(client=expired, client_factory=lambda: fresh)

    result = asyncio.run(backend.play_track("T1", device_id="laptop"))

    assert result.ok
    assert fresh.calls == [("start_playback", {"device_id": "laptop", "uris": ["spotify:track:T1"]})]
    assert backend.sp is fresh


@pytest.mark.unit
def test_expired_token_without_new_client_reports_401():
    expired = FakeSpotify(fail_with=SpotifyException(401, -1, "The access token expired"))
    backend = CloudWebBackend(client=expired, client_factory=lambda: None)

    result = asyncio.run(backend.play())

    assert result.ok is False
    assert result.access_expired


@pytest.mark.unit
def test_player_error_becomes_failed_result_with_status():
    client = FakeSpotify(fail_with=SpotifyException(403, -1, "Player command failed: Restriction violated"))
    backend = CloudWebBackend(client=client)

    result = asyncio.run(backend.next(device_id="laptop"))

    assert result.ok is False
    assert result.status == 403
    assert "Restriction violated" in result.message


@pytest.mark.unit
def test_transport_commands_target_the_device():
    client = FakeSpotify()
    backend = CloudWebBackend(client=client)

    async def _run():
        return [
            await backend.pause(device_id="laptop"),
            await backend.next(device_id="laptop"),
            await backend.previous(),
        ]

    assert all(result.ok for result in asyncio.run(_run()))
    assert client.calls == [
        ("pause_playback", {"device_id": "laptop"}),
        ("next_track", {"device_id": "laptop"}),
        ("previous_track", {"device_id": None}),
    ]


@pytest.mark.unit
def test_without_client_fetches_are_empty_and_commands_fail():
    backend = CloudWebBackend(settings=None)

    assert backend.has_token() is False
    assert asyncio.run(backend.fetch_playlists()) == []
    result = asyncio.run(backend.play())
    assert result.ok is False
    assert "not initialized" in result.message


@pytest.mark.unit
def test_running_track_failure_propagates():
    backend = CloudWebBackend(client=FakeSpotify(fail_with=SpotifyException(500, -1, "server error")))
    with pytest.raises(Exception):
        asyncio.run(backend.fetch_running_track())


@pytest.mark.unit
def test_running_track_maps_status_and_progress():
    client = FakeSpotify()
    client.playback = {
        "is_playing": True,
        "progress_ms": 1200,
        "item": {"id": "T1", "name": "Song", "artists": [{"name": "Band"}], "duration_ms": 180000},
    }

    track = asyncio.run(CloudWebBackend(client=client).fetch_running_track())

    assert track.id == "T1"
    assert track.artist == "Band"
    assert track.status is TrackStatus.PLAYING
    assert track.progress_ms == 1200


@pytest.mark.unit
def test_devices_are_cached_until_forced():
    client = FakeSpotify()
    client.device_payload = {"devices": [{"id": "d1", "name": "Laptop", "type": "Computer", "is_active": True}]}
    backend = CloudWebBackend(client=client)

    async def _run():
        first = await backend.fetch_devices()
        await backend.fetch_devices()
        await backend.fetch_devices(force_refresh=True)
        return first

    devices = asyncio.run(_run())

    assert devices[0].type is DeviceType.COMPUTER
    assert _names(client).count("devices") == 2


@pytest.mark.unit
def test_play_playlist_and_track_list_build_offsets():
    client = FakeSpotify()
    backend = CloudWebBackend(client=client)

    async def _run():
        await backend.play_playlist("pl-1", track_id="T2", device_id="d1")
        await backend.play_tracks(["A", "B"], offset=1)

    asyncio.run(_run())

    assert client.calls[0][1] == {
        "device_id": "d1",
        "context_uri": "spotify:playlist:pl-1",
        "offset": {"uri": "spotify:track:T2"},
    }
    assert client.calls[1][1] == {
        "device_id": None,
        "uris": ["spotify:track:A", "spotify:track:B"],
        "offset": {"position": 1},
    }


@pytest.mark.unit
def test_create_and_replace_tracks():
    client = FakeSpotify()
    backend = CloudWebBackend(client=client)
    ids = [f"t{i}" for i in range(150)]

    async def _run():
        created = await backend.create_playlist("Weekly Top Songs")
        await backend.replace_tracks("new-pl", ids)
        return created

    created = asyncio.run(_run())

    assert created.ok and created.data.id == "new-pl"
    replaced = [kw for name, kw in client.calls if name == "playlist_replace_items"]
    added = [kw for name, kw in client.calls if name == "playlist_add_items"]
    assert len(replaced[0]["items"]) == 100
    assert len(added[0]["items"]) == 50


@pytest.mark.unit
def test_launch_opens_web_player_for_selection(monkeypatch):
    opened = []
    monkeypatch.setattr(spotify_web.webbrowser, "open", lambda url: opened.append(url) or True)

    result = asyncio.run(CloudWebBackend(client=FakeSpotify()).launch({"playlist_id": "pl-1"}))

    assert result.ok
    assert opened == ["https://open.spotify.com/playlist/pl-1"]


@pytest.mark.unit
def test_launch_reports_browser_failure(monkeypatch):
    monkeypatch.setattr(spotify_web.webbrowser, "open", lambda url: False)
    result = asyncio.run(CloudWebBackend(client=FakeSpotify()).launch())
    assert result.ok is False
