import asyncio

import pytest

from playdeck.core.events import PLAYLISTS_CHANGED
from playdeck.models import (
    LIKED_SONGS_PLAYLIST_ID,
    ActionButton,
    BackendKind,
    Playlist,
    Track,
    TrackStatus,
)
from tests.support.stubs import computer, free_user, make_tracks, premium_user


def _ids(items):
    return [item.id for item in items]


def _playlists(*names, backend=BackendKind.CLOUD_WEB):
    return [Playlist(id=f"pl-{name.lower()}", name=name, backend=backend) for name in names]


async def _refresh_and_settle(engine, **kwargs):
    refreshed = await engine.playlists.refresh(**kwargs)
    await engine.background.drain()
    return refreshed


@pytest.mark.unit
def test_connected_premium_tree_order(engine, cloud, events):
    cloud.user = premium_user()
    cloud.devices = [computer()]
    cloud.playlists = _playlists("Focus", "Chill")

    assert asyncio.run(_refresh_and_settle(engine)) is True

    assert _ids(engine.state.cloud_items) == [
        "dashboard",
        "webanalytics",
        "readme",
        "activedevices",
        "linebreak",
        "generateweeklytop",
        LIKED_SONGS_PLAYLIST_ID,
        "linebreak",
        "pl-focus",
        "pl-chill",
    ]
    assert engine.state.ready is True
    assert PLAYLISTS_CHANGED in events.names()
    assert all(p.tag == "spotify" for p in engine.state.cloud_items if isinstance(p, Playlist) and p.id.startswith("pl-"))


@pytest.mark.unit
def test_non_premium_without_computer_device_gets_premium_and_switch_buttons(engine, cloud):
    cloud.user = free_user()

    asyncio.run(_refresh_and_settle(engine))

    ids = _ids(engine.state.cloud_items)
    assert ids[:5] == ["premium", "dashboard", "webanalytics", "readme", "switchtothisdevice"]
    assert "activedevices" in ids


@pytest.mark.unit
def test_disconnected_without_playlists_stops_after_buttons(make_engine, cloud):
    engine = make_engine(connected=False)

    asyncio.run(_refresh_and_settle(engine))

    assert _ids(engine.state.cloud_items) == ["connectspotify", "readme"]
    assert cloud.called("fetch_playlists") == []
    assert cloud.called("fetch_user") == []


@pytest.mark.unit
def test_mac_tree_offers_switch_to_local_app(make_engine, make_settings, cloud):
    cloud.user = premium_user()
    cloud.devices = [computer()]
    engine = make_engine(settings=make_settings(platform="darwin"))

    asyncio.run(_refresh_and_settle(engine))

    ids = _ids(engine.state.cloud_items)
    assert ids.index("switchtoitunes") == ids.index("activedevices") + 1


@pytest.mark.unit
def test_curated_playlist_fetched_when_not_followed(make_engine, make_settings, cloud):
    cloud.user = premium_user()
    cloud.devices = [computer()]
    cloud.playlists = _playlists("Focus")
    cloud.extra_playlists["curated"] = Playlist(id="curated", name="Editors Pick")
    engine = make_engine(settings=make_settings(curated_playlist_id="curated"))

    asyncio.run(_refresh_and_settle(engine))

    items = engine.state.cloud_items
    ids = _ids(items)
    assert ids.index("curated") == ids.index("generateweeklytop") + 1
    curated = items[ids.index("curated")]
    assert curated.tag == "paw"
    assert curated.loved is False


@pytest.mark.unit
def test_followed_curated_playlist_listed_once_and_loved(make_engine, make_settings, cloud):
    cloud.user = premium_user()
    cloud.devices = [computer()]
    cloud.playlists = [Playlist(id="curated", name="Editors Pick"), *_playlists("Focus")]
    engine = make_engine(settings=make_settings(curated_playlist_id="curated"))

    asyncio.run(_refresh_and_settle(engine))

    items = engine.state.cloud_items
    assert _ids(items).count("curated") == 1
    assert items[_ids(items).index("curated")].loved is True
    assert cloud.called("fetch_playlist") == []


@pytest.mark.unit
def test_saved_generated_playlist_replaces_generate_button(engine, cloud, app_service):
    cloud.user = premium_user()
    cloud.devices = [computer()]
    cloud.playlists = _playlists("Weekly", "Focus")
    app_service.generated = [{"playlist_id": "pl-weekly", "playlistTypeId": 1}]

    asyncio.run(_refresh_and_settle(engine))

    ids = _ids(engine.state.cloud_items)
    assert "generateweeklytop" not in ids
    assert ids.count("pl-weekly") == 1
    assert ids.index("pl-weekly") == ids.index("linebreak") + 1
    assert engine.state.generated_playlist(1).id == "pl-weekly"


@pytest.mark.unit
def test_malformed_generated_entries_are_skipped(engine, cloud, app_service):
    cloud.user = premium_user()
    cloud.playlists = _playlists("Weekly", "Focus")
    app_service.generated = [
        "pl-weekly",
        {"playlist_id": "pl-weekly", "playlistTypeId": "weekly"},
        {"playlist_id": "pl-focus", "playlistTypeId": [1]},
    ]

    assert asyncio.run(_refresh_and_settle(engine)) is True

    ids = _ids(engine.state.cloud_items)
    assert "generateweeklytop" in ids
    assert ["pl-weekly", "pl-focus"] == ids[-2:]
    assert engine.state.generated_playlists == {}


@pytest.mark.unit
def test_local_tree(engine, local, events):
    engine.state.switch_backend(BackendKind.LOCAL_DESKTOP)
    local.playlists = _playlists("Road Trip", backend=BackendKind.LOCAL_DESKTOP)

    asyncio.run(_refresh_and_settle(engine))

    items = engine.state.local_items
    assert _ids(items) == ["readme", "switchtospotify", "linebreak", "pl-road trip"]
    assert items[-1].tag == "itunes"
    assert engine.state.cloud_items == []


@pytest.mark.unit
def test_local_tree_without_playlists_has_no_line_break(engine):
    engine.state.switch_backend(BackendKind.LOCAL_DESKTOP)

    asyncio.run(_refresh_and_settle(engine))

    assert _ids(engine.state.local_items) == ["readme", "switchtospotify"]


@pytest.mark.unit
def test_concurrent_refresh_runs_one_fetch_sequence(engine, cloud, monkeypatch):
    cloud.user = premium_user()
    cloud.playlists = _playlists("Focus")
    fetch_playlists = cloud.fetch_playlists

    async def _slow_fetch_playlists():
        # suspend so the second refresh starts while the first is mid-build
        await asyncio.sleep(0)
        return await fetch_playlists()

    monkeypatch.setattr(cloud, "fetch_playlists", _slow_fetch_playlists)

    async def _run():
        results = await asyncio.gather(engine.playlists.refresh(), engine.playlists.refresh())
        await engine.background.drain()
        return results

    assert asyncio.run(_run()) == [True, False]
    assert len(cloud.called("fetch_playlists")) == 1
    assert len(cloud.called("fetch_user")) == 1
    assert engine.state.building_playlists is False


@pytest.mark.unit
def test_raw_playlists_fetched_once_until_caches_cleared(engine, cloud):
    cloud.user = premium_user()
    cloud.playlists = _playlists("Focus")

    async def _run():
        await _refresh_and_settle(engine)
        await _refresh_and_settle(engine)
        await _refresh_and_settle(engine, clear=True)

    asyncio.run(_run())

    assert len(cloud.called("fetch_playlists")) == 2


@pytest.mark.unit
def test_failed_sub_fetch_degrades_to_empty(engine, cloud):
    cloud.user = premium_user()
    cloud.playlists = _playlists("Focus")
    cloud.failing_fetches.update({"fetch_liked_songs", "fetch_devices"})

    assert asyncio.run(_refresh_and_settle(engine)) is True

    assert engine.state.liked_songs == []
    assert engine.state.devices == []
    assert "pl-focus" in _ids(engine.state.cloud_items)


@pytest.mark.unit
def test_build_failure_still_clears_guard(engine, cloud, monkeypatch):
    async def _boom(force=False):
        raise RuntimeError("boom")

    monkeypatch.setattr(engine.playlists, "load_raw_playlists", _boom)

    with pytest.raises(RuntimeError):
        asyncio.run(engine.playlists.refresh())
    assert engine.state.building_playlists is False


@pytest.mark.unit
def test_alphabetic_sort_is_case_insensitive(engine, cloud):
    cloud.user = premium_user()
    cloud.playlists = _playlists("beta", "Alpha", "gamma")
    engine.state.sort_alphabetically = True

    asyncio.run(_refresh_and_settle(engine))

    names = [item.name for item in engine.state.cloud_items if isinstance(item, Playlist) and item.id.startswith("pl-")]
    assert names == ["Alpha", "beta", "gamma"]


@pytest.mark.unit
def test_first_build_collects_recommendation_seeds(engine, cloud):
    cloud.user = premium_user()
    cloud.liked = make_tracks("L1", "L2")
    cloud.playlists = _playlists("Focus")
    cloud.playlist_tracks = {"pl-focus": make_tracks("F1", "L1")}
    cloud.recommendations = make_tracks("R1", "R2")

    asyncio.run(_refresh_and_settle(engine))

    assert engine.state.seed_track_ids == ["L1", "L2", "F1"]
    assert cloud.called("fetch_recommendations")[0][1] == (["L1", "L2", "F1"],)
    assert [t.kind for t in engine.state.recommendation_tracks] == ["recommendation", "recommendation"]
    assert engine.state.get_playlist("Recommendations") is not None


@pytest.mark.unit
def test_playlist_tracks_are_cached_and_annotated(engine, cloud):
    cloud.playlist_tracks = {"pl-focus": make_tracks("A", "B")}
    engine.state.set_running_track(Track(id="B", status=TrackStatus.PLAYING))

    async def _run():
        first = await engine.playlists.get_playlist_tracks("pl-focus")
        second = await engine.playlists.get_playlist_tracks("pl-focus")
        return first, second

    first, second = asyncio.run(_run())

    assert len(cloud.called("fetch_playlist_tracks")) == 1
    assert [t.position for t in second] == [1, 2]
    assert all(t.playlist_id == "pl-focus" for t in second)
    assert [t.status for t in second] == [TrackStatus.NOT_ASSIGNED, TrackStatus.PLAYING]
    assert asyncio.run(engine.playlists.get_playlist_state("pl-focus")) is TrackStatus.PLAYING


@pytest.mark.unit
def test_empty_playlist_tracks_are_cached_until_cleared(engine, cloud):
    async def _run():
        await engine.playlists.get_playlist_tracks("pl-empty")
        await engine.playlists.get_playlist_tracks("pl-empty")
        engine.state.clear_playlist_tracks("pl-empty")
        return await engine.playlists.get_playlist_tracks("pl-empty")

    assert asyncio.run(_run()) == []
    assert len(cloud.called("fetch_playlist_tracks")) == 2


@pytest.mark.unit
def test_liked_songs_tracks_come_from_cache_without_leaking_back_references(engine, cloud):
    engine.state.liked_songs = make_tracks("A", "B")

    tracks = asyncio.run(engine.playlists.get_playlist_tracks(LIKED_SONGS_PLAYLIST_ID))

    assert [t.id for t in tracks] == ["A", "B"]
    assert all(t.playlist_id == LIKED_SONGS_PLAYLIST_ID for t in tracks)
    assert all(t.playlist_id is None for t in engine.state.liked_songs)
    assert cloud.called("fetch_playlist_tracks") == []


@pytest.mark.unit
def test_current_items_reregisters_playlists(engine, cloud):
    cloud.user = premium_user()
    cloud.playlists = _playlists("Focus")
    asyncio.run(_refresh_and_settle(engine))
    engine.state.playlist_map.clear()

    items = engine.playlists.current_items()

    assert engine.state.get_playlist("pl-focus") is not None
    assert any(isinstance(item, ActionButton) for item in items)
