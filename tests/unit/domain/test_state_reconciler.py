import asyncio

import pytest

from playdeck.core.events import SELECTION_CHANGED
from playdeck.models import BackendKind, Track, TrackStatus
from tests.support.stubs import make_tracks


@pytest.mark.unit
def test_gather_notifies_only_when_running_track_changes(engine, cloud, events):
    cloud.running = Track(id="T1", status=TrackStatus.PLAYING)

    async def _run():
        await engine.reconciler.gather_music_info()
        await engine.reconciler.gather_music_info()
        cloud.running = Track(id="T1", status=TrackStatus.PAUSED)
        await engine.reconciler.gather_music_info()

    asyncio.run(_run())

    assert len(events.of_type(SELECTION_CHANGED)) == 2
    assert engine.state.running_track.status is TrackStatus.PAUSED


@pytest.mark.unit
def test_gather_failure_keeps_previous_running_track(engine, cloud, events):
    engine.state.set_running_track(Track(id="T1", status=TrackStatus.PLAYING))
    cloud.failing_fetches.add("fetch_running_track")

    track = asyncio.run(engine.reconciler.gather_music_info())

    assert track.id == "T1"
    assert engine.state.running_track.id == "T1"
    assert events.of_type(SELECTION_CHANGED) == []


@pytest.mark.unit
def test_nothing_playing_resets_running_track(engine, cloud):
    engine.state.set_running_track(Track(id="T1", status=TrackStatus.PLAYING))
    cloud.running = None

    track = asyncio.run(engine.reconciler.gather_music_info())

    assert track.id == ""
    assert track.status is TrackStatus.NOT_ASSIGNED


@pytest.mark.unit
def test_gather_refreshes_cached_track_statuses(engine, cloud):
    engine.state.playlist_track_map["pl-1"] = make_tracks("A", "B")
    cloud.running = Track(id="B", status=TrackStatus.PLAYING)

    asyncio.run(engine.reconciler.gather_music_info())

    statuses = [t.status for t in engine.state.playlist_track_map["pl-1"]]
    assert statuses == [TrackStatus.NOT_ASSIGNED, TrackStatus.PLAYING]


@pytest.mark.unit
def test_source_selection(make_engine, make_settings, cloud, desktop, local):
    connected = make_engine()
    assert connected.reconciler.source() is cloud
    connected.state.switch_backend(BackendKind.LOCAL_DESKTOP)
    assert connected.reconciler.source() is local

    assert make_engine(connected=False).reconciler.source() is None
    mac = make_engine(settings=make_settings(platform="darwin"), connected=False)
    assert mac.reconciler.source() is desktop


@pytest.mark.unit
def test_disconnected_linux_gather_is_a_no_op(make_engine, cloud):
    engine = make_engine(connected=False)
    asyncio.run(engine.reconciler.gather_music_info())
    assert cloud.called("fetch_running_track") == []


@pytest.mark.unit
def test_track_end_check_schedules_one_gather_near_the_end(engine, cloud):
    engine.reconciler.end_grace = 0
    engine.state.set_running_track(
        Track(id="T1", status=TrackStatus.PLAYING, duration_ms=200_000, progress_ms=200_000)
    )
    cloud.running = Track(id="T2", status=TrackStatus.PLAYING)

    async def _run():
        first = await engine.reconciler.track_end_check()
        second = await engine.reconciler.track_end_check()
        await engine.background.drain()
        return first, second

    assert asyncio.run(_run()) == (True, False)
    assert len(cloud.called("fetch_running_track")) == 1
    assert engine.state.running_track.id == "T2"


@pytest.mark.unit
@pytest.mark.parametrize(
    "track",
    [
        Track(id=""),
        Track(id="T1", status=TrackStatus.PAUSED, duration_ms=1000, progress_ms=900),
        Track(id="T1", status=TrackStatus.PLAYING),
        Track(id="T1", status=TrackStatus.PLAYING, duration_ms=300_000, progress_ms=1_000),
    ],
)
def test_track_end_check_skips_when_not_near_the_end(engine, track):
    engine.state.set_running_track(track)
    assert asyncio.run(engine.reconciler.track_end_check()) is False
