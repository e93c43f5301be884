import asyncio

import pytest

from playdeck.models import Track, TrackStatus
from tests.support.stubs import computer, premium_user


@pytest.mark.unit
def test_components_share_the_engine_task_set(engine):
    assert engine.dispatcher.background is engine.background
    assert engine.playlists.background is engine.background
    assert engine.reconciler.background is engine.background
    assert engine.orchestrator.background is engine.background


@pytest.mark.unit
def test_engine_drain_waits_for_component_tasks(engine, cloud):
    engine.state.set_cloud_user(premium_user())
    engine.state.set_devices([computer("laptop")], notify=False)
    cloud.running = Track(id="T9", status=TrackStatus.PLAYING)

    async def _run():
        await engine.dispatcher.play_track("T9", engine.dispatcher.player_for_playback(), "laptop")
        pending = len(engine.background)
        await engine.background.drain()
        return pending

    assert asyncio.run(_run()) == 1
    assert cloud.called("fetch_running_track")
    assert engine.state.running_track.id == "T9"
