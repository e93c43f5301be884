import asyncio

import pytest

from playdeck.core.events import NOTICE, PLAYLISTS_CHANGED
from playdeck.domain.playback import CommandDispatcher, CommandResult
from playdeck.domain.playback.errors import BackendCallFailed
from playdeck.models import BackendKind, Device, DeviceType, Track, TrackStatus
from tests.support.stubs import computer, free_user, premium_user


@pytest.mark.unit
def test_resolve_backend_rules(make_engine, make_settings):
    linux = make_engine().dispatcher
    assert linux.resolve_backend() is BackendKind.CLOUD_WEB
    assert linux.resolve_backend(BackendKind.CLOUD_DESKTOP) is BackendKind.CLOUD_DESKTOP

    mac = make_engine(settings=make_settings(platform="darwin")).dispatcher
    mac.state.set_cloud_user(free_user())
    assert mac.player_for_playback() is BackendKind.CLOUD_DESKTOP
    assert mac.uses_web_playback is False
    mac.state.set_cloud_user(premium_user())
    assert mac.player_for_playback() is BackendKind.CLOUD_WEB
    assert mac.uses_web_playback is True

    mac.state.switch_backend(BackendKind.LOCAL_DESKTOP)
    assert mac.resolve_backend(BackendKind.CLOUD_DESKTOP) is BackendKind.LOCAL_DESKTOP


@pytest.mark.unit
def test_resolve_device_prefers_active_then_first_computer():
    phone = Device(id="phone", name="Phone", type=DeviceType.SMARTPHONE, is_active=True)
    laptop = computer("laptop", active=False)
    desk = computer("desk", active=False)

    assert CommandDispatcher.resolve_device([laptop, phone]).id == "phone"
    assert CommandDispatcher.resolve_device([Device(id="tv", name="TV"), laptop, desk]).id == "laptop"
    assert CommandDispatcher.resolve_device([Device(id="tv", name="TV")]) is None
    assert CommandDispatcher.resolve_device([]) is None


@pytest.mark.unit
def test_transport_on_web_targets_resolved_device(engine, cloud):
    engine.state.set_devices([computer("laptop")], notify=False)

    result = asyncio.run(engine.dispatcher.transport("pause"))

    assert result.ok
    assert cloud.called("pause") == [("pause", (), {"device_id": "laptop"})]


@pytest.mark.unit
def test_transport_rejects_unknown_commands(engine):
    with pytest.raises(ValueError):
        asyncio.run(engine.dispatcher.transport("rewind"))


@pytest.mark.unit
def test_success_schedules_reconciliation(engine, cloud):
    cloud.running = Track(id="T1", status=TrackStatus.PLAYING)

    async def _run():
        await engine.dispatcher.transport("play")
        await engine.background.drain()

    asyncio.run(_run())

    assert cloud.called("fetch_running_track")
    assert engine.state.running_track.id == "T1"


@pytest.mark.unit
def test_failure_becomes_notice_and_leaves_running_track(engine, cloud, events):
    engine.state.set_running_track(Track(id="T1", status=TrackStatus.PLAYING))
    cloud.results["next"] = CommandResult.failure("Player command failed: Restriction violated")

    async def _run():
        result = await engine.dispatcher.transport("next")
        await engine.background.drain()
        return result

    result = asyncio.run(_run())

    assert result.ok is False
    notices = events.of_type(NOTICE)
    assert [n["message"] for n in notices] == ["Unable to next. Player command failed: Restriction violated"]
    assert notices[0]["level"] == "error"
    assert engine.state.running_track.id == "T1"
    assert cloud.called("fetch_running_track") == []


@pytest.mark.unit
def test_raising_backend_is_converted_to_failed_result(engine, cloud, events, monkeypatch):
    async def _explode(device_id=None):
        raise ConnectionError("socket closed")

    monkeypatch.setattr(cloud, "play", _explode)

    result = asyncio.run(engine.dispatcher.transport("play"))

    assert result.ok is False
    assert "socket closed" in events.of_type(NOTICE)[0]["message"]


@pytest.mark.unit
def test_access_expired_disconnects_and_requests_playlist_refresh(engine, cloud, events):
    engine.state.set_cloud_user(premium_user())
    cloud.results["play"] = CommandResult.failure("The access token expired", status=401)

    asyncio.run(engine.dispatcher.transport("play"))

    assert engine.state.connected is False
    assert engine.state.cloud_user is None
    assert PLAYLISTS_CHANGED in events.names()


@pytest.mark.unit
def test_missing_backend_raises_lookup_failure(settings, events):
    from playdeck.core import Notifier, SharedStateStore

    dispatcher = CommandDispatcher(SharedStateStore(), {}, Notifier(events))
    with pytest.raises(BackendCallFailed):
        dispatcher.backend(BackendKind.CLOUD_WEB)

    result = asyncio.run(dispatcher.issue(BackendKind.CLOUD_WEB, "play"))
    assert result.ok is False
    assert events.of_type(NOTICE)


@pytest.mark.unit
def test_play_tracks_caps_list_and_resets_bad_offset(engine, cloud):
    ids = [f"t{i}" for i in range(60)]

    asyncio.run(engine.dispatcher.play_tracks(ids, offset=55, device_id="laptop"))

    name, args, kwargs = cloud.called("play_tracks")[0]
    assert len(args[0]) == 50
    assert kwargs == {"offset": 0, "device_id": "laptop"}


@pytest.mark.unit
def test_desktop_launch_failure_falls_back_to_web(engine, cloud, desktop):
    desktop.results["launch"] = CommandResult.failure("Command failed: open -a Spotify")

    result = asyncio.run(engine.dispatcher.launch(BackendKind.CLOUD_DESKTOP, {"quietly": False}))

    assert result.ok
    assert desktop.called("launch")
    assert cloud.called("launch") == [("launch", ({"quietly": False},), {})]


@pytest.mark.unit
def test_transfer_to_computer_device(engine, cloud):
    phone = Device(id="phone", name="Phone", type=DeviceType.SMARTPHONE, is_active=True)
    engine.state.set_devices([phone, computer("laptop", active=False)], notify=False)

    asyncio.run(engine.dispatcher.transfer_to_computer_device())

    assert cloud.called("transfer_playback") == [("transfer_playback", ("laptop",), {})]


@pytest.mark.unit
def test_transfer_without_computer_device_is_a_no_op(engine, cloud):
    assert asyncio.run(engine.dispatcher.transfer_to_computer_device()) is None
    assert cloud.called("transfer_playback") == []


@pytest.mark.unit
def test_best_path_uses_desktop_on_mac_without_premium(make_engine, make_settings, desktop):
    engine = make_engine(settings=make_settings(platform="darwin"))
    engine.state.set_cloud_user(free_user())

    asyncio.run(engine.dispatcher.play_track_on_best_path(Track(id="T1"), [computer()]))

    assert desktop.called("play_track") == [("play_track", ("T1",), {"device_id": None})]
