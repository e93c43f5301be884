#!/usr/bin/env python
"""
Engine composition.

`build_engine` wires one store, one notifier and one set of backends into the
playback services. Nothing here is a module-level singleton: the Flask app
factory builds an engine per app and tests build their own with fakes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from playdeck.core import (
    BackgroundTasks,
    BrokerPublisher,
    EventPublisher,
    LoopRunner,
    Notifier,
    SharedStateStore,
    StateEventBroker,
)
from playdeck.domain.playback import (
    CommandDispatcher,
    DeviceDiscoveryRetrier,
    PlaybackBackend,
    PlaybackOrchestrator,
    PlaybackStateReconciler,
    PlaylistCacheBuilder,
    ProviderItems,
)
from playdeck.domain.playback.orchestrator import PlayerChooser
from playdeck.infrastructure import (
    AppleScriptRunner,
    AppServiceClient,
    CloudDesktopBackend,
    CloudWebBackend,
    LocalDesktopBackend,
)
from playdeck.models import BackendKind
from playdeck.settings import EngineSettings

logger = logging.getLogger(__name__)


@dataclass
class PlaybackEngine:
    settings: EngineSettings
    broker: StateEventBroker
    notifier: Notifier
    state: SharedStateStore
    backends: Dict[BackendKind, PlaybackBackend]
    background: BackgroundTasks
    dispatcher: CommandDispatcher
    playlists: PlaylistCacheBuilder
    reconciler: PlaybackStateReconciler
    discovery: DeviceDiscoveryRetrier
    orchestrator: PlaybackOrchestrator
    app_service: Any = None

    def start_timers(self, runner: LoopRunner) -> None:
        """Register the two periodic polls; they stop only with the runner."""
        runner.every(self.settings.gather_interval, self.reconciler.gather_music_info, name="gather-music-info")
        runner.every(self.settings.track_end_interval, self.reconciler.track_end_check, name="track-end-check")


def default_backends(settings: EngineSettings) -> Dict[BackendKind, PlaybackBackend]:
    scripts = AppleScriptRunner()
    return {
        BackendKind.CLOUD_WEB: CloudWebBackend(settings),
        BackendKind.CLOUD_DESKTOP: CloudDesktopBackend(scripts),
        BackendKind.LOCAL_DESKTOP: LocalDesktopBackend(scripts),
    }


def default_app_service(settings: EngineSettings) -> Any:
    return AppServiceClient(
        settings.app_service_url,
        token=settings.app_service_token,
        timeout=settings.app_service_timeout,
    )


def build_engine(
    settings: EngineSettings,
    *,
    backends: Optional[Dict[BackendKind, PlaybackBackend]] = None,
    app_service: Any = None,
    broker: Optional[StateEventBroker] = None,
    publisher: Optional[EventPublisher] = None,
    connected: Optional[bool] = None,
    chooser: Optional[PlayerChooser] = None,
) -> PlaybackEngine:
    """Wire the playback services; missing collaborators get their real implementation."""
    broker = broker or StateEventBroker()
    notifier = Notifier(publisher or BrokerPublisher(broker))
    state = SharedStateStore(listener=notifier.notify)
    state.sort_alphabetically = settings.sort_alphabetically

    backends = backends if backends is not None else default_backends(settings)
    if app_service is None:
        app_service = default_app_service(settings)

    if connected is None:
        has_token = getattr(backends.get(BackendKind.CLOUD_WEB), "has_token", None)
        connected = bool(has_token()) if callable(has_token) else False
    state.set_connected(connected)
    logger.info("Cloud account connected: %s (platform %s)", connected, settings.platform)

    background = BackgroundTasks()
    items = ProviderItems()

    dispatcher = CommandDispatcher(
        state,
        backends,
        notifier,
        is_mac=settings.is_mac,
        is_windows=settings.is_windows,
        reconcile_delay=settings.reconcile_delay,
        background=background,
    )
    playlists = PlaylistCacheBuilder(
        state,
        backends,
        notifier,
        items=items,
        app_service=app_service,
        background=background,
        is_mac=settings.is_mac,
        show_local_launch_button=settings.show_local_launch_button,
        curated_playlist_id=settings.curated_playlist_id,
    )
    reconciler = PlaybackStateReconciler(
        state,
        backends,
        notifier,
        playlists,
        is_mac=settings.is_mac,
        track_end_interval=settings.track_end_interval,
        background=background,
    )
    dispatcher.set_reconcile(reconciler.gather_music_info)

    discovery = DeviceDiscoveryRetrier(
        state,
        backends[BackendKind.CLOUD_WEB],
        notifier,
        initial_delay=settings.discovery_initial_delay,
        interval=settings.discovery_interval,
        tries=settings.discovery_tries,
        has_desktop_fallback=settings.is_mac,
    )
    orchestrator = PlaybackOrchestrator(
        state,
        dispatcher,
        playlists,
        reconciler,
        discovery,
        notifier,
        app_service=app_service,
        items=items,
        chooser=chooser,
        like_restore_delay=settings.like_restore_delay,
        background=background,
    )

    return PlaybackEngine(
        settings=settings,
        broker=broker,
        notifier=notifier,
        state=state,
        backends=backends,
        background=background,
        dispatcher=dispatcher,
        playlists=playlists,
        reconciler=reconciler,
        discovery=discovery,
        orchestrator=orchestrator,
        app_service=app_service,
    )


__all__ = ["PlaybackEngine", "build_engine", "default_backends", "default_app_service"]
