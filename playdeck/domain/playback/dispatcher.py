#!/usr/bin/env python
"""
Routes single playback commands to a backend and device.

Backend choice is one deterministic rule (`resolve_backend`); the call itself
goes through the backend mapping, never through per-call branching. Every
failure becomes a user notice and every success schedules a short-delay
reconciliation so the running track catches up with the backend.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

from playdeck.core.events import PLAYLISTS_CHANGED, Notifier
from playdeck.core.runner import BackgroundTasks
from playdeck.core.state import SharedStateStore
from playdeck.models import BackendKind, Device, DeviceType, Track
from playdeck.observability.metrics import record_command

from .backends import CommandResult, PlaybackBackend
from .errors import BackendCallFailed

logger = logging.getLogger(__name__)

Reconcile = Callable[[], Awaitable[Any]]

TRANSPORT_COMMANDS = ("play", "pause", "next", "previous")
MAX_CONTEXT_TRACKS = 50


class CommandDispatcher:
    def __init__(
        self,
        state: SharedStateStore,
        backends: Dict[BackendKind, PlaybackBackend],
        notifier: Notifier,
        *,
        is_mac: bool = False,
        is_windows: bool = False,
        reconcile_delay: float = 1.0,
        reconcile: Optional[Reconcile] = None,
        background: Optional[BackgroundTasks] = None,
    ) -> None:
        self.state = state
        self.backends = backends
        self.notifier = notifier
        self.is_mac = is_mac
        self.is_windows = is_windows
        self.reconcile_delay = reconcile_delay
        self._reconcile = reconcile
        self.background = background if background is not None else BackgroundTasks()

    def set_reconcile(self, reconcile: Optional[Reconcile]) -> None:
        self._reconcile = reconcile

    # --- resolution --------------------------------------------------------

    def backend(self, kind: BackendKind) -> PlaybackBackend:
        try:
            return self.backends[kind]
        except KeyError:
            raise BackendCallFailed(f"No {kind.value} player is configured", backend=kind.value) from None

    def resolve_backend(self, requested: Optional[BackendKind] = None) -> BackendKind:
        """Pick the backend that should receive the next command."""
        if self.state.active_backend is BackendKind.LOCAL_DESKTOP:
            return BackendKind.LOCAL_DESKTOP
        if requested is BackendKind.CLOUD_DESKTOP:
            return BackendKind.CLOUD_DESKTOP
        # web playback control needs premium; mac can fall back to scripting the desktop app
        if self.is_mac and not self.state.is_premium:
            return BackendKind.CLOUD_DESKTOP
        return BackendKind.CLOUD_WEB

    def player_for_playback(self) -> BackendKind:
        return self.resolve_backend()

    @property
    def uses_web_playback(self) -> bool:
        return self.state.is_premium or not self.is_mac

    @staticmethod
    def resolve_device(devices: Sequence[Device]) -> Optional[Device]:
        """Prefer the active device, then the first computer, else none."""
        if not devices:
            return None
        for device in devices:
            if device.is_active:
                return device
        for device in devices:
            if device.type is DeviceType.COMPUTER:
                return device
        return None

    def device_id(self, devices: Optional[Sequence[Device]] = None) -> Optional[str]:
        device = self.resolve_device(self.state.devices if devices is None else devices)
        return device.id if device else None

    # --- issuing -----------------------------------------------------------

    async def issue(self, kind: BackendKind, command: str, *args: Any, reconcile: bool = True, **kwargs: Any) -> CommandResult:
        """Run one backend operation and convert any failure to a notice."""
        try:
            backend = self.backend(kind)
            operation = getattr(backend, command)
            result: CommandResult = await operation(*args, **kwargs)
        except BackendCallFailed as exc:
            result = CommandResult.failure(str(exc))
        except Exception as exc:
            logger.error("Unexpected error during %s on %s: %s", command, kind.value, exc, exc_info=True)
            result = CommandResult.failure(str(exc) or exc.__class__.__name__)

        record_command(kind.value, command, result.ok)
        if result.ok:
            logger.info("Issued %s on %s", command, kind.value)
            if reconcile:
                self.schedule_reconcile()
            return result

        logger.warning("%s on %s failed: %s", command, kind.value, result.message)
        if result.access_expired:
            self._handle_access_expired()
        else:
            self.notifier.error(f"Unable to {command.replace('_', ' ')}. {result.message or ''}".strip())
        return result

    def _handle_access_expired(self) -> None:
        self.state.set_connected(False)
        self.notifier.error("Your Spotify access has expired. Please reconnect your account.")
        self.notifier.notify(PLAYLISTS_CHANGED)

    async def transport(self, command: str, kind: Optional[BackendKind] = None) -> CommandResult:
        if command not in TRANSPORT_COMMANDS:
            raise ValueError(f"unknown transport command {command!r}")
        target = kind or self.player_for_playback()
        device_id = self.device_id() if target is BackendKind.CLOUD_WEB else None
        return await self.issue(target, command, device_id=device_id)

    async def play_track(self, track_id: str, kind: BackendKind, device_id: Optional[str] = None) -> CommandResult:
        return await self.issue(kind, "play_track", track_id, device_id=device_id)

    async def play_playlist(
        self,
        playlist_id: str,
        track_id: Optional[str],
        kind: BackendKind,
        device_id: Optional[str] = None,
    ) -> CommandResult:
        return await self.issue(kind, "play_playlist", playlist_id, track_id=track_id, device_id=device_id)

    async def play_tracks(self, track_ids: List[str], offset: int, device_id: Optional[str] = None) -> CommandResult:
        ids = list(track_ids)[:MAX_CONTEXT_TRACKS]
        offset = offset if 0 <= offset < len(ids) else 0
        return await self.issue(BackendKind.CLOUD_WEB, "play_tracks", ids, offset=offset, device_id=device_id)

    async def play_track_on_best_path(self, track: Track, devices: Optional[Sequence[Device]] = None) -> CommandResult:
        """Play a single track on the web player when a device exists, else the desktop app."""
        devices = self.state.devices if devices is None else devices
        if (self.state.is_premium or self.is_windows) and devices:
            return await self.play_track(track.id, BackendKind.CLOUD_WEB, self.device_id(devices))
        if not self.is_windows and self.is_mac:
            return await self.play_track(track.id, BackendKind.CLOUD_DESKTOP)
        # no device to target; let the service pick its last active one
        return await self.play_track(track.id, BackendKind.CLOUD_WEB)

    async def transfer_to_computer_device(self, device: Optional[Device] = None) -> Optional[CommandResult]:
        if device is None:
            device = next((d for d in self.state.devices if d.type is DeviceType.COMPUTER), None)
        if device is None:
            logger.debug("No computer device to transfer playback to")
            return None
        return await self.issue(BackendKind.CLOUD_WEB, "transfer_playback", device.id)

    async def launch(self, kind: BackendKind, options: Optional[Dict[str, Any]] = None) -> CommandResult:
        """Launch a player; a failed desktop launch falls back to the web player."""
        result = await self.issue(kind, "launch", options or {}, reconcile=False)
        if kind is BackendKind.CLOUD_DESKTOP and not result.ok and "failed" in (result.message or "").lower():
            logger.info("Desktop launch failed; falling back to the web player")
            result = await self.issue(BackendKind.CLOUD_WEB, "launch", options or {}, reconcile=False)
        return result

    # --- reconciliation ----------------------------------------------------

    def schedule_reconcile(self, delay: Optional[float] = None) -> Optional[asyncio.Task]:
        if self._reconcile is None:
            return None
        wait = self.reconcile_delay if delay is None else delay

        async def _later() -> None:
            await asyncio.sleep(wait)
            try:
                await self._reconcile()
            except Exception as exc:
                logger.warning("Reconciliation after command failed: %s", exc, exc_info=True)

        return self.background.spawn(_later(), name="reconcile")


__all__ = ["CommandDispatcher", "TRANSPORT_COMMANDS", "MAX_CONTEXT_TRACKS"]
