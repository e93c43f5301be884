#!/usr/bin/env python
"""
Device discovery after a player launch.

A freshly launched player needs a moment before the cloud service reports
it as a device. The retrier waits, then polls the device list with a fixed
budget; whatever the outcome, the continuation runs exactly once so callers
can proceed without a device id instead of blocking.
"""

from __future__ import annotations

import asyncio
import enum
import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, List, Optional

from playdeck.core.events import DEVICES_CHANGED, Notifier
from playdeck.core.state import SharedStateStore
from playdeck.models import Device
from playdeck.observability.metrics import observe_discovery

from .backends import PlaybackBackend
from .errors import NoDeviceFound

logger = logging.getLogger(__name__)

Continuation = Callable[[], Any]
Sleep = Callable[[float], Awaitable[Any]]

NO_DEVICE_MESSAGE = (
    "Unable to detect a connected Spotify device. "
    "Please make sure you are logged into your account."
)


class DiscoveryState(str, enum.Enum):
    LAUNCHING = "launching"
    POLLING = "polling"
    FOUND = "found"
    GAVE_UP = "gave_up"


@dataclass
class DiscoveryOutcome:
    state: DiscoveryState
    polls: int = 0
    devices: List[Device] = field(default_factory=list)
    error: Optional[NoDeviceFound] = None

    @property
    def found(self) -> bool:
        return self.state is DiscoveryState.FOUND


class DeviceDiscoveryRetrier:
    def __init__(
        self,
        state: SharedStateStore,
        device_source: PlaybackBackend,
        notifier: Notifier,
        *,
        initial_delay: float = 1.5,
        interval: float = 2.0,
        tries: int = 7,
        has_desktop_fallback: bool = False,
        sleep: Optional[Sleep] = None,
    ) -> None:
        self.state = state
        self.device_source = device_source
        self.notifier = notifier
        self.initial_delay = initial_delay
        self.interval = interval
        self.tries = max(1, tries)
        self.has_desktop_fallback = has_desktop_fallback
        self._sleep: Sleep = sleep or asyncio.sleep
        self.current_state = DiscoveryState.GAVE_UP

    async def _poll(self) -> List[Device]:
        try:
            return await self.device_source.fetch_devices(force_refresh=True)
        except Exception as exc:
            logger.warning("Device poll failed: %s", exc, exc_info=True)
            return []

    async def run(self, continuation: Optional[Continuation] = None, tries: Optional[int] = None) -> DiscoveryOutcome:
        """Poll for a device, then run the continuation once."""
        budget = max(1, tries if tries is not None else self.tries)
        self.current_state = DiscoveryState.LAUNCHING
        await self._sleep(self.initial_delay)

        self.current_state = DiscoveryState.POLLING
        outcome = DiscoveryOutcome(state=DiscoveryState.POLLING)
        while outcome.polls < budget:
            await self._sleep(self.interval)
            devices = await self._poll()
            outcome.polls += 1
            self.state.set_devices(devices, notify=False)
            if devices:
                outcome.state = DiscoveryState.FOUND
                outcome.devices = devices
                break
            logger.debug("No devices yet (poll %s of %s)", outcome.polls, budget)
        else:
            outcome.state = DiscoveryState.GAVE_UP

        self.current_state = outcome.state
        observe_discovery(outcome.state.value, outcome.polls)

        if outcome.found:
            logger.info("Device discovered after %s poll(s)", outcome.polls)
        else:
            logger.warning("No device discovered after %s poll(s)", outcome.polls)
            if not self.has_desktop_fallback:
                outcome.error = NoDeviceFound(NO_DEVICE_MESSAGE)
                self.notifier.info(str(outcome.error))

        self.notifier.notify(DEVICES_CHANGED)

        if continuation is not None:
            result = continuation()
            if inspect.isawaitable(result):
                await result
        return outcome


__all__ = [
    "DeviceDiscoveryRetrier",
    "DiscoveryOutcome",
    "DiscoveryState",
    "NO_DEVICE_MESSAGE",
]
