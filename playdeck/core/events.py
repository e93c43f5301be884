#!/usr/bin/env python
"""
Outward engine notifications.

The engine emits a handful of named notifications (selection changed,
loading, playlists/devices need refresh, user notices). A broker fans them
out to SSE subscribers; the `Notifier` gives engine components typed helpers
so they never build event dictionaries by hand.
"""

from __future__ import annotations

import json
import logging
import threading
import time
from queue import Empty, Queue
from typing import Dict, Iterator, Optional

logger = logging.getLogger(__name__)

SELECTION_CHANGED = "selection_changed"
LOADING = "loading"
PLAYLISTS_CHANGED = "playlists_changed"
DEVICES_CHANGED = "devices_changed"
NOTICE = "notice"
LAUNCH_REQUIRED = "launch_required"


class StateEventBroker:
    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._subscribers: Dict[int, Queue] = {}
        self._next_id = 1
        self._last_event: Optional[dict] = None

    def publish(self, event: dict) -> None:
        with self._lock:
            self._last_event = event
            for q in self._subscribers.values():
                q.put(event)

    def snapshot(self) -> Optional[dict]:
        with self._lock:
            return dict(self._last_event) if self._last_event else None

    def subscribe(self, heartbeat_seconds: int = 15) -> Iterator[str]:
        """Return an iterator yielding SSE-formatted lines."""
        with self._lock:
            sid = self._next_id
            self._next_id += 1
            q: Queue = Queue()
            self._subscribers[sid] = q

        last_beat = time.time()
        try:
            while True:
                try:
                    ev = q.get(timeout=1.0)
                    payload = json.dumps(ev, ensure_ascii=False)
                    yield f"event: {ev.get('type', 'message')}\n" + f"data: {payload}\n\n"
                except Empty:
                    now = time.time()
                    if now - last_beat >= heartbeat_seconds:
                        last_beat = now
                        yield "event: heartbeat\n" + f"data: {{\"ts\": {int(now)} }}\n\n"
        finally:
            with self._lock:
                self._subscribers.pop(sid, None)


class EventPublisher:
    def publish(self, event: dict) -> None:  # pragma: no cover - interface
        raise NotImplementedError


class BrokerPublisher(EventPublisher):
    def __init__(self, broker: StateEventBroker) -> None:
        self._broker = broker

    def publish(self, event: dict) -> None:
        self._broker.publish(event)


class Notifier:
    """Typed notification helpers on top of an EventPublisher."""

    def __init__(self, publisher: Optional[EventPublisher] = None) -> None:
        self._publisher = publisher

    def notify(self, name: str, **payload) -> None:
        event = {"type": name, "ts": time.time()}
        event.update(payload)
        if self._publisher is None:
            logger.debug("Dropping %s notification; no publisher attached", name)
            return
        try:
            self._publisher.publish(event)
        except Exception as exc:
            logger.warning("Failed to publish %s notification: %s", name, exc, exc_info=True)

    def loading(self, is_loading: bool) -> None:
        self.notify(LOADING, loading=is_loading)

    def info(self, message: str) -> None:
        logger.info("Notice: %s", message)
        self.notify(NOTICE, message=message, level="info")

    def error(self, message: str) -> None:
        logger.warning("Error notice: %s", message)
        self.notify(NOTICE, message=message, level="error")


__all__ = [
    "SELECTION_CHANGED",
    "LOADING",
    "PLAYLISTS_CHANGED",
    "DEVICES_CHANGED",
    "NOTICE",
    "LAUNCH_REQUIRED",
    "StateEventBroker",
    "EventPublisher",
    "BrokerPublisher",
    "Notifier",
]
