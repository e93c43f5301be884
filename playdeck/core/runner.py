#!/usr/bin/env python
"""
Background asyncio loop hosting the playback engine.

The engine is single-threaded and event driven; HTTP handlers run in their
own threads and hand coroutines over with `submit`. Periodic timers are
registered with `every` and only stop when the runner shuts down.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import logging
import threading
from typing import Any, Awaitable, Callable, List, Optional, Set

logger = logging.getLogger(__name__)


class EngineNotRunning(RuntimeError):
    """Raised when work is submitted before `start` or after `stop`."""


class BackgroundTasks:
    """Fire-and-forget tasks on the running loop, referenced until they finish."""

    def __init__(self) -> None:
        self._tasks: Set[asyncio.Task] = set()

    def __len__(self) -> int:
        return len(self._tasks)

    def spawn(self, coro: Awaitable[Any], name: str = "task") -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        task.add_done_callback(lambda done: _log_task_failure(done, name))
        return task

    async def drain(self) -> None:
        """Wait until every spawned task, including ones spawned meanwhile, is done."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


def _log_task_failure(task: asyncio.Task, name: str) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.warning("Background task %s failed: %s", name, exc, exc_info=exc)


class LoopRunner:
    def __init__(self, name: str = "playdeck-engine") -> None:
        self.name = name
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None
        self._started = threading.Event()
        self._timers: List[concurrent.futures.Future] = []
        self._lock = threading.RLock()

    @property
    def loop(self) -> Optional[asyncio.AbstractEventLoop]:
        return self._loop

    @property
    def running(self) -> bool:
        return bool(self._loop and self._loop.is_running())

    def start(self) -> None:
        with self._lock:
            if self._thread is not None:
                return
            self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
            self._thread.start()
        self._started.wait(timeout=5.0)
        logger.info("Engine loop %s started", self.name)

    def _run(self) -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        self._loop = loop
        loop.call_soon(self._started.set)
        try:
            loop.run_forever()
        finally:
            pending = asyncio.all_tasks(loop)
            for task in pending:
                task.cancel()
            if pending:
                loop.run_until_complete(asyncio.gather(*pending, return_exceptions=True))
            loop.close()
            logger.info("Engine loop %s stopped", self.name)

    def submit(self, coro: Awaitable[Any]) -> concurrent.futures.Future:
        loop = self._loop
        if loop is None or not loop.is_running():
            if asyncio.iscoroutine(coro):
                coro.close()
            raise EngineNotRunning("engine loop is not running")
        return asyncio.run_coroutine_threadsafe(coro, loop)

    def call(self, coro: Awaitable[Any], timeout: Optional[float] = 30.0) -> Any:
        """Submit a coroutine and block the calling thread for its result."""
        return self.submit(coro).result(timeout=timeout)

    def every(self, interval: float, factory: Callable[[], Awaitable[Any]], name: str = "timer") -> None:
        """Run `factory()` every `interval` seconds until shutdown."""

        async def _tick() -> None:
            while True:
                await asyncio.sleep(interval)
                try:
                    await factory()
                except asyncio.CancelledError:
                    raise
                except Exception as exc:
                    logger.warning("Periodic task %s failed: %s", name, exc, exc_info=True)

        self._timers.append(self.submit(_tick()))
        logger.info("Registered periodic task %s every %.1fs", name, interval)

    def stop(self, timeout: float = 5.0) -> None:
        with self._lock:
            loop, thread = self._loop, self._thread
            if loop is None or thread is None:
                return
            for timer in self._timers:
                timer.cancel()
            self._timers = []
            loop.call_soon_threadsafe(loop.stop)
            thread.join(timeout=timeout)
            self._loop = None
            self._thread = None
            self._started.clear()


__all__ = ["BackgroundTasks", "LoopRunner", "EngineNotRunning"]
