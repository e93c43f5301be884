"""Core primitives shared across engine layers."""

from .events import BrokerPublisher, EventPublisher, Notifier, StateEventBroker
from .runner import BackgroundTasks, EngineNotRunning, LoopRunner
from .state import SharedStateStore

__all__ = [
    "BackgroundTasks",
    "BrokerPublisher",
    "EventPublisher",
    "Notifier",
    "StateEventBroker",
    "EngineNotRunning",
    "LoopRunner",
    "SharedStateStore",
]
