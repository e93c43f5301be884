"""Playback orchestration and state reconciliation."""

from .backends import CommandResult, PlaybackBackend
from .discovery import DeviceDiscoveryRetrier, DiscoveryOutcome, DiscoveryState
from .dispatcher import CommandDispatcher
from .errors import BackendCallFailed, NoDeviceFound, NotFound, PlaybackError, ServiceUnavailable
from .items import ProviderItems
from .navigator import LikedSongsNavigator
from .orchestrator import PlaybackOrchestrator, PlayOutcome
from .playlists import PlaylistCacheBuilder
from .reconciler import PlaybackStateReconciler
from .recommendations import RecommendationSeeds

__all__ = [
    "CommandResult",
    "PlaybackBackend",
    "DeviceDiscoveryRetrier",
    "DiscoveryOutcome",
    "DiscoveryState",
    "CommandDispatcher",
    "BackendCallFailed",
    "NoDeviceFound",
    "NotFound",
    "PlaybackError",
    "ServiceUnavailable",
    "ProviderItems",
    "LikedSongsNavigator",
    "PlaybackOrchestrator",
    "PlayOutcome",
    "PlaylistCacheBuilder",
    "PlaybackStateReconciler",
    "RecommendationSeeds",
]
