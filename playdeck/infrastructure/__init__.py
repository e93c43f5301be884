"""Adapters for the music backends and the host app service."""

from .app_service import AppServiceClient
from .applescript import AppleScriptRunner
from .music_desktop import LocalDesktopBackend
from .spotify_desktop import CloudDesktopBackend
from .spotify_web import CloudWebBackend

__all__ = [
    "AppServiceClient",
    "AppleScriptRunner",
    "LocalDesktopBackend",
    "CloudDesktopBackend",
    "CloudWebBackend",
]
