"""Route blueprints exposed via Flask."""

from .playback import playback_bp
from .playlists import playlists_bp
from .devices import devices_bp
from .events import events_bp
from .health import health_bp

__all__ = [
    "playback_bp",
    "playlists_bp",
    "devices_bp",
    "events_bp",
    "health_bp",
]
