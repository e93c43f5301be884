class PlaybackError(Exception):
    """Base class for playback engine failures."""
    pass


class ServiceUnavailable(PlaybackError):
    """The backend or app service is offline; the operation was aborted."""
    pass


class BackendCallFailed(PlaybackError):
    """A single backend command failed."""

    def __init__(self, message: str, backend: str = "", command: str = "") -> None:
        super().__init__(message)
        self.backend = backend
        self.command = command


class NoDeviceFound(PlaybackError):
    """Device discovery exhausted its budget without finding a device."""
    pass


class NotFound(PlaybackError):
    """A navigation or lookup found no matching track or playlist."""
    pass


__all__ = [
    "PlaybackError",
    "ServiceUnavailable",
    "BackendCallFailed",
    "NoDeviceFound",
    "NotFound",
]
