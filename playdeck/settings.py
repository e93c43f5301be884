#!/usr/bin/env python
"""
Validated engine settings.

Merges defaults from config.Config with optional runtime overrides and
normalizes the timing knobs the playback engine depends on.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from config import Config


class EngineSettings(BaseModel):
    """Settings consumed by the playback engine and its backends."""

    model_config = ConfigDict(extra="ignore")

    # Spotify credentials
    spotify_client_id: Optional[str] = None
    spotify_client_secret: Optional[str] = None
    spotify_redirect_uri: str = "http://127.0.0.1:8888/callback"
    spotify_cache_path: Optional[str] = None
    spotify_scopes: str = ""

    # Host app service
    app_service_url: str = "https://api.software.com"
    app_service_token: Optional[str] = None
    app_service_timeout: float = 10.0

    platform: str = "linux"

    # Device discovery
    discovery_initial_delay: float = 1.5
    discovery_interval: float = 2.0
    discovery_tries: int = 7

    reconcile_delay: float = 1.0
    like_restore_delay: float = 0.5

    gather_interval: float = 5.0
    track_end_interval: float = 5.0

    show_local_launch_button: bool = True
    sort_alphabetically: bool = False
    curated_playlist_id: str = Field(default="6jCkTED0V5NEuM8sKbGG1Z")

    @property
    def is_mac(self) -> bool:
        return self.platform == "darwin"

    @property
    def is_windows(self) -> bool:
        return self.platform.startswith("win")

    @field_validator("platform", mode="before")
    @classmethod
    def _normalize_platform(cls, value: object) -> str:
        text = str(value or "").strip().lower()
        aliases = {"mac": "darwin", "macos": "darwin", "osx": "darwin", "windows": "win32"}
        return aliases.get(text, text or "linux")

    @field_validator("discovery_tries", mode="before")
    @classmethod
    def _coerce_tries(cls, value: object) -> int:
        try:
            tries = int(value)  # type: ignore[arg-type]
        except (TypeError, ValueError):
            return 7
        return max(1, min(tries, 30))

    @field_validator(
        "discovery_initial_delay",
        "discovery_interval",
        "reconcile_delay",
        "like_restore_delay",
        mode="before",
    )
    @classmethod
    def _non_negative_delay(cls, value: object) -> float:
        try:
            delay = float(value)  # type: ignore[arg-type]
        except (TypeError, ValueError):
            return 0.0
        return max(0.0, delay)

    @field_validator("gather_interval", "track_end_interval", mode="before")
    @classmethod
    def _positive_interval(cls, value: object) -> float:
        try:
            interval = float(value)  # type: ignore[arg-type]
        except (TypeError, ValueError):
            return 5.0
        return interval if interval > 0 else 5.0


def load_engine_settings(overrides: Optional[Dict[str, Any]] = None) -> EngineSettings:
    """Load settings merging config defaults with optional runtime overrides."""
    data: Dict[str, Any] = {
        "spotify_client_id": Config.SPOTIPY_CLIENT_ID,
        "spotify_client_secret": Config.SPOTIPY_CLIENT_SECRET,
        "spotify_redirect_uri": Config.SPOTIPY_REDIRECT_URI,
        "spotify_cache_path": Config.SPOTIPY_CACHE_PATH,
        "spotify_scopes": Config.SPOTIFY_SCOPES,
        "app_service_url": Config.APP_SERVICE_URL,
        "app_service_token": Config.APP_SERVICE_TOKEN,
        "app_service_timeout": Config.APP_SERVICE_TIMEOUT_SECONDS,
        "platform": Config.PLATFORM,
        "discovery_initial_delay": Config.DEVICE_DISCOVERY_INITIAL_DELAY,
        "discovery_interval": Config.DEVICE_DISCOVERY_INTERVAL,
        "discovery_tries": Config.DEVICE_DISCOVERY_TRIES,
        "reconcile_delay": Config.RECONCILE_DELAY_SECONDS,
        "like_restore_delay": Config.LIKE_RESTORE_DELAY_SECONDS,
        "gather_interval": Config.CURRENTLY_PLAYING_CHECK_SECONDS,
        "track_end_interval": Config.TRACK_END_CHECK_SECONDS,
        "show_local_launch_button": Config.SHOW_LOCAL_LAUNCH_BUTTON,
        "sort_alphabetically": Config.SORT_PLAYLISTS_ALPHABETICALLY,
        "curated_playlist_id": Config.CURATED_PLAYLIST_ID,
    }
    if overrides:
        data.update(overrides)
    return EngineSettings.model_validate(data)


__all__ = ["EngineSettings", "load_engine_settings"]
