#!/usr/bin/env python
# config.py
import os
import sys
from typing import List

# This assumes config.py is at the root of your project
basedir = os.path.abspath(os.path.dirname(__file__))


def _get_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _get_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _get_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "t", "yes", "y", "on"}


def _get_csv_list(name: str, default: str) -> List[str]:
    raw = os.getenv(name)
    source = raw if raw is not None else default
    return [token.strip() for token in source.split(",") if token and token.strip()]


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'playdeck-dev-secret'

    # Spotify API (cloud web backend)
    SPOTIPY_CLIENT_ID = os.environ.get('SPOTIPY_CLIENT_ID')
    SPOTIPY_CLIENT_SECRET = os.environ.get('SPOTIPY_CLIENT_SECRET')
    SPOTIPY_REDIRECT_URI = os.environ.get('SPOTIPY_REDIRECT_URI', 'http://127.0.0.1:8888/callback')
    SPOTIPY_CACHE_PATH = os.environ.get('SPOTIPY_CACHE_PATH') or os.path.join(basedir, '.spotify_cache')
    SPOTIFY_SCOPES = (
        'user-read-playback-state user-modify-playback-state user-read-currently-playing '
        'user-library-read user-library-modify playlist-read-private playlist-modify-public '
        'playlist-modify-private user-read-email user-read-private'
    )

    # Host app service (like flags, weekly top songs, generated playlists)
    APP_SERVICE_URL = os.getenv('APP_SERVICE_URL', 'https://api.software.com')
    APP_SERVICE_TOKEN = os.getenv('APP_SERVICE_TOKEN')
    APP_SERVICE_TIMEOUT_SECONDS = _get_float('APP_SERVICE_TIMEOUT_SECONDS', 10.0)

    # Platform the desktop backends run on; defaults to the interpreter's platform
    PLATFORM = os.getenv('PLAYDECK_PLATFORM', sys.platform)

    # Device discovery after a player launch
    DEVICE_DISCOVERY_INITIAL_DELAY = _get_float('DEVICE_DISCOVERY_INITIAL_DELAY', 1.5)
    DEVICE_DISCOVERY_INTERVAL = _get_float('DEVICE_DISCOVERY_INTERVAL', 2.0)
    DEVICE_DISCOVERY_TRIES = _get_int('DEVICE_DISCOVERY_TRIES', 7)

    # Eventual-consistency delays
    RECONCILE_DELAY_SECONDS = _get_float('RECONCILE_DELAY_SECONDS', 1.0)
    LIKE_RESTORE_DELAY_SECONDS = _get_float('LIKE_RESTORE_DELAY_SECONDS', 0.5)

    # Periodic polls
    CURRENTLY_PLAYING_CHECK_SECONDS = _get_float('CURRENTLY_PLAYING_CHECK_SECONDS', 5.0)
    TRACK_END_CHECK_SECONDS = _get_float('TRACK_END_CHECK_SECONDS', 5.0)

    # Playlist tree
    SHOW_LOCAL_LAUNCH_BUTTON = _get_bool('SHOW_LOCAL_LAUNCH_BUTTON', True)
    SORT_PLAYLISTS_ALPHABETICALLY = _get_bool('SORT_PLAYLISTS_ALPHABETICALLY', False)
    # Curated editorial playlist surfaced above the user's own playlists
    CURATED_PLAYLIST_ID = os.getenv('CURATED_PLAYLIST_ID', '6jCkTED0V5NEuM8sKbGG1Z')

    # Runtime behavior
    DEBUG = _get_bool('DEBUG', False)
    # Control console logging; when disabled, logs go only to file
    ENABLE_CONSOLE_LOGS = _get_bool('ENABLE_CONSOLE_LOGS', False)
    CORS_ALLOWED_ORIGINS = _get_csv_list('CORS_ALLOWED_ORIGINS', 'http://localhost:3000,http://127.0.0.1:3000')
    PORT = _get_int('PORT', 5000)
