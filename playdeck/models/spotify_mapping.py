#!/usr/bin/env python
"""
Spotify Web API payload -> model conversion utilities.

The web backend hands raw spotipy dictionaries to these helpers so the rest
of the engine only ever sees `Track`, `Playlist`, `Device` and `CloudUser`.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

from .dto import BackendKind, CloudUser, Device, DeviceType, Playlist, Track, TrackStatus


def _first_artist_name(payload: Dict[str, Any]) -> Optional[str]:
    if payload.get("artist"):
        return payload["artist"]
    artists = payload.get("artists") or []
    if artists:
        first = artists[0]
        return first.get("name") if isinstance(first, dict) else str(first)
    return None


def track_from_payload(
    payload: Dict[str, Any],
    position: int = 0,
    backend: BackendKind = BackendKind.CLOUD_WEB,
) -> Optional[Track]:
    """Build a Track from a track object; playlist/library wrappers are unwrapped."""
    if payload and "track" in payload and isinstance(payload["track"], dict):
        payload = payload["track"]
    if not payload or not payload.get("id"):
        return None
    return Track(
        id=payload["id"],
        uri=payload.get("uri"),
        name=payload.get("name") or "",
        artist=_first_artist_name(payload),
        popularity=payload.get("popularity"),
        backend=backend,
        position=position,
        duration_ms=int(payload.get("duration_ms") or 0),
    )


def tracks_from_items(items: Iterable[Dict[str, Any]], backend: BackendKind = BackendKind.CLOUD_WEB) -> List[Track]:
    tracks: List[Track] = []
    for payload in items:
        track = track_from_payload(payload, position=len(tracks) + 1, backend=backend)
        if track is not None:
            tracks.append(track)
    return tracks


def playlist_from_payload(payload: Dict[str, Any], backend: BackendKind = BackendKind.CLOUD_WEB) -> Optional[Playlist]:
    if not payload or not payload.get("id"):
        return None
    tracks = payload.get("tracks") or {}
    total = tracks.get("total") if isinstance(tracks, dict) else None
    return Playlist(
        id=payload["id"],
        name=payload.get("name") or "",
        backend=backend,
        track_count=int(total or 0),
    )


def device_from_payload(payload: Dict[str, Any]) -> Optional[Device]:
    if not payload or not payload.get("id"):
        return None
    return Device(
        id=payload["id"],
        name=payload.get("name") or "",
        type=DeviceType.parse(payload.get("type")),
        is_active=bool(payload.get("is_active")),
    )


def user_from_payload(payload: Dict[str, Any]) -> CloudUser:
    return CloudUser(
        id=payload.get("id"),
        email=payload.get("email"),
        product=payload.get("product"),
    )


def running_track_from_playback(payload: Optional[Dict[str, Any]]) -> Optional[Track]:
    """Map a currently-playing payload to a Track carrying status and progress."""
    if not payload or not payload.get("item"):
        return None
    track = track_from_payload(payload["item"])
    if track is None:
        return None
    track.status = TrackStatus.PLAYING if payload.get("is_playing") else TrackStatus.PAUSED
    track.progress_ms = int(payload.get("progress_ms") or 0)
    return track


__all__ = [
    "track_from_payload",
    "tracks_from_items",
    "playlist_from_payload",
    "device_from_payload",
    "user_from_payload",
    "running_track_from_playback",
]
