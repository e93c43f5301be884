#!/usr/bin/env python
"""
HTTP client for the host application's service.

The service stores the like flag, serves the weekly top songs and remembers
which cloud playlists were generated for the user. Requests are blocking, so
every public coroutine runs its request in a worker thread. Network failures
are logged and reported as falsy results; they never escape to the engine.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional

import requests

logger = logging.getLogger(__name__)

PING_PATH = "/ping"
LIKED_TRACK_PATH = "/music/liked/track/{track_id}"
TOP_SONGS_PATH = "/music/recommendations"
GENERATED_PLAYLISTS_PATH = "/music/playlist/generated"


class AppServiceClient:
    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self.session = session or requests.Session()

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = self.token
        return headers

    def _request(self, method: str, path: str, **kwargs: Any) -> Optional[requests.Response]:
        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(method, url, headers=self._headers(), timeout=self.timeout, **kwargs)
        except requests.RequestException as exc:
            logger.warning("App service %s %s failed: %s", method, path, exc)
            return None
        if not response.ok:
            logger.warning("App service %s %s returned %s", method, path, response.status_code)
        return response

    @staticmethod
    def _json(response: Optional[requests.Response]) -> Any:
        if response is None or not response.ok:
            return None
        try:
            return response.json()
        except ValueError:
            logger.debug("App service returned a non-JSON body")
            return None

    # --- sync API ----------------------------------------------------------

    def ping(self) -> bool:
        response = self._request("GET", PING_PATH)
        return bool(response is not None and response.ok)

    def update_liked(self, track_id: str, backend: str, liked: bool) -> bool:
        response = self._request(
            "PUT",
            LIKED_TRACK_PATH.format(track_id=track_id),
            params={"type": backend},
            json={"liked": liked},
        )
        return bool(response is not None and response.ok)

    def top_songs(self, limit: int = 40) -> List[Dict[str, Any]]:
        data = self._json(self._request("GET", TOP_SONGS_PATH, params={"limit": limit}))
        return list(data) if isinstance(data, list) else []

    def save_generated(self, playlist_id: str, type_id: int, name: str) -> bool:
        payload = {"playlist_id": playlist_id, "playlistTypeId": type_id, "name": name}
        response = self._request("POST", GENERATED_PLAYLISTS_PATH, json=payload)
        return bool(response is not None and response.ok)

    def generated_playlists(self) -> List[Dict[str, Any]]:
        data = self._json(self._request("GET", GENERATED_PLAYLISTS_PATH))
        return list(data) if isinstance(data, list) else []

    # --- engine API --------------------------------------------------------

    async def is_available(self) -> bool:
        return await asyncio.to_thread(self.ping)

    async def put_liked(self, track_id: str, backend: str, liked: bool) -> bool:
        return await asyncio.to_thread(self.update_liked, track_id, backend, liked)

    async def fetch_top_songs(self, limit: int = 40) -> List[Dict[str, Any]]:
        return await asyncio.to_thread(self.top_songs, limit)

    async def save_generated_playlist(self, playlist_id: str, type_id: int, name: str) -> bool:
        return await asyncio.to_thread(self.save_generated, playlist_id, type_id, name)

    async def fetch_generated_playlists(self) -> List[Dict[str, Any]]:
        return await asyncio.to_thread(self.generated_playlists)

    def close(self) -> None:
        self.session.close()


__all__ = ["AppServiceClient"]
