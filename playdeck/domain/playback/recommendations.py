"""Seed track ids for recommendations, collected from the user's library."""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, Iterable, List, Sequence

from playdeck.models import Playlist, Track

logger = logging.getLogger(__name__)

MAX_SEED_TRACK_IDS = 50
# the recommendations endpoint accepts at most five seed tracks per request
SEEDS_PER_REQUEST = 5

FetchTracks = Callable[[str], Awaitable[List[Track]]]


def _append_unique(target: List[str], ids: Iterable[str], limit: int) -> None:
    for track_id in ids:
        if len(target) >= limit:
            return
        if track_id and track_id not in target:
            target.append(track_id)


class RecommendationSeeds:
    def __init__(self, fetch_tracks: FetchTracks, limit: int = MAX_SEED_TRACK_IDS) -> None:
        self._fetch_tracks = fetch_tracks
        self.limit = limit

    async def build(self, liked_songs: Sequence[Track], playlists: Sequence[Playlist]) -> List[str]:
        """Liked songs first, then tracks of the user's playlists in tree order."""
        seeds: List[str] = []
        _append_unique(seeds, (track.id for track in liked_songs), self.limit)
        for playlist in playlists:
            if len(seeds) >= self.limit:
                break
            if playlist.is_liked_songs:
                continue
            try:
                tracks = await self._fetch_tracks(playlist.id)
            except Exception as exc:
                logger.warning("Skipping playlist %s for seeds: %s", playlist.id, exc)
                continue
            _append_unique(seeds, (track.id for track in tracks), self.limit)
        logger.debug("Collected %s recommendation seed(s)", len(seeds))
        return seeds

    @staticmethod
    def request_seeds(seed_ids: Sequence[str]) -> List[str]:
        return list(seed_ids[:SEEDS_PER_REQUEST])


def recommendation_play_ids(
    recommendation_tracks: Sequence[Track],
    seed_ids: Sequence[str],
    limit: int = MAX_SEED_TRACK_IDS,
) -> List[str]:
    """Recommendation ids topped up to `limit` from the seed ids."""
    ids = [track.id for track in recommendation_tracks][:limit]
    _append_unique(ids, seed_ids, limit)
    return ids


__all__ = [
    "RecommendationSeeds",
    "recommendation_play_ids",
    "MAX_SEED_TRACK_IDS",
    "SEEDS_PER_REQUEST",
]
