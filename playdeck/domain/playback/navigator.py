"""Circular next/previous navigation over the liked-songs collection."""

from __future__ import annotations

from typing import Optional, Sequence

from playdeck.models import Track


class LikedSongsNavigator:
    """Pure lookups; the caller issues playback and updates the selection."""

    @staticmethod
    def _index_of(liked_songs: Sequence[Track], current_id: str) -> int:
        for index, track in enumerate(liked_songs):
            if track.id == current_id:
                return index
        return -1

    def next(self, liked_songs: Sequence[Track], current_id: Optional[str]) -> Optional[Track]:
        if not liked_songs:
            return None
        if not current_id:
            # nothing selected yet: start from the top
            return liked_songs[0]
        index = self._index_of(liked_songs, current_id)
        if index == -1:
            return None
        if index + 1 < len(liked_songs):
            return liked_songs[index + 1]
        return liked_songs[0]

    def previous(self, liked_songs: Sequence[Track], current_id: Optional[str]) -> Optional[Track]:
        # an unset current id yields None here, unlike next()
        if not liked_songs or not current_id:
            return None
        index = self._index_of(liked_songs, current_id)
        if index == -1:
            return None
        if index - 1 >= 0:
            return liked_songs[index - 1]
        return liked_songs[-1]


__all__ = ["LikedSongsNavigator"]
