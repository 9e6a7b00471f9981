from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Dict, List, Optional, Sequence, TypeVar

from tidalcache.errors import UnsupportedOperationError
from tidalcache.models.entities import Album, Artist, Playlist, Track, TrackNameArtist, User

logger = logging.getLogger(__name__)

EntityT = TypeVar("EntityT")


def fetch_each(
    ids: Sequence[str],
    fetch_one: Callable[[str], Optional[EntityT]],
    max_workers: int = 1,
) -> Dict[str, EntityT]:
    """Run ``fetch_one`` for every distinct id, concurrently when allowed.

    All fetches are joined before returning. Ids with no result are absent
    from the returned map; the caller decides whether that is fatal.
    """
    unique_ids = list(dict.fromkeys(ids))
    if not unique_ids:
        return {}
    if max_workers <= 1 or len(unique_ids) == 1:
        results = [fetch_one(entity_id) for entity_id in unique_ids]
    else:
        with ThreadPoolExecutor(max_workers=min(max_workers, len(unique_ids))) as pool:
            results = list(pool.map(fetch_one, unique_ids))
    return {entity_id: result for entity_id, result in zip(unique_ids, results) if result is not None}


class CatalogFetcher:
    """Interface to the remote catalog.

    Returned entities may carry stub artists, albums or owners; batch track
    fetches always return a stub album. ``None``/``[]`` means the remote
    catalog has no such entity.
    """

    max_workers: int = 1

    def fetch_track(self, name: str, artist: str) -> Optional[Track]:  # pragma: no cover - interface
        raise NotImplementedError

    def fetch_track_by_id(self, track_id: str) -> Optional[Track]:  # pragma: no cover - interface
        raise NotImplementedError

    def fetch_tracks(self, tracks: List[TrackNameArtist]) -> List[Track]:
        raise UnsupportedOperationError("fetch_tracks(name/artist pairs) is not supported; look tracks up one at a time")

    def fetch_tracks_by_id(self, track_ids: List[str]) -> List[Track]:  # pragma: no cover - interface
        raise NotImplementedError

    def fetch_album(self, name: str, artist: str) -> Optional[Album]:  # pragma: no cover - interface
        raise NotImplementedError

    def fetch_album_by_id(self, album_id: str) -> Optional[Album]:  # pragma: no cover - interface
        raise NotImplementedError

    def fetch_albums_by_id(self, album_ids: List[str]) -> Dict[str, Album]:
        return fetch_each(album_ids, self.fetch_album_by_id, self.max_workers)

    def fetch_album_tracks(self, album: Album) -> List[Track]:  # pragma: no cover - interface
        raise NotImplementedError

    def fetch_playlist(self, name: str, author: str) -> Optional[Playlist]:  # pragma: no cover - interface
        raise NotImplementedError

    def fetch_playlist_by_id(self, playlist_id: str) -> Optional[Playlist]:  # pragma: no cover - interface
        raise NotImplementedError

    def fetch_playlist_tracks(self, playlist: Playlist) -> List[Track]:  # pragma: no cover - interface
        raise NotImplementedError

    def fetch_artist_by_id(self, artist_id: str) -> Optional[Artist]:  # pragma: no cover - interface
        raise NotImplementedError

    def fetch_artists_by_id(self, artist_ids: List[str]) -> Dict[str, Artist]:
        return fetch_each(artist_ids, self.fetch_artist_by_id, self.max_workers)

    def fetch_artist_by_name(self, name: str) -> Optional[Artist]:  # pragma: no cover - interface
        raise NotImplementedError

    def fetch_user_by_id(self, user_id: str) -> Optional[User]:  # pragma: no cover - interface
        raise NotImplementedError


__all__ = ["CatalogFetcher", "fetch_each"]
