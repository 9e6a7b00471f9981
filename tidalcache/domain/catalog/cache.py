from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional

from tidalcache.database.db_manager import CachedAlbum, CachedArtist, CachedPlaylist, CachedTrack
from tidalcache.database.store import CatalogStore
from tidalcache.models.entities import Album, Artist, Playlist, Track, TrackNameArtist

from .fetcher import CatalogFetcher
from .identifiers import extract_id
from .resolver import StubResolver
from .storage import CatalogStorage, StoredTracks

logger = logging.getLogger(__name__)

DEFAULT_PLAYLIST_INDEX_TTL = timedelta(days=7)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CatalogCache:
    """Read-through/write-through cache in front of a :class:`CatalogFetcher`.

    Lookups hit the database first and only reach the remote catalog on a
    miss; anything fetched is resolved (no stubs) and stored before being
    returned. Stored entities are trusted indefinitely, except playlist track
    indices, which expire after ``playlist_index_ttl``.
    """

    def __init__(
        self,
        fetcher: CatalogFetcher,
        store: Optional[CatalogStore] = None,
        *,
        playlist_index_ttl: timedelta = DEFAULT_PLAYLIST_INDEX_TTL,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.fetcher = fetcher
        self.store = store or CatalogStore()
        self.resolver = StubResolver(fetcher, self.store)
        self.storage = CatalogStorage(self.store)
        self.playlist_index_ttl = playlist_index_ttl
        self._clock = clock

    # --- Tracks ---
    def get_track(self, name: str, artist: str) -> Optional[Track]:
        cached = self._first_match(CachedTrack, {"name": name, "artist_entries.artist.name": artist})
        if cached is not None:
            logger.debug("Returning cached track by name and artist")
            return cached

        fetched = self.fetcher.fetch_track(name, artist)
        return self._store_track(fetched) if fetched is not None else None

    def get_track_by_id(self, track_id: str) -> Optional[Track]:
        cached = self._find(CachedTrack, track_id)
        if cached is not None:
            logger.debug("Returning cached track by ID")
            return cached

        fetched = self.fetcher.fetch_track_by_id(track_id)
        return self._store_track(fetched) if fetched is not None else None

    def get_tracks(self, tracks: List[TrackNameArtist]) -> List[Track]:
        """Batch lookup by name and artist is not supported; use :meth:`get_track`."""
        return self.fetcher.fetch_tracks(tracks)

    def get_tracks_by_id(self, track_ids: List[str]) -> List[Track]:
        """Look up many tracks, fetching every miss in a single batch.

        The result follows ``track_ids`` order; ids the catalog cannot
        resolve are left out.
        """
        found: List[Optional[Track]] = [None] * len(track_ids)
        lookup: Dict[int, str] = {}

        with self.store.transaction() as store:
            for i, track_id in enumerate(track_ids):
                row = store.find_by_id(CachedTrack, track_id)
                if row is not None:
                    logger.debug("Found track at index %d", i)
                    found[i] = row.to_entity()
                else:
                    logger.debug("Looking up track at index %d", i)
                    lookup[i] = track_id

        logger.debug(
            "Found %d tracks in DB, fetching %d missing tracks",
            sum(1 for track in found if track is not None),
            len(lookup),
        )

        if lookup:
            missing_ids = list(dict.fromkeys(lookup.values()))
            stored = self._store_tracks(self.fetcher.fetch_tracks_by_id(missing_ids))
            by_id = {track.id: track for track in stored.all_tracks}
            for i, track_id in lookup.items():
                found[i] = by_id.get(track_id)

        return [track for track in found if track is not None]

    # --- Albums ---
    def get_album(self, name: str, artist: str) -> Optional[Album]:
        cached = self._first_match(CachedAlbum, {"name": name, "artist_entries.artist.name": artist})
        if cached is not None:
            logger.debug("Returning cached album by name")
            return cached

        fetched = self.fetcher.fetch_album(name, artist)
        return self._store_album(fetched) if fetched is not None else None

    def get_album_by_id(self, album_id: str) -> Optional[Album]:
        cached = self._find(CachedAlbum, album_id)
        if cached is not None:
            logger.debug("Returning cached album by id")
            return cached

        fetched = self.fetcher.fetch_album_by_id(album_id)
        return self._store_album(fetched) if fetched is not None else None

    def get_album_tracks(self, album: Album) -> List[Track]:
        with self.store.transaction() as store:
            row = store.find_by_id(CachedAlbum, album.id)
            if row is not None and row.track_entries:
                logger.debug("Album %s tracks already cached", album.id)
                return [track.to_entity() for track in row.tracks]

        logger.debug("Fetching and caching tracks for album %s", album.id)
        stored = self._store_tracks(self.fetcher.fetch_album_tracks(album))
        if not stored.all_tracks:
            return []
        return self.storage.update_album_tracks(album.id, stored.all_tracks)

    # --- Playlists ---
    def get_playlist(self, name: str, author: str) -> Optional[Playlist]:
        cached = self._first_match(CachedPlaylist, {"title": name, "creator.name": author})
        if cached is not None:
            logger.debug("Returning cached playlist by name and author")
            return cached

        fetched = self.fetcher.fetch_playlist(name, author)
        return self._store_playlist(fetched) if fetched is not None else None

    def get_playlist_by_id(self, playlist_id: str) -> Optional[Playlist]:
        cached = self._find(CachedPlaylist, playlist_id)
        if cached is not None:
            logger.debug("Returning cached playlist by id")
            return cached

        fetched = self.fetcher.fetch_playlist_by_id(playlist_id)
        return self._store_playlist(fetched) if fetched is not None else None

    def get_playlist_tracks(self, playlist: Playlist) -> List[Track]:
        """Serve the cached track index unless it is empty or past its TTL."""
        stored = self._find(CachedPlaylist, playlist.id)
        if stored is None:
            stored = self._store_playlist(playlist)

        index = stored.index
        now = self._clock()
        logger.debug(
            "Playlist %s index last updated: %s, expires: %s",
            playlist.id,
            index.last_updated,
            index.expires_at(self.playlist_index_ttl),
        )

        if not index.is_stale(now, self.playlist_index_ttl):
            logger.debug("Returning cached tracks for playlist %s", playlist.id)
            return list(index.tracks)

        logger.debug("Playlist %s index expired or empty, fetching fresh tracks", playlist.id)
        tracks = self._store_tracks(self.fetcher.fetch_playlist_tracks(stored)).all_tracks
        return list(self.storage.update_playlist_index(playlist.id, tracks, now).index.tracks)

    # --- Artists ---
    def get_artist_by_id(self, artist_id: str) -> Optional[Artist]:
        cached = self._find(CachedArtist, artist_id)
        if cached is not None:
            logger.debug("Returning cached artist by id")
            return cached

        # Artists have no dependencies
        fetched = self.fetcher.fetch_artist_by_id(artist_id)
        return self.storage.store_artist(self.resolver.resolve_artist(fetched)) if fetched is not None else None

    def get_artist_by_name(self, name: str) -> Optional[Artist]:
        cached = self._first_match(CachedArtist, {"name": name})
        if cached is not None:
            logger.debug("Returning cached artist by name")
            return cached

        fetched = self.fetcher.fetch_artist_by_name(name)
        return self.storage.store_artist(self.resolver.resolve_artist(fetched)) if fetched is not None else None

    def get_id_from_string(self, id_or_url: str) -> str:
        return extract_id(id_or_url)

    # --- Helpers ---
    def _find(self, model, entity_id: str):
        with self.store.transaction() as store:
            row = store.find_by_id(model, entity_id)
            return row.to_entity() if row is not None else None

    def _first_match(self, model, fields):
        with self.store.transaction() as store:
            rows = store.query_by_fields(model, fields)
            return rows[0].to_entity() if rows else None

    def _store_tracks(self, tracks: List[Track]) -> StoredTracks:
        resolved = self.resolver.resolve_tracks(tracks)
        return self.storage.store_tracks(resolved)

    def _store_track(self, track: Track) -> Optional[Track]:
        stored = self._store_tracks([track]).all_tracks
        return stored[0] if stored else None

    def _store_album(self, album: Album) -> Album:
        return self.storage.store_album(self.resolver.resolve_album(album))

    def _store_playlist(self, playlist: Playlist) -> Playlist:
        return self.storage.store_playlist(self.resolver.resolve_playlist(playlist))


__all__ = ["CatalogCache", "DEFAULT_PLAYLIST_INDEX_TTL"]
