from __future__ import annotations

import logging
from datetime import datetime
from itertools import chain
from typing import Dict, Iterable, List, NamedTuple

from tidalcache.database.db_manager import CachedAlbum, CachedArtist, CachedPlaylist, CachedTrack, CachedUser
from tidalcache.database.store import CatalogStore
from tidalcache.errors import DependencyResolutionError
from tidalcache.models.entities import EPOCH, Album, Artist, CatalogEntity, Playlist, Track, User

logger = logging.getLogger(__name__)


class StoredTracks(NamedTuple):
    """Result of :meth:`CatalogStorage.store_tracks`.

    ``all_tracks`` follows the input order with each track replaced by its
    stored row; ``new_tracks`` holds only the rows inserted by this call.
    """

    all_tracks: List[Track]
    new_tracks: List[Track]


def _require_resolved(kind: str, entity: CatalogEntity) -> None:
    if not entity.is_resolved():
        raise DependencyResolutionError(kind, [entity.id])


class CatalogStorage:
    """Persists resolved entities exactly once per id, leaf kinds first.

    Each kind is written in its own transaction: artists, then albums, then
    tracks. Artists committed before a later album/track failure are kept
    even if nothing references them.
    """

    def __init__(self, store: CatalogStore) -> None:
        self._store = store

    def store_artists(self, artists: Iterable[Artist]) -> Dict[str, CachedArtist]:
        stored: Dict[str, CachedArtist] = {}
        with self._store.transaction() as store:
            for artist in artists:
                if artist.id in stored:
                    continue
                _require_resolved("artist", artist)
                row = store.find_by_id(CachedArtist, artist.id)
                if row is not None:
                    logger.debug("Artist already in DB: %s", artist.id)
                else:
                    logger.debug("Storing new artist: %s", artist.id)
                    row, _ = store.save(CachedArtist(id=artist.id, name=artist.name))
                stored[artist.id] = row
        return stored

    def store_albums(self, albums: Iterable[Album], artist_rows: Dict[str, CachedArtist]) -> Dict[str, CachedAlbum]:
        """Store albums pointing at the stored artist rows, never at resolver copies."""
        stored: Dict[str, CachedAlbum] = {}
        with self._store.transaction() as store:
            for album in albums:
                if album.id in stored:
                    continue
                _require_resolved("album", album)
                row = store.find_by_id(CachedAlbum, album.id)
                if row is not None:
                    logger.debug("Album already in DB: %s", album.id)
                else:
                    logger.debug("Storing new album: %s", album.id)
                    row = CachedAlbum(id=album.id, name=album.name)
                    row.set_artists([artist_rows[artist.id] for artist in album.artists])
                    row, _ = store.save(row)
                stored[album.id] = row
        return stored

    def store_tracks(self, tracks: List[Track]) -> StoredTracks:
        """Store fully resolved tracks together with their albums and artists."""
        logger.debug("Storing %d tracks", len(tracks))
        for track in tracks:
            _require_resolved("track", track)

        distinct_artists = dict.fromkeys(
            chain.from_iterable(chain(track.artists, track.album.artists) for track in tracks)
        )
        artist_rows = self.store_artists(distinct_artists)
        album_rows = self.store_albums(dict.fromkeys(track.album for track in tracks), artist_rows)

        with self._store.transaction() as store:
            track_rows: Dict[str, CachedTrack] = {}
            new_rows: List[CachedTrack] = []
            for track in tracks:
                if track.id in track_rows:
                    continue
                row = store.find_by_id(CachedTrack, track.id)
                if row is None:
                    candidate = CachedTrack(
                        id=track.id,
                        name=track.name,
                        duration=track.duration_seconds,
                        album=album_rows[track.album.id],
                    )
                    candidate.set_artists([artist_rows[artist.id] for artist in track.artists])
                    row, inserted = store.save(candidate)
                    if inserted:
                        logger.debug("Storing new track: %s", track.id)
                        new_rows.append(row)
                track_rows[track.id] = row

            logger.debug(
                "Found %d tracks already in DB, stored %d new tracks",
                len(track_rows) - len(new_rows),
                len(new_rows),
            )
            entities = {track_id: row.to_entity() for track_id, row in track_rows.items()}
            return StoredTracks(
                all_tracks=[entities[track.id] for track in tracks],
                new_tracks=[entities[row.id] for row in new_rows],
            )

    def store_track(self, track: Track) -> Track:
        return self.store_tracks([track]).all_tracks[0]

    def store_artist(self, artist: Artist) -> Artist:
        rows = self.store_artists([artist])
        with self._store.transaction():
            return rows[artist.id].to_entity()

    def store_album(self, album: Album) -> Album:
        _require_resolved("album", album)
        artist_rows = self.store_artists(album.artists)
        album_rows = self.store_albums([album], artist_rows)
        with self._store.transaction():
            return album_rows[album.id].to_entity()

    def store_user(self, user: User) -> User:
        _require_resolved("user", user)
        with self._store.transaction() as store:
            return self._find_or_insert_user(store, user).to_entity()

    def store_playlist(self, playlist: Playlist) -> Playlist:
        """Insert a playlist and its owner; an existing playlist is returned untouched."""
        _require_resolved("playlist", playlist)
        with self._store.transaction() as store:
            existing = store.find_by_id(CachedPlaylist, playlist.id)
            if existing is not None:
                logger.debug("Playlist already in DB: %s", playlist.id)
                return existing.to_entity()

            user_row = self._find_or_insert_user(store, playlist.creator)
            logger.debug("Storing new playlist: %s", playlist.id)
            row, _ = store.save(
                CachedPlaylist(
                    id=playlist.id,
                    title=playlist.title,
                    track_count=playlist.track_count,
                    creator=user_row,
                    index_last_updated=EPOCH,
                )
            )
            return row.to_entity()

    def update_playlist_index(self, playlist_id: str, tracks: List[Track], last_updated: datetime) -> Playlist:
        """Replace a stored playlist's track index; the tracks must already be stored."""
        with self._store.transaction() as store:
            row = store.find_by_id(CachedPlaylist, playlist_id)
            if row is None:
                raise DependencyResolutionError("playlist", [playlist_id])
            row.set_index(self._stored_track_rows(store, tracks), last_updated)
            row = store.update(row)
            logger.debug("Updated index of playlist %s with %d tracks", playlist_id, len(tracks))
            return row.to_entity()

    def update_album_tracks(self, album_id: str, tracks: List[Track]) -> List[Track]:
        with self._store.transaction() as store:
            row = store.find_by_id(CachedAlbum, album_id)
            if row is None:
                raise DependencyResolutionError("album", [album_id])
            row.set_tracks(self._stored_track_rows(store, tracks))
            row = store.update(row)
            return [track.to_entity() for track in row.tracks]

    @staticmethod
    def _stored_track_rows(store: CatalogStore, tracks: List[Track]) -> List[CachedTrack]:
        rows = [store.find_by_id(CachedTrack, track.id) for track in tracks]
        missing = [track.id for track, row in zip(tracks, rows) if row is None]
        if missing:
            raise DependencyResolutionError("track", missing)
        return rows

    @staticmethod
    def _find_or_insert_user(store: CatalogStore, user: User) -> CachedUser:
        row = store.find_by_id(CachedUser, user.id)
        if row is not None:
            logger.debug("User already in DB: %s", user.id)
            return row
        logger.debug("Storing new user: %s", user.id)
        row, _ = store.save(CachedUser(id=user.id, name=user.name))
        return row


__all__ = ["CatalogStorage", "StoredTracks"]
