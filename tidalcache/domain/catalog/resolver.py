from __future__ import annotations

import logging
from typing import Callable, Dict, Iterable, List, Mapping, Type, TypeVar

from tidalcache.database.db_manager import CachedAlbum, CachedArtist, CachedUser
from tidalcache.database.store import CatalogStore
from tidalcache.errors import DependencyResolutionError
from tidalcache.models.entities import Album, Artist, CatalogEntity, Playlist, Track

from .fetcher import CatalogFetcher

logger = logging.getLogger(__name__)

EntityT = TypeVar("EntityT", bound=CatalogEntity)


class StubResolver:
    """Turns tracks that reference stub artists/albums into fully resolved tracks.

    Every distinct album and artist id is looked up in the store once and
    fetched at most once per call, however many tracks reference it.
    """

    def __init__(self, fetcher: CatalogFetcher, store: CatalogStore) -> None:
        self._fetcher = fetcher
        self._store = store

    def resolve_tracks(self, tracks: Iterable[Track]) -> List[Track]:
        """Resolve track stubs, then everything nested in them; keeps input order."""
        return self.resolve_nested_stubs(self.resolve_track_stubs(list(tracks)))

    def resolve_track_stubs(self, tracks: List[Track]) -> List[Track]:
        """Expand id-only tracks with one batched fetch.

        The fetched tracks may still reference stub artists and albums. Ids
        the remote catalog does not return are dropped.
        """
        stub_ids = list(dict.fromkeys(track.id for track in tracks if track.is_stub))
        if not stub_ids:
            return list(tracks)

        logger.debug("Batch fetching %d track stubs", len(stub_ids))
        fetched = {track.id: track for track in self._fetcher.fetch_tracks_by_id(stub_ids) if not track.is_stub}

        resolved = []
        for track in tracks:
            if not track.is_stub:
                resolved.append(track)
            elif track.id in fetched:
                resolved.append(fetched[track.id])
            else:
                logger.warning("Track %s was not returned by the catalog; skipping it", track.id)
        return resolved

    def resolve_nested_stubs(self, tracks: List[Track]) -> List[Track]:
        """Replace every nested artist/album stub with its full entity.

        Order matters: a track's album may itself be a stub, so its artists
        are only read after the album has been resolved. Artists have no
        further dependencies and are resolved once, last.
        """
        # Only the tracks' own artists for now; the albums may still be stubs
        artist_ids = dict.fromkeys(artist.id for track in tracks for artist in track.artists)
        album_ids = list(dict.fromkeys(track.album.id for track in tracks))

        logger.debug("Resolving %d unique albums (which may have stub artists)", len(album_ids))
        album_map = self.resolve_albums(album_ids)

        for album in album_map.values():
            artist_ids.update(dict.fromkeys(artist.id for artist in album.artists))

        logger.debug("Resolving %d unique artists from tracks and albums", len(artist_ids))
        artist_map = self.resolve_artists(list(artist_ids))

        resolved_albums = {
            album_id: self._rebuild_album(album, artist_map) for album_id, album in album_map.items()
        }
        return [
            Track(
                id=track.id,
                name=track.name,
                artists=[artist_map[artist.id] for artist in track.artists],
                album=resolved_albums[track.album.id],
                duration_seconds=track.duration_seconds,
            )
            for track in tracks
        ]

    def resolve_album(self, album: Album) -> Album:
        """Resolve the artist stubs of a single fetched album."""
        artist_map = self.resolve_artists(list(dict.fromkeys(artist.id for artist in album.artists)))
        return self._rebuild_album(album, artist_map)

    def resolve_artist(self, artist: Artist) -> Artist:
        if not artist.is_stub:
            return artist
        return self.resolve_artists([artist.id])[artist.id]

    def resolve_playlist(self, playlist: Playlist) -> Playlist:
        """Fill in an owner the catalog referenced without inlining it."""
        if playlist.creator is None:
            raise DependencyResolutionError("user", ["<none>"])
        if not playlist.creator.is_stub:
            return playlist

        owner_id = playlist.creator.id
        with self._store.transaction() as store:
            row = store.find_by_id(CachedUser, owner_id)
            owner = row.to_entity() if row is not None else None
        if owner is None:
            logger.debug(
                "Fetching playlist owner %s", owner_id, extra={"catalog_kind": "user", "catalog_ids": [owner_id]}
            )
            owner = self._fetcher.fetch_user_by_id(owner_id)
        if owner is None or owner.is_stub:
            raise DependencyResolutionError("user", [owner_id])
        return playlist.model_copy(update={"creator": owner})

    def resolve_albums(self, album_ids: List[str]) -> Dict[str, Album]:
        return self._resolve_batch("album", CachedAlbum, album_ids, self._fetcher.fetch_albums_by_id)

    def resolve_artists(self, artist_ids: List[str]) -> Dict[str, Artist]:
        return self._resolve_batch("artist", CachedArtist, artist_ids, self._fetcher.fetch_artists_by_id)

    def _resolve_batch(
        self,
        kind: str,
        model: Type,
        ids: List[str],
        fetch_many: Callable[[List[str]], Mapping[str, EntityT]],
    ) -> Dict[str, EntityT]:
        """Check the store for every id, fetch the misses, fail on any gap."""
        resolved: Dict[str, EntityT] = {}
        missing: List[str] = []

        with self._store.transaction() as store:
            for entity_id in ids:
                row = store.find_by_id(model, entity_id)
                if row is not None:
                    resolved[entity_id] = row.to_entity()
                else:
                    missing.append(entity_id)

        logger.debug(
            "Found %d %ss in DB, fetching %d missing %ss",
            len(resolved),
            kind,
            len(missing),
            kind,
            extra={"catalog_kind": kind, "catalog_ids": missing},
        )
        if not missing:
            return resolved

        fetched = fetch_many(missing)
        unresolved = [entity_id for entity_id in missing if entity_id not in fetched or fetched[entity_id].is_stub]
        if unresolved:
            raise DependencyResolutionError(kind, unresolved)

        for entity_id in missing:
            resolved[entity_id] = fetched[entity_id]
        return resolved

    @staticmethod
    def _rebuild_album(album: Album, artist_map: Mapping[str, Artist]) -> Album:
        return Album(
            id=album.id,
            name=album.name,
            artists=[artist_map[artist.id] for artist in album.artists],
        )


__all__ = ["StubResolver"]
