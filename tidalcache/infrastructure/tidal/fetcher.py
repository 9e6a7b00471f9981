"""CatalogFetcher backed by the TIDAL JSON:API."""

from __future__ import annotations

import logging
import re
from typing import Iterable, List, Optional

from tidalcache.domain.catalog.fetcher import CatalogFetcher
from tidalcache.errors import CatalogFetchError
from tidalcache.models.entities import Album, Artist, Playlist, Track, User

from .client import Document, IncludedIndex, Resource, ResourceIdentifier, TidalApiClient

logger = logging.getLogger(__name__)

# filter[id] accepts a bounded number of ids per request
TRACK_BATCH_SIZE = 20

_DURATION_PATTERN = re.compile(
    r"^P(?:(?P<days>\d+(?:\.\d+)?)D)?"
    r"(?:T(?:(?P<hours>\d+(?:\.\d+)?)H)?(?:(?P<minutes>\d+(?:\.\d+)?)M)?(?:(?P<seconds>\d+(?:\.\d+)?)S)?)?$"
)


def parse_duration_seconds(value: Optional[str]) -> int:
    """Convert an ISO-8601 duration such as ``PT3M25S`` into whole seconds.

    Unparseable or missing values count as 0.
    """
    if not value:
        return 0
    match = _DURATION_PATTERN.match(value.strip())
    if match is None:
        logger.warning("Unrecognized duration format: %s", value)
        return 0
    parts = {key: float(amount) for key, amount in match.groupdict().items() if amount}
    total = (
        parts.get("days", 0) * 86400
        + parts.get("hours", 0) * 3600
        + parts.get("minutes", 0) * 60
        + parts.get("seconds", 0)
    )
    return int(total)


def _chunks(items: List[str], size: int) -> Iterable[List[str]]:
    for start in range(0, len(items), size):
        yield items[start:start + size]


class TidalApiFetcher(CatalogFetcher):
    """Maps TIDAL documents onto catalog entities.

    Tracks carry stub artists and a stub album, playlist items come back as
    track stubs; the resolver fills those in later. Albums get full artists
    whenever the API includes them.
    """

    def __init__(
        self,
        client: TidalApiClient,
        *,
        max_workers: int = 4,
        prioritize_user_collection: bool = True,
        case_sensitive_playlists: bool = True,
    ) -> None:
        self.client = client
        self.max_workers = max(1, max_workers)
        self.prioritize_user_collection = prioritize_user_collection
        self.case_sensitive_playlists = case_sensitive_playlists

    # --- Tracks ---
    def fetch_track(self, name: str, artist: str) -> Optional[Track]:
        logger.debug("fetch_track(%s, %s)", name, artist)
        hit = self._first_search_hit(f"{name} {artist}", "tracks")
        return self.fetch_track_by_id(hit.id) if hit is not None else None

    def fetch_track_by_id(self, track_id: str) -> Optional[Track]:
        logger.debug("fetch_track_by_id(%s)", track_id)
        document = self.client.get(f"/tracks/{track_id}", {"include": "albums,artists"})
        resource = document.single() if document is not None else None
        if resource is None:
            return None
        return self._track_with_stubs(resource)

    def fetch_tracks_by_id(self, track_ids: List[str]) -> List[Track]:
        unique_ids = list(dict.fromkeys(track_ids))
        logger.debug("fetch_tracks_by_id(%s)", ", ".join(unique_ids))
        tracks: List[Track] = []
        for chunk in _chunks(unique_ids, TRACK_BATCH_SIZE):
            document = self.client.get_all(
                "/tracks",
                {"filter[id]": ",".join(chunk), "include": "albums,artists"},
            )
            if document is None:
                continue
            tracks.extend(self._track_with_stubs(resource) for resource in document.resources())
        return tracks

    # --- Albums ---
    def fetch_album(self, name: str, artist: str) -> Optional[Album]:
        logger.debug("fetch_album(%s, %s)", name, artist)
        hit = self._first_search_hit(f"{name} {artist}", "albums")
        return self.fetch_album_by_id(hit.id) if hit is not None else None

    def fetch_album_by_id(self, album_id: str) -> Optional[Album]:
        logger.debug("fetch_album_by_id(%s)", album_id)
        document = self.client.get(f"/albums/{album_id}", {"include": "artists"})
        if document is None or document.single() is None:
            return None
        return self._album(document.single(), IncludedIndex(document.included))

    def fetch_album_tracks(self, album: Album) -> List[Track]:
        logger.debug("fetch_album_tracks(%s)", album.id)
        full_album = self.fetch_album_by_id(album.id)
        if full_album is None:
            return []

        items = self.client.get_all(f"/albums/{album.id}/relationships/items", {"include": "items"})
        if items is None:
            return []

        included = IncludedIndex(items.included)
        tracks = []
        for resource in included.resolve(self._identifiers(items), "tracks"):
            tracks.append(
                Track(
                    id=resource.id,
                    name=resource.attribute("title"),
                    artists=[Artist.stub(ref.id) for ref in resource.related("artists")],
                    album=full_album,
                    duration_seconds=parse_duration_seconds(resource.attribute("duration")),
                )
            )
        return tracks

    # --- Playlists ---
    def fetch_playlist(self, name: str, author: str) -> Optional[Playlist]:
        logger.debug("fetch_playlist(%s, %s)", name, author)
        if self.prioritize_user_collection and self._is_self_user(author):
            try:
                playlist_id = self._find_collection_playlist(name)
            except CatalogFetchError as exc:
                logger.error("Continuing to normal search: failed to read user collection playlists: %s", exc)
                playlist_id = None
            if playlist_id is not None:
                return self.fetch_playlist_by_id(playlist_id)

        logger.debug("Continuing to normal playlist search")
        hit = self._first_search_hit(f"{name} {author}", "playlists")
        return self.fetch_playlist_by_id(hit.id) if hit is not None else None

    def fetch_playlist_by_id(self, playlist_id: str) -> Optional[Playlist]:
        logger.debug("fetch_playlist_by_id(%s)", playlist_id)
        document = self.client.get(f"/playlists/{playlist_id}", {"include": "owners"})
        resource = document.single() if document is not None else None
        if resource is None:
            return None

        owners = resource.related("owners")
        if not owners:
            raise CatalogFetchError(f"Playlist {playlist_id} has no owner")
        # Only the first owner is kept
        owner_ref = owners[0]
        owner = IncludedIndex(document.included).get("users", owner_ref.id)

        return Playlist(
            id=resource.id,
            title=resource.attribute("name"),
            creator=self._user(owner) if owner is not None else User.stub(owner_ref.id),
            track_count=resource.attribute("numberOfItems") or 0,
        )

    def fetch_playlist_tracks(self, playlist: Playlist) -> List[Track]:
        logger.debug("fetch_playlist_tracks(%s)", playlist.id)
        items = self.client.get_all(f"/playlists/{playlist.id}/relationships/items", {"include": "items"})
        if items is None:
            return []
        # Videos and other item kinds are skipped
        return [Track.stub(ref.id) for ref in self._identifiers(items) if ref.type == "tracks"]

    # --- Artists ---
    def fetch_artist_by_id(self, artist_id: str) -> Optional[Artist]:
        logger.debug("fetch_artist_by_id(%s)", artist_id)
        document = self.client.get(f"/artists/{artist_id}")
        resource = document.single() if document is not None else None
        if resource is None:
            return None
        return Artist(id=resource.id, name=resource.attribute("name"))

    def fetch_artist_by_name(self, name: str) -> Optional[Artist]:
        logger.debug("fetch_artist_by_name(%s)", name)
        hit = self._first_search_hit(name, "artists")
        return self.fetch_artist_by_id(hit.id) if hit is not None else None

    # --- Users ---
    def fetch_user_by_id(self, user_id: str) -> Optional[User]:
        logger.debug("fetch_user_by_id(%s)", user_id)
        document = self.client.get(f"/users/{user_id}")
        resource = document.single() if document is not None else None
        return self._user(resource) if resource is not None else None

    # --- Mapping helpers ---
    def _track_with_stubs(self, resource: Resource) -> Track:
        album_refs = resource.related("albums")
        if not album_refs:
            raise CatalogFetchError(f"Track {resource.id} has no album relationship")
        return Track(
            id=resource.id,
            name=resource.attribute("title"),
            artists=[Artist.stub(ref.id) for ref in resource.related("artists")],
            album=Album.stub(album_refs[0].id),
            duration_seconds=parse_duration_seconds(resource.attribute("duration")),
        )

    @staticmethod
    def _album(resource: Resource, included: IncludedIndex) -> Album:
        artists = []
        for ref in resource.related("artists"):
            artist = included.get("artists", ref.id)
            if artist is not None and artist.attribute("name"):
                artists.append(Artist(id=artist.id, name=artist.attribute("name")))
            else:
                artists.append(Artist.stub(ref.id))
        return Album(id=resource.id, name=resource.attribute("title"), artists=artists)

    @staticmethod
    def _user(resource: Resource) -> User:
        name = resource.attribute("username")
        if not name:
            name = f"{resource.attribute('firstName') or ''} {resource.attribute('lastName') or ''}".strip()
        # Owners without any public name are still full users
        return User(id=resource.id, name=name)

    @staticmethod
    def _identifiers(document: Document) -> List[ResourceIdentifier]:
        return [ResourceIdentifier(id=resource.id, type=resource.type) for resource in document.resources()]

    def _first_search_hit(self, query: str, include: str) -> Optional[ResourceIdentifier]:
        hits = self.client.search(query, include)
        if not hits:
            logger.debug("No %s found for query %r", include, query)
            return None
        return hits[0]

    def _is_self_user(self, name: str) -> bool:
        session = self.client.session
        if not session.has_user:
            return False
        if not session.username:
            return True
        return name.strip().lower() == session.username.strip().lower()

    def _find_collection_playlist(self, name: str) -> Optional[str]:
        session = self.client.session
        path = f"/userCollections/{session.user_id}/relationships/playlists"
        for page in self.client.iter_pages(path, {"include": "playlists"}):
            included = IncludedIndex(page.included)
            for playlist in included.resolve(self._identifiers(page), "playlists"):
                title = playlist.attribute("name") or ""
                if self._playlist_name_matches(title, name):
                    return playlist.id
        return None

    def _playlist_name_matches(self, title: str, name: str) -> bool:
        if self.case_sensitive_playlists:
            return title == name
        return title.lower() == name.lower()


__all__ = ["TidalApiFetcher", "parse_duration_seconds", "TRACK_BATCH_SIZE"]
