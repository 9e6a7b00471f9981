import logging
from typing import Iterable, Optional

from tidalcache.models.entities import Album, Artist, Playlist, Track, User

from .cache import CatalogCache

logger = logging.getLogger(__name__)


class MusicTypeConverter:
    """Maps entities from another catalog onto cached TIDAL entities by natural key.

    Each ``convert_*`` method tries the candidates in order and returns the
    first one the cache can find by name (and artist, where applicable).
    """

    def __init__(self, cache: CatalogCache) -> None:
        self.cache = cache

    def convert_track(self, tracks: Iterable[Track]) -> Optional[Track]:
        for track in tracks:
            artist = track.artist
            if artist is None or not artist.name or not track.name:
                continue
            found = self.cache.get_track(track.name, artist.name)
            if found is not None:
                return found
        return None

    def convert_album(self, albums: Iterable[Album]) -> Optional[Album]:
        for album in albums:
            if not album.artists or not album.artists[0].name or not album.name:
                continue
            found = self.cache.get_album(album.name, album.artists[0].name)
            if found is not None:
                return found
        return None

    def convert_artist(self, artists: Iterable[Artist]) -> Optional[Artist]:
        for artist in artists:
            if not artist.name:
                continue
            found = self.cache.get_artist_by_name(artist.name)
            if found is not None:
                return found
        return None

    def convert_playlist(self, playlists: Iterable[Playlist]) -> Optional[Playlist]:
        logger.warning("Playlist conversion is not supported for TIDAL")
        return None

    def convert_user(self, users: Iterable[User]) -> Optional[User]:
        logger.warning("User conversion is not supported for TIDAL")
        return None


__all__ = ["MusicTypeConverter"]
