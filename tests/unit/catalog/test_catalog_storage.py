from datetime import datetime, timezone

import pytest

from tidalcache.database.db_manager import CachedAlbum, CachedArtist, CachedPlaylist, CachedTrack, db
from tidalcache.domain.catalog.storage import CatalogStorage
from tidalcache.errors import DependencyResolutionError
from tidalcache.models.entities import EPOCH, Album, Artist, Playlist, Track, User


def _resolved_tracks():
    lead = Artist(id="200000001", name="Lead")
    feature = Artist(id="200000002", name="Feature")
    album = Album(id="300000001", name="Record", artists=[lead, feature])
    return [
        Track(id="100000001", name="One", artists=[lead], album=album, duration_seconds=100),
        Track(id="100000002", name="Two", artists=[lead, feature], album=album, duration_seconds=200),
    ]


def _counts():
    return tuple(
        db.session.query(model).count() for model in (CachedArtist, CachedAlbum, CachedTrack)
    )


@pytest.mark.unit
def test_store_tracks_writes_each_entity_once(store):
    storage = CatalogStorage(store)
    tracks = _resolved_tracks()

    first = storage.store_tracks(tracks + [tracks[0]])

    assert [t.id for t in first.all_tracks] == ["100000001", "100000002", "100000001"]
    assert [t.id for t in first.new_tracks] == ["100000001", "100000002"]
    assert _counts() == (2, 1, 2)
    assert [a.name for a in first.all_tracks[1].artists] == ["Lead", "Feature"]


@pytest.mark.unit
def test_store_tracks_is_idempotent(store):
    storage = CatalogStorage(store)
    storage.store_tracks(_resolved_tracks())
    again = storage.store_tracks(_resolved_tracks())

    assert again.new_tracks == []
    assert [t.id for t in again.all_tracks] == ["100000001", "100000002"]
    assert _counts() == (2, 1, 2)


@pytest.mark.unit
def test_stubs_never_reach_the_database(store):
    storage = CatalogStorage(store)
    album = Album(id="300000001", name="Record", artists=[Artist.stub("200000001")])
    track = Track(id="100000001", name="One", artists=[], album=album, duration_seconds=1)

    with pytest.raises(DependencyResolutionError):
        storage.store_tracks([track])
    with pytest.raises(DependencyResolutionError):
        storage.store_tracks([Track.stub("100000002")])

    assert _counts() == (0, 0, 0)


@pytest.mark.unit
def test_store_playlist_keeps_existing_rows(store):
    storage = CatalogStorage(store)
    owner = User(id="u1", name="me")
    stored = storage.store_playlist(Playlist(id="400000001", title="Mix", creator=owner, track_count=2))
    assert stored.index.last_updated == EPOCH

    again = storage.store_playlist(Playlist(id="400000001", title="Renamed", creator=owner, track_count=5))

    assert again.title == "Mix"
    assert again.track_count == 2
    assert db.session.query(CachedPlaylist).count() == 1


@pytest.mark.unit
def test_update_playlist_index_replaces_tracks(store):
    storage = CatalogStorage(store)
    tracks = storage.store_tracks(_resolved_tracks()).all_tracks
    storage.store_playlist(Playlist(id="400000001", title="Mix", creator=User(id="u1", name="me"), track_count=3))
    when = datetime(2024, 3, 1, tzinfo=timezone.utc)

    updated = storage.update_playlist_index("400000001", [tracks[1], tracks[0], tracks[1]], when)

    assert [t.id for t in updated.index.tracks] == ["100000002", "100000001", "100000002"]
    assert updated.index.last_updated == when

    updated = storage.update_playlist_index("400000001", [tracks[0]], when)
    assert [t.id for t in updated.index.tracks] == ["100000001"]


@pytest.mark.unit
def test_update_playlist_index_requires_stored_tracks(store):
    storage = CatalogStorage(store)
    storage.store_playlist(Playlist(id="400000001", title="Mix", creator=User(id="u1", name="me"), track_count=1))
    unstored = _resolved_tracks()[0]

    with pytest.raises(DependencyResolutionError) as excinfo:
        storage.update_playlist_index("400000001", [unstored], datetime.now(timezone.utc))
    assert excinfo.value.kind == "track"


@pytest.mark.unit
def test_store_album_and_artist(store):
    storage = CatalogStorage(store)
    album = storage.store_album(Album(id="300000001", name="Record", artists=[Artist(id="200000001", name="Lead")]))
    artist = storage.store_artist(Artist(id="200000002", name="Solo"))

    assert album.artists[0].name == "Lead"
    assert artist.name == "Solo"
    assert _counts() == (2, 1, 0)
