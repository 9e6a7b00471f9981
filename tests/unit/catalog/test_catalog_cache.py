from datetime import datetime, timedelta, timezone

import pytest

from tidalcache.database.db_manager import CachedPlaylist, CachedTrack, CachedUser, db
from tidalcache.database.store import CatalogStore
from tidalcache.domain.catalog.cache import CatalogCache
from tidalcache.errors import UnsupportedOperationError
from tidalcache.infrastructure.tidal import TidalApiClient, TidalApiFetcher, TidalSession
from tidalcache.models.entities import Track, TrackNameArtist, User
from tests.support.stubs import FakeHttpSession


def _catalog(fetcher, track_count=3):
    fetcher.add_artist("200000001", "Lead")
    fetcher.add_album("300000001", "Record", artist_ids=["200000001"])
    return [
        fetcher.add_track(f"10000000{i}", "300000001", artist_ids=["200000001"], name=f"Song {i}")
        for i in range(1, track_count + 1)
    ]


@pytest.mark.unit
def test_get_track_by_id_reads_through_once(cache, fetcher):
    _catalog(fetcher)

    first = cache.get_track_by_id("100000001")
    second = cache.get_track_by_id("100000001")

    assert first.is_resolved()
    assert first == second
    assert second.album.name == "Record"
    assert fetcher.calls["fetch_track_by_id"] == 1


@pytest.mark.unit
def test_direct_miss_returns_none_and_stores_nothing(cache, fetcher):
    assert cache.get_track_by_id("999999999") is None
    assert cache.get_album_by_id("999999999") is None
    assert cache.get_artist_by_id("999999999") is None
    assert cache.get_playlist_by_id("999999999") is None
    assert db.session.query(CachedTrack).count() == 0


@pytest.mark.unit
def test_get_tracks_by_id_preserves_order_and_fetches_misses_in_one_batch(cache, fetcher):
    _catalog(fetcher)
    cache.get_track_by_id("100000002")

    tracks = cache.get_tracks_by_id(["100000003", "100000002", "999999999", "100000001", "100000003"])

    assert [t.id for t in tracks] == ["100000003", "100000002", "100000001", "100000003"]
    assert fetcher.calls["fetch_tracks_by_id"] == 1
    assert fetcher.requested["fetch_tracks_by_id"] == ["100000003", "999999999", "100000001"]


@pytest.mark.unit
def test_get_tracks_by_name_pairs_is_unsupported(cache):
    with pytest.raises(UnsupportedOperationError):
        cache.get_tracks([TrackNameArtist("Song 1", "Lead")])


@pytest.mark.unit
def test_name_lookups_hit_the_store_first(cache, fetcher):
    _catalog(fetcher)

    assert cache.get_track("Song 1", "Lead").id == "100000001"
    assert cache.get_track("Song 1", "Lead").id == "100000001"
    assert fetcher.calls["fetch_track"] == 1

    assert cache.get_album("Record", "Lead").id == "300000001"
    assert fetcher.calls["fetch_album"] == 0

    assert cache.get_artist_by_name("Lead").id == "200000001"
    assert fetcher.calls["fetch_artist_by_name"] == 0


@pytest.mark.unit
def test_get_album_tracks_caches_the_listing(cache, fetcher):
    tracks = _catalog(fetcher)
    fetcher.album_tracks["300000001"] = [tracks[2], tracks[0]]
    album = cache.get_album_by_id("300000001")

    first = cache.get_album_tracks(album)
    second = cache.get_album_tracks(album)

    assert [t.id for t in first] == ["100000003", "100000001"]
    assert [t.id for t in second] == ["100000003", "100000001"]
    assert fetcher.calls["fetch_album_tracks"] == 1


@pytest.mark.unit
def test_get_playlist_by_name_and_author(cache, fetcher):
    fetcher.add_playlist("400000001", User(id="u1", name="me"), title="Mix")

    assert cache.get_playlist("Mix", "me").id == "400000001"
    assert cache.get_playlist("Mix", "me").creator.name == "me"
    assert fetcher.calls["fetch_playlist"] == 1


@pytest.mark.unit
def test_playlist_index_refreshes_after_ttl(app_context, fetcher):
    _catalog(fetcher)
    playlist = fetcher.add_playlist(
        "400000001", User(id="u1", name="me"), track_ids=["100000002", "100000001", "100000002"]
    )
    now = datetime(2024, 6, 1, 12, tzinfo=timezone.utc)
    clock = {"now": now}
    cache = CatalogCache(fetcher, CatalogStore(), playlist_index_ttl=timedelta(days=7), clock=lambda: clock["now"])

    # Not stored yet: the playlist is stored first, its empty index is stale
    tracks = cache.get_playlist_tracks(playlist)
    assert [t.id for t in tracks] == ["100000002", "100000001", "100000002"]
    assert fetcher.calls["fetch_playlist_tracks"] == 1
    assert db.session.get(CachedPlaylist, "400000001").to_entity().index.last_updated == now

    clock["now"] = now + timedelta(days=1)
    assert [t.id for t in cache.get_playlist_tracks(playlist)] == ["100000002", "100000001", "100000002"]
    assert fetcher.calls["fetch_playlist_tracks"] == 1

    # Exactly at expiry the index is still served
    clock["now"] = now + timedelta(days=7)
    assert [t.id for t in cache.get_playlist_tracks(playlist)] == ["100000002", "100000001", "100000002"]
    assert fetcher.calls["fetch_playlist_tracks"] == 1

    fetcher.playlist_tracks["400000001"] = [Track.stub("100000003")]
    clock["now"] = now + timedelta(days=8)
    assert [t.id for t in cache.get_playlist_tracks(playlist)] == ["100000003"]
    assert fetcher.calls["fetch_playlist_tracks"] == 2


@pytest.mark.unit
def test_get_id_from_string_delegates_to_extraction(cache):
    assert cache.get_id_from_string("https://tidal.com/browse/track/123456789") == "123456789"


@pytest.mark.unit
def test_playlist_with_unnamed_owner_is_cached(app_context):
    routes = {
        "/playlists/400000001": {
            "data": {
                "id": "400000001",
                "type": "playlists",
                "attributes": {"name": "Mix", "numberOfItems": 0},
                "relationships": {"owners": {"data": [{"id": "u1", "type": "users"}]}},
            },
            "included": [{"id": "u1", "type": "users", "attributes": {}}],
        }
    }
    tidal = TidalApiFetcher(TidalApiClient(TidalSession(access_token="token"), http=FakeHttpSession(routes)))
    cache = CatalogCache(tidal, CatalogStore())

    playlist = cache.get_playlist_by_id("400000001")

    assert playlist.creator == User(id="u1", name="")
    assert not playlist.creator.is_stub
    assert db.session.get(CachedUser, "u1").name == ""
    assert cache.get_playlist_by_id("400000001") == playlist


@pytest.mark.unit
def test_playlist_owner_referenced_but_not_inlined_is_fetched(cache, fetcher):
    fetcher.add_user("u2", "dj")
    fetcher.add_playlist("400000001", User.stub("u2"), title="Mix")
    fetcher.add_playlist("400000002", User.stub("u2"), title="Other")

    assert cache.get_playlist_by_id("400000001").creator.name == "dj"
    assert cache.get_playlist_by_id("400000002").creator.name == "dj"
    assert cache.get_playlist("Mix", "dj").id == "400000001"
    # Second playlist found its owner in the store
    assert fetcher.calls["fetch_user_by_id"] == 1
