"""Read-through catalog lookups over HTTP."""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from flask import Blueprint, current_app, jsonify, request

from tidalcache.errors import CatalogFetchError, DependencyResolutionError, InvalidIdentifierError
from tidalcache.models.entities import Album, Artist, Playlist, Track

logger = logging.getLogger(__name__)

catalog_bp = Blueprint('catalog_bp', __name__, url_prefix='/api')


def get_catalog_cache():
    return current_app.extensions['catalog_cache']


def _serialize_artist(artist: Artist) -> dict:
    return {'id': artist.id, 'name': artist.name}


def _serialize_album(album: Album) -> dict:
    return {
        'id': album.id,
        'name': album.name,
        'artists': [_serialize_artist(artist) for artist in album.artists],
    }


def _serialize_track(track: Track) -> dict:
    return {
        'id': track.id,
        'name': track.name,
        'artists': [_serialize_artist(artist) for artist in track.artists],
        'album': _serialize_album(track.album) if track.album is not None else None,
        'duration_seconds': track.duration_seconds,
    }


def _serialize_playlist(playlist: Playlist) -> dict:
    return {
        'id': playlist.id,
        'title': playlist.title,
        'creator': {'id': playlist.creator.id, 'name': playlist.creator.name} if playlist.creator else None,
        'track_count': playlist.track_count,
        'index_last_updated': playlist.index.last_updated.isoformat(),
    }


def _tracks_response(tracks: Iterable[Track]):
    return jsonify({'tracks': [_serialize_track(track) for track in tracks]})


def _not_found(kind: str):
    return jsonify({'error': f'{kind} not found'}), 404


def _require_args(*names: str) -> Optional[tuple]:
    missing = [name for name in names if not (request.args.get(name) or '').strip()]
    if missing:
        return jsonify({'error': f"Missing query parameter(s): {', '.join(missing)}"}), 400
    return None


@catalog_bp.errorhandler(InvalidIdentifierError)
def _invalid_identifier(exc):
    return jsonify({'error': str(exc)}), 400


@catalog_bp.errorhandler(DependencyResolutionError)
def _dependency_failure(exc):
    logger.error("Dependency resolution failed: %s", exc)
    return jsonify({'error': str(exc), 'kind': exc.kind, 'missing_ids': exc.missing_ids}), 502


@catalog_bp.errorhandler(CatalogFetchError)
def _fetch_failure(exc):
    return jsonify({'error': str(exc), 'upstream_status': exc.status_code}), 502


# --- Tracks ---
@catalog_bp.route('/tracks/search', methods=['GET'])
def search_track():
    gate = _require_args('name', 'artist')
    if gate is not None:
        return gate
    track = get_catalog_cache().get_track(request.args['name'].strip(), request.args['artist'].strip())
    if track is None:
        return _not_found('Track')
    return jsonify(_serialize_track(track))


@catalog_bp.route('/tracks', methods=['GET'])
def get_tracks():
    gate = _require_args('ids')
    if gate is not None:
        return gate
    cache = get_catalog_cache()
    raw_ids = [token.strip() for token in request.args['ids'].split(',') if token.strip()]
    track_ids = [cache.get_id_from_string(token) for token in raw_ids]
    return _tracks_response(cache.get_tracks_by_id(track_ids))


@catalog_bp.route('/tracks/<path:id_or_url>', methods=['GET'])
def get_track(id_or_url):
    cache = get_catalog_cache()
    track = cache.get_track_by_id(cache.get_id_from_string(id_or_url))
    if track is None:
        return _not_found('Track')
    return jsonify(_serialize_track(track))


# --- Albums ---
@catalog_bp.route('/albums/search', methods=['GET'])
def search_album():
    gate = _require_args('name', 'artist')
    if gate is not None:
        return gate
    album = get_catalog_cache().get_album(request.args['name'].strip(), request.args['artist'].strip())
    if album is None:
        return _not_found('Album')
    return jsonify(_serialize_album(album))


@catalog_bp.route('/albums/<album_id>/tracks', methods=['GET'])
def get_album_tracks(album_id):
    cache = get_catalog_cache()
    album = cache.get_album_by_id(cache.get_id_from_string(album_id))
    if album is None:
        return _not_found('Album')
    return _tracks_response(cache.get_album_tracks(album))


@catalog_bp.route('/albums/<path:id_or_url>', methods=['GET'])
def get_album(id_or_url):
    cache = get_catalog_cache()
    album = cache.get_album_by_id(cache.get_id_from_string(id_or_url))
    if album is None:
        return _not_found('Album')
    return jsonify(_serialize_album(album))


# --- Artists ---
@catalog_bp.route('/artists/search', methods=['GET'])
def search_artist():
    gate = _require_args('name')
    if gate is not None:
        return gate
    artist = get_catalog_cache().get_artist_by_name(request.args['name'].strip())
    if artist is None:
        return _not_found('Artist')
    return jsonify(_serialize_artist(artist))


@catalog_bp.route('/artists/<path:id_or_url>', methods=['GET'])
def get_artist(id_or_url):
    cache = get_catalog_cache()
    artist = cache.get_artist_by_id(cache.get_id_from_string(id_or_url))
    if artist is None:
        return _not_found('Artist')
    return jsonify(_serialize_artist(artist))


# --- Playlists ---
@catalog_bp.route('/playlists/search', methods=['GET'])
def search_playlist():
    gate = _require_args('name', 'author')
    if gate is not None:
        return gate
    playlist = get_catalog_cache().get_playlist(request.args['name'].strip(), request.args['author'].strip())
    if playlist is None:
        return _not_found('Playlist')
    return jsonify(_serialize_playlist(playlist))


@catalog_bp.route('/playlists/<playlist_id>/tracks', methods=['GET'])
def get_playlist_tracks(playlist_id):
    cache = get_catalog_cache()
    playlist = cache.get_playlist_by_id(cache.get_id_from_string(playlist_id))
    if playlist is None:
        return _not_found('Playlist')
    return _tracks_response(cache.get_playlist_tracks(playlist))


@catalog_bp.route('/playlists/<path:id_or_url>', methods=['GET'])
def get_playlist(id_or_url):
    cache = get_catalog_cache()
    playlist = cache.get_playlist_by_id(cache.get_id_from_string(id_or_url))
    if playlist is None:
        return _not_found('Playlist')
    return jsonify(_serialize_playlist(playlist))
