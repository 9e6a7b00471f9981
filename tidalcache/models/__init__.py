"""Catalog entity models."""

from .entities import (
    EPOCH,
    Album,
    Artist,
    CatalogEntity,
    Playlist,
    PlaylistIndex,
    Track,
    TrackNameArtist,
    User,
    as_utc,
)

__all__ = [
    "EPOCH",
    "Album",
    "Artist",
    "CatalogEntity",
    "Playlist",
    "PlaylistIndex",
    "Track",
    "TrackNameArtist",
    "User",
    "as_utc",
]
