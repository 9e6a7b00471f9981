"""Catalog domain services (cache facade, stub resolution, storage)."""

from .cache import CatalogCache
from .fetcher import CatalogFetcher, fetch_each
from .identifiers import extract_id
from .resolver import StubResolver
from .storage import CatalogStorage, StoredTracks
from .type_converter import MusicTypeConverter

__all__ = [
    "CatalogCache",
    "CatalogFetcher",
    "fetch_each",
    "extract_id",
    "StubResolver",
    "CatalogStorage",
    "StoredTracks",
    "MusicTypeConverter",
]
