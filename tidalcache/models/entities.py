#!/usr/bin/env python
"""
Catalog entities shared by the fetcher, resolver, storage layer and cache.

Each entity kind is a single pydantic model carrying an ``is_stub`` tag:

- a *stub* only knows its identifier; the fetcher creates one whenever a
  response references a related entity without inlining it;
- a *full* entity has every attribute and relation populated.

Identity is the (kind, id) pair regardless of the variant, so a stub and the
full entity it later resolves to collapse onto the same key in sets and maps.
Only full entities are ever written to the database.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import ClassVar, List, NamedTuple, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Treat naive timestamps (as returned by SQLite) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class CatalogEntity(BaseModel):
    """Base for every catalog entity."""

    model_config = ConfigDict(frozen=True)

    # Attributes that must be present unless the entity is a stub
    required_when_full: ClassVar[Tuple[str, ...]] = ()

    id: str
    is_stub: bool = False

    @classmethod
    def stub(cls, entity_id: str):
        return cls(id=str(entity_id), is_stub=True)

    @model_validator(mode="after")
    def _require_full_attributes(self):
        if self.is_stub:
            return self
        missing = [name for name in self.required_when_full if getattr(self, name) is None]
        if missing:
            raise ValueError(f"{type(self).__name__} {self.id} is missing {', '.join(missing)}")
        return self

    def is_resolved(self) -> bool:
        """True when this entity and everything it references is full."""
        return not self.is_stub

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CatalogEntity):
            return NotImplemented
        return type(self) is type(other) and self.id == other.id

    def __hash__(self) -> int:
        return hash((type(self).__name__, self.id))


class Artist(CatalogEntity):
    required_when_full: ClassVar[Tuple[str, ...]] = ("name",)

    name: Optional[str] = None


class Album(CatalogEntity):
    required_when_full: ClassVar[Tuple[str, ...]] = ("name",)

    name: Optional[str] = None
    artists: List[Artist] = Field(default_factory=list)

    def is_resolved(self) -> bool:
        return not self.is_stub and all(artist.is_resolved() for artist in self.artists)


class Track(CatalogEntity):
    required_when_full: ClassVar[Tuple[str, ...]] = ("name", "album", "duration_seconds")

    name: Optional[str] = None
    artists: List[Artist] = Field(default_factory=list)
    album: Optional[Album] = None
    duration_seconds: Optional[int] = Field(default=None, ge=0)

    @property
    def artist(self) -> Optional[Artist]:
        """Primary (first listed) artist."""
        return self.artists[0] if self.artists else None

    def is_resolved(self) -> bool:
        if self.is_stub or self.album is None:
            return False
        return self.album.is_resolved() and all(artist.is_resolved() for artist in self.artists)


class User(CatalogEntity):
    required_when_full: ClassVar[Tuple[str, ...]] = ("name",)

    name: Optional[str] = None


class PlaylistIndex(BaseModel):
    """Cached, periodically refreshed snapshot of a playlist's tracks."""

    model_config = ConfigDict(frozen=True)

    tracks: List[Track] = Field(default_factory=list)
    last_updated: datetime = EPOCH

    @field_validator("last_updated")
    @classmethod
    def _normalize_timestamp(cls, value: datetime) -> datetime:
        return as_utc(value)

    def expires_at(self, ttl: timedelta) -> datetime:
        return self.last_updated + ttl

    def is_stale(self, now: datetime, ttl: timedelta) -> bool:
        """An empty index is always stale; otherwise stale once past its TTL."""
        return not self.tracks or as_utc(now) > self.expires_at(ttl)


class Playlist(CatalogEntity):
    required_when_full: ClassVar[Tuple[str, ...]] = ("title", "creator", "track_count")

    title: Optional[str] = None
    creator: Optional[User] = None
    track_count: Optional[int] = Field(default=None, ge=0)
    index: PlaylistIndex = Field(default_factory=PlaylistIndex)

    def is_resolved(self) -> bool:
        return not self.is_stub and self.creator is not None and self.creator.is_resolved()


class TrackNameArtist(NamedTuple):
    """A (track name, artist name) pair used for name-based lookups."""

    name: str
    artist: str


__all__ = [
    "EPOCH",
    "as_utc",
    "CatalogEntity",
    "Artist",
    "Album",
    "Track",
    "User",
    "PlaylistIndex",
    "Playlist",
    "TrackNameArtist",
]
