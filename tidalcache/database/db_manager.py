# database/db_manager.py
import logging
import os
import sqlite3

from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import ForeignKey, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import relationship

from tidalcache.models.entities import EPOCH, Album, Artist, Playlist, PlaylistIndex, Track, User, as_utc

# Initialize the SQLAlchemy object
db = SQLAlchemy()
logger = logging.getLogger(__name__)


@event.listens_for(Engine, "connect")
def _configure_sqlite_connection(dbapi_connection, connection_record):
    # pysqlite's implicit transaction handling breaks SAVEPOINT; let SQLAlchemy emit BEGIN itself
    if isinstance(dbapi_connection, sqlite3.Connection):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


@event.listens_for(Engine, "begin")
def _begin_sqlite_transaction(conn):
    if conn.dialect.name == "sqlite":
        conn.exec_driver_sql("BEGIN")


class CachedArtist(db.Model):
    __tablename__ = "artists"

    id = db.Column(db.String(64), primary_key=True)
    name = db.Column(db.String(255), nullable=False, index=True)

    def to_entity(self) -> Artist:
        return Artist(id=self.id, name=self.name)

    def __repr__(self) -> str:
        return f"<CachedArtist {self.id}: {self.name}>"


class AlbumArtist(db.Model):
    __tablename__ = "album_artists"

    id = db.Column(db.Integer, primary_key=True)
    album_id = db.Column(db.String(64), ForeignKey("albums.id", ondelete="CASCADE"), nullable=False, index=True)
    artist_id = db.Column(db.String(64), ForeignKey("artists.id", ondelete="RESTRICT"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False, default=0)

    artist = relationship("CachedArtist", lazy="joined")


class CachedAlbum(db.Model):
    __tablename__ = "albums"

    id = db.Column(db.String(64), primary_key=True)
    name = db.Column(db.String(255), nullable=False, index=True)

    artist_entries = relationship(
        "AlbumArtist",
        order_by="AlbumArtist.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    track_entries = relationship(
        "AlbumTrackEntry",
        order_by="AlbumTrackEntry.position",
        cascade="all, delete-orphan",
        lazy="select",
    )

    @property
    def artists(self):
        return [entry.artist for entry in self.artist_entries]

    def set_artists(self, artists) -> None:
        self.artist_entries = [AlbumArtist(artist=artist, position=i) for i, artist in enumerate(artists)]

    @property
    def tracks(self):
        return [entry.track for entry in self.track_entries]

    def set_tracks(self, tracks) -> None:
        self.track_entries = [AlbumTrackEntry(track=track, position=i) for i, track in enumerate(tracks)]

    def to_entity(self) -> Album:
        return Album(id=self.id, name=self.name, artists=[artist.to_entity() for artist in self.artists])

    def __repr__(self) -> str:
        return f"<CachedAlbum {self.id}: {self.name}>"


class TrackArtist(db.Model):
    __tablename__ = "track_artists"

    id = db.Column(db.Integer, primary_key=True)
    track_id = db.Column(db.String(64), ForeignKey("tracks.id", ondelete="CASCADE"), nullable=False, index=True)
    artist_id = db.Column(db.String(64), ForeignKey("artists.id", ondelete="RESTRICT"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False, default=0)

    artist = relationship("CachedArtist", lazy="joined")


class CachedTrack(db.Model):
    __tablename__ = "tracks"

    id = db.Column(db.String(64), primary_key=True)
    name = db.Column(db.String(255), nullable=False, index=True)
    duration = db.Column(db.Integer, nullable=False, default=0)  # seconds
    album_id = db.Column(db.String(64), ForeignKey("albums.id", ondelete="RESTRICT"), nullable=False, index=True)

    album = relationship("CachedAlbum", lazy="joined")
    artist_entries = relationship(
        "TrackArtist",
        order_by="TrackArtist.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    @property
    def artists(self):
        return [entry.artist for entry in self.artist_entries]

    def set_artists(self, artists) -> None:
        self.artist_entries = [TrackArtist(artist=artist, position=i) for i, artist in enumerate(artists)]

    def to_entity(self) -> Track:
        return Track(
            id=self.id,
            name=self.name,
            artists=[artist.to_entity() for artist in self.artists],
            album=self.album.to_entity(),
            duration_seconds=self.duration,
        )

    def __repr__(self) -> str:
        return f"<CachedTrack {self.id}: {self.name}>"


class AlbumTrackEntry(db.Model):
    __tablename__ = "album_track_entries"

    id = db.Column(db.Integer, primary_key=True)
    album_id = db.Column(db.String(64), ForeignKey("albums.id", ondelete="CASCADE"), nullable=False, index=True)
    track_id = db.Column(db.String(64), ForeignKey("tracks.id", ondelete="CASCADE"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False, default=0)

    track = relationship("CachedTrack")


class CachedUser(db.Model):
    __tablename__ = "users"

    id = db.Column(db.String(64), primary_key=True)
    name = db.Column(db.String(255), nullable=False, index=True)

    def to_entity(self) -> User:
        return User(id=self.id, name=self.name)

    def __repr__(self) -> str:
        return f"<CachedUser {self.id}: {self.name}>"


class PlaylistIndexEntry(db.Model):
    __tablename__ = "playlist_index_entries"

    # No uniqueness on (playlist_id, track_id): a playlist may list a track more than once
    id = db.Column(db.Integer, primary_key=True)
    playlist_id = db.Column(db.String(64), ForeignKey("playlists.id", ondelete="CASCADE"), nullable=False, index=True)
    track_id = db.Column(db.String(64), ForeignKey("tracks.id", ondelete="CASCADE"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False, default=0)

    track = relationship("CachedTrack")


class CachedPlaylist(db.Model):
    __tablename__ = "playlists"

    id = db.Column(db.String(64), primary_key=True)
    title = db.Column(db.String(255), nullable=False, index=True)
    track_count = db.Column(db.Integer, nullable=False, default=0)
    creator_id = db.Column(db.String(64), ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True)
    index_last_updated = db.Column(db.DateTime(timezone=True), nullable=False, default=lambda: EPOCH)

    creator = relationship("CachedUser", lazy="joined")
    index_entries = relationship(
        "PlaylistIndexEntry",
        order_by="PlaylistIndexEntry.position",
        cascade="all, delete-orphan",
        lazy="select",
    )

    @property
    def index_tracks(self):
        return [entry.track for entry in self.index_entries]

    def set_index(self, tracks, last_updated) -> None:
        self.index_entries = [PlaylistIndexEntry(track=track, position=i) for i, track in enumerate(tracks)]
        self.index_last_updated = as_utc(last_updated)

    def to_entity(self, *, include_index: bool = True) -> Playlist:
        index = PlaylistIndex(
            tracks=[track.to_entity() for track in self.index_tracks] if include_index else [],
            last_updated=as_utc(self.index_last_updated or EPOCH),
        )
        return Playlist(
            id=self.id,
            title=self.title,
            creator=self.creator.to_entity(),
            track_count=self.track_count,
            index=index,
        )

    def __repr__(self) -> str:
        return f"<CachedPlaylist {self.id}: {self.title}>"


def initialize_database(app):
    """
    Initializes the SQLAlchemy extension with the Flask app instance
    and creates all database tables if they don't already exist.
    """
    db.init_app(app)
    # Ensure the instance folder exists for SQLite database file
    instance_path = app.instance_path
    if not os.path.exists(instance_path):
        os.makedirs(instance_path)
        logger.info("Created instance folder: %s", instance_path)

    # Ensure the directory for the configured SQLite file exists
    uri = app.config.get('SQLALCHEMY_DATABASE_URI')
    if uri:
        url = make_url(uri)
        # Only handle file-based SQLite (not :memory:)
        if url.get_backend_name() == 'sqlite' and url.database and url.database != ':memory:':
            db_dir = os.path.dirname(url.database)
            if db_dir and not os.path.exists(db_dir):
                os.makedirs(db_dir, exist_ok=True)
                logger.info("Created SQLite DB directory: %s", db_dir)

    # Create database tables within the application context
    with app.app_context():
        db.create_all()
        logger.info("Database tables created or already exist.")


__all__ = [
    "db",
    "CachedArtist",
    "CachedAlbum",
    "AlbumArtist",
    "CachedTrack",
    "TrackArtist",
    "AlbumTrackEntry",
    "CachedUser",
    "CachedPlaylist",
    "PlaylistIndexEntry",
    "initialize_database",
]
