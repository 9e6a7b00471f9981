import os

import pytest
from flask import Flask


@pytest.mark.unit
def test_initialize_database_creates_sqlite_directory(tmp_path):
    # Arrange a non-existent subdirectory for the DB file
    target_dir = tmp_path / "nested" / "dbdir"
    db_file = target_dir / "test.db"
    uri = f"sqlite:///{db_file}".replace("\\", "/")

    from tidalcache.database.db_manager import CachedTrack, db, initialize_database

    app = Flask(__name__)
    app.config["SQLALCHEMY_DATABASE_URI"] = uri
    app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False
    app.instance_path = str(tmp_path / "instance")

    # Act: initialize should create missing directory and tables
    initialize_database(app)

    # Assert directory exists and a simple DB operation works
    assert target_dir.exists()
    with app.app_context():
        assert db.session.query(CachedTrack).count() == 0


@pytest.mark.unit
def test_initialize_database_in_memory_only_creates_instance_dir(tmp_path, monkeypatch):
    from tidalcache.database.db_manager import initialize_database

    app = Flask(__name__)
    app.config["SQLALCHEMY_DATABASE_URI"] = "sqlite:///:memory:"
    app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False

    instance_dir = tmp_path / "instance"
    app.instance_path = str(instance_dir)

    calls = []
    real_makedirs = os.makedirs

    def tracing_makedirs(path, *args, **kwargs):
        calls.append(os.path.abspath(path))
        return real_makedirs(path, *args, **kwargs)

    monkeypatch.setattr(os, "makedirs", tracing_makedirs)

    initialize_database(app)

    assert instance_dir.exists()
    assert calls == [os.path.abspath(str(instance_dir))]
