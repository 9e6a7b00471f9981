import json
import logging
import os

import pytest


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    old_handlers = list(root.handlers)
    old_level = root.level
    try:
        yield root
    finally:
        root.handlers = old_handlers
        root.setLevel(old_level)


@pytest.mark.unit
def test_configure_logging_creates_file_and_is_idempotent(tmp_path, monkeypatch, restore_root_logger):
    import app as app_module
    import config as cfg

    monkeypatch.setattr(cfg.Config, "ENABLE_CONSOLE_LOGS", False, raising=True)

    log_dir = tmp_path / "logs"
    path1 = app_module.configure_logging(str(log_dir))
    assert os.path.exists(path1)

    app_module.configure_logging(str(log_dir))
    fhs = [h for h in logging.getLogger().handlers if isinstance(h, logging.FileHandler)]
    assert len(fhs) == 1


@pytest.mark.unit
def test_configure_logging_respects_console_toggle(tmp_path, monkeypatch, restore_root_logger):
    import app as app_module
    import config as cfg

    monkeypatch.setattr(cfg.Config, "ENABLE_CONSOLE_LOGS", True, raising=True)

    app_module.configure_logging(str(tmp_path / "logs"))
    sh = [h for h in logging.getLogger().handlers if isinstance(h, logging.StreamHandler)]
    assert any(h.level == logging.WARNING for h in sh)


@pytest.mark.unit
def test_create_app_without_fetcher_builds_tidal_fetcher(restore_root_logger):
    import app as app_module
    from tidalcache.domain.catalog import CatalogCache, MusicTypeConverter
    from tidalcache.infrastructure.tidal import TidalApiFetcher

    application = app_module.create_app(settings_overrides={"playlist_index_ttl_days": 3})

    for bp in ("catalog_bp", "health_bp"):
        assert bp in application.blueprints
    assert isinstance(application.extensions["catalog_fetcher"], TidalApiFetcher)
    cache = application.extensions["catalog_cache"]
    assert isinstance(cache, CatalogCache)
    assert cache.playlist_index_ttl.days == 3
    assert isinstance(application.extensions["type_converter"], MusicTypeConverter)
    assert not application.extensions["app_settings"].tidal_configured


@pytest.mark.unit
def test_json_formatter_includes_request_and_catalog_context(app):
    from tidalcache.observability.logging import JsonFormatter, RequestContextFilter

    record = logging.LogRecord("tidalcache.test", logging.INFO, __file__, 1, "fetching %s", ("albums",), None)
    record.catalog_kind = "album"
    record.catalog_ids = ["300000001"]
    with app.test_request_context("/api/tracks/100000001", headers={"X-Request-ID": "req-1"}):
        from flask import g

        g.request_id = "req-1"
        RequestContextFilter().filter(record)

    payload = json.loads(JsonFormatter().format(record))
    assert payload["msg"] == "fetching albums"
    assert payload["request_id"] == "req-1"
    assert payload["http"]["path"] == "/api/tracks/100000001"
    assert payload["http"]["method"] == "GET"
    assert payload["catalog"] == {"kind": "album", "ids": ["300000001"]}


@pytest.mark.unit
def test_json_formatter_omits_empty_sections():
    from tidalcache.observability.logging import JsonFormatter, RequestContextFilter

    record = logging.LogRecord("tidalcache.test", logging.WARNING, __file__, 1, "no request", (), None)
    RequestContextFilter().filter(record)

    payload = json.loads(JsonFormatter().format(record))
    assert set(payload) == {"ts", "level", "logger", "msg"}


@pytest.mark.unit
def test_structured_handler_is_added_once(app, restore_root_logger):
    from tidalcache.observability import configure_structured_logging
    from tidalcache.observability.logging import JsonFormatter

    configure_structured_logging(app)
    configure_structured_logging(app)
    json_handlers = [h for h in logging.getLogger().handlers if isinstance(h.formatter, JsonFormatter)]
    assert len(json_handlers) == 1
