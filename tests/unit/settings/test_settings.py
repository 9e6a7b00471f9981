import importlib
from datetime import timedelta

import pytest

from tidalcache.infrastructure.tidal import TidalApiFetcher


@pytest.mark.unit
def test_defaults_and_normalization():
    import tidalcache.settings as settings

    s = settings.AppSettings(tidal_country_code=" de ", tidal_user_id="  ", fetch_workers="lots")
    assert s.tidal_country_code == "DE"
    assert s.tidal_user_id is None
    assert s.fetch_workers == 1
    assert s.playlist_index_ttl == timedelta(days=7)
    assert not s.tidal_configured


@pytest.mark.unit
def test_env_precedence_for_core_fields(monkeypatch):
    monkeypatch.setenv("TIDAL_ACCESS_TOKEN", "tok")
    monkeypatch.setenv("TIDAL_COUNTRY_CODE", "NO")
    monkeypatch.setenv("TIDAL_USER_ID", "u1")
    monkeypatch.setenv("TIDAL_HTTP_TIMEOUT_SECONDS", "3")
    monkeypatch.setenv("TIDAL_CASE_SENSITIVE_PLAYLISTS", "false")
    monkeypatch.setenv("PLAYLIST_INDEX_TTL_DAYS", "2")
    monkeypatch.setenv("FETCH_WORKERS", "8")

    import config as _config
    importlib.reload(_config)
    import tidalcache.settings as settings
    importlib.reload(settings)

    try:
        s = settings.load_app_settings()
        assert s.tidal_access_token == _config.Config.TIDAL_ACCESS_TOKEN == "tok"
        assert s.tidal_country_code == "NO"
        assert s.tidal_user_id == "u1"
        assert s.tidal_http_timeout_seconds == 3
        assert s.tidal_case_sensitive_playlists is False
        assert s.playlist_index_ttl == timedelta(days=2)
        assert s.fetch_workers == 8
        assert s.tidal_configured
    finally:
        monkeypatch.undo()
        importlib.reload(_config)
        importlib.reload(settings)


@pytest.mark.unit
def test_overrides_win_and_build_fetcher():
    from tidalcache.settings import build_tidal_fetcher, load_app_settings

    s = load_app_settings({"tidal_access_token": "tok", "fetch_workers": 3, "tidal_username": "me"})
    fetcher = build_tidal_fetcher(s)

    assert isinstance(fetcher, TidalApiFetcher)
    assert fetcher.max_workers == 3
    assert fetcher.client.session.username == "me"
    assert fetcher.client.http.headers["Authorization"] == "Bearer tok"


@pytest.mark.unit
def test_invalid_timeout_is_rejected():
    from pydantic import ValidationError

    import tidalcache.settings as settings

    with pytest.raises(ValidationError):
        settings.AppSettings(tidal_http_timeout_seconds=0)
