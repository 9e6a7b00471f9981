#!/usr/bin/env python
# config.py
import os
from typing import List

# This assumes config.py is at the root of your project
basedir = os.path.abspath(os.path.dirname(__file__))


def _get_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _get_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "t", "yes", "y", "on"}


def _get_csv_list(name: str, default: str) -> List[str]:
    raw = os.getenv(name)
    source = raw if raw is not None else default
    return [token.strip() for token in source.split(",") if token and token.strip()]


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'change-me'

    # Database (catalog cache)
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or \
        'sqlite:///' + os.path.join(basedir, 'tidalcache', 'database', 'instance', 'tidalcache.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # TIDAL API
    TIDAL_ACCESS_TOKEN = os.getenv('TIDAL_ACCESS_TOKEN')
    TIDAL_COUNTRY_CODE = os.getenv('TIDAL_COUNTRY_CODE', 'US')
    TIDAL_API_BASE_URL = os.getenv('TIDAL_API_BASE_URL', 'https://openapi.tidal.com/v2')
    # Authenticated user; enables the user-collection playlist lookup
    TIDAL_USER_ID = os.getenv('TIDAL_USER_ID')
    TIDAL_USERNAME = os.getenv('TIDAL_USERNAME')
    TIDAL_HTTP_TIMEOUT_SECONDS = _get_int('TIDAL_HTTP_TIMEOUT_SECONDS', 10)
    TIDAL_PRIORITIZE_USER_COLLECTION = _get_bool('TIDAL_PRIORITIZE_USER_COLLECTION', True)
    TIDAL_CASE_SENSITIVE_PLAYLISTS = _get_bool('TIDAL_CASE_SENSITIVE_PLAYLISTS', True)

    # Cache behavior
    PLAYLIST_INDEX_TTL_DAYS = max(0, _get_int('PLAYLIST_INDEX_TTL_DAYS', 7))
    # Concurrent per-id fetches within one resolution phase
    FETCH_WORKERS = max(1, _get_int('FETCH_WORKERS', 4))

    # Runtime behavior
    # Turn Flask debug on/off from env; default off to avoid noisy console
    DEBUG = _get_bool('DEBUG', False)
    # Control console logging; when disabled, logs go only to file
    ENABLE_CONSOLE_LOGS = _get_bool('ENABLE_CONSOLE_LOGS', False)
    CORS_ALLOWED_ORIGINS = _get_csv_list('CORS_ALLOWED_ORIGINS', 'http://localhost:3000,http://127.0.0.1:3000')
