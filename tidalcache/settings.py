#!/usr/bin/env python
"""
Centralized configuration schema for the catalog cache.

Merges defaults from config.Config with optional runtime overrides and
provides helpers to build the TIDAL session and fetcher.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from config import Config


class AppSettings(BaseModel):
    """Application-wide settings for the TIDAL fetcher and the cache."""

    model_config = ConfigDict(extra="ignore")

    # TIDAL API
    tidal_access_token: Optional[str] = None
    tidal_country_code: str = "US"
    tidal_api_base_url: str = "https://openapi.tidal.com/v2"
    tidal_user_id: Optional[str] = None
    tidal_username: Optional[str] = None
    tidal_http_timeout_seconds: float = Field(default=10.0, gt=0)
    tidal_prioritize_user_collection: bool = True
    tidal_case_sensitive_playlists: bool = True

    # Cache
    playlist_index_ttl_days: int = Field(default=7, ge=0)
    fetch_workers: int = 4

    @field_validator("tidal_country_code")
    @classmethod
    def _normalize_country_code(cls, value: str) -> str:
        value = (value or "").strip().upper()
        return value or "US"

    @field_validator("tidal_access_token", "tidal_user_id", "tidal_username", mode="before")
    @classmethod
    def _blank_to_none(cls, value: object) -> Optional[str]:
        if value is None:
            return None
        value = str(value).strip()
        return value or None

    @field_validator("fetch_workers", mode="before")
    @classmethod
    def _coerce_workers(cls, value: object) -> int:
        try:
            workers = int(value)  # type: ignore[arg-type]
        except (TypeError, ValueError):
            return 1
        return max(1, min(workers, 32))

    @property
    def playlist_index_ttl(self) -> timedelta:
        return timedelta(days=self.playlist_index_ttl_days)

    @property
    def tidal_configured(self) -> bool:
        return bool(self.tidal_access_token)


def load_app_settings(overrides: Optional[Dict[str, Any]] = None) -> AppSettings:
    """Load settings merging config defaults with optional runtime overrides."""
    data: Dict[str, Any] = {
        "tidal_access_token": Config.TIDAL_ACCESS_TOKEN,
        "tidal_country_code": Config.TIDAL_COUNTRY_CODE,
        "tidal_api_base_url": Config.TIDAL_API_BASE_URL,
        "tidal_user_id": Config.TIDAL_USER_ID,
        "tidal_username": Config.TIDAL_USERNAME,
        "tidal_http_timeout_seconds": Config.TIDAL_HTTP_TIMEOUT_SECONDS,
        "tidal_prioritize_user_collection": Config.TIDAL_PRIORITIZE_USER_COLLECTION,
        "tidal_case_sensitive_playlists": Config.TIDAL_CASE_SENSITIVE_PLAYLISTS,
        "playlist_index_ttl_days": Config.PLAYLIST_INDEX_TTL_DAYS,
        "fetch_workers": Config.FETCH_WORKERS,
    }
    if overrides:
        data.update(overrides)
    return AppSettings.model_validate(data)


def build_tidal_fetcher(settings: AppSettings):
    """Construct the TIDAL session, API client and fetcher from settings."""
    from tidalcache.infrastructure.tidal import TidalApiClient, TidalApiFetcher, TidalSession

    session = TidalSession(
        access_token=settings.tidal_access_token or "",
        country_code=settings.tidal_country_code,
        base_url=settings.tidal_api_base_url,
        user_id=settings.tidal_user_id,
        username=settings.tidal_username,
        timeout=settings.tidal_http_timeout_seconds,
    )
    return TidalApiFetcher(
        TidalApiClient(session),
        max_workers=settings.fetch_workers,
        prioritize_user_collection=settings.tidal_prioritize_user_collection,
        case_sensitive_playlists=settings.tidal_case_sensitive_playlists,
    )


__all__ = ["AppSettings", "load_app_settings", "build_tidal_fetcher"]
