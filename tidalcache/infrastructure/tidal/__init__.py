"""TIDAL JSON:API client and catalog fetcher."""

from .client import TidalApiClient, TidalSession
from .fetcher import TidalApiFetcher, parse_duration_seconds

__all__ = [
    "TidalApiClient",
    "TidalSession",
    "TidalApiFetcher",
    "parse_duration_seconds",
]
