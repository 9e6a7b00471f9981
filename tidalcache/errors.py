"""Exception taxonomy shared by the cache, resolver and fetchers."""

from __future__ import annotations

from typing import Iterable


class CatalogError(Exception):
    """Base class for catalog cache failures."""


class DependencyResolutionError(CatalogError):
    """A required artist, album or owner could not be resolved.

    Raised while materializing a dependency graph; aborts the enclosing
    store call. Never used for a plain miss on a public lookup.
    """

    def __init__(self, kind: str, missing_ids: Iterable[str]):
        self.kind = kind
        self.missing_ids = list(missing_ids)
        super().__init__(f"Failed to fetch {kind} with ID(s): {', '.join(self.missing_ids)}")


class InvalidIdentifierError(CatalogError, ValueError):
    """Raised when a string is neither a catalog id nor a catalog URL."""


class UnsupportedOperationError(CatalogError, NotImplementedError):
    """Raised by capabilities that are intentionally not implemented."""


class CatalogFetchError(CatalogError):
    """The remote catalog could not be reached or answered with an error."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


__all__ = [
    "CatalogError",
    "DependencyResolutionError",
    "InvalidIdentifierError",
    "UnsupportedOperationError",
    "CatalogFetchError",
]
