#!/usr/bin/env python
"""
Thin client for the TIDAL JSON:API (openapi.tidal.com/v2).

Responses are parsed into pydantic documents; related resources requested
through ``include`` are indexed by (type, id) so mappers can look them up
without caring about the order of the ``included`` array.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union
from urllib.parse import quote

import requests
from pydantic import BaseModel, ConfigDict, Field

from tidalcache.errors import CatalogFetchError

logger = logging.getLogger(__name__)

JSON_API_MEDIA_TYPE = "application/vnd.api+json"


@dataclass(frozen=True)
class TidalSession:
    """Authenticated API context, built once at the app boundary."""

    access_token: str
    country_code: str = "US"
    base_url: str = "https://openapi.tidal.com/v2"
    user_id: Optional[str] = None
    username: Optional[str] = None
    timeout: float = 10.0

    @property
    def has_user(self) -> bool:
        return bool(self.user_id)


class ResourceIdentifier(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    type: str


class Links(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    self_link: Optional[str] = Field(default=None, alias="self")
    next: Optional[str] = None


class Relationship(BaseModel):
    model_config = ConfigDict(extra="ignore")

    data: Union[List[ResourceIdentifier], ResourceIdentifier, None] = None
    links: Optional[Links] = None

    def identifiers(self) -> List[ResourceIdentifier]:
        if self.data is None:
            return []
        if isinstance(self.data, list):
            return list(self.data)
        return [self.data]


class Resource(BaseModel):
    """A resource object; relationship documents carry identifiers only."""

    model_config = ConfigDict(extra="ignore")

    id: str
    type: str
    attributes: Dict[str, Any] = Field(default_factory=dict)
    relationships: Dict[str, Relationship] = Field(default_factory=dict)

    def attribute(self, name: str, default: Any = None) -> Any:
        return self.attributes.get(name, default)

    def related(self, name: str) -> List[ResourceIdentifier]:
        relationship = self.relationships.get(name)
        return relationship.identifiers() if relationship is not None else []


class Document(BaseModel):
    model_config = ConfigDict(extra="ignore")

    data: Union[List[Resource], Resource, None] = None
    included: List[Resource] = Field(default_factory=list)
    links: Optional[Links] = None

    def resources(self) -> List[Resource]:
        if self.data is None:
            return []
        if isinstance(self.data, list):
            return list(self.data)
        return [self.data]

    def single(self) -> Optional[Resource]:
        resources = self.resources()
        return resources[0] if resources else None

    @property
    def next_link(self) -> Optional[str]:
        return self.links.next if self.links is not None else None


class IncludedIndex:
    """Lookup of included resources by (type, id)."""

    def __init__(self, included: Optional[List[Resource]] = None) -> None:
        self._by_key: Dict[Tuple[str, str], Resource] = {}
        for resource in included or []:
            self._by_key[(resource.type, resource.id)] = resource

    def get(self, resource_type: str, resource_id: str) -> Optional[Resource]:
        return self._by_key.get((resource_type, resource_id))

    def resolve(self, identifiers: List[ResourceIdentifier], resource_type: str) -> List[Resource]:
        """Included resources for ``identifiers`` of the given type, in order."""
        found = []
        for identifier in identifiers:
            if identifier.type != resource_type:
                continue
            resource = self.get(resource_type, identifier.id)
            if resource is None:
                logger.warning("%s resource not included in response: ID %s", resource_type, identifier.id)
                continue
            found.append(resource)
        return found

    def __len__(self) -> int:
        return len(self._by_key)


class TidalApiClient:
    """Blocking JSON:API client over a shared ``requests.Session``."""

    def __init__(self, session: TidalSession, http: Optional[requests.Session] = None) -> None:
        self.session = session
        self.http = http or requests.Session()
        self.http.headers.update(
            {
                "Authorization": f"Bearer {session.access_token}",
                "Accept": JSON_API_MEDIA_TYPE,
            }
        )

    def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Optional[Document]:
        """GET one document; ``None`` when the resource does not exist (HTTP 404)."""
        query: Dict[str, Any] = {"countryCode": self.session.country_code}
        query.update(params or {})
        return self._request(self._url(path), query)

    def get_all(self, path: str, params: Optional[Dict[str, Any]] = None) -> Optional[Document]:
        """GET a collection and follow ``links.next``, merging data and included."""
        pages = self.iter_pages(path, params)
        first = next(pages, None)
        if first is None:
            return None
        data = first.resources()
        included = list(first.included)
        for page in pages:
            data.extend(page.resources())
            included.extend(page.included)
        return Document(data=data, included=included, links=first.links)

    def iter_pages(self, path: str, params: Optional[Dict[str, Any]] = None) -> Iterator[Document]:
        document = self.get(path, params)
        while document is not None:
            yield document
            next_link = document.next_link
            if not next_link:
                return
            # The next link already carries the cursor and original query
            document = self._request(self._url(next_link), None)

    def search(self, query: str, include: str) -> List[ResourceIdentifier]:
        """Identifiers of ``include`` hits for a free-text query, best match first."""
        document = self.get(f"/searchResults/{quote(query, safe='')}", {"include": include})
        if document is None:
            return []
        result = document.single()
        return result.related(include) if result is not None else []

    def _url(self, path_or_url: str) -> str:
        if path_or_url.startswith(("http://", "https://")):
            return path_or_url
        return f"{self.session.base_url.rstrip('/')}/{path_or_url.lstrip('/')}"

    def _request(self, url: str, params: Optional[Dict[str, Any]]) -> Optional[Document]:
        try:
            response = self.http.get(url, params=params, timeout=self.session.timeout)
        except requests.RequestException as exc:
            logger.error("TIDAL request to %s failed: %s", url, exc)
            raise CatalogFetchError(f"TIDAL request failed: {exc}") from exc

        if response.status_code == 404:
            logger.debug("TIDAL resource not found: %s", url)
            return None
        if not response.ok:
            logger.error("TIDAL request to %s returned %s: %s", url, response.status_code, response.text[:500])
            raise CatalogFetchError(
                f"TIDAL request failed with HTTP {response.status_code}",
                status_code=response.status_code,
            )

        try:
            return Document.model_validate(response.json())
        except ValueError as exc:
            logger.error("Unexpected TIDAL payload from %s: %s", url, exc)
            raise CatalogFetchError(f"Unexpected TIDAL payload: {exc}") from exc


__all__ = [
    "TidalSession",
    "TidalApiClient",
    "Document",
    "Resource",
    "ResourceIdentifier",
    "Relationship",
    "Links",
    "IncludedIndex",
]
