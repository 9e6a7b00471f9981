"""Extract catalog ids from bare ids or TIDAL links."""

from __future__ import annotations

import re

from tidalcache.errors import InvalidIdentifierError

_NUMERIC_ID = r"[0-9]{9}"
_UUID_ID = r"[0-9A-Fa-f]{8}-[0-9A-Fa-f]{4}-[0-9A-Fa-f]{4}-[0-9A-Fa-f]{4}-[0-9A-Fa-f]{12}"

# Either the whole input is a bare id, or the id is the path segment after
# ".../<segment>/". The id must not run on into further word characters, so a
# 10-digit number is rejected rather than truncated. Only ASCII digits form an
# id, while any Unicode word character blocks a run-on.
_ID_PATTERN = re.compile(
    rf"(?:^|[^/\s]/)(?P<id>{_NUMERIC_ID}|{_UUID_ID})(?![\w-])"
)


def extract_id(id_or_url: str) -> str:
    """Return the catalog id contained in ``id_or_url``.

    >>> extract_id("123456789")
    '123456789'
    >>> extract_id("https://tidal.com/browse/track/123456789")
    '123456789'
    """
    candidate = (id_or_url or "").strip()
    match = _ID_PATTERN.search(candidate)
    if match is None:
        raise InvalidIdentifierError(f'Invalid URL or ID: "{id_or_url}"')
    return match.group("id")


__all__ = ["extract_id"]
