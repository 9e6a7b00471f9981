from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple, Type, TypeVar

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .db_manager import db

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT")


def _path_criterion(model, path: List[str], value: Any):
    """Build a filter for ``path`` (e.g. ``["artist_entries", "artist", "name"]``).

    Relationship hops become ``any()`` for collections and ``has()`` for
    scalar references, so joined natural keys need no explicit joins.
    """
    attr = getattr(model, path[0])
    if len(path) == 1:
        return attr == value
    prop = attr.property
    inner = _path_criterion(prop.mapper.class_, path[1:], value)
    return attr.any(inner) if prop.uselist else attr.has(inner)


class CatalogStore:
    """Thin transactional wrapper around the SQLAlchemy session.

    Every sequence of store calls runs inside :meth:`transaction`, which
    commits on success and rolls back on any exception before re-raising.
    """

    def __init__(self, session_factory: Optional[Callable[[], Session]] = None) -> None:
        self._session_factory = session_factory or (lambda: db.session)

    @property
    def session(self) -> Session:
        return self._session_factory()

    @contextmanager
    def transaction(self) -> Iterator["CatalogStore"]:
        session = self.session
        try:
            yield self
            session.commit()
        except Exception:
            session.rollback()
            raise

    def find_by_id(self, model: Type[ModelT], entity_id: str) -> Optional[ModelT]:
        return self.session.get(model, entity_id)

    def query_by_fields(self, model: Type[ModelT], fields: Dict[str, Any]) -> List[ModelT]:
        """Exact-match query; dotted keys match through relationships."""
        criteria = [_path_criterion(model, key.split("."), value) for key, value in fields.items()]
        stmt = select(model).where(*criteria).order_by(model.id)
        return list(self.session.scalars(stmt).unique())

    def save(self, row: ModelT) -> Tuple[ModelT, bool]:
        """Insert ``row``; if another writer got there first, return theirs.

        The insert runs in a SAVEPOINT so a primary-key conflict only undoes
        this row. Returns ``(stored_row, inserted)``.
        """
        session = self.session
        model = type(row)
        entity_id = row.id
        try:
            with session.begin_nested():
                session.add(row)
        except IntegrityError:
            existing = session.get(model, entity_id, populate_existing=True)
            if existing is None:
                raise
            logger.debug("Concurrent insert detected for %s %s; using existing row", model.__name__, entity_id)
            return existing, False
        return row, True

    def update(self, row: ModelT) -> ModelT:
        merged = self.session.merge(row)
        self.session.flush()
        return merged


__all__ = ["CatalogStore"]
