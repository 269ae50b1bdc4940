# marketplace/services/stores.py
"""Persistence for tasks, users and solutions.

Stores only load, stage and remove rows on the current SQLAlchemy session;
committing is left to the caller so one lifecycle operation is one
transaction. Driver errors come back as marketplace errors.
"""
from __future__ import annotations
import logging
from typing import Optional

from sqlalchemy import exc as sa_exc
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..errors import MarketplaceError, InvalidArgument, NotFound, StateConflict, Transient, VersionConflict
from ..models.task import Task
from ..models.user import User
from ..models.solution import Solution
from .cache import EntityCache

log = logging.getLogger(__name__)


def translate_db_error(exc: Exception, operation: str, entity_id=None) -> MarketplaceError:
    if isinstance(exc, StaleDataError):
        return VersionConflict("entity was modified concurrently, reload and retry",
                               operation=operation, entity_id=entity_id)
    if isinstance(exc, sa_exc.TimeoutError):
        return Transient("database connection pool timed out", operation=operation, entity_id=entity_id)
    if isinstance(exc, (sa_exc.OperationalError, sa_exc.InterfaceError, sa_exc.DisconnectionError)):
        return Transient(f"database unavailable: {exc.__class__.__name__}",
                         operation=operation, entity_id=entity_id)
    if isinstance(exc, sa_exc.IntegrityError):
        return StateConflict("constraint violated", operation=operation, entity_id=entity_id)
    if isinstance(exc, sa_exc.DBAPIError) and exc.connection_invalidated:
        return Transient("database connection lost", operation=operation, entity_id=entity_id)
    return MarketplaceError(f"database error: {exc.__class__.__name__}", operation=operation, entity_id=entity_id)


class _Store:
    kind: str = ""
    model = None

    def __init__(self, session=None, cache: Optional[EntityCache] = None):
        self._session = session
        self.cache = cache

    @property
    def session(self):
        return self._session if self._session is not None else db.session

    def load(self, entity_id):
        if entity_id is None:
            raise InvalidArgument(f"{self.kind} id is required", operation=f"load_{self.kind}")
        try:
            obj = self.session.get(self.model, entity_id)
        except sa_exc.SQLAlchemyError as exc:
            raise translate_db_error(exc, f"load_{self.kind}", entity_id) from exc
        if obj is None:
            raise NotFound(f"{self.kind.capitalize()} identified by {entity_id} not found.",
                           operation=f"load_{self.kind}", entity_id=entity_id)
        return obj

    def read(self, entity_id) -> dict:
        """Snapshot of one entity, served from the cache when possible."""
        if self.cache is not None:
            hit = self.cache.get(self.kind, entity_id)
            if hit is not None:
                return hit
        snapshot = self.load(entity_id).to_dict()
        if self.cache is not None:
            self.cache.put(self.kind, entity_id, snapshot)
        return snapshot

    def exists(self, entity_id) -> bool:
        try:
            self.load(entity_id)
        except NotFound:
            return False
        return True

    def save(self, obj):
        if obj is None:
            raise InvalidArgument(f"{self.kind} is required", operation=f"save_{self.kind}")
        self.session.add(obj)
        return obj

    def delete(self, entity_id) -> bool:
        try:
            obj = self.session.get(self.model, entity_id)
        except sa_exc.SQLAlchemyError as exc:
            raise translate_db_error(exc, f"delete_{self.kind}", entity_id) from exc
        if obj is None:
            return False
        self.session.delete(obj)
        return True

    def invalidate(self, entity_id) -> None:
        if self.cache is not None and entity_id is not None:
            self.cache.invalidate(self.kind, entity_id)


class TaskStore(_Store):
    kind = "task"
    model = Task


class UserStore(_Store):
    kind = "user"
    model = User

    def find_by_username(self, username: str) -> Optional[User]:
        return self.session.query(User).filter_by(username=username).first()

    def find_by_email(self, email: str) -> Optional[User]:
        return self.session.query(User).filter(User.email == (email or "").strip().lower()).first()


class SolutionStore(_Store):
    kind = "solution"
    model = Solution
