# Overview: Translates ORM session flushes into entity lifecycle hooks for registered observers.

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable

from sqlalchemy import event, inspect
from sqlalchemy.engine import Connection
from sqlalchemy.orm import Session

CREATED = "created"
UPDATED = "updated"
DELETED = "deleted"
RESTORED = "restored"
PERMANENTLY_DELETED = "permanently_deleted"

SOFT_DELETE_FIELD = "deleted_at"


@dataclass(frozen=True)
class Mutation:
    kind: str
    entity: object
    dirty_fields: frozenset = field(default_factory=frozenset)


def changed_fields(obj) -> frozenset:
    """Column attributes with pending changes (a value set to what it already was is not a change)."""
    state = inspect(obj)
    return frozenset(
        attr.key
        for attr in state.mapper.column_attrs
        if state.attrs[attr.key].history.has_changes()
    )


class MutationEventSource:
    """
    Lifecycle hooks for registered models, driven by SQLAlchemy session events.

    For every flush:
    - INSERT                                 -> on_created(conn, entity)
    - UPDATE setting deleted_at              -> on_deleted(conn, entity)
    - UPDATE clearing deleted_at             -> on_restored(conn, entity)
    - any other UPDATE with changed columns  -> on_updated(conn, entity, dirty_fields)
    - session.delete()                       -> on_permanently_deleted(conn, entity)

    Observers run in after_flush, on the flush's connection and inside its
    transaction, after all of the flush's rows are written. An observer
    without a matching on_* method is skipped. Observer errors are logged
    and swallowed here as a last line; observers are expected to contain
    their own failures.
    """

    def __init__(self, *, logger: logging.Logger | None = None, session_filter: Callable[[Session], bool] | None = None):
        self._observers: dict[type, list] = {}
        self._targets: list = []
        self.logger = logger or logging.getLogger(__name__)
        # Listeners on a shared session factory only act on the sessions this returns True for
        self.session_filter = session_filter

    def register(self, model: type, observer) -> None:
        self._observers.setdefault(model, []).append(observer)

    def observers_for(self, obj) -> list:
        found = []
        for model, observers in self._observers.items():
            if isinstance(obj, model):
                found.extend(observers)
        return found

    # -- installation ----------------------------------------------------------

    def install(self, target) -> None:
        """Attach to a Session, sessionmaker, scoped_session or Session subclass."""
        if target in self._targets:
            return
        event.listen(target, "before_flush", self._before_flush)
        event.listen(target, "after_flush", self._after_flush)
        self._targets.append(target)

    def uninstall(self) -> None:
        for target in self._targets:
            event.remove(target, "before_flush", self._before_flush)
            event.remove(target, "after_flush", self._after_flush)
        self._targets.clear()

    @property
    def installed(self) -> bool:
        return bool(self._targets)

    # -- session hooks ---------------------------------------------------------

    def applies_to(self, session) -> bool:
        return self.session_filter is None or self.session_filter(session)

    def _before_flush(self, session, flush_context, instances) -> None:
        if not self.applies_to(session):
            return
        # Rows about to be DELETEd can't be lazy-loaded after the flush:
        # load their expired columns now so observers can read them.
        for obj in list(session.deleted):
            if not self.observers_for(obj):
                continue
            state = inspect(obj)
            for key in list(state.expired_attributes):
                getattr(obj, key)

    def _after_flush(self, session, flush_context) -> None:
        if not self.applies_to(session):
            return
        mutations = self._collect(session)
        if not mutations:
            return
        conn = session.connection()
        for mutation in mutations:
            self.dispatch(conn, mutation)

    def _collect(self, session) -> list[Mutation]:
        mutations = []
        for obj in list(session.new):
            if self.observers_for(obj):
                mutations.append(Mutation(CREATED, obj))

        for obj in list(session.dirty):
            if not self.observers_for(obj):
                continue
            dirty = changed_fields(obj)
            if not dirty:
                continue
            mutations.append(Mutation(self._classify_update(obj, dirty), obj, dirty))

        for obj in list(session.deleted):
            if self.observers_for(obj):
                mutations.append(Mutation(PERMANENTLY_DELETED, obj))
        return mutations

    @staticmethod
    def _classify_update(obj, dirty: frozenset) -> str:
        if SOFT_DELETE_FIELD not in dirty:
            return UPDATED
        history = inspect(obj).attrs[SOFT_DELETE_FIELD].history
        before = history.deleted[0] if history.deleted else None
        after = getattr(obj, SOFT_DELETE_FIELD)
        if after is None:
            return RESTORED
        if before is None:
            return DELETED
        return UPDATED

    # -- dispatch --------------------------------------------------------------

    def dispatch(self, conn: Connection, mutation: Mutation) -> None:
        for observer in self.observers_for(mutation.entity):
            handler = getattr(observer, f"on_{mutation.kind}", None)
            if handler is None:
                continue
            try:
                if mutation.kind == UPDATED:
                    handler(conn, mutation.entity, mutation.dirty_fields)
                else:
                    handler(conn, mutation.entity)
            except Exception:
                self.logger.exception(
                    "Observer %s failed handling %s",
                    type(observer).__name__,
                    mutation.kind,
                    extra={"operation": mutation.kind, "entity": type(mutation.entity).__name__},
                )
