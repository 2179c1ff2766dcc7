# Overview: Table-keyed live query registry; re-runs subscribed queries after committed writes.

"""
Live queries

A LiveQuery wraps a fetch function plus the set of tables it reads. Callers
either run it once (``all()``) or subscribe. A subscription receives the
current result straight away and then the complete new result every time a
committed write touches one of its tables. Emissions are full snapshots,
never deltas.

Change tracking:
- ``after_flush`` records the tables of new, modified and deleted objects on
  the session. Deletes also mark every table reached through ON DELETE
  CASCADE / SET NULL foreign keys, since the engine changes those rows
  without the ORM seeing them.
- ``after_commit`` moves the recorded tables to the per-thread pending set.
- ``after_soft_rollback`` discards them.
- ``dispatch()`` (called by the write path once commit has returned, when
  the session can query again) re-runs every affected subscription.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Generic, Iterable, TypeVar

from sqlalchemy import event
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

T = TypeVar("T")

_SESSION_KEY = "cobros.changed_tables"


class Subscription(Generic[T]):
    """Handle for one consumer of a LiveQuery."""

    def __init__(self, query: "LiveQuery[T]", callback: Callable[[list[T]], None]):
        self.query = query
        self._callback = callback
        self._active = True
        self._emit_lock = threading.RLock()

    @property
    def active(self) -> bool:
        return self._active

    def emit(self) -> None:
        if not self._active:
            return
        with self._emit_lock:
            result = self.query.all()
            # Cancellation may land while the query runs
            if self._active:
                self._callback(result)

    def cancel(self) -> None:
        if not self._active:
            return
        self._active = False
        self.query.registry.unregister(self)


class LiveQuery(Generic[T]):
    def __init__(
        self,
        registry: "LiveQueryRegistry",
        fetch: Callable[[], list[T]],
        tables: Iterable[str],
        name: str | None = None,
    ):
        self.registry = registry
        self._fetch = fetch
        self.tables = frozenset(tables)
        self.name = name or getattr(fetch, "__name__", "live_query")

    def all(self) -> list[T]:
        return list(self._fetch())

    def first(self) -> T | None:
        rows = self.all()
        return rows[0] if rows else None

    def subscribe(self, callback: Callable[[list[T]], None]) -> Subscription[T]:
        subscription = Subscription(self, callback)
        self.registry.register(subscription)
        subscription.emit()
        return subscription

    def __repr__(self) -> str:
        return f"<LiveQuery {self.name} tables={sorted(self.tables)}>"


class LiveQueryRegistry:
    def __init__(self):
        self._lock = threading.RLock()
        self._subscriptions: list[Subscription] = []
        self._local = threading.local()
        self._dependents: dict[str, frozenset[str]] = {}

    def init_app(self, app) -> None:
        app.extensions["cobros_live_queries"] = self
        if not event.contains(Session, "after_flush", self._after_flush):
            event.listen(Session, "after_flush", self._after_flush)
            event.listen(Session, "after_commit", self._after_commit)
            event.listen(Session, "after_soft_rollback", self._after_soft_rollback)

    def query(self, fetch: Callable[[], list[T]], tables: Iterable[str], name: str | None = None) -> LiveQuery[T]:
        return LiveQuery(self, fetch, tables, name=name)

    # ------------------------------------------------------------------
    # Subscription bookkeeping
    # ------------------------------------------------------------------

    def register(self, subscription: Subscription) -> None:
        with self._lock:
            self._subscriptions.append(subscription)

    def unregister(self, subscription: Subscription) -> None:
        with self._lock:
            try:
                self._subscriptions.remove(subscription)
            except ValueError:
                pass

    def active_subscriptions(self) -> list[Subscription]:
        with self._lock:
            return list(self._subscriptions)

    def clear(self) -> None:
        """Cancel every subscription and drop pending notifications."""
        for subscription in self.active_subscriptions():
            subscription.cancel()
        self._pending().clear()

    # ------------------------------------------------------------------
    # Change tracking
    # ------------------------------------------------------------------

    def _pending(self) -> set[str]:
        pending = getattr(self._local, "pending", None)
        if pending is None:
            pending = self._local.pending = set()
        return pending

    def _cascade_targets(self, table) -> frozenset[str]:
        cached = self._dependents.get(table.name)
        if cached is not None:
            return cached

        reached: set[str] = set()
        stack = [table]
        while stack:
            parent = stack.pop()
            for candidate in parent.metadata.tables.values():
                if candidate.name in reached:
                    continue
                for fk in candidate.foreign_keys:
                    ondelete = (fk.ondelete or "").upper()
                    if fk.column.table is parent and ondelete in ("CASCADE", "SET NULL"):
                        reached.add(candidate.name)
                        stack.append(candidate)
                        break

        result = frozenset(reached)
        self._dependents[table.name] = result
        return result

    def _after_flush(self, session, flush_context) -> None:
        changed: set[str] = session.info.setdefault(_SESSION_KEY, set())
        for obj in session.new:
            changed.add(obj.__table__.name)
        for obj in session.dirty:
            if session.is_modified(obj, include_collections=False):
                changed.add(obj.__table__.name)
        for obj in session.deleted:
            changed.add(obj.__table__.name)
            changed.update(self._cascade_targets(obj.__table__))

    def _after_commit(self, session) -> None:
        changed = session.info.pop(_SESSION_KEY, None)
        if changed:
            self._pending().update(changed)

    def _after_soft_rollback(self, session, previous_transaction) -> None:
        session.info.pop(_SESSION_KEY, None)

    def mark_changed(self, *tables: str) -> None:
        """Flag tables changed by statements that bypass the ORM unit of work."""
        self._pending().update(tables)

    # ------------------------------------------------------------------
    # Delivery
    # ------------------------------------------------------------------

    def dispatch(self) -> int:
        """
        Re-run subscriptions affected by writes committed on this thread.

        Returns the number of emissions delivered. Callbacks that write
        again are picked up by the same loop rather than recursing. A
        callback that raises is logged and skipped; the others still run
        and the exception never reaches the writer.
        """
        if getattr(self._local, "dispatching", False):
            return 0
        self._local.dispatching = True
        delivered = 0
        try:
            pending = self._pending()
            while pending:
                changed = set(pending)
                pending.clear()
                affected = [s for s in self.active_subscriptions() if s.query.tables & changed]
                logger.debug("Tables %s changed; re-running %d live queries", sorted(changed), len(affected))
                for subscription in affected:
                    if not subscription.active:
                        continue
                    try:
                        subscription.emit()
                    except Exception:
                        # Remaining subscriptions still receive this change
                        logger.exception("Live query %s failed to deliver", subscription.query.name)
                        continue
                    delivered += 1
        finally:
            self._local.dispatching = False
        return delivered
