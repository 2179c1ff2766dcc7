# Overview: Process-wide storage handle; lazy app/engine creation and SQLite connection setup.

"""
Storage engine access.

Every collaborator shares one Flask app (and therefore one Flask-SQLAlchemy
engine bound to one database file) per process. The app is built on first
use; concurrent first callers block on a lock and all receive the instance
built by whichever caller got there first.

SQLite ships with foreign key enforcement switched off. Cascades
(Comerciante -> Puesto -> Cobro) and SET NULL (Usuario -> Cobro) only run
inside the engine when every connection turns it on, so a connect listener
does that for all SQLite connections opened by this process.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any, Callable, Generic, Mapping, TypeVar

from flask import Flask
from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from .extensions import db

logger = logging.getLogger(__name__)

T = TypeVar("T")


@event.listens_for(Engine, "connect")
def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    if not isinstance(dbapi_connection, sqlite3.Connection):
        return
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class LazyInstance(Generic[T]):
    """
    Mutex-protected lazy cell.

    The factory runs at most once per reset; later callers get the memoized
    value without taking the lock.
    """

    def __init__(self, factory: Callable[[], T]):
        self._factory = factory
        self._value: T | None = None
        self._lock = threading.Lock()

    def get(self) -> T:
        value = self._value
        if value is not None:
            return value
        with self._lock:
            if self._value is None:
                self._value = self._factory()
            return self._value

    def is_initialized(self) -> bool:
        return self._value is not None

    def reset(self) -> None:
        with self._lock:
            self._value = None


_overrides: dict[str, Any] = {}


def _build_app() -> Flask:
    from . import create_app

    app = create_app(_overrides or None)
    logger.info("Storage engine ready at %s", app.config["SQLALCHEMY_DATABASE_URI"])
    return app


_app_cell: LazyInstance[Flask] = LazyInstance(_build_app)


def configure(overrides: Mapping[str, Any]) -> None:
    """Set config overrides used when the shared app is first built."""
    if _app_cell.is_initialized():
        raise RuntimeError("Storage engine already initialized")
    _overrides.clear()
    _overrides.update(overrides)


def get_app() -> Flask:
    """Return the process-wide app, creating it (and the schema) on first call."""
    return _app_cell.get()


def reset() -> None:
    """Dispose the shared engine and forget the app. Intended for tests and shutdown."""
    if _app_cell.is_initialized():
        app = _app_cell.get()
        with app.app_context():
            db.session.remove()
            db.engine.dispose()
    _app_cell.reset()
    _overrides.clear()


@contextmanager
def session_scope() -> Iterator[Session]:
    """
    Push an app context on the shared app and yield its session.

    Service functions expect an active app context; collaborators outside a
    Flask request or CLI command use this to get one.
    """
    app = get_app()
    with app.app_context():
        yield db.session
