# receiver/stores.py
"""
Store locator: maps a database name to <database_files>/<name>.db and hands
out SQLAlchemy connections to it.

Engines are cached per resolved file path (bounded LRU with idle eviction).
With STORE_CACHE_SIZE=0 every request gets its own NullPool engine that is
disposed as soon as the request is done. Either way SQLite's file locking
keeps a single writer per store file; busy_timeout makes other writers wait.
"""

import sqlite3
import threading
import time
from collections import OrderedDict
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Tuple

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import NullPool

from receiver import monitoring
from receiver.config import Settings
from receiver.errors import InvalidNameError, StorageError
from receiver.names import validate_database_name

STORE_SUFFIX = ".db"


def store_path(root: str, database_name: str) -> Path:
    """Return the file backing `database_name`. Same name, same path."""
    validate_database_name(database_name)
    root_path = Path(root).resolve()
    path = (root_path / f"{database_name}{STORE_SUFFIX}").resolve()
    if path.parent != root_path:
        raise InvalidNameError("Database name escapes the store root", details={"database": database_name})
    return path


def _enable_wal(cursor, path: Path) -> None:
    # journal_mode is persistent in the file; only the first switch needs the lock
    mode = cursor.execute("PRAGMA journal_mode").fetchone()[0]
    if str(mode).lower() == "wal":
        return
    try:
        cursor.execute("PRAGMA journal_mode = WAL")
    except sqlite3.OperationalError as e:
        # another connection is switching the same new file; it stays usable either way
        monitoring.logger.warning("Could not enable WAL: %s", e, extra={"store": str(path)})


def _make_engine(path: Path, settings: Settings, pooled: bool = True) -> Engine:
    connect_args = {
        "check_same_thread": False,
        "timeout": settings.busy_timeout_ms / 1000.0,
    }
    kwargs = {} if pooled else {"poolclass": NullPool}
    # hide_parameters keeps document bodies out of exception text and logs
    engine = create_engine(
        f"sqlite:///{path}", connect_args=connect_args, hide_parameters=True, **kwargs
    )

    @event.listens_for(engine, "connect")
    def _configure_connection(dbapi_conn, _record):
        cursor = dbapi_conn.cursor()
        try:
            cursor.execute(f"PRAGMA busy_timeout = {int(settings.busy_timeout_ms)}")
            if settings.wal_mode:
                _enable_wal(cursor, path)
            cursor.execute("PRAGMA synchronous = NORMAL")
        finally:
            cursor.close()

    return engine


class StoreRegistry:
    """Hands out store handles for one configured root directory."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self._engines: "OrderedDict[Path, Tuple[Engine, float]]" = OrderedDict()
        self._lock = threading.Lock()

    @property
    def pooled(self) -> bool:
        return self.settings.store_cache_size > 0

    def path_for(self, database_name: str) -> Path:
        return store_path(self.settings.database_files, database_name)

    def resolve(self, database_name: str) -> Engine:
        """Return the engine for `database_name`, creating it if needed."""
        path = self.path_for(database_name)
        if not self.pooled:
            return _make_engine(path, self.settings, pooled=False)
        now = time.monotonic()
        with self._lock:
            self._evict_idle(now)
            entry = self._engines.pop(path, None)
            engine = entry[0] if entry else _make_engine(path, self.settings)
            self._engines[path] = (engine, now)
            while len(self._engines) > self.settings.store_cache_size:
                old_path, (old_engine, _) = self._engines.popitem(last=False)
                monitoring.logger.debug("Evicting store engine", extra={"store": str(old_path)})
                old_engine.dispose()
            monitoring.set_open_stores(len(self._engines))
        return engine

    def _evict_idle(self, now: float) -> None:
        cutoff = now - self.settings.store_idle_seconds
        for path in [p for p, (_, used) in self._engines.items() if used < cutoff]:
            engine, _ = self._engines.pop(path)
            monitoring.logger.debug("Disposing idle store engine", extra={"store": str(path)})
            engine.dispose()

    @contextmanager
    def open_store(self, database_name: str) -> Iterator[Connection]:
        """Yield an open connection to the store, creating the file if absent."""
        engine = self.resolve(database_name)
        try:
            try:
                conn = engine.connect()
            except SQLAlchemyError as e:
                raise StorageError(
                    "Unable to open store",
                    details={"database": database_name, "operation": "open"},
                ) from e
            try:
                yield conn
            finally:
                conn.close()
        finally:
            if not self.pooled:
                engine.dispose()

    def cached_stores(self) -> int:
        with self._lock:
            return len(self._engines)

    def dispose(self) -> None:
        with self._lock:
            for engine, _ in self._engines.values():
                engine.dispose()
            self._engines.clear()
            monitoring.set_open_stores(0)
