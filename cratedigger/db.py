"""SQLAlchemy engine, session helpers and schema bootstrap."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterator
from contextlib import AbstractContextManager, contextmanager
from pathlib import Path
import threading
from typing import TypeVar

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.engine import URL, make_url
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from cratedigger.config import load_config
from cratedigger.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")
SessionCallable = Callable[[Session], T]
SessionFactory = Callable[[], AbstractContextManager[Session]]


class Base(DeclarativeBase):
    pass


metadata = Base.metadata


def _sqlite_path(url: URL) -> Path | None:
    """Filesystem location of a file-backed SQLite URL, else ``None``."""

    if url.get_backend_name() != "sqlite" or url.database in (None, "", ":memory:"):
        return None
    return Path(url.database).expanduser().resolve()


def _on_sqlite_connect(dbapi_connection, _record) -> None:
    cursor = dbapi_connection.cursor()
    try:
        cursor.execute("PRAGMA foreign_keys=ON")
    finally:
        cursor.close()


class _Database:
    """Lazily bound engine and session factory for the configured URL.

    The binding is rebuilt whenever ``DATABASE_URL`` changes, so tests that
    point at a fresh file get a fresh engine.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self.engine: Engine | None = None
        self.sessions: sessionmaker[Session] | None = None

    def bind(self, database_url: str) -> Engine:
        url = make_url(database_url)
        with self._lock:
            if self.engine is not None and self.engine.url == url:
                return self.engine
            self.dispose()
            is_sqlite = url.get_backend_name() == "sqlite"
            engine = create_engine(
                url,
                connect_args={"check_same_thread": False} if is_sqlite else {},
            )
            if is_sqlite:
                event.listen(engine, "connect", _on_sqlite_connect)
            self.engine = engine
            self.sessions = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
            return engine

    def dispose(self) -> None:
        with self._lock:
            if self.engine is not None:
                self.engine.dispose()
            self.engine = None
            self.sessions = None


_database = _Database()


def get_engine() -> Engine:
    return _database.bind(load_config().database.url)


def get_session() -> Session:
    get_engine()
    factory = _database.sessions
    if factory is None:
        raise RuntimeError("Database session factory is not initialized.")
    return factory()


@contextmanager
def session_scope() -> Iterator[Session]:
    """Yield a session that commits on success and rolls back on error."""

    session = get_session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db() -> None:
    """Create every table for the configured database.

    With ``DB_RESET`` enabled a file-backed SQLite database is deleted first.
    """

    config = load_config().database
    path = _sqlite_path(make_url(config.url))
    if path is not None:
        if config.reset and path.exists():
            _database.dispose()
            logger.info("DB_RESET requested; removing %s", path)
            path.unlink()
        path.parent.mkdir(parents=True, exist_ok=True)

    from cratedigger import models  # noqa: F401

    Base.metadata.create_all(bind=get_engine(), checkfirst=True)
    logger.info("Database schema ready", extra={"event": "database.bootstrap"})


def reset_engine_for_tests() -> None:
    _database.dispose()


def _call_with_session(func: SessionCallable[T], factory: SessionFactory | None) -> T:
    with (factory or session_scope)() as session:
        return func(session)


async def run_session(func: SessionCallable[T], *, factory: SessionFactory | None = None) -> T:
    """Run ``func`` inside a session on a worker thread."""

    return await asyncio.to_thread(_call_with_session, func, factory)


__all__ = [
    "Base",
    "get_engine",
    "get_session",
    "init_db",
    "metadata",
    "reset_engine_for_tests",
    "run_session",
    "session_scope",
]
