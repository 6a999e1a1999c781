"""Engine and session helpers for the engine's persistence layer."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Callable, ContextManager, Dict, Generator, Optional

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ..config import Settings, get_settings

SessionScope = Callable[[], ContextManager[Session]]
"""Callable returning a transactional session context; injected into services."""


_engine: Optional[Engine] = None
_session_factory: Optional[sessionmaker[Session]] = None


def _is_in_memory_sqlite(database_url: str) -> bool:
    return database_url in ("sqlite://", "sqlite:///:memory:")


def _engine_options(settings: Settings, database_url: str) -> Dict[str, Any]:
    options: Dict[str, Any] = {
        "echo": settings.database_echo,
        "future": True,
        "pool_pre_ping": True,
    }
    if not database_url.startswith("sqlite"):
        options["pool_size"] = settings.database_pool_size
        options["max_overflow"] = settings.database_max_overflow
        return options

    # Sweeps may fan out to worker threads.
    options["connect_args"] = {"check_same_thread": False}
    if _is_in_memory_sqlite(database_url):
        # One shared connection, otherwise every thread sees its own empty database.
        options["poolclass"] = StaticPool
    return options


def _enable_sqlite_foreign_keys(engine: Engine) -> None:
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, _connection_record) -> None:  # pragma: no cover - driver hook
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def _build_engine(settings: Settings) -> Engine:
    database_url = settings.database_url
    if not database_url:
        raise RuntimeError("ADAPTIVE_DATABASE_URL must be configured before using the database.")

    engine = create_engine(database_url, **_engine_options(settings, database_url))
    if engine.dialect.name == "sqlite":
        # Snapshot, recommendation and trigger rows cascade with their user.
        _enable_sqlite_foreign_keys(engine)
    return engine


def get_engine() -> Engine:
    global _engine, _session_factory
    if _engine is None:
        _engine = _build_engine(get_settings())
        _session_factory = sessionmaker(
            bind=_engine,
            autoflush=False,
            expire_on_commit=False,
        )
    return _engine


def get_session_factory() -> sessionmaker[Session]:
    if _session_factory is None:
        get_engine()
    assert _session_factory is not None
    return _session_factory


@contextmanager
def session_scope(*, commit: bool = True) -> Generator[Session, None, None]:
    """Yield a session that commits on success and rolls back on any error."""
    session = get_session_factory()()
    try:
        yield session
        if commit:
            session.commit()
    except Exception:  # noqa: BLE001
        session.rollback()
        raise
    finally:
        session.close()


def dispose_engine() -> None:
    """Drop the cached engine so the next use rebuilds it from fresh settings."""
    global _engine, _session_factory
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _session_factory = None


__all__ = [
    "SessionScope",
    "dispose_engine",
    "get_engine",
    "get_session_factory",
    "session_scope",
]
