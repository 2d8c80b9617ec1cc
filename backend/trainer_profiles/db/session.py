"""Engine and session helpers for the trainer profile store."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Dict, Generator, Optional

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ..config import Settings, get_settings
from .monitoring import instrument_engine

_engine: Optional[Engine] = None
_sessions: Optional[sessionmaker[Session]] = None


def _is_memory_sqlite(database_url: str) -> bool:
    return database_url in {"sqlite://", "sqlite:///:memory:"} or "mode=memory" in database_url


def engine_options(settings: Settings) -> Dict[str, Any]:
    """Keyword arguments for ``create_engine`` derived from the configured URL."""
    database_url = settings.database_url
    if not database_url:
        raise RuntimeError("TRAINER_DATABASE_URL must be configured before using the database.")

    options: Dict[str, Any] = {"echo": settings.database_echo, "pool_pre_ping": True}
    if not database_url.startswith("sqlite"):
        options.update(pool_size=settings.database_pool_size, max_overflow=settings.database_max_overflow)
        return options

    # Store calls run in the threadpool, so connections cross threads.
    options["connect_args"] = {"check_same_thread": False}
    if _is_memory_sqlite(database_url):
        # Every session must see the same in-memory database.
        options["poolclass"] = StaticPool
    return options


def get_engine() -> Engine:
    """Build the engine on first use and attach pool instrumentation to it."""
    global _engine, _sessions
    if _engine is None:
        settings = get_settings()
        engine = create_engine(settings.database_url, **engine_options(settings))
        instrument_engine(engine)
        _engine = engine
        _sessions = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    return _engine


@contextmanager
def session_scope(*, commit: bool = True) -> Generator[Session, None, None]:
    """One unit of work. Rolls back and re-raises on any error."""
    get_engine()
    assert _sessions is not None
    session = _sessions()
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
    global _engine, _sessions
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _sessions = None


__all__ = [
    "dispose_engine",
    "engine_options",
    "get_engine",
    "session_scope",
]
