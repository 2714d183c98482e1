"""Centralized SQLAlchemy engine/session helpers for the workspace.

Usage
-----
from db.client import init_schema, session_scope

init_schema(database_url=url)
with session_scope(database_url=url) as s:
    s.execute(...)

Engines are created lazily and cached per database URL, so a process may
talk to more than one database (tests use a throwaway SQLite file each).
"""

from __future__ import annotations

import os
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from .models.ledger import Base

_ENGINES: dict[str, Engine] = {}
_SESSION_MAKERS: dict[str, sessionmaker[Session]] = {}


def _database_url(override: str | None = None) -> str:
    url = override or os.getenv("DATABASE_URL")
    if not url:
        raise RuntimeError("DATABASE_URL is not set; cannot initialize database client")
    return url


def get_engine(*, database_url: str | None = None) -> Engine:
    """Return the shared engine for ``database_url``, creating it on first use."""

    url = _database_url(database_url)
    engine = _ENGINES.get(url)
    if engine is None:
        engine = create_engine(url, pool_pre_ping=True)
        _SESSION_MAKERS[url] = sessionmaker(bind=engine, expire_on_commit=False, class_=Session)
        _ENGINES[url] = engine
    return engine


def get_session(*, database_url: str | None = None) -> Session:
    """Return a new SQLAlchemy session bound to the shared engine."""

    url = _database_url(database_url)
    get_engine(database_url=url)
    return _SESSION_MAKERS[url]()


@contextmanager
def session_scope(*, database_url: str | None = None) -> Iterator[Session]:
    """Provide a transactional scope around a series of operations."""

    session = get_session(database_url=database_url)
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_schema(*, database_url: str | None = None) -> None:
    """Create any missing tables (no-op for tables that already exist)."""

    Base.metadata.create_all(get_engine(database_url=database_url))


def dispose_engines() -> None:
    """Close every cached engine and forget it."""

    for engine in _ENGINES.values():
        engine.dispose()
    _ENGINES.clear()
    _SESSION_MAKERS.clear()


__all__ = [
    "get_engine",
    "get_session",
    "session_scope",
    "init_schema",
    "dispose_engines",
]
