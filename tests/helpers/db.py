"""DB helpers for tests: bootstrap a temporary SQLite database."""

from __future__ import annotations

from pathlib import Path

from db.client import init_schema


def bootstrap_sqlite_db(db_file: Path) -> str:
    """Create a SQLite database file with the schema and return its URL.

    A file-backed database lets several SQLAlchemy connections share state
    (in-memory SQLite databases are per-connection).
    """

    db_file.parent.mkdir(parents=True, exist_ok=True)
    url = f"sqlite+pysqlite:///{db_file}"
    init_schema(database_url=url)
    return url
