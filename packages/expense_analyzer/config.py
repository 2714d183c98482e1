"""Environment-driven settings.

Each reader tolerates a missing or malformed value by falling back to its
default. Nothing is read at import time; the CLI loads ``.env`` first and the
readers see the merged environment.
"""

from __future__ import annotations

import os
from pathlib import Path

DEFAULT_MODEL = "gpt-5-mini"
DEFAULT_CHUNK_CHARS = 50_000
DEFAULT_DATA_DIR = ".expense_analyzer"


def get_model() -> str:
    """Model name for the extraction service (``EA_MODEL``)."""

    val = os.getenv("EA_MODEL")
    return val.strip() if val and val.strip() else DEFAULT_MODEL


def get_chunk_chars() -> int:
    """Upper bound on characters per extraction chunk (``EA_CHUNK_CHARS``)."""

    raw = os.getenv("EA_CHUNK_CHARS")
    try:
        val = int(raw) if raw else DEFAULT_CHUNK_CHARS
    except ValueError:
        return DEFAULT_CHUNK_CHARS
    return val if val > 0 else DEFAULT_CHUNK_CHARS


def get_data_dir() -> Path:
    """Directory for the JSON file store.

    Default: ``./.expense_analyzer`` under the current working directory.
    Override: ``EA_DATA_DIR`` (absolute or relative).
    """

    root = os.getenv("EA_DATA_DIR")
    if root and root.strip():
        return Path(root).expanduser().resolve()
    return (Path.cwd() / DEFAULT_DATA_DIR).resolve()


def get_database_url() -> str | None:
    url = os.getenv("DATABASE_URL")
    return url.strip() if url and url.strip() else None


def has_openai_key() -> bool:
    return bool((os.getenv("OPENAI_API_KEY") or "").strip())


__all__ = [
    "DEFAULT_MODEL",
    "DEFAULT_CHUNK_CHARS",
    "get_model",
    "get_chunk_chars",
    "get_data_dir",
    "get_database_url",
    "has_openai_key",
]
