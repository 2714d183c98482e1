"""Pytest configuration for test isolation.

The CLI and :func:`expense_analyzer.persistence.open_default_store` read
``EA_DATA_DIR`` (JSON file store) and ``DATABASE_URL`` (SQL store) from the
environment, and the CLI also loads a ``.env`` from the working directory.
Tests that share one working tree would otherwise read and write each other's
ledger files, so every test gets its own data directory and a clean
environment via an autouse fixture.
"""

from __future__ import annotations

import os
from collections.abc import Iterator
from pathlib import Path

import pytest
from db.client import dispose_engines


@pytest.fixture(autouse=True)
def _isolate_data_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[Path]:
    """Point ``EA_DATA_DIR`` at a per-test directory and run from ``tmp_path``."""

    data_root = tmp_path / "data"
    data_root.mkdir(parents=True, exist_ok=True)
    monkeypatch.setenv("EA_DATA_DIR", os.fspath(data_root))
    for var in ("DATABASE_URL", "OPENAI_API_KEY", "EA_MODEL", "EA_CHUNK_CHARS"):
        monkeypatch.delenv(var, raising=False)
    # No stray .env from the developer's checkout.
    monkeypatch.chdir(tmp_path)
    yield data_root
    dispose_engines()
