"""Key-value persistence for the canonical collections.

Each collection is stored under its own key as a JSON-compatible value
(lists of camelCase record mappings, a currency string, category lists).
There are no cross-key transactions: a torn state such as transactions
present but balances missing is normal and loads as empty for the missing
key.

Backends:
- :class:`MemoryStore`: process-local, for tests and embedding.
- :class:`JsonFileStore`: one ``<KEY>.json`` file per key under a directory,
  written atomically (temp file + ``os.replace``).
- :class:`SqlKeyValueStore`: the ``ea_kv_entries`` table via ``db.client``.
"""

from __future__ import annotations

import copy
import json
import os
from pathlib import Path
from typing import Any, Protocol

from db.client import init_schema, session_scope
from db.models.ledger import KvEntry

from .config import get_data_dir, get_database_url
from .logging_setup import get_logger

TRANSACTIONS_KEY = "EA_TRANSACTIONS_V1"
CC_TRANSACTIONS_KEY = "EA_CC_TRANSACTIONS_V1"
INVESTMENTS_KEY = "EA_INVESTMENTS_V1"
LOANS_KEY = "EA_LOANS_V1"
BALANCES_KEY = "EA_BALANCES_V1"
SOURCES_KEY = "EA_SOURCES_V1"
CURRENCY_KEY = "EA_CURRENCY_V1"
EXPENSE_EXCLUDED_KEY = "EA_EXPENSE_FILTER_EXCLUDED"
INVESTMENT_INCLUDED_KEY = "EA_INVESTMENT_FILTER_INCLUDED"

ALL_KEYS: tuple[str, ...] = (
    TRANSACTIONS_KEY,
    CC_TRANSACTIONS_KEY,
    INVESTMENTS_KEY,
    LOANS_KEY,
    BALANCES_KEY,
    SOURCES_KEY,
    CURRENCY_KEY,
    EXPENSE_EXCLUDED_KEY,
    INVESTMENT_INCLUDED_KEY,
)

_logger = get_logger("expense_analyzer.persistence")


class KeyValueStore(Protocol):
    def load(self, key: str, default: Any = None) -> Any: ...

    def save(self, key: str, value: Any) -> None: ...

    def delete(self, key: str) -> None: ...


class MemoryStore:
    """Dict-backed store. Values are deep-copied in and out."""

    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        self._data: dict[str, Any] = copy.deepcopy(initial) if initial else {}

    def load(self, key: str, default: Any = None) -> Any:
        if key not in self._data:
            return default
        return copy.deepcopy(self._data[key])

    def save(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return sorted(self._data)


class JsonFileStore:
    """One JSON file per key under ``root``.

    ``load`` raises ``ValueError`` (``json.JSONDecodeError``) for a corrupt
    file; callers decide whether that is fatal.
    """

    def __init__(self, root: str | Path | None = None) -> None:
        self.root = Path(root) if root is not None else get_data_dir()

    def _path(self, key: str) -> Path:
        return self.root / f"{key}.json"

    def load(self, key: str, default: Any = None) -> Any:
        path = self._path(key)
        if not path.exists():
            return default
        with path.open("r", encoding="utf-8") as f:
            return json.load(f)

    def save(self, key: str, value: Any) -> None:
        path = self._path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(".json.tmp")
        with tmp.open("w", encoding="utf-8") as f:
            json.dump(value, f, ensure_ascii=False, indent=2)
        os.replace(tmp, path)

    def delete(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)


class SqlKeyValueStore:
    """Rows of ``ea_kv_entries`` keyed by storage key.

    The table is created on construction when missing.
    """

    def __init__(self, database_url: str | None = None) -> None:
        self.database_url = database_url or get_database_url()
        init_schema(database_url=self.database_url)

    def load(self, key: str, default: Any = None) -> Any:
        with session_scope(database_url=self.database_url) as session:
            row = session.get(KvEntry, key)
            if row is None:
                return default
            return row.value

    def save(self, key: str, value: Any) -> None:
        with session_scope(database_url=self.database_url) as session:
            row = session.get(KvEntry, key)
            if row is None:
                session.add(KvEntry(key=key, value=value))
            else:
                row.value = value

    def delete(self, key: str) -> None:
        with session_scope(database_url=self.database_url) as session:
            row = session.get(KvEntry, key)
            if row is not None:
                session.delete(row)


def open_default_store() -> KeyValueStore:
    """SQL store when ``DATABASE_URL`` is set, else the JSON file store."""

    url = get_database_url()
    if url:
        _logger.info("persistence:open backend=sql")
        return SqlKeyValueStore(url)
    root = get_data_dir()
    _logger.info("persistence:open backend=json root=%s", root)
    return JsonFileStore(root)


__all__ = [
    "TRANSACTIONS_KEY",
    "CC_TRANSACTIONS_KEY",
    "INVESTMENTS_KEY",
    "LOANS_KEY",
    "BALANCES_KEY",
    "SOURCES_KEY",
    "CURRENCY_KEY",
    "EXPENSE_EXCLUDED_KEY",
    "INVESTMENT_INCLUDED_KEY",
    "ALL_KEYS",
    "KeyValueStore",
    "MemoryStore",
    "JsonFileStore",
    "SqlKeyValueStore",
    "open_default_store",
]
