from __future__ import annotations

import json

import pytest

from expense_analyzer.persistence import (
    TRANSACTIONS_KEY,
    JsonFileStore,
    MemoryStore,
    SqlKeyValueStore,
    open_default_store,
)
from tests.helpers.db import bootstrap_sqlite_db

VALUE = [{"id": "t1", "amount": 5, "description": "Café"}]


def _roundtrip(store) -> None:
    assert store.load(TRANSACTIONS_KEY) is None
    assert store.load(TRANSACTIONS_KEY, []) == []
    store.save(TRANSACTIONS_KEY, VALUE)
    assert store.load(TRANSACTIONS_KEY) == VALUE
    store.save(TRANSACTIONS_KEY, [])
    assert store.load(TRANSACTIONS_KEY) == []
    store.delete(TRANSACTIONS_KEY)
    store.delete(TRANSACTIONS_KEY)
    assert store.load(TRANSACTIONS_KEY, "missing") == "missing"


def test_memory_store_roundtrip_and_isolation():
    store = MemoryStore()
    _roundtrip(store)
    value = [{"id": "x"}]
    store.save("k", value)
    value[0]["id"] = "mutated"
    loaded = store.load("k")
    loaded.append("extra")
    assert store.load("k") == [{"id": "x"}]
    assert store.keys() == ["k"]


def test_json_file_store_roundtrip(tmp_path):
    store = JsonFileStore(tmp_path / "ledger")
    _roundtrip(store)


def test_json_file_store_writes_one_file_per_key(tmp_path):
    store = JsonFileStore(tmp_path)
    store.save(TRANSACTIONS_KEY, VALUE)
    path = tmp_path / f"{TRANSACTIONS_KEY}.json"
    assert json.loads(path.read_text(encoding="utf-8")) == VALUE
    assert not list(tmp_path.glob("*.tmp"))


def test_json_file_store_corrupt_file_raises(tmp_path):
    (tmp_path / f"{TRANSACTIONS_KEY}.json").write_text("{oops", encoding="utf-8")
    with pytest.raises(ValueError):
        JsonFileStore(tmp_path).load(TRANSACTIONS_KEY)


def test_sql_store_roundtrip(tmp_path):
    url = bootstrap_sqlite_db(tmp_path / "kv.sqlite")
    store = SqlKeyValueStore(url)
    _roundtrip(store)
    store.save("EA_CURRENCY_V1", "INR")
    # A second store over the same database sees the value.
    assert SqlKeyValueStore(url).load("EA_CURRENCY_V1") == "INR"


def test_open_default_store_picks_backend(tmp_path, monkeypatch, _isolate_data_dir):
    store = open_default_store()
    assert isinstance(store, JsonFileStore)
    assert store.root == _isolate_data_dir.resolve()

    url = bootstrap_sqlite_db(tmp_path / "default.sqlite")
    monkeypatch.setenv("DATABASE_URL", url)
    assert isinstance(open_default_store(), SqlKeyValueStore)
