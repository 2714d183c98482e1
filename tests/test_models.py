from __future__ import annotations

import pytest
from pydantic import ValidationError

from expense_analyzer import config
from expense_analyzer.models import StatementBalance, Transaction
from tests.helpers.records import make_tx


def test_transaction_json_uses_camel_case_and_omits_none():
    t = make_tx("a", source=None, original_text="RAW")
    assert t.to_json() == {
        "id": "a",
        "date": "2024-03-10",
        "description": "Coffee",
        "amount": 5.0,
        "type": "debit",
        "category": "Food",
        "originalText": "RAW",
    }
    assert Transaction.model_validate(t.to_json()) == t


def test_with_changes_validates_and_returns_a_copy():
    t = make_tx("a")
    changed = t.with_changes(amount=7)
    assert changed.amount == 7
    assert t.amount == 5
    with pytest.raises(ValidationError):
        t.with_changes(type="refund")
    with pytest.raises(ValueError, match="Unknown field"):
        t.with_changes(colour="red")


def test_statement_balance_normalizes_period():
    b = StatementBalance(id="b", source="Chase", month=3, year=2024, opening_balance=1, closing_balance=2)
    assert (b.year, b.month) == ("2024", "03")
    assert StatementBalance.model_validate({**b.to_json(), "month": " 7 "}).month == "07"


def test_config_readers_fall_back_to_defaults(monkeypatch, tmp_path):
    assert config.get_model() == config.DEFAULT_MODEL
    monkeypatch.setenv("EA_MODEL", " gpt-test ")
    assert config.get_model() == "gpt-test"

    monkeypatch.setenv("EA_CHUNK_CHARS", "abc")
    assert config.get_chunk_chars() == config.DEFAULT_CHUNK_CHARS
    monkeypatch.setenv("EA_CHUNK_CHARS", "-5")
    assert config.get_chunk_chars() == config.DEFAULT_CHUNK_CHARS

    monkeypatch.delenv("EA_DATA_DIR")
    assert config.get_data_dir() == (tmp_path / ".expense_analyzer").resolve()
    assert config.get_database_url() is None
    assert not config.has_openai_key()
