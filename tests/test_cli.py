from __future__ import annotations

import json

import pytest
from typer.testing import CliRunner

from expense_analyzer.cli import app

runner = CliRunner()


def _tx(id, description, amount, *, date="2024-03-01", type="debit", category="Food"):
    return {"id": id, "date": date, "description": description, "amount": amount, "type": type, "category": category}


@pytest.fixture
def export_file(tmp_path):
    path = tmp_path / "export.json"
    doc = {
        "transactions": [
            _tx("t1", "Uber", 12),
            _tx("t2", "Uber", 15, date="2024-03-09"),
            _tx("t3", "Salary", 2500, type="credit", category="Income"),
            _tx("t4", "Uber", 9, date="2024-04-02"),
        ],
        "balances": [
            {"id": "b1", "source": "Chase", "year": "2024", "month": "03", "openingBalance": 100, "closingBalance": 2573}
        ],
        "sources": ["Chase"],
    }
    path.write_text(json.dumps(doc), encoding="utf-8")
    return path


def _exported(tmp_path) -> dict:
    out = tmp_path / "out.json"
    result = runner.invoke(app, ["export", "--output", str(out)])
    assert result.exit_code == 0, result.output
    return json.loads(out.read_text(encoding="utf-8"))


def test_import_json_then_export(tmp_path, export_file):
    result = runner.invoke(app, ["import", str(export_file), "--yes"])
    assert result.exit_code == 0, result.output
    assert "Imported 4 new transaction(s)" in result.output

    again = runner.invoke(app, ["import", str(export_file), "--yes"])
    assert "Imported 0 new transaction(s)" in again.output

    doc = _exported(tmp_path)
    assert doc["version"] == 1
    assert [t["id"] for t in doc["transactions"]] == ["t4", "t2", "t1", "t3"]
    assert doc["sources"] == ["Chase"]
    assert doc["currency"] == "USD"


def test_import_missing_file_fails(tmp_path):
    result = runner.invoke(app, ["import", str(tmp_path / "nope.pdf"), "--yes"])
    assert result.exit_code == 1
    assert "File not found" in result.output


def test_import_statement_without_api_key_fails(tmp_path):
    path = tmp_path / "statement.txt"
    path.write_text("03/01 COFFEE 4.50\n", encoding="utf-8")
    result = runner.invoke(app, ["import", str(path), "--source", "Chase", "--yes"])
    assert result.exit_code == 1
    assert "OPENAI_API_KEY" in result.output


def test_summary(export_file):
    runner.invoke(app, ["import", str(export_file), "--yes"])
    result = runner.invoke(app, ["summary", "--year", "2024", "--month", "03", "--transactions"])
    assert result.exit_code == 0, result.output
    assert "Income" in result.output
    assert "$2,600.00" in result.output
    assert "Salary" in result.output


def test_duplicates(tmp_path):
    empty = runner.invoke(app, ["duplicates"])
    assert "No possible duplicates found." in empty.output

    path = tmp_path / "dupes.json"
    doc = {"transactions": [_tx("d1", "Netflix", 9.99), _tx("d2", " netflix", 9.99, date="2024-04-01"), _tx("d3", "Gym", 30)]}
    path.write_text(json.dumps(doc), encoding="utf-8")
    runner.invoke(app, ["import", str(path), "--yes"])
    result = runner.invoke(app, ["duplicates"])
    assert result.exit_code == 0
    assert "Possible duplicates (2)" in result.output
    assert "Gym" not in result.output


def test_recategorize_all_matching(tmp_path, export_file):
    runner.invoke(app, ["import", str(export_file), "--yes"])
    result = runner.invoke(app, ["recategorize", "t1", "Transport", "--mode", "all"])
    assert result.exit_code == 0, result.output
    assert "Updated 3 transaction(s)" in result.output
    doc = _exported(tmp_path)
    assert {t["id"] for t in doc["transactions"] if t["category"] == "Transport"} == {"t1", "t2", "t4"}


def test_recategorize_unique_description_and_unknown_id(export_file):
    runner.invoke(app, ["import", str(export_file), "--yes"])
    ok = runner.invoke(app, ["recategorize", "t3", "Bonus"])
    assert ok.exit_code == 0
    assert "Updated 1 transaction" in ok.output
    missing = runner.invoke(app, ["recategorize", "zzz", "Food"])
    assert missing.exit_code == 1
    assert "No transaction with id" in missing.output


def test_sources_add_and_list():
    result = runner.invoke(app, ["sources", "--add", " HDFC "])
    assert result.exit_code == 0
    assert "HDFC" in result.output.splitlines()
    blank = runner.invoke(app, ["sources", "--add", "  "])
    assert blank.exit_code == 1


def test_clear_by_period_and_everything(tmp_path, export_file):
    runner.invoke(app, ["import", str(export_file), "--yes"])

    bad = runner.invoke(app, ["clear", "--month", "03", "--yes"])
    assert bad.exit_code == 1

    result = runner.invoke(app, ["clear", "--year", "2024", "--month", "04", "--yes"])
    assert result.exit_code == 0
    assert "Removed 1 transaction(s)." in result.output

    aborted = runner.invoke(app, ["clear", "--all"], input="n\n")
    assert aborted.exit_code == 1
    assert len(_exported(tmp_path)["transactions"]) == 3

    wiped = runner.invoke(app, ["clear", "--all", "--yes"])
    assert wiped.exit_code == 0
    assert _exported(tmp_path)["transactions"] == []


@pytest.mark.parametrize("category", ["", "   "])
def test_recategorize_rejects_blank_category(tmp_path, export_file, category):
    runner.invoke(app, ["import", str(export_file), "--yes"])
    result = runner.invoke(app, ["recategorize", "t3", category])
    assert result.exit_code == 1
    assert "category must be non-blank" in result.output
    assert {t["category"] for t in _exported(tmp_path)["transactions"]} == {"Food", "Income"}
