from __future__ import annotations

import pytest

from expense_analyzer.aggregate import BulkMode
from expense_analyzer.errors import UnknownRecordError
from expense_analyzer.filters import FilterSpec, select_all
from expense_analyzer.models import Account
from expense_analyzer.persistence import (
    BALANCES_KEY,
    CURRENCY_KEY,
    EXPENSE_EXCLUDED_KEY,
    TRANSACTIONS_KEY,
    JsonFileStore,
    MemoryStore,
)
from expense_analyzer.store import ImportBatch, LedgerStore
from tests.helpers.ids import SequentialIds
from tests.helpers.records import make_balance, make_investment, make_loan, make_tx


def _store(persistence=None) -> LedgerStore:
    return LedgerStore.load(persistence or MemoryStore(), ids=SequentialIds("new"), today=lambda: "2024-05-01")


def test_load_tolerates_missing_corrupt_and_malformed_keys(tmp_path):
    (tmp_path / f"{TRANSACTIONS_KEY}.json").write_text("[{", encoding="utf-8")
    persistence = JsonFileStore(tmp_path)
    persistence.save(BALANCES_KEY, [make_balance("Chase", "2024", "01", 1, 2).to_json(), {"id": "broken"}])
    persistence.save(CURRENCY_KEY, 42)

    store = _store(persistence)

    assert store.transactions() == []
    assert len(store.balances) == 1
    assert store.currency == "USD"
    assert store.sources == []


def test_commit_import_merges_and_persists():
    persistence = MemoryStore()
    store = _store(persistence)
    batch = ImportBatch(
        transactions=[make_tx("a", description="Coffee"), make_tx("b", description="Tea", source="Amex")],
        investments=[make_investment("i1")],
        loans=[make_loan("l1")],
        balances=[make_balance("Chase", "2024", "03", 10, 20)],
        sources=["Chase"],
        currency="GBP",
    )

    report = store.commit_import(batch)
    again = store.commit_import(batch)

    assert (report.transactions_added, report.investments_added, report.loans_added, report.balances_written) == (
        2,
        1,
        1,
        1,
    )
    assert again.transactions_added == 0
    assert again.investments_added == 0

    reloaded = _store(persistence)
    assert [t.id for t in reloaded.transactions()] == [t.id for t in store.transactions()]
    assert reloaded.sources == ["Amex", "Chase"]
    assert reloaded.currency == "GBP"
    assert len(reloaded.loans) == 1
    assert len(reloaded.balances) == 1


def test_ledgers_are_independent():
    store = _store()
    store.commit_import(ImportBatch(account=Account.CREDIT_CARD, transactions=[make_tx("c")]))
    assert store.transactions(Account.BANK) == []
    assert [t.id for t in store.transactions("credit_card")] == ["c"]


def test_add_update_delete_transaction():
    store = _store()
    tx = store.add_transaction()
    assert (tx.id, tx.date, tx.description, tx.amount, tx.category, tx.type) == (
        "new-1",
        "2024-05-01",
        "New Transaction",
        0,
        "Uncategorized",
        "debit",
    )
    second = store.add_transaction(description="Rent", amount=900)
    assert [t.id for t in store.transactions()] == [second.id, tx.id]

    assert store.update_transaction(tx.id, "amount", 12.5) is None
    assert store.transactions()[1].amount == 12.5

    store.delete_transaction(tx.id)
    assert [t.id for t in store.transactions()] == [second.id]
    with pytest.raises(UnknownRecordError, match="No transaction with id 'nope'"):
        store.delete_transaction("nope")


def test_category_edit_with_shared_description_needs_confirmation():
    store = _store()
    store.commit_import(
        ImportBatch(
            transactions=[
                make_tx("a", description="Uber", date="2024-03-01"),
                make_tx("b", description="Uber", date="2024-03-02"),
                make_tx("c", description="Uber", date="2024-04-01"),
            ]
        )
    )

    plan = store.update_transaction("a", "category", "Transport")
    assert plan is not None
    assert plan.match_count_all == 3
    # Nothing is applied until confirmed.
    assert {t.category for t in store.transactions()} == {"Food"}

    march = FilterSpec(years={"2024"}, months={"03"}, sources={"Chase"})
    changed = store.confirm_category_change(plan, BulkMode.FILTERED, filtered=store.view(Account.BANK, march))
    assert changed == 2
    assert {t.id for t in store.transactions() if t.category == "Transport"} == {"a", "b"}


def test_category_edit_without_matches_applies_with_type_inference():
    store = _store()
    store.commit_import(ImportBatch(transactions=[make_tx("a", description="Paycheck")]))
    assert store.update_transaction("a", "category", "Income") is None
    t = store.transactions()[0]
    assert (t.category, t.type) == ("Income", "credit")


def test_clear_transactions_by_period():
    store = _store()
    store.commit_import(
        ImportBatch(
            transactions=[
                make_tx("a", date="2024-03-01"),
                make_tx("b", date="2024-04-01"),
                make_tx("c", date="2023-04-01"),
            ]
        )
    )
    store.commit_import(ImportBatch(account=Account.CREDIT_CARD, transactions=[make_tx("d", date="2024-04-09")]))

    assert store.clear_transactions("2024", 4) == 2
    assert [t.id for t in store.transactions()] == ["a", "c"]
    assert store.clear_transactions(2023, account=Account.BANK) == 1
    with pytest.raises(ValueError):
        store.clear_transactions(month="03")
    assert store.clear_transactions() == 1


def test_investments_and_loans_crud():
    store = _store()
    inv = store.add_investment("VTI", 250)
    store.add_investment("BND", 50, type="Bond")
    assert inv.currency == "USD"
    assert store.investment_total() == 300
    store.update_investment(inv.id, "amount", 100)
    assert store.investment_total() == 150
    store.delete_investment(inv.id)
    assert [i.name for i in store.investments] == ["BND"]
    store.clear_investments()
    assert store.investments == []

    store.commit_import(ImportBatch(loans=[make_loan("l1")]))
    assert store.update_loan("l1", "remaining_installments", 4).remaining_installments == 4
    store.delete_loan("l1")
    with pytest.raises(UnknownRecordError):
        store.update_loan("l1", "description", "x")


def test_sources_currency_and_category_selection_persist():
    persistence = MemoryStore()
    store = _store(persistence)
    assert store.add_source("  Chase ") == "Chase"
    with pytest.raises(ValueError):
        store.add_source("   ")
    store.set_currency("INR")
    store.toggle_expense_category("Rent")
    store.toggle_investment_category("Stocks")

    assert persistence.load(EXPENSE_EXCLUDED_KEY) == ["Rent"]
    reloaded = _store(persistence)
    assert reloaded.sources == ["Chase"]
    assert reloaded.currency == "INR"
    assert reloaded.categories.expense_excluded == {"Rent"}
    assert reloaded.categories.investment_included_set == {"Stocks"}


def test_dashboard_combines_balances_and_category_selection():
    store = _store()
    store.commit_import(
        ImportBatch(
            transactions=[
                make_tx("s", description="Salary", amount=2000, type="credit", category="Income"),
                make_tx("r", description="Rent", amount=800, category="Rent"),
                make_tx("e", description="ETF", amount=300, category="Stocks"),
            ],
            balances=[make_balance("Chase", "2024", "03", 500, 1400)],
        )
    )
    store.toggle_expense_category("Stocks")
    store.toggle_investment_category("Stocks")

    dash = store.dashboard(Account.BANK, select_all(store.transactions()))

    assert dash.balances.opening == 500
    assert dash.balances.closing == 1400
    assert dash.summary.total_income == 2500
    assert dash.summary.total_expense_custom == 800
    assert dash.summary.total_investments_custom == 300
    assert dash.summary.total_savings == 1400
    assert dash.categories == ["All", "Income", "Rent", "Stocks"]


def test_export_and_reset():
    persistence = MemoryStore()
    store = _store(persistence)
    store.commit_import(ImportBatch(transactions=[make_tx("a")], sources=["Chase"]))
    doc = store.export_document()
    assert doc["version"] == 1
    assert doc["transactions"][0]["id"] == "a"
    assert doc["creditCardTransactions"] == []
    assert doc["currency"] == "USD"

    store.reset()
    assert store.transactions() == []
    assert persistence.keys() == []


def test_select_and_deselect_all_expense_categories():
    store = _store()
    store.commit_import(
        ImportBatch(
            transactions=[
                make_tx("a", description="Rent", category="Rent"),
                make_tx("b", description="Pay", type="credit", category="Income"),
            ]
        )
    )
    store.commit_import(ImportBatch(account=Account.CREDIT_CARD, transactions=[make_tx("c", category="Travel")]))

    store.deselect_all_expense_categories()
    assert store.categories.expense_excluded == {"Rent", "Travel"}
    store.select_all_expense_categories()
    assert store.categories.expense_excluded == set()
    assert store.observed_categories() == ["All", "Income", "Rent", "Travel"]


def test_category_edits_are_trimmed_and_must_not_be_blank():
    store = _store()
    store.commit_import(
        ImportBatch(transactions=[make_tx("a", description="Uber"), make_tx("b", description="Uber"), make_tx("c")])
    )

    for blank in ("", "   "):
        with pytest.raises(ValueError, match="category must be non-blank"):
            store.update_transaction("c", "category", blank)

    assert store.update_transaction("c", "category", "  Snacks ") is None
    assert next(t for t in store.transactions() if t.id == "c").category == "Snacks"

    plan = store.update_transaction("a", "category", " Transport ")
    assert plan.new_category == "Transport"
    assert store.confirm_category_change(plan, BulkMode.ALL) == 2
    assert {t.category for t in store.transactions() if t.description == "Uber"} == {"Transport"}
