"""The canonical store: single writer of every persisted collection.

:class:`LedgerStore` holds the bank and credit-card ledgers, investments,
loans, statement balances, sources, currency and the expense/investment
category selection. It is loaded once from a
:class:`~expense_analyzer.persistence.KeyValueStore` and saves the affected
key(s) after every committed mutation. Records are immutable; every edit
replaces a record with a validated copy.
"""

from __future__ import annotations

import datetime as _dt
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from .aggregate import (
    BulkMode,
    CategoryChangePlan,
    CategorySelection,
    Summary,
    apply_category_change,
    plan_category_change,
    summarize,
)
from .balances import BalanceSummary, resolve_for_selection
from .errors import UnknownRecordError
from .filters import FilterSpec, all_categories, filter_transactions, transaction_year_month
from .ids import IdGenerator, UuidIdGenerator
from .logging_setup import get_logger
from .merge import merge_balances, merge_investments, merge_loans, merge_sources, merge_transactions
from .models import (
    DEBIT,
    EXPORT_VERSION,
    UNCATEGORIZED,
    Account,
    Investment,
    Loan,
    StatementBalance,
    Transaction,
)
from .persistence import (
    ALL_KEYS,
    BALANCES_KEY,
    CC_TRANSACTIONS_KEY,
    CURRENCY_KEY,
    EXPENSE_EXCLUDED_KEY,
    INVESTMENT_INCLUDED_KEY,
    INVESTMENTS_KEY,
    LOANS_KEY,
    SOURCES_KEY,
    TRANSACTIONS_KEY,
    KeyValueStore,
)

DEFAULT_CURRENCY = "USD"
NEW_TRANSACTION_DESCRIPTION = "New Transaction"

_LEDGER_KEYS: dict[Account, str] = {
    Account.BANK: TRANSACTIONS_KEY,
    Account.CREDIT_CARD: CC_TRANSACTIONS_KEY,
}

_logger = get_logger("expense_analyzer.store")

M = TypeVar("M", bound=BaseModel)


@dataclass(frozen=True, slots=True)
class ImportBatch:
    """A complete, validated set of records ready to merge."""

    account: Account = Account.BANK
    transactions: list[Transaction] = field(default_factory=list)
    investments: list[Investment] = field(default_factory=list)
    loans: list[Loan] = field(default_factory=list)
    balances: list[StatementBalance] = field(default_factory=list)
    sources: list[str] = field(default_factory=list)
    currency: str | None = None


@dataclass(frozen=True, slots=True)
class CommitReport:
    transactions_added: int
    investments_added: int
    loans_added: int
    balances_written: int


@dataclass(frozen=True, slots=True)
class Dashboard:
    """Everything a summary screen needs for one ledger and selection."""

    transactions: list[Transaction]
    balances: BalanceSummary
    summary: Summary
    categories: list[str]
    currency: str


def _today() -> str:
    return _dt.date.today().isoformat()


def _clean_category(value: Any) -> str:
    label = value.strip() if isinstance(value, str) else ""
    if not label:
        raise ValueError("category must be non-blank")
    return label


def _load_records(persistence: KeyValueStore, key: str, model: type[M]) -> list[M]:
    try:
        raw = persistence.load(key, [])
    except (OSError, ValueError) as e:
        _logger.warning("store:load_failed key=%s error=%s", key, e.__class__.__name__)
        return []
    if not isinstance(raw, list):
        _logger.warning("store:load_failed key=%s error=not_a_list", key)
        return []
    out: list[M] = []
    skipped = 0
    for item in raw:
        try:
            out.append(model.model_validate(item))
        except ValidationError:
            skipped += 1
    if skipped:
        _logger.warning("store:load_skipped key=%s skipped=%d kept=%d", key, skipped, len(out))
    return out


def _load_strings(persistence: KeyValueStore, key: str) -> list[str]:
    try:
        raw = persistence.load(key, [])
    except (OSError, ValueError) as e:
        _logger.warning("store:load_failed key=%s error=%s", key, e.__class__.__name__)
        return []
    if not isinstance(raw, list):
        return []
    return [s for s in raw if isinstance(s, str)]


class LedgerStore:
    def __init__(
        self,
        persistence: KeyValueStore,
        *,
        ids: IdGenerator | None = None,
        today: Callable[[], str] = _today,
    ) -> None:
        self.persistence = persistence
        self.ids = ids or UuidIdGenerator()
        self._today = today
        self._ledgers: dict[Account, list[Transaction]] = {a: [] for a in Account}
        self.investments: list[Investment] = []
        self.loans: list[Loan] = []
        self.balances: list[StatementBalance] = []
        self.sources: list[str] = []
        self.currency: str = DEFAULT_CURRENCY
        self.categories = CategorySelection()

    # ---- lifecycle ---------------------------------------------------------

    @classmethod
    def load(
        cls,
        persistence: KeyValueStore,
        *,
        ids: IdGenerator | None = None,
        today: Callable[[], str] = _today,
    ) -> LedgerStore:
        """Read every key once; missing or unreadable keys load as empty."""

        store = cls(persistence, ids=ids, today=today)
        for account, key in _LEDGER_KEYS.items():
            store._ledgers[account] = _load_records(persistence, key, Transaction)
        store.investments = _load_records(persistence, INVESTMENTS_KEY, Investment)
        store.loans = _load_records(persistence, LOANS_KEY, Loan)
        store.balances = _load_records(persistence, BALANCES_KEY, StatementBalance)
        store.sources = merge_sources(_load_strings(persistence, SOURCES_KEY), [])
        try:
            currency = persistence.load(CURRENCY_KEY, DEFAULT_CURRENCY)
        except (OSError, ValueError):
            currency = DEFAULT_CURRENCY
        store.currency = currency if isinstance(currency, str) and currency else DEFAULT_CURRENCY
        store.categories = CategorySelection(
            expense_excluded=_load_strings(persistence, EXPENSE_EXCLUDED_KEY),
            investment_included=_load_strings(persistence, INVESTMENT_INCLUDED_KEY),
        )
        _logger.info(
            "store:loaded transactions=%d credit_card_transactions=%d investments=%d loans=%d balances=%d",
            len(store._ledgers[Account.BANK]),
            len(store._ledgers[Account.CREDIT_CARD]),
            len(store.investments),
            len(store.loans),
            len(store.balances),
        )
        return store

    def _save_ledger(self, account: Account) -> None:
        self.persistence.save(_LEDGER_KEYS[account], [t.to_json() for t in self._ledgers[account]])

    def _save_investments(self) -> None:
        self.persistence.save(INVESTMENTS_KEY, [i.to_json() for i in self.investments])

    def _save_loans(self) -> None:
        self.persistence.save(LOANS_KEY, [loan.to_json() for loan in self.loans])

    def _save_balances(self) -> None:
        self.persistence.save(BALANCES_KEY, [b.to_json() for b in self.balances])

    def _save_sources(self) -> None:
        self.persistence.save(SOURCES_KEY, list(self.sources))

    def _save_currency(self) -> None:
        self.persistence.save(CURRENCY_KEY, self.currency)

    def _save_categories(self) -> None:
        self.persistence.save(EXPENSE_EXCLUDED_KEY, sorted(self.categories.expense_excluded))
        self.persistence.save(INVESTMENT_INCLUDED_KEY, sorted(self.categories.investment_included_set))

    # ---- transactions ------------------------------------------------------

    def transactions(self, account: Account | str = Account.BANK) -> list[Transaction]:
        return list(self._ledgers[Account(account)])

    def _index_of(self, items: Sequence[Any], record_id: str, what: str) -> int:
        for i, item in enumerate(items):
            if item.id == record_id:
                return i
        raise UnknownRecordError(f"No {what} with id {record_id!r}")

    def add_transaction(self, account: Account | str = Account.BANK, **fields: Any) -> Transaction:
        """Prepend a manual transaction; unspecified fields take blank-row defaults."""

        account = Account(account)
        data: dict[str, Any] = {
            "id": self.ids.next_id(),
            "date": self._today(),
            "description": NEW_TRANSACTION_DESCRIPTION,
            "amount": 0,
            "category": UNCATEGORIZED,
            "type": DEBIT,
        }
        data.update(fields)
        tx = Transaction.model_validate(data)
        self._ledgers[account] = [tx, *self._ledgers[account]]
        self._save_ledger(account)
        _logger.info("store:add_transaction account=%s id=%s", account, tx.id)
        return tx

    def update_transaction(
        self,
        tx_id: str,
        field_name: str,
        value: Any,
        *,
        account: Account | str = Account.BANK,
        filtered: Sequence[Transaction] | None = None,
    ) -> CategoryChangePlan | None:
        """Edit one field of a transaction.

        A category edit whose description is shared by other transactions is
        not applied; the returned :class:`CategoryChangePlan` must be passed
        to :meth:`confirm_category_change`. Otherwise the edit is applied
        (with type inference for category edits) and ``None`` is returned.
        ``filtered`` is the currently visible view; it defaults to the whole
        ledger.
        """

        account = Account(account)
        ledger = self._ledgers[account]
        idx = self._index_of(ledger, tx_id, "transaction")

        if field_name == "category":
            value = _clean_category(value)
            view = ledger if filtered is None else filtered
            plan = plan_category_change(ledger, view, tx_id, value)
            if plan is not None and plan.needs_confirmation:
                _logger.info(
                    "store:category_change_pending id=%s match_all=%d match_filtered=%d",
                    tx_id,
                    plan.match_count_all,
                    plan.match_count_filtered,
                )
                return plan
            self._ledgers[account] = apply_category_change(ledger, view, tx_id, value, BulkMode.SINGLE)
        else:
            updated = list(ledger)
            updated[idx] = ledger[idx].with_changes(**{field_name: value})
            self._ledgers[account] = updated
        self._save_ledger(account)
        return None

    def confirm_category_change(
        self,
        plan: CategoryChangePlan,
        mode: BulkMode | str,
        *,
        account: Account | str = Account.BANK,
        filtered: Sequence[Transaction] | None = None,
    ) -> int:
        """Apply a pending category change; returns how many records changed."""

        account = Account(account)
        ledger = self._ledgers[account]
        self._index_of(ledger, plan.transaction_id, "transaction")
        category = _clean_category(plan.new_category)
        view = ledger if filtered is None else filtered
        updated = apply_category_change(ledger, view, plan.transaction_id, category, mode)
        changed = sum(1 for old, new in zip(ledger, updated, strict=True) if old is not new)
        self._ledgers[account] = updated
        self._save_ledger(account)
        _logger.info(
            "store:category_change_applied id=%s mode=%s changed=%d",
            plan.transaction_id,
            BulkMode(mode),
            changed,
        )
        return changed

    def delete_transaction(self, tx_id: str, *, account: Account | str = Account.BANK) -> None:
        account = Account(account)
        ledger = self._ledgers[account]
        idx = self._index_of(ledger, tx_id, "transaction")
        self._ledgers[account] = ledger[:idx] + ledger[idx + 1 :]
        self._save_ledger(account)

    def clear_transactions(
        self,
        year: str | int | None = None,
        month: str | int | None = None,
        *,
        account: Account | str | None = None,
    ) -> int:
        """Remove transactions by year+month, by year, or all of them.

        ``account=None`` clears both ledgers. Returns the number removed.
        """

        if month is not None and year is None:
            raise ValueError("clearing by month requires a year")
        y = str(year).strip() if year is not None else None
        m = f"{int(month):02d}" if month is not None else None
        accounts = list(Account) if account is None else [Account(account)]

        def doomed(t: Transaction) -> bool:
            if y is None:
                return True
            ty, tm = transaction_year_month(t)
            return ty == y and (m is None or tm == m)

        removed = 0
        for acct in accounts:
            ledger = self._ledgers[acct]
            kept = [t for t in ledger if not doomed(t)]
            if len(kept) != len(ledger):
                removed += len(ledger) - len(kept)
                self._ledgers[acct] = kept
                self._save_ledger(acct)
        _logger.info("store:clear_transactions year=%s month=%s removed=%d", y, m, removed)
        return removed

    # ---- investments -------------------------------------------------------

    def add_investment(
        self,
        name: str,
        amount: float,
        *,
        type: str = "Stock",
        date: str | None = None,
        currency: str | None = None,
    ) -> Investment:
        inv = Investment(
            id=self.ids.next_id(),
            name=name,
            type=type,
            amount=amount,
            date=date or self._today(),
            currency=currency or self.currency,
        )
        self.investments = [*self.investments, inv]
        self._save_investments()
        return inv

    def update_investment(self, inv_id: str, field_name: str, value: Any) -> Investment:
        idx = self._index_of(self.investments, inv_id, "investment")
        updated = list(self.investments)
        updated[idx] = self.investments[idx].with_changes(**{field_name: value})
        self.investments = updated
        self._save_investments()
        return updated[idx]

    def delete_investment(self, inv_id: str) -> None:
        idx = self._index_of(self.investments, inv_id, "investment")
        self.investments = self.investments[:idx] + self.investments[idx + 1 :]
        self._save_investments()

    def clear_investments(self) -> None:
        self.investments = []
        self._save_investments()

    def investment_total(self) -> float:
        return sum(i.amount for i in self.investments)

    # ---- loans -------------------------------------------------------------

    def update_loan(self, loan_id: str, field_name: str, value: Any) -> Loan:
        idx = self._index_of(self.loans, loan_id, "loan")
        updated = list(self.loans)
        updated[idx] = self.loans[idx].with_changes(**{field_name: value})
        self.loans = updated
        self._save_loans()
        return updated[idx]

    def delete_loan(self, loan_id: str) -> None:
        idx = self._index_of(self.loans, loan_id, "loan")
        self.loans = self.loans[:idx] + self.loans[idx + 1 :]
        self._save_loans()

    # ---- sources, currency, categories -------------------------------------

    def add_source(self, name: str) -> str:
        label = (name or "").strip()
        if not label:
            raise ValueError("source name must be non-blank")
        if label not in self.sources:
            self.sources = merge_sources(self.sources, [label])
            self._save_sources()
        return label

    def set_currency(self, currency: str) -> None:
        code = (currency or "").strip()
        if not code:
            raise ValueError("currency must be non-blank")
        self.currency = code
        self._save_currency()

    def observed_categories(self) -> list[str]:
        return all_categories(t for ledger in self._ledgers.values() for t in ledger)

    def toggle_expense_category(self, category: str) -> None:
        self.categories.toggle_expense(category)
        self._save_categories()

    def select_all_expense_categories(self) -> None:
        self.categories.select_all_expense()
        self._save_categories()

    def deselect_all_expense_categories(self) -> None:
        self.categories.deselect_all_expense(self.observed_categories())
        self._save_categories()

    def toggle_investment_category(self, category: str) -> None:
        self.categories.toggle_investment(category)
        self._save_categories()

    # ---- import / export ---------------------------------------------------

    def commit_import(self, batch: ImportBatch) -> CommitReport:
        """Merge a batch into the canonical collections and persist them."""

        account = Account(batch.account)
        ledger = self._ledgers[account]
        merged_tx = merge_transactions(ledger, batch.transactions)
        tx_added = len(merged_tx) - len(ledger)
        self._ledgers[account] = merged_tx
        self._save_ledger(account)

        inv_before = len(self.investments)
        if batch.investments:
            self.investments = merge_investments(self.investments, batch.investments)
            self._save_investments()

        loans_before = len(self.loans)
        if batch.loans:
            self.loans = merge_loans(self.loans, batch.loans)
            self._save_loans()

        if batch.balances:
            self.balances = merge_balances(self.balances, batch.balances)
            self._save_balances()

        tagged = [t.source for t in batch.transactions if t.source]
        sources = merge_sources(self.sources, [*batch.sources, *tagged])
        if sources != self.sources:
            self.sources = sources
            self._save_sources()

        if batch.currency and batch.currency != self.currency:
            self.currency = batch.currency
            self._save_currency()

        report = CommitReport(
            transactions_added=tx_added,
            investments_added=len(self.investments) - inv_before,
            loans_added=len(self.loans) - loans_before,
            balances_written=len(batch.balances),
        )
        _logger.info(
            "store:commit account=%s transactions_added=%d investments_added=%d loans_added=%d balances=%d",
            account,
            report.transactions_added,
            report.investments_added,
            report.loans_added,
            report.balances_written,
        )
        return report

    def export_document(self) -> dict[str, Any]:
        return {
            "transactions": [t.to_json() for t in self._ledgers[Account.BANK]],
            "creditCardTransactions": [t.to_json() for t in self._ledgers[Account.CREDIT_CARD]],
            "investments": [i.to_json() for i in self.investments],
            "loans": [loan.to_json() for loan in self.loans],
            "currency": self.currency,
            "sources": list(self.sources),
            "balances": [b.to_json() for b in self.balances],
            "version": EXPORT_VERSION,
        }

    def reset(self) -> None:
        """Drop every collection and delete every persisted key."""

        self._ledgers = {a: [] for a in Account}
        self.investments = []
        self.loans = []
        self.balances = []
        self.sources = []
        self.currency = DEFAULT_CURRENCY
        self.categories = CategorySelection()
        for key in ALL_KEYS:
            self.persistence.delete(key)
        _logger.info("store:reset")

    # ---- views -------------------------------------------------------------

    def view(self, account: Account | str, spec: FilterSpec) -> list[Transaction]:
        return filter_transactions(self._ledgers[Account(account)], spec)

    def dashboard(self, account: Account | str, spec: FilterSpec) -> Dashboard:
        ledger = self._ledgers[Account(account)]
        visible = filter_transactions(ledger, spec)
        balances = resolve_for_selection(self.balances, spec.sources, spec.years, spec.months)
        observed = all_categories(ledger)
        summary = summarize(
            visible,
            opening_balance=balances.opening,
            expense_included=self.categories.expense_included(observed),
            investment_included=self.categories.investment_included(observed),
        )
        return Dashboard(
            transactions=visible,
            balances=balances,
            summary=summary,
            categories=observed,
            currency=self.currency,
        )


__all__ = [
    "DEFAULT_CURRENCY",
    "ImportBatch",
    "CommitReport",
    "Dashboard",
    "LedgerStore",
]
