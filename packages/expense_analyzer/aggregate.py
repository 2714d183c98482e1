"""Totals, category membership and bulk category propagation.

Aggregation is total: every rate resolves to 0 instead of dividing by zero,
and no figure is ever NaN or infinite.
"""

from __future__ import annotations

import math
from collections.abc import Collection, Iterable, Sequence
from dataclasses import dataclass
from enum import StrEnum

from .filters import ALL_CATEGORIES
from .identity import trimmed_description
from .models import CREDIT, DEBIT, INCOME_CATEGORY, NOT_AN_EXPENSE, Transaction, TransactionType

# ---------------------------------------------------------------------------
# Totals
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Summary:
    total_income: float = 0.0
    total_expense_custom: float = 0.0
    total_investments_custom: float = 0.0
    total_savings: float = 0.0
    savings_rate: float = 0.0
    expense_share: float = 0.0


def _finite(x: float) -> float:
    return x if math.isfinite(x) else 0.0


def _pct(part: float, whole: float) -> float:
    if whole <= 0:
        return 0.0
    return _finite(part / whole * 100.0)


def summarize(
    filtered: Iterable[Transaction],
    *,
    opening_balance: float = 0.0,
    expense_included: Collection[str],
    investment_included: Collection[str],
) -> Summary:
    """Income, expense, investment and savings totals for a filtered view.

    Income folds in ``opening_balance`` on top of credit transactions.
    Investments count regardless of transaction type.
    """

    income = _finite(opening_balance)
    expense = 0.0
    investments = 0.0
    for t in filtered:
        if t.type == CREDIT:
            income += t.amount
        if t.category == NOT_AN_EXPENSE:
            continue
        if t.type == DEBIT and t.category in expense_included:
            expense += t.amount
        if t.category != INCOME_CATEGORY and t.category in investment_included:
            investments += t.amount

    savings = income - expense - investments
    return Summary(
        total_income=_finite(income),
        total_expense_custom=_finite(expense),
        total_investments_custom=_finite(investments),
        total_savings=_finite(savings),
        savings_rate=_pct(savings, income),
        expense_share=_pct(expense, income),
    )


# ---------------------------------------------------------------------------
# Category membership
# ---------------------------------------------------------------------------

_NEVER_SELECTABLE = frozenset({ALL_CATEGORIES, NOT_AN_EXPENSE, INCOME_CATEGORY})


def selectable_categories(observed: Iterable[str]) -> list[str]:
    return sorted({c for c in observed if c not in _NEVER_SELECTABLE})


class CategorySelection:
    """Which observed categories count toward expenses and investments.

    Expenses are stored as *exclusions* so that a category first seen in a
    later import counts as an expense automatically. Investments are stored
    as *inclusions* (opt-in).
    """

    def __init__(
        self,
        expense_excluded: Iterable[str] = (),
        investment_included: Iterable[str] = (),
    ) -> None:
        self.expense_excluded: set[str] = set(expense_excluded)
        self.investment_included_set: set[str] = set(investment_included)

    def toggle_expense(self, category: str) -> None:
        if category in self.expense_excluded:
            self.expense_excluded.discard(category)
        else:
            self.expense_excluded.add(category)

    def select_all_expense(self) -> None:
        self.expense_excluded.clear()

    def deselect_all_expense(self, observed: Iterable[str]) -> None:
        self.expense_excluded = set(selectable_categories(observed))

    def toggle_investment(self, category: str) -> None:
        if category in self.investment_included_set:
            self.investment_included_set.discard(category)
        else:
            self.investment_included_set.add(category)

    def expense_included(self, observed: Iterable[str]) -> set[str]:
        return {c for c in selectable_categories(observed) if c not in self.expense_excluded}

    def investment_included(self, observed: Iterable[str]) -> set[str]:
        return {c for c in selectable_categories(observed) if c in self.investment_included_set}


# ---------------------------------------------------------------------------
# Category edits
# ---------------------------------------------------------------------------


def infer_type(old_category: str, new_category: str, current_type: TransactionType) -> TransactionType:
    """Force credit for Income; moving a credit off Income makes it a debit."""

    if new_category == INCOME_CATEGORY:
        return CREDIT
    if old_category == INCOME_CATEGORY and current_type == CREDIT:
        return DEBIT
    return current_type


def recategorize(t: Transaction, new_category: str) -> Transaction:
    """Copy of ``t`` with ``new_category`` and the inferred type."""

    return t.with_changes(
        category=new_category,
        type=infer_type(t.category, new_category, t.type),
    )


class BulkMode(StrEnum):
    SINGLE = "single"
    FILTERED = "filtered"
    ALL = "all"


@dataclass(frozen=True, slots=True)
class CategoryChangePlan:
    """Pending category edit and the counts shown before confirming it."""

    transaction_id: str
    description: str
    new_category: str
    others_all: int
    others_filtered: int

    @property
    def match_count_all(self) -> int:
        return self.others_all + 1

    @property
    def match_count_filtered(self) -> int:
        return self.others_filtered + 1

    @property
    def needs_confirmation(self) -> bool:
        return self.others_all > 0


def _find(transactions: Sequence[Transaction], tx_id: str) -> Transaction | None:
    for t in transactions:
        if t.id == tx_id:
            return t
    return None


def plan_category_change(
    all_transactions: Sequence[Transaction],
    filtered: Sequence[Transaction],
    tx_id: str,
    new_category: str,
) -> CategoryChangePlan | None:
    """Count other transactions sharing the trimmed description of ``tx_id``.

    Returns ``None`` when ``tx_id`` is not in ``all_transactions``.
    """

    target = _find(all_transactions, tx_id)
    if target is None:
        return None
    desc = trimmed_description(target)
    others_all = sum(1 for t in all_transactions if t.id != tx_id and trimmed_description(t) == desc)
    others_filtered = sum(1 for t in filtered if t.id != tx_id and trimmed_description(t) == desc)
    return CategoryChangePlan(
        transaction_id=tx_id,
        description=desc,
        new_category=new_category,
        others_all=others_all,
        others_filtered=others_filtered,
    )


def apply_category_change(
    all_transactions: Sequence[Transaction],
    filtered: Sequence[Transaction],
    tx_id: str,
    new_category: str,
    mode: BulkMode | str = BulkMode.SINGLE,
) -> list[Transaction]:
    """Return ``all_transactions`` with the category change applied per ``mode``.

    - single: only ``tx_id``.
    - filtered: ``tx_id`` plus visible transactions with the same trimmed
      description.
    - all: ``tx_id`` plus every transaction with the same trimmed description.

    Order is preserved; untouched records are returned as-is.
    """

    mode = BulkMode(mode)
    target = _find(all_transactions, tx_id)
    if target is None:
        return list(all_transactions)
    desc = trimmed_description(target)

    if mode is BulkMode.SINGLE:
        def touched(t: Transaction) -> bool:
            return t.id == tx_id
    elif mode is BulkMode.FILTERED:
        visible = {t.id for t in filtered}

        def touched(t: Transaction) -> bool:
            return t.id == tx_id or (t.id in visible and trimmed_description(t) == desc)
    else:
        def touched(t: Transaction) -> bool:
            return t.id == tx_id or trimmed_description(t) == desc

    return [recategorize(t, new_category) if touched(t) else t for t in all_transactions]


__all__ = [
    "Summary",
    "summarize",
    "selectable_categories",
    "CategorySelection",
    "infer_type",
    "recategorize",
    "BulkMode",
    "CategoryChangePlan",
    "plan_category_change",
    "apply_category_change",
]
