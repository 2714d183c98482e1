"""Merge engine: combine a canonical collection with an incoming batch.

Policies per entity type
------------------------
- Transactions: keyed by signature. Existing records win on collision, and
  within ``incoming`` the first record with a given signature wins. A user's
  category edit therefore survives re-importing the same statement. Result is
  sorted by date, newest first.
- Investments / loans: keyed by ``id``; existing wins.
- Statement balances: keyed by ``(source, year, month)``; **incoming
  overwrites** existing. Result is sorted by period, newest first.
- Sources: union of trimmed, non-blank labels, sorted.

The functions assume well-formed input (validation happens upstream) and
never raise. Sorting is an explicit step after the dict-based dedup; nothing
relies on dict iteration order for the final ordering.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import TypeVar

from .identity import balance_key, balance_period_index, transaction_signature
from .logging_setup import get_logger
from .models import Investment, Loan, StatementBalance, Transaction

_logger = get_logger("expense_analyzer.merge")

T = TypeVar("T", Investment, Loan)


def merge_transactions(
    existing: Iterable[Transaction], incoming: Iterable[Transaction]
) -> list[Transaction]:
    by_sig: dict[str, Transaction] = {}
    for t in existing:
        by_sig[transaction_signature(t)] = t

    seen_incoming = 0
    added = 0
    for t in incoming:
        seen_incoming += 1
        sig = transaction_signature(t)
        if sig not in by_sig:
            by_sig[sig] = t
            added += 1

    _logger.info(
        "merge_transactions:done incoming=%d added=%d total=%d",
        seen_incoming,
        added,
        len(by_sig),
    )
    # Stable sort: ties keep insertion order.
    return sorted(by_sig.values(), key=lambda t: t.date, reverse=True)


def _merge_by_id(existing: Iterable[T], incoming: Iterable[T]) -> dict[str, T]:
    by_id: dict[str, T] = {}
    for item in existing:
        by_id[item.id] = item
    for item in incoming:
        by_id.setdefault(item.id, item)
    return by_id


def merge_investments(
    existing: Iterable[Investment], incoming: Iterable[Investment]
) -> list[Investment]:
    merged = _merge_by_id(existing, incoming)
    return sorted(merged.values(), key=lambda inv: inv.date, reverse=True)


def merge_loans(existing: Iterable[Loan], incoming: Iterable[Loan]) -> list[Loan]:
    return list(_merge_by_id(existing, incoming).values())


def merge_balances(
    existing: Iterable[StatementBalance], incoming: Iterable[StatementBalance]
) -> list[StatementBalance]:
    by_key: dict[str, StatementBalance] = {}
    for b in existing:
        by_key[balance_key(b)] = b
    overwritten = 0
    for b in incoming:
        key = balance_key(b)
        if key in by_key:
            overwritten += 1
        by_key[key] = b
    if overwritten:
        _logger.info("merge_balances:overwrite count=%d", overwritten)
    return sorted(by_key.values(), key=balance_period_index, reverse=True)


def merge_sources(existing: Iterable[str], incoming: Iterable[str]) -> list[str]:
    labels = {s.strip() for s in (*existing, *incoming) if isinstance(s, str) and s.strip()}
    return sorted(labels)


__all__ = [
    "merge_transactions",
    "merge_investments",
    "merge_loans",
    "merge_balances",
    "merge_sources",
]
