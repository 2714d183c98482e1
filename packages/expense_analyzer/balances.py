"""Opening/closing balance resolution with carry-forward.

For each selected source, independently:

- opening: the record exactly at the period start contributes its
  ``opening_balance``; otherwise the closing balance of the latest record
  strictly before the start carries forward; otherwise 0.
- closing: the ``closing_balance`` of the latest record at or before the
  period end (an exact match included); otherwise 0.

Per-source results are summed. Sources with no records contribute 0.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from .identity import balance_period_index, period_index
from .models import StatementBalance


@dataclass(frozen=True, slots=True)
class Period:
    year: int
    month: int

    @property
    def index(self) -> int:
        return period_index(self.year, self.month)


@dataclass(frozen=True, slots=True)
class BalanceSummary:
    opening: float = 0.0
    closing: float = 0.0


def period_bounds(years: Iterable[int | str], months: Iterable[int | str]) -> tuple[Period, Period] | None:
    """Earliest and latest period of the cross product ``years x months``.

    Combinations with no data still count. Non-numeric values are ignored.
    Returns ``None`` when either selection is empty.
    """

    ys = [int(y) for y in years if str(y).strip().isdigit()]
    ms = [int(m) for m in months if str(m).strip().isdigit()]
    if not ys or not ms:
        return None
    periods = [Period(y, m) for y in ys for m in ms]
    start = min(periods, key=lambda p: p.index)
    end = max(periods, key=lambda p: p.index)
    return start, end


def _opening_for(records: Sequence[StatementBalance], start_idx: int) -> float:
    before: StatementBalance | None = None
    for b in records:
        idx = balance_period_index(b)
        if idx == start_idx:
            return b.opening_balance
        if idx < start_idx and (before is None or idx > balance_period_index(before)):
            before = b
    return before.closing_balance if before is not None else 0.0


def _closing_for(records: Sequence[StatementBalance], end_idx: int) -> float:
    latest: StatementBalance | None = None
    for b in records:
        idx = balance_period_index(b)
        if idx <= end_idx and (latest is None or idx > balance_period_index(latest)):
            latest = b
    return latest.closing_balance if latest is not None else 0.0


def resolve_balances(
    balances: Iterable[StatementBalance],
    selected_sources: Iterable[str],
    period_start: Period,
    period_end: Period,
) -> BalanceSummary:
    by_source: dict[str, list[StatementBalance]] = {}
    for b in balances:
        by_source.setdefault(b.source, []).append(b)

    opening = 0.0
    closing = 0.0
    for source in dict.fromkeys(selected_sources):
        records = by_source.get(source)
        if not records:
            continue
        opening += _opening_for(records, period_start.index)
        closing += _closing_for(records, period_end.index)
    return BalanceSummary(opening=opening, closing=closing)


def resolve_for_selection(
    balances: Iterable[StatementBalance],
    selected_sources: Iterable[str],
    years: Iterable[int | str],
    months: Iterable[int | str],
) -> BalanceSummary:
    """:func:`resolve_balances` over :func:`period_bounds`; empty selection gives zeros."""

    bounds = period_bounds(years, months)
    if bounds is None:
        return BalanceSummary()
    return resolve_balances(balances, selected_sources, *bounds)


__all__ = [
    "Period",
    "BalanceSummary",
    "period_bounds",
    "resolve_balances",
    "resolve_for_selection",
]
