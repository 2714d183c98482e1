"""Filter and view composition over one transaction ledger."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from .identity import duplicate_group_key, format_amount
from .models import Transaction

ALL_CATEGORIES = "All"


def _year_str(v: int | str) -> str:
    return str(v).strip()


def _month_str(v: int | str) -> str:
    s = str(v).strip()
    return f"{int(s):02d}" if s.isdigit() else s


@dataclass(frozen=True, slots=True)
class FilterSpec:
    """Selection state for :func:`filter_transactions`.

    ``years`` are ``"YYYY"`` strings and ``months`` zero-padded ``"MM"``
    strings; ints are accepted and normalized. An empty set in any of
    ``years``/``months``/``sources`` selects nothing.
    """

    years: frozenset[str] = field(default_factory=frozenset)
    months: frozenset[str] = field(default_factory=frozenset)
    sources: frozenset[str] = field(default_factory=frozenset)
    search_term: str | None = None
    category_filter: str | None = None
    duplicate_mode: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "years", frozenset(_year_str(y) for y in self.years))
        object.__setattr__(self, "months", frozenset(_month_str(m) for m in self.months))
        object.__setattr__(self, "sources", frozenset(self.sources))


def transaction_year_month(t: Transaction) -> tuple[str, str]:
    """``("YYYY", "MM")`` read straight from the ISO date string."""

    date = t.date or ""
    return date[:4], date[5:7]


def _matches_search(t: Transaction, needle: str) -> bool:
    return (
        needle in (t.description or "").lower()
        or needle in (t.category or "").lower()
        or needle in format_amount(t.amount)
        or needle in (t.date or "")
    )


def duplicate_groups(transactions: Iterable[Transaction]) -> list[Transaction]:
    """All transactions sharing a description+amount key with at least one other."""

    groups: dict[str, list[Transaction]] = {}
    for t in transactions:
        groups.setdefault(duplicate_group_key(t), []).append(t)
    flat = [t for group in groups.values() if len(group) > 1 for t in group]
    return sorted(flat, key=lambda t: (t.description.casefold(), t.description))


def filter_transactions(all_transactions: Sequence[Transaction], spec: FilterSpec) -> list[Transaction]:
    if spec.duplicate_mode:
        return duplicate_groups(all_transactions)

    result: list[Transaction] = []
    for t in all_transactions:
        year, month = transaction_year_month(t)
        if year in spec.years and month in spec.months and (t.source or "") in spec.sources:
            result.append(t)

    if spec.search_term:
        needle = spec.search_term.lower()
        result = [t for t in result if _matches_search(t, needle)]

    if spec.category_filter not in (None, ALL_CATEGORIES):
        result = [t for t in result if t.category == spec.category_filter]

    return result


def available_periods(transactions: Iterable[Transaction]) -> tuple[list[str], list[str]]:
    """Sorted distinct years and months present in ``transactions``."""

    years: set[str] = set()
    months: set[str] = set()
    for t in transactions:
        year, month = transaction_year_month(t)
        if year:
            years.add(year)
        if month:
            months.add(month)
    return sorted(years), sorted(months)


def available_sources(transactions: Iterable[Transaction]) -> list[str]:
    """Distinct sources of ``transactions``; untagged records show up as ``""``."""

    return sorted({t.source or "" for t in transactions})


def all_categories(transactions: Iterable[Transaction]) -> list[str]:
    return [ALL_CATEGORIES, *sorted({t.category for t in transactions})]


def select_all(transactions: Sequence[Transaction], **overrides) -> FilterSpec:
    """A :class:`FilterSpec` selecting every year, month and source present in ``transactions``."""

    years, months = available_periods(transactions)
    base = {
        "years": frozenset(years),
        "months": frozenset(months),
        "sources": frozenset(available_sources(transactions)),
    }
    base.update(overrides)
    return FilterSpec(**base)


__all__ = [
    "ALL_CATEGORIES",
    "FilterSpec",
    "transaction_year_month",
    "duplicate_groups",
    "filter_transactions",
    "available_periods",
    "available_sources",
    "all_categories",
    "select_all",
]
