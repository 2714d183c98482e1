from __future__ import annotations

from expense_analyzer.balances import (
    BalanceSummary,
    Period,
    period_bounds,
    resolve_balances,
    resolve_for_selection,
)
from tests.helpers.records import make_balance

BALANCES = [
    make_balance("Chase", "2024", "01", 1000, 1200),
    make_balance("Chase", "2024", "02", 1200, 900),
    make_balance("Chase", "2024", "04", 950, 1100),
    make_balance("Amex", "2023", "12", -200, -350),
]


def test_period_bounds_cross_product():
    start, end = period_bounds(["2024", "2023"], ["03", "1"])
    assert start == Period(2023, 1)
    assert end == Period(2024, 3)


def test_period_bounds_empty_or_non_numeric_selection():
    assert period_bounds([], ["01"]) is None
    assert period_bounds(["2024"], []) is None
    assert period_bounds(["abcd"], ["01"]) is None


def test_exact_match_uses_opening_and_closing():
    summary = resolve_balances(BALANCES, ["Chase"], Period(2024, 2), Period(2024, 2))
    assert summary == BalanceSummary(opening=1200, closing=900)


def test_gap_carries_forward_previous_closing():
    # No record for March: opening carries February's closing, closing falls back to it too.
    summary = resolve_balances(BALANCES, ["Chase"], Period(2024, 3), Period(2024, 3))
    assert summary == BalanceSummary(opening=900, closing=900)


def test_range_opening_at_start_closing_at_end():
    summary = resolve_balances(BALANCES, ["Chase"], Period(2024, 1), Period(2024, 4))
    assert summary == BalanceSummary(opening=1000, closing=1100)


def test_before_any_record_is_zero():
    summary = resolve_balances(BALANCES, ["Chase"], Period(2022, 6), Period(2022, 7))
    assert summary == BalanceSummary(opening=0, closing=0)


def test_sources_are_summed_and_unknown_sources_contribute_nothing():
    summary = resolve_balances(BALANCES, ["Chase", "Amex", "Nope"], Period(2024, 1), Period(2024, 1))
    assert summary.opening == 1000 + -350
    assert summary.closing == 1200 + -350


def test_resolve_for_selection_empty_selection_gives_zeros():
    assert resolve_for_selection(BALANCES, ["Chase"], [], ["01"]) == BalanceSummary()
    assert resolve_for_selection(BALANCES, ["Chase"], ["2024"], ["02"]) == BalanceSummary(1200, 900)


def test_sparse_records_carry_january_closing_through_a_gap_selection():
    balances = [make_balance("Chase", "2024", "01", 100, 200), make_balance("Chase", "2024", "04", 500, 600)]
    assert resolve_balances(balances, ["Chase"], Period(2024, 2), Period(2024, 3)) == BalanceSummary(200, 200)
    assert resolve_balances(balances, ["Chase"], Period(2024, 1), Period(2024, 1)) == BalanceSummary(100, 200)
