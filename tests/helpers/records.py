"""Small builders for canonical records used across tests."""

from __future__ import annotations

from typing import Any

from expense_analyzer.models import Investment, Loan, StatementBalance, Transaction


def make_tx(
    id: str,
    *,
    date: str = "2024-03-10",
    description: str = "Coffee",
    amount: float = 5.0,
    type: str = "debit",
    category: str = "Food",
    source: str | None = "Chase",
    **extra: Any,
) -> Transaction:
    return Transaction(
        id=id,
        date=date,
        description=description,
        amount=amount,
        type=type,
        category=category,
        source=source,
        **extra,
    )


def make_balance(
    source: str,
    year: str,
    month: str,
    opening: float,
    closing: float,
    *,
    id: str | None = None,
) -> StatementBalance:
    return StatementBalance(
        id=id or f"{source}-{year}-{month}",
        source=source,
        year=year,
        month=month,
        opening_balance=opening,
        closing_balance=closing,
    )


def make_investment(id: str, *, name: str = "VTI", amount: float = 100.0, date: str = "2024-01-01") -> Investment:
    return Investment(id=id, name=name, amount=amount, date=date)


def make_loan(id: str, *, description: str = "Car loan", remaining: float = 5000.0) -> Loan:
    return Loan(
        id=id,
        description=description,
        total_amount=10000.0,
        remaining_amount=remaining,
        installment_amount=500.0,
        remaining_installments=10,
    )
