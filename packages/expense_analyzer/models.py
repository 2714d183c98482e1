"""Data models for ``expense_analyzer``.

Canonical entities (:class:`Transaction`, :class:`Investment`, :class:`Loan`,
:class:`StatementBalance`) are frozen Pydantic models. They serialize with the
camelCase keys used by the export file and by persistence (``openingBalance``,
``remainingInstallments``...) and accept either camelCase or snake_case on
input. Edits never mutate a record; they go through :meth:`_Record.with_changes`
which re-validates and returns a new instance.

The ``Raw*`` / :class:`ExtractionResponse` models describe what the extraction
service sends back. They are deliberately lenient: every field is optional so
a partial response still parses, and turning raw rows into canonical records
happens in :mod:`expense_analyzer.extraction`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

# ---------------------------------------------------------------------------
# Category and type vocabulary
# ---------------------------------------------------------------------------

CREDIT = "credit"
DEBIT = "debit"
TransactionType = Literal["credit", "debit"]

INCOME_CATEGORY = "Income"
NOT_AN_EXPENSE = "Not an expense"
UNCATEGORIZED = "Uncategorized"

# Categories the extraction prompt offers; users may add any others.
DEFAULT_CATEGORIES: tuple[str, ...] = (
    "Food",
    "Transport",
    "Shopping",
    "Entertainment",
    "Health",
    "Utilities",
    "Travel",
    "Transfer",
    "Income",
    "Other",
)


class Account(StrEnum):
    """Which ledger a transaction lives in."""

    BANK = "bank"
    CREDIT_CARD = "credit_card"


# ---------------------------------------------------------------------------
# Canonical records
# ---------------------------------------------------------------------------


def _reject_non_numeric(v: Any) -> Any:
    # JSON exports carry real numbers; "12.5" or true are malformed records.
    if isinstance(v, bool) or isinstance(v, str):
        raise ValueError("must be a number")
    return v


class _Record(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )

    def to_json(self) -> dict[str, Any]:
        """Export-format mapping (camelCase keys, ``None`` fields omitted)."""

        return self.model_dump(by_alias=True, exclude_none=True, mode="json")

    def with_changes(self, **changes: Any):
        """Return a validated copy with ``changes`` applied (snake_case names)."""

        unknown = set(changes) - set(type(self).model_fields)
        if unknown:
            raise ValueError(f"Unknown field(s) for {type(self).__name__}: {sorted(unknown)}")
        data = self.model_dump()
        data.update(changes)
        return type(self).model_validate(data)


class Transaction(_Record):
    id: str = Field(min_length=1)
    date: str = Field(min_length=1)
    description: str
    amount: float = Field(ge=0)
    type: TransactionType
    category: str = Field(min_length=1)
    source: str | None = None
    original_text: str | None = None

    @field_validator("amount", mode="before")
    @classmethod
    def _amount_is_number(cls, v: Any) -> Any:
        return _reject_non_numeric(v)

    @field_validator("description")
    @classmethod
    def _description_non_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("description must be non-empty")
        return v


class Investment(_Record):
    id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    type: str = "Stock"
    amount: float
    date: str = ""
    currency: str = "USD"

    @field_validator("amount", mode="before")
    @classmethod
    def _amount_is_number(cls, v: Any) -> Any:
        return _reject_non_numeric(v)


class Loan(_Record):
    id: str = Field(min_length=1)
    description: str
    total_amount: float = 0.0
    remaining_amount: float = 0.0
    installment_amount: float = 0.0
    remaining_installments: int = 0
    source: str | None = None


class StatementBalance(_Record):
    id: str = Field(min_length=1)
    source: str
    month: str
    year: str
    opening_balance: float
    closing_balance: float

    @field_validator("month", mode="before")
    @classmethod
    def _pad_month(cls, v: Any) -> Any:
        if isinstance(v, int) and not isinstance(v, bool):
            return f"{v:02d}"
        if isinstance(v, str) and v.strip().isdigit():
            return f"{int(v.strip()):02d}"
        return v

    @field_validator("year", mode="before")
    @classmethod
    def _year_str(cls, v: Any) -> Any:
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v.strip() if isinstance(v, str) else v


# ---------------------------------------------------------------------------
# Import / export document
# ---------------------------------------------------------------------------

EXPORT_VERSION = 1

# Recognized top-level keys of the export/import JSON document.
DOCUMENT_KEYS: tuple[str, ...] = (
    "transactions",
    "creditCardTransactions",
    "investments",
    "loans",
    "currency",
    "sources",
    "balances",
    "version",
)


class ImportDocument(BaseModel):
    """A validated export document; absent arrays are empty."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    transactions: list[Transaction] = Field(default_factory=list)
    credit_card_transactions: list[Transaction] = Field(default_factory=list)
    investments: list[Investment] = Field(default_factory=list)
    loans: list[Loan] = Field(default_factory=list)
    balances: list[StatementBalance] = Field(default_factory=list)
    sources: list[str] = Field(default_factory=list)
    currency: str | None = None
    version: int | None = None


# ---------------------------------------------------------------------------
# Extraction service DTOs (lenient)
# ---------------------------------------------------------------------------


class RawTransaction(BaseModel):
    """One transaction row as returned by the extraction service."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    date: str | None = None
    description: str | None = None
    amount: float | str | None = None
    type: str | None = None
    category: str | None = None
    original_text: str | None = Field(default=None, alias="originalText")


class RawLoan(BaseModel):
    model_config = ConfigDict(extra="allow", alias_generator=to_camel, populate_by_name=True)

    description: str | None = None
    total_amount: float | None = None
    remaining_amount: float | None = None
    installment_amount: float | None = None
    remaining_installments: int | None = None


class RawBalances(BaseModel):
    model_config = ConfigDict(extra="allow")

    opening: float = 0.0
    closing: float = 0.0


class StatementPeriod(BaseModel):
    model_config = ConfigDict(extra="allow")

    month: str
    year: str

    @field_validator("month", mode="before")
    @classmethod
    def _pad(cls, v: Any) -> Any:
        if isinstance(v, int | str) and str(v).strip().isdigit():
            return f"{int(str(v).strip()):02d}"
        return v

    @field_validator("year", mode="before")
    @classmethod
    def _year(cls, v: Any) -> Any:
        return str(v).strip() if isinstance(v, int | str) else v


class ExtractionResponse(BaseModel):
    """Top-level body of an extraction response.

    ``transactions`` is the only required key; everything else may be absent.
    """

    model_config = ConfigDict(extra="allow")

    currency: str | None = None
    transactions: list[RawTransaction]
    loans: list[RawLoan] | None = None
    balances: RawBalances | None = None
    statement_period: StatementPeriod | None = None


@dataclass(frozen=True, slots=True)
class ExtractionResult:
    """Extraction output with fresh ids assigned, ready for staging."""

    transactions: list[Transaction]
    currency: str | None = None
    loans: list[Loan] = field(default_factory=list)
    balances: RawBalances | None = None
    statement_period: StatementPeriod | None = None


__all__ = [
    "CREDIT",
    "DEBIT",
    "TransactionType",
    "INCOME_CATEGORY",
    "NOT_AN_EXPENSE",
    "UNCATEGORIZED",
    "DEFAULT_CATEGORIES",
    "Account",
    "Transaction",
    "Investment",
    "Loan",
    "StatementBalance",
    "EXPORT_VERSION",
    "DOCUMENT_KEYS",
    "ImportDocument",
    "RawTransaction",
    "RawLoan",
    "RawBalances",
    "StatementPeriod",
    "ExtractionResponse",
    "ExtractionResult",
]
