"""Public interface for the ``expense_analyzer`` package.

This module exposes the reconciliation and aggregation entry points and the
public models/types as the stable import surface. There is no runtime logic
here, only symbol re-exports.
"""

from .aggregate import (
    BulkMode,
    CategoryChangePlan,
    CategorySelection,
    Summary,
    apply_category_change,
    infer_type,
    plan_category_change,
    summarize,
)
from .balances import BalanceSummary, Period, period_bounds, resolve_balances
from .errors import (
    ExpenseAnalyzerError,
    ExtractionCancelled,
    ExtractionError,
    ImportValidationError,
    StagingError,
    UnknownRecordError,
)
from .filters import ALL_CATEGORIES, FilterSpec, filter_transactions
from .identity import balance_key, duplicate_group_key, normalize_description, transaction_signature
from .merge import merge_balances, merge_investments, merge_loans, merge_sources, merge_transactions
from .models import Account, ImportDocument, Investment, Loan, StatementBalance, Transaction
from .staging import ProcessingStatus, ReviewSession, ReviewState
from .store import Dashboard, ImportBatch, LedgerStore

__all__ = [
    # Engine
    "merge_transactions",
    "merge_investments",
    "merge_loans",
    "merge_balances",
    "merge_sources",
    "resolve_balances",
    "period_bounds",
    "filter_transactions",
    "summarize",
    "plan_category_change",
    "apply_category_change",
    "infer_type",
    "transaction_signature",
    "normalize_description",
    "balance_key",
    "duplicate_group_key",
    # Staging / store
    "ReviewSession",
    "ReviewState",
    "ProcessingStatus",
    "LedgerStore",
    "ImportBatch",
    "Dashboard",
    # Models / types
    "Account",
    "Transaction",
    "Investment",
    "Loan",
    "StatementBalance",
    "ImportDocument",
    "FilterSpec",
    "ALL_CATEGORIES",
    "Period",
    "BalanceSummary",
    "Summary",
    "CategorySelection",
    "CategoryChangePlan",
    "BulkMode",
    # Errors
    "ExpenseAnalyzerError",
    "ImportValidationError",
    "ExtractionError",
    "ExtractionCancelled",
    "StagingError",
    "UnknownRecordError",
]
