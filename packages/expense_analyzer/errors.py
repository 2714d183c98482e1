"""Exception types raised by ``expense_analyzer``.

Validation and extraction errors are raised at the staging boundary and
turned into user-facing messages there; canonical collections are never left
half-updated when one of these propagates.
"""

from __future__ import annotations


class ExpenseAnalyzerError(Exception):
    """Base class for all package errors."""


class ImportValidationError(ExpenseAnalyzerError, ValueError):
    """An import document (or a record inside it) is malformed."""


class ExtractionError(ExpenseAnalyzerError, RuntimeError):
    """The extraction collaborator failed or returned an unusable response.

    ``batch`` is the 1-based chunk number that failed, when known.
    """

    def __init__(self, message: str, *, batch: int | None = None) -> None:
        super().__init__(message)
        self.batch = batch


class ExtractionCancelled(ExtractionError):
    """The caller cancelled a batch run between chunks."""


class StagingError(ExpenseAnalyzerError, RuntimeError):
    """A review-session action is not allowed in the current state."""


class UnknownRecordError(ExpenseAnalyzerError, KeyError):
    """No record with the given id exists in the targeted collection."""

    def __str__(self) -> str:
        # KeyError quotes its argument; keep messages readable.
        return str(self.args[0]) if self.args else ""


__all__ = [
    "ExpenseAnalyzerError",
    "ImportValidationError",
    "ExtractionError",
    "ExtractionCancelled",
    "StagingError",
    "UnknownRecordError",
]
