"""Validation of JSON export documents before they are staged for import.

Structural checks run first and produce the short messages users see for a
wrong file (root not an object, no recognized key, array field not an array).
Record-level checks are delegated to the Pydantic models and the first
failure is reported with its collection and index, e.g.::

    Transaction at index 3: 'date' Field required
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from .errors import ImportValidationError
from .logging_setup import get_logger
from .models import DOCUMENT_KEYS, ImportDocument

_logger = get_logger("expense_analyzer.validator")

_ARRAY_KEYS: tuple[str, ...] = (
    "transactions",
    "creditCardTransactions",
    "investments",
    "loans",
    "balances",
    "sources",
)

_RECORD_LABELS: dict[str, str] = {
    "transactions": "Transaction",
    "creditCardTransactions": "Credit card transaction",
    "credit_card_transactions": "Credit card transaction",
    "investments": "Investment",
    "loans": "Loan",
    "balances": "Balance",
    "sources": "Source",
}


def _describe_error(err: Mapping[str, Any]) -> str:
    loc = tuple(err.get("loc") or ())
    msg = str(err.get("msg") or "invalid value")
    if len(loc) >= 2 and isinstance(loc[1], int):
        label = _RECORD_LABELS.get(str(loc[0]), str(loc[0]))
        if len(loc) >= 3:
            return f"{label} at index {loc[1]}: '{loc[2]}' {msg}"
        return f"{label} at index {loc[1]}: {msg}"
    if loc:
        return f'Invalid JSON format: "{loc[0]}" {msg}'
    return f"Invalid JSON format: {msg}"


def validate_document(data: Any) -> ImportDocument:
    """Validate a decoded export document and return it as a model.

    Raises :class:`ImportValidationError` on the first problem found; nothing
    is returned (and nothing can be staged) for a malformed document.
    """

    if not isinstance(data, Mapping):
        raise ImportValidationError("Invalid JSON format: Root must be an object.")

    present = [k for k in DOCUMENT_KEYS if k in data]
    if not present:
        raise ImportValidationError(
            "Invalid JSON format: no recognized keys (expected one of "
            + ", ".join(DOCUMENT_KEYS)
            + ")."
        )

    for key in _ARRAY_KEYS:
        value = data.get(key)
        if value is not None and not isinstance(value, list):
            raise ImportValidationError(f'Invalid JSON format: "{key}" must be an array.')

    currency = data.get("currency")
    if currency is not None and not isinstance(currency, str):
        raise ImportValidationError('Invalid JSON format: "currency" must be a string.')

    # Absent and null arrays are the same thing.
    cleaned = {k: v for k, v in data.items() if k in DOCUMENT_KEYS and v is not None}
    try:
        doc = ImportDocument.model_validate(cleaned)
    except ValidationError as e:
        errors = e.errors()
        raise ImportValidationError(_describe_error(errors[0]) if errors else str(e)) from e

    _logger.info(
        "validator:ok transactions=%d credit_card_transactions=%d investments=%d loans=%d balances=%d",
        len(doc.transactions),
        len(doc.credit_card_transactions),
        len(doc.investments),
        len(doc.loans),
        len(doc.balances),
    )
    return doc


def parse_document(text: str) -> ImportDocument:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ImportValidationError(f"Invalid JSON: {e.msg} (line {e.lineno}, column {e.colno})") from e
    return validate_document(data)


def load_document(path: str | Path) -> ImportDocument:
    """Read and validate an export file from disk."""

    p = Path(path)
    try:
        text = p.read_text(encoding="utf-8")
    except OSError as e:
        raise ImportValidationError(f"Cannot read {p}: {e}") from e
    return parse_document(text)


__all__ = ["validate_document", "parse_document", "load_document"]
