"""Identity keys shared by merge, filtering and bulk edits.

Every helper here is pure and total: a missing or malformed field is treated
as an empty string (or zero for periods) rather than raising, so callers can
key arbitrary records without pre-checks.

Keys
----
- signature: ``date|amount|type|normalized description``. Within one canonical
  collection no two transactions share a signature.
- balance key: ``source|year|month``.
- duplicate-group key: ``normalized description|amount`` (no date, no type),
  used by the diagnostic duplicates view.
- trimmed description: ``.strip()`` only, case preserved. Used by bulk
  category propagation.
"""

from __future__ import annotations

import math
from typing import Any

from .models import StatementBalance, Transaction


def normalize_description(text: str | None) -> str:
    """Trim, collapse whitespace runs to one space, and lowercase."""

    if not text:
        return ""
    return " ".join(str(text).split()).lower()


def format_amount(amount: Any) -> str:
    """Render ``amount`` the way a JSON number prints.

    Integral floats lose their ``.0`` (``5.0`` -> ``"5"``) so that ``5`` and
    ``5.0`` produce the same signature; other values use ``repr``.
    """

    if amount is None:
        return ""
    if isinstance(amount, bool):
        return str(amount).lower()
    if isinstance(amount, int):
        return str(amount)
    if isinstance(amount, float):
        if math.isfinite(amount) and amount == int(amount) and abs(amount) < 1e21:
            return str(int(amount))
        return repr(amount)
    return str(amount)


def transaction_signature(t: Transaction) -> str:
    date = getattr(t, "date", None) or ""
    ttype = getattr(t, "type", None) or ""
    desc = normalize_description(getattr(t, "description", None))
    return f"{date}|{format_amount(getattr(t, 'amount', None))}|{ttype}|{desc}"


def duplicate_group_key(t: Transaction) -> str:
    desc = normalize_description(getattr(t, "description", None))
    return f"{desc}|{format_amount(getattr(t, 'amount', None))}"


def trimmed_description(t: Transaction) -> str:
    return (getattr(t, "description", None) or "").strip()


def balance_key(b: StatementBalance) -> str:
    source = getattr(b, "source", None) or ""
    year = getattr(b, "year", None) or ""
    month = getattr(b, "month", None) or ""
    return f"{source}|{year}|{month}"


def _to_int(v: Any) -> int:
    try:
        return int(str(v).strip())
    except (TypeError, ValueError):
        return 0


def period_index(year: Any, month: Any) -> int:
    """``year * 12 + month``; unparseable parts count as 0."""

    return _to_int(year) * 12 + _to_int(month)


def balance_period_index(b: StatementBalance) -> int:
    return period_index(getattr(b, "year", None), getattr(b, "month", None))


__all__ = [
    "normalize_description",
    "format_amount",
    "transaction_signature",
    "duplicate_group_key",
    "trimmed_description",
    "balance_key",
    "period_index",
    "balance_period_index",
]
