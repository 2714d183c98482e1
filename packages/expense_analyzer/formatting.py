"""Display formatting for amounts (en-US conventions)."""

from __future__ import annotations

from .identity import format_amount

_SYMBOLS: dict[str, str] = {
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "INR": "₹",
    "JPY": "¥",
    "CNY": "CN¥",
    "CAD": "CA$",
    "AUD": "A$",
}

# ISO 4217 currencies without minor units.
_ZERO_DECIMAL = frozenset({"JPY", "KRW", "VND", "CLP", "ISK"})


def format_currency(amount: float, currency: str = "USD") -> str:
    """``format_currency(-1234.5, "USD") == "-$1,234.50"``.

    Unknown codes are prefixed as-is (``"CHF 10.00"``).
    """

    code = (currency or "USD").strip().upper()
    decimals = 0 if code in _ZERO_DECIMAL else 2
    body = f"{abs(amount):,.{decimals}f}"
    symbol = _SYMBOLS.get(code)
    text = f"{symbol}{body}" if symbol else f"{code} {body}"
    return f"-{text}" if amount < 0 and float(body.replace(",", "")) != 0 else text


def format_compact_number(number: float) -> str:
    """Short labels in the Indian numbering style: K (thousand), L (lakh), Cr (crore)."""

    n = abs(number)
    for threshold, suffix in ((10_000_000, "Cr"), (100_000, "L"), (1_000, "K")):
        if n >= threshold:
            text = f"{number / threshold:.1f}"
            if text.endswith(".0"):
                text = text[:-2]
            return text + suffix
    return format_amount(number)


def format_percent(value: float) -> str:
    return f"{value:.1f}%"


__all__ = ["format_currency", "format_compact_number", "format_percent"]
