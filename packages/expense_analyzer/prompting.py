"""Prompt construction for statement extraction.

This module builds:
- The system instructions for the extraction task.
- The user content embedding one statement chunk (and optional reviewer
  feedback) between BEGIN_/END_ markers.
- The strict ``text.format`` (JSON Schema) object for the OpenAI Responses
  API.
"""

from __future__ import annotations

from collections.abc import Sequence

from openai.types.responses.response_format_text_json_schema_config_param import (
    ResponseFormatTextJSONSchemaConfigParam,
)

from .models import DEFAULT_CATEGORIES

BEGIN_STATEMENT = "BEGIN_STATEMENT_TEXT\n"
END_STATEMENT = "\nEND_STATEMENT_TEXT"
BEGIN_FEEDBACK = "BEGIN_REVIEWER_FEEDBACK\n"
END_FEEDBACK = "\nEND_REVIEWER_FEEDBACK"


def build_system_instructions() -> str:
    return (
        "You are an expert financial analyst. Extract every transaction from the bank or "
        "credit card statement text you are given. Never invent transactions. Output JSON "
        "only that conforms to the specified schema."
    )


def build_user_content(
    text: str,
    *,
    feedback: str | None = None,
    categories: Sequence[str] = DEFAULT_CATEGORIES,
) -> str:
    """Build the user message for one statement chunk.

    The numbered rules mirror the fields of the response schema. When
    ``feedback`` is given (a redo after review) it is embedded in its own
    delimited block and the model is told to apply it.
    """

    cats = ", ".join(f"'{c}'" for c in categories)
    lines = [
        "Analyze the following statement text.",
        "",
        "1. Currency: detect it from symbols ($, £, €, ₹) or location clues "
        '(e.g. "London" -> GBP, "Mumbai" -> INR). Default to USD if unsure.',
        "2. Transactions: date (ISO YYYY-MM-DD), description, amount (absolute number), "
        "type ('credit' or 'debit' only), category, and the original statement line as "
        "originalText.",
        f"3. Categories: {cats}.",
        "4. Loans / EMIs: list any loan or installment plans the statement shows, with "
        "total, remaining and installment amounts and remaining installments.",
        "5. Balances: the statement's opening and closing balance, and the statement "
        "period (month as MM, year as YYYY). Use null when the statement does not show them.",
    ]
    if feedback and feedback.strip():
        lines += [
            "",
            "A reviewer checked a previous extraction of this text. Apply this feedback:",
            BEGIN_FEEDBACK + feedback.strip() + END_FEEDBACK,
        ]
    lines += ["", BEGIN_STATEMENT + text + END_STATEMENT]
    return "\n".join(lines)


def _nullable_number() -> dict:
    return {"type": ["number", "null"]}


def build_response_format() -> ResponseFormatTextJSONSchemaConfigParam:
    """Return the strict JSON Schema format object for extraction responses.

    Strict mode requires every property to be listed in ``required``; optional
    values are expressed as nullable types instead.
    """

    transaction = {
        "type": "object",
        "properties": {
            "date": {"type": ["string", "null"]},
            "description": {"type": "string"},
            "amount": {"type": "number"},
            "type": {"type": "string", "enum": ["credit", "debit"]},
            "category": {"type": "string"},
            "originalText": {"type": ["string", "null"]},
        },
        "required": ["date", "description", "amount", "type", "category", "originalText"],
        "additionalProperties": False,
    }
    loan = {
        "type": "object",
        "properties": {
            "description": {"type": "string"},
            "totalAmount": _nullable_number(),
            "remainingAmount": _nullable_number(),
            "installmentAmount": _nullable_number(),
            "remainingInstallments": {"type": ["integer", "null"]},
        },
        "required": [
            "description",
            "totalAmount",
            "remainingAmount",
            "installmentAmount",
            "remainingInstallments",
        ],
        "additionalProperties": False,
    }
    balances = {
        "type": ["object", "null"],
        "properties": {"opening": {"type": "number"}, "closing": {"type": "number"}},
        "required": ["opening", "closing"],
        "additionalProperties": False,
    }
    period = {
        "type": ["object", "null"],
        "properties": {"month": {"type": "string"}, "year": {"type": "string"}},
        "required": ["month", "year"],
        "additionalProperties": False,
    }

    result: ResponseFormatTextJSONSchemaConfigParam = {
        "type": "json_schema",
        "name": "statement_extraction",
        "schema": {
            "type": "object",
            "properties": {
                "currency": {"type": ["string", "null"]},
                "transactions": {"type": "array", "items": transaction},
                "loans": {"type": ["array", "null"], "items": loan},
                "balances": balances,
                "statement_period": period,
            },
            "required": ["currency", "transactions", "loans", "balances", "statement_period"],
            "additionalProperties": False,
        },
        "strict": True,
    }
    return result


__all__ = [
    "BEGIN_STATEMENT",
    "END_STATEMENT",
    "BEGIN_FEEDBACK",
    "END_FEEDBACK",
    "build_system_instructions",
    "build_user_content",
    "build_response_format",
]
