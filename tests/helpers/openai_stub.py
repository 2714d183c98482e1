"""Test helpers to stub the OpenAI Responses client used by extraction.py.

The stub pulls the statement chunk embedded between the BEGIN_/END_ markers
of the user content and hands it to a ``respond`` callable, which returns the
response body as a mapping (or raises to simulate a service failure). Every
call's kwargs are recorded so tests can assert on prompts and schema.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any

from expense_analyzer.prompting import BEGIN_FEEDBACK, BEGIN_STATEMENT, END_FEEDBACK, END_STATEMENT


def _between(text: str, begin: str, end: str) -> str | None:
    b = text.find(begin)
    e = text.rfind(end)
    if b == -1 or e == -1 or e <= b:
        return None
    return text[b + len(begin) : e]


def statement_of(user_content: str) -> str:
    chunk = _between(user_content, BEGIN_STATEMENT, END_STATEMENT)
    if chunk is None:
        raise AssertionError("extraction: user content missing embedded statement block")
    return chunk


def feedback_of(user_content: str) -> str | None:
    return _between(user_content, BEGIN_FEEDBACK, END_FEEDBACK)


class StatusError(Exception):
    """Stand-in for an SDK error carrying an HTTP ``status_code``."""

    def __init__(self, status_code: int) -> None:
        super().__init__(f"HTTP {status_code}")
        self.status_code = status_code


class OpenAIStub:
    """Minimal stub matching the ``openai.OpenAI`` shape for ``extraction.py``.

    Parameters
    ----------
    respond:
        Called with the statement chunk text; returns the response body as a
        mapping, a raw string (sent as-is), or raises.
    calls_out:
        A list appended with each call's kwargs.
    """

    def __init__(
        self,
        respond: Callable[[str], Any],
        calls_out: list[dict[str, Any]] | None = None,
    ) -> None:
        self._respond = respond
        self._calls = calls_out if calls_out is not None else []

        class _Responses:
            def __init__(self, outer: OpenAIStub) -> None:
                self._outer = outer

            def create(self, **kwargs):
                self._outer._calls.append(kwargs)
                body = self._outer._respond(statement_of(kwargs["input"]))

                class _Resp:
                    output_text: str

                resp = _Resp()
                resp.output_text = body if isinstance(body, str) else json.dumps(body)
                return resp

        self.responses = _Responses(self)

    @property
    def calls(self) -> list[dict[str, Any]]:
        return self._calls


def body(*transactions: dict[str, Any], **extra: Any) -> dict[str, Any]:
    """An extraction response body with ``transactions`` and any extra keys."""

    out: dict[str, Any] = {"currency": "USD", "transactions": list(transactions)}
    out.update(extra)
    return out


def row(description: str, amount: Any, *, date: str = "2024-03-05", type: str = "debit", category: str = "Food") -> dict[str, Any]:
    return {
        "date": date,
        "description": description,
        "amount": amount,
        "type": type,
        "category": category,
        "originalText": f"{date} {description} {amount}",
    }
