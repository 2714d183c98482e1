"""Statement extraction through the OpenAI Responses API.

Public API:
    - :class:`StatementExtractor` (protocol consumed by staging)
    - :class:`OpenAIStatementExtractor`
    - :func:`to_extraction_result`

No side effects occur at import time: the OpenAI client is created on first
use, and only when none was injected.
"""

from __future__ import annotations

import datetime as _dt
import json
import math
import random
import re
import time
from collections.abc import Callable, Mapping
from typing import Any, Protocol

from openai import OpenAI
from pydantic import ValidationError

from . import prompting
from .config import get_model
from .errors import ExtractionError
from .ids import IdGenerator, UuidIdGenerator
from .logging_setup import get_logger
from .models import (
    CREDIT,
    DEBIT,
    UNCATEGORIZED,
    ExtractionResponse,
    ExtractionResult,
    Loan,
    RawLoan,
    RawTransaction,
    Transaction,
)

# ---- Tunables (private) ------------------------------------------------------

_MAX_ATTEMPTS: int = 3
_BACKOFF_SCHEDULE_SEC: tuple[float, ...] = (0.5, 2.0)
_JITTER_PCT: float = 0.20

_FENCE_RE = re.compile(r"```(?:json)?", re.IGNORECASE)
_AMOUNT_JUNK_RE = re.compile(r"[,\s$£€₹]")

_logger = get_logger("expense_analyzer.extraction")


class StatementExtractor(Protocol):
    def extract(self, text: str, feedback: str | None = None) -> ExtractionResult: ...


# ---- Response decoding -------------------------------------------------------


def _response_text(resp: Any) -> str:
    """Locate the text output of a Responses SDK result.

    Prefers ``resp.output_text`` and falls back to
    ``resp.output[0].content[0].text``.
    """

    text: str | None = getattr(resp, "output_text", None)
    if not text:
        output = getattr(resp, "output", None)
        if output:
            content = getattr(output[0], "content", None)
            if content:
                txt_obj = getattr(content[0], "text", None)
                if isinstance(txt_obj, str):
                    text = txt_obj
                else:
                    maybe_val = getattr(txt_obj, "value", None)
                    if isinstance(maybe_val, str):
                        text = maybe_val
    if not text or not isinstance(text, str):
        raise ExtractionError("Unexpected Responses API shape; unable to locate text output")
    return text


def strip_fences(text: str) -> str:
    return _FENCE_RE.sub("", text).strip()


def decode_response(text: str) -> ExtractionResponse:
    """Parse the model's JSON body into an :class:`ExtractionResponse`."""

    try:
        data = json.loads(strip_fences(text))
    except json.JSONDecodeError as e:
        raise ExtractionError("Failed to parse extraction response: the model did not return valid JSON") from e
    if not isinstance(data, Mapping) or not isinstance(data.get("transactions"), list):
        raise ExtractionError("Invalid response structure: 'transactions' array missing")
    try:
        return ExtractionResponse.model_validate(data)
    except ValidationError as e:
        raise ExtractionError(f"Invalid response structure: {e.error_count()} validation error(s)") from e


# ---- Raw -> canonical --------------------------------------------------------


def _parse_amount(raw: float | str | None) -> float | None:
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, str):
        cleaned = _AMOUNT_JUNK_RE.sub("", raw)
        try:
            value = float(cleaned)
        except ValueError:
            return None
    else:
        value = float(raw)
    if not math.isfinite(value):
        return None
    return abs(value)


def _coerce_type(raw: str | None) -> str:
    t = (raw or "").strip().lower()
    return t if t in (CREDIT, DEBIT) else DEBIT


def _to_transaction(raw: RawTransaction, *, ids: IdGenerator, today: str) -> Transaction | None:
    amount = _parse_amount(raw.amount)
    if amount is None:
        _logger.warning(
            "extraction:skip_row reason=unparseable_amount description=%r amount=%r",
            raw.description,
            raw.amount,
        )
        return None
    description = (raw.description or "").strip() or (raw.original_text or "").strip() or "Unknown"
    return Transaction(
        id=ids.next_id(),
        date=(raw.date or "").strip() or today,
        description=description,
        amount=amount,
        type=_coerce_type(raw.type),
        category=(raw.category or "").strip() or UNCATEGORIZED,
        original_text=raw.original_text,
    )


def _to_loan(raw: RawLoan, *, ids: IdGenerator) -> Loan:
    return Loan(
        id=ids.next_id(),
        description=(raw.description or "").strip() or "Loan",
        total_amount=raw.total_amount or 0.0,
        remaining_amount=raw.remaining_amount or 0.0,
        installment_amount=raw.installment_amount or 0.0,
        remaining_installments=raw.remaining_installments or 0,
    )


def to_extraction_result(
    response: ExtractionResponse,
    *,
    ids: IdGenerator,
    today: str | None = None,
) -> ExtractionResult:
    """Assign fresh ids and fill defaults for every raw transaction and loan."""

    day = today or _dt.date.today().isoformat()
    transactions = [
        tx for raw in response.transactions if (tx := _to_transaction(raw, ids=ids, today=day)) is not None
    ]
    loans = [_to_loan(raw, ids=ids) for raw in (response.loans or [])]
    return ExtractionResult(
        transactions=transactions,
        currency=response.currency or None,
        loans=loans,
        balances=response.balances,
        statement_period=response.statement_period,
    )


# ---- Service client ----------------------------------------------------------


def _create_client() -> OpenAI:
    return OpenAI()


def _is_retryable(exc: BaseException) -> bool:
    """Return True only for HTTP 429 and 5xx errors."""

    sc = getattr(exc, "status_code", None)
    return isinstance(sc, int) and (sc == 429 or 500 <= sc < 600)


def _backoff_delay(attempt_no: int) -> float:
    base = _BACKOFF_SCHEDULE_SEC[min(attempt_no - 1, len(_BACKOFF_SCHEDULE_SEC) - 1)]
    jitter = base * _JITTER_PCT
    return max(0.0, base + random.uniform(-jitter, jitter))


class OpenAIStatementExtractor:
    """:class:`StatementExtractor` backed by ``client.responses.create``.

    ``client`` defaults to ``openai.OpenAI()`` (reads ``OPENAI_API_KEY``),
    ``model`` to :func:`expense_analyzer.config.get_model`.
    """

    def __init__(
        self,
        client: Any | None = None,
        *,
        model: str | None = None,
        ids: IdGenerator | None = None,
        sleep: Callable[[float], None] = time.sleep,
        today: Callable[[], str] | None = None,
    ) -> None:
        self._client = client
        self._model = model or get_model()
        self._ids = ids or UuidIdGenerator()
        self._sleep = sleep
        self._today = today

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = _create_client()
        return self._client

    def extract(self, text: str, feedback: str | None = None) -> ExtractionResult:
        user_content = prompting.build_user_content(text, feedback=feedback)
        instructions = prompting.build_system_instructions()
        text_cfg = {"format": prompting.build_response_format()}

        attempt = 1
        while True:
            t0 = time.perf_counter()
            try:
                resp = self.client.responses.create(
                    model=self._model,
                    instructions=instructions,
                    input=user_content,
                    text=text_cfg,
                )
                decoded = decode_response(_response_text(resp))
                result = to_extraction_result(
                    decoded,
                    ids=self._ids,
                    today=self._today() if self._today else None,
                )
                _logger.info(
                    "extraction:call_done transactions=%d loans=%d latency_ms=%.2f",
                    len(result.transactions),
                    len(result.loans),
                    (time.perf_counter() - t0) * 1000.0,
                )
                return result
            except ExtractionError:
                # Parsing/validation failures are terminal.
                raise
            except Exception as e:  # noqa: BLE001
                dt_ms = (time.perf_counter() - t0) * 1000.0
                if attempt >= _MAX_ATTEMPTS or not _is_retryable(e):
                    _logger.error(
                        "extraction:call_failed_terminal attempt=%d latency_ms=%.2f error=%s",
                        attempt,
                        dt_ms,
                        e.__class__.__name__,
                    )
                    raise ExtractionError(f"Failed to analyze statement: {e}") from e
                _logger.warning(
                    "extraction:call_retry attempt=%d latency_ms=%.2f error=%s",
                    attempt,
                    dt_ms,
                    e.__class__.__name__,
                )
                self._sleep(_backoff_delay(attempt))
                attempt += 1


__all__ = [
    "StatementExtractor",
    "OpenAIStatementExtractor",
    "decode_response",
    "strip_fences",
    "to_extraction_result",
]
