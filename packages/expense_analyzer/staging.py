"""Review/approval staging between extraction and the canonical store.

A :class:`ReviewSession` walks one import through::

    IDLE -> EXTRACTING -> STAGED -> approve() -> IDLE
                            |  \\-> redo(feedback) -> EXTRACTING -> STAGED
                            \\---> discard() -> IDLE

Extraction runs strictly one chunk at a time. A failing chunk aborts the
whole run: nothing gathered so far is kept, the session returns to the state
it was in before the run, and :class:`~expense_analyzer.errors.ExtractionError`
propagates with the failing batch number. Staged edits only touch the staged
copy; the canonical store is written once, on :meth:`ReviewSession.approve`.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field, replace
from enum import StrEnum
from typing import Any

from .aggregate import recategorize
from .errors import ExtractionCancelled, ExtractionError, StagingError
from .extraction import StatementExtractor
from .ids import IdGenerator, UuidIdGenerator
from .logging_setup import get_logger
from .models import (
    Account,
    ExtractionResult,
    ImportDocument,
    Investment,
    Loan,
    RawBalances,
    StatementBalance,
    StatementPeriod,
    Transaction,
)
from .store import CommitReport, ImportBatch, LedgerStore

_logger = get_logger("expense_analyzer.staging")


class ReviewState(StrEnum):
    IDLE = "idle"
    EXTRACTING = "extracting"
    STAGED = "staged"


class Origin(StrEnum):
    EXTRACTION = "extraction"
    DOCUMENT = "document"


@dataclass(frozen=True, slots=True)
class CompletedBatch:
    batch_num: int
    time_ms: float


@dataclass(frozen=True, slots=True)
class ProcessingStatus:
    """Progress snapshot passed to the ``on_progress`` callback."""

    is_active: bool = False
    current_batch: int = 0
    total_batches: int = 0
    completed_batches: tuple[CompletedBatch, ...] = ()
    start_time: float = 0.0

    @property
    def elapsed_ms(self) -> float:
        return sum(b.time_ms for b in self.completed_batches)


@dataclass(slots=True)
class _Staged:
    origin: Origin
    transactions: list[Transaction] = field(default_factory=list)
    credit_card_transactions: list[Transaction] = field(default_factory=list)
    investments: list[Investment] = field(default_factory=list)
    loans: list[Loan] = field(default_factory=list)
    balances: list[StatementBalance] = field(default_factory=list)
    chunk_balances: list[tuple[StatementPeriod, RawBalances]] = field(default_factory=list)
    sources: list[str] = field(default_factory=list)
    currency: str | None = None
    raw_chunks: list[str] = field(default_factory=list)


ProgressCallback = Callable[[ProcessingStatus], None]


class ReviewSession:
    def __init__(
        self,
        extractor: StatementExtractor | None = None,
        *,
        ids: IdGenerator | None = None,
        on_progress: ProgressCallback | None = None,
        should_cancel: Callable[[], bool] | None = None,
    ) -> None:
        self.extractor = extractor
        self.ids = ids or UuidIdGenerator()
        self.on_progress = on_progress
        self.should_cancel = should_cancel
        self.state = ReviewState.IDLE
        self.status = ProcessingStatus()
        self.source: str | None = None
        self.account = Account.BANK
        self._staged: _Staged | None = None

    # ---- read-only views ---------------------------------------------------

    @property
    def transactions(self) -> list[Transaction]:
        return list(self._staged.transactions) if self._staged else []

    @property
    def loans(self) -> list[Loan]:
        return list(self._staged.loans) if self._staged else []

    @property
    def investments(self) -> list[Investment]:
        return list(self._staged.investments) if self._staged else []

    @property
    def currency(self) -> str | None:
        return self._staged.currency if self._staged else None

    @property
    def origin(self) -> Origin | None:
        return self._staged.origin if self._staged else None

    @property
    def has_content(self) -> bool:
        """Whether anything is staged that a commit would write."""

        s = self._staged
        if s is None:
            return False
        return bool(
            s.transactions
            or s.credit_card_transactions
            or s.investments
            or s.loans
            or s.balances
            or s.chunk_balances
        )

    @property
    def can_approve(self) -> bool:
        s = self._staged
        if self.state is not ReviewState.STAGED or s is None or not self.has_content:
            return False
        return s.origin is Origin.DOCUMENT or bool((self.source or "").strip())

    # ---- progress ----------------------------------------------------------

    def _report(self, status: ProcessingStatus) -> None:
        self.status = status
        if self.on_progress is not None:
            self.on_progress(status)

    # ---- extraction --------------------------------------------------------

    def _run(self, chunks: Sequence[str], feedback: str | None) -> list[ExtractionResult]:
        if self.extractor is None:
            raise StagingError("No extractor configured for this session")
        total = len(chunks)
        status = ProcessingStatus(is_active=True, total_batches=total, start_time=time.time())
        self._report(status)
        results: list[ExtractionResult] = []
        try:
            for i, chunk in enumerate(chunks, start=1):
                if self.should_cancel is not None and self.should_cancel():
                    _logger.info("extraction:cancelled batch=%d total=%d", i, total)
                    raise ExtractionCancelled("Extraction cancelled", batch=i)
                status = replace(status, current_batch=i)
                self._report(status)
                t0 = time.perf_counter()
                try:
                    result = self.extractor.extract(chunk, feedback)
                except ExtractionError as e:
                    _logger.error("extraction:batch_failed batch=%d total=%d error=%s", i, total, e)
                    raise ExtractionError(f"Batch {i} of {total} failed: {e}", batch=i) from e
                except Exception as e:  # noqa: BLE001
                    _logger.error(
                        "extraction:batch_failed batch=%d total=%d error=%s", i, total, e.__class__.__name__
                    )
                    raise ExtractionError(f"Batch {i} of {total} failed: {e}", batch=i) from e
                dt_ms = (time.perf_counter() - t0) * 1000.0
                results.append(result)
                status = replace(
                    status,
                    completed_batches=(*status.completed_batches, CompletedBatch(i, dt_ms)),
                )
                self._report(status)
                _logger.info(
                    "extraction:batch_done batch=%d total=%d transactions=%d latency_ms=%.2f",
                    i,
                    total,
                    len(result.transactions),
                    dt_ms,
                )
        finally:
            self._report(replace(status, is_active=False))
        return results

    def _fresh_ids(self, result: ExtractionResult) -> ExtractionResult:
        # Ids come from this session's generator whatever the extractor assigned.
        return replace(
            result,
            transactions=[t.with_changes(id=self.ids.next_id()) for t in result.transactions],
            loans=[loan.with_changes(id=self.ids.next_id()) for loan in result.loans],
        )

    def _extract_into(self, chunks: Sequence[str], feedback: str | None) -> _Staged:
        if self.state is ReviewState.EXTRACTING:
            raise StagingError("An extraction is already running")
        if not chunks:
            raise StagingError("Nothing to extract: no text chunks were provided")
        prior = self.state
        self.state = ReviewState.EXTRACTING
        try:
            results = [self._fresh_ids(r) for r in self._run(chunks, feedback)]
        except BaseException:
            self.state = prior
            raise

        staged = _Staged(origin=Origin.EXTRACTION, raw_chunks=list(chunks))
        for r in results:
            staged.transactions.extend(r.transactions)
            staged.loans.extend(r.loans)
            if r.currency:
                staged.currency = r.currency
            if r.balances is not None and r.statement_period is not None:
                staged.chunk_balances.append((r.statement_period, r.balances))
            elif r.balances is not None:
                _logger.warning("staging:balances_dropped reason=no_statement_period")
        return staged

    def extract(self, chunks: Sequence[str], feedback: str | None = None) -> list[Transaction]:
        """Run extraction over ``chunks`` and stage the combined result."""

        staged = self._extract_into(chunks, feedback)
        self._staged = staged
        self.source = None
        self.state = ReviewState.STAGED
        _logger.info(
            "staging:staged origin=extraction transactions=%d loans=%d",
            len(staged.transactions),
            len(staged.loans),
        )
        return self.transactions

    def redo(self, feedback: str) -> list[Transaction]:
        """Re-extract the original chunks with reviewer ``feedback``.

        Replaces the staged transactions and loans; the selected source and
        account are kept.
        """

        if not feedback or not feedback.strip():
            raise StagingError("Feedback is required to redo an extraction")
        s = self._staged
        if self.state is not ReviewState.STAGED or s is None:
            raise StagingError("Nothing is staged")
        if s.origin is not Origin.EXTRACTION or not s.raw_chunks:
            raise StagingError("Only extracted statements can be redone")
        fresh = self._extract_into(s.raw_chunks, feedback.strip())
        s.transactions = fresh.transactions
        s.loans = fresh.loans
        s.chunk_balances = fresh.chunk_balances
        if fresh.currency:
            s.currency = fresh.currency
        self.state = ReviewState.STAGED
        _logger.info("staging:redone transactions=%d", len(s.transactions))
        return self.transactions

    def stage_document(self, doc: ImportDocument) -> None:
        """Stage a validated export document (no extraction call)."""

        if self.state is ReviewState.EXTRACTING:
            raise StagingError("An extraction is already running")
        self._staged = _Staged(
            origin=Origin.DOCUMENT,
            transactions=list(doc.transactions),
            credit_card_transactions=list(doc.credit_card_transactions),
            investments=list(doc.investments),
            loans=list(doc.loans),
            balances=list(doc.balances),
            sources=list(doc.sources),
            currency=doc.currency,
        )
        self.source = None
        self.state = ReviewState.STAGED
        _logger.info(
            "staging:staged origin=document transactions=%d credit_card_transactions=%d investments=%d",
            len(doc.transactions),
            len(doc.credit_card_transactions),
            len(doc.investments),
        )

    # ---- staged edits ------------------------------------------------------

    def _require_staged(self) -> _Staged:
        if self.state is not ReviewState.STAGED or self._staged is None:
            raise StagingError("Nothing is staged")
        return self._staged

    def edit_transaction(self, index: int, field_name: str, value: Any) -> Transaction:
        s = self._require_staged()
        if not 0 <= index < len(s.transactions):
            raise StagingError(f"No staged transaction at index {index}")
        current = s.transactions[index]
        if field_name == "category":
            updated = recategorize(current, value)
        else:
            updated = current.with_changes(**{field_name: value})
        s.transactions[index] = updated
        return updated

    def remove_transaction(self, index: int) -> Transaction:
        s = self._require_staged()
        if not 0 <= index < len(s.transactions):
            raise StagingError(f"No staged transaction at index {index}")
        return s.transactions.pop(index)

    def select_source(self, name: str | None) -> None:
        self._require_staged()
        self.source = (name or "").strip() or None

    def select_account(self, account: Account | str) -> None:
        s = self._require_staged()
        if s.origin is Origin.DOCUMENT:
            raise StagingError("Export documents carry their own bank and credit card collections")
        self.account = Account(account)

    # ---- terminal transitions ----------------------------------------------

    def _tag(self, t: Transaction) -> Transaction:
        if self.source and not t.source:
            return t.with_changes(source=self.source)
        return t

    def build_batches(self) -> list[ImportBatch]:
        """The import batch(es) :meth:`approve` would commit."""

        s = self._require_staged()
        balances = list(s.balances)
        if self.source:
            for period, raw in s.chunk_balances:
                balances.append(
                    StatementBalance(
                        id=self.ids.next_id(),
                        source=self.source,
                        month=period.month,
                        year=period.year,
                        opening_balance=raw.opening,
                        closing_balance=raw.closing,
                    )
                )
        loans = [
            loan.with_changes(source=self.source) if self.source and not loan.source else loan for loan in s.loans
        ]
        batches = [
            ImportBatch(
                account=Account.BANK if s.origin is Origin.DOCUMENT else self.account,
                transactions=[self._tag(t) for t in s.transactions],
                investments=list(s.investments),
                loans=loans,
                balances=balances,
                sources=[*s.sources, *([self.source] if self.source else [])],
                currency=s.currency,
            )
        ]
        if s.credit_card_transactions:
            batches.append(
                ImportBatch(
                    account=Account.CREDIT_CARD,
                    transactions=[self._tag(t) for t in s.credit_card_transactions],
                )
            )
        return batches

    def approve(self, store: LedgerStore) -> list[CommitReport]:
        s = self._require_staged()
        if not self.can_approve:
            if s.origin is Origin.EXTRACTION and not self.source:
                raise StagingError("Select a source before approving")
            raise StagingError("Nothing to approve")
        reports = [store.commit_import(batch) for batch in self.build_batches()]
        self._reset()
        return reports

    def discard(self) -> None:
        if self.state is ReviewState.EXTRACTING:
            raise StagingError("Cannot discard while extracting")
        self._reset()

    def _reset(self) -> None:
        self._staged = None
        self.source = None
        self.account = Account.BANK
        self.state = ReviewState.IDLE


__all__ = [
    "ReviewState",
    "Origin",
    "CompletedBatch",
    "ProcessingStatus",
    "ReviewSession",
]
