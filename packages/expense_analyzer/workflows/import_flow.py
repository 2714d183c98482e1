"""Workflow orchestrator for importing statement and export files.

Composes parsing, validation, extraction, the review session and the store
behind one importable function. JSON exports are staged as documents (no
extraction call); every other file is chunked and extracted, all of them in a
single sequential run so progress covers the whole import.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from os import PathLike
from pathlib import Path

from prompt_toolkit import PromptSession

from ..config import has_openai_key
from ..errors import ExpenseAnalyzerError, StagingError
from ..extraction import OpenAIStatementExtractor, StatementExtractor
from ..logging_setup import get_logger
from ..models import Account
from ..parser import parse_files
from ..staging import ProgressCallback, ReviewSession
from ..store import CommitReport, LedgerStore
from ..term_ui import (
    CreateSourceRequest,
    ReviewAction,
    prompt_feedback,
    prompt_review_action,
    prompt_source_name,
    select_source_or_create,
)
from ..validator import load_document

_logger = get_logger("expense_analyzer.workflows.import_flow")


@dataclass(slots=True)
class ImportOutcome:
    reports: list[CommitReport] = field(default_factory=list)
    discarded: int = 0

    @property
    def transactions_added(self) -> int:
        return sum(r.transactions_added for r in self.reports)


def _choose_source(
    review: ReviewSession,
    store: LedgerStore,
    session: PromptSession | None,
) -> None:
    choice = select_source_or_create(store.sources, default=review.source or "", session=session)
    if isinstance(choice, CreateSourceRequest):
        name = choice.name or prompt_source_name(session=session)
        if not name:
            return
        choice = store.add_source(name)
    review.select_source(choice)


def review_and_commit(
    review: ReviewSession,
    store: LedgerStore,
    *,
    source: str | None = None,
    interactive: bool = True,
    session: PromptSession | None = None,
    show: Callable[[ReviewSession], None] | None = None,
) -> list[CommitReport] | None:
    """Drive a staged review to approval or discard.

    Non-interactive runs approve immediately (``source`` is then required for
    extracted statements). Interactive runs loop on approve / redo / discard
    until the user approves or discards. Returns the commit reports, or
    ``None`` when discarded.
    """

    if source:
        review.select_source(store.add_source(source))

    if not interactive:
        return review.approve(store)

    while True:
        if show is not None:
            show(review)
        action = prompt_review_action(session=session)
        if action is ReviewAction.DISCARD:
            review.discard()
            _logger.info("import:discarded")
            return None
        if action is ReviewAction.REDO:
            feedback = prompt_feedback(session=session)
            if feedback:
                review.redo(feedback)
            continue
        if not review.source and not review.can_approve:
            _choose_source(review, store, session)
        try:
            return review.approve(store)
        except StagingError as e:
            _logger.warning("import:approve_blocked reason=%s", e)


def import_files(
    paths: Sequence[str | PathLike[str]],
    store: LedgerStore,
    *,
    extractor: StatementExtractor | None = None,
    account: Account | str = Account.BANK,
    source: str | None = None,
    interactive: bool = True,
    session: PromptSession | None = None,
    on_progress: ProgressCallback | None = None,
    show: Callable[[ReviewSession], None] | None = None,
) -> ImportOutcome:
    """End-to-end: files -> staged review(s) -> merged into ``store``.

    Validation and extraction errors propagate before anything is committed
    for the failing file set.
    """

    files = [Path(p) for p in paths]
    documents = [p for p in files if p.suffix.lower() == ".json"]
    statements = [p for p in files if p.suffix.lower() != ".json"]
    outcome = ImportOutcome()

    def _finish(review: ReviewSession) -> None:
        reports = review_and_commit(
            review, store, source=source, interactive=interactive, session=session, show=show
        )
        if reports is None:
            outcome.discarded += 1
        else:
            outcome.reports.extend(reports)

    for path in documents:
        doc = load_document(path)
        review = ReviewSession(ids=store.ids)
        review.stage_document(doc)
        _finish(review)

    if statements:
        if extractor is None:
            if not has_openai_key():
                raise ExpenseAnalyzerError("OPENAI_API_KEY is required to extract PDF or text statements")
            extractor = OpenAIStatementExtractor(ids=store.ids)
        chunks = parse_files(statements)
        if not chunks:
            raise ExpenseAnalyzerError("No text could be read from the given statement files")
        review = ReviewSession(extractor, ids=store.ids, on_progress=on_progress)
        review.extract(chunks)
        review.select_account(account)
        if not review.has_content:
            review.discard()
            raise ExpenseAnalyzerError("Could not extract any transactions, loans or balances")
        _finish(review)

    _logger.info(
        "import:done files=%d commits=%d discarded=%d transactions_added=%d",
        len(files),
        len(outcome.reports),
        outcome.discarded,
        outcome.transactions_added,
    )
    return outcome


__all__ = ["ImportOutcome", "review_and_commit", "import_files"]
