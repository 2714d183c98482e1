"""Tiny terminal UI helpers (prompt_toolkit-based).

Small, focused prompts used by the import review and recategorize flows. They
stay decoupled from staging and the store so they can be driven in tests with
a pipe input (pass ``session=PromptSession(input=pipe, output=DummyOutput())``).
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from enum import StrEnum

from prompt_toolkit import PromptSession
from prompt_toolkit.auto_suggest import AutoSuggest, Suggestion
from prompt_toolkit.completion import WordCompleter
from prompt_toolkit.key_binding import KeyBindings
from prompt_toolkit.styles import Style
from prompt_toolkit.validation import ValidationError, Validator

from .aggregate import BulkMode, CategoryChangePlan

CREATE_SENTINEL = "+ Create new source..."

_STYLE = Style.from_dict({"auto-suggestion": "fg:#888888"})


def _session(session: PromptSession | None, kb: KeyBindings) -> PromptSession:
    if session is None:
        return PromptSession(key_bindings=kb)
    return PromptSession(
        input=getattr(session, "input", None),
        output=getattr(session, "output", None),
        key_bindings=kb,
    )


# ----------------------------------------------------------------------------
# Vocabulary selector with prefix completion
# ----------------------------------------------------------------------------


class CreateSourceRequest:
    """Return type for the creation flow: carries the typed candidate name."""

    __slots__ = ("name",)

    def __init__(self, name: str) -> None:
        self.name = name

    def __repr__(self) -> str:  # pragma: no cover - trivial repr
        return f"CreateSourceRequest(name={self.name!r})"


class _PrefixSuggest(AutoSuggest):
    def __init__(self, vocab: Sequence[str]) -> None:
        self._vocab = list(vocab)

    def get_suggestion(self, buffer, document):
        text = document.text
        if not text:
            return None
        match = _best_prefix_match(self._vocab, text)
        return Suggestion(match[len(text) :]) if match else None


def _best_prefix_match(words: Sequence[str], text: str) -> str | None:
    if not text:
        return None
    lower = text.lower()
    for w in words:
        if w.lower() == lower:
            return None
    for w in words:
        if w.lower().startswith(lower):
            return w
    return None


def _select_from(
    words: Sequence[str],
    *,
    default: str,
    message: str,
    session: PromptSession | None,
) -> str:
    """Prompt with completion over ``words``; Tab/Enter apply a prefix match."""

    kb = KeyBindings()

    @kb.add("tab", eager=True)
    def _(event) -> None:  # pragma: no cover - integration path
        b = event.app.current_buffer
        cand = _best_prefix_match(words, b.document.text)
        if cand:
            b.insert_text(cand[len(b.document.text) :])
        elif b.complete_state is None:
            b.start_completion(select_first=True)
        else:
            b.complete_next()

    @kb.add("enter", eager=True)
    def _(event) -> None:  # pragma: no cover - integration path
        b = event.app.current_buffer
        cs = b.complete_state
        if cs is not None and cs.current_completion is not None:
            b.apply_completion(cs.current_completion)
        else:
            cand = _best_prefix_match(words, b.document.text)
            if cand:
                b.insert_text(cand[len(b.document.text) :])
        b.validate_and_handle()

    sess = _session(session, kb)
    result = sess.prompt(
        message=message,
        completer=WordCompleter(list(words), ignore_case=True, match_middle=True, sentence=True),
        default=default,
        key_bindings=kb,
        auto_suggest=_PrefixSuggest(words),
        style=_STYLE,
    )
    return result.strip() or default


def select_source_or_create(
    sources: Iterable[str],
    *,
    default: str = "",
    message: str = "Source for this statement (Enter to accept): ",
    session: PromptSession | None = None,
) -> str | CreateSourceRequest:
    """Choose an existing source, or signal that a new one should be created.

    Any value not among ``sources`` (case-insensitive) is a creation intent.
    """

    words = [*sources, CREATE_SENTINEL]
    known = {w.lower(): w for w in words if w != CREATE_SENTINEL}
    result = _select_from(words, default=default, message=message, session=session)
    if result == CREATE_SENTINEL:
        return CreateSourceRequest("")
    if result.lower() in known:
        return known[result.lower()]
    return CreateSourceRequest(result)


def select_category(
    categories: Iterable[str],
    *,
    default: str,
    message: str = "Category (Enter to accept): ",
    session: PromptSession | None = None,
) -> str:
    """Choose a category; free text is accepted as a new category."""

    words = list(categories)
    known = {w.lower(): w for w in words}
    result = _select_from(words, default=default, message=message, session=session)
    return known.get(result.lower(), result)


# ----------------------------------------------------------------------------
# Validated free-text prompts
# ----------------------------------------------------------------------------


class _NonBlank(Validator):
    def __init__(self, what: str) -> None:
        self._what = what

    def validate(self, document) -> None:
        if not document.text.strip():
            raise ValidationError(message=f"{self._what} must not be empty")


def prompt_source_name(
    *,
    initial: str = "",
    session: PromptSession | None = None,
    message: str = "New source name (Enter to save • Esc to cancel): ",
) -> str | None:
    """Collect a new source label. Returns ``None`` when canceled via Esc."""

    kb = KeyBindings()

    @kb.add("escape")
    def _(event) -> None:  # pragma: no cover - exercised indirectly
        event.app.exit(result=None)

    value = _session(session, kb).prompt(
        message,
        default=initial,
        validator=_NonBlank("Source name"),
        validate_while_typing=False,
        key_bindings=kb,
    )
    return value.strip() if value is not None else None


def prompt_feedback(
    *,
    session: PromptSession | None = None,
    message: str = "What should the extraction fix? (empty to cancel): ",
) -> str | None:
    value = _session(session, KeyBindings()).prompt(message)
    return value.strip() or None


# ----------------------------------------------------------------------------
# Single-letter choices
# ----------------------------------------------------------------------------


class ReviewAction(StrEnum):
    APPROVE = "approve"
    REDO = "redo"
    DISCARD = "discard"


class _Choice(Validator):
    def __init__(self, allowed: Iterable[str]) -> None:
        self._allowed = {a.lower() for a in allowed}

    def validate(self, document) -> None:
        if document.text.strip().lower() not in self._allowed:
            raise ValidationError(message="Choose one of: " + ", ".join(sorted(self._allowed)))


def _choose(letters: dict[str, str], message: str, session: PromptSession | None) -> str:
    allowed = [*letters, *letters.values()]
    value = _session(session, KeyBindings()).prompt(
        message, validator=_Choice(allowed), validate_while_typing=False
    )
    v = value.strip().lower()
    return letters.get(v, v)


def prompt_review_action(*, session: PromptSession | None = None) -> ReviewAction:
    letters = {"a": ReviewAction.APPROVE, "r": ReviewAction.REDO, "d": ReviewAction.DISCARD}
    return ReviewAction(_choose(letters, "[a]pprove, [r]edo with feedback, [d]iscard: ", session))


def prompt_bulk_mode(plan: CategoryChangePlan, *, session: PromptSession | None = None) -> BulkMode:
    """Ask how far a category change should propagate."""

    message = (
        f"{plan.match_count_all} transactions share the description {plan.description!r} "
        f"({plan.match_count_filtered} in view). Apply '{plan.new_category}' to "
        "[s]ingle, [f]iltered, [a]ll: "
    )
    letters = {"s": BulkMode.SINGLE, "f": BulkMode.FILTERED, "a": BulkMode.ALL}
    return BulkMode(_choose(letters, message, session))


__all__ = [
    "CREATE_SENTINEL",
    "CreateSourceRequest",
    "ReviewAction",
    "select_source_or_create",
    "select_category",
    "prompt_source_name",
    "prompt_feedback",
    "prompt_review_action",
    "prompt_bulk_mode",
]
