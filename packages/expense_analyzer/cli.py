"""CLI for the ``expense_analyzer`` package.

This module exposes callable command handlers (``cmd_import``,
``cmd_summary``...) and a Typer-based console interface over them.
Environment variables (notably ``OPENAI_API_KEY`` and ``DATABASE_URL``) are
loaded from a local ``.env`` using ``python-dotenv`` before any command runs.
Business logic lives in :mod:`expense_analyzer.store`,
:mod:`expense_analyzer.staging` and :mod:`expense_analyzer.workflows`.
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from pathlib import Path
from typing import Annotated

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

from .aggregate import BulkMode
from .errors import ExpenseAnalyzerError
from .filters import ALL_CATEGORIES, available_sources, duplicate_groups, select_all
from .formatting import format_compact_number, format_currency, format_percent
from .logging_setup import configure_logging
from .models import Account, Transaction
from .persistence import open_default_store
from .staging import ProcessingStatus, ReviewSession
from .store import LedgerStore
from .term_ui import prompt_bulk_mode, select_category

console = Console()
err_console = Console(stderr=True)


# ---- Small module-level helpers used by CLI commands -------------------------


def _open_store() -> LedgerStore:
    return LedgerStore.load(open_default_store())


def _fail(message: str) -> int:
    err_console.print(f"[red]Error:[/red] {message}")
    return 1


def _transactions_table(title: str, transactions: Sequence[Transaction], currency: str, *, numbered: bool = False) -> Table:
    table = Table(title=title)
    if numbered:
        table.add_column("#", justify="right")
    table.add_column("Date")
    table.add_column("Description")
    table.add_column("Amount", justify="right")
    table.add_column("Type")
    table.add_column("Category")
    table.add_column("Source")
    table.add_column("Id", overflow="fold")
    for i, t in enumerate(transactions):
        row = [
            t.date,
            t.description,
            format_currency(t.amount, currency),
            t.type,
            t.category,
            t.source or "",
            t.id,
        ]
        table.add_row(*([str(i)] if numbered else []), *row)
    return table


def _print_progress(status: ProcessingStatus) -> None:
    if not status.is_active:
        return
    if status.completed_batches and status.completed_batches[-1].batch_num == status.current_batch:
        last = status.completed_batches[-1]
        console.print(f"Batch {last.batch_num}/{status.total_batches} done in {last.time_ms / 1000:.1f}s")
    elif status.current_batch:
        console.print(f"Analyzing batch {status.current_batch}/{status.total_batches}...")


def _show_review(review: ReviewSession) -> None:
    currency = review.currency or "USD"
    console.print(_transactions_table("Staged transactions", review.transactions, currency, numbered=True))
    if review.loans:
        console.print(f"{len(review.loans)} loan(s) staged.")
    if review.investments:
        console.print(f"{len(review.investments)} investment(s) staged.")


# ---- Command handlers --------------------------------------------------------


def cmd_import(
    paths: Sequence[Path],
    *,
    account: Account = Account.BANK,
    source: str | None = None,
    interactive: bool = True,
) -> int:
    from .workflows.import_flow import import_files

    missing = [str(p) for p in paths if not Path(p).exists()]
    if missing:
        return _fail(f"File not found: {', '.join(missing)}")
    store = _open_store()
    try:
        outcome = import_files(
            paths,
            store,
            account=account,
            source=source,
            interactive=interactive,
            on_progress=_print_progress,
            show=_show_review,
        )
    except ExpenseAnalyzerError as e:
        return _fail(str(e))

    if not outcome.reports:
        console.print("[yellow]Nothing imported.[/yellow]")
        return 0
    console.print(
        f"[green]Imported[/green] {outcome.transactions_added} new transaction(s) "
        f"across {len(outcome.reports)} batch(es)."
    )
    return 0


def cmd_summary(
    *,
    account: Account = Account.BANK,
    years: Sequence[str] = (),
    months: Sequence[str] = (),
    sources: Sequence[str] = (),
    search: str | None = None,
    category: str | None = None,
    show_transactions: bool = False,
) -> int:
    store = _open_store()
    ledger = store.transactions(account)
    overrides: dict[str, object] = {"search_term": search, "category_filter": category or ALL_CATEGORIES}
    if years:
        overrides["years"] = frozenset(years)
    if months:
        overrides["months"] = frozenset(months)
    # Default to every known source so balances recorded for a source resolve too.
    overrides["sources"] = frozenset(sources) if sources else frozenset({*available_sources(ledger), *store.sources})
    spec = select_all(ledger, **overrides)
    dash = store.dashboard(account, spec)
    cur = dash.currency
    s = dash.summary

    table = Table(title=f"Summary ({account.value}, {len(dash.transactions)} transactions)")
    table.add_column("Metric")
    table.add_column("Value", justify="right")
    table.add_column("Compact", justify="right")
    table.add_row("Opening balance", format_currency(dash.balances.opening, cur), format_compact_number(dash.balances.opening))
    table.add_row("Closing balance", format_currency(dash.balances.closing, cur), format_compact_number(dash.balances.closing))
    table.add_row("Income", format_currency(s.total_income, cur), format_compact_number(s.total_income))
    table.add_row("Expenses", format_currency(s.total_expense_custom, cur), format_percent(s.expense_share) + " of income")
    table.add_row("Investments", format_currency(s.total_investments_custom, cur), format_compact_number(s.total_investments_custom))
    table.add_row("Savings", format_currency(s.total_savings, cur), format_percent(s.savings_rate) + " savings rate")
    console.print(table)
    if show_transactions:
        console.print(_transactions_table("Transactions", dash.transactions, cur))
    return 0


def cmd_duplicates(*, account: Account = Account.BANK) -> int:
    store = _open_store()
    dupes = duplicate_groups(store.transactions(account))
    if not dupes:
        console.print("No possible duplicates found.")
        return 0
    console.print(_transactions_table(f"Possible duplicates ({len(dupes)})", dupes, store.currency))
    return 0


def cmd_recategorize(
    tx_id: str,
    category: str | None = None,
    *,
    account: Account = Account.BANK,
    mode: BulkMode | None = None,
) -> int:
    store = _open_store()
    if category is None:
        current = next((t for t in store.transactions(account) if t.id == tx_id), None)
        if current is None:
            return _fail(f"No transaction with id {tx_id!r}")
        choices = [c for c in store.observed_categories() if c != ALL_CATEGORIES]
        category = select_category(choices, default=current.category)
    try:
        plan = store.update_transaction(tx_id, "category", category, account=account)
    except (ExpenseAnalyzerError, ValueError) as e:
        return _fail(str(e))
    if plan is None:
        console.print(f"Updated 1 transaction to [bold]{category.strip()}[/bold].")
        return 0
    chosen = mode or prompt_bulk_mode(plan)
    changed = store.confirm_category_change(plan, chosen, account=account)
    console.print(f"Updated {changed} transaction(s) to [bold]{plan.new_category}[/bold].")
    return 0


def cmd_export(*, output: Path | None = None) -> int:
    store = _open_store()
    text = json.dumps(store.export_document(), indent=2, ensure_ascii=False)
    if output is None:
        typer.echo(text)
        return 0
    output.write_text(text + "\n", encoding="utf-8")
    console.print(f"Exported to {output}")
    return 0


def cmd_sources(*, add: str | None = None) -> int:
    store = _open_store()
    if add is not None:
        try:
            store.add_source(add)
        except ValueError as e:
            return _fail(str(e))
    for name in store.sources:
        typer.echo(name)
    return 0


def cmd_clear(
    *,
    year: str | None = None,
    month: str | None = None,
    account: Account | None = None,
    investments: bool = False,
    everything: bool = False,
) -> int:
    store = _open_store()
    if everything:
        store.reset()
        console.print("All data cleared.")
        return 0
    if investments:
        store.clear_investments()
        console.print("Investments cleared.")
        return 0
    try:
        removed = store.clear_transactions(year, month, account=account)
    except ValueError as e:
        return _fail(str(e))
    console.print(f"Removed {removed} transaction(s).")
    return 0


# ---- Typer-based console interface -------------------------------------------


app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help=(
        "Import bank and credit card statements, deduplicate them and summarize "
        "income, expenses and savings. Loads OPENAI_API_KEY from a local .env."
    ),
)

AccountOption = Annotated[Account, typer.Option("--account", "-a", help="Ledger to use.")]


@app.command("import")
def import_cmd(
    paths: Annotated[list[Path], typer.Argument(help="PDF, text or JSON export files.")],
    account: Annotated[
        Account, typer.Option("--account", "-a", help="Ledger for statements; JSON exports keep their own.")
    ] = Account.BANK,
    source: Annotated[str | None, typer.Option(help="Source label for the statements.")] = None,
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Approve without reviewing.")] = False,
) -> None:
    """Extract or load files, review them, and merge into the ledger."""

    raise typer.Exit(cmd_import(paths, account=account, source=source, interactive=not yes))


@app.command("summary")
def summary_cmd(
    account: AccountOption = Account.BANK,
    year: Annotated[list[str] | None, typer.Option(help="Year(s) to include (default: all).")] = None,
    month: Annotated[list[str] | None, typer.Option(help="Month(s) 01-12 to include (default: all).")] = None,
    source: Annotated[list[str] | None, typer.Option(help="Source(s) to include (default: all).")] = None,
    search: Annotated[str | None, typer.Option(help="Case-insensitive search text.")] = None,
    category: Annotated[str | None, typer.Option(help="Only this category.")] = None,
    transactions: Annotated[bool, typer.Option("--transactions", help="Also list the transactions.")] = False,
) -> None:
    """Show income, expense, investment and savings totals."""

    raise typer.Exit(
        cmd_summary(
            account=account,
            years=year or (),
            months=month or (),
            sources=source or (),
            search=search,
            category=category,
            show_transactions=transactions,
        )
    )


@app.command("duplicates")
def duplicates_cmd(account: AccountOption = Account.BANK) -> None:
    """List transactions sharing a description and amount."""

    raise typer.Exit(cmd_duplicates(account=account))


@app.command("recategorize")
def recategorize_cmd(
    tx_id: Annotated[str, typer.Argument(help="Transaction id.")],
    category: Annotated[str | None, typer.Argument(help="New category (prompted when omitted).")] = None,
    account: AccountOption = Account.BANK,
    mode: Annotated[
        BulkMode | None,
        typer.Option(help="Apply to matching descriptions without asking."),
    ] = None,
) -> None:
    """Change a transaction's category, optionally for all matching descriptions."""

    raise typer.Exit(cmd_recategorize(tx_id, category, account=account, mode=mode))


@app.command("export")
def export_cmd(
    output: Annotated[Path | None, typer.Option("--output", "-o", help="Write to this file.")] = None,
) -> None:
    """Write all data as a JSON export document."""

    raise typer.Exit(cmd_export(output=output))


@app.command("sources")
def sources_cmd(
    add: Annotated[str | None, typer.Option(help="Create a new source.")] = None,
) -> None:
    """List (or add) statement sources."""

    raise typer.Exit(cmd_sources(add=add))


@app.command("clear")
def clear_cmd(
    year: Annotated[str | None, typer.Option(help="Only this year.")] = None,
    month: Annotated[str | None, typer.Option(help="Only this month (requires --year).")] = None,
    account: Annotated[Account | None, typer.Option("--account", "-a", help="Only this ledger.")] = None,
    investments: Annotated[bool, typer.Option("--investments", help="Clear investments instead.")] = False,
    everything: Annotated[bool, typer.Option("--all", help="Delete all stored data.")] = False,
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Do not ask for confirmation.")] = False,
) -> None:
    """Delete transactions by period, investments, or everything."""

    if not yes:
        typer.confirm("This cannot be undone. Continue?", abort=True)
    raise typer.Exit(
        cmd_clear(year=year, month=month, account=account, investments=investments, everything=everything)
    )


@app.callback()
def _root() -> None:
    """Load ``.env`` (without overriding existing variables) and set up logging."""

    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)
    configure_logging()


if __name__ == "__main__":  # pragma: no cover
    app()
