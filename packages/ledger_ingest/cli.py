"""CLI for the ``ledger_ingest`` package.

Commands load ``.env`` from the working directory (without overriding the
environment) and configure logging in the root callback, then build a
:class:`~ledger_ingest.config.Settings` from the environment. ``--database-url``
overrides ``DATABASE_URL`` per command.
"""

from __future__ import annotations

import uuid
from dataclasses import replace
from datetime import UTC, datetime
from pathlib import Path
from typing import Annotated

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

from .config import Settings
from .logging_setup import configure_logging
from .models import Direction, SourceChannel, to_epoch_ms

app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help="Ingest bank/card SMS, payment notifications and statement exports into the ledger.",
)

console = Console()
err_console = Console(stderr=True)

DatabaseUrlOption = Annotated[
    str | None, typer.Option("--database-url", help="Override DATABASE_URL (falls back to env var).")
]


def _settings(database_url: str | None) -> Settings:
    settings = Settings.from_env()
    if database_url:
        settings = replace(settings, database_url=database_url)
    if not settings.database_url:
        err_console.print("[red]Error:[/red] DATABASE_URL is not set (use --database-url or .env).")
        raise typer.Exit(1)
    return settings


def _store(settings: Settings):
    from .store import LedgerStore

    store = LedgerStore.from_settings(settings)
    store.init_schema()
    return store


@app.command("init-db")
def init_db_cmd(database_url: DatabaseUrlOption = None) -> None:
    """Create the ledger tables if they do not exist."""

    settings = _settings(database_url)
    try:
        _store(settings)
    except Exception as e:
        err_console.print(f"[red]Error:[/red] failed to initialize database: {e}")
        raise typer.Exit(1) from e
    console.print("[green]Database schema is ready.[/green]")


@app.command("parse-text")
def parse_text_cmd(
    text: Annotated[str, typer.Argument(help="Raw SMS body or notification text")],
    sender: Annotated[str, typer.Option(help="SMS sender address or notification title")] = "",
    channel: Annotated[SourceChannel, typer.Option(help="sms or notification")] = SourceChannel.SMS,
    timestamp: Annotated[
        int | None, typer.Option(help="Epoch milliseconds (defaults to now)")
    ] = None,
    save: Annotated[bool, typer.Option(help="Run the full pipeline and persist")] = False,
    database_url: DatabaseUrlOption = None,
) -> None:
    """Parse one message; with --save, also deduplicate, categorize and persist it."""

    if channel not in (SourceChannel.SMS, SourceChannel.NOTIFICATION):
        err_console.print("[red]Error:[/red] channel must be 'sms' or 'notification'.")
        raise typer.Exit(2)
    ts = timestamp if timestamp is not None else to_epoch_ms(datetime.now(UTC))

    if not save:
        from .text_parser import TextNormalizer

        tx = TextNormalizer().parse(text, sender, ts, channel=channel)
        if tx is None:
            console.print("[yellow]Not a recognized financial message.[/yellow]")
            raise typer.Exit(1)
        table = Table(title="Parsed transaction")
        table.add_column("Field")
        table.add_column("Value")
        table.add_row("institution", tx.institution or "")
        table.add_row("merchant", tx.merchant)
        table.add_row("amount", str(tx.amount))
        table.add_row("direction", str(tx.direction))
        table.add_row("category", tx.category or "-")
        table.add_row("occurred_at", tx.occurred_at.isoformat())
        console.print(table)
        return

    from .pipeline import build_pipeline

    settings = _settings(database_url)
    pipeline = build_pipeline(_store(settings), settings)
    result = pipeline.process_text(text, sender, ts, channel=channel)
    console.print(f"Outcome: [bold]{result.outcome}[/bold]")
    if result.transaction is not None:
        console.print(f"{result.transaction.description} {result.transaction.amount}")
    if result.error:
        err_console.print(f"[red]Error:[/red] {result.error}")
        raise typer.Exit(1)


@app.command("templates")
def templates_cmd(
    category: Annotated[str | None, typer.Option(help="bank, card, securities or other")] = None,
) -> None:
    """List the built-in statement templates."""

    from .templates import templates_by_category

    table = Table(title="Statement templates")
    table.add_column("ID")
    table.add_column("Name")
    table.add_column("Category")
    table.add_column("Header")
    for t in templates_by_category(category):
        table.add_row(
            t.template_id,
            t.name,
            str(t.institution_category),
            "yes" if t.has_header else "no",
        )
    console.print(table)


@app.command("import-file")
def import_file_cmd(
    path: Annotated[Path, typer.Argument(help="CSV/TSV/TXT/XLSX statement export")],
    template: Annotated[
        str | None, typer.Option("--template", help="Template id (auto-detected when omitted)")
    ] = None,
    upload_id: Annotated[str | None, typer.Option(help="Upload id stamped on rows")] = None,
    database_url: DatabaseUrlOption = None,
) -> None:
    """Import a bank/card statement export."""

    from .categorize import CategoryResolver
    from .ingest import UnsupportedFileError, load_rows
    from .upload import TemplateNotFoundError, import_rows

    if not path.is_file():
        err_console.print(f"[red]Error:[/red] File not found: {path}")
        raise typer.Exit(1)
    try:
        rows = load_rows(path)
    except UnsupportedFileError as e:
        err_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e

    settings = _settings(database_url)
    store = _store(settings)
    try:
        report = import_rows(
            rows,
            store,
            CategoryResolver(store),
            template_id=template,
            file_upload_id=upload_id or uuid.uuid4().hex,
        )
    except TemplateNotFoundError as e:
        err_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e

    console.print(f"Template: [cyan]{report.template.name}[/cyan] ({report.template.template_id})")
    console.print(
        f"Parsed {len(report.parsed.transactions)} row(s); "
        f"saved {report.saved.success}, skipped {report.saved.skipped}; "
        f"status [bold]{report.saved.status}[/bold]"
    )
    for err in report.saved.errors:
        err_console.print(f"[yellow]{err}[/yellow]")
    if report.saved.status == "failed":
        raise typer.Exit(1)


@app.command("backlog")
def backlog_cmd(
    path: Annotated[Path, typer.Argument(help="JSON-lines SMS export (body/address/date)")],
    database_url: DatabaseUrlOption = None,
) -> None:
    """Replay an exported SMS inbox through the ingestion pipeline."""

    from .backlog import HistoricalDataProcessor, JsonlSmsSource
    from .pipeline import build_pipeline

    if not path.is_file():
        err_console.print(f"[red]Error:[/red] File not found: {path}")
        raise typer.Exit(1)

    settings = _settings(database_url)
    pipeline = build_pipeline(_store(settings), settings)
    processor = HistoricalDataProcessor(JsonlSmsSource(path), pipeline, settings=settings)
    report = processor.process_backlog()
    if report is None:
        err_console.print("[yellow]Backlog processing is already running.[/yellow]")
        raise typer.Exit(1)
    console.print(
        f"Processed {report.processed} of {report.fetched} message(s): "
        f"{report.persisted} saved, {report.duplicates} duplicate(s), {report.failed} failed"
    )
    if report.total_assets is not None:
        console.print(f"Total assets: {report.total_assets.total}")


@app.command("balances")
def balances_cmd(
    snapshot: Annotated[bool, typer.Option(help="Also append a balance snapshot")] = False,
    database_url: DatabaseUrlOption = None,
) -> None:
    """Show the latest known account balances."""

    from .balances import BalanceTracker

    settings = _settings(database_url)
    tracker = BalanceTracker(_store(settings))
    table = Table(title="Account balances")
    table.add_column("Account")
    table.add_column("Type")
    table.add_column("Balance", justify="right")
    table.add_column("Updated")
    for b in tracker.all_balances():
        table.add_row(b.account_name, str(b.account_type), f"{b.balance:,}", b.last_updated.isoformat())
    console.print(table)
    console.print(f"Total assets: {tracker.total_assets().total:,}")
    if snapshot:
        snapshot_id = tracker.record_snapshot()
        console.print(f"Snapshot #{snapshot_id} recorded.")


@app.command("assign-category")
def assign_category_cmd(
    merchant: Annotated[str, typer.Argument(help="Merchant name as stored")],
    category: Annotated[str, typer.Argument(help="Category name")],
    direction: Annotated[Direction, typer.Option(help="income or expense")] = Direction.EXPENSE,
    database_url: DatabaseUrlOption = None,
) -> None:
    """Assign a category to a merchant and every similarly named merchant."""

    from .categorize import CategoryResolver

    settings = _settings(database_url)
    store = _store(settings)
    category_id = store.find_or_create_category(category, direction)
    result = CategoryResolver(store).assign_merchant_group(merchant, category_id)
    console.print(
        f"Assigned [cyan]{category}[/cyan] to {len(result.merchants)} merchant(s); "
        f"{result.updated_transactions} transaction(s) updated."
    )
    for name in result.merchants:
        console.print(f"  - {name}")


@app.callback()
def _root() -> None:
    """Load ``.env`` from the working directory and configure logging."""

    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)
    configure_logging()


if __name__ == "__main__":  # pragma: no cover
    app()
