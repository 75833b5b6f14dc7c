"""CLI interface for worklog."""

import getpass
import json
import logging
from datetime import date, datetime
from pathlib import Path
from typing import Annotated, Any, NoReturn, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table as RichTable

from worklog.config import load_config, merge_cli_overrides
from worklog.errors import WorklogError
from worklog.rollup.eligibility import Level
from worklog.rollup.pipeline import DeriveResult
from worklog.service import WorklogService

app = typer.Typer(
    name="worklog",
    help="Log daily work and roll it up into pattern analyses and portfolio cards.",
)

console = Console()


class _State:
    service: WorklogService
    owner: str


state = _State()


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        from worklog import __version__

        console.print(f"worklog {__version__}")
        raise typer.Exit()


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _fail(exc: WorklogError) -> NoReturn:
    console.print(f"[red]Error ({exc.kind}):[/red] {escape(exc.message)}")
    raise typer.Exit(1)


@app.callback()
def main(
    owner: Annotated[
        Optional[str],
        typer.Option("--owner", envvar="WORKLOG_OWNER", help="Owner identity (defaults to $USER)."),
    ] = None,
    config_path: Annotated[
        Optional[Path],
        typer.Option("--config", "-c", help="Path to a .worklog.toml file."),
    ] = None,
    data_dir: Annotated[
        Optional[Path],
        typer.Option("--data-dir", help="Directory holding the record store."),
    ] = None,
    model: Annotated[
        Optional[str],
        typer.Option("--model", "-m", help="Claude model for summaries."),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", help="Log at DEBUG level."),
    ] = False,
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            "-v",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = False,
) -> None:
    """worklog - daily work log roll-ups."""
    config = merge_cli_overrides(
        load_config(config_path),
        data_dir=data_dir,
        model=model,
        log_level="DEBUG" if verbose else None,
    )
    _setup_logging(config.logging.level)
    try:
        state.service = WorklogService.from_config(config)
    except WorklogError as exc:
        _fail(exc)
    state.owner = owner or getpass.getuser()


def _print_json(data: Any) -> None:
    console.print(
        json.dumps(data, indent=2, ensure_ascii=False),
        markup=False,
        highlight=False,
        soft_wrap=True,
    )


def _print_result(result: DeriveResult) -> None:
    console.print(f"[bold green]{result.message}[/bold green]")
    _print_json(result.artifact.model_dump(mode="json"))
    for warning in result.warnings:
        console.print(f"[yellow]Warning:[/yellow] {warning}")


@app.command()
def add(
    items: Annotated[list[str], typer.Argument(help="Work items done that day.")],
    on: Annotated[
        Optional[str],
        typer.Option("--date", "-d", help="Entry date (YYYY-MM-DD). Defaults to today."),
    ] = None,
) -> None:
    """Log a day's work items."""
    entry_date: date | None = None
    if on:
        try:
            entry_date = datetime.strptime(on, "%Y-%m-%d").date()
        except ValueError:
            console.print(f"[red]Error:[/red] Invalid date format: {on}")
            console.print("Use YYYY-MM-DD format (e.g., 2024-01-15)")
            raise typer.Exit(1)
    try:
        entry = state.service.add_entry(state.owner, items, entry_date)
    except WorklogError as exc:
        _fail(exc)
    console.print(
        f"[green]Logged {len(entry.contents)} item(s) for {entry.date}[/green] ({entry.id})"
    )


@app.command(name="list")
def list_cmd() -> None:
    """Show logged entries, newest first."""
    entries = state.service.list_entries(state.owner)
    if not entries:
        console.print("[yellow]No entries yet.[/yellow]")
        raise typer.Exit(0)

    table = RichTable()
    table.add_column("Date", no_wrap=True)
    table.add_column("Items")
    table.add_column("Analysis", overflow="ellipsis", max_width=12)
    table.add_column("Card", overflow="ellipsis", max_width=12)
    table.add_column("Id", no_wrap=True)
    for entry in entries:
        table.add_row(
            entry.date.isoformat(),
            "; ".join(entry.contents),
            entry.consumed_by or "",
            entry.card_id or "",
            entry.id,
        )
    console.print(table)


@app.command()
def status() -> None:
    """Show how close each roll-up level is to triggering."""
    summary = {
        level.value: state.service.eligibility(state.owner, level).model_dump(mode="json")
        for level in Level
    }
    _print_json(summary)


@app.command()
def analyze() -> None:
    """Derive a pattern analysis from the oldest five unused entries."""
    try:
        result = state.service.derive_analysis(state.owner)
    except WorklogError as exc:
        _fail(exc)
    _print_result(result)


@app.command()
def card() -> None:
    """Derive a portfolio card from the oldest four unused analyses."""
    try:
        result = state.service.derive_card(state.owner)
    except WorklogError as exc:
        _fail(exc)
    _print_result(result)


@app.command()
def delete(
    entry_id: Annotated[str, typer.Argument(help="Id of the entry to delete.")],
) -> None:
    """Delete an entry that has not been rolled up."""
    try:
        state.service.delete_entry(state.owner, entry_id)
    except WorklogError as exc:
        _fail(exc)
    console.print(f"[green]Deleted entry {entry_id}[/green]")


@app.command(name="reconcile")
def reconcile_cmd(
    dry_run: Annotated[
        bool,
        typer.Option("--dry-run", help="Report problems without repairing them."),
    ] = False,
) -> None:
    """Repair consumption markers left behind by interrupted roll-ups."""
    report = state.service.reconcile(state.owner, dry_run=dry_run)
    _print_json(report.model_dump(mode="json"))
    if report.conflicts:
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
