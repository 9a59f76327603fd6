"""Output formatting utilities for CLI.

Follows the golden rule:
- stdout = machine-readable data (JSON)
- stderr = human-readable logs (progress, errors, info, tables)

This separation allows piping JSON to other tools while keeping colored
logs in the terminal.
"""

import json
import logging
from typing import Any, Optional

import polars as pl
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

# stderr console for human logs (preserves colors when redirected)
console = Console(stderr=True)


def setup_logging(verbose: bool = False) -> None:
    """Route library logging through rich on stderr."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=verbose, rich_tracebacks=True)],
        force=True,
    )


def output_json(data: Any, indent: Optional[int] = 2):
    """Output JSON to stdout (machine-readable).

    Datetimes and paths are written as strings.

    Args:
        data: Data to serialize as JSON
        indent: Indentation level (None for compact)
    """
    print(json.dumps(data, indent=indent, default=str), flush=True)


def log_info(message: str, quiet: bool = False):
    """Log info message to stderr."""
    if not quiet:
        console.print(f"[blue]ℹ[/blue] {escape(message)}")


def log_success(message: str, quiet: bool = False):
    """Log success message to stderr."""
    if not quiet:
        console.print(f"[green]✓[/green] {escape(message)}")


def log_error(message: str):
    """Log error message to stderr (always shown)."""
    console.print(f"[red]✗[/red] {escape(message)}", style="bold red")


def log_warning(message: str, quiet: bool = False):
    """Log warning message to stderr."""
    if not quiet:
        console.print(f"[yellow]⚠[/yellow] {escape(message)}", style="yellow")


def print_rows(rows: list[dict[str, Any]], title: str) -> None:
    """Render a list of row dicts as a rich table on stderr."""
    if not rows:
        console.print(f"[yellow]No rows for {title}[/yellow]")
        return

    table = Table(title=title)
    for column in rows[0]:
        table.add_column(column, style="cyan" if column.endswith("id") else None)

    for row in rows:
        table.add_row(*("" if value is None else escape(str(value)) for value in row.values()))

    console.print(table)


def print_frame(df: pl.DataFrame, title: str) -> None:
    """Render a Polars DataFrame as a rich table on stderr."""
    print_rows(df.to_dicts(), title)
