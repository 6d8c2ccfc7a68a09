"""Output formatting utilities using Rich."""

import json
from datetime import datetime
from typing import Any, Dict, List, Optional

import click
from rich import box
from rich.console import Console
from rich.table import Table

from orderflow.cli.output.styles import ORDERFLOW_THEME, STATUS_COLORS

console = Console(theme=ORDERFLOW_THEME)
err_console = Console(theme=ORDERFLOW_THEME, stderr=True)


def format_table(
    data: List[Dict[str, Any]],
    columns: List[str],
    title: Optional[str] = None,
) -> None:
    """
    Format and print data as a Rich table.

    Args:
        data: List of dictionaries containing row data
        columns: List of column names to display
        title: Optional table title

    Examples:
        data = [
            {"Order ID": "3f2c...", "Status": "PROCESSED"},
            {"Order ID": "9a41...", "Status": "FAILED"},
        ]
        format_table(data, ["Order ID", "Status"], title="Orders")
    """
    if not data:
        console.print("[dim]No data to display[/dim]")
        return

    table = Table(
        title=title,
        show_header=True,
        header_style="bold magenta",
        box=box.ROUNDED,
    )

    for col in columns:
        table.add_column(col, style="cyan")

    for row in data:
        cells = []
        for col in columns:
            value = row.get(col, "")

            if col.lower() in ("status", "outcome"):
                value = format_status(str(value))
            elif isinstance(value, datetime):
                value = value.strftime("%Y-%m-%d %H:%M:%S")
            else:
                value = str(value)

            cells.append(value)

        table.add_row(*cells)

    console.print(table)


def format_json(data: Any, indent: int = 2) -> None:
    """
    Print data as plain JSON.

    Written without markup or wrapping so the output stays machine readable
    when piped.
    """
    click.echo(json.dumps(data, indent=indent, default=str))


def format_plain(data: List[str]) -> None:
    """
    Format and print data as plain text (one item per line).

    Examples:
        format_plain(["order-1", "order-2"])
    """
    for item in data:
        click.echo(item)


def format_status(status: str) -> str:
    """
    Colorize order/execution status.

    Examples:
        >>> format_status("PROCESSED")
        '[green]PROCESSED[/green]'
    """
    color = STATUS_COLORS.get(status.lower(), "white")
    return f"[{color}]{status}[/{color}]"


def format_key_value(data: Dict[str, Any], title: Optional[str] = None) -> None:
    """
    Format and print key-value pairs.

    Examples:
        format_key_value({"orderId": "...", "status": "PROCESSED"}, title="Order")
    """
    if title:
        console.print(f"\n[bold magenta]{title}[/bold magenta]")

    for key, value in data.items():
        if isinstance(value, datetime):
            value_str = value.strftime("%Y-%m-%d %H:%M:%S")
        elif isinstance(value, (dict, list)):
            value_str = json.dumps(value, indent=2, default=str)
        elif value is None:
            value_str = "[dim]None[/dim]"
        else:
            value_str = str(value)

        if key.lower() in ("status", "outcome"):
            value_str = format_status(value_str)

        console.print(f"  [cyan]{key}:[/cyan] {value_str}")


def print_success(message: str) -> None:
    """Print success message."""
    console.print(f"[green]✓[/green] {message}")


def print_error(message: str) -> None:
    """Print error message."""
    err_console.print(f"[red]✗[/red] {message}")


def print_warning(message: str) -> None:
    """Print warning message."""
    console.print(f"[yellow]⚠[/yellow] {message}")


def print_info(message: str) -> None:
    """Print info message."""
    console.print(f"[blue]ℹ[/blue] {message}")
