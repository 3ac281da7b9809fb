"""Output formatting utilities for the hostwatch CLI.

Commands print stored result sets, schedules and agent status either as
rich tables or as JSON for scripting.
"""

import json
from datetime import datetime
from typing import Any, Dict, List

from rich.console import Console
from rich.json import JSON as RichJSON
from rich.table import Table

from hostwatch.results.models import ResultSet

console = Console()


def _format_cell(value: Any) -> str:
    """Render one value as rich markup."""
    if value is None:
        return "[dim]-[/dim]"
    if isinstance(value, bool):
        return "[green]Yes[/green]" if value else "[red]No[/red]"
    if isinstance(value, datetime):
        return value.strftime("%Y-%m-%d %H:%M:%S")
    return str(value)


def print_json(data: Any, console_instance: Console | None = None) -> None:
    """Print data as indented JSON.

    Values the json module cannot encode (paths, datetimes) are printed
    as strings.
    """
    out = console_instance or console
    out.print(RichJSON(json.dumps(data, indent=2, default=str)))


def print_table(
    data: List[Dict[str, Any]],
    columns: List[str],
    title: str | None = None,
    column_styles: Dict[str, str] | None = None,
    console_instance: Console | None = None,
) -> None:
    """Print selected keys of each record as a table.

    Args:
        data: Records to print, one row each
        columns: Keys to show, in column order
        title: Table title
        column_styles: Rich style per column key
        console_instance: Console to print to

    Example:
        print_table(
            [{"name": "processes", "interval": 10, "snapshot": False}],
            ["name", "interval", "snapshot"],
            title="Schedule",
        )
    """
    out = console_instance or console
    styles = column_styles or {}

    table = Table(title=title)
    for key in columns:
        table.add_column(key.replace("_", " ").title(), style=styles.get(key))

    for record in data:
        table.add_row(*(_format_cell(record.get(key)) for key in columns))

    out.print(table)


def print_result_set(
    rows: ResultSet,
    title: str | None = None,
    console_instance: Console | None = None,
) -> None:
    """Print query result rows as a table.

    Columns are taken from the rows in first-seen order, since rows of
    one result set need not share the same columns.
    """
    out = console_instance or console

    if not rows:
        out.print("[dim]No rows[/dim]")
        return

    columns: List[str] = []
    for row in rows:
        for column in row:
            if column not in columns:
                columns.append(column)

    table = Table(title=title)
    for column in columns:
        table.add_column(column, style="cyan" if column == columns[0] else None)
    for row in rows:
        table.add_row(*(row.get(column, "") for column in columns))

    out.print(table)


def print_key_value(
    data: Dict[str, Any],
    title: str | None = None,
    key_style: str = "cyan",
    console_instance: Console | None = None,
) -> None:
    """Print a mapping as aligned label/value lines.

    Example:
        print_key_value({"State": "running", "Tick": 42}, title="Scheduler")
    """
    out = console_instance or console

    if title:
        out.print(f"[bold]{title}[/bold]")

    grid = Table.grid(padding=(0, 2))
    grid.add_column(style=key_style)
    grid.add_column()
    for label, value in data.items():
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            rendered = f"[yellow]{value}[/yellow]"
        else:
            rendered = _format_cell(value)
        grid.add_row(f"  {label}", rendered)

    out.print(grid)
