"""hostwatch results command - Inspect the result store."""

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from hostwatch.cli.error_handler import handle_errors
from hostwatch.cli.output import print_json, print_result_set, print_table

app = typer.Typer(help="Inspect stored query results.")
console = Console()

ConfigOption = typer.Option(
    None,
    "--config",
    "-c",
    help="Path to configuration file.",
    exists=True,
    dir_okay=False,
    resolve_path=True,
)


def _open_store(config_file: Optional[Path]):
    from hostwatch.config import ensure_directories, resolve_config
    from hostwatch.results.store import ResultStore

    config = resolve_config(config_file)
    ensure_directories(config)
    return ResultStore.from_url(config.resolved_database_url)


@app.command("list")
@handle_errors
def list_results(
    config_file: Optional[Path] = ConfigOption,
    json_output: bool = typer.Option(False, "--json", help="Output in JSON format."),
) -> None:
    """List queries with stored results.

    Example:
        hostwatch results list
    """
    store = _open_store(config_file)
    try:
        summaries = store.summaries()
    finally:
        store.close()

    if json_output:
        print_json(summaries, console)
        return

    if not summaries:
        console.print("[yellow]No stored results[/yellow]")
        return

    print_table(
        summaries,
        ["name", "row_count", "counter", "updated_at"],
        title="Stored Results",
        column_styles={"name": "cyan"},
        console_instance=console,
    )


@app.command("show")
@handle_errors
def show_results(
    name: str = typer.Argument(..., help="Name of the query."),
    config_file: Optional[Path] = ConfigOption,
    json_output: bool = typer.Option(False, "--json", help="Output in JSON format."),
) -> None:
    """Show the stored result set of a query.

    Example:
        hostwatch results show processes
    """
    from hostwatch.exceptions import NotFoundError

    store = _open_store(config_file)
    try:
        rows = store.get(name)
    finally:
        store.close()

    if rows is None:
        raise NotFoundError(f"No stored results for query '{name}'")

    if json_output:
        print_json(rows, console)
    else:
        print_result_set(rows, title=name, console_instance=console)


@app.command("clear")
@handle_errors
def clear_results(
    name: str = typer.Argument(..., help="Name of the query."),
    config_file: Optional[Path] = ConfigOption,
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation."),
) -> None:
    """Delete the stored result set of a query.

    The next execution of the query is treated as its first run and
    reports every row as added.

    Example:
        hostwatch results clear processes --yes
    """
    from hostwatch.exceptions import NotFoundError

    if not yes and not typer.confirm(f"Clear stored results for '{name}'?"):
        console.print("[yellow]Aborted[/yellow]")
        raise typer.Exit()

    store = _open_store(config_file)
    try:
        deleted = store.delete(name)
    finally:
        store.close()

    if not deleted:
        raise NotFoundError(f"No stored results for query '{name}'")

    console.print(f"[green]✓[/green] Cleared stored results for {name}")
