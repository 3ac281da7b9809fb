"""hostwatch schedule command - Inspect and launch scheduled queries."""

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from hostwatch.cli.error_handler import handle_errors
from hostwatch.cli.exit_codes import ExitCode
from hostwatch.cli.output import print_json, print_table

app = typer.Typer(help="Inspect and launch scheduled queries.")
console = Console()

_FAILURE_EXIT_CODES = {
    "execution_failed": ExitCode.EXECUTION_ERROR,
    "storage_failed": ExitCode.STORAGE_ERROR,
    "sink_failed": ExitCode.SINK_ERROR,
}


@app.command("list")
@handle_errors
def list_queries(
    config_file: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to configuration file.",
        exists=True,
        dir_okay=False,
        resolve_path=True,
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output in JSON format.",
    ),
) -> None:
    """List scheduled queries with their splayed intervals.

    Example:
        hostwatch schedule list
        hostwatch schedule list --json
    """
    from hostwatch.config import resolve_config
    from hostwatch.scheduler.schedule import ConfigSchedule

    config = resolve_config(config_file)
    schedule = ConfigSchedule(config).snapshot()

    rows = [
        {
            "name": name,
            "query": query.query,
            "interval": query.interval,
            "splayed_interval": query.splayed_interval,
            "snapshot": query.snapshot,
            "removed": query.report_removed,
        }
        for name, query in schedule.items()
    ]

    if json_output:
        print_json(rows, console)
        return

    if not rows:
        console.print("[yellow]No scheduled queries configured[/yellow]")
        return

    print_table(
        rows,
        ["name", "query", "interval", "splayed_interval", "snapshot", "removed"],
        title="Scheduled Queries",
        column_styles={"name": "cyan", "splayed_interval": "green"},
        console_instance=console,
    )


@app.command("exec")
@handle_errors
def exec_query(
    name: str = typer.Argument(..., help="Name of the scheduled query."),
    config_file: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to configuration file.",
        exists=True,
        dir_okay=False,
        resolve_path=True,
    ),
    print_only: bool = typer.Option(
        False,
        "--print",
        "-p",
        help="Print emitted results instead of writing the result logs.",
    ),
) -> None:
    """Launch one scheduled query once.

    The query goes through the same path as a scheduled launch: results
    are compared with the stored previous run, the store is updated and
    any change is logged.

    Example:
        hostwatch schedule exec processes
        hostwatch schedule exec processes --print
    """
    from hostwatch.config import ensure_directories, resolve_config
    from hostwatch.exceptions import NotFoundError
    from hostwatch.results.store import ResultStore
    from hostwatch.scheduler.query_runner import QueryRunner
    from hostwatch.scheduler.schedule import ConfigSchedule
    from hostwatch.services.engine import SQLQueryEngine
    from hostwatch.services.host import build_host_identifier
    from hostwatch.services.log_sink import FileLogSink, LogSink, MemoryLogSink

    config = resolve_config(config_file)
    query = ConfigSchedule(config).snapshot().get(name)
    if query is None:
        raise NotFoundError(f"No scheduled query named '{name}'")

    ensure_directories(config)

    memory_sink = MemoryLogSink()
    sink: LogSink = memory_sink
    if not print_only:
        sink = FileLogSink(config.results_log_path, config.snapshots_log_path)

    store = ResultStore.from_url(config.resolved_database_url)
    engine = SQLQueryEngine.from_url(config.data_source.url)
    try:
        runner = QueryRunner(
            engine=engine,
            store=store,
            sink=sink,
            host_identifier=build_host_identifier(config.host_identifier, config.data_dir),
        )
        outcome = runner.launch(name, query)
    finally:
        engine.close()
        store.close()

    if print_only:
        for item in memory_sink.items:
            print_json(item.to_dict(), console)

    exit_code = _FAILURE_EXIT_CODES.get(outcome.value)
    if exit_code is not None:
        console.print(f"[red]✗ {name}: {outcome.value.replace('_', ' ')}[/red]")
        raise typer.Exit(code=exit_code)

    console.print(f"[green]✓[/green] {name}: {outcome.value.replace('_', ' ')}")
