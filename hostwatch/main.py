"""Main CLI entry point for hostwatch."""
import logging
import sys
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from hostwatch import __app_name__, __version__
from hostwatch.cli import config, results, run, schedule
from hostwatch.cli.exit_codes import ExitCode

# Root command group
app = typer.Typer(
    name=__app_name__,
    help="hostwatch - Scheduled host queries with change detection.",
    add_completion=True,
    no_args_is_help=True,
    rich_markup_mode="rich",
)

console = Console()

# Register command groups
app.add_typer(run.app, name="run")
app.add_typer(schedule.app, name="schedule")
app.add_typer(results.app, name="results")
app.add_typer(config.app, name="config")


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"{__app_name__} v{__version__}")
        raise typer.Exit(code=ExitCode.SUCCESS)


# Diagnostic log format; --debug adds the source location
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DEBUG_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s"


def _setup_logging(
    verbose: bool = False,
    debug: bool = False,
    quiet: bool = False,
    log_file: Optional[Path] = None,
) -> None:
    """Configure diagnostic logging from the global CLI flags.

    Console output defaults to WARNING; ``--verbose`` lowers it to INFO,
    ``--debug`` to DEBUG and ``--quiet`` raises it to ERROR. A log file,
    when given, always receives DEBUG records.
    """
    level = logging.WARNING
    if debug:
        level = logging.DEBUG
    elif verbose:
        level = logging.INFO
    elif quiet:
        level = logging.ERROR

    handlers: list[logging.Handler] = []

    stream = logging.StreamHandler(sys.stderr)
    stream.setLevel(level)
    handlers.append(stream)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        to_file = logging.FileHandler(log_file)
        to_file.setLevel(logging.DEBUG)
        handlers.append(to_file)

    logging.basicConfig(
        level=logging.DEBUG if log_file else level,
        format=DEBUG_LOG_FORMAT if debug else LOG_FORMAT,
        handlers=handlers,
        force=True,
    )


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        help="Print the hostwatch version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-V",
        help="Log agent activity at INFO level.",
    ),
    debug: bool = typer.Option(
        False,
        "--debug",
        help="Log at DEBUG level, including every query launch.",
    ),
    quiet: bool = typer.Option(
        False,
        "--quiet",
        "-q",
        help="Only log errors.",
    ),
    log_file: Optional[Path] = typer.Option(
        None,
        "--log-file",
        help="Also write DEBUG level diagnostics to this file.",
    ),
) -> None:
    """hostwatch - Scheduled host queries with change detection.

    hostwatch runs SQL queries on a schedule, compares each result with
    the previous run and logs the rows that were added or removed.

    [bold]Core Commands:[/bold]

    • [cyan]run[/cyan] - Start the agent and its query scheduler
    • [cyan]schedule[/cyan] - List scheduled queries or launch one now
    • [cyan]results[/cyan] - Inspect or clear stored query results
    • [cyan]config[/cyan] - Inspect configuration

    [bold]Examples:[/bold]

        hostwatch run --config config.toml
        hostwatch schedule list
        hostwatch schedule exec processes --print
        hostwatch results show processes

    For more help on a specific command, use: [cyan]hostwatch <command> --help[/cyan]
    """
    if quiet and (verbose or debug):
        console.print("[red]Error:[/red] --quiet cannot be combined with --verbose or --debug")
        raise typer.Exit(code=ExitCode.INVALID_ARGUMENT)

    _setup_logging(verbose=verbose, debug=debug, quiet=quiet, log_file=log_file)

    logger = logging.getLogger(__name__)
    logger.debug(f"hostwatch v{__version__} starting")


if __name__ == "__main__":
    app()
