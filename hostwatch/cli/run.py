"""hostwatch run command - Start the agent with the query scheduler."""

import asyncio
import logging
from pathlib import Path
from typing import Optional

import psutil
import typer
from rich.console import Console

from hostwatch.cli.error_handler import handle_errors
from hostwatch.cli.exit_codes import ExitCode
from hostwatch.cli.output import print_key_value
from hostwatch.config import LoggingConfig

app = typer.Typer(help="Start the hostwatch agent and run scheduled queries.")
console = Console()


def _setup_logging(settings: LoggingConfig, verbose: bool) -> None:
    """Set up logging for the agent from the logging configuration.

    Args:
        settings: Logging section of the configuration
        verbose: Force DEBUG level logging
    """
    level = logging.DEBUG if verbose else logging.getLevelName(settings.level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    handlers: list[logging.Handler] = [logging.StreamHandler()]

    if settings.file:
        log_file = Path(settings.file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=level,
        format=settings.format,
        handlers=handlers,
        force=True,
    )


@app.callback(invoke_without_command=True)
@handle_errors
def run(
    ctx: typer.Context,
    config_file: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to configuration file.",
        exists=True,
        file_okay=True,
        dir_okay=False,
        resolve_path=True,
    ),
    timeout: Optional[int] = typer.Option(
        None,
        "--timeout",
        "-t",
        help="Stop after this tick (0 runs until stopped).",
        min=0,
    ),
    interval: Optional[float] = typer.Option(
        None,
        "--interval",
        "-i",
        help="Seconds between scheduler ticks.",
        min=0,
    ),
    monitor: bool = typer.Option(
        False,
        "--monitor",
        "-m",
        help="Record resource usage of each query.",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose logging.",
    ),
) -> None:
    """Start the hostwatch agent in the foreground.

    The agent runs every scheduled query on its interval, compares the
    results against the previous run and logs what changed. It stops
    at the configured timeout or on SIGTERM/SIGINT.

    Example:
        hostwatch run --config config.toml
        hostwatch run --timeout 120 --monitor
    """
    if ctx.invoked_subcommand is not None:
        return

    from hostwatch.config import ensure_directories, resolve_config, set_config
    from hostwatch.daemon.pid import PIDFile
    from hostwatch.daemon.service import run_daemon

    config = resolve_config(config_file)
    if monitor:
        config.scheduler.enable_monitor = True
    set_config(config)
    ensure_directories(config)

    _setup_logging(config.logging, verbose)

    pid_file = PIDFile(config.pid_file_path)
    pid_file.acquire()

    console.print("[bold green]Starting hostwatch agent...[/bold green]")
    if verbose:
        console.print(f"Config: {config_file or 'default'}")
        console.print(f"Scheduled queries: {len(config.schedule)}")
        console.print(f"Data directory: {config.data_dir}")
        console.print(f"Results log: {config.results_log_path}")

    options = {"timeout": timeout, "interval": interval}
    try:
        completed = asyncio.run(run_daemon(config, options))
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        completed = True
    finally:
        pid_file.remove()

    if not completed:
        console.print("[red]Error: the scheduler could not be started[/red]")
        raise typer.Exit(code=ExitCode.SCHEDULER_ERROR)

    console.print("[green]hostwatch agent stopped[/green]")


@app.command()
@handle_errors
def status(
    config_file: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to configuration file.",
        exists=True,
        file_okay=True,
        dir_okay=False,
        resolve_path=True,
    ),
) -> None:
    """Check agent status.

    Shows whether the agent is running and its PID if available.

    Example:
        hostwatch run status
    """
    from hostwatch.config import resolve_config
    from hostwatch.daemon.pid import PIDFile

    config = resolve_config(config_file)
    pid_file = PIDFile(config.pid_file_path)

    if pid_file.is_running():
        pid = pid_file.read()
        console.print(f"[green]● Agent is running[/green] (PID: {pid})")
        print_key_value(
            {
                "Data directory": str(config.data_dir),
                "Result store": config.resolved_database_url,
                "Results log": str(config.results_log_path),
                "Scheduled queries": len(config.schedule),
            },
            console_instance=console,
        )
    else:
        console.print("[yellow]○ Agent is not running[/yellow]")

        if pid_file.clear_if_stale():
            console.print("[dim]  (removed stale PID file)[/dim]")


@app.command()
@handle_errors
def stop(
    config_file: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to configuration file.",
        exists=True,
        file_okay=True,
        dir_okay=False,
        resolve_path=True,
    ),
    force: bool = typer.Option(
        False,
        "--force",
        "-f",
        help="Force kill the agent (SIGKILL).",
    ),
) -> None:
    """Stop the agent.

    Sends SIGTERM so that the scheduler finishes the query in progress
    and stops. Use --force to send SIGKILL for immediate termination.

    Example:
        hostwatch run stop
        hostwatch run stop --force
    """
    from hostwatch.config import resolve_config
    from hostwatch.daemon.pid import PIDFile

    config = resolve_config(config_file)
    pid_file = PIDFile(config.pid_file_path)

    pid = pid_file.read()

    if pid is None:
        console.print("[yellow]Agent is not running (no PID file found)[/yellow]")
        raise typer.Exit()

    if not pid_file.is_running():
        console.print("[yellow]Agent is not running (stale PID file)[/yellow]")
        pid_file.remove()
        raise typer.Exit()

    try:
        process = psutil.Process(pid)
        if force:
            process.kill()
            console.print(f"[red]Force killed agent (PID: {pid})[/red]")
            pid_file.remove()
        else:
            process.terminate()
            console.print(f"[green]Shutdown signal sent to agent (PID: {pid})[/green]")
            console.print("[dim]Agent will stop after the current query...[/dim]")
    except psutil.NoSuchProcess:
        console.print("[yellow]Agent process not found (already stopped)[/yellow]")
        pid_file.remove()
    except psutil.AccessDenied:
        console.print(f"[red]Permission denied: cannot signal process {pid}[/red]")
        raise typer.Exit(code=ExitCode.GENERAL_ERROR)
