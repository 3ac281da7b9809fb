"""Global exception handling for the hostwatch CLI.

This module maps hostwatch exceptions to exit codes and provides a
decorator that ensures consistent error reporting across all CLI
commands.
"""

from functools import wraps
from typing import Any, Callable, TypeVar
import logging

import typer
from rich.console import Console

from hostwatch.cli.exit_codes import ExitCode
from hostwatch.exceptions import (
    ConfigurationError,
    ExecutionError,
    HostwatchError,
    NotFoundError,
    SchedulerError,
    SinkError,
    StorageError,
)

# Console for error output (stderr)
console = Console(stderr=True)

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

EXIT_CODES: dict[type[HostwatchError], int] = {
    ConfigurationError: ExitCode.CONFIGURATION_ERROR,
    ExecutionError: ExitCode.EXECUTION_ERROR,
    StorageError: ExitCode.STORAGE_ERROR,
    SinkError: ExitCode.SINK_ERROR,
    SchedulerError: ExitCode.SCHEDULER_ERROR,
    NotFoundError: ExitCode.NOT_FOUND,
}


def exit_code_for(error: HostwatchError) -> int:
    """Get the exit code for a hostwatch exception.

    Subclasses map to the code of their nearest registered base class;
    anything unregistered is a general error.
    """
    for cls in type(error).__mro__:
        if cls in EXIT_CODES:
            return EXIT_CODES[cls]
    return ExitCode.GENERAL_ERROR


def handle_errors(func: F) -> F:
    """Decorator for consistent error handling across CLI commands.

    This decorator catches all exceptions and converts them to appropriate
    error messages and exit codes. It handles:

    - HostwatchError subclasses: Display error message with mapped exit code
    - KeyboardInterrupt: Show cancellation message with exit code 130
    - Other exceptions: Show generic error with option for verbose details

    Example:
        @app.command()
        @handle_errors
        def my_command():
            raise ConfigurationError("Invalid config")
    """
    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except HostwatchError as e:
            exit_code = exit_code_for(e)
            logger.error(
                f"{type(e).__name__}: {e}",
                extra={"exit_code": exit_code},
            )

            console.print(f"[red]Error:[/red] {e}")
            raise typer.Exit(code=exit_code)

        except KeyboardInterrupt:
            console.print("\n[yellow]Operation cancelled by user.[/yellow]")
            logger.info("Operation cancelled by user (KeyboardInterrupt)")
            raise typer.Exit(code=ExitCode.CANCELLED)

        except typer.Exit:
            # Re-raise typer.Exit as-is
            raise

        except Exception as e:
            # Log full exception for debugging
            logger.exception("Unexpected error occurred")

            console.print(f"[red]Unexpected error:[/red] {e}")
            console.print("[dim]Run with --verbose for more details[/dim]")

            raise typer.Exit(code=ExitCode.GENERAL_ERROR)

    return wrapper  # type: ignore[return-value]
