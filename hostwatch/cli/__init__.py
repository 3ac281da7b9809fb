"""CLI command modules for hostwatch.

This package contains the CLI command implementations and supporting
utilities for error handling and output formatting.
"""

from hostwatch.cli import config, results, run, schedule
from hostwatch.cli.error_handler import exit_code_for, handle_errors
from hostwatch.cli.exit_codes import ExitCode
from hostwatch.cli.output import (
    print_json,
    print_key_value,
    print_result_set,
    print_table,
)

__all__ = [
    # Command modules
    "config",
    "results",
    "run",
    "schedule",
    # Exit codes
    "ExitCode",
    # Error handling
    "exit_code_for",
    "handle_errors",
    # Output
    "print_json",
    "print_key_value",
    "print_result_set",
    "print_table",
]
