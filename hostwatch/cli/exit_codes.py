"""Standard exit codes for the hostwatch CLI.

This module defines the exit codes used across hostwatch commands
for consistent error reporting and scripting support.
"""


class ExitCode:
    """Standard exit codes for the hostwatch CLI.

    These codes follow common Unix conventions where possible:
    - 0: Success
    - 1: General error
    - 130: Terminated by Ctrl+C (SIGINT)

    hostwatch-specific codes start at 2:
    - 2: Configuration error
    - 3: Query execution error
    - 4: Result store error
    - 5: Result log error
    - 6: Scheduler error
    - 7: Invalid argument
    - 8: Not found
    """

    # Standard success
    SUCCESS = 0

    # General errors
    GENERAL_ERROR = 1

    # hostwatch-specific errors (2-8)
    CONFIGURATION_ERROR = 2
    EXECUTION_ERROR = 3
    STORAGE_ERROR = 4
    SINK_ERROR = 5
    SCHEDULER_ERROR = 6
    INVALID_ARGUMENT = 7
    NOT_FOUND = 8

    # Signal-based exits (128 + signal number)
    CANCELLED = 130  # Ctrl+C (SIGINT = 2)

    @classmethod
    def get_name(cls, code: int) -> str:
        """Get the name of an exit code.

        Args:
            code: The exit code value

        Returns:
            Human-readable name for the exit code
        """
        names = {
            cls.SUCCESS: "SUCCESS",
            cls.GENERAL_ERROR: "GENERAL_ERROR",
            cls.CONFIGURATION_ERROR: "CONFIGURATION_ERROR",
            cls.EXECUTION_ERROR: "EXECUTION_ERROR",
            cls.STORAGE_ERROR: "STORAGE_ERROR",
            cls.SINK_ERROR: "SINK_ERROR",
            cls.SCHEDULER_ERROR: "SCHEDULER_ERROR",
            cls.INVALID_ARGUMENT: "INVALID_ARGUMENT",
            cls.NOT_FOUND: "NOT_FOUND",
            cls.CANCELLED: "CANCELLED",
        }
        return names.get(code, f"UNKNOWN({code})")

    @classmethod
    def get_description(cls, code: int) -> str:
        """Get the description of an exit code."""
        descriptions = {
            cls.SUCCESS: "Operation completed successfully",
            cls.GENERAL_ERROR: "An unexpected error occurred",
            cls.CONFIGURATION_ERROR: "Configuration error or invalid config file",
            cls.EXECUTION_ERROR: "Query could not be executed",
            cls.STORAGE_ERROR: "Result store could not be read or written",
            cls.SINK_ERROR: "Results could not be logged",
            cls.SCHEDULER_ERROR: "Scheduler could not be started",
            cls.INVALID_ARGUMENT: "Invalid command-line argument",
            cls.NOT_FOUND: "Requested resource not found",
            cls.CANCELLED: "Operation cancelled by user",
        }
        return descriptions.get(code, f"Unknown exit code: {code}")
