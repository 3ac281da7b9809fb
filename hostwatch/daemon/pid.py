"""PID file management for tracking the running agent."""

import os
from pathlib import Path
from typing import Optional

import psutil

from hostwatch.exceptions import SchedulerError


class PIDFile:
    """Manage the agent PID file.

    Example:
        pid_file = PIDFile(config.pid_file_path)

        pid_file.acquire()
        try:
            # Run agent...
            pass
        finally:
            pid_file.remove()
    """

    def __init__(self, path: Path):
        self.path = Path(path)

    def create(self) -> None:
        """Write the current process ID, creating the parent directory."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(str(os.getpid()))

    def acquire(self) -> None:
        """Create the PID file unless another live agent owns it.

        A stale file left by a dead process is replaced.

        Raises:
            SchedulerError: If an agent is already running
        """
        pid = self.get_pid()
        if pid is not None and pid != os.getpid():
            raise SchedulerError(f"hostwatch is already running (PID: {pid})")
        self.clear_if_stale()
        self.create()

    def remove(self) -> None:
        """Remove the PID file if it exists."""
        self.path.unlink(missing_ok=True)

    def read(self) -> Optional[int]:
        """Read the PID, or None if the file is missing or invalid."""
        if not self.path.exists():
            return None

        try:
            return int(self.path.read_text().strip())
        except (ValueError, OSError):
            return None

    def is_running(self) -> bool:
        """Check whether the recorded process is alive."""
        pid = self.read()
        if pid is None or pid <= 0:
            return False
        return psutil.pid_exists(pid)

    def get_pid(self) -> Optional[int]:
        """The PID of the running agent, or None if not running."""
        if self.is_running():
            return self.read()
        return None

    def clear_if_stale(self) -> bool:
        """Remove the PID file if its process is not running.

        Returns:
            True if a stale file was removed
        """
        if self.read() is None or self.is_running():
            return False
        self.remove()
        return True
