"""Daemon module for hostwatch.

This module runs the query scheduler as a long-lived agent with PID
tracking and signal handling.
"""

from hostwatch.daemon.pid import PIDFile
from hostwatch.daemon.service import (
    HostwatchDaemon,
    ServiceGroup,
    run_daemon,
    start_scheduler,
)

__all__ = [
    "HostwatchDaemon",
    "PIDFile",
    "ServiceGroup",
    "run_daemon",
    "start_scheduler",
]
