"""Host identifier providers."""

from __future__ import annotations

import logging
import socket
import uuid
from pathlib import Path
from typing import Callable, Optional

logger = logging.getLogger(__name__)

HostIdentifier = Callable[[], str]


def hostname_identifier() -> str:
    """Identify the host by its fully qualified hostname."""
    return socket.getfqdn() or socket.gethostname()


class UUIDIdentifier:
    """Identify the host by a UUID generated once and kept in a file.

    The UUID survives restarts, unlike a hostname that may be changed.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self._value: Optional[str] = None

    def __call__(self) -> str:
        if self._value is None:
            self._value = self._load_or_create()
        return self._value

    def _load_or_create(self) -> str:
        if self.path.exists():
            try:
                return str(uuid.UUID(self.path.read_text().strip()))
            except (ValueError, OSError) as e:
                logger.warning(f"Ignoring invalid host UUID file {self.path}: {e}")

        value = str(uuid.uuid4())
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(value)
        except OSError as e:
            logger.warning(f"Failed to persist host UUID to {self.path}: {e}")
        return value


def build_host_identifier(setting: str, data_dir: Path) -> HostIdentifier:
    """Create the identifier provider named by the ``host_identifier`` setting.

    Args:
        setting: "hostname", "uuid", or a literal identifier
        data_dir: Directory holding the persisted host UUID

    Returns:
        Callable returning the identifier
    """
    if setting == "hostname":
        return hostname_identifier
    if setting == "uuid":
        return UUIDIdentifier(Path(data_dir) / "host.uuid")
    return lambda: setting
