"""
hostwatch Configuration Management.

Handles loading configuration from various sources:
- Default values
- Configuration files (TOML)
- Environment variables

The scheduled queries themselves are declared in the same file under
``[schedule.<name>]`` tables.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

# TOML reader: stdlib on 3.11+, tomli before that
try:
    import tomllib
except ImportError:
    try:
        import tomli as tomllib  # type: ignore
    except ImportError:
        tomllib = None  # type: ignore

# YAML is only needed for `config show --format yaml`
try:
    import yaml
except ImportError:
    yaml = None  # type: ignore

from hostwatch.exceptions import ConfigurationError


# Default locations
DEFAULT_CONFIG_DIR = Path.home() / ".config" / "hostwatch"
DEFAULT_CONFIG_FILE = "config.toml"
DEFAULT_DATA_DIR = Path.home() / ".local" / "share" / "hostwatch"

# Boolean per-query options read by the query runner
QUERY_OPTIONS = ("snapshot", "removed")


@dataclass
class SchedulerConfig:
    """Configuration for the query scheduler."""

    # Stop after this many ticks, 0 for no limit
    timeout: int = 0

    # Seconds between ticks
    interval: int = 1

    # Sample the agent's own resource usage around each query
    enable_monitor: bool = False

    # Jitter applied to each query interval, as a percentage
    splay_percent: int = 10


@dataclass
class LoggerConfig:
    """Configuration for the query result log sink.

    Paths default to files under ``data_dir/logs`` when unset.
    """

    results_log: Optional[Path] = None
    snapshots_log: Optional[Path] = None


@dataclass
class LoggingConfig:
    """Configuration for diagnostic logging."""

    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    file: Optional[Path] = None


@dataclass
class DataSourceConfig:
    """Configuration for the data source queried by the default engine."""

    url: str = "sqlite://"


@dataclass
class QueryConfig:
    """A query declared in the schedule section.

    Attributes:
        query: Query text handed to the execution engine
        interval: Base interval in seconds
        options: Explicitly configured boolean options (snapshot, removed)
    """

    query: str
    interval: int
    options: dict[str, bool] = field(default_factory=dict)


@dataclass
class HostwatchConfig:
    """Main configuration container for hostwatch."""

    # Paths
    config_dir: Path = DEFAULT_CONFIG_DIR
    data_dir: Path = DEFAULT_DATA_DIR

    # Sub-configurations
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    logger: LoggerConfig = field(default_factory=LoggerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    data_source: DataSourceConfig = field(default_factory=DataSourceConfig)

    # "hostname", "uuid", or a literal identifier
    host_identifier: str = "hostname"

    # Result store database, defaults to a SQLite file in data_dir
    database_url: str = ""

    # Scheduled queries, in declaration order
    schedule: dict[str, QueryConfig] = field(default_factory=dict)

    @property
    def resolved_database_url(self) -> str:
        """Database URL for the result store."""
        return self.database_url or f"sqlite:///{self.data_dir}/hostwatch.db"

    @property
    def results_log_path(self) -> Path:
        """Path of the differential results log."""
        return self.logger.results_log or self.data_dir / "logs" / "hostwatch.results.log"

    @property
    def snapshots_log_path(self) -> Path:
        """Path of the snapshot results log."""
        return self.logger.snapshots_log or self.data_dir / "logs" / "hostwatch.snapshots.log"

    @property
    def pid_file_path(self) -> Path:
        """Path of the agent PID file."""
        return self.data_dir / "hostwatch.pid"


def load_config(
    config_path: Optional[Path] = None,
    env_prefix: str = "HOSTWATCH_"
) -> HostwatchConfig:
    """
    Build the agent configuration.

    Priority (highest to lowest):
    1. Environment variables
    2. Config file
    3. Default values

    Args:
        config_path: Path to config file (default: ~/.config/hostwatch/config.toml)
        env_prefix: Prefix for environment variables

    Returns:
        Loaded configuration

    Raises:
        ConfigurationError: If the file cannot be parsed, or the scheduler
            settings or the schedule are invalid
    """
    config = HostwatchConfig()

    # HOSTWATCH_CONFIG_DIR relocates the whole config directory
    if config_path is None:
        env_config_dir = os.environ.get(f"{env_prefix}CONFIG_DIR")
        if env_config_dir:
            config_path = Path(env_config_dir) / DEFAULT_CONFIG_FILE
        else:
            config_path = DEFAULT_CONFIG_DIR / DEFAULT_CONFIG_FILE

    # A missing file means defaults plus environment
    if config_path.exists():
        config = _load_from_file(config_path, config)

    # Environment wins over the file
    config = _load_from_env(config, env_prefix)

    _validate_scheduler(config.scheduler)

    return config


def _validate_scheduler(scheduler: SchedulerConfig) -> None:
    """Check types and signs of the ``[scheduler]`` settings.

    Raises:
        ConfigurationError: On the first invalid setting
    """
    def is_number(value: Any) -> bool:
        return isinstance(value, (int, float)) and not isinstance(value, bool)

    if not isinstance(scheduler.timeout, int) or isinstance(scheduler.timeout, bool):
        raise ConfigurationError(
            f"scheduler.timeout must be an integer, got {scheduler.timeout!r}"
        )
    if scheduler.timeout < 0:
        raise ConfigurationError(
            f"scheduler.timeout must not be negative, got {scheduler.timeout}"
        )

    if not is_number(scheduler.interval):
        raise ConfigurationError(
            f"scheduler.interval must be a number, got {scheduler.interval!r}"
        )
    if scheduler.interval < 0:
        raise ConfigurationError(
            f"scheduler.interval must not be negative, got {scheduler.interval}"
        )

    if not isinstance(scheduler.splay_percent, int) or isinstance(scheduler.splay_percent, bool):
        raise ConfigurationError(
            f"scheduler.splay_percent must be an integer, got {scheduler.splay_percent!r}"
        )

    if not isinstance(scheduler.enable_monitor, bool):
        raise ConfigurationError(
            f"scheduler.enable_monitor must be true or false, got {scheduler.enable_monitor!r}"
        )


def _load_from_file(path: Path, config: HostwatchConfig) -> HostwatchConfig:
    """Apply the sections of a TOML config file on top of ``config``."""
    if tomllib is None:
        raise ConfigurationError(
            "tomli is required to read configuration files on Python < 3.11"
        )

    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        raise ConfigurationError(f"Failed to load config from {path}: {e}") from e

    for section in ("scheduler", "logging", "data_source"):
        if section in data:
            target = getattr(config, section)
            for key, value in data[section].items():
                if hasattr(target, key):
                    setattr(target, key, value)

    if "logger" in data:
        for key, value in data["logger"].items():
            if hasattr(config.logger, key):
                setattr(config.logger, key, Path(value) if value else None)

    if "logging" in data and data["logging"].get("file"):
        config.logging.file = Path(data["logging"]["file"])

    # Top-level settings
    if "config_dir" in data:
        config.config_dir = Path(data["config_dir"])
    if "data_dir" in data:
        config.data_dir = Path(data["data_dir"])
    if "database_url" in data:
        config.database_url = data["database_url"]
    if "host_identifier" in data:
        config.host_identifier = str(data["host_identifier"])

    if "schedule" in data:
        config.schedule = _parse_schedule(data["schedule"])

    return config


def _parse_schedule(section: dict[str, Any]) -> dict[str, QueryConfig]:
    """Parse the ``[schedule.<name>]`` tables into query definitions."""
    schedule: dict[str, QueryConfig] = {}

    for name, entry in section.items():
        if not isinstance(entry, dict):
            raise ConfigurationError(f"Schedule entry '{name}' must be a table")

        query = entry.get("query")
        if not query or not isinstance(query, str):
            raise ConfigurationError(f"Schedule entry '{name}' is missing a query")

        interval = entry.get("interval")
        if not isinstance(interval, int) or isinstance(interval, bool) or interval <= 0:
            raise ConfigurationError(
                f"Schedule entry '{name}' needs a positive integer interval"
            )

        options = {
            key: bool(entry[key]) for key in QUERY_OPTIONS if key in entry
        }
        schedule[name] = QueryConfig(query=query, interval=interval, options=options)

    return schedule


def _load_from_env(config: HostwatchConfig, prefix: str) -> HostwatchConfig:
    """Apply ``HOSTWATCH_*`` overrides on top of ``config``."""

    # Scheduler settings
    if env_val := os.environ.get(f"{prefix}SCHEDULE_TIMEOUT"):
        config.scheduler.timeout = _env_int(f"{prefix}SCHEDULE_TIMEOUT", env_val)
    if env_val := os.environ.get(f"{prefix}SCHEDULE_INTERVAL"):
        config.scheduler.interval = _env_int(f"{prefix}SCHEDULE_INTERVAL", env_val)
    if env_val := os.environ.get(f"{prefix}SPLAY_PERCENT"):
        config.scheduler.splay_percent = _env_int(f"{prefix}SPLAY_PERCENT", env_val)
    if env_val := os.environ.get(f"{prefix}ENABLE_MONITOR"):
        config.scheduler.enable_monitor = env_val.lower() in ("true", "1", "yes")

    # Result log sink
    if env_val := os.environ.get(f"{prefix}RESULTS_LOG"):
        config.logger.results_log = Path(env_val)
    if env_val := os.environ.get(f"{prefix}SNAPSHOTS_LOG"):
        config.logger.snapshots_log = Path(env_val)

    # Logging settings
    if env_val := os.environ.get(f"{prefix}LOG_LEVEL"):
        config.logging.level = env_val.upper()

    # Data source and identity
    if env_val := os.environ.get(f"{prefix}DATA_SOURCE_URL"):
        config.data_source.url = env_val
    if env_val := os.environ.get(f"{prefix}HOST_IDENTIFIER"):
        config.host_identifier = env_val

    # Paths
    if env_val := os.environ.get(f"{prefix}CONFIG_DIR"):
        config.config_dir = Path(env_val)
    if env_val := os.environ.get(f"{prefix}DATA_DIR"):
        config.data_dir = Path(env_val)
    if env_val := os.environ.get(f"{prefix}DATABASE_URL"):
        config.database_url = env_val

    return config


def _env_int(name: str, value: str) -> int:
    try:
        return int(value)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be an integer, got '{value}'") from e


def ensure_directories(config: HostwatchConfig) -> None:
    """Create the config, data and result log directories."""
    config.config_dir.mkdir(parents=True, exist_ok=True)
    config.data_dir.mkdir(parents=True, exist_ok=True)
    config.results_log_path.parent.mkdir(parents=True, exist_ok=True)
    config.snapshots_log_path.parent.mkdir(parents=True, exist_ok=True)


# Configuration of the default file location, loaded on first use
_global_config: Optional[HostwatchConfig] = None


def get_config() -> HostwatchConfig:
    """Get the configuration loaded from the default location."""
    global _global_config
    if _global_config is None:
        _global_config = load_config()
    return _global_config


def set_config(config: HostwatchConfig) -> None:
    """Replace the cached configuration."""
    global _global_config
    _global_config = config


def clear_config_cache() -> None:
    """Drop the cached configuration; the next get_config() reloads it."""
    global _global_config
    _global_config = None


def resolve_config(config_path: Optional[Path] = None) -> HostwatchConfig:
    """Configuration for a CLI command.

    An explicit ``--config`` file is loaded fresh; otherwise the cached
    default configuration is used.
    """
    if config_path is not None:
        return load_config(config_path)
    return get_config()


def _config_to_dict(config: HostwatchConfig, mask_secrets: bool = True) -> dict[str, Any]:
    """
    Flatten the configuration for display and export.

    Args:
        config: Configuration to convert
        mask_secrets: If True, mask credentials embedded in URLs

    Returns:
        Plain dict with paths as strings and derived values resolved
    """
    def mask_url(url: str) -> str:
        """Mask the password part of a database URL."""
        if not mask_secrets or "@" not in url or "://" not in url:
            return url
        scheme, rest = url.split("://", 1)
        credentials, host = rest.rsplit("@", 1)
        user = credentials.split(":", 1)[0]
        return f"{scheme}://{user}:****@{host}"

    return {
        "config_dir": str(config.config_dir),
        "data_dir": str(config.data_dir),
        "database_url": mask_url(config.resolved_database_url),
        "host_identifier": config.host_identifier,
        "scheduler": {
            "timeout": config.scheduler.timeout,
            "interval": config.scheduler.interval,
            "enable_monitor": config.scheduler.enable_monitor,
            "splay_percent": config.scheduler.splay_percent,
        },
        "logger": {
            "results_log": str(config.results_log_path),
            "snapshots_log": str(config.snapshots_log_path),
        },
        "logging": {
            "level": config.logging.level,
            "format": config.logging.format,
            "file": str(config.logging.file) if config.logging.file else None,
        },
        "data_source": {
            "url": mask_url(config.data_source.url),
        },
        "schedule": {
            name: {
                "query": entry.query,
                "interval": entry.interval,
                **entry.options,
            }
            for name, entry in config.schedule.items()
        },
    }


def export_config_yaml(config: HostwatchConfig, mask_secrets: bool = True) -> str:
    """
    Render the configuration as YAML.

    Raises:
        ImportError: If pyyaml is not installed
    """
    if yaml is None:
        raise ImportError("pyyaml is required for YAML export. Install with: pip install pyyaml")

    config_dict = _config_to_dict(config, mask_secrets)
    return yaml.dump(config_dict, default_flow_style=False, sort_keys=False, allow_unicode=True)


def export_config_json(config: HostwatchConfig, mask_secrets: bool = True) -> str:
    """Export configuration as JSON string."""
    config_dict = _config_to_dict(config, mask_secrets)
    return json.dumps(config_dict, indent=2)
