"""hostwatch config command - Configuration inspection."""

import os
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table

from hostwatch.cli.error_handler import handle_errors
from hostwatch.cli.exit_codes import ExitCode

app = typer.Typer(help="Inspect hostwatch configuration.")
console = Console()

ConfigOption = typer.Option(
    None,
    "--config",
    "-c",
    help="Path to configuration file.",
    exists=True,
    dir_okay=False,
    resolve_path=True,
)


@app.command("show")
@handle_errors
def show_config(
    section: Optional[str] = typer.Argument(
        None,
        help="Configuration section to show (e.g., scheduler, logger, paths).",
    ),
    format: str = typer.Option(
        "table",
        "--format",
        "-f",
        help="Output format (table, yaml, json).",
    ),
    unmask: bool = typer.Option(
        False,
        "--unmask",
        help="Show credentials embedded in URLs (use with caution).",
    ),
    config_file: Optional[Path] = ConfigOption,
) -> None:
    """Show the effective configuration.

    Example:
        hostwatch config show
        hostwatch config show scheduler
        hostwatch config show --format yaml
    """
    from hostwatch.config import _config_to_dict, export_config_json, export_config_yaml, resolve_config

    config = resolve_config(config_file)

    if format == "yaml":
        try:
            yaml_output = export_config_yaml(config, mask_secrets=not unmask)
        except ImportError as e:
            console.print(f"[red]Error: {e}[/red]")
            raise typer.Exit(code=ExitCode.GENERAL_ERROR)
        console.print(Syntax(yaml_output, "yaml", theme="monokai"))
        return
    elif format == "json":
        json_output = export_config_json(config, mask_secrets=not unmask)
        console.print(Syntax(json_output, "json", theme="monokai"))
        return
    elif format != "table":
        console.print(f"[red]Unknown format: {format}[/red]")
        raise typer.Exit(code=ExitCode.INVALID_ARGUMENT)

    data = _config_to_dict(config, mask_secrets=not unmask)
    sections = {
        "paths": {
            key: data[key]
            for key in ("config_dir", "data_dir", "database_url", "host_identifier")
        },
        "scheduler": data["scheduler"],
        "logger": data["logger"],
        "logging": data["logging"],
        "data_source": data["data_source"],
    }

    sections_to_show = [section] if section else list(sections)

    for sec in sections_to_show:
        if sec not in sections:
            console.print(f"[red]Unknown section: {sec}[/red]")
            continue

        table = Table(title=sec.replace("_", " ").capitalize())
        table.add_column("Key", style="cyan")
        table.add_column("Value", style="green")

        for key, value in sections[sec].items():
            table.add_row(key, "" if value is None else str(value))

        console.print(table)
        console.print()


@app.command("path")
def config_path() -> None:
    """Show configuration file path.

    Example:
        hostwatch config path
    """
    from hostwatch.config import DEFAULT_CONFIG_DIR, DEFAULT_CONFIG_FILE

    # Check for environment variable override
    config_dir = Path(os.environ.get("HOSTWATCH_CONFIG_DIR", DEFAULT_CONFIG_DIR))
    config_file_path = config_dir / DEFAULT_CONFIG_FILE
    console.print(f"[bold]Config directory:[/bold] {config_dir}")
    console.print(f"[bold]Config file:[/bold] {config_file_path}")
    console.print(f"[bold]Exists:[/bold] {config_file_path.exists()}")


@app.command("validate")
@handle_errors
def validate_config(config_file: Optional[Path] = ConfigOption) -> None:
    """Validate the configuration and its schedule.

    Example:
        hostwatch config validate
    """
    from hostwatch.config import clear_config_cache, resolve_config

    console.print("[bold]Validating configuration...[/bold]")

    clear_config_cache()
    config = resolve_config(config_file)

    console.print(f"  [green]✓[/green] {len(config.schedule)} scheduled queries")
    if not 0 < config.scheduler.splay_percent <= 100:
        console.print(
            f"  [yellow]![/yellow] splay_percent {config.scheduler.splay_percent} "
            "is outside 1-100, intervals will not be splayed"
        )
    if config.scheduler.enable_monitor:
        console.print("  [green]✓[/green] Query resource monitoring enabled")

    console.print()
    console.print("[green]Configuration is valid[/green]")


@app.command("env")
def show_env_vars() -> None:
    """Show supported environment variables.

    Example:
        hostwatch config env
    """
    console.print("[bold]Supported Environment Variables[/bold]")
    console.print()
    console.print("[dim]These environment variables can be used to override config file values:[/dim]")
    console.print()

    env_vars = [
        ("HOSTWATCH_SCHEDULE_TIMEOUT", "Stop the scheduler after this tick", "0"),
        ("HOSTWATCH_SCHEDULE_INTERVAL", "Seconds between scheduler ticks", "1"),
        ("HOSTWATCH_SPLAY_PERCENT", "Jitter applied to query intervals", "10"),
        ("HOSTWATCH_ENABLE_MONITOR", "Record query resource usage", "true/false"),
        ("HOSTWATCH_RESULTS_LOG", "Differential results log path", "/var/log/hostwatch.results.log"),
        ("HOSTWATCH_SNAPSHOTS_LOG", "Snapshot results log path", "/var/log/hostwatch.snapshots.log"),
        ("HOSTWATCH_LOG_LEVEL", "Logging level", "DEBUG/INFO/WARNING/ERROR"),
        ("HOSTWATCH_DATA_SOURCE_URL", "Database queried by scheduled queries", "sqlite:///..."),
        ("HOSTWATCH_HOST_IDENTIFIER", "Host identifier in result logs", "hostname/uuid/<name>"),
        ("HOSTWATCH_CONFIG_DIR", "Configuration directory path", "~/.config/hostwatch"),
        ("HOSTWATCH_DATA_DIR", "Data directory path", "~/.local/share/hostwatch"),
        ("HOSTWATCH_DATABASE_URL", "Result store connection URL", "sqlite:///..."),
    ]

    table = Table()
    table.add_column("Variable", style="cyan")
    table.add_column("Description", style="white")
    table.add_column("Example Value", style="green")

    for var, desc, example in env_vars:
        table.add_row(var, desc, example)

    console.print(table)
