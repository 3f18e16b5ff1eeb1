"""
botmaid config - Configuration inspection commands.

Usage:
    botmaid config show
    botmaid config show platforms.telegram
    botmaid config path
    botmaid config validate
"""

import json
from pathlib import Path
from typing import Annotated, Any

import typer
import yaml
from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table

from botmaid.config import (
    Config,
    ConfigurationError,
    get_config_sources,
    get_nested_value,
    load_config,
    load_yaml_file,
)
from botmaid.storage.paths import get_botmaid_home, get_global_config_path

app = typer.Typer(
    name="config",
    help="Configuration inspection.",
)

console = Console()

SECRET_KEYS = frozenset({"bot_token", "access_token"})

ConfigFileOption = Annotated[
    Path | None,
    typer.Option(
        "--config",
        "-c",
        help="Extra config file merged over global and project config.",
    ),
]


def mask_secrets(value: Any) -> Any:
    """
    Replace secret values with a mask.

    Environment references (``${VAR}``) are shown as written since they
    carry no secret themselves.
    """
    if isinstance(value, dict):
        masked = {}
        for key, item in value.items():
            if key in SECRET_KEYS and isinstance(item, str) and item and not item.startswith("${"):
                masked[key] = "********"
            else:
                masked[key] = mask_secrets(item)
        return masked
    return value


@app.command()
def show(
    section: Annotated[
        str | None,
        typer.Argument(
            help="Config section to show (e.g., 'platforms', 'platforms.onebot').",
        ),
    ] = None,
    json_output: Annotated[
        bool,
        typer.Option(
            "--json",
            help="Output as JSON.",
        ),
    ] = False,
    config_file: ConfigFileOption = None,
) -> None:
    """Show the merged configuration (secrets masked)."""
    try:
        config = load_config(config_path=config_file)
    except ConfigurationError as e:
        console.print(f"[red]Configuration error: {e}[/red]")
        raise typer.Exit(1)

    data: Any = mask_secrets(config.to_dict())

    if section:
        data = get_nested_value(data, section)
        if data is None:
            console.print(f"[red]Section '{section}' not found in configuration.[/red]")
            raise typer.Exit(1)

    if json_output:
        output = json.dumps(data, indent=2, default=str)
        console.print(Syntax(output, "json", theme="monokai"))
        return

    output = yaml.dump(data, default_flow_style=False, sort_keys=False, allow_unicode=True)
    if section:
        console.print(Panel(Syntax(output, "yaml", theme="monokai"), title=f"[cyan]{section}[/cyan]"))
    else:
        console.print(Syntax(output, "yaml", theme="monokai"))


@app.command()
def path(config_file: ConfigFileOption = None) -> None:
    """Show configuration file locations."""
    table = Table(title="Configuration Sources")
    table.add_column("Source", style="cyan")
    table.add_column("Path", style="green")
    table.add_column("Status")

    for source_name, source_path in get_config_sources(config_file).items():
        if source_path:
            table.add_row(source_name, str(source_path), "[green]loaded[/green]")
        elif source_name == "global":
            table.add_row(source_name, str(get_global_config_path()), "[dim]not found[/dim]")
        else:
            table.add_row(source_name, "-", "[dim]not found[/dim]")

    console.print(table)
    console.print(f"\n[dim]Home directory: {get_botmaid_home()}[/dim]")


@app.command("validate")
def validate(
    file: Annotated[
        Path | None,
        typer.Option(
            "--file",
            "-f",
            help="Config file to validate on its own.",
        ),
    ] = None,
) -> None:
    """Validate configuration."""
    try:
        if file:
            console.print(f"Validating: {file}")
            Config.model_validate(load_yaml_file(file))
            console.print(f"[green]Valid: {file}[/green]")
            return

        console.print("Validating merged configuration...")
        config = load_config()
        console.print("[green]Configuration is valid.[/green]")

        enabled = config.enabled_platforms()
        console.print(f"  Platforms: {', '.join(enabled) if enabled else 'none enabled'}")

    except ConfigurationError as e:
        console.print(f"[red]Configuration error: {e}[/red]")
        raise typer.Exit(1)
    except ValidationError as e:
        console.print("[red]Validation failed:[/red]")
        for error in e.errors():
            loc = ".".join(str(x) for x in error["loc"])
            console.print(f"  [red]{loc}:[/red] {error['msg']}")
        raise typer.Exit(1)
