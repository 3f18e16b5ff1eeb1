"""
botmaid platforms - Run and inspect platform adapters.

Usage:
    botmaid platforms list
    botmaid platforms status
    botmaid platforms start [--platform PLATFORM] [--handler MODULE:ATTR]
"""

import asyncio
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.table import Table

from botmaid.cli.output import configure_logging, console, print_error, print_success, print_warning
from botmaid.config import Config, ConfigurationError, load_config, resolve_env_reference
from botmaid.platforms.factory import build_adapters
from botmaid.platforms.handlers import EchoHandler, load_handler
from botmaid.platforms.protocol import PlatformAdapter
from botmaid.platforms.router import MessageHandler, MessageRouter

app = typer.Typer(
    name="platforms",
    help="Run and inspect platform adapters.",
)

ConfigFileOption = Annotated[
    Optional[Path],
    typer.Option(
        "--config",
        "-c",
        help="Extra config file merged over global and project config.",
    ),
]


def _load(config_file: Optional[Path]) -> Config:
    try:
        return load_config(config_path=config_file)
    except ConfigurationError as e:
        print_error(f"Configuration error: {e}")
        raise typer.Exit(1)


def _platform_rows(config: Config) -> list[tuple[str, object, str, str]]:
    """(name, section, mode, configuration status) per known platform."""
    platforms = config.platforms

    telegram_token = resolve_env_reference(platforms.telegram.bot_token)
    onebot_schema = platforms.onebot.wire_schema

    return [
        (
            "CLI",
            platforms.cli,
            "Terminal",
            f"[green]✓ Bot id '{platforms.cli.bot_id}'[/green]",
        ),
        (
            "Telegram",
            platforms.telegram,
            "Long Polling",
            "[green]✓ Configured[/green]" if telegram_token else "[yellow]⚠ Missing token[/yellow]",
        ),
        (
            "OneBot",
            platforms.onebot,
            f"WebSocket + HTTP ({onebot_schema or '?'})",
            "[green]✓ Configured[/green]" if onebot_schema else "[yellow]⚠ Missing schema[/yellow]",
        ),
    ]


async def _serve(adapters: list[PlatformAdapter], handler: MessageHandler) -> None:
    """Run the router until every loop ends or the task is cancelled."""
    router = MessageRouter(adapters, handler)
    try:
        await router.run()
    finally:
        if router.is_running:
            await router.stop()


@app.command("list")
def list_platforms(config_file: ConfigFileOption = None) -> None:
    """List available platforms and their configuration status."""
    config = _load(config_file)

    table = Table(title="Available Platforms")
    table.add_column("Platform", style="cyan")
    table.add_column("Status", style="bold")
    table.add_column("Mode", style="dim")
    table.add_column("Configuration", style="dim")

    for name, section, mode, config_status in _platform_rows(config):
        if section.enable:
            status = "[green]Enabled[/green]"
        else:
            status = "[dim]Disabled[/dim]"
            config_status = "[dim]Not enabled[/dim]"
        table.add_row(name, status, mode, config_status)

    console.print(table)

    if not config.platforms.enable:
        console.print("\n[yellow]⚠ Platforms are disabled globally[/yellow]")
        console.print("[dim]Set platforms.enable: true in your config to enable[/dim]")


@app.command()
def status(config_file: ConfigFileOption = None) -> None:
    """Build the enabled adapters and report whether they are ready to start."""
    config = _load(config_file)

    if not config.platforms.enable:
        console.print("[yellow]Platforms are disabled[/yellow]")
        return

    try:
        adapters = build_adapters(config)
    except ConfigurationError as e:
        print_error(f"Configuration error: {e}")
        raise typer.Exit(1)

    if not adapters:
        console.print("[yellow]No platforms configured[/yellow]")
        console.print("[dim]See: botmaid platforms list[/dim]")
        return

    table = Table(title="Platform Status")
    table.add_column("Platform", style="cyan")
    table.add_column("Adapter")
    table.add_column("Configuration", style="bold")

    for adapter in adapters:
        table.add_row(adapter.name, type(adapter).__name__, "[green]✓ Ready[/green]")

    console.print(table)
    console.print(f"\n[green]✓[/green] {len(adapters)} platform(s) configured and ready")


@app.command()
def start(
    platform: Annotated[
        Optional[str],
        typer.Option(
            "--platform",
            "-p",
            help="Start specific platform (cli, telegram or onebot).",
        ),
    ] = None,
    handler_path: Annotated[
        Optional[str],
        typer.Option(
            "--handler",
            help="Message handler as module:attribute (default: echo).",
        ),
    ] = None,
    log_level: Annotated[
        Optional[str],
        typer.Option(
            "--log-level",
            "-l",
            help="Override general.log_level.",
        ),
    ] = None,
    config_file: ConfigFileOption = None,
) -> None:
    """Start platform message service.

    Starts all enabled platforms or a specific platform if specified.
    Runs continuously until stopped with Ctrl+C.
    """
    config = _load(config_file)
    configure_logging(log_level or config.general.log_level)

    if not config.platforms.enable:
        console.print("[red]Error: Platforms are not enabled in configuration[/red]")
        console.print("[dim]Set platforms.enable: true in your config[/dim]")
        raise typer.Exit(1)

    try:
        adapters = build_adapters(config, platform_filter=platform)
    except ConfigurationError as e:
        print_error(f"Configuration error: {e}")
        raise typer.Exit(1)

    if not adapters:
        print_warning("No platforms configured. Please configure at least one platform.")
        console.print("[dim]See: botmaid platforms list[/dim]")
        raise typer.Exit(1)

    try:
        handler = load_handler(handler_path) if handler_path else EchoHandler()
    except (ImportError, ValueError) as e:
        print_error(f"Cannot load handler: {e}")
        raise typer.Exit(1)

    print_success(f"Starting {len(adapters)} platform(s)")
    for adapter in adapters:
        console.print(f"  [cyan]•[/cyan] {adapter.name}")
    console.print("\n[dim]Press Ctrl+C to stop[/dim]\n")

    try:
        asyncio.run(_serve(adapters, handler))
    except KeyboardInterrupt:
        console.print("\n[yellow]Stopped by user[/yellow]")
