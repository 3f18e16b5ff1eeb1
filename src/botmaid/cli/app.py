"""
Main Typer application for botmaid CLI.

This module defines the root CLI application and registers all command groups.
"""

from typing import Annotated

import typer

from botmaid import __version__
from botmaid.cli.commands import config, platforms
from botmaid.cli.output import print_info

# Create the main Typer app
app = typer.Typer(
    name="botmaid",
    help="Multi-platform chat bot runtime.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    pretty_exceptions_enable=True,
    pretty_exceptions_show_locals=False,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        print_info(f"botmaid version [green]{__version__}[/green]")
        raise typer.Exit()


# noinspection PyUnusedLocal
@app.callback()
def main_callback(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """
    [bold blue]botmaid[/bold blue] - multi-platform chat bot runtime

    Connects one message handler to Telegram, OneBot 11 gateways and the
    local terminal at the same time.
    """


# Register command groups
app.add_typer(config.app, name="config")
app.add_typer(platforms.app, name="platforms")


if __name__ == "__main__":
    app()
