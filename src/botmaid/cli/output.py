"""
Output formatting utilities for the CLI.

Provides consistent output formatting and log setup across all CLI commands.
"""

import logging

from rich.console import Console
from rich.logging import RichHandler

# Global console instance
console = Console()

# Logs go to stderr so they never mix with the terminal adapter's output
log_console = Console(stderr=True)


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[green]✓[/green] {message}")


def print_error(message: str) -> None:
    """Print an error message."""
    console.print(f"[red]✗[/red] {message}")


def print_warning(message: str) -> None:
    """Print a warning message."""
    console.print(f"[yellow]![/yellow] {message}")


def print_info(message: str) -> None:
    """Print an info message."""
    console.print(f"[blue]i[/blue] {message}")


def configure_logging(level: str = "INFO") -> None:
    """
    Route the ``botmaid`` loggers through a rich handler.

    Calling it again replaces the handler instead of stacking another one.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
    """
    root_logger = logging.getLogger("botmaid")
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    handler = RichHandler(
        console=log_console,
        show_path=False,
        rich_tracebacks=True,
        tracebacks_show_locals=False,
        markup=False,
    )
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))

    root_logger.addHandler(handler)
    root_logger.setLevel(level.upper())
    root_logger.propagate = False
