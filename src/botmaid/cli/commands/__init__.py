"""CLI command modules."""

from botmaid.cli.commands import config, platforms

__all__ = ["config", "platforms"]
