"""Platform adapter implementations."""

from botmaid.platforms.adapters.cli import CLIAdapter
from botmaid.platforms.adapters.mock import MockAdapter
from botmaid.platforms.adapters.onebot import OneBotAdapter
from botmaid.platforms.adapters.telegram import TelegramAdapter

__all__ = [
    "CLIAdapter",
    "MockAdapter",
    "OneBotAdapter",
    "TelegramAdapter",
]
