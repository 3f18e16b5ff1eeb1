"""Construction of platform adapters from configuration."""

import logging
from typing import Optional

from botmaid.config import Config, ConfigurationError, resolve_env_reference
from botmaid.platforms.adapters.cli import CLIAdapter
from botmaid.platforms.adapters.onebot import OneBotAdapter
from botmaid.platforms.adapters.telegram import TelegramAdapter
from botmaid.platforms.protocol import PlatformAdapter

logger = logging.getLogger(__name__)

BUILDABLE_PLATFORMS = ("cli", "telegram", "onebot")


def build_adapters(
    config: Config, platform_filter: Optional[str] = None
) -> list[PlatformAdapter]:
    """Create platform adapters based on configuration.

    Args:
        config: botmaid configuration
        platform_filter: Only build this platform (None = every enabled one)

    Returns:
        List of enabled platform adapters, in a fixed order

    Raises:
        ConfigurationError: If an enabled platform is misconfigured or the
            filter names an unknown platform
    """
    if platform_filter is not None and platform_filter not in BUILDABLE_PLATFORMS:
        raise ConfigurationError(
            f"Unknown platform '{platform_filter}', expected one of: "
            f"{', '.join(BUILDABLE_PLATFORMS)}"
        )

    adapters: list[PlatformAdapter] = []
    for name in config.enabled_platforms():
        if platform_filter and name != platform_filter:
            continue
        adapter = _BUILDERS[name](config)
        if adapter is not None:
            adapters.append(adapter)

    logger.info(f"Built {len(adapters)} platform adapter(s)")
    return adapters


def _build_cli(config: Config) -> PlatformAdapter:
    return CLIAdapter(bot_id=config.platforms.cli.bot_id)


def _build_telegram(config: Config) -> Optional[PlatformAdapter]:
    section = config.platforms.telegram
    bot_token = resolve_env_reference(section.bot_token)
    if not bot_token:
        logger.warning("Telegram enabled but bot_token not configured")
        return None

    return TelegramAdapter(
        bot_token=bot_token,
        api_host=section.api_host,
        poll_timeout=section.poll_timeout,
        bootstrap_timeout=section.bootstrap_timeout,
        retry_delay=section.retry_delay,
    )


def _build_onebot(config: Config) -> PlatformAdapter:
    section = config.platforms.onebot
    if section.wire_schema is None:
        raise ConfigurationError(
            "OneBot is enabled but platforms.onebot.schema is not set "
            "(choose 'segments' or 'raw')"
        )

    return OneBotAdapter(
        host=section.host,
        ws_port=section.ws_port,
        http_port=section.http_port,
        schema=section.wire_schema,
        event_path=section.event_path,
        access_token=resolve_env_reference(section.access_token) or None,
        reconnect_delay=section.reconnect_delay,
    )


_BUILDERS = {
    "cli": _build_cli,
    "telegram": _build_telegram,
    "onebot": _build_onebot,
}
