"""Configuration management for botmaid."""

from botmaid.config.loader import (
    ConfigurationError,
    get_config_sources,
    load_config,
    load_yaml_file,
    resolve_env_reference,
)
from botmaid.config.merger import deep_merge, get_nested_value, set_nested_value
from botmaid.config.schema import (
    CLIConfig,
    Config,
    GeneralConfig,
    OneBotConfig,
    PlatformsConfig,
    TelegramConfig,
)

__all__ = [
    "CLIConfig",
    "Config",
    "ConfigurationError",
    "GeneralConfig",
    "OneBotConfig",
    "PlatformsConfig",
    "TelegramConfig",
    "deep_merge",
    "get_config_sources",
    "get_nested_value",
    "load_config",
    "load_yaml_file",
    "resolve_env_reference",
    "set_nested_value",
]
