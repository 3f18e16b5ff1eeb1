"""
Pydantic configuration schema for botmaid.

This module defines all configuration models with validation.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

# =============================================================================
# Platform Configuration
# =============================================================================


class PlatformAdapterConfig(BaseModel):
    """Base configuration for platform adapters."""

    enable: bool = False


class CLIConfig(PlatformAdapterConfig):
    """Terminal debug adapter configuration."""

    bot_id: str = "-"


class TelegramConfig(PlatformAdapterConfig):
    """Telegram bot configuration.

    Uses long polling; no webhook setup required.
    """

    bot_token: str = ""
    api_host: str = "api.telegram.org"
    poll_timeout: int = Field(default=60, ge=0)
    bootstrap_timeout: int = Field(default=1, ge=0)
    retry_delay: float = Field(default=3.0, ge=0.0)


class OneBotConfig(PlatformAdapterConfig):
    """OneBot 11 gateway configuration.

    Events arrive over the gateway's WebSocket, calls go to its HTTP API.
    ``schema`` must be chosen explicitly before the adapter is enabled.
    """

    host: str = "127.0.0.1"
    ws_port: int = Field(default=6700, ge=1, le=65535)
    http_port: int = Field(default=5700, ge=1, le=65535)
    event_path: str = "/event"
    # "schema" shadows a BaseModel attribute, hence the alias
    wire_schema: Literal["segments", "raw"] | None = Field(default=None, alias="schema")
    access_token: str = ""
    reconnect_delay: float = Field(default=3.0, ge=0.0)

    model_config = ConfigDict(populate_by_name=True)


class PlatformsConfig(BaseModel):
    """Multi-platform messaging configuration."""

    model_config = ConfigDict(extra="allow")

    enable: bool = True
    cli: CLIConfig = Field(default_factory=CLIConfig)
    telegram: TelegramConfig = Field(default_factory=TelegramConfig)
    onebot: OneBotConfig = Field(default_factory=OneBotConfig)


# =============================================================================
# General Configuration
# =============================================================================


class GeneralConfig(BaseModel):
    """General settings configuration."""

    model_config = ConfigDict(extra="allow")

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"


# =============================================================================
# Root Configuration Model
# =============================================================================


class Config(BaseModel):
    """
    Root configuration model for botmaid.

    Configuration can be loaded from YAML files, environment variables,
    and CLI flags, merged in order of priority.
    """

    model_config = ConfigDict(extra="allow")

    general: GeneralConfig = Field(default_factory=GeneralConfig)
    platforms: PlatformsConfig = Field(default_factory=PlatformsConfig)

    def enabled_platforms(self) -> list[str]:
        """Names of the platforms switched on in this configuration."""
        if not self.platforms.enable:
            return []
        sections = {
            "cli": self.platforms.cli,
            "telegram": self.platforms.telegram,
            "onebot": self.platforms.onebot,
        }
        return [name for name, section in sections.items() if section.enable]

    def to_dict(self) -> dict:
        """Dump as plain data, using the YAML key names."""
        return self.model_dump(by_alias=True)
