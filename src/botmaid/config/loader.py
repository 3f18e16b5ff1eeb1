"""
Configuration loader for botmaid.

Loads and merges configuration from multiple sources:
1. Default values
2. Global config ($BOTMAID_HOME/config.yaml)
3. Project config (./.botmaid/project.yaml)
4. Explicit config file (--config)
5. Environment variables (BOTMAID_<SECTION>__<KEY>)
"""

import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from botmaid.config.merger import deep_merge, set_nested_value
from botmaid.config.schema import Config
from botmaid.storage.paths import expand_path, find_project_config, get_global_config_path

ENV_PREFIX = "BOTMAID_"
ENV_NESTING = "__"

_ENV_REFERENCE = re.compile(r"^\$\{([A-Za-z_][A-Za-z0-9_]*)\}$")


class ConfigurationError(Exception):
    """Raised when configuration loading or validation fails."""

    pass


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a YAML configuration file.

    Args:
        path: Path to the YAML file.

    Returns:
        Parsed configuration dictionary, empty if the file does not exist.

    Raises:
        ConfigurationError: If the file cannot be read or parsed.
    """
    try:
        with open(path, encoding="utf-8") as f:
            content = yaml.safe_load(f)
    except FileNotFoundError:
        return {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e
    except OSError as e:
        raise ConfigurationError(f"Cannot read {path}: {e}") from e

    if content is None:
        return {}
    if not isinstance(content, dict):
        raise ConfigurationError(f"{path} must contain a mapping at the top level")
    return content


def apply_env_overrides(config: dict[str, Any]) -> dict[str, Any]:
    """
    Apply environment variable overrides to configuration.

    Environment variables follow the pattern:
    BOTMAID_<SECTION>__<KEY>=<value>
    BOTMAID_<SECTION>__<NESTED>__<KEY>=<value>

    A double underscore separates nesting levels so keys like ``bot_token``
    keep their single underscore. Variables without a double underscore
    (``BOTMAID_HOME``) are not configuration keys and are skipped.

    Args:
        config: Configuration dictionary to modify.

    Returns:
        Configuration with environment overrides applied.
    """
    for key, value in os.environ.items():
        if not key.startswith(ENV_PREFIX):
            continue

        name = key[len(ENV_PREFIX) :]
        if ENV_NESTING not in name:
            continue

        # BOTMAID_PLATFORMS__TELEGRAM__BOT_TOKEN -> platforms.telegram.bot_token
        parts = [part.lower() for part in name.split(ENV_NESTING)]
        if not all(parts):
            continue

        config = set_nested_value(config, ".".join(parts), _parse_env_value(value))

    return config


def _parse_env_value(value: str) -> Any:
    """
    Parse an environment variable value to the appropriate type.

    Args:
        value: String value from environment.

    Returns:
        Parsed value (bool, int, float, or string).
    """
    # Boolean
    if value.lower() in ("true", "yes", "on"):
        return True
    if value.lower() in ("false", "no", "off"):
        return False

    # Integer
    if re.match(r"^-?\d+$", value):
        return int(value)

    # Float
    if re.match(r"^-?\d+\.\d+$", value):
        return float(value)

    # String
    return value


def resolve_env_reference(value: str) -> str:
    """
    Resolve a ``${VAR}`` reference from the environment.

    Values that are not a reference are returned unchanged; a reference to an
    unset variable resolves to an empty string.

    Examples:
        >>> os.environ["TELEGRAM_BOT_TOKEN"] = "123:abc"
        >>> resolve_env_reference("${TELEGRAM_BOT_TOKEN}")
        "123:abc"
    """
    match = _ENV_REFERENCE.match(value.strip())
    if not match:
        return value
    return os.environ.get(match.group(1), "")


def load_config(
    config_path: Path | None = None,
    project_path: Path | None = None,
    skip_project: bool = False,
    skip_env: bool = False,
) -> Config:
    """
    Load and merge configuration from all sources.

    Loading order (later overrides earlier):
    1. Default values from Config model
    2. Global config ($BOTMAID_HOME/config.yaml)
    3. Project config (./.botmaid/project.yaml) if found
    4. Explicit config file, if given
    5. Environment variables (BOTMAID_*)

    Args:
        config_path: Explicit configuration file; it must exist.
        project_path: Starting path to search for project config. Defaults to cwd.
        skip_project: Skip loading project configuration.
        skip_env: Skip environment variable overrides.

    Returns:
        Merged and validated Config object.

    Raises:
        ConfigurationError: If configuration is missing or invalid.
    """
    # 1. Start with defaults
    config_dict = Config().to_dict()

    # 2. Load global config
    global_path = get_global_config_path()
    if global_path.exists():
        config_dict = deep_merge(config_dict, load_yaml_file(global_path))

    # 3. Load project config
    if not skip_project:
        project_config_path = find_project_config(project_path)
        if project_config_path and project_config_path.exists():
            config_dict = deep_merge(config_dict, load_yaml_file(project_config_path))

    # 4. Load explicit config
    if config_path is not None:
        config_path = expand_path(config_path)
        if not config_path.exists():
            raise ConfigurationError(f"Config file not found: {config_path}")
        config_dict = deep_merge(config_dict, load_yaml_file(config_path))

    # 5. Apply environment variables
    if not skip_env:
        config_dict = apply_env_overrides(config_dict)

    # 6. Validate and return
    try:
        return Config.model_validate(config_dict)
    except ValidationError as e:
        raise ConfigurationError(f"Configuration validation failed: {e}") from e


def get_config_sources(config_path: Path | None = None) -> dict[str, Path | None]:
    """
    Get paths to all configuration sources.

    Returns:
        Dictionary mapping source names to paths (None if not found).
    """
    global_path = get_global_config_path()
    project_path = find_project_config()

    return {
        "global": global_path if global_path.exists() else None,
        "project": project_path if project_path and project_path.exists() else None,
        "explicit": config_path if config_path and config_path.exists() else None,
    }
