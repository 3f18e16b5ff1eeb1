"""
Configuration merger for botmaid.

Implements deep merge of layered configuration dictionaries.
"""

from typing import Any


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """
    Deep merge two dictionaries.

    Merge rules:
    - Scalar values and lists: override replaces base
    - Dicts: recursive deep merge
    - Keys missing from override keep their base value

    Neither input is modified.

    Args:
        base: Base configuration dictionary.
        override: Override configuration dictionary.

    Returns:
        Merged configuration dictionary.

    Examples:
        >>> base = {"telegram": {"enable": False, "poll_timeout": 60}}
        >>> override = {"telegram": {"enable": True}}
        >>> deep_merge(base, override)
        {"telegram": {"enable": True, "poll_timeout": 60}}
    """
    result = base.copy()

    for key, value in override.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value

    return result


def get_nested_value(config: dict[str, Any], key_path: str) -> Any:
    """
    Get a nested value from a configuration dictionary.

    Args:
        config: Configuration dictionary.
        key_path: Dot-separated key path (e.g., "platforms.onebot.schema").

    Returns:
        The value at the key path, or None if not found.
    """
    current: Any = config

    for key in key_path.split("."):
        if isinstance(current, dict) and key in current:
            current = current[key]
        else:
            return None

    return current


def set_nested_value(config: dict[str, Any], key_path: str, value: Any) -> dict[str, Any]:
    """
    Set a nested value in a configuration dictionary.

    Creates intermediate dictionaries as needed.

    Examples:
        >>> set_nested_value({}, "platforms.telegram.enable", True)
        {"platforms": {"telegram": {"enable": True}}}
    """
    *parents, leaf = key_path.split(".")
    current = config
    for key in parents:
        if not isinstance(current.get(key), dict):
            current[key] = {}
        current = current[key]
    current[leaf] = value
    return config
