"""Storage utilities for botmaid."""

from botmaid.storage.paths import (
    expand_path,
    find_project_config,
    get_botmaid_home,
    get_global_config_path,
)

__all__ = [
    "expand_path",
    "find_project_config",
    "get_botmaid_home",
    "get_global_config_path",
]
