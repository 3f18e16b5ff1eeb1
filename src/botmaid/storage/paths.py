"""
Path utilities for botmaid.

Provides consistent path resolution for configuration files.
"""

import os
from pathlib import Path

PROJECT_DIR_NAME = ".botmaid"
PROJECT_CONFIG_NAME = "project.yaml"


def get_botmaid_home() -> Path:
    """
    Get the botmaid home directory.

    Resolution order:
    1. BOTMAID_HOME environment variable
    2. Default: ~/.botmaid

    Returns:
        Path to the botmaid home directory.
    """
    env_home = os.environ.get("BOTMAID_HOME")
    if env_home:
        return Path(env_home).expanduser().resolve()
    return Path.home() / ".botmaid"


def get_global_config_path() -> Path:
    """
    Get the path to the global configuration file.

    Returns:
        Path to ~/.botmaid/config.yaml
    """
    return get_botmaid_home() / "config.yaml"


def find_project_config(start_path: Path | None = None) -> Path | None:
    """
    Find the project configuration file by traversing up the directory tree.

    Looks for .botmaid/project.yaml starting from the given path
    (or current directory) and moving up to the root.

    Args:
        start_path: Starting directory to search from. Defaults to cwd.

    Returns:
        Path to the project config if found, None otherwise.
    """
    if start_path is None:
        start_path = Path.cwd()
    else:
        start_path = Path(start_path).resolve()

    current = start_path
    while True:
        project_config = current / PROJECT_DIR_NAME / PROJECT_CONFIG_NAME
        if project_config.exists():
            return project_config
        if current == current.parent:
            return None
        current = current.parent


def expand_path(path: str | Path) -> Path:
    """Expand ~ and environment variables in a path."""
    return Path(os.path.expandvars(str(path))).expanduser().resolve()
