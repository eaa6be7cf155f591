"""Platform-aware configuration path resolution.

Handles config file locations for:
- Windows: %PROGRAMDATA% (system), %APPDATA% (user)
- Unix: /etc/ (system), ~/.config/lspproxy/ or ~/.lspproxy/ (user)
- Project: <working directory>/.lspproxy/
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

CONFIG_FILENAME = "config.yaml"
APP_NAME = "lspproxy"
PROJECT_DIR = ".lspproxy"


def get_system_config_path() -> Path | None:
    """Get system-level config path, or None if not determinable."""
    if sys.platform == "win32":
        program_data = os.environ.get("PROGRAMDATA")
        if program_data:
            return Path(program_data) / APP_NAME / CONFIG_FILENAME
        return None
    return Path("/etc") / APP_NAME / CONFIG_FILENAME


def get_user_config_path() -> Path | None:
    """Get user-level config path.

    Returns:
        Path to user config file, or None if not determinable.
        The file may not exist.
    """
    if sys.platform == "win32":
        app_data = os.environ.get("APPDATA")
        if app_data:
            return Path(app_data) / APP_NAME / CONFIG_FILENAME
        return None

    xdg_config = os.environ.get("XDG_CONFIG_HOME")
    if xdg_config:
        return Path(xdg_config) / APP_NAME / CONFIG_FILENAME

    home = Path.home()
    xdg_default = home / ".config"
    if xdg_default.exists():
        return xdg_default / APP_NAME / CONFIG_FILENAME

    return home / PROJECT_DIR / CONFIG_FILENAME


def get_project_config_path(project_root: str | os.PathLike[str]) -> Path:
    """Get project-level config path (may not exist)."""
    return Path(project_root) / PROJECT_DIR / CONFIG_FILENAME


def get_config_paths(project_root: str | os.PathLike[str] | None = None) -> list[Path]:
    """Get all config paths in priority order (lowest to highest).

    Args:
        project_root: Optional directory for project-level config.

    Returns:
        List of config paths in order: system, user, project.
        Later paths override earlier ones when merging.
    """
    paths = [p for p in (get_system_config_path(), get_user_config_path()) if p]
    if project_root is not None:
        paths.append(get_project_config_path(project_root))
    return paths
