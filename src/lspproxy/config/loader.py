"""Configuration file loading and caching.

Handles:
- YAML file parsing
- Environment variable overrides
- Config caching with reload support
- Conversion from dict to typed Config dataclass
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import yaml

from lspproxy.config.merge import merge_configs
from lspproxy.config.paths import get_config_paths
from lspproxy.config.schema import (
    Config,
    InterceptConfig,
    LoggingConfig,
    ServerConfig,
    TraceConfig,
)

# Module logger (may not be configured yet at import time)
_log = logging.getLogger("lspproxy.config")

_cached_config: Config | None = None

_KNOWN_SECTIONS = {"server", "trace", "intercept", "logging"}


class ProxyConfigError(Exception):
    """Configuration is present but unusable.

    Raised when:
    - server.command is not a list of strings
    - intercept.methods is not a list of strings
    - trace.enabled is not a boolean
    - a profile requires a trace file and none is configured
    - a profile name is unknown
    """


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a YAML file, returning empty dict if not found or invalid."""
    if not path.exists():
        return {}

    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        _log.warning("Invalid YAML in %s: %s", path, e)
        return {}
    except PermissionError:
        _log.debug("Permission denied reading %s", path)
        return {}
    except OSError as e:
        _log.warning("Error reading %s: %s", path, e)
        return {}

    return data if isinstance(data, dict) else {}


def env_overrides() -> dict[str, Any]:
    """Build config dict from environment variables.

    DEBUG follows JavaScript truthiness: any non-empty value enables
    the trace, including "0".

    Returns:
        Config dict with values from environment.
    """
    overrides: dict[str, Any] = {}

    if os.environ.get("DEBUG"):
        overrides.setdefault("trace", {})["enabled"] = True

    trace_path = os.environ.get("LSP_LOG_FILE")
    if trace_path:
        overrides.setdefault("trace", {})["file"] = trace_path

    profile = os.environ.get("LSP_PROXY_PROFILE")
    if profile:
        overrides.setdefault("server", {})["profile"] = profile

    log_path = os.environ.get("LSP_PROXY_LOG")
    if log_path:
        overrides.setdefault("logging", {})["file"] = log_path

    log_level = os.environ.get("LSP_PROXY_LOG_LEVEL")
    if log_level:
        overrides.setdefault("logging", {})["level"] = log_level

    return overrides


def _string_list(value: Any, key: str) -> list[str]:
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ProxyConfigError(f"{key} must be a list of strings, got {value!r}")
    return list(value)


def _flag(value: Any, key: str) -> bool:
    if value is None:
        return False
    if not isinstance(value, bool):
        raise ProxyConfigError(f"{key} must be true or false, got {value!r}")
    return value


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    section = data.get(name)
    return section if isinstance(section, dict) else {}


def dict_to_config(data: dict[str, Any]) -> Config:
    """Convert merged dict to typed Config dataclass.

    Raises:
        ProxyConfigError: If a list-valued setting has the wrong shape.
    """
    server_data = _section(data, "server")
    command = server_data.get("command")
    server = ServerConfig(
        profile=server_data.get("profile"),
        command=_string_list(command, "server.command") if command is not None else [],
    )

    trace_data = _section(data, "trace")
    trace = TraceConfig(
        enabled=_flag(trace_data.get("enabled"), "trace.enabled"),
        file=trace_data.get("file"),
    )

    methods = _section(data, "intercept").get("methods")
    intercept = InterceptConfig(
        methods=_string_list(methods, "intercept.methods") if methods is not None else None,
    )

    log_data = _section(data, "logging")
    logging_config = LoggingConfig(
        level=log_data.get("level"),
        file=log_data.get("file"),
    )

    extra = {k: v for k, v in data.items() if k not in _KNOWN_SECTIONS}

    return Config(
        server=server,
        trace=trace,
        intercept=intercept,
        logging=logging_config,
        extra=extra,
    )


def load_config(
    project_root: str | os.PathLike[str] | None = None,
    reload: bool = False,
) -> Config:
    """Load and merge config from all sources.

    Priority order (highest to lowest):
    1. Environment variables
    2. Project config (<project_root>/.lspproxy/config.yaml)
    3. User config (~/.config/lspproxy/config.yaml or %APPDATA%)
    4. System config (/etc/lspproxy/ or %PROGRAMDATA%)

    Args:
        project_root: Directory for project-level config.
        reload: Force reload even if cached.

    Returns:
        Merged Config object.
    """
    global _cached_config

    if _cached_config is not None and not reload and project_root is None:
        return _cached_config

    configs: list[dict[str, Any]] = []

    for path in get_config_paths(project_root):
        config_data = load_yaml_file(path)
        if config_data:
            _log.debug("Loaded config from %s", path)
            configs.append(config_data)

    env_config = env_overrides()
    if env_config:
        configs.append(env_config)

    config = dict_to_config(merge_configs(*configs))

    # Cache only global config (no project_root)
    if project_root is None:
        _cached_config = config

    return config


def get_config() -> Config:
    """Get the cached global config, loading it on first use."""
    if _cached_config is None:
        return load_config()
    return _cached_config


def reset_config() -> None:
    """Reset cached config.

    Useful for testing or forcing a reload.
    """
    global _cached_config
    _cached_config = None
