"""Configuration management for the LSP proxy.

Provides hierarchical YAML-based configuration with:
- System-level config (/etc/lspproxy/ or %PROGRAMDATA%)
- User-level config (~/.config/lspproxy/ or %APPDATA%)
- Project-level config (<project>/.lspproxy/)
- Environment variable overrides (highest priority)

Example usage:
    from lspproxy.config import load_config

    config = load_config(project_root=os.getcwd())
    print(config.server.profile)
    print(config.trace.enabled)
"""

from lspproxy.config.loader import (
    ProxyConfigError,
    get_config,
    load_config,
    reset_config,
)
from lspproxy.config.paths import (
    get_config_paths,
    get_project_config_path,
    get_system_config_path,
    get_user_config_path,
)
from lspproxy.config.schema import (
    Config,
    InterceptConfig,
    LoggingConfig,
    ServerConfig,
    TraceConfig,
)

__all__ = [
    # Main API
    "Config",
    "ProxyConfigError",
    "load_config",
    "get_config",
    "reset_config",
    # Schema types
    "ServerConfig",
    "TraceConfig",
    "InterceptConfig",
    "LoggingConfig",
    # Path utilities
    "get_config_paths",
    "get_system_config_path",
    "get_user_config_path",
    "get_project_config_path",
]
