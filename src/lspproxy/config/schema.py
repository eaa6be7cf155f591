"""Configuration schema dataclasses for the LSP proxy.

Defines the structure of configuration at all levels (system, user, project).
All fields are optional to support partial configs that merge together.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class ServerConfig:
    """Which language server to run behind the proxy.

    Example config.yaml:
        server:
          profile: csharp
          command: ["/opt/csharp-ls/csharp-ls", "--loglevel", "info"]
    """

    profile: str | None = None  # csharp, typescript, angular
    command: list[str] = field(default_factory=list)  # Replaces the profile command


@dataclass
class TraceConfig:
    """JSON-lines traffic trace settings."""

    enabled: bool = False  # Set by the DEBUG env var
    file: str | None = None  # Trace path (LSP_LOG_FILE)


@dataclass
class InterceptConfig:
    """Server-to-client requests the proxy answers itself.

    None leaves the profile's own method set in place; an empty list
    disables interception entirely.
    """

    methods: list[str] | None = None


@dataclass
class LoggingConfig:
    """Diagnostic logging configuration."""

    level: str | None = None  # TRACE, DEBUG, INFO, WARNING, ERROR
    file: str | None = None  # Log file path


@dataclass
class Config:
    """Root configuration object."""

    server: ServerConfig = field(default_factory=ServerConfig)
    trace: TraceConfig = field(default_factory=TraceConfig)
    intercept: InterceptConfig = field(default_factory=InterceptConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    # Unknown top-level sections are kept as-is
    extra: dict[str, Any] = field(default_factory=dict)
