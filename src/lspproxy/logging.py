"""Diagnostic logging for the LSP proxy.

Uses Python's standard logging module with support for:
- File logging via config or LSP_PROXY_LOG environment variable
- Stderr output only when stderr is a real console

This is the proxy's own diagnostic output. Message traffic is recorded
separately by lspproxy.trace as JSON lines.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from lspproxy.config.schema import LoggingConfig

# Per-frame diagnostics sit below DEBUG
TRACE = 5

logging.addLevelName(TRACE, "TRACE")

logger = logging.getLogger("lspproxy")

_initialized = False

_LEVEL_MAP = {
    "TRACE": TRACE,
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


class _LowercaseLevelFormatter(logging.Formatter):
    """Formatter that emits lowercase level names."""

    def format(self, record: logging.LogRecord) -> str:
        record.levelname = record.levelname.lower()
        return super().format(record)


def setup_logging(config: LoggingConfig | None = None) -> None:
    """Initialize diagnostic logging based on configuration.

    Call this once at startup. Subsequent calls are no-ops.

    Stderr is the language server's passthrough channel, so diagnostics
    only go there when it is attached to a terminal.

    Args:
        config: Optional LoggingConfig with level and file settings.
    """
    global _initialized
    if _initialized:
        return
    _initialized = True

    log_level = logging.WARNING
    if config and config.level:
        log_level = _LEVEL_MAP.get(config.level.upper(), logging.WARNING)

    logger.setLevel(log_level)

    formatter = _LowercaseLevelFormatter(
        "%(asctime)s %(name)s %(levelname)s: %(message)s", datefmt="%H:%M:%S"
    )

    log_path = config.file if config and config.file else os.environ.get("LSP_PROXY_LOG")

    if log_path:
        log_path = os.path.expanduser(log_path)
        try:
            file_handler = logging.FileHandler(log_path, mode="a", encoding="utf-8")
            file_handler.setLevel(log_level)
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)
        except OSError as e:
            if sys.stderr.isatty():
                print(f"[lspproxy] Failed to open log file: {e}", file=sys.stderr)
                _add_stderr_handler(formatter, log_level)
    elif sys.stderr.isatty():
        _add_stderr_handler(formatter, log_level)

    if not logger.handlers:
        # Keep records away from the last-resort stderr handler
        logger.addHandler(logging.NullHandler())


def _add_stderr_handler(formatter: logging.Formatter, level: int = logging.DEBUG) -> None:
    """Add a stderr handler to the logger."""
    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setLevel(level)
    stderr_handler.setFormatter(formatter)
    logger.addHandler(stderr_handler)


def get_logger(name: str | None = None) -> logging.Logger:
    """Get a logger instance.

    Args:
        name: Optional name for a child logger (e.g., "relay", "lifecycle").
              If None, returns the root lspproxy logger.

    Returns:
        A configured logger instance.
    """
    if name:
        return logger.getChild(name)
    return logger
