"""lspproxy: a reframing proxy between an LSP client and a language server."""

__version__ = "0.1.0"

# Public API
from lspproxy.config import Config, ProxyConfigError, load_config
from lspproxy.lifecycle import ExitStatus, LifecycleState, ProcessLifecycle, exit_with
from lspproxy.profiles import PROFILES, ServerProfile, resolve_settings
from lspproxy.relay import DuplexRelay
from lspproxy.trace import Direction, TraceLog
from lspproxy.transport.lsp import (
    DecodedFrame,
    FrameDecoder,
    FrameKind,
    InterceptionPolicy,
    LSPFramingError,
    encode_message,
    normalize_file_uri,
    normalize_uris,
)

__all__ = [
    # Session
    "ProcessLifecycle",
    "LifecycleState",
    "ExitStatus",
    "exit_with",
    "DuplexRelay",
    # Wire
    "FrameDecoder",
    "DecodedFrame",
    "FrameKind",
    "LSPFramingError",
    "encode_message",
    "normalize_file_uri",
    "normalize_uris",
    "InterceptionPolicy",
    # Trace
    "TraceLog",
    "Direction",
    # Configuration
    "Config",
    "ProxyConfigError",
    "load_config",
    "PROFILES",
    "ServerProfile",
    "resolve_settings",
]
