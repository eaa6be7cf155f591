"""LSP wire handling for the proxy.

Framing, URI normalization and request interception, all free of I/O
so they can be driven from any event loop or from tests.
"""

from lspproxy.transport.lsp.framing import (
    DecodedFrame,
    FrameDecoder,
    FrameKind,
    LSPFramingError,
    decode_body,
    encode_message,
    find_content_length,
)
from lspproxy.transport.lsp.intercept import (
    DEFAULT_INTERCEPTED_METHODS,
    Forward,
    InterceptionPolicy,
    Reply,
)
from lspproxy.transport.lsp.uri import normalize_file_uri, normalize_uris

__all__ = [
    "DEFAULT_INTERCEPTED_METHODS",
    "DecodedFrame",
    "Forward",
    "FrameDecoder",
    "FrameKind",
    "InterceptionPolicy",
    "LSPFramingError",
    "Reply",
    "decode_body",
    "encode_message",
    "find_content_length",
    "normalize_file_uri",
    "normalize_uris",
]
