"""LSP message framing with Content-Length headers.

This module implements the LSP base protocol framing for a proxy that
must never drop a byte:
- Incremental decoding of arbitrary chunks into frames
- Recovery from malformed headers and unparseable bodies
- Message writing with freshly computed Content-Length

LSP Header Format:
    Content-Length: <length>\r\n
    [Content-Type: <type>]\r\n
    \r\n
    <json-rpc-message>

The Content-Length header is required and specifies the byte count
of the JSON-RPC message body. Headers are separated from the body
by a blank line (double CRLF).
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any

HEADER_ENCODING = "ascii"
CONTENT_ENCODING = "utf-8"
HEADER_SEPARATOR = b"\r\n\r\n"

_CONTENT_LENGTH_RE = re.compile(r"Content-Length:\s*(\d+)", re.IGNORECASE)
_SURROGATE_RE = re.compile("[\ud800-\udfff]")


class LSPFramingError(Exception):
    """Error in LSP message framing.

    Raised when a message cannot be serialized to JSON for sending.
    Decoding never raises: bad input is passed through instead.
    """


class FrameKind(Enum):
    """How a chunk of the byte stream was resolved."""

    MESSAGE = "message"  # Complete frame with a JSON body
    UNPARSEABLE = "unparseable"  # Complete frame, body is not UTF-8 JSON
    MALFORMED = "malformed"  # Header block without Content-Length


@dataclass(frozen=True)
class DecodedFrame:
    """One resolved unit of the byte stream.

    Attributes:
        kind: How the bytes were resolved.
        raw: The exact bytes as received (header, separator and body).
        body: Body bytes, or None for a MALFORMED segment.
        message: Decoded JSON value; only meaningful for MESSAGE.
    """

    kind: FrameKind
    raw: bytes
    body: bytes | None = None
    message: Any = None

    @property
    def body_text(self) -> str:
        """Body decoded leniently, for logging unparseable frames."""
        if self.body is None:
            return ""
        return self.body.decode(CONTENT_ENCODING, errors="replace")


def _reject_constant(name: str) -> Any:
    raise ValueError(f"{name} is not valid JSON")


def decode_body(body: bytes) -> Any:
    """Decode a frame body as strict UTF-8 JSON.

    Raises:
        ValueError: If the body is not valid UTF-8 or not valid JSON.
            UnicodeDecodeError and JSONDecodeError are both subclasses.
    """
    return json.loads(body.decode(CONTENT_ENCODING), parse_constant=_reject_constant)


def find_content_length(header_bytes: bytes) -> int | None:
    """Extract the Content-Length value from a header block.

    The header name matches case-insensitively and the value must be a
    run of decimal digits.

    Example:
        >>> find_content_length(b"content-length: 42\\r\\nContent-Type: x")
        42
    """
    header_text = header_bytes.decode(HEADER_ENCODING, errors="replace")
    match = _CONTENT_LENGTH_RE.search(header_text)
    if match is None:
        return None
    return int(match.group(1))


class FrameDecoder:
    """Incremental decoder for one direction of an LSP byte stream.

    Bytes are buffered until a complete frame is available. Each call to
    :meth:`feed` returns every frame the buffer can resolve, in arrival
    order, so the result never depends on where chunk boundaries fall.

    Example:
        >>> decoder = FrameDecoder()
        >>> decoder.feed(b"Content-Length: 2\\r\\n\\r")
        []
        >>> [f.message for f in decoder.feed(b"\\n{}")]
        [{}]
    """

    def __init__(self) -> None:
        self._buffer = bytearray()

    @property
    def pending(self) -> int:
        """Number of buffered bytes not yet resolved into a frame."""
        return len(self._buffer)

    def feed(self, chunk: bytes) -> list[DecodedFrame]:
        """Append a chunk and drain all complete frames."""
        self._buffer += chunk
        frames: list[DecodedFrame] = []

        while True:
            sep = self._buffer.find(HEADER_SEPARATOR)
            if sep == -1:
                break

            body_start = sep + len(HEADER_SEPARATOR)
            content_length = find_content_length(bytes(self._buffer[:sep]))

            if content_length is None:
                # Forward the bad segment and resynchronize after it
                frames.append(
                    DecodedFrame(FrameKind.MALFORMED, raw=bytes(self._buffer[:body_start]))
                )
                del self._buffer[:body_start]
                continue

            message_end = body_start + content_length
            if len(self._buffer) < message_end:
                break

            raw = bytes(self._buffer[:message_end])
            body = raw[body_start:]
            del self._buffer[:message_end]

            try:
                message = decode_body(body)
            except ValueError:
                frames.append(DecodedFrame(FrameKind.UNPARSEABLE, raw=raw, body=body))
            else:
                frames.append(DecodedFrame(FrameKind.MESSAGE, raw=raw, body=body, message=message))

        return frames


def _escape_surrogate(match: re.Match[str]) -> str:
    return f"\\u{ord(match.group()):04x}"


def encode_message(msg: Any) -> bytes:
    """Serialize a JSON value into a complete LSP frame.

    Non-ASCII characters are written as UTF-8, and the Content-Length is
    the byte length of that encoding. Lone surrogates have no UTF-8 form
    and are written as ``\\uXXXX`` escapes instead.

    Raises:
        LSPFramingError: If the message cannot be serialized to JSON.

    Example:
        >>> encode_message({"jsonrpc": "2.0", "id": 1, "result": None})
        b'Content-Length: 38\\r\\n\\r\\n{"jsonrpc":"2.0","id":1,"result":null}'
    """
    try:
        body = json.dumps(msg, separators=(",", ":"), ensure_ascii=False, allow_nan=False)
    except (TypeError, ValueError) as e:
        raise LSPFramingError(f"Message cannot be serialized to JSON: {e}") from e

    try:
        body_bytes = body.encode(CONTENT_ENCODING)
    except UnicodeEncodeError:
        # Surrogates can only occur inside JSON strings
        body_bytes = _SURROGATE_RE.sub(_escape_surrogate, body).encode(CONTENT_ENCODING)

    header = f"Content-Length: {len(body_bytes)}\r\n\r\n"
    return header.encode(HEADER_ENCODING) + body_bytes
