"""Helpers for building LSP wire data in tests."""

from __future__ import annotations

import json
from typing import Any


def frame(body: bytes, *, header_name: str = "Content-Length") -> bytes:
    """Wrap raw body bytes in an LSP header."""
    return f"{header_name}: {len(body)}\r\n\r\n".encode("ascii") + body


def frame_json(message: Any) -> bytes:
    """Frame a JSON value, serialized with default (spaced) separators."""
    return frame(json.dumps(message).encode("utf-8"))


def chunks_of(data: bytes, size: int) -> list[bytes]:
    return [data[i : i + size] for i in range(0, len(data), size)]
