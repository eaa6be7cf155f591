"""JSON-lines trace of proxied LSP traffic.

One record per line:

    {"timestamp": "2026-01-02T03:04:05.678Z", "direction": "client→server", "message": {...}}

Bodies that are not JSON are recorded as ``{"_raw": "<body text>"}``.
"""

from __future__ import annotations

import json
import os
from datetime import datetime, timezone
from enum import Enum
from typing import IO, Any

from lspproxy.logging import get_logger

log = get_logger("trace")


class Direction(str, Enum):
    """Which way a traced message travelled."""

    CLIENT_TO_SERVER = "client→server"
    SERVER_TO_CLIENT = "server→client"
    PROXY_TO_SERVER = "proxy→server"


def _timestamp() -> str:
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class TraceLog:
    """Append-only trace file shared by both relay directions.

    Opened once at startup and closed at shutdown. A TraceLog without a
    path records nothing.
    """

    def __init__(self, path: str | os.PathLike[str] | None = None) -> None:
        self._path = os.fspath(path) if path is not None else None
        self._stream: IO[str] | None = None
        if self._path is not None:
            # backslashreplace turns lone surrogates into valid JSON escapes
            self._stream = open(self._path, "a", encoding="utf-8", errors="backslashreplace")
            log.debug("Tracing traffic to %s", self._path)

    @classmethod
    def disabled(cls) -> TraceLog:
        return cls(None)

    @property
    def path(self) -> str | None:
        return self._path

    @property
    def enabled(self) -> bool:
        return self._stream is not None

    def record(self, direction: Direction, message: Any) -> None:
        if self._stream is None:
            return
        entry = {
            "timestamp": _timestamp(),
            "direction": direction.value,
            "message": message,
        }
        self._stream.write(json.dumps(entry, ensure_ascii=False, default=repr) + "\n")
        self._stream.flush()

    def record_raw(self, direction: Direction, text: str) -> None:
        self.record(direction, {"_raw": text})

    def close(self) -> None:
        if self._stream is not None:
            self._stream.close()
            self._stream = None

    def __enter__(self) -> TraceLog:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()
