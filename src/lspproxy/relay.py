"""Duplex relay between an LSP client and a language server.

Each direction owns its own FrameDecoder:

    client bytes -> decode -> normalize URIs -> trace -> encode -> server
    server bytes -> decode -> trace -> intercept? -> encode -> client
                                           \\-> reply -> server

The relay does no I/O of its own. Sinks are plain callables that take
bytes, so the same relay runs under asyncio or in a test with lists.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from lspproxy.logging import TRACE, get_logger
from lspproxy.trace import Direction, TraceLog
from lspproxy.transport.lsp.framing import (
    DecodedFrame,
    FrameDecoder,
    FrameKind,
    LSPFramingError,
    encode_message,
)
from lspproxy.transport.lsp.intercept import InterceptionPolicy, Reply
from lspproxy.transport.lsp.uri import normalize_uris

log = get_logger("relay")

Sink = Callable[[bytes], None]
Transform = Callable[[Any], Any]


class DuplexRelay:
    """Reframes traffic in both directions.

    Args:
        to_server: Receives bytes bound for the server's stdin.
        to_client: Receives bytes bound for the client (proxy stdout).
        trace: Traffic trace shared by both directions.
        policy: Interception policy for server requests. None or an empty
            policy forwards everything.
        transform: Applied to every decoded client message.
    """

    def __init__(
        self,
        to_server: Sink,
        to_client: Sink,
        trace: TraceLog | None = None,
        *,
        policy: InterceptionPolicy | None = None,
        transform: Transform | None = normalize_uris,
    ) -> None:
        self._to_server = to_server
        self._to_client = to_client
        self._trace = trace or TraceLog.disabled()
        self._policy = policy if policy else None
        self._transform = transform

        self._client_decoder = FrameDecoder()
        self._server_decoder = FrameDecoder()

        self.client_frames = 0
        self.server_frames = 0
        self.intercepted = 0

    @property
    def client_pending(self) -> int:
        return self._client_decoder.pending

    @property
    def server_pending(self) -> int:
        return self._server_decoder.pending

    def feed_client(self, chunk: bytes) -> None:
        """Handle bytes read from the client."""
        for frame in self._client_decoder.feed(chunk):
            self.client_frames += 1
            if frame.kind is FrameKind.MESSAGE:
                message = frame.message
                if self._transform is not None:
                    message = self._transform(message)
                self._trace.record(Direction.CLIENT_TO_SERVER, message)
                self._to_server(self._reencode(frame, message))
            else:
                self._pass_through(frame, Direction.CLIENT_TO_SERVER, self._to_server)

    def feed_server(self, chunk: bytes) -> None:
        """Handle bytes read from the server's stdout."""
        for frame in self._server_decoder.feed(chunk):
            if frame.kind is not FrameKind.MESSAGE:
                self.server_frames += 1
                self._pass_through(frame, Direction.SERVER_TO_CLIENT, self._to_client)
                continue

            self._trace.record(Direction.SERVER_TO_CLIENT, frame.message)

            if self._policy is not None:
                decision = self._policy.decide(frame.message)
                if isinstance(decision, Reply):
                    self._answer(decision)
                    continue

            self.server_frames += 1
            self._to_client(self._reencode(frame, frame.message))

    def _answer(self, reply: Reply) -> None:
        self.intercepted += 1
        log.debug("Answering %s (id=%r) on behalf of the client", reply.method, reply.request_id)
        self._trace.record(Direction.PROXY_TO_SERVER, reply.trace_record)
        self._to_server(encode_message(reply.response))

    def _pass_through(self, frame: DecodedFrame, direction: Direction, sink: Sink) -> None:
        if frame.kind is FrameKind.UNPARSEABLE:
            log.log(TRACE, "%s: unparseable body (%d bytes)", direction.value, len(frame.body or b""))
            self._trace.record_raw(direction, frame.body_text)
        else:
            log.debug("%s: header block without Content-Length, forwarding as-is", direction.value)
        sink(frame.raw)

    @staticmethod
    def _reencode(frame: DecodedFrame, message: Any) -> bytes:
        try:
            return encode_message(message)
        except LSPFramingError as e:
            # A transform may hand back values JSON cannot represent
            log.warning("Could not re-encode message, forwarding original bytes: %s", e)
            return frame.raw
