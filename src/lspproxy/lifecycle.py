"""Process lifecycle for one proxied language server session.

States: STARTING -> RUNNING -> EXITING -> TERMINATED. A failed spawn goes
straight from STARTING to TERMINATED.

Everything runs on a single asyncio loop: one task pumps the client's
bytes into the relay, one pumps the server's stdout, and the session ends
when the child process exits. The child's stderr is inherited untouched.

Usage:
    trace = TraceLog(path)
    lifecycle = ProcessLifecycle(["csharp-ls"], trace, policy=InterceptionPolicy())
    status = asyncio.run(lifecycle.run())
    exit_with(status)
"""

from __future__ import annotations

import asyncio
import os
import signal
import sys
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any, NoReturn

from rich.console import Console
from rich.markup import escape

from lspproxy.logging import get_logger
from lspproxy.relay import DuplexRelay, Transform
from lspproxy.trace import TraceLog
from lspproxy.transport.lsp.intercept import InterceptionPolicy
from lspproxy.transport.lsp.uri import normalize_uris

log = get_logger("lifecycle")

# stdout carries the protocol, so user-facing errors go to stderr
console = Console(stderr=True)

READ_SIZE = 64 * 1024

# How long the server's remaining stdout may take to drain after it exits
DRAIN_TIMEOUT = 2.0

FORWARDED_SIGNALS = (signal.SIGTERM, signal.SIGINT)

FAILURE_EXIT_CODE = 1


class LifecycleState(Enum):
    STARTING = "starting"
    RUNNING = "running"
    EXITING = "exiting"
    TERMINATED = "terminated"


@dataclass(frozen=True)
class ExitStatus:
    """How the proxy should end.

    Attributes:
        code: Exit code to use when no signal needs replaying.
        signal: Signal that killed the child, to be raised on the proxy itself.
    """

    code: int = FAILURE_EXIT_CODE
    signal: int | None = None

    @classmethod
    def from_returncode(cls, returncode: int | None) -> ExitStatus:
        """Map an asyncio returncode (negative means killed by signal)."""
        if returncode is None:
            return cls(FAILURE_EXIT_CODE)
        if returncode < 0:
            return cls(FAILURE_EXIT_CODE, signal=-returncode)
        return cls(returncode)


def exit_with(status: ExitStatus) -> NoReturn:
    """End the proxy the way the child ended.

    A signal death is replayed on the proxy's own pid with the default
    disposition restored, so the parent sees the same cause of death.
    """
    if status.signal is not None:
        log.debug("Re-raising signal %d on the proxy", status.signal)
        signal.signal(status.signal, signal.SIG_DFL)
        os.kill(os.getpid(), status.signal)
    sys.exit(status.code)


async def open_stdin_reader() -> asyncio.StreamReader:
    """Connect the proxy's stdin to an asyncio StreamReader."""
    loop = asyncio.get_running_loop()
    reader = asyncio.StreamReader()
    protocol = asyncio.StreamReaderProtocol(reader)
    await loop.connect_read_pipe(lambda: protocol, sys.stdin.buffer)
    return reader


async def open_stdout_writer() -> asyncio.StreamWriter:
    """Connect the proxy's stdout to an asyncio StreamWriter.

    Raises:
        ValueError: If stdout is not a pipe, socket or character device.
    """
    loop = asyncio.get_running_loop()
    transport, protocol = await loop.connect_write_pipe(
        asyncio.streams.FlowControlMixin, sys.stdout.buffer
    )
    return asyncio.StreamWriter(transport, protocol, None, loop)


def write_stdout(data: bytes) -> None:
    """Blocking stdout write, used when stdout is a regular file."""
    sys.stdout.buffer.write(data)
    sys.stdout.buffer.flush()


def _silence_stdout() -> None:
    # Keep interpreter shutdown from flushing into the broken pipe again
    devnull = os.open(os.devnull, os.O_WRONLY)
    os.dup2(devnull, sys.stdout.fileno())
    os.close(devnull)


def report_spawn_failure(command: Sequence[str], error: OSError) -> None:
    log.error("Failed to start %s: %s", command[0] if command else "<empty>", error)
    console.print(
        f"[red]lsp-proxy: failed to start child:[/red] {escape(str(error))}", soft_wrap=True
    )


class ProcessLifecycle:
    """Owns the language server child process for one session.

    Args:
        command: Executable and arguments for the language server.
        trace: Traffic trace; closed when the session ends.
        policy: Interception policy for server-to-client requests.
        transform: Applied to every decoded client-to-server message.
    """

    def __init__(
        self,
        command: Sequence[str],
        trace: TraceLog | None = None,
        *,
        policy: InterceptionPolicy | None = None,
        transform: Transform | None = normalize_uris,
    ) -> None:
        self.command = list(command)
        self.trace = trace or TraceLog.disabled()
        self.policy = policy
        self.transform = transform
        self.state = LifecycleState.STARTING
        self.relay: DuplexRelay | None = None

        self._process: asyncio.subprocess.Process | None = None
        self._client_write: Callable[[bytes], None] = write_stdout
        self._client_writer: asyncio.StreamWriter | None = None
        self._client_broken = False
        self._installed_signals: list[signal.Signals] = []
        self._previous_handlers: dict[signal.Signals, Any] = {}

    @property
    def pid(self) -> int | None:
        return self._process.pid if self._process is not None else None

    def _set_state(self, state: LifecycleState) -> None:
        log.debug("Lifecycle %s -> %s", self.state.value, state.value)
        self.state = state

    def forward_signal(self, sig: int) -> None:
        """Send a signal to the child so its own shutdown path runs."""
        process = self._process
        if process is None or process.returncode is not None:
            return
        log.info("Forwarding signal %d to server (pid=%d)", sig, process.pid)
        try:
            process.send_signal(sig)
        except ProcessLookupError:
            pass  # Already gone; wait() will report it
        except ValueError:
            # Windows only supports a few signals; terminate instead
            process.terminate()

    def terminate_child(self) -> None:
        self.forward_signal(signal.SIGTERM)

    async def run(
        self,
        client_reader: asyncio.StreamReader | None = None,
        client_write: Callable[[bytes], None] | None = None,
        *,
        install_signal_handlers: bool = True,
    ) -> ExitStatus:
        """Spawn the server and relay traffic until it exits.

        Args:
            client_reader: Source of client bytes. Defaults to the proxy's stdin.
            client_write: Sink for bytes to the client. Defaults to an asyncio
                writer on stdout, drained after every server chunk.
            install_signal_handlers: Forward SIGTERM/SIGINT to the child.

        Returns:
            The status the proxy should exit with.
        """
        try:
            self._process = await asyncio.create_subprocess_exec(
                *self.command,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=None,
            )
        except OSError as e:
            report_spawn_failure(self.command, e)
            self.trace.close()
            self._set_state(LifecycleState.TERMINATED)
            return ExitStatus(FAILURE_EXIT_CODE)

        process = self._process
        log.info("Started %s (pid=%d)", self.command[0], process.pid)
        self._set_state(LifecycleState.RUNNING)

        if client_write is not None:
            self._client_write = client_write
        else:
            try:
                self._client_writer = await open_stdout_writer()
            except ValueError:
                log.debug("stdout is not a pipe, writing to it directly")
            else:
                self._client_write = self._client_writer.write
        if install_signal_handlers:
            self._install_signal_handlers()

        self.relay = DuplexRelay(
            self._write_server,
            self._write_client,
            self.trace,
            policy=self.policy,
            transform=self.transform,
        )

        client_task: asyncio.Task[None] | None = None
        server_task = asyncio.create_task(self._pump_server(), name="server->client")
        server_task.add_done_callback(self._on_pump_done)
        try:
            if client_reader is None:
                client_reader = await open_stdin_reader()
            client_task = asyncio.create_task(self._pump_client(client_reader), name="client->server")
            client_task.add_done_callback(self._on_pump_done)

            returncode = await process.wait()
        finally:
            self._set_state(LifecycleState.EXITING)
            await self._shutdown(server_task, client_task)

        status = ExitStatus.from_returncode(returncode)
        log.info(
            "Server exited (code=%s, signal=%s); relayed %d client frames, "
            "%d server frames, %d intercepted",
            returncode if status.signal is None else None,
            status.signal,
            self.relay.client_frames,
            self.relay.server_frames,
            self.relay.intercepted,
        )
        self._set_state(LifecycleState.TERMINATED)
        return status

    async def _shutdown(
        self,
        server_task: asyncio.Task[None],
        client_task: asyncio.Task[None] | None,
    ) -> None:
        try:
            if self._process is not None and self._process.returncode is None:
                # Cancelled before the child exited
                self._process.kill()
                await self._process.wait()

            _, pending = await asyncio.wait({server_task}, timeout=DRAIN_TIMEOUT)
            if pending:
                log.warning("Server stdout still open %.1fs after exit", DRAIN_TIMEOUT)
            await self._close_client_writer()

            for task in (server_task, client_task):
                if task is not None and not task.done():
                    task.cancel()
            await asyncio.gather(
                *(t for t in (server_task, client_task) if t is not None),
                return_exceptions=True,
            )
        finally:
            self._remove_signal_handlers()
            self.trace.close()

    def _on_pump_done(self, task: asyncio.Task[None]) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            log.error("%s pump failed: %s", task.get_name(), exc, exc_info=exc)
            self.terminate_child()

    async def _pump_client(self, reader: asyncio.StreamReader) -> None:
        assert self.relay is not None
        try:
            while chunk := await reader.read(READ_SIZE):
                self.relay.feed_client(chunk)
                await self._drain_server()
        except OSError as e:
            log.warning("Client input failed (%s), stopping server", e)
            self.terminate_child()
            return

        log.debug("Client input closed, closing server stdin")
        if self._process is not None and self._process.stdin is not None:
            self._process.stdin.close()

    async def _pump_server(self) -> None:
        assert self._process is not None and self._process.stdout is not None
        stdout = self._process.stdout
        while chunk := await stdout.read(READ_SIZE):
            assert self.relay is not None
            self.relay.feed_server(chunk)
            # Interception replies go back to the server
            await self._drain_server()
            await self._drain_client()
        log.debug("Server stdout closed")

    async def _drain_client(self) -> None:
        writer = self._client_writer
        if writer is None or self._client_broken:
            return
        try:
            await writer.drain()
        except ConnectionError as e:
            self._client_lost(e)

    async def _close_client_writer(self) -> None:
        writer = self._client_writer
        if writer is None:
            return
        if not self._client_broken:
            # Wait for the write buffer to empty, not just drop below the high mark
            writer.transport.set_write_buffer_limits(high=0)
            try:
                await asyncio.wait_for(writer.drain(), timeout=DRAIN_TIMEOUT)
            except TimeoutError:
                log.warning("Client did not read remaining output within %.1fs", DRAIN_TIMEOUT)
            except ConnectionError as e:
                log.debug("Client output closed during flush: %s", e)
        writer.close()

    async def _drain_server(self) -> None:
        stdin = self._process.stdin if self._process is not None else None
        if stdin is None or stdin.is_closing():
            return
        try:
            await stdin.drain()
        except ConnectionError as e:
            log.debug("Server stdin closed: %s", e)

    def _write_server(self, data: bytes) -> None:
        stdin = self._process.stdin if self._process is not None else None
        if stdin is None or stdin.is_closing():
            log.debug("Dropping %d bytes for closed server stdin", len(data))
            return
        try:
            stdin.write(data)
        except ConnectionError as e:
            log.debug("Server stdin closed: %s", e)

    def _write_client(self, data: bytes) -> None:
        if self._client_broken:
            return
        try:
            self._client_write(data)
        except ConnectionError as e:
            self._client_lost(e)

    def _client_lost(self, error: Exception) -> None:
        self._client_broken = True
        log.warning("Client output failed (%s), stopping server", error)
        if self._client_write is write_stdout:
            _silence_stdout()
        self.terminate_child()

    def _install_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        for sig in FORWARDED_SIGNALS:
            try:
                loop.add_signal_handler(sig, self.forward_signal, sig)
            except (NotImplementedError, RuntimeError):
                # No loop signal support (Windows); hop onto the loop thread
                self._previous_handlers[sig] = signal.signal(
                    sig,
                    lambda signum, _frame: loop.call_soon_threadsafe(self.forward_signal, signum),
                )
            self._installed_signals.append(sig)

    def _remove_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        for sig in self._installed_signals:
            if sig in self._previous_handlers:
                signal.signal(sig, self._previous_handlers.pop(sig))
            else:
                loop.remove_signal_handler(sig)
        self._installed_signals.clear()
