"""Entry points for running the LSP proxy.

Usage:
    python -m lspproxy [server args...]
    csharp-lsp-proxy [server args...]
    typescript-lsp-proxy --stdio
    angular-lsp-proxy --stdio --tsProbeLocations ... --ngProbeLocations ...

The proxy is launched in place of the language server, with the same
arguments. Every argument is passed through to the server unchanged, so
the proxy itself takes no options; it is configured by environment
variables and config.yaml (see lspproxy.config).

    DEBUG=1 LSP_LOG_FILE=/tmp/lsp.jsonl csharp-lsp-proxy
"""

from __future__ import annotations

import asyncio
import os
import sys
from collections.abc import Sequence

from rich.markup import escape

from lspproxy.config import ProxyConfigError, load_config
from lspproxy.lifecycle import ExitStatus, ProcessLifecycle, console, exit_with
from lspproxy.logging import get_logger, setup_logging
from lspproxy.profiles import resolve_settings
from lspproxy.trace import TraceLog

log = get_logger()


def _fail(message: str) -> ExitStatus:
    log.error("%s", message)
    console.print(f"[red]lsp-proxy:[/red] {escape(message)}", soft_wrap=True)
    return ExitStatus(1)


def run_proxy(profile_name: str | None = None, argv: Sequence[str] | None = None) -> ExitStatus:
    """Configure and run one proxy session, returning how it ended."""
    if argv is None:
        argv = sys.argv[1:]

    try:
        config = load_config(project_root=os.getcwd())
    except ProxyConfigError as e:
        return _fail(str(e))

    setup_logging(config.logging)

    try:
        settings = resolve_settings(config, argv, profile_name)
    except ProxyConfigError as e:
        return _fail(str(e))

    try:
        trace = TraceLog(settings.trace_file) if settings.trace_file else TraceLog.disabled()
    except OSError as e:
        return _fail(f"cannot open trace file: {e}")

    log.info(
        "Starting %s proxy: %s (trace=%s, intercepts=%d)",
        settings.profile.name,
        " ".join(settings.command),
        settings.trace_file or "off",
        len(settings.policy.methods),
    )

    lifecycle = ProcessLifecycle(settings.command, trace, policy=settings.policy)
    return asyncio.run(lifecycle.run())


def main() -> None:
    """Run the proxy for the configured profile (LSP_PROXY_PROFILE)."""
    exit_with(run_proxy())


def csharp_main() -> None:
    """Run the proxy in front of csharp-ls."""
    exit_with(run_proxy("csharp"))


def typescript_main() -> None:
    """Run the proxy in front of typescript-language-server."""
    exit_with(run_proxy("typescript"))


def angular_main() -> None:
    """Run the proxy in front of the Angular language server."""
    exit_with(run_proxy("angular"))


if __name__ == "__main__":
    main()
