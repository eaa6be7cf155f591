"""Language server profiles.

A profile names the server executable to spawn, the requests the proxy
answers on its behalf, and how the traffic trace is configured:

    csharp      csharp-ls                   intercepts; trace when DEBUG is set
    typescript  typescript-language-server  trace always on, path required
    angular     ngserver                    trace when DEBUG is set
"""

from __future__ import annotations

import os
import shutil
from collections.abc import Sequence
from dataclasses import dataclass

from lspproxy.config.loader import ProxyConfigError
from lspproxy.config.schema import Config
from lspproxy.transport.lsp.intercept import DEFAULT_INTERCEPTED_METHODS, InterceptionPolicy

DEFAULT_TRACE_FILE = "lsp-log.jsonl"


@dataclass(frozen=True)
class ServerProfile:
    """Static description of a proxied language server."""

    name: str
    command: tuple[str, ...]
    intercepted_methods: frozenset[str] = frozenset()
    trace_file_env: str = "LSP_LOG_FILE"
    trace_required: bool = False


PROFILES: dict[str, ServerProfile] = {
    "csharp": ServerProfile(
        name="csharp",
        command=("csharp-ls",),
        intercepted_methods=DEFAULT_INTERCEPTED_METHODS,
    ),
    "typescript": ServerProfile(
        name="typescript",
        command=("typescript-language-server",),
        trace_file_env="TYPESCRIPT_LSP_LOG_FILE",
        trace_required=True,
    ),
    "angular": ServerProfile(
        name="angular",
        command=("ngserver",),
    ),
}

DEFAULT_PROFILE = "csharp"


@dataclass(frozen=True)
class ProxySettings:
    """Everything the lifecycle manager needs to start a session."""

    profile: ServerProfile
    command: list[str]
    trace_file: str | None
    policy: InterceptionPolicy


def get_profile(name: str) -> ServerProfile:
    try:
        return PROFILES[name]
    except KeyError:
        known = ", ".join(sorted(PROFILES))
        raise ProxyConfigError(f"Unknown server profile {name!r} (known: {known})") from None


def build_command(base: Sequence[str], argv: Sequence[str]) -> list[str]:
    """Resolve the executable and append the proxy's own arguments.

    The executable is looked up on PATH so Windows ``.cmd`` shims work
    without a shell. An unresolvable name is kept so the spawn fails
    with a useful message.
    """
    if not base:
        raise ProxyConfigError("Server command is empty")
    executable = shutil.which(base[0]) or base[0]
    return [executable, *base[1:], *argv]


def resolve_trace_file(profile: ServerProfile, config: Config) -> str | None:
    """Decide where traffic is traced, or None when tracing is off.

    Raises:
        ProxyConfigError: If the profile always traces and no path is set.
    """
    profile_path = os.environ.get(profile.trace_file_env) or None
    if profile.trace_required:
        path = profile_path or config.trace.file
        if not path:
            raise ProxyConfigError(
                f"{profile.name} proxy requires a trace file; set {profile.trace_file_env}"
            )
        return path

    if not config.trace.enabled:
        return None
    return config.trace.file or profile_path or DEFAULT_TRACE_FILE


def resolve_settings(
    config: Config,
    argv: Sequence[str],
    profile_name: str | None = None,
) -> ProxySettings:
    """Combine a profile, configuration and command-line arguments.

    Args:
        config: Loaded configuration.
        argv: Arguments passed to the proxy, forwarded to the server unchanged.
        profile_name: Profile fixed by the entry point; overrides config.

    Raises:
        ProxyConfigError: If the profile is unknown or a required setting is missing.
    """
    profile = get_profile(profile_name or config.server.profile or DEFAULT_PROFILE)

    base = config.server.command or list(profile.command)
    methods = config.intercept.methods
    policy = InterceptionPolicy(profile.intercepted_methods if methods is None else methods)

    return ProxySettings(
        profile=profile,
        command=build_command(base, argv),
        trace_file=resolve_trace_file(profile, config),
        policy=policy,
    )
