"""Root pytest configuration for all tests."""

from __future__ import annotations

import pytest

from lspproxy.config import reset_config

pytest_plugins = ("pytest_asyncio",)

_PROXY_ENV_VARS = (
    "DEBUG",
    "LSP_LOG_FILE",
    "LSP_PROXY_PROFILE",
    "LSP_PROXY_LOG",
    "LSP_PROXY_LOG_LEVEL",
    "TYPESCRIPT_LSP_LOG_FILE",
)


@pytest.fixture(autouse=True)
def clean_proxy_env(monkeypatch: pytest.MonkeyPatch, tmp_path_factory: pytest.TempPathFactory):
    """Isolate every test from the developer's proxy settings."""
    for name in _PROXY_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path_factory.mktemp("xdg")))
    reset_config()
    yield
    reset_config()
