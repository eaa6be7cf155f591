"""Answering server requests the client cannot handle.

Some servers send requests such as ``client/registerCapability`` and then
wait for a reply. When the editor on the other side never answers them,
the server stalls. The proxy replies ``null`` on the client's behalf and
keeps the request away from the client.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

DEFAULT_INTERCEPTED_METHODS = frozenset(
    {
        "client/registerCapability",
        "window/workDoneProgress/create",
        "window/workDoneProgress/cancel",
    }
)


@dataclass(frozen=True)
class Forward:
    """Pass the message on to the client unchanged."""

    message: Any


@dataclass(frozen=True)
class Reply:
    """Suppress the message and send ``response`` back to the server."""

    request_id: Any
    method: str

    @property
    def response(self) -> dict[str, Any]:
        return {"jsonrpc": "2.0", "id": self.request_id, "result": None}

    @property
    def trace_record(self) -> dict[str, Any]:
        return {"id": self.request_id, "intercepted": self.method}


Decision = Forward | Reply


class InterceptionPolicy:
    """Decides which server-originated requests the proxy answers itself.

    A message is intercepted when it is an object carrying an ``id`` key
    (a null id counts) and its ``method`` is in the configured set.
    """

    def __init__(self, methods: Iterable[str] = DEFAULT_INTERCEPTED_METHODS) -> None:
        self._methods = frozenset(methods)

    @property
    def methods(self) -> frozenset[str]:
        return self._methods

    def __bool__(self) -> bool:
        return bool(self._methods)

    def decide(self, message: Any) -> Decision:
        if isinstance(message, dict) and "id" in message:
            method = message.get("method")
            if isinstance(method, str) and method in self._methods:
                return Reply(request_id=message["id"], method=method)
        return Forward(message)
