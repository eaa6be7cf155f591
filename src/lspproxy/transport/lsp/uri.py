"""Canonical file URIs for client-to-server traffic.

Clients disagree on how they spell file URIs: ``file://C:\\src\\`` and
``file:///home/me/`` both show up. Servers key documents
by URI, so every ``file://`` string in an outgoing message is rewritten to
``file:///`` followed by a forward-slash path with no trailing slash.
"""

from __future__ import annotations

import re
from typing import Any

FILE_SCHEME = "file://"
CANONICAL_PREFIX = "file:///"

_PREFIX_RE = re.compile(r"^file:/{2,3}")
_TRAILING_SLASHES_RE = re.compile(r"/+\Z")


def normalize_file_uri(uri: str) -> str:
    """Rewrite a file URI into its canonical form.

    Strings that do not start with ``file://`` are returned unchanged.

    Example:
        >>> normalize_file_uri("file://C:\\\\foo\\\\bar\\\\")
        'file:///C:/foo/bar'
        >>> normalize_file_uri("file:///")
        'file:///'
    """
    if not uri.startswith(FILE_SCHEME):
        return uri

    path = _PREFIX_RE.sub("", uri, count=1).replace("\\", "/")

    # A bare root "/" survives
    if len(path) > 1:
        path = _TRAILING_SLASHES_RE.sub("", path)

    return CANONICAL_PREFIX + path


def normalize_uris(value: Any) -> Any:
    """Return a copy of a JSON value with every file URI string normalized.

    Object keys are left alone; only values are rewritten.
    """
    if isinstance(value, str):
        return normalize_file_uri(value)
    if isinstance(value, list):
        return [normalize_uris(item) for item in value]
    if isinstance(value, dict):
        return {key: normalize_uris(item) for key, item in value.items()}
    return value
