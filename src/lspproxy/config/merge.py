"""Deep merge for cascading config dicts."""

from __future__ import annotations

from typing import Any


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return a new dict with ``override`` layered on top of ``base``.

    Nested dicts merge key by key. Lists and scalars replace the base
    value. A None in ``override`` leaves the base value in place, so a
    partial file never unsets what a lower level configured.
    """
    merged = dict(base)
    for key, value in override.items():
        if value is None:
            continue
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = deep_merge(current, value)
        else:
            merged[key] = value
    return merged


def merge_configs(*configs: dict[str, Any]) -> dict[str, Any]:
    """Merge config dicts left to right; later ones win."""
    merged: dict[str, Any] = {}
    for config in filter(None, configs):
        merged = deep_merge(merged, config)
    return merged
