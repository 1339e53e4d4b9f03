"""Watchlog: watched and to-watch catalog tracker."""

from __future__ import annotations

from importlib import import_module
from typing import Any

__all__ = ["app", "create_app", "open_session"]

_EXPORTS = {
    "app": "watchlog.server",
    "create_app": "watchlog.server",
    "open_session": "watchlog.client",
}


def __getattr__(name: str) -> Any:
    if name in _EXPORTS:
        module = import_module(_EXPORTS[name])
        return getattr(module, name)
    raise AttributeError(f"module 'watchlog' has no attribute {name}")
