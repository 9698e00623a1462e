"""Name -> handler dispatch table."""
from __future__ import annotations

import threading
from enum import Enum
from typing import TYPE_CHECKING, Dict, List, Optional

from .errors import HookNotFoundError

if TYPE_CHECKING:
    from .handlers.base import HookHandler


def _key(name: object) -> str:
    return name.value if isinstance(name, Enum) else str(name)


class HookRegistry:
    """Thread-safe registry of hook handlers keyed by hook name.

    Registering a name twice replaces the earlier handler. Handlers execute
    outside the registry lock, so a slow handler never blocks lookups.
    """

    def __init__(self) -> None:
        self._handlers: Dict[str, "HookHandler"] = {}
        self._lock = threading.Lock()

    def register(self, handler: "HookHandler") -> None:
        name = _key(handler.name)
        if not name:
            raise ValueError("handler name must be non-empty")
        with self._lock:
            self._handlers[name] = handler

    def get_handler(self, name: str) -> Optional["HookHandler"]:
        with self._lock:
            return self._handlers.get(_key(name))

    def execute(self, name: str, payload: bytes | str) -> None:
        handler = self.get_handler(name)
        if handler is None:
            raise HookNotFoundError(_key(name))
        handler.execute(payload)

    def list_hooks(self) -> List[str]:
        with self._lock:
            return sorted(self._handlers)

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return _key(name) in self._handlers

    def __len__(self) -> int:
        with self._lock:
            return len(self._handlers)


DEFAULT_REGISTRY = HookRegistry()


__all__ = ["DEFAULT_REGISTRY", "HookRegistry"]
