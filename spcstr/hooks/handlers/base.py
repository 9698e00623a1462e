"""Common handler contract."""
from __future__ import annotations

from pathlib import Path
from typing import ClassVar, Optional

from spcstr.config import SpcstrConfig, load_config
from spcstr.hooks.events import HookEvent, parse_event
from spcstr.state.manager import StateManager


class HookHandler:
    """Base class for one hook event.

    Subclasses set ``name`` and implement ``handle``. A handler touches nothing
    but the session state file, and does so through one ``edit_state`` block
    so each event is applied atomically.

    The manager and config default to the process working directory, which the
    executor points at the project for the duration of a call.
    """

    name: ClassVar[str] = ""

    def __init__(self, manager: Optional[StateManager] = None, config: Optional[SpcstrConfig] = None) -> None:
        self._manager = manager
        self._config = config

    @property
    def config(self) -> SpcstrConfig:
        if self._config is not None:
            return self._config
        return load_config(Path.cwd())

    @property
    def manager(self) -> StateManager:
        if self._manager is not None:
            return self._manager
        return StateManager.for_project(Path.cwd(), self.config)

    def execute(self, payload: bytes | str) -> None:
        self.handle(parse_event(payload))

    def handle(self, event: HookEvent) -> None:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"


__all__ = ["HookHandler"]
