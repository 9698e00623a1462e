from __future__ import annotations

from spcstr.hooks.events import HookEvent, HookName

from .base import HookHandler


class StopHandler(HookHandler):
    """Turn-level halt: the session goes inactive and half-seen tool calls are dropped; agents and history stay."""

    name = HookName.STOP.value

    def handle(self, event: HookEvent) -> None:
        session_id = event.require("session_id")
        with self.manager.edit_state(session_id) as state:
            state.session_active = False
            state.settle_turn()
