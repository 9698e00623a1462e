from __future__ import annotations

from spcstr.hooks.events import HookEvent, HookName

from .base import HookHandler


class SessionEndHandler(HookHandler):
    """Mark the session finished and close any agent runs still open."""

    name = HookName.SESSION_END.value

    def handle(self, event: HookEvent) -> None:
        session_id = event.require("session_id")
        with self.manager.edit_state(session_id) as state:
            state.session_active = False
            state.settle_turn()
            state.close_open_agents()
