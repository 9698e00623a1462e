from __future__ import annotations

from spcstr.hooks.events import HookEvent, HookName

from .base import HookHandler


class PreCompactHandler(HookHandler):
    name = HookName.PRE_COMPACT.value

    def handle(self, event: HookEvent) -> None:
        session_id = event.require("session_id")
        # Nothing to record; the write itself bumps updated_at.
        with self.manager.edit_state(session_id):
            pass
