"""session_start: create (or reset) the session's state document."""
from __future__ import annotations

from spcstr.hooks.events import HookEvent, HookName
from spcstr.state.errors import SessionNotFoundError
from spcstr.state.logger import log_event

from .base import HookHandler

# Sources that continue an existing conversation rather than starting one.
CONTINUING_SOURCES = frozenset({"resume", "compact"})


class SessionStartHandler(HookHandler):
    """Initialize state for a new session.

    ``startup`` and ``clear`` always reset the document. ``resume`` and
    ``compact`` reactivate an existing document so its history survives
    framework restarts; an unreadable one goes through corruption recovery
    and a missing one is initialized.
    """

    name = HookName.SESSION_START.value

    def handle(self, event: HookEvent) -> None:
        session_id = event.require("session_id")
        source = event.require("source")
        manager = self.manager

        if source in CONTINUING_SOURCES:
            try:
                with manager.edit_state(session_id) as state:
                    state.session_active = True
            except SessionNotFoundError:
                pass
            else:
                log_event(
                    event="session_resumed",
                    component="hooks",
                    hook=self.name,
                    session_id=session_id,
                    source=source,
                )
                return

        manager.initialize_state(session_id)
        log_event(event="session_started", component="hooks", hook=self.name, session_id=session_id, source=source)
