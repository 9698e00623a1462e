from __future__ import annotations

from spcstr.hooks.events import HookEvent, HookName, parse_timestamp

from .base import HookHandler


class NotificationHandler(HookHandler):
    name = HookName.NOTIFICATION.value

    def handle(self, event: HookEvent) -> None:
        session_id = event.require("session_id")
        message = event.require("message")
        level = event.get_str("level", "info")
        kind = event.get_str("type", "hook")
        timestamp = parse_timestamp(event.get("timestamp"))
        with self.manager.edit_state(session_id) as state:
            state.add_notification(message, type=kind, level=level, timestamp=timestamp)
