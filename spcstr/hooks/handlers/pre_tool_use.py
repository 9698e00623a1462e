"""pre_tool_use: count the call, track sub-agent spawns, screen Bash commands."""
from __future__ import annotations

from spcstr.hooks.errors import BlockedOperationError
from spcstr.hooks.events import HookEvent, HookName
from spcstr.hooks.safety import find_dangerous_pattern
from spcstr.state.logger import log_event

from .base import HookHandler


def bash_command(event: HookEvent) -> str:
    command = event.tool_input.get("command")
    return command if isinstance(command, str) else ""


class PreToolUseHandler(HookHandler):
    name = HookName.PRE_TOOL_USE.value

    def handle(self, event: HookEvent) -> None:
        session_id = event.require("session_id")
        tool_name = event.require("tool_name")

        # Screen before touching state so a blocked call leaves no trace in it.
        if tool_name == "Bash":
            self._screen(session_id, bash_command(event))

        subagent = event.input_str("subagent_type") if tool_name == "Task" else ""
        with self.manager.edit_state(session_id) as state:
            state.begin_tool(tool_name, event.tool_use_id)
            if subagent:
                state.add_agent(subagent)

    def _screen(self, session_id: str, command: str) -> None:
        safety = self.config.safety
        if not safety.enabled or not command:
            return
        reason = find_dangerous_pattern(command, safety.blocked_commands)
        if reason is None:
            return
        log_event(
            event="command_blocked",
            component="hooks",
            level="warn",
            hook=self.name,
            session_id=session_id,
            reason=reason,
        )
        raise BlockedOperationError(command, reason)
