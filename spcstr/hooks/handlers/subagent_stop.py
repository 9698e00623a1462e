from __future__ import annotations

from spcstr.hooks.events import HookEvent, HookName

from .base import HookHandler

DEFAULT_AGENT_NAME = "claude"


class SubagentStopHandler(HookHandler):
    """Complete a sub-agent run.

    The framework does not always send ``agent_name``. Without it the oldest
    running agent is completed; with nothing running the name falls back to
    ``claude``, which completes nothing. A named stop that arrives before the
    Task pre_tool_use that starts the agent is remembered until that start.
    """

    name = HookName.SUBAGENT_STOP.value

    def handle(self, event: HookEvent) -> None:
        session_id = event.require("session_id")
        agent_name = event.get_str("agent_name")
        with self.manager.edit_state(session_id) as state:
            if agent_name:
                state.stop_agent(agent_name)
                return
            state.complete_agent(state.agents[0] if state.agents else DEFAULT_AGENT_NAME)
