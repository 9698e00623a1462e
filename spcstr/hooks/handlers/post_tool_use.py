"""post_tool_use: record what a finished tool call touched."""
from __future__ import annotations

from typing import Any, Dict

from spcstr.hooks.events import HookEvent, HookName
from spcstr.state.models import FileOperation, SessionState

from .base import HookHandler

WRITE_TOOLS = frozenset({"Write", "Edit", "MultiEdit"})


def file_path(event: HookEvent) -> str:
    path = event.input_str("file_path")
    if path:
        return path
    response_path = event.tool_response.get("filePath")
    return response_path if isinstance(response_path, str) else ""


def todo_items(tool_input: Dict[str, Any]) -> list:
    todos = tool_input.get("todos")
    return todos if isinstance(todos, list) else []


class PostToolUseHandler(HookHandler):
    name = HookName.POST_TOOL_USE.value

    def handle(self, event: HookEvent) -> None:
        session_id = event.require("session_id")
        tool_name = event.require("tool_name")
        with self.manager.edit_state(session_id) as state:
            state.finish_tool(tool_name, event.tool_use_id)
            self._apply(state, tool_name, event)

    def _apply(self, state: SessionState, tool_name: str, event: HookEvent) -> None:
        if tool_name in WRITE_TOOLS:
            path = file_path(event)
            if path:
                created = event.tool_response.get("type") == "create"
                state.record_file(FileOperation.NEW if created else FileOperation.EDITED, path)
        elif tool_name == "Read":
            path = file_path(event)
            if path:
                state.record_file(FileOperation.READ, path)
        elif tool_name == "TodoWrite":
            state.replace_todos(todo_items(event.tool_input))
        elif tool_name == "Task":
            subagent = event.input_str("subagent_type")
            if subagent:
                state.stop_agent(subagent)
            elif state.agents:
                state.complete_agent(state.agents[0])
