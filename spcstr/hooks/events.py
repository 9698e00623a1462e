"""Hook event names and payload parsing."""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from spcstr.state.models import format_timestamp, utc_now

from .errors import HookValidationError


class HookName(str, Enum):
    SESSION_START = "session_start"
    USER_PROMPT_SUBMIT = "user_prompt_submit"
    PRE_TOOL_USE = "pre_tool_use"
    POST_TOOL_USE = "post_tool_use"
    NOTIFICATION = "notification"
    PRE_COMPACT = "pre_compact"
    SESSION_END = "session_end"
    STOP = "stop"
    SUBAGENT_STOP = "subagent_stop"


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> str:
    return value if isinstance(value, str) else ""


@dataclass
class HookEvent:
    """A decoded hook payload.

    The common envelope fields are lifted onto attributes; ``data`` keeps the
    full decoded object for event-specific keys (``prompt``, ``message``,
    ``source``, ``agent_name`` and so on).
    """

    session_id: str = ""
    hook_event_name: str = ""
    tool_name: str = ""
    tool_use_id: str = ""
    tool_input: Dict[str, Any] = field(default_factory=dict)
    tool_response: Dict[str, Any] = field(default_factory=dict)
    permission_mode: str = ""
    transcript_path: str = ""
    cwd: str = ""
    data: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HookEvent":
        tool_input = data.get("tool_input")
        if tool_input is None:
            # Older framework builds sent tool arguments as "parameters".
            tool_input = data.get("parameters")
        return cls(
            session_id=_as_str(data.get("session_id")),
            hook_event_name=_as_str(data.get("hook_event_name")),
            tool_name=_as_str(data.get("tool_name")),
            tool_use_id=_as_str(data.get("tool_use_id")),
            tool_input=_as_dict(tool_input),
            tool_response=_as_dict(data.get("tool_response")),
            permission_mode=_as_str(data.get("permission_mode")),
            transcript_path=_as_str(data.get("transcript_path")),
            cwd=_as_str(data.get("cwd")),
            data=data,
        )

    def get(self, key: str, default: Any = None) -> Any:
        value = self.data.get(key)
        return default if value is None else value

    def get_str(self, key: str, default: str = "") -> str:
        value = self.data.get(key)
        return value if isinstance(value, str) and value else default

    def require(self, key: str) -> str:
        value = self.data.get(key)
        if not isinstance(value, str) or not value.strip():
            raise HookValidationError(f"{key} is required", field=key)
        return value

    def input_str(self, key: str) -> str:
        return _as_str(self.tool_input.get(key))


def parse_event(payload: bytes | str | Dict[str, Any]) -> HookEvent:
    if isinstance(payload, dict):
        return HookEvent.from_dict(payload)
    if isinstance(payload, bytes):
        try:
            payload = payload.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise HookValidationError(f"payload is not valid UTF-8: {exc}") from exc
    try:
        data = json.loads(payload)
    except json.JSONDecodeError as exc:
        raise HookValidationError(f"payload is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise HookValidationError("payload must be a JSON object")
    return HookEvent.from_dict(data)


def extract_session_id(payload: bytes | str) -> Optional[str]:
    """Best-effort session id lookup; never raises."""
    try:
        return parse_event(payload).session_id or None
    except HookValidationError:
        return None


def parse_timestamp(value: Any) -> str:
    """Normalize an RFC3339 timestamp to UTC, or return now when absent or invalid."""
    if not isinstance(value, str) or not value:
        return utc_now()
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return utc_now()
    if parsed.tzinfo is None:
        return utc_now()
    return format_timestamp(parsed)


__all__ = [
    "HookEvent",
    "HookName",
    "extract_session_id",
    "parse_event",
    "parse_timestamp",
]
