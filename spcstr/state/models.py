"""Data models for per-session state documents.

One ``SessionState`` document lives at ``sessions/<session_id>/state.json`` and
is rewritten in full on every hook event. The dashboard reads the same file, so
the JSON shape produced by ``to_dict`` is the on-disk contract.

Design principles:
- Mutable dataclasses; all mutation happens inside a locked edit block owned by
  ``StateManager`` and the mutators below perform no I/O
- to_dict/from_dict helpers for JSON serialization
- from_dict tolerates missing collections (older or hand-edited files) but
  rejects documents without a session_id
- Timestamps are RFC3339 UTC strings so they compare lexically in order
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional

RECENT_TODO_LIMIT = 5
PENDING_LIMIT = 64


def format_timestamp(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds").replace("+00:00", "Z")


def utc_now() -> str:
    """Return the current UTC time as an RFC3339 string with a ``Z`` suffix."""
    return format_timestamp(datetime.now(timezone.utc))


class FileOperation(str, Enum):
    NEW = "new"
    EDITED = "edited"
    READ = "read"


class TodoStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


@dataclass
class AgentExecution:
    """One run of a sub-agent.

    Attributes:
        name: Sub-agent type (e.g. ``reviewer``)
        started_at: When the agent was added
        completed_at: When it finished; None while it is still running
    """

    name: str
    started_at: str = field(default_factory=utc_now)
    completed_at: Optional[str] = None

    @property
    def is_open(self) -> bool:
        return self.completed_at is None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "started_at": self.started_at,
            "completed_at": self.completed_at,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AgentExecution":
        return cls(
            name=data["name"],
            started_at=data.get("started_at") or utc_now(),
            completed_at=data.get("completed_at"),
        )


@dataclass
class FileOperations:
    new: List[str] = field(default_factory=list)
    edited: List[str] = field(default_factory=list)
    read: List[str] = field(default_factory=list)

    def bucket(self, operation: FileOperation) -> List[str]:
        return getattr(self, operation.value)

    def to_dict(self) -> Dict[str, List[str]]:
        return {"new": list(self.new), "edited": list(self.edited), "read": list(self.read)}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "FileOperations":
        data = data or {}
        return cls(
            new=list(data.get("new") or []),
            edited=list(data.get("edited") or []),
            read=list(data.get("read") or []),
        )


@dataclass
class ErrorEntry:
    message: str
    source: str
    severity: str = "error"
    timestamp: str = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "message": self.message,
            "source": self.source,
            "severity": self.severity,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ErrorEntry":
        return cls(
            message=data.get("message", ""),
            source=data.get("source", ""),
            severity=data.get("severity", "error"),
            timestamp=data.get("timestamp") or utc_now(),
        )


@dataclass
class PromptEntry:
    prompt: str
    response: str = ""
    tools_used: List[str] = field(default_factory=list)
    timestamp: str = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "prompt": self.prompt,
            "response": self.response,
            "tools_used": list(self.tools_used),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PromptEntry":
        return cls(
            prompt=data.get("prompt", ""),
            response=data.get("response", ""),
            tools_used=list(data.get("tools_used") or []),
            timestamp=data.get("timestamp") or utc_now(),
        )


@dataclass
class NotificationEntry:
    message: str
    type: str = "hook"
    level: str = "info"
    timestamp: str = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "type": self.type,
            "message": self.message,
            "level": self.level,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "NotificationEntry":
        return cls(
            message=data.get("message", ""),
            type=data.get("type", "hook"),
            level=data.get("level", "info"),
            timestamp=data.get("timestamp") or utc_now(),
        )


@dataclass
class TodoItem:
    content: str
    status: str = TodoStatus.PENDING.value
    activeForm: str = ""

    def to_dict(self) -> Dict[str, str]:
        return {"content": self.content, "status": self.status, "activeForm": self.activeForm}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TodoItem":
        return cls(
            content=str(data.get("content", "")),
            status=str(data.get("status", TodoStatus.PENDING.value)),
            activeForm=str(data.get("activeForm") or ""),
        )


@dataclass
class TodoState:
    """Snapshot of the agent's todo list, replaced wholesale on each TodoWrite."""

    total: int = 0
    pending: int = 0
    in_progress: int = 0
    completed: int = 0
    recent: List[TodoItem] = field(default_factory=list)
    last_updated: str = ""

    @classmethod
    def from_items(cls, todos: Iterable[Mapping[str, Any]]) -> "TodoState":
        """Summarize a TodoWrite payload, keeping the first five items."""
        items = [TodoItem.from_dict(t) for t in todos if isinstance(t, Mapping)]
        state = cls(total=len(items), last_updated=utc_now())
        for item in items:
            if item.status == TodoStatus.PENDING.value:
                state.pending += 1
            elif item.status == TodoStatus.IN_PROGRESS.value:
                state.in_progress += 1
            elif item.status == TodoStatus.COMPLETED.value:
                state.completed += 1
        state.recent = items[:RECENT_TODO_LIMIT]
        return state

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "pending": self.pending,
            "in_progress": self.in_progress,
            "completed": self.completed,
            "recent": [t.to_dict() for t in self.recent],
            "last_updated": self.last_updated,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "TodoState":
        data = data or {}
        return cls(
            total=int(data.get("total", 0)),
            pending=int(data.get("pending", 0)),
            in_progress=int(data.get("in_progress", 0)),
            completed=int(data.get("completed", 0)),
            recent=[TodoItem.from_dict(t) for t in data.get("recent") or []],
            last_updated=data.get("last_updated", ""),
        )


@dataclass
class PendingCall:
    """A tool call seen by only one of its pre_tool_use / post_tool_use events.

    ``seen_by`` names the event that arrived first; the call is already counted
    and the other event only settles it.
    """

    tool_name: str
    seen_by: str
    call_id: str = ""

    def matches(self, tool_name: str, call_id: str) -> bool:
        if call_id and self.call_id:
            return call_id == self.call_id
        return tool_name == self.tool_name

    def to_dict(self) -> Dict[str, str]:
        return {"tool_name": self.tool_name, "seen_by": self.seen_by, "call_id": self.call_id}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | str) -> "PendingCall":
        if isinstance(data, str):
            return cls(tool_name=data, seen_by="pre")
        return cls(
            tool_name=data["tool_name"],
            seen_by=data.get("seen_by", "pre"),
            call_id=data.get("call_id") or "",
        )


@dataclass
class SessionState:
    """Complete recorded state of one agent session.

    Attributes:
        session_id: Identifier assigned by the host agent framework (immutable)
        created_at: When the document was (re)initialized
        updated_at: Bumped by StateManager on every write
        session_active: False once session_end or stop has been seen
        agents: Names of sub-agents currently running, in start order
        agents_history: Append-only log of every sub-agent run
        files: Paths touched, bucketed by operation
        tools_used: Per-tool call counters, never decremented
        errors: Append-only error log
        prompts: Append-only user prompt log
        notifications: Append-only notification log
        todos: Latest todo snapshot
        pending_tools: Tool calls counted by one of their pre/post events and
            awaiting the other, oldest first and capped at PENDING_LIMIT
        pending_stops: Sub-agents whose stop arrived before their start
    """

    session_id: str
    created_at: str = field(default_factory=utc_now)
    updated_at: str = ""
    session_active: bool = True
    agents: List[str] = field(default_factory=list)
    agents_history: List[AgentExecution] = field(default_factory=list)
    files: FileOperations = field(default_factory=FileOperations)
    tools_used: Dict[str, int] = field(default_factory=dict)
    errors: List[ErrorEntry] = field(default_factory=list)
    prompts: List[PromptEntry] = field(default_factory=list)
    notifications: List[NotificationEntry] = field(default_factory=list)
    todos: TodoState = field(default_factory=TodoState)
    pending_tools: List[PendingCall] = field(default_factory=list)
    pending_stops: List[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not isinstance(self.session_id, str) or not self.session_id:
            raise ValueError("SessionState session_id must be non-empty")
        if not self.updated_at:
            self.updated_at = self.created_at

    # ----- agents -----

    def add_agent(self, name: str, *, now: str | None = None) -> bool:
        """Start tracking ``name``. Returns False if it is already running.

        A stop that arrived before this start is consumed here: the run is
        recorded as already completed and ``name`` never becomes active.
        """
        if name in self.agents:
            return False
        stamp = now or utc_now()
        if name in self.pending_stops:
            self.pending_stops.remove(name)
            self.agents_history.append(AgentExecution(name=name, started_at=stamp, completed_at=stamp))
            return True
        self.agents.append(name)
        self.agents_history.append(AgentExecution(name=name, started_at=stamp))
        return True

    def complete_agent(self, name: str, *, now: str | None = None) -> bool:
        """Finish the oldest open run of ``name``. Unknown names are a no-op."""
        was_active = name in self.agents
        if was_active:
            self.agents.remove(name)
        for execution in self.agents_history:
            if execution.name == name and execution.is_open:
                execution.completed_at = now or utc_now()
                return True
        return was_active

    def stop_agent(self, name: str, *, now: str | None = None) -> bool:
        """Complete ``name``, or remember the stop if its start has not arrived yet.

        Only a name with no run at all is remembered. A stop for a run that is
        already completed is the second end event of that run (subagent_stop
        and the Task post_tool_use both end it) and is dropped.
        """
        if self.complete_agent(name, now=now):
            return True
        if name in self.pending_stops or any(execution.name == name for execution in self.agents_history):
            return False
        self.pending_stops.append(name)
        del self.pending_stops[:-PENDING_LIMIT]
        return False

    def close_open_agents(self, *, now: str | None = None) -> int:
        """Stamp every open agent run as completed and drain ``agents``."""
        stamp = now or utc_now()
        closed = 0
        for execution in self.agents_history:
            if execution.is_open:
                execution.completed_at = stamp
                closed += 1
        self.agents.clear()
        self.pending_stops.clear()
        return closed

    # ----- files and tools -----

    def record_file(self, operation: FileOperation, path: str) -> bool:
        """Append ``path`` to the ``operation`` bucket unless already listed there."""
        bucket = self.files.bucket(FileOperation(operation))
        if path in bucket:
            return False
        bucket.append(path)
        return True

    def increment_tool(self, tool_name: str) -> int:
        self.tools_used[tool_name] = self.tools_used.get(tool_name, 0) + 1
        return self.tools_used[tool_name]

    def begin_tool(self, tool_name: str, call_id: str = "") -> bool:
        """Observe a tool call's pre_tool_use. Returns True if it was counted now."""
        return self._observe_tool(tool_name, call_id, "pre")

    def finish_tool(self, tool_name: str, call_id: str = "") -> bool:
        """Observe a tool call's post_tool_use. Returns True if it was counted now."""
        return self._observe_tool(tool_name, call_id, "post")

    def _observe_tool(self, tool_name: str, call_id: str, side: str) -> bool:
        # Whichever of pre/post arrives first counts the call; the other settles it.
        for index, pending in enumerate(self.pending_tools):
            if pending.seen_by != side and pending.matches(tool_name, call_id):
                del self.pending_tools[index]
                return False
        self.increment_tool(tool_name)
        self.pending_tools.append(PendingCall(tool_name=tool_name, seen_by=side, call_id=call_id))
        del self.pending_tools[:-PENDING_LIMIT]
        return True

    def settle_turn(self) -> None:
        """Forget half-seen tool calls; their missing events will not arrive."""
        self.pending_tools.clear()

    # ----- logs -----

    def record_error(self, message: str, source: str, severity: str = "error") -> ErrorEntry:
        entry = ErrorEntry(message=message, source=source, severity=severity)
        self.errors.append(entry)
        return entry

    def add_prompt(self, prompt: str, *, timestamp: str | None = None) -> PromptEntry:
        entry = PromptEntry(prompt=prompt, timestamp=timestamp or utc_now())
        self.prompts.append(entry)
        return entry

    def add_notification(
        self, message: str, *, type: str = "hook", level: str = "info", timestamp: str | None = None
    ) -> NotificationEntry:
        entry = NotificationEntry(message=message, type=type, level=level, timestamp=timestamp or utc_now())
        self.notifications.append(entry)
        return entry

    def replace_todos(self, todos: Iterable[Mapping[str, Any]]) -> TodoState:
        self.todos = TodoState.from_items(todos)
        return self.todos

    # ----- serialization -----

    @property
    def total_tool_calls(self) -> int:
        return sum(self.tools_used.values())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "session_active": self.session_active,
            "agents": list(self.agents),
            "agents_history": [a.to_dict() for a in self.agents_history],
            "files": self.files.to_dict(),
            "tools_used": dict(self.tools_used),
            "errors": [e.to_dict() for e in self.errors],
            "prompts": [p.to_dict() for p in self.prompts],
            "notifications": [n.to_dict() for n in self.notifications],
            "todos": self.todos.to_dict(),
            "pending_tools": [p.to_dict() for p in self.pending_tools],
            "pending_stops": list(self.pending_stops),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SessionState":
        """Reconstruct a session from its JSON document.

        Raises:
            KeyError: If session_id is missing
            ValueError: If session_id is empty or a field has the wrong shape
        """
        created_at = data.get("created_at") or utc_now()
        return cls(
            session_id=data["session_id"],
            created_at=created_at,
            updated_at=data.get("updated_at") or created_at,
            session_active=bool(data.get("session_active", True)),
            agents=list(data.get("agents") or []),
            agents_history=[AgentExecution.from_dict(a) for a in data.get("agents_history") or []],
            files=FileOperations.from_dict(data.get("files")),
            tools_used={str(k): int(v) for k, v in (data.get("tools_used") or {}).items()},
            errors=[ErrorEntry.from_dict(e) for e in data.get("errors") or []],
            prompts=[PromptEntry.from_dict(p) for p in data.get("prompts") or []],
            notifications=[NotificationEntry.from_dict(n) for n in data.get("notifications") or []],
            todos=TodoState.from_dict(data.get("todos")),
            pending_tools=[PendingCall.from_dict(p) for p in data.get("pending_tools") or []],
            pending_stops=list(data.get("pending_stops") or []),
        )


__all__ = [
    "AgentExecution",
    "ErrorEntry",
    "FileOperation",
    "FileOperations",
    "NotificationEntry",
    "PENDING_LIMIT",
    "PendingCall",
    "PromptEntry",
    "SessionState",
    "TodoItem",
    "TodoState",
    "TodoStatus",
    "format_timestamp",
    "utc_now",
]
