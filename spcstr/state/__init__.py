"""Session state persistence: models, atomic writes, locking and telemetry."""
from __future__ import annotations

from .atomic import AtomicWriter, write_json_atomic
from .errors import (
    CorruptedStateError,
    DeadlineExceededError,
    InvalidOperationError,
    InvalidPathError,
    InvalidSessionIDError,
    SessionNotFoundError,
    StateError,
    StateFileError,
)
from .lock import StateLock
from .logger import event_timer, log_event
from .manager import StateManager, validate_session_id
from .models import (
    AgentExecution,
    ErrorEntry,
    FileOperation,
    FileOperations,
    NotificationEntry,
    PendingCall,
    PromptEntry,
    SessionState,
    TodoItem,
    TodoState,
    utc_now,
)

__all__ = [
    "AgentExecution",
    "AtomicWriter",
    "CorruptedStateError",
    "DeadlineExceededError",
    "ErrorEntry",
    "FileOperation",
    "FileOperations",
    "InvalidOperationError",
    "InvalidPathError",
    "InvalidSessionIDError",
    "NotificationEntry",
    "PendingCall",
    "PromptEntry",
    "SessionNotFoundError",
    "SessionState",
    "StateError",
    "StateFileError",
    "StateLock",
    "StateManager",
    "TodoItem",
    "TodoState",
    "event_timer",
    "log_event",
    "utc_now",
    "validate_session_id",
    "write_json_atomic",
]
