"""Error types raised by the session state layer."""
from __future__ import annotations

from pathlib import Path


class StateError(RuntimeError):
    """Base class for state management errors.

    Every subclass carries a stable ``code`` so callers (and the audit trail)
    can classify failures without matching on message text.
    """

    code = "state_error"

    def __init__(self, message: str, *, code: str | None = None) -> None:
        if code is not None:
            self.code = code
        self.message = message
        super().__init__(f"state: {self.code}: {message}")


class InvalidPathError(StateError):
    code = "invalid_path"

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        super().__init__(f"path must be absolute: {path}")


class InvalidSessionIDError(StateError):
    code = "invalid_session_id"


class SessionNotFoundError(StateError):
    code = "session_not_found"

    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        super().__init__(f"session {session_id} does not exist")


class InvalidOperationError(StateError):
    code = "invalid_operation"


class StateFileError(StateError):
    """A file operation on a state artifact failed; the cause is chained."""

    code = "file_error"

    def __init__(self, op: str, path: Path | str, reason: str) -> None:
        self.op = op
        self.path = Path(path)
        super().__init__(f"{op} {path}: {reason}")


class CorruptedStateError(StateFileError):
    code = "corrupted_state"


class DeadlineExceededError(TimeoutError):
    """A write did not finish before its deadline or was cancelled."""


__all__ = [
    "StateError",
    "InvalidPathError",
    "InvalidSessionIDError",
    "SessionNotFoundError",
    "InvalidOperationError",
    "StateFileError",
    "CorruptedStateError",
    "DeadlineExceededError",
]
