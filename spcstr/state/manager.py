"""Per-session state persistence.

StateManager owns the on-disk layout below a ``.spcstr`` directory::

    sessions/<session_id>/state.json   current SessionState document
    sessions/<session_id>/state.lock   StateLock directory while an edit runs

Every mutation goes through ``edit_state``: acquire the session lock, reload
the latest document, let the caller mutate it, stamp ``updated_at`` and write
it back atomically. A mutation that raises leaves the file untouched. Readers
never lock; atomic renames guarantee they see a whole document.
"""
from __future__ import annotations

import json
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, Iterable, Iterator, List, Mapping

from spcstr import SPCSTR_DIRNAME

from .atomic import DEFAULT_WRITE_TIMEOUT, AtomicWriter
from .errors import (
    CorruptedStateError,
    InvalidOperationError,
    InvalidSessionIDError,
    SessionNotFoundError,
    StateFileError,
)
from .lock import DEFAULT_LOCK_TIMEOUT, DEFAULT_STALE_TIMEOUT, StateLock
from .logger import log_event
from .models import FileOperation, SessionState, utc_now

if TYPE_CHECKING:
    from spcstr.config import SpcstrConfig

STATE_FILENAME = "state.json"
LOCK_DIRNAME = "state.lock"
SESSIONS_DIRNAME = "sessions"


def validate_session_id(session_id: str) -> str:
    if not isinstance(session_id, str) or not session_id.strip():
        raise InvalidSessionIDError("session id must be a non-empty string")
    if session_id in (".", "..") or "/" in session_id or "\\" in session_id or "\x00" in session_id:
        raise InvalidSessionIDError(f"session id {session_id!r} is not a valid directory name")
    return session_id


class StateManager:
    def __init__(
        self,
        base_path: Path | str,
        *,
        timeout: float = DEFAULT_WRITE_TIMEOUT,
        lock_timeout: float = DEFAULT_LOCK_TIMEOUT,
        stale_lock_timeout: float = DEFAULT_STALE_TIMEOUT,
    ) -> None:
        self.base_path = Path(base_path)
        self.lock_timeout = lock_timeout
        self.stale_lock_timeout = stale_lock_timeout
        self.writer = AtomicWriter(timeout)

    @classmethod
    def for_project(cls, project_dir: Path | str, config: "SpcstrConfig | None" = None) -> "StateManager":
        """Build a manager rooted at ``<project_dir>/.spcstr`` using the project's timeouts."""
        base = Path(project_dir).absolute() / SPCSTR_DIRNAME
        if config is None:
            return cls(base)
        return cls(
            base,
            timeout=config.state.timeout,
            lock_timeout=config.state.lock_timeout,
            stale_lock_timeout=config.state.stale_lock_timeout,
        )

    # ----- paths -----

    @property
    def sessions_dir(self) -> Path:
        return self.base_path / SESSIONS_DIRNAME

    def session_dir(self, session_id: str) -> Path:
        return self.sessions_dir / validate_session_id(session_id)

    def session_path(self, session_id: str) -> Path:
        return self.session_dir(session_id) / STATE_FILENAME

    def lock(self, session_id: str) -> StateLock:
        return StateLock(
            self.session_dir(session_id) / LOCK_DIRNAME,
            timeout=self.lock_timeout,
            stale_timeout=self.stale_lock_timeout,
        )

    # ----- lifecycle -----

    def initialize_state(self, session_id: str) -> SessionState:
        """Write a fresh active state for ``session_id``, replacing any existing one."""
        validate_session_id(session_id)
        with self.lock(session_id):
            state = SessionState(session_id=session_id)
            self._write(state)
        log_event(event="state_initialized", component="state", session_id=session_id)
        return state

    def load_state(self, session_id: str) -> SessionState:
        path = self.session_path(session_id)
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError as exc:
            raise SessionNotFoundError(session_id) from exc
        except OSError as exc:
            raise StateFileError("read", path, str(exc)) from exc
        return self._decode(path, raw)

    def session_exists(self, session_id: str) -> bool:
        return self.session_path(session_id).is_file()

    def list_sessions(self) -> List[str]:
        if not self.sessions_dir.is_dir():
            return []
        return sorted(p.parent.name for p in self.sessions_dir.glob(f"*/{STATE_FILENAME}") if p.is_file())

    def delete_state(self, session_id: str) -> None:
        path = self.session_path(session_id)
        with self.lock(session_id):
            try:
                path.unlink()
            except FileNotFoundError as exc:
                raise SessionNotFoundError(session_id) from exc
            except OSError as exc:
                raise StateFileError("delete", path, str(exc)) from exc
        try:
            path.parent.rmdir()
        except OSError:
            # Something else (a backup, a new lock) still lives there.
            pass
        log_event(event="state_deleted", component="state", session_id=session_id)

    # ----- read-modify-write -----

    @contextmanager
    def edit_state(self, session_id: str) -> Iterator[SessionState]:
        """Lock, reload, yield the state for mutation, then save atomically.

        A CorruptedStateError on reload is recovered from inside the same lock
        and the caller mutates the recovered state.
        """
        if not self.session_dir(session_id).is_dir():
            raise SessionNotFoundError(session_id)
        with self.lock(session_id):
            try:
                state = self.load_state(session_id)
            except CorruptedStateError as exc:
                state = self._recover_locked(session_id, exc)
            yield state
            self._write(state)

    def update_state(self, session_id: str, fn: Callable[[SessionState], Any]) -> SessionState:
        with self.edit_state(session_id) as state:
            fn(state)
        return state

    def recover_state(self, session_id: str) -> SessionState:
        """Move the current state file aside and start a fresh one for the same id."""
        if not self.session_path(session_id).exists():
            raise SessionNotFoundError(session_id)
        with self.lock(session_id):
            return self._recover_locked(session_id, None)

    # ----- convenience mutators -----

    def add_agent(self, session_id: str, agent_name: str) -> SessionState:
        return self.update_state(session_id, lambda s: s.add_agent(agent_name))

    def complete_agent(self, session_id: str, agent_name: str) -> SessionState:
        return self.update_state(session_id, lambda s: s.complete_agent(agent_name))

    def record_error(self, session_id: str, message: str, source: str, severity: str = "error") -> SessionState:
        return self.update_state(session_id, lambda s: s.record_error(message, source, severity))

    def record_file_operation(self, session_id: str, path: str, operation: FileOperation | str) -> SessionState:
        try:
            op = FileOperation(operation)
        except ValueError as exc:
            raise InvalidOperationError(f"unknown file operation {operation!r}") from exc
        return self.update_state(session_id, lambda s: s.record_file(op, path))

    def increment_tool_usage(self, session_id: str, tool_name: str) -> SessionState:
        return self.update_state(session_id, lambda s: s.increment_tool(tool_name))

    def set_session_active(self, session_id: str, active: bool) -> SessionState:
        def apply(state: SessionState) -> None:
            state.session_active = active

        return self.update_state(session_id, apply)

    def update_todos(self, session_id: str, todos: Iterable[Mapping[str, Any]]) -> SessionState:
        items = list(todos)
        return self.update_state(session_id, lambda s: s.replace_todos(items))

    def end_session(self, session_id: str) -> SessionState:
        def apply(state: SessionState) -> None:
            state.session_active = False
            state.close_open_agents()
            state.settle_turn()

        return self.update_state(session_id, apply)

    # ----- internals -----

    def _decode(self, path: Path, raw: str) -> SessionState:
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise CorruptedStateError("decode", path, str(exc)) from exc
        if not isinstance(data, dict):
            raise CorruptedStateError("decode", path, "state document is not a JSON object")
        try:
            return SessionState.from_dict(data)
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            raise CorruptedStateError("decode", path, f"invalid state document: {exc!r}") from exc

    def _write(self, state: SessionState) -> None:
        now = utc_now()
        state.updated_at = now if now >= state.created_at else state.created_at
        self.writer.write_json(self.session_path(state.session_id), state.to_dict())

    def _backup_path(self, path: Path) -> Path:
        stamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
        candidate = path.with_name(f"{path.name}.corrupted.{stamp}")
        counter = 1
        while candidate.exists():
            candidate = path.with_name(f"{path.name}.corrupted.{stamp}_{counter}")
            counter += 1
        return candidate

    def _recover_locked(self, session_id: str, cause: CorruptedStateError | None) -> SessionState:
        path = self.session_path(session_id)
        backup = self._backup_path(path)
        try:
            path.replace(backup)
        except FileNotFoundError:
            backup = None
        except OSError as exc:
            raise StateFileError("backup", path, str(exc)) from exc

        state = SessionState(session_id=session_id)
        reason = f": {cause.message}" if cause is not None else ""
        if backup is not None:
            message = f"state file was unreadable and has been moved to {backup.name}{reason}"
        else:
            message = f"state file was unreadable and has been reset{reason}"
        state.record_error(message, source="recovery", severity="warning")
        self._write(state)
        log_event(
            event="state_recovered",
            component="state",
            level="warn",
            session_id=session_id,
            backup=str(backup) if backup else None,
        )
        return state


__all__ = [
    "LOCK_DIRNAME",
    "STATE_FILENAME",
    "StateManager",
    "validate_session_id",
]
