"""Per-hook audit trail in ``.spcstr/logs/<hook_name>.json``.

Each file is a pretty-printed JSON array of
``{timestamp, session_id, hook_name, input_data, success}`` entries. Appends
read the whole array and write it back, so they run under the same mkdir lock
and atomic writer as session state to avoid losing entries to concurrent
hook processes.
"""
from __future__ import annotations

import json
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from spcstr.state.atomic import AtomicWriter
from spcstr.state.lock import StateLock
from spcstr.state.logger import log_event
from spcstr.state.models import utc_now

_HOOK_NAME_RE = re.compile(r"^[A-Za-z0-9_-]+$")


def _decode_input(input_data: Any) -> Any:
    """Store JSON payloads as structured data, anything else as text."""
    if isinstance(input_data, bytes):
        input_data = input_data.decode("utf-8", errors="replace")
    if isinstance(input_data, str):
        try:
            return json.loads(input_data)
        except json.JSONDecodeError:
            return input_data
    return input_data


class HookAuditLog:
    def __init__(self, logs_dir: Path | str, *, timeout: float = 1.0) -> None:
        self.logs_dir = Path(logs_dir)
        self.timeout = timeout
        self._writer = AtomicWriter(timeout)

    def log_path(self, hook_name: str) -> Path:
        if not _HOOK_NAME_RE.match(hook_name or ""):
            raise ValueError(f"invalid hook name for audit log: {hook_name!r}")
        return self.logs_dir / f"{hook_name}.json"

    def record(
        self,
        session_id: Optional[str],
        hook_name: str,
        input_data: Any,
        success: bool,
    ) -> Dict[str, Any]:
        path = self.log_path(hook_name)
        entry = {
            "timestamp": utc_now(),
            "session_id": session_id or "",
            "hook_name": hook_name,
            "input_data": _decode_input(input_data),
            "success": bool(success),
        }
        with StateLock(self.logs_dir / f"{hook_name}.lock", timeout=self.timeout):
            entries = self._load(path)
            entries.append(entry)
            self._writer.write_json(path, entries)
        return entry

    def entries(self, hook_name: str) -> List[Dict[str, Any]]:
        path = self.log_path(hook_name)
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return []
        return data if isinstance(data, list) else []

    def _load(self, path: Path) -> List[Dict[str, Any]]:
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return []
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            data = None
        if isinstance(data, list):
            return data

        stamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
        backup = path.with_name(f"{path.name}.corrupted.{stamp}")
        path.replace(backup)
        log_event(event="audit_log_corrupted", component="audit", level="warn", backup=str(backup))
        return []


__all__ = ["HookAuditLog"]
