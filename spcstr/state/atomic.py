"""Crash-safe JSON writes: temp file in the target directory, fsync, rename."""
from __future__ import annotations

import json
import os
import tempfile
import threading
import time
from pathlib import Path
from typing import Any

from .errors import DeadlineExceededError, InvalidPathError, StateFileError

CHUNK_SIZE = 64 * 1024
DEFAULT_WRITE_TIMEOUT = 5.0


def dump_json(value: Any) -> str:
    return json.dumps(value, indent=2, ensure_ascii=False) + "\n"


class AtomicWriter:
    """Write JSON documents so readers only ever see the old or the new file.

    The temp file is created next to the target (same filesystem, so the final
    ``os.replace`` is an atomic rename) with a name unique per call. On any
    failure the temp file is removed and the target is left untouched.
    """

    def __init__(self, timeout: float = DEFAULT_WRITE_TIMEOUT) -> None:
        self.timeout = timeout

    def write_json(
        self,
        path: Path | str,
        value: Any,
        *,
        cancel: threading.Event | None = None,
    ) -> Path:
        target = Path(path)
        if not target.is_absolute():
            raise InvalidPathError(target)

        try:
            encoded = dump_json(value).encode("utf-8")
        except (TypeError, ValueError) as exc:
            raise StateFileError("marshal_json", target, str(exc)) from exc

        deadline = time.monotonic() + self.timeout
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StateFileError("create_dir", target.parent, str(exc)) from exc

        try:
            fd, temp_name = tempfile.mkstemp(dir=str(target.parent), prefix=f"{target.name}.tmp.")
        except OSError as exc:
            raise StateFileError("create_temp", target, str(exc)) from exc

        temp_path = Path(temp_name)
        try:
            with os.fdopen(fd, "wb") as handle:
                for offset in range(0, len(encoded), CHUNK_SIZE):
                    self._check_deadline(target, deadline, cancel)
                    handle.write(encoded[offset:offset + CHUNK_SIZE])
                self._check_deadline(target, deadline, cancel)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(temp_path, target)
        except DeadlineExceededError:
            temp_path.unlink(missing_ok=True)
            raise
        except OSError as exc:
            temp_path.unlink(missing_ok=True)
            raise StateFileError("write", target, str(exc)) from exc
        except BaseException:
            temp_path.unlink(missing_ok=True)
            raise
        return target

    @staticmethod
    def _check_deadline(target: Path, deadline: float, cancel: threading.Event | None) -> None:
        if cancel is not None and cancel.is_set():
            raise DeadlineExceededError(f"write to {target} cancelled")
        if time.monotonic() > deadline:
            raise DeadlineExceededError(f"write to {target} exceeded its deadline")


def write_json_atomic(path: Path | str, value: Any, *, timeout: float = DEFAULT_WRITE_TIMEOUT) -> Path:
    return AtomicWriter(timeout).write_json(path, value)


__all__ = ["AtomicWriter", "CHUNK_SIZE", "dump_json", "write_json_atomic"]
