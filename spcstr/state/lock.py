"""Cross-process advisory lock built on mkdir atomicity.

Every hook event runs in its own short-lived process, so two events for the
same session can race on one state file. Holders of a StateLock serialize the
whole load -> mutate -> write cycle. Lock directories left behind by crashed
processes are reclaimed once they are older than ``stale_timeout`` and their
owner is gone.
"""
from __future__ import annotations

import json
import os
import shutil
import socket
import time
from contextlib import AbstractContextManager
from pathlib import Path
from types import TracebackType
from typing import Any, Dict, Optional, Type

LOCK_INFO_FILENAME = "lock_info.json"
DEFAULT_LOCK_TIMEOUT = 5.0
DEFAULT_STALE_TIMEOUT = 30.0


class StateLock(AbstractContextManager["StateLock"]):
    """Exclusive lock held while ``lock_dir`` exists."""

    def __init__(
        self,
        lock_dir: Path | str,
        *,
        timeout: float = DEFAULT_LOCK_TIMEOUT,
        poll_interval: float = 0.05,
        stale_timeout: float = DEFAULT_STALE_TIMEOUT,
    ) -> None:
        self.lock_dir = Path(lock_dir)
        self._timeout = timeout
        self._poll_interval = poll_interval
        self._stale_timeout = stale_timeout
        self._held = False

    @property
    def held(self) -> bool:
        return self._held

    def __enter__(self) -> "StateLock":
        self.acquire()
        return self

    def __exit__(
        self,
        exc_type: Type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.release()

    def acquire(self) -> None:
        deadline = time.monotonic() + self._timeout
        self.lock_dir.parent.mkdir(parents=True, exist_ok=True)
        while True:
            self._cleanup_stale_lock()
            try:
                self.lock_dir.mkdir()
            except FileExistsError:
                if time.monotonic() > deadline:
                    raise TimeoutError(f"Unable to acquire state lock at {self.lock_dir}")
                time.sleep(self._poll_interval)
                continue
            try:
                self._write_lock_info()
            except OSError:
                shutil.rmtree(self.lock_dir, ignore_errors=True)
                raise
            self._held = True
            return

    def release(self) -> None:
        """Release the lock if held."""
        if not self._held:
            return
        shutil.rmtree(self.lock_dir, ignore_errors=True)
        self._held = False

    def read_info(self, lock_dir: Optional[Path] = None) -> Optional[Dict[str, Any]]:
        path = (lock_dir or self.lock_dir) / LOCK_INFO_FILENAME
        try:
            info = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            return None
        return info if isinstance(info, dict) else None

    def _cleanup_stale_lock(self) -> None:
        if self.lock_dir.exists() and self._is_stale(self.lock_dir):
            self._reclaim()

    def _is_stale(self, lock_dir: Path) -> bool:
        info = self.read_info(lock_dir)
        try:
            timestamp = float(info["timestamp"]) if info else None
            pid = int(info["pid"]) if info else None
        except (KeyError, TypeError, ValueError):
            timestamp = pid = None

        if timestamp is None or pid is None or pid <= 0:
            # Owner crashed between mkdir and writing lock_info, or wrote garbage.
            return self._lock_dir_age(lock_dir) > self._stale_timeout

        if (time.time() - timestamp) <= self._stale_timeout:
            return False
        return info.get("host") not in (None, socket.gethostname()) or not self._process_alive(pid)

    def _reclaim(self) -> None:
        """Move the lock directory aside, then delete it only if it is still stale.

        Another waiter may have reclaimed and re-acquired the lock between our
        staleness check and the rename; in that case the fresh lock is put back.
        """
        aside = self.lock_dir.with_name(f"{self.lock_dir.name}.stale.{os.getpid()}.{time.time_ns()}")
        try:
            os.rename(self.lock_dir, aside)
        except OSError:
            return
        if self._is_stale(aside):
            shutil.rmtree(aside, ignore_errors=True)
            return
        try:
            os.rename(aside, self.lock_dir)
        except OSError:
            # The lock was taken again meanwhile; the moved one's owner has lost it.
            shutil.rmtree(aside, ignore_errors=True)

    @staticmethod
    def _process_alive(pid: int) -> bool:
        if pid <= 0:
            return False
        try:
            os.kill(pid, 0)
        except ProcessLookupError:
            return False
        except PermissionError:
            return True
        return True

    def _write_lock_info(self) -> None:
        info = {
            "pid": os.getpid(),
            "timestamp": time.time(),
            "host": socket.gethostname(),
        }
        (self.lock_dir / LOCK_INFO_FILENAME).write_text(json.dumps(info), encoding="utf-8")

    def _lock_dir_age(self, lock_dir: Path) -> float:
        try:
            return time.time() - lock_dir.stat().st_mtime
        except FileNotFoundError:
            return 0.0


__all__ = ["DEFAULT_LOCK_TIMEOUT", "DEFAULT_STALE_TIMEOUT", "LOCK_INFO_FILENAME", "StateLock"]
